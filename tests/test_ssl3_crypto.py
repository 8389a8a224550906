#! -*- coding: utf-8 -*-

import unittest

from Cryptodome.Hash import HMAC, SHA

import scapy_ssl3_handshake.pkcs1_15_raw as raw_pkcs1_15
import scapy_ssl3_handshake.ssl3 as ssl3
import scapy_ssl3_handshake.ssl3_crypto as sslc
import scapy_ssl3_handshake.ssl3_keystore as sslk
from scapy_ssl3_handshake.ssl3 import SSLMessageType, SSLHello, SSLCertificate, SSLKeyExchange

from helper import make_identity, stream_pair


def premaster(fill=b"\x42"):
    return b"\x03\x04" + fill * sslc.PREMASTER_RANDOM_SIZE


class TestKeyDerivation(unittest.TestCase):

    def test_when_premaster_is_generated_then_version_prefix_and_size_match(self):
        secret = sslc.generate_premaster()
        self.assertEqual(2 + sslc.PREMASTER_RANDOM_SIZE, len(secret))
        self.assertEqual(b"\x03\x04", secret[:2])
        self.assertNotEqual(secret, sslc.generate_premaster())

    def test_when_same_premaster_is_used_then_derived_keys_are_identical(self):
        self.assertEqual(sslc.derive_session_keys(premaster()), sslc.derive_session_keys(premaster()))

    def test_when_premasters_differ_then_derived_keys_differ(self):
        self.assertNotEqual(sslc.derive_session_keys(premaster(b"\x01")), sslc.derive_session_keys(premaster(b"\x02")))

    def test_derived_keys_have_aes_256_and_sha256_sizes(self):
        keys = sslc.derive_session_keys(premaster())
        self.assertEqual(256, keys.size)
        self.assertEqual(256, keys.hmac_size)
        self.assertNotEqual(keys.key, keys.hmac)

    def test_when_premaster_is_empty_then_crypto_error_is_raised(self):
        with self.assertRaises(ssl3.CryptoOperationError):
            sslc.derive_session_keys(b"")


class TestKeyExchange(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.server = make_identity("Server")
        cls.client = make_identity("Client")

    def exchange_pair(self, transport):
        server_kex = sslc.KeyExchange(self.server, self.client.public, transport)
        client_kex = sslc.KeyExchange(self.client, self.server.public, transport)
        return server_kex, client_kex

    def test_when_transport_is_unknown_then_value_error_is_raised(self):
        with self.assertRaises(ValueError):
            sslc.KeyExchange(self.server, self.client.public, "rot13")

    def test_when_challenge_is_answered_with_either_transport_then_response_is_accepted(self):
        for transport in sslc.KEY_TRANSPORTS:
            server_kex, client_kex = self.exchange_pair(transport)
            nonce, wire = server_kex.generate_challenge()
            self.assertEqual(sslc.CHALLENGE_SIZE, len(nonce))
            opened = client_kex.open_challenge(wire)
            self.assertEqual(nonce, opened)
            server_kex.check_challenge_response(nonce, client_kex.respond_challenge(opened))

    def test_when_response_answers_another_challenge_then_mismatch_is_raised(self):
        server_kex, client_kex = self.exchange_pair("sign")
        nonce, _ = server_kex.generate_challenge()
        with self.assertRaises(sslc.ChallengeMismatchError):
            server_kex.check_challenge_response(nonce, client_kex.respond_challenge(b"\x00" * sslc.CHALLENGE_SIZE))

    def test_when_premaster_is_exchanged_with_either_transport_then_server_recovers_it(self):
        for transport in sslc.KEY_TRANSPORTS:
            server_kex, client_kex = self.exchange_pair(transport)
            secret = sslc.generate_premaster()
            self.assertEqual(secret, server_kex.open_premaster(client_kex.exchange_premaster(secret)))

    def test_when_signing_transport_is_used_then_sender_public_key_recovers_value(self):
        _, client_kex = self.exchange_pair("sign")
        secret = sslc.generate_premaster()
        self.assertEqual(secret, raw_pkcs1_15.new(self.client.public).recover(client_kex.exchange_premaster(secret)))

    def test_when_protected_value_is_corrupted_then_crypto_error_is_raised(self):
        for transport in sslc.KEY_TRANSPORTS:
            server_kex, client_kex = self.exchange_pair(transport)
            wire = bytearray(client_kex.exchange_premaster(sslc.generate_premaster()))
            wire[len(wire) // 2] ^= 0xff
            with self.assertRaises(ssl3.CryptoOperationError):
                server_kex.open_premaster(bytes(wire))

    def test_when_encrypted_premaster_is_corrupted_anywhere_then_it_is_never_accepted(self):
        server_kex, client_kex = self.exchange_pair("encrypt")
        secret = sslc.generate_premaster()
        wire = client_kex.exchange_premaster(secret)
        for position in range(0, len(wire), len(wire) // 20):
            corrupted = bytearray(wire)
            corrupted[position] ^= 0x01
            with self.assertRaises(ssl3.CryptoOperationError):
                server_kex.open_premaster(bytes(corrupted))

    def test_when_encrypted_value_has_unexpected_length_then_crypto_error_is_raised(self):
        server_kex, client_kex = self.exchange_pair("encrypt")
        with self.assertRaises(ssl3.CryptoOperationError):
            server_kex.open_premaster(client_kex.exchange_premaster(b"\x03\x04" + b"\x00" * 10))
        with self.assertRaises(ssl3.CryptoOperationError):
            server_kex.open_challenge(client_kex.respond_challenge(b"\x01" * (sslc.CHALLENGE_SIZE + 1)))

    def test_when_challenge_has_wrong_size_then_crypto_error_is_raised(self):
        server_kex, client_kex = self.exchange_pair("sign")
        with self.assertRaises(ssl3.CryptoOperationError):
            server_kex.open_challenge(client_kex.respond_challenge(b"\x01" * (sslc.CHALLENGE_SIZE + 1)))


class TestTranscript(unittest.TestCase):

    def setUp(self):
        self.transcript = sslc.Transcript()
        for msg_type, payload in ((SSLMessageType.CLIENT_HELLO, SSLHello(data=b"TLS_RSA_WITH_AES_256")),
                                  (SSLMessageType.SERVER_HELLO, SSLHello(data=b"Cipher Suite Accepted")),
                                  (SSLMessageType.CERTIFICATE, SSLCertificate(data=b"\x30" * 40)),
                                  (SSLMessageType.CLIENT_KEY_EXCHANGE, SSLKeyExchange(data=b"\x07" * 256))):
            self.transcript.insert(ssl3.ssl_record(msg_type, payload))

    def test_when_tags_are_computed_then_one_hmac_sha1_per_entry_is_returned(self):
        tags = sslc.compute_transcript_tags(self.transcript, sslc.SERVER_LABEL, premaster())
        self.assertEqual(len(self.transcript), len(tags))
        first = sslc.Transcript.serialize(list(self.transcript)[0])
        key = premaster() + b"SERVER"
        self.assertEqual(HMAC.new(key, first, digestmod=SHA).digest(), tags[0])
        self.assertTrue(all(len(tag) == SHA.digest_size for tag in tags))

    def test_when_roles_differ_then_tags_differ(self):
        server_tags = sslc.compute_transcript_tags(self.transcript, sslc.SERVER_LABEL, premaster())
        client_tags = sslc.compute_transcript_tags(self.transcript, sslc.CLIENT_LABEL, premaster())
        self.assertFalse(sslc.verify_transcript_tags(server_tags, client_tags))

    def test_when_tags_are_permuted_then_verification_succeeds(self):
        tags = sslc.compute_transcript_tags(self.transcript, sslc.CLIENT_LABEL, premaster())
        self.assertTrue(sslc.verify_transcript_tags(list(reversed(tags)), tags))

    def test_when_one_byte_differs_then_verification_fails(self):
        tags = sslc.compute_transcript_tags(self.transcript, sslc.CLIENT_LABEL, premaster())
        tampered = list(tags)
        tampered[2] = tampered[2][:-1] + bytes([tampered[2][-1] ^ 0x01])
        self.assertFalse(sslc.verify_transcript_tags(tampered, tags))

    def test_when_tag_count_differs_then_verification_fails(self):
        tags = sslc.compute_transcript_tags(self.transcript, sslc.CLIENT_LABEL, premaster())
        self.assertFalse(sslc.verify_transcript_tags(tags[:-1], tags))

    def test_when_key_mode_is_zero_then_tags_do_not_depend_on_premaster_content(self):
        first = sslc.compute_transcript_tags(self.transcript, sslc.SERVER_LABEL, premaster(b"\x01"), "zero")
        second = sslc.compute_transcript_tags(self.transcript, sslc.SERVER_LABEL, premaster(b"\x02"), "zero")
        self.assertEqual(first, second)
        self.assertEqual(b"\x00" * (len(premaster()) + len("SERVER")),
                         sslc.finished_mac_key(premaster(), sslc.SERVER_LABEL, "zero"))

    def test_when_key_mode_is_unknown_then_value_error_is_raised(self):
        with self.assertRaises(ValueError):
            sslc.finished_mac_key(premaster(), sslc.SERVER_LABEL, "none")

    def test_when_transcript_is_discarded_then_it_is_empty(self):
        self.transcript.discard()
        self.assertEqual(0, len(self.transcript))
        self.assertEqual([], sslc.compute_transcript_tags(self.transcript, sslc.SERVER_LABEL, premaster()))


class TestAppDataChannel(unittest.TestCase):

    def setUp(self):
        self.channel = sslc.AppDataChannel(sslc.derive_session_keys(premaster()))

    def test_when_payload_is_sealed_then_it_opens_to_the_same_plaintext(self):
        ciphertext, tag = self.channel.seal(b"Secret data sent from server to client")
        self.assertNotIn(b"Secret data", ciphertext)
        self.assertEqual(b"Secret data sent from server to client", self.channel.open(ciphertext, tag))

    def test_when_same_payload_is_sealed_twice_then_ciphertexts_differ(self):
        self.assertNotEqual(self.channel.seal(b"x")[0], self.channel.seal(b"x")[0])

    def test_when_ciphertext_is_tampered_then_integrity_error_is_raised(self):
        ciphertext, tag = self.channel.seal(b"payload")
        tampered = bytes([ciphertext[0] ^ 0x80]) + ciphertext[1:]
        with self.assertRaises(sslc.IntegrityError):
            self.channel.open(tampered, tag)

    def test_when_keys_differ_then_integrity_error_is_raised(self):
        ciphertext, tag = self.channel.seal(b"payload")
        other = sslc.AppDataChannel(sslc.derive_session_keys(premaster(b"\x00")))
        with self.assertRaises(sslc.IntegrityError):
            other.open(ciphertext, tag)

    def test_when_payload_is_sent_then_ciphertext_and_tag_travel_as_two_messages(self):
        left, right = stream_pair()
        sender, receiver = ssl3.SSLSocket(left), ssl3.SSLSocket(right)
        try:
            ciphertext, tag = self.channel.send(sender, b"hello client")
            self.assertEqual(b"hello client", self.channel.recv(receiver))
            self.assertEqual(32, len(tag))
            self.assertEqual(0, len(ciphertext) % 16)
        finally:
            sender.close()
            receiver.close()


class TestSessionKeyStore(unittest.TestCase):

    def test_when_keys_are_wiped_then_key_material_is_gone(self):
        keys = sslc.derive_session_keys(premaster())
        keys.wipe()
        self.assertEqual(b"", keys.key)
        self.assertEqual(b"", keys.hmac)
        self.assertEqual(0, keys.size)
        self.assertNotEqual(keys, sslc.derive_session_keys(premaster()))

    def test_empty_keystore_holds_no_key(self):
        self.assertEqual(b"", sslk.EmptySymKeyStore().key)


if __name__ == "__main__":
    unittest.main()
