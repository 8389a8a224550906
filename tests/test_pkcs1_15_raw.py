# -*- coding: utf-8 -*-

import unittest

from Cryptodome.Util.number import bytes_to_long, long_to_bytes

import scapy_ssl3_handshake.pkcs1_15_raw as raw_pkcs1_15

from helper import make_identity


class TestRawPKCS1v15(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.private = make_identity("Server").private
        cls.public = cls.private.publickey()

    def test_when_message_is_signed_then_public_key_recovers_it(self):
        signature = raw_pkcs1_15.new(self.private).sign(b"12345678")
        self.assertEqual(256, len(signature))
        self.assertEqual(b"12345678", raw_pkcs1_15.new(self.public).recover(signature))

    def test_when_signing_then_block_type_one_padding_is_used(self):
        signature = raw_pkcs1_15.new(self.private).sign(b"abc")
        em = long_to_bytes(pow(bytes_to_long(signature), self.public.e, self.public.n), 256)
        self.assertEqual(b"\x00\x01" + b"\xff" * (256 - 3 - 3) + b"\x00abc", em)

    def test_when_only_public_key_is_present_then_signing_is_refused(self):
        signer = raw_pkcs1_15.new(self.public)
        self.assertFalse(signer.can_sign())
        with self.assertRaises(TypeError):
            signer.sign(b"abc")

    def test_when_message_exceeds_modulus_capacity_then_value_error_is_raised(self):
        with self.assertRaises(ValueError):
            raw_pkcs1_15.new(self.private).sign(b"x" * (256 - 10))

    def test_when_signature_length_is_wrong_then_value_error_is_raised(self):
        with self.assertRaises(ValueError):
            raw_pkcs1_15.new(self.public).recover(b"\x01" * 255)

    def test_when_signature_is_corrupted_then_padding_check_fails(self):
        signature = bytearray(raw_pkcs1_15.new(self.private).sign(b"abc"))
        signature[10] ^= 0x01
        with self.assertRaises(ValueError):
            raw_pkcs1_15.new(self.public).recover(bytes(signature))

    def test_when_other_key_signed_then_padding_check_fails(self):
        signature = raw_pkcs1_15.new(make_identity("Client").private).sign(b"abc")
        with self.assertRaises(ValueError):
            raw_pkcs1_15.new(self.public).recover(signature)


if __name__ == "__main__":
    unittest.main()
