#! /usr/bin/env python
# -*- coding: UTF-8 -*-
# Author : <github.com/tintinweb/scapy-ssl_tls>

import logging
import os
import struct
from hmac import compare_digest

from Cryptodome.Cipher import AES, PKCS1_v1_5
from Cryptodome.Hash import HMAC, SHA, SHA256
from Cryptodome.Protocol.KDF import PBKDF2
from Cryptodome.Util.Padding import pad, unpad

import scapy_ssl3_handshake.pkcs1_15_raw as raw_pkcs1_15
import scapy_ssl3_handshake.ssl3 as ssl3
import scapy_ssl3_handshake.ssl3_keystore as sslk

log = logging.getLogger(__name__)

CHALLENGE_SIZE = 8
PREMASTER_RANDOM_SIZE = 46
# version(2) + random
PREMASTER_SIZE = 2 + PREMASTER_RANDOM_SIZE

KDF_SALT = b"salt"
KDF_ITERATIONS = 65536
KDF_KEY_SIZE = 32

SERVER_LABEL = "SERVER"
CLIENT_LABEL = "CLIENT"


class IntegrityError(ssl3.CryptoOperationError):
    pass


class ChallengeMismatchError(ssl3.CryptoOperationError):
    pass


class SigningKeyTransport(object):
    """
    Protects a value with the sender's private key (PKCS#1 v1.5 block type 1) and
    recovers it with the sender's public key. This is the direction of the reference
    handshake: it proves who sent the value, but anybody holding the sender's
    certificate can read it.
    """
    name = "sign"

    def protect(self, data, identity, peer_public):
        return raw_pkcs1_15.new(identity.private).sign(data)

    def recover(self, data, identity, peer_public, expected_len=0):
        return raw_pkcs1_15.new(peer_public).recover(data)


class EncryptingKeyTransport(object):
    """
    Standard RSA key transport: encrypt to the peer's public key, decrypt with the
    local private key.
    """
    name = "encrypt"

    def protect(self, data, identity, peer_public):
        return PKCS1_v1_5.new(peer_public).encrypt(data)

    def recover(self, data, identity, peer_public, expected_len=0):
        sentinel = object()
        cleartext = PKCS1_v1_5.new(identity.private).decrypt(data, sentinel, expected_pt_len=expected_len)
        # bad padding may also come back as an empty string
        if cleartext is sentinel or not cleartext:
            raise ValueError("PKCS#1 v1.5 decryption failed")
        return cleartext


KEY_TRANSPORTS = {SigningKeyTransport.name: SigningKeyTransport,
                  EncryptingKeyTransport.name: EncryptingKeyTransport}


class KeyExchange(object):

    def __init__(self, identity, peer_public, transport=SigningKeyTransport.name):
        try:
            self.transport = KEY_TRANSPORTS[transport]()
        except KeyError:
            raise ValueError("Unknown key transport: %r" % transport)
        self.identity = identity
        self.peer_public = peer_public

    def _protect(self, data):
        try:
            return self.transport.protect(data, self.identity, self.peer_public)
        except (ValueError, TypeError) as e:
            raise ssl3.CryptoOperationError("%s transform failed: %s" % (self.transport.name, e))

    def _recover(self, data, expected_len=0):
        try:
            return self.transport.recover(data, self.identity, self.peer_public, expected_len)
        except (ValueError, TypeError) as e:
            raise ssl3.CryptoOperationError("%s transform could not be reversed: %s" % (self.transport.name, e))

    def generate_challenge(self):
        nonce = os.urandom(CHALLENGE_SIZE)
        return nonce, self._protect(nonce)

    def open_challenge(self, data):
        nonce = self._recover(data, CHALLENGE_SIZE)
        if len(nonce) != CHALLENGE_SIZE:
            raise ssl3.CryptoOperationError("challenge must be %d bytes, got %d" % (CHALLENGE_SIZE, len(nonce)))
        return nonce

    def respond_challenge(self, nonce):
        return self._protect(nonce)

    def check_challenge_response(self, nonce, data):
        if not compare_digest(self.open_challenge(data), nonce):
            raise ChallengeMismatchError("challenge response does not match the issued challenge")

    def exchange_premaster(self, secret):
        return self._protect(secret)

    def open_premaster(self, data):
        return self._recover(data, PREMASTER_SIZE)


def generate_premaster(version=ssl3.SSLVersion.TLS_1_3):
    return struct.pack("!H", version) + os.urandom(PREMASTER_RANDOM_SIZE)


def derive_encryption_key(premaster):
    return PBKDF2(premaster, KDF_SALT, dkLen=KDF_KEY_SIZE, count=KDF_ITERATIONS, hmac_hash_module=SHA256)


def derive_integrity_key(premaster):
    return SHA256.new(premaster).digest()


def derive_session_keys(premaster):
    if not premaster:
        raise ssl3.CryptoOperationError("cannot derive session keys from an empty premaster secret")
    return sslk.SessionKeyStore(derive_encryption_key(premaster), derive_integrity_key(premaster))


class Transcript(object):
    """
    Append-only record of the handshake messages as (header, payload) wire bytes,
    kept in the order they were sent or received.
    """

    def __init__(self):
        self.entries = []

    def insert(self, pkt):
        self.entries.append(pkt.wire_parts())

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    @staticmethod
    def serialize(entry):
        header, payload = entry
        return header + payload

    def discard(self):
        del self.entries[:]

    def __str__(self):
        lines = ["Transcript (%d entries):" % len(self.entries)]
        for header, payload in self.entries:
            lines.append("    %s | %d payload bytes" % (header.hex(), len(payload)))
        return "\n".join(lines)


FINISHED_KEY_MODES = ("secret", "zero")


def finished_mac_key(premaster, role_label, key_mode="secret"):
    label = role_label.encode("ascii")
    if key_mode == "secret":
        return premaster + label
    elif key_mode == "zero":
        return b"\x00" * (len(premaster) + len(label))
    raise ValueError("Unknown finished key mode: %r" % key_mode)


def compute_transcript_tags(transcript, role_label, premaster, key_mode="secret"):
    key = finished_mac_key(premaster, role_label, key_mode)
    return [HMAC.new(key, Transcript.serialize(entry), digestmod=SHA).digest() for entry in transcript]


def verify_transcript_tags(received, expected):
    if len(received) != len(expected):
        return False
    result = True
    for got, wanted in zip(sorted(received), sorted(expected)):
        result &= compare_digest(got, wanted)
    return result


class AppDataChannel(object):
    """
    AES-256-CBC with a random IV in front of the ciphertext, then HMAC-SHA256 with
    the integrity key over iv + ciphertext. Ciphertext and tag travel as two
    consecutive APPLICATION_DATA messages.
    """

    def __init__(self, keys, version=ssl3.SSLVersion.TLS_1_3):
        self.keys = keys
        self.version = version

    @staticmethod
    def sealed_size(plaintext_len):
        """Size of the ciphertext message for plaintext_len bytes: IV plus PKCS#7 padded body"""
        return AES.block_size + (plaintext_len // AES.block_size + 1) * AES.block_size

    def _mac(self, data):
        return HMAC.new(self.keys.hmac, data, digestmod=SHA256).digest()

    def seal(self, plaintext):
        iv = os.urandom(AES.block_size)
        ciphertext = iv + AES.new(self.keys.key, AES.MODE_CBC, iv).encrypt(pad(plaintext, AES.block_size))
        return ciphertext, self._mac(ciphertext)

    def open(self, ciphertext, tag):
        if not compare_digest(self._mac(ciphertext), tag):
            raise IntegrityError("application data integrity tag mismatch")
        if len(ciphertext) < 2 * AES.block_size or len(ciphertext) % AES.block_size:
            raise ssl3.CryptoOperationError("malformed application data ciphertext (%d bytes)" % len(ciphertext))
        iv, body = ciphertext[:AES.block_size], ciphertext[AES.block_size:]
        try:
            return unpad(AES.new(self.keys.key, AES.MODE_CBC, iv).decrypt(body), AES.block_size)
        except ValueError as e:
            raise ssl3.CryptoOperationError("application data decryption failed: %s" % e)

    def send(self, sock, plaintext):
        ciphertext, tag = self.seal(plaintext)
        sock.send_message(ssl3.ssl_record(ssl3.SSLMessageType.APPLICATION_DATA,
                                          ssl3.SSLApplicationData(data=ciphertext), self.version))
        sock.send_message(ssl3.ssl_record(ssl3.SSLMessageType.APPLICATION_DATA,
                                          ssl3.SSLApplicationData(data=tag), self.version))
        return ciphertext, tag

    def recv(self, sock):
        ciphertext = ssl3.ssl_expect(sock.recv_message(), ssl3.SSLMessageType.APPLICATION_DATA,
                                     ssl3.SSLApplicationData).data
        tag = ssl3.ssl_expect(sock.recv_message(), ssl3.SSLMessageType.APPLICATION_DATA,
                              ssl3.SSLApplicationData).data
        return self.open(ciphertext, tag)
