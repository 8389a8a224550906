# -*- coding: utf-8 -*-

import re

from Cryptodome.PublicKey import RSA
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from scapy_ssl3_handshake.ssl3 import StartupError

REX_PEM = re.compile(r"(\-+BEGIN\s*([^\-]+)\-+(.*?)\-+END[^\-]+\-+)", re.DOTALL)


def pem_get_objects(data):
    d = {}
    for full, pemtype, pemdata in REX_PEM.findall(data):
        d[pemtype] = {"data": pemdata,
                      "full": full}
    return d


def rsa_public_from_certificate(certificate):
    """Return the embedded public key of a parsed X.509 certificate as a Cryptodome RSA key"""
    spki = certificate.public_key().public_bytes(serialization.Encoding.DER,
                                                 serialization.PublicFormat.SubjectPublicKeyInfo)
    return RSA.import_key(spki)


def load_certificate(data):
    """Parse DER bytes, PEM text/bytes or pass through an already parsed certificate"""
    if isinstance(data, x509.Certificate):
        return data
    if isinstance(data, str):
        data = data.encode("ascii")
    if data.lstrip().startswith(b"-----BEGIN"):
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


class AsymKeyStore(object):

    def __init__(self, name, public, private=None):
        self.name = name
        self.private = private
        self.public = public
        if self.public is not None:
            self.size = self.public.size_in_bits()
        else:
            self.size = 0
        self.certificate = None

    def __str__(self):
        template = """{name}:
            certificate: {certificate}
            size: {size}
            public: {public}
            private: {private}"""
        return template.format(name=self.name, certificate=repr(self.certificate), size=self.size, public=self.public,
                               private="<present>" if self.private is not None else None)


class RSAIdentity(AsymKeyStore):
    """
    Long-term identity of one endpoint: RSA keypair plus its own self-signed certificate.
    Loaded once at startup and only read afterwards.
    """

    def __init__(self, private, certificate):
        super(RSAIdentity, self).__init__("RSA Identity", private.publickey(), private)
        self.certificate = load_certificate(certificate)
        self.der_certificate = self.certificate.public_bytes(serialization.Encoding.DER)
        cert_key = rsa_public_from_certificate(self.certificate)
        if (cert_key.n, cert_key.e) != (self.public.n, self.public.e):
            raise StartupError("certificate public key does not match the private key")

    @property
    def common_name(self):
        attributes = self.certificate.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
        return attributes[0].value if attributes else None

    @classmethod
    def from_pem(cls, private, certificate, passphrase=None):
        try:
            pemo = pem_get_objects(private if isinstance(private, str) else private.decode("ascii"))
            for key_pk in (k for k in pemo.keys() if "PRIVATE" in k.upper()):
                return cls(RSA.import_key(pemo[key_pk].get("full"), passphrase), certificate)
        except (ValueError, TypeError, IndexError) as e:
            raise StartupError("unable to load RSA identity: %s" % e)
        raise StartupError("no PRIVATE key found in PEM data")

    @classmethod
    def from_pem_files(cls, key_file, cert_file, passphrase=None):
        try:
            with open(key_file, "r") as f:
                private = f.read()
            with open(cert_file, "rb") as f:
                certificate = f.read()
        except (IOError, OSError) as e:
            raise StartupError("unable to read key material: %s" % e)
        return cls.from_pem(private, certificate, passphrase)

    @classmethod
    def from_pkcs12_file(cls, keystore_file, password):
        try:
            with open(keystore_file, "rb") as f:
                data = f.read()
            key, certificate, _ = pkcs12.load_key_and_certificates(
                data, password.encode("utf-8") if password is not None else None)
        except (IOError, OSError, ValueError) as e:
            raise StartupError("unable to load keystore %s: %s" % (keystore_file, e))
        if key is None or certificate is None:
            raise StartupError("keystore %s lacks a private key or certificate" % keystore_file)
        private = key.private_bytes(serialization.Encoding.PEM,
                                    serialization.PrivateFormat.PKCS8,
                                    serialization.NoEncryption())
        try:
            return cls(RSA.import_key(private), certificate)
        except (ValueError, TypeError) as e:
            raise StartupError("unable to load RSA identity: %s" % e)


class SymKeyStore(object):

    def __init__(self, name, key=b""):
        self.name = name
        self.key = key
        self.size = len(self.key) * 8


class EmptySymKeyStore(SymKeyStore):

    def __init__(self):
        super(EmptySymKeyStore, self).__init__("Empty Symmetrical Keystore")


class SessionKeyStore(SymKeyStore):
    """Encryption and integrity keys of one connection"""

    def __init__(self, key, hmac):
        self.hmac = hmac
        self.hmac_size = len(self.hmac) * 8
        super(SessionKeyStore, self).__init__("Session Keystore", key)

    def wipe(self):
        self.key = b""
        self.hmac = b""
        self.size = self.hmac_size = 0

    def __eq__(self, other):
        return isinstance(other, SessionKeyStore) and (self.key, self.hmac) == (other.key, other.hmac)

    def __ne__(self, other):
        return not self == other

    __hash__ = None

    def __str__(self):
        template = """{name}:
            AES cipher:
                key: {key}
                size: {size}
            SHA256 hmac:
                key: {hmac_key}
                size: {hmac_size}"""
        return template.format(name=self.name, key=repr(self.key), size=self.size,
                               hmac_key=repr(self.hmac), hmac_size=self.hmac_size)
