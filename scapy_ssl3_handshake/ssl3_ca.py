# -*- coding: utf-8 -*-
"""
Offline certificate authority: generates the RSA keypairs and self-signed
certificates both endpoints load at startup. Nothing in the handshake itself
signs certificates.
"""

import datetime
import logging

from Cryptodome.PublicKey import RSA
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from scapy_ssl3_handshake.ssl3 import StartupError
import scapy_ssl3_handshake.ssl3_keystore as sslk

log = logging.getLogger(__name__)

DEFAULT_KEY_SIZE = 2048
DEFAULT_VALIDITY_DAYS = 1
DEFAULT_COUNTRY = "ut"


def generate_private_key(key_size=DEFAULT_KEY_SIZE):
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def distinguished_name(common_name, country=DEFAULT_COUNTRY):
    """CN=<name>, OU=<name>, O=<name>, L=<name>, ST=<name>, C=<country>; no CN if common_name is None"""
    label = common_name or "Unnamed"
    attributes = [x509.NameAttribute(x509.NameOID.COMMON_NAME, common_name)] if common_name else []
    attributes += [x509.NameAttribute(x509.NameOID.ORGANIZATIONAL_UNIT_NAME, label),
                   x509.NameAttribute(x509.NameOID.ORGANIZATION_NAME, label),
                   x509.NameAttribute(x509.NameOID.LOCALITY_NAME, label),
                   x509.NameAttribute(x509.NameOID.STATE_OR_PROVINCE_NAME, label),
                   x509.NameAttribute(x509.NameOID.COUNTRY_NAME, country)]
    return x509.Name(attributes)


def issue_self_signed(private_key, common_name, days=DEFAULT_VALIDITY_DAYS, not_before=None, not_after=None,
                      signing_key=None, hash_algorithm=None):
    """
    Build a certificate whose subject and issuer are both common_name and whose
    embedded key is the public half of private_key.

    signing_key defaults to private_key. Passing any other key yields a certificate
    that does not verify under its own public key.
    """
    not_before = not_before or datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=5)
    not_after = not_after or not_before + datetime.timedelta(days=days)
    name = distinguished_name(common_name)
    builder = x509.CertificateBuilder().subject_name(
        name
    ).issuer_name(
        name
    ).public_key(
        private_key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        not_before
    ).not_valid_after(
        not_after
    )
    certificate = builder.sign(signing_key or private_key, hash_algorithm or hashes.SHA256())
    log.debug("issued certificate CN=%s serial=%d valid %s to %s", common_name, certificate.serial_number,
              not_before, not_after)
    return certificate


def private_key_pem(private_key, password=None):
    if password:
        encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    return private_key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption)


def certificate_pem(certificate):
    return certificate.public_bytes(serialization.Encoding.PEM)


def to_identity(private_key, certificate):
    """Turn generated material into the RSAIdentity an automaton runs with"""
    return sslk.RSAIdentity(RSA.import_key(private_key_pem(private_key)), certificate)


def write_identity(private_key, certificate, key_out, cert_out, password=None):
    try:
        with open(key_out, "wb") as f:
            f.write(private_key_pem(private_key, password))
        with open(cert_out, "wb") as f:
            f.write(certificate_pem(certificate))
    except (IOError, OSError) as e:
        raise StartupError("unable to write key material: %s" % e)
    log.info("wrote key %s and certificate %s", key_out, cert_out)


def write_pkcs12(private_key, certificate, path, password=None, alias=None):
    if password:
        encryption = serialization.BestAvailableEncryption(password.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    data = pkcs12.serialize_key_and_certificates((alias or "key").encode("utf-8"), private_key, certificate,
                                                 None, encryption)
    try:
        with open(path, "wb") as f:
            f.write(data)
    except (IOError, OSError) as e:
        raise StartupError("unable to write keystore: %s" % e)
    log.info("wrote keystore %s", path)


def generate_identity(common_name, days=DEFAULT_VALIDITY_DAYS, key_size=DEFAULT_KEY_SIZE, **kwargs):
    """Return (private_key, certificate) for a fresh self-signed identity"""
    private_key = generate_private_key(key_size)
    return private_key, issue_self_signed(private_key, common_name, days=days, **kwargs)
