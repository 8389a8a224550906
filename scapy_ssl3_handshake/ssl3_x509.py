# -*- coding: utf-8 -*-
"""
Validation of self-signed peer certificates.

A certificate is trusted in a fixed order: its signature must verify under its own
embedded public key before any of its fields are looked at, then the subject common
name must equal the expected peer label, then the current time must fall inside the
validity window. The first failing check raises and nothing is returned.
"""

import datetime
import logging
from collections import namedtuple

from Cryptodome.Hash import SHA, SHA224, SHA256, SHA384, SHA512
from Cryptodome.Signature import PKCS1_v1_5 as Sig_PKCS1_v1_5
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa

from scapy_ssl3_handshake.ssl3 import CertificateError
import scapy_ssl3_handshake.ssl3_keystore as sslk

log = logging.getLogger(__name__)

SIGNATURE_DIGESTS = {"sha1": SHA,
                     "sha224": SHA224,
                     "sha256": SHA256,
                     "sha384": SHA384,
                     "sha512": SHA512}


class CertificateParseError(CertificateError):
    pass


class SignatureError(CertificateError):
    pass


class MissingFieldError(CertificateError):
    pass


class IdentityMismatch(CertificateError):
    pass


class NotYetValid(CertificateError):
    pass


class Expired(CertificateError):
    pass


ValidatedIdentity = namedtuple("ValidatedIdentity", ["common_name", "public_key", "certificate"])


def describe_certificate(certificate):
    template = """Certificate:
            subject: {subject}
            issuer: {issuer}
            serial number: {serial}
            validity: {not_before} to {not_after}
            signature algorithm: {sig_algo}
            public key algorithm: {key_algo}
            version: {version}"""
    hash_algo = certificate.signature_hash_algorithm
    return template.format(subject=certificate.subject.rfc4514_string(),
                           issuer=certificate.issuer.rfc4514_string(),
                           serial=certificate.serial_number,
                           not_before=certificate.not_valid_before_utc,
                           not_after=certificate.not_valid_after_utc,
                           sig_algo=hash_algo.name if hash_algo is not None else "unknown",
                           key_algo=type(certificate.public_key()).__name__,
                           version=certificate.version.name)


def verify_self_signature(certificate):
    if not isinstance(certificate.public_key(), rsa.RSAPublicKey):
        raise SignatureError("unsupported public key type: %s" % type(certificate.public_key()).__name__)
    hash_algo = certificate.signature_hash_algorithm
    digest = SIGNATURE_DIGESTS.get(hash_algo.name if hash_algo is not None else None)
    if digest is None:
        raise SignatureError("unsupported signature hash algorithm")
    public = sslk.rsa_public_from_certificate(certificate)
    if not Sig_PKCS1_v1_5.new(public).verify(digest.new(certificate.tbs_certificate_bytes), certificate.signature):
        raise SignatureError("certificate signature does not verify under its embedded public key")
    return public


def subject_common_name(certificate):
    attributes = certificate.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    if not attributes:
        raise MissingFieldError("CN field not found in the subject distinguished name")
    return attributes[0].value


def check_validity_window(certificate, now=None):
    now = now or datetime.datetime.now(datetime.timezone.utc)
    if now < certificate.not_valid_before_utc:
        raise NotYetValid("certificate not valid before %s (now %s)" % (certificate.not_valid_before_utc, now))
    if now >= certificate.not_valid_after_utc:
        raise Expired("certificate expired at %s (now %s)" % (certificate.not_valid_after_utc, now))


def validate(certificate, expected_issuer_label, now=None):
    try:
        certificate = sslk.load_certificate(certificate)
    except (ValueError, TypeError) as e:
        raise CertificateParseError("unable to parse certificate: %s" % e)

    public = verify_self_signature(certificate)
    log.debug("certificate signature verified")

    common_name = subject_common_name(certificate)
    if common_name != expected_issuer_label:
        raise IdentityMismatch("certificate CN %r does not match expected %r" % (common_name, expected_issuer_label))

    check_validity_window(certificate, now)
    log.debug("certificate for %r validated", common_name)
    return ValidatedIdentity(common_name, public, certificate)
