# -*- coding: utf-8 -*-

import scapy_ssl3_handshake.ssl3 as ssl3
import scapy_ssl3_handshake.ssl3_crypto as sslc
import scapy_ssl3_handshake.ssl3_keystore as sslk

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_CIPHER_SUITE = "TLS_RSA_WITH_AES_256"
SERVER_IDENTITY_LABEL = "Server"
CLIENT_IDENTITY_LABEL = "Client"


def parse_endpoint(value, default_host=DEFAULT_HOST):
    """'host:port', ':port' or 'port' -> (host, port)"""
    host, _, port = value.rpartition(":")
    try:
        return host or default_host, int(port)
    except ValueError:
        raise ValueError("invalid endpoint %r, expected HOST:PORT" % value)


class HandshakeConfig(object):

    def __init__(self,
                 endpoint=(DEFAULT_HOST, DEFAULT_PORT),
                 key_file=None,
                 cert_file=None,
                 keystore_file=None,
                 keystore_password=None,
                 expected_peer_label=CLIENT_IDENTITY_LABEL,
                 cipher_suite=DEFAULT_CIPHER_SUITE,
                 kex_transport=sslc.SigningKeyTransport.name,
                 finished_key_mode="secret",
                 payload_file=None,
                 output_file=None,
                 version=ssl3.SSLVersion.TLS_1_3,
                 max_message_size=ssl3.MAX_MESSAGE_SIZE,
                 max_connections=1,
                 debug_level=0):
        if kex_transport not in sslc.KEY_TRANSPORTS:
            raise ValueError("unknown key transport %r, pick one of %s" % (kex_transport, sorted(sslc.KEY_TRANSPORTS)))
        if finished_key_mode not in sslc.FINISHED_KEY_MODES:
            raise ValueError("unknown finished key mode %r, pick one of %s" % (finished_key_mode,
                                                                             list(sslc.FINISHED_KEY_MODES)))
        self.endpoint = endpoint
        self.key_file = key_file
        self.cert_file = cert_file
        self.keystore_file = keystore_file
        self.keystore_password = keystore_password
        self.expected_peer_label = expected_peer_label
        self.cipher_suite = cipher_suite
        self.kex_transport = kex_transport
        self.finished_key_mode = finished_key_mode
        self.payload_file = payload_file
        self.output_file = output_file
        self.version = version
        self.max_message_size = max_message_size
        self.max_connections = max_connections
        self.debug_level = debug_level

    @classmethod
    def for_server(cls, **kwargs):
        kwargs.setdefault("expected_peer_label", CLIENT_IDENTITY_LABEL)
        return cls(**kwargs)

    @classmethod
    def for_client(cls, **kwargs):
        kwargs.setdefault("expected_peer_label", SERVER_IDENTITY_LABEL)
        return cls(**kwargs)

    @classmethod
    def from_args(cls, args):
        """Build from the argparse namespace of the command line"""
        factory = cls.for_server if args.command == "server" else cls.for_client
        kwargs = dict(endpoint=parse_endpoint(args.endpoint),
                      key_file=args.key,
                      cert_file=args.cert,
                      keystore_file=args.keystore,
                      keystore_password=args.password,
                      cipher_suite=args.cipher_suite,
                      kex_transport=args.kex_transport,
                      finished_key_mode=args.finished_key_mode,
                      max_message_size=args.max_message_size,
                      debug_level=args.verbose)
        if args.expected_peer:
            kwargs["expected_peer_label"] = args.expected_peer
        if args.command == "server":
            kwargs.update(payload_file=args.payload, max_connections=args.max_connections)
        else:
            kwargs.update(output_file=args.output)
        return factory(**kwargs)

    def load_identity(self):
        """Load the local long-term identity. Raises StartupError."""
        if self.keystore_file:
            return sslk.RSAIdentity.from_pkcs12_file(self.keystore_file, self.keystore_password)
        if self.key_file and self.cert_file:
            return sslk.RSAIdentity.from_pem_files(self.key_file, self.cert_file, self.keystore_password)
        raise ssl3.StartupError("no key material configured: need a keystore or a key and certificate file")

    def load_payload(self):
        if self.payload_file is None:
            return self.check_payload(b"")
        try:
            with open(self.payload_file, "rb") as f:
                payload = f.read()
        except (IOError, OSError) as e:
            raise ssl3.StartupError("unable to read payload file: %s" % e)
        return self.check_payload(payload)

    def check_payload(self, payload):
        """The sealed payload travels as one message, it has to fit max_message_size"""
        sealed = sslc.AppDataChannel.sealed_size(len(payload))
        if sealed > self.max_message_size:
            raise ssl3.StartupError("payload of %d bytes seals to %d bytes, over the message size limit of %d"
                                    % (len(payload), sealed, self.max_message_size))
        return payload

    def __str__(self):
        template = """Handshake Config:
            endpoint: {endpoint}
            expected peer: {peer}
            cipher suite: {cipher}
            key transport: {kex}
            finished key mode: {mode}
            max message size: {max_size}"""
        return template.format(endpoint="%s:%d" % self.endpoint, peer=self.expected_peer_label,
                               cipher=self.cipher_suite, kex=self.kex_transport, mode=self.finished_key_mode,
                               max_size=self.max_message_size)
