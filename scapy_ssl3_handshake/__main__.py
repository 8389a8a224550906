#!/usr/bin/env python
# -*- coding: UTF-8 -*-
# Author : <github.com/tintinweb/scapy-ssl_tls>
"""
python -m scapy_ssl3_handshake gen-cert --cn Server --key-out server.key --cert-out server.pem
python -m scapy_ssl3_handshake server --bind 127.0.0.1:8080 --key server.key --cert server.pem --payload data.txt
python -m scapy_ssl3_handshake client --connect 127.0.0.1:8080 --key client.key --cert client.pem
"""
import argparse
import logging
import sys

import scapy_ssl3_handshake.ssl3 as ssl3
import scapy_ssl3_handshake.ssl3_automata as ssla
import scapy_ssl3_handshake.ssl3_ca as sslca
import scapy_ssl3_handshake.ssl3_config as sslcfg
import scapy_ssl3_handshake.ssl3_crypto as sslc

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_HANDSHAKE_FAILURE = 1
EXIT_STARTUP_ERROR = 2


def add_endpoint_arguments(parser, flag):
    parser.add_argument(flag, dest="endpoint", default="%s:%d" % (sslcfg.DEFAULT_HOST, sslcfg.DEFAULT_PORT),
                        help="HOST:PORT (default: %(default)s)")
    parser.add_argument("--key", help="PEM private key file")
    parser.add_argument("--cert", help="PEM certificate file")
    parser.add_argument("--keystore", help="PKCS#12 keystore, replaces --key/--cert")
    parser.add_argument("--password", help="keystore or private key password")
    parser.add_argument("--expected-peer", dest="expected_peer", help="CN the peer certificate must carry")
    parser.add_argument("--cipher-suite", dest="cipher_suite", default=sslcfg.DEFAULT_CIPHER_SUITE)
    parser.add_argument("--kex-transport", dest="kex_transport", default=sslc.SigningKeyTransport.name,
                        choices=sorted(sslc.KEY_TRANSPORTS))
    parser.add_argument("--finished-key-mode", dest="finished_key_mode", default="secret",
                        choices=sslc.FINISHED_KEY_MODES)
    parser.add_argument("--max-message-size", dest="max_message_size", type=int, default=ssl3.MAX_MESSAGE_SIZE)
    parser.add_argument("-v", "--verbose", action="count", default=0)


def build_parser():
    parser = argparse.ArgumentParser(prog="scapy_ssl3_handshake", description=__doc__,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    commands = parser.add_subparsers(dest="command")
    commands.required = True

    gen = commands.add_parser("gen-cert", help="generate an RSA key and a self-signed certificate")
    gen.add_argument("--cn", required=True, help="subject common name, e.g. Server or Client")
    gen.add_argument("--days", type=int, default=sslca.DEFAULT_VALIDITY_DAYS)
    gen.add_argument("--key-size", dest="key_size", type=int, default=sslca.DEFAULT_KEY_SIZE)
    gen.add_argument("--key-out", dest="key_out", required=True)
    gen.add_argument("--cert-out", dest="cert_out", required=True)
    gen.add_argument("--pkcs12-out", dest="pkcs12_out")
    gen.add_argument("--password")
    gen.add_argument("-v", "--verbose", action="count", default=0)

    server = commands.add_parser("server", help="accept handshakes and transfer a payload")
    add_endpoint_arguments(server, "--bind")
    server.add_argument("--payload", help="file sent to the client after the handshake")
    server.add_argument("--max-connections", dest="max_connections", type=int, default=1,
                        help="connections to handle before exiting, 0 for no limit")

    client = commands.add_parser("client", help="run one handshake and receive the payload")
    add_endpoint_arguments(client, "--connect")
    client.add_argument("--output", help="write the received payload here instead of stdout")
    return parser


def gen_cert(args):
    private_key, certificate = sslca.generate_identity(args.cn, days=args.days, key_size=args.key_size)
    sslca.write_identity(private_key, certificate, args.key_out, args.cert_out, args.password)
    if args.pkcs12_out:
        sslca.write_pkcs12(private_key, certificate, args.pkcs12_out, args.password, alias=args.cn)
    return EXIT_OK


def run_server(args):
    if args.max_connections == 0:
        args.max_connections = None
    config = sslcfg.HandshakeConfig.from_args(args)
    logger.debug(config)
    results = ssla.serve(config)
    return EXIT_OK if results else EXIT_HANDSHAKE_FAILURE


def run_client(args):
    config = sslcfg.HandshakeConfig.from_args(args)
    logger.debug(config)
    result = ssla.connect(config)
    logger.info("handshake with %s completed", result.peer)
    if not config.output_file:
        sys.stdout.write(result.application_data.decode("utf-8", "replace"))
        sys.stdout.write("\n")
    return EXIT_OK


COMMANDS = {"gen-cert": gen_cert,
            "server": run_server,
            "client": run_client}


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")
    try:
        return COMMANDS[args.command](args)
    except (ssl3.StartupError, ValueError) as e:
        logger.error("startup failed: %s", e)
        return EXIT_STARTUP_ERROR
    except ssl3.SSLHandshakeError as e:
        logger.error("handshake failed: %s", e)
        return EXIT_HANDSHAKE_FAILURE


if __name__ == "__main__":
    sys.exit(main())
