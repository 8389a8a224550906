#!/usr/bin/env python
# -*- coding: UTF-8 -*-
# Author : <github.com/tintinweb/scapy-ssl_tls>

import functools
import logging
import socket
from collections import namedtuple

from scapy.automaton import Automaton, ATMT

import scapy_ssl3_handshake.ssl3 as ssl3
import scapy_ssl3_handshake.ssl3_config as sslcfg
import scapy_ssl3_handshake.ssl3_crypto as sslc
import scapy_ssl3_handshake.ssl3_keystore as sslk
import scapy_ssl3_handshake.ssl3_x509 as sslx

from scapy_ssl3_handshake.ssl3 import (SSLMessageType, SSLAlertDescription, SSLAlertLevel, SSLHello,
                                       SSLCertificate, SSLCertificateRequest, SSLKeyExchange, SSLFinished,
                                       SSLAlert)

log = logging.getLogger(__name__)

HandshakeResult = namedtuple("HandshakeResult", ["state", "history", "peer", "application_data"])

SERVER_HELLO_REPLY = b"Cipher Suite Accepted"
CERTIFICATE_REQUEST = b"Please respond with certificate."


def hookable(f):
    @functools.wraps(f)
    def wrapped_f(*args, **kwargs):
        if args and isinstance(args[0], Automaton):
            obj = args[0]
            cb_f = obj.callbacks.get(f.__name__.rsplit("_wrapper", 1)[0], None)
            if cb_f:
                obj.debug(1, "*** CALLBACK *** calling '%s' -> %s" % (f.__name__, cb_f))
                return cb_f(*args, **kwargs)
        return f(*args, **kwargs)

    if f.atmt_type == ATMT.CONDITION:
        # Automaton.graph() reads the transitions from the condition's own code object,
        # so the condition stays undecorated and run() swaps in f.wrapper_f.
        f.wrapper_f = wrapped_f
        return f
    else:
        return wrapped_f


def alert_for_error(error):
    if isinstance(error, ssl3.CertificateError):
        return SSLAlertDescription.BAD_CERTIFICATE
    if isinstance(error, ssl3.TranscriptMismatchError):
        return SSLAlertDescription.DECRYPTION_FAILED
    if isinstance(error, ssl3.CryptoOperationError):
        return SSLAlertDescription.DECRYPT_ERROR
    if isinstance(error, ssl3.UnexpectedMessage):
        return SSLAlertDescription.UNEXPECTED_MESSAGE
    return SSLAlertDescription.HANDSHAKE_FAILURE


class NullSocket(object):
    """Stands in for the automaton's own link layer sockets, all I/O goes through SSLSocket"""

    def __init__(self, **kwargs):
        pass

    def close(self):
        pass


class HandshakeSession(object):
    """
    Everything one connection learns or derives during its handshake. Owned by a single
    automaton and wiped when the connection ends.
    """

    def __init__(self, role_label, peer_role_label):
        self.role_label = role_label
        self.peer_role_label = peer_role_label
        self.transcript = sslc.Transcript()
        self.peer_certificate = None
        self.peer = None
        self.kex = None
        self.challenge = None
        self.premaster = None
        self.keys = sslk.EmptySymKeyStore()
        self.own_tags = []
        self.expected_peer_tags = []
        self.verified = False
        self.application_data = None

    def bind_transcript(self, premaster, key_mode):
        """Compute both Finished tag lists while transcript and premaster are still around"""
        self.own_tags = sslc.compute_transcript_tags(self.transcript, self.role_label, premaster, key_mode)
        self.expected_peer_tags = sslc.compute_transcript_tags(self.transcript, self.peer_role_label,
                                                               premaster, key_mode)

    def discard(self):
        self.transcript.discard()
        self.challenge = None
        self.premaster = None
        if isinstance(self.keys, sslk.SessionKeyStore):
            self.keys.wipe()
        self.keys = sslk.EmptySymKeyStore()
        self.own_tags = []
        self.expected_peer_tags = []
        self.kex = None

    def __str__(self):
        template = """
    Handshake Session ({role}):
        peer: {peer}
        transcript entries: {entries}
        verified: {verified}
        {keys}"""
        return template.format(role=self.role_label, peer=self.peer.common_name if self.peer else None,
                               entries=len(self.transcript), verified=self.verified, keys=self.keys.name)


class SSLHandshakeAutomaton(Automaton):
    """
    Common ground of both handshake automata.

    Conditions receive and check, the actions attached to them send. Whatever a
    condition or action raises takes the automaton to FAIL, which sends the alert,
    wipes the session and closes the stream. run() then re-raises the original error.
    """
    ROLE_LABEL = None
    PEER_ROLE_LABEL = None

    def __init__(self, *args, **kwargs):
        self.callbacks = {}  # fname:func
        # trickery: disable unneeded automata internal sockets by faking a null-obj
        kwargs['ll'] = NullSocket
        kwargs['recvsock'] = kwargs['ll']
        Automaton.__init__(self, *args, **kwargs)

    def parse_args(self, sock, identity, config=None, debug=None, **kwargs):
        self.config = config or self.default_config()
        Automaton.parse_args(self, debug=self.config.debug_level if debug is None else debug, **kwargs)
        self.identity = identity
        self.session = HandshakeSession(self.ROLE_LABEL, self.PEER_ROLE_LABEL)
        self.sslsock = ssl3.SSLSocket(sock, transcript=self.session.transcript,
                                      max_message_size=self.config.max_message_size)
        self.history = []
        self.error = None
        self.debug(2, str(self.identity))

    def default_config(self):
        raise NotImplementedError()

    def register_callback(self, fname, f):
        self.debug(1, "register callback: %s - %s" % (fname, repr(f)))
        self.callbacks[fname] = f

    def run(self, *args, **kwargs):
        # per instance copy of {state:condition_funcs} using hookable(f) instead of f
        self.conditions = dict((name, [getattr(cf, 'wrapper_f', cf) for cf in conditions])
                               for name, conditions in self.conditions.items())
        try:
            return Automaton.run(self, *args, **kwargs)
        except Automaton.ErrorState:
            raise self.error

    def _run_condition(self, cond, *args, **kwargs):
        try:
            Automaton._run_condition(self, cond, *args, **kwargs)
        except ATMT.NewStateRequested:
            raise
        except ssl3.SSLHandshakeError as e:
            raise self.FAIL(e)
        except Exception as e:
            raise self.FAIL(ssl3.ProtocolError("%s failed: %r" % (cond.atmt_condname, e)))

    def enter(self):
        self.history.append(self.state.state)
        self.debug(1, "%s -> %s" % (self.ROLE_LABEL.lower(), self.state.state))

    def shutdown(self):
        self.session.discard()
        self.sslsock.close()

    def send_alert(self, description, level=SSLAlertLevel.FATAL):
        try:
            self.sslsock.send_message(ssl3.ssl_alert(description, level, self.config.version))
        except ssl3.TransportError as te:
            log.warning("could not deliver alert %s: %s",
                        ssl3.SSL_ALERT_DESCRIPTIONS.get(description, description), te)

    def send_message(self, msg_type, payload):
        pkt = ssl3.ssl_record(msg_type, payload, self.config.version)
        if self.debug_level >= 2:
            self.debug(2, "send %s" % pkt.summary())
        self.sslsock.send_message(pkt)
        return pkt

    def recv_message(self, msg_type, layer):
        pkt = self.sslsock.recv_message()
        if self.debug_level >= 2:
            self.debug(2, "recv %s" % pkt.summary())
        return ssl3.ssl_expect(pkt, msg_type, layer)

    def validate_peer_certificate(self):
        certificate = sslx.validate(self.session.peer_certificate, self.config.expected_peer_label)
        if self.debug_level >= 2:
            self.debug(2, sslx.describe_certificate(certificate.certificate))
        self.session.peer = certificate
        self.session.kex = sslc.KeyExchange(self.identity, certificate.public_key, self.config.kex_transport)

    def derive_keys(self, premaster):
        session = self.session
        session.keys = sslc.derive_session_keys(premaster)
        session.bind_transcript(premaster, self.config.finished_key_mode)
        if self.debug_level >= 2:
            self.debug(2, str(session.transcript))
        session.premaster = None
        session.transcript.discard()

    def send_finished_message(self):
        self.sslsock.send_message(ssl3.ssl_finished(self.session.own_tags, self.config.version))

    def verify_peer_finished(self):
        finished = self.recv_message(SSLMessageType.FINISHED, SSLFinished)
        if not sslc.verify_transcript_tags(finished.tags, self.session.expected_peer_tags):
            raise ssl3.TranscriptMismatchError("%s Finished tags do not match the local transcript"
                                               % self.PEER_ROLE_LABEL.lower())
        self.session.verified = True

    def channel(self, session):
        if not session.verified:
            raise ssl3.TranscriptMismatchError("application data refused before Finished verification")
        return sslc.AppDataChannel(session.keys, self.config.version)

    # GENERIC ERROR - alert the peer unless it already gave up
    @hookable
    @ATMT.state(error=1)
    def FAIL(self, error=None):
        self.enter()
        self.error = error or ssl3.ProtocolError("handshake aborted")
        log.error("%s handshake failed in state %s: %s", self.ROLE_LABEL.lower(), self.history[-2], self.error)
        if self.debug_level >= 2:
            self.debug(2, str(self.session))
        if not isinstance(self.error, (ssl3.AlertReceived, ssl3.TransportError)):
            self.send_alert(alert_for_error(self.error))
        self.shutdown()

    # GENERIC END - return what the handshake produced
    @hookable
    @ATMT.state(final=1)
    def CLOSED(self):
        self.enter()
        self.shutdown()
        return HandshakeResult(self.state.state, list(self.history),
                               self.session.peer.common_name if self.session.peer else None,
                               self.session.application_data)


class SSLServerAutomaton(SSLHandshakeAutomaton):

    """"A Simple SSL handshake server

        SSLServerAutomaton.graph()
        identity = RSAIdentity.from_pem_files("server.key", "server.pem")
        client_sock, _ = listen_sock.accept()
        auto_srv = SSLServerAutomaton(client_sock, identity,
                                      HandshakeConfig.for_server(kex_transport="sign"),
                                      payload=b"hello client")
        auto_srv.run()
    """
    ROLE_LABEL = sslc.SERVER_LABEL
    PEER_ROLE_LABEL = sslc.CLIENT_LABEL

    def parse_args(self, sock, identity, config=None, payload=b"", **kwargs):
        SSLHandshakeAutomaton.parse_args(self, sock, identity, config, **kwargs)
        self.payload = payload

    def default_config(self):
        return sslcfg.HandshakeConfig.for_server()

    @hookable
    @ATMT.state(initial=1)
    def INIT(self):
        self.enter()

    @hookable
    @ATMT.condition(INIT)
    def wait_hello(self):
        raise self.WAIT_HELLO()

    @hookable
    @ATMT.state()
    def WAIT_HELLO(self):
        self.enter()

    # 1) client hello in, server hello out
    @hookable
    @ATMT.condition(WAIT_HELLO)
    def recv_client_hello(self):
        hello = self.recv_message(SSLMessageType.CLIENT_HELLO, SSLHello)
        self.debug(1, "client proposed cipher suite: %r" % hello.data)
        raise self.SENT_HELLO()

    @hookable
    @ATMT.action(recv_client_hello)
    def do_send_server_hello(self):
        self.send_message(SSLMessageType.SERVER_HELLO, SSLHello(data=SERVER_HELLO_REPLY))

    @hookable
    @ATMT.state()
    def SENT_HELLO(self):
        self.enter()

    # 2) own certificate, then ask for the client's
    @hookable
    @ATMT.condition(SENT_HELLO)
    def send_certificate(self):
        raise self.SENT_CERT()

    @hookable
    @ATMT.action(send_certificate)
    def do_send_certificate(self):
        self.send_message(SSLMessageType.CERTIFICATE, SSLCertificate(data=self.identity.der_certificate))

    @hookable
    @ATMT.state()
    def SENT_CERT(self):
        self.enter()

    @hookable
    @ATMT.condition(SENT_CERT)
    def send_certificate_request(self):
        raise self.SENT_CERT_REQUEST()

    @hookable
    @ATMT.action(send_certificate_request)
    def do_send_certificate_request(self):
        self.send_message(SSLMessageType.CERTIFICATE_REQUEST, SSLCertificateRequest(data=CERTIFICATE_REQUEST))

    @hookable
    @ATMT.state()
    def SENT_CERT_REQUEST(self):
        self.enter()

    @hookable
    @ATMT.condition(SENT_CERT_REQUEST)
    def wait_peer_certificate(self):
        raise self.WAIT_PEER_CERT()

    @hookable
    @ATMT.state()
    def WAIT_PEER_CERT(self):
        self.enter()

    # 3) client certificate in and validated
    @hookable
    @ATMT.condition(WAIT_PEER_CERT)
    def recv_peer_certificate(self):
        self.session.peer_certificate = self.recv_message(SSLMessageType.CERTIFICATE, SSLCertificate).data
        raise self.VALIDATING_CERT()

    @hookable
    @ATMT.state()
    def VALIDATING_CERT(self):
        self.enter()

    # 4) challenge the holder of the client certificate
    @hookable
    @ATMT.condition(VALIDATING_CERT)
    def send_challenge(self):
        self.validate_peer_certificate()
        raise self.SENT_CHALLENGE()

    @hookable
    @ATMT.action(send_challenge)
    def do_send_challenge(self):
        self.session.challenge, protected = self.session.kex.generate_challenge()
        self.send_message(SSLMessageType.SERVER_KEY_EXCHANGE, SSLKeyExchange(data=protected))

    @hookable
    @ATMT.state()
    def SENT_CHALLENGE(self):
        self.enter()

    @hookable
    @ATMT.condition(SENT_CHALLENGE)
    def wait_challenge_response(self):
        raise self.WAIT_CHALLENGE_RESPONSE()

    @hookable
    @ATMT.state()
    def WAIT_CHALLENGE_RESPONSE(self):
        self.enter()

    @hookable
    @ATMT.condition(WAIT_CHALLENGE_RESPONSE)
    def recv_challenge_response(self):
        response = self.recv_message(SSLMessageType.CLIENT_KEY_EXCHANGE, SSLKeyExchange)
        self.session.kex.check_challenge_response(self.session.challenge, response.data)
        self.session.challenge = None
        raise self.WAIT_PREMASTER()

    @hookable
    @ATMT.state()
    def WAIT_PREMASTER(self):
        self.enter()

    # 5) premaster in, keys and Finished tags derived
    @hookable
    @ATMT.condition(WAIT_PREMASTER)
    def recv_premaster(self):
        exchange = self.recv_message(SSLMessageType.CLIENT_KEY_EXCHANGE, SSLKeyExchange)
        self.derive_keys(self.session.kex.open_premaster(exchange.data))
        raise self.KEYS_DERIVED()

    @hookable
    @ATMT.state()
    def KEYS_DERIVED(self):
        self.enter()

    # 6) Finished out, client Finished in
    @hookable
    @ATMT.condition(KEYS_DERIVED)
    def send_finished(self):
        raise self.SENT_FINISHED()

    @hookable
    @ATMT.action(send_finished)
    def do_send_finished(self):
        self.send_finished_message()

    @hookable
    @ATMT.state()
    def SENT_FINISHED(self):
        self.enter()

    @hookable
    @ATMT.condition(SENT_FINISHED)
    def wait_peer_finished(self):
        raise self.WAIT_PEER_FINISHED()

    @hookable
    @ATMT.state()
    def WAIT_PEER_FINISHED(self):
        self.enter()

    @hookable
    @ATMT.condition(WAIT_PEER_FINISHED)
    def recv_peer_finished(self):
        self.verify_peer_finished()
        raise self.VERIFIED()

    @hookable
    @ATMT.state()
    def VERIFIED(self):
        self.enter()

    # 7) sealed payload out, then close notify
    @hookable
    @ATMT.condition(VERIFIED)
    def send_application_data(self):
        raise self.DATA_TRANSFER()

    @hookable
    @ATMT.action(send_application_data)
    def do_send_application_data(self):
        self.channel(self.session).send(self.sslsock, self.payload)
        self.session.application_data = self.payload

    @hookable
    @ATMT.state()
    def DATA_TRANSFER(self):
        self.enter()

    @hookable
    @ATMT.condition(DATA_TRANSFER)
    def send_close_notify(self):
        raise self.CLOSED()

    @hookable
    @ATMT.action(send_close_notify)
    def do_send_close_notify(self):
        self.send_alert(SSLAlertDescription.CLOSE_NOTIFY, SSLAlertLevel.WARNING)


class SSLClientAutomaton(SSLHandshakeAutomaton):

    """"A Simple SSL handshake client

        SSLClientAutomaton.graph()
        identity = RSAIdentity.from_pem_files("client.key", "client.pem")
        sock = socket.create_connection(("127.0.0.1", 8080))
        auto_cli = SSLClientAutomaton(sock, identity, HandshakeConfig.for_client())
        print(auto_cli.run().application_data)
    """
    ROLE_LABEL = sslc.CLIENT_LABEL
    PEER_ROLE_LABEL = sslc.SERVER_LABEL

    def default_config(self):
        return sslcfg.HandshakeConfig.for_client()

    @hookable
    @ATMT.state(initial=1)
    def INIT(self):
        self.enter()

    # 1) client hello out, server hello in
    @hookable
    @ATMT.condition(INIT)
    def send_client_hello(self):
        raise self.SENT_HELLO()

    @hookable
    @ATMT.action(send_client_hello)
    def do_send_client_hello(self):
        self.send_message(SSLMessageType.CLIENT_HELLO, SSLHello(data=self.config.cipher_suite.encode("ascii")))

    @hookable
    @ATMT.state()
    def SENT_HELLO(self):
        self.enter()

    @hookable
    @ATMT.condition(SENT_HELLO)
    def wait_server_hello(self):
        raise self.WAIT_SERVER_HELLO()

    @hookable
    @ATMT.state()
    def WAIT_SERVER_HELLO(self):
        self.enter()

    @hookable
    @ATMT.condition(WAIT_SERVER_HELLO)
    def recv_server_hello(self):
        hello = self.recv_message(SSLMessageType.SERVER_HELLO, SSLHello)
        self.debug(1, "server answered: %r" % hello.data)
        raise self.WAIT_PEER_CERT()

    @hookable
    @ATMT.state()
    def WAIT_PEER_CERT(self):
        self.enter()

    # 2) server certificate in and validated
    @hookable
    @ATMT.condition(WAIT_PEER_CERT)
    def recv_peer_certificate(self):
        self.session.peer_certificate = self.recv_message(SSLMessageType.CERTIFICATE, SSLCertificate).data
        raise self.VALIDATING_CERT()

    @hookable
    @ATMT.state()
    def VALIDATING_CERT(self):
        self.enter()

    @hookable
    @ATMT.condition(VALIDATING_CERT)
    def check_peer_certificate(self):
        self.validate_peer_certificate()
        raise self.WAIT_CERT_REQUEST()

    @hookable
    @ATMT.state()
    def WAIT_CERT_REQUEST(self):
        self.enter()

    # 3) certificate request in, own certificate out
    @hookable
    @ATMT.condition(WAIT_CERT_REQUEST)
    def recv_certificate_request(self):
        request = self.recv_message(SSLMessageType.CERTIFICATE_REQUEST, SSLCertificateRequest)
        self.debug(1, "server requested certificate: %r" % request.data)
        raise self.SENT_CERT()

    @hookable
    @ATMT.action(recv_certificate_request)
    def do_send_certificate(self):
        self.send_message(SSLMessageType.CERTIFICATE, SSLCertificate(data=self.identity.der_certificate))

    @hookable
    @ATMT.state()
    def SENT_CERT(self):
        self.enter()

    @hookable
    @ATMT.condition(SENT_CERT)
    def wait_challenge(self):
        raise self.WAIT_CHALLENGE()

    @hookable
    @ATMT.state()
    def WAIT_CHALLENGE(self):
        self.enter()

    # 4) answer the challenge, then hand over the premaster
    @hookable
    @ATMT.condition(WAIT_CHALLENGE)
    def recv_challenge(self):
        challenge = self.recv_message(SSLMessageType.SERVER_KEY_EXCHANGE, SSLKeyExchange)
        nonce = self.session.kex.open_challenge(challenge.data)
        raise self.SENT_CHALLENGE_RESPONSE().action_parameters(nonce)

    @hookable
    @ATMT.action(recv_challenge)
    def do_send_challenge_response(self, nonce):
        self.send_message(SSLMessageType.CLIENT_KEY_EXCHANGE,
                          SSLKeyExchange(data=self.session.kex.respond_challenge(nonce)))

    @hookable
    @ATMT.state()
    def SENT_CHALLENGE_RESPONSE(self):
        self.enter()

    @hookable
    @ATMT.condition(SENT_CHALLENGE_RESPONSE)
    def send_premaster(self):
        raise self.SENT_PREMASTER()

    @hookable
    @ATMT.action(send_premaster)
    def do_send_premaster(self):
        self.session.premaster = sslc.generate_premaster(self.config.version)
        self.send_message(SSLMessageType.CLIENT_KEY_EXCHANGE,
                          SSLKeyExchange(data=self.session.kex.exchange_premaster(self.session.premaster)))

    @hookable
    @ATMT.state()
    def SENT_PREMASTER(self):
        self.enter()

    @hookable
    @ATMT.condition(SENT_PREMASTER)
    def derive_session_keys(self):
        self.derive_keys(self.session.premaster)
        raise self.KEYS_DERIVED()

    @hookable
    @ATMT.state()
    def KEYS_DERIVED(self):
        self.enter()

    # 5) server Finished in and verified, own Finished out
    @hookable
    @ATMT.condition(KEYS_DERIVED)
    def wait_peer_finished(self):
        raise self.WAIT_PEER_FINISHED()

    @hookable
    @ATMT.state()
    def WAIT_PEER_FINISHED(self):
        self.enter()

    @hookable
    @ATMT.condition(WAIT_PEER_FINISHED)
    def recv_peer_finished(self):
        self.verify_peer_finished()
        raise self.VERIFIED()

    @hookable
    @ATMT.state()
    def VERIFIED(self):
        self.enter()

    @hookable
    @ATMT.condition(VERIFIED)
    def send_finished(self):
        raise self.SENT_FINISHED()

    @hookable
    @ATMT.action(send_finished)
    def do_send_finished(self):
        self.send_finished_message()

    @hookable
    @ATMT.state()
    def SENT_FINISHED(self):
        self.enter()

    # 6) sealed payload in, then close notify
    @hookable
    @ATMT.condition(SENT_FINISHED)
    def recv_application_data(self):
        self.session.application_data = self.channel(self.session).recv(self.sslsock)
        raise self.DATA_TRANSFER()

    @hookable
    @ATMT.state()
    def DATA_TRANSFER(self):
        self.enter()

    @hookable
    @ATMT.condition(DATA_TRANSFER)
    def recv_close_notify(self):
        pkt = self.sslsock.recv_message()
        if not (pkt.haslayer(SSLAlert) and pkt[SSLAlert].description == SSLAlertDescription.CLOSE_NOTIFY):
            ssl3.ssl_expect(pkt, SSLMessageType.ALERT, SSLAlert)
        raise self.CLOSED()


def serve(config, identity=None, payload=None):
    """
    Accept connections one at a time and run one server handshake per connection.
    A failed handshake is logged and the server goes back to listening. Returns the
    results of the connections that completed.
    """
    identity = identity or config.load_identity()
    payload = config.load_payload() if payload is None else config.check_payload(payload)
    log.debug("%s", identity)
    results = []
    srv_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, True)
    try:
        try:
            srv_sock.bind(config.endpoint)
            srv_sock.listen(1)
        except (socket.error, OSError) as se:
            raise ssl3.StartupError("unable to listen on %s:%d: %s" % (config.endpoint[0], config.endpoint[1], se))
        log.info("listening on %s:%d", *srv_sock.getsockname()[:2])
        handled = 0
        while config.max_connections is None or handled < config.max_connections:
            try:
                client_sock, peer = srv_sock.accept()
            except (socket.error, OSError) as se:
                raise ssl3.TransportError("accept failed: %s" % se)
            handled += 1
            log.info("connection %d from %s:%d", handled, *peer[:2])
            auto_srv = SSLServerAutomaton(client_sock, identity, config, payload)
            try:
                results.append(auto_srv.run())
            except ssl3.SSLHandshakeError as e:
                log.warning("connection from %s:%d aborted: %s", peer[0], peer[1], e)
    finally:
        srv_sock.close()
    return results


def connect(config, identity=None):
    identity = identity or config.load_identity()
    log.debug("%s", identity)
    try:
        sock = socket.create_connection(config.endpoint)
    except (socket.error, OSError) as se:
        raise ssl3.TransportError("unable to connect to %s:%d: %s" % (config.endpoint[0], config.endpoint[1], se))
    result = SSLClientAutomaton(sock, identity, config).run()
    if config.output_file and result.application_data is not None:
        with open(config.output_file, "wb") as f:
            f.write(result.application_data)
    return result
