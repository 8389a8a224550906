import socket
import threading
import time

import scapy_ssl3_handshake.ssl3 as ssl3
import scapy_ssl3_handshake.ssl3_automata as ssla
import scapy_ssl3_handshake.ssl3_ca as sslca
from scapy_ssl3_handshake.ssl3_config import HandshakeConfig

SOCKET_TIMEOUT = 20

_material = {}


def identity_material(common_name):
    """
    (private_key, certificate) for common_name. Generated once per test run,
    RSA-2048 keygen is too slow to repeat for every test.
    """
    if common_name not in _material:
        _material[common_name] = sslca.generate_identity(common_name)
    return _material[common_name]


def make_identity(common_name):
    return sslca.to_identity(*identity_material(common_name))


def stream_pair():
    left, right = socket.socketpair()
    left.settimeout(SOCKET_TIMEOUT)
    right.settimeout(SOCKET_TIMEOUT)
    return left, right


def free_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
    finally:
        s.close()


class ThreadedPeer(object):
    """
    threading.Thread wrapper around a callable, keeps its return value or the
    exception it raised
    """
    def __init__(self, target, args=()):
        self.result = None
        self.error = None
        self._target = target
        self._args = args
        self.thread = threading.Thread(target=self._run)
        self.thread.daemon = True

    def _run(self):
        try:
            self.result = self._target(*self._args)
        except Exception as e:
            self.error = e

    def start(self):
        self.thread.start()
        return self

    def join(self, timeout=SOCKET_TIMEOUT * 2):
        self.thread.join(timeout)
        if self.thread.is_alive():
            raise RuntimeError("peer did not terminate within %ss" % timeout)
        return self


class Handshake(object):
    """
    One server and one client automaton wired together over a socketpair.
    run() drives the server in a background thread and the client in the caller.
    """

    def __init__(self, server_cn="Server", client_cn="Client", server_config=None, client_config=None,
                 payload=b"hello client", server_identity=None, client_identity=None):
        srv_sock, cli_sock = stream_pair()
        self.server = ssla.SSLServerAutomaton(srv_sock, server_identity or make_identity(server_cn),
                                              server_config or HandshakeConfig.for_server(), payload=payload)
        self.client = ssla.SSLClientAutomaton(cli_sock, client_identity or make_identity(client_cn),
                                              client_config or HandshakeConfig.for_client())
        self.server_result = self.client_result = None
        self.server_error = self.client_error = None

    def run(self):
        peer = ThreadedPeer(self.server.run).start()
        try:
            self.client_result = self.client.run()
        except ssl3.SSLHandshakeError as e:
            self.client_error = e
        peer.join()
        self.server_result, self.server_error = peer.result, peer.error
        return self


def connect_when_ready(config, identity, attempts=50):
    """ssl3_automata.connect(), retried while the server socket is not listening yet"""
    for _ in range(attempts):
        try:
            return ssla.connect(config, identity)
        except ssl3.TransportError as te:
            if "unable to connect" not in str(te):
                raise
            time.sleep(0.1)
    raise RuntimeError("server never started listening")
