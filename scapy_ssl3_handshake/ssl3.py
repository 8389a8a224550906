#! /usr/bin/env python
# -*- coding: UTF-8 -*-
# Author : <github.com/tintinweb/scapy-ssl_tls>

import logging
import socket
import struct

from scapy.packet import bind_layers, Packet
from scapy.fields import *

log = logging.getLogger(__name__)


class EnumStruct(object):

    def __init__(self, entries):
        entries = dict((v.replace(' ', '_').upper(), k) for k, v in entries.items())
        self.__dict__.update(entries)


SSL_VERSIONS = {
    0x0300: "SSL_3_0",
    0x0301: "TLS_1_0",
    0x0302: "TLS_1_1",
    0x0303: "TLS_1_2",
    0x0304: "TLS_1_3",
}
SSLVersion = EnumStruct(SSL_VERSIONS)

SSL_MESSAGE_TYPES = {
    1: "client hello",
    2: "server hello",
    11: "certificate",
    12: "server key exchange",
    13: "certificate request",
    16: "client key exchange",
    20: "finished",
    21: "alert",
    23: "application data",
}
SSLMessageType = EnumStruct(SSL_MESSAGE_TYPES)

# messages bound into the Finished transcript
SSL_HANDSHAKE_MESSAGE_TYPES = (SSLMessageType.CLIENT_HELLO,
                               SSLMessageType.SERVER_HELLO,
                               SSLMessageType.CERTIFICATE,
                               SSLMessageType.CERTIFICATE_REQUEST,
                               SSLMessageType.SERVER_KEY_EXCHANGE,
                               SSLMessageType.CLIENT_KEY_EXCHANGE)

SSL_ALERT_LEVELS = {
    1: "warning",
    2: "fatal",
}
SSLAlertLevel = EnumStruct(SSL_ALERT_LEVELS)

SSL_ALERT_DESCRIPTIONS = {
    0: "close notify",
    10: "unexpected message",
    21: "decryption failed",
    40: "handshake failure",
    42: "bad certificate",
    51: "decrypt error",
}
SSLAlertDescription = EnumStruct(SSL_ALERT_DESCRIPTIONS)

# version(2) + msg_type(1) + count(1)
HEADER_PREFIX_LEN = 4
CONTENT_LENGTH_LEN = 8
MAX_MESSAGE_SIZE = 2 ** 20


class SSLHandshakeError(Exception):
    pass


class StartupError(SSLHandshakeError):
    pass


class TransportError(SSLHandshakeError):
    pass


class CertificateError(SSLHandshakeError):
    pass


class CryptoOperationError(SSLHandshakeError):
    pass


class TranscriptMismatchError(SSLHandshakeError):
    pass


class ProtocolError(SSLHandshakeError):
    def __init__(self, message, pkt=None):
        self.pkt = pkt
        SSLHandshakeError.__init__(self, message)


class UnexpectedMessage(ProtocolError):
    pass


class AlertReceived(ProtocolError):

    @property
    def description(self):
        return self.pkt[SSLAlert].description


class PacketNoPayload(Packet):

    """
    This type of packet has no payload/sub-layer (typically used for leaf layers)
    """

    def extract_padding(self, s):
        return b"", s


class SSLRecordHeader(Packet):
    """
    Framing header preceding every protocol message:
        version | msg_type | count | count * content_length

    The payload is exactly sum(content_lengths) bytes. A message made of several
    items (e.g. the Finished tag list) announces one length per item.
    """
    name = "SSL Record Header"
    fields_desc = [XShortEnumField("version", SSLVersion.TLS_1_3, SSL_VERSIONS),
                   ByteEnumField("msg_type", SSLMessageType.APPLICATION_DATA, SSL_MESSAGE_TYPES),
                   FieldLenField("count", None, count_of="content_lengths", fmt="B"),
                   FieldListField("content_lengths", None, LongField("content_length", 0),
                                  count_from=lambda pkt: pkt.count)]

    def post_build(self, pkt, pay):
        # FieldListField turns an unset list into [] on current scapy
        if not self.content_lengths:
            lengths = [len(pay)]
            pkt = pkt[:HEADER_PREFIX_LEN - 1] + struct.pack("!B", len(lengths)) + \
                b"".join(struct.pack("!Q", length) for length in lengths)
        return pkt + pay

    def extract_padding(self, s):
        total = sum(self.content_lengths or [])
        return s[:total], s[total:]

    def wire_parts(self):
        """ Split the record into its (header, payload) wire bytes
        """
        raw = bytes(self)
        count = struct.unpack("!B", raw[HEADER_PREFIX_LEN - 1:HEADER_PREFIX_LEN])[0]
        header_len = HEADER_PREFIX_LEN + count * CONTENT_LENGTH_LEN
        return raw[:header_len], raw[header_len:]

    @property
    def is_handshake(self):
        return self.msg_type in SSL_HANDSHAKE_MESSAGE_TYPES


class SSLHello(PacketNoPayload):
    name = "SSL Hello"
    fields_desc = [StrField("data", b"")]


class SSLCertificate(PacketNoPayload):
    name = "SSL Certificate"
    fields_desc = [StrField("data", b"")]


class SSLCertificateRequest(PacketNoPayload):
    name = "SSL Certificate Request"
    fields_desc = [StrField("data", b"Please respond with certificate.")]


class SSLKeyExchange(PacketNoPayload):
    name = "SSL Key Exchange"
    fields_desc = [StrField("data", b"")]


class SSLFinished(PacketNoPayload):
    name = "SSL Finished"
    fields_desc = [StrField("data", b"")]

    @property
    def tags(self):
        if self.underlayer is None or not self.underlayer.content_lengths:
            return [self.data] if self.data else []
        tags, offset = [], 0
        for length in self.underlayer.content_lengths:
            tags.append(self.data[offset:offset + length])
            offset += length
        return tags


class SSLApplicationData(PacketNoPayload):
    name = "SSL Application Data"
    fields_desc = [StrField("data", b"")]


class SSLAlert(PacketNoPayload):
    name = "SSL Alert"
    fields_desc = [ByteEnumField("level", SSLAlertLevel.FATAL, SSL_ALERT_LEVELS),
                   ByteEnumField("description", SSLAlertDescription.HANDSHAKE_FAILURE, SSL_ALERT_DESCRIPTIONS)]


def ssl_record(msg_type, payload, version=SSLVersion.TLS_1_3):
    return SSLRecordHeader(version=version, msg_type=msg_type) / payload


def ssl_finished(tags, version=SSLVersion.TLS_1_3):
    return SSLRecordHeader(version=version, msg_type=SSLMessageType.FINISHED,
                           content_lengths=[len(tag) for tag in tags]) / SSLFinished(data=b"".join(tags))


def ssl_alert(description, level=SSLAlertLevel.FATAL, version=SSLVersion.TLS_1_3):
    return ssl_record(SSLMessageType.ALERT, SSLAlert(level=level, description=description), version)


def ssl_expect(pkt, msg_type, layer):
    """ Return pkt[layer] or raise if the peer sent anything else than msg_type
    """
    if pkt.msg_type == SSLMessageType.ALERT and pkt.haslayer(SSLAlert):
        alert = pkt[SSLAlert]
        level = SSL_ALERT_LEVELS.get(alert.level, "unknown")
        description = SSL_ALERT_DESCRIPTIONS.get(alert.description, "unknown description")
        raise AlertReceived("%s alert returned by peer: %s" % (level.upper(), description.upper()), pkt)
    if pkt.msg_type == msg_type:
        if pkt.haslayer(layer):
            return pkt[layer]
        # zero payload bytes: scapy does not add the bound layer at all
        if not pkt.payload:
            return layer()
    raise UnexpectedMessage("expected %s, got %s" % (SSL_MESSAGE_TYPES[msg_type],
                                                     SSL_MESSAGE_TYPES.get(pkt.msg_type, pkt.msg_type)), pkt)


class SSLSocket(object):
    """
    Message oriented wrapper around a connected stream socket.

    Every message goes out and comes in as one framed SSLRecordHeader/<payload>
    packet. Handshake messages are inserted into the attached transcript in the
    order they hit the wire, sent and received alike.
    """

    def __init__(self, sock, transcript=None, max_message_size=MAX_MESSAGE_SIZE):
        if sock is None:
            raise ValueError("Socket cannot be None")
        self._s = sock
        self.transcript = transcript
        self.max_message_size = max_message_size

    def __getattr__(self, attr):
        return getattr(self._s, attr)

    def _record(self, pkt):
        if self.transcript is not None and pkt.is_handshake:
            self.transcript.insert(pkt)

    def send_message(self, pkt):
        try:
            self._s.sendall(bytes(pkt))
        except (socket.error, OSError) as se:
            raise TransportError("send failed: %s" % se)
        self._record(pkt)

    def recv_message(self):
        prefix = self._recv_exact(HEADER_PREFIX_LEN)
        count = struct.unpack("!B", prefix[-1:])[0]
        lengths_raw = self._recv_exact(count * CONTENT_LENGTH_LEN)
        lengths = struct.unpack("!%dQ" % count, lengths_raw)
        size = sum(lengths)
        if size > self.max_message_size:
            raise TransportError("announced message size %d exceeds limit %d" % (size, self.max_message_size))
        pkt = SSLRecordHeader(prefix + lengths_raw + self._recv_exact(size))
        self._record(pkt)
        return pkt

    def _recv_exact(self, size):
        chunks = []
        while size > 0:
            try:
                data = self._s.recv(min(size, 8192))
            except (socket.error, OSError) as se:
                raise TransportError("receive failed: %s" % se)
            if not data:
                raise TransportError("stream closed by peer")
            chunks.append(data)
            size -= len(data)
        return b"".join(chunks)

    def close(self):
        try:
            self._s.close()
        except (socket.error, OSError) as se:
            log.warning("closing stream failed: %s", se)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


# bind magic
bind_layers(SSLRecordHeader, SSLHello, {"msg_type": SSLMessageType.CLIENT_HELLO})
bind_layers(SSLRecordHeader, SSLHello, {"msg_type": SSLMessageType.SERVER_HELLO})
bind_layers(SSLRecordHeader, SSLCertificate, {"msg_type": SSLMessageType.CERTIFICATE})
bind_layers(SSLRecordHeader, SSLCertificateRequest, {"msg_type": SSLMessageType.CERTIFICATE_REQUEST})
bind_layers(SSLRecordHeader, SSLKeyExchange, {"msg_type": SSLMessageType.SERVER_KEY_EXCHANGE})
bind_layers(SSLRecordHeader, SSLKeyExchange, {"msg_type": SSLMessageType.CLIENT_KEY_EXCHANGE})
bind_layers(SSLRecordHeader, SSLFinished, {"msg_type": SSLMessageType.FINISHED})
bind_layers(SSLRecordHeader, SSLAlert, {"msg_type": SSLMessageType.ALERT})
bind_layers(SSLRecordHeader, SSLApplicationData, {"msg_type": SSLMessageType.APPLICATION_DATA})
