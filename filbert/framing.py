"""Length prefixed frames: a 4-byte big-endian length, then one encoded term"""

import struct

from .constants import DEFAULT_MAX_FRAME_SIZE, FRAME_HEADER_SIZE
from .errors import ConnectionClosedError, ProtocolError, TruncatedInputError

__all__ = ["pack_frame", "read_frame", "write_frame", "mailbox", "port"]


def pack_frame(payload, max_size=None):
    if not payload:
        raise ProtocolError("Refusing to send an empty frame")
    limit = 0xffffffff if max_size is None else min(max_size, 0xffffffff)
    if len(payload) > limit:
        raise ProtocolError("Frame of %d bytes exceeds limit of %d" % (len(payload), limit))
    return struct.pack("!I", len(payload)) + payload


def write_frame(transport, payload, max_size=None):
    # single write so concurrent writers can never interleave inside a frame
    transport.write(pack_frame(payload, max_size))


def read_frame(transport, max_size=DEFAULT_MAX_FRAME_SIZE):
    (length,) = struct.unpack("!I", transport.read(FRAME_HEADER_SIZE))
    if length == 0:
        raise ProtocolError("Zero length frame")
    if length > max_size:
        raise ProtocolError("Frame of %d bytes exceeds limit of %d" % (length, max_size))
    return transport.read(length)


def mailbox(stream, decode, max_size=DEFAULT_MAX_FRAME_SIZE):
    """Yield decoded terms from a binary stream until it ends cleanly"""
    while True:
        len_bin = stream.read(FRAME_HEADER_SIZE)
        if not len_bin:
            return
        if len(len_bin) != FRAME_HEADER_SIZE:
            raise TruncatedInputError(0, FRAME_HEADER_SIZE, len(len_bin))
        (length,) = struct.unpack("!I", len_bin)
        if length == 0 or length > max_size:
            raise ProtocolError("Invalid frame length %d" % length)
        payload = stream.read(length)
        if len(payload) != length:
            raise ConnectionClosedError("Stream ended inside a %d byte frame" % length)
        yield decode(payload)


def port(stream, encode):
    """Coroutine writing every term sent to it as one frame"""
    while True:
        term = yield
        stream.write(pack_frame(encode(term)))
        stream.flush()
