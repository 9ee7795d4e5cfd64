import logging
import socket
from abc import ABC, abstractmethod

from .errors import BertConnectionError, ConnectionClosedError

__all__ = ["Transport", "SocketTransport", "StreamTransport"]

log = logging.getLogger(__name__)


class Transport(ABC):
    """Byte stream the RPC client talks over"""

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Return exactly ``size`` bytes or raise."""
        raise NotImplementedError

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of ``data`` or raise."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError


class SocketTransport(Transport):
    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.closed = False

    @classmethod
    def connect(cls, host: str, port: int, timeout: float = None) -> "SocketTransport":
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as exc:
            raise BertConnectionError("Unable to connect to %s:%d: %s" % (host, port, exc))
        # connect timeout only; reads block until the reply or close()
        sock.settimeout(None)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        log.debug("connected to %s:%d", host, port)
        return cls(sock)

    def read(self, size: int) -> bytes:
        buf = bytearray(size)
        view = memoryview(buf)
        got = 0
        while got < size:
            try:
                n = self.sock.recv_into(view[got:], size - got)
            except OSError as exc:
                if self.closed:
                    raise ConnectionClosedError("Connection closed")
                raise BertConnectionError("Read failed: %s" % exc)
            if n == 0:
                raise ConnectionClosedError("Connection closed by peer after %d of %d bytes" % (got, size))
            got += n
        return bytes(buf)

    def write(self, data: bytes) -> None:
        try:
            self.sock.sendall(data)
        except OSError as exc:
            if self.closed:
                raise ConnectionClosedError("Connection closed")
            raise BertConnectionError("Write failed: %s" % exc)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # already disconnected
            pass
        self.sock.close()


class StreamTransport(Transport):
    """Transport over a pair of binary file objects, e.g. pipes"""

    def __init__(self, reader, writer):
        self.reader = reader
        self.writer = writer

    def read(self, size: int) -> bytes:
        chunks = []
        got = 0
        while got < size:
            chunk = self.reader.read(size - got)
            if not chunk:
                raise ConnectionClosedError("End of stream after %d of %d bytes" % (got, size))
            chunks.append(chunk)
            got += len(chunk)
        return b"".join(chunks)

    def write(self, data: bytes) -> None:
        try:
            self.writer.write(data)
            self.writer.flush()
        except (OSError, ValueError) as exc:
            raise BertConnectionError("Write failed: %s" % exc)

    def close(self) -> None:
        for stream in (self.reader, self.writer):
            stream.close()
