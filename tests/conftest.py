import socket
import threading

import pytest

import filbert
from filbert.errors import BertConnectionError
from filbert.framing import read_frame, write_frame
from filbert.rpc import Connection
from filbert.transport import SocketTransport


class FakeServer(threading.Thread):
    """BERT-RPC peer answering each request frame with ``handler(request)``

    The handler returns a term to reply with, raw bytes to write as they
    are, or None to stay silent.
    """

    def __init__(self, sock, handler):
        super().__init__(daemon=True)
        self.transport = SocketTransport(sock)
        self.handler = handler
        self.received = []

    def run(self):
        try:
            while True:
                request = filbert.decode(read_frame(self.transport))
                self.received.append(request)
                reply = self.handler(request)
                if isinstance(reply, bytes):
                    self.transport.write(reply)
                elif reply is not None:
                    write_frame(self.transport, filbert.encode(reply))
        except BertConnectionError:
            return


def reply(term):
    return filbert.Tuple([filbert.Atom("reply"), term])


def echo(request):
    """Reply to calls with their argument list, ignore casts"""
    if request[0] == filbert.Atom("call"):
        return reply(request[3])
    return None


@pytest.fixture
def serve():
    """Return a function starting a fake server and a connection to it"""
    started = []

    def start(handler=echo, config=None):
        client_sock, server_sock = socket.socketpair()
        server = FakeServer(server_sock, handler)
        server.start()
        conn = Connection(SocketTransport(client_sock), config, name="test")
        started.append((conn, server))
        return conn, server

    yield start
    for conn, server in started:
        conn.close()
        server.transport.close()
        server.join(timeout=5)
