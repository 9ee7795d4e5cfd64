"""BERT-RPC client

BERT-RPC requests carry no identifiers, so the Nth reply on a connection
answers the Nth call. Every ``Connection`` runs two threads: a writer that
sends queued requests in submission order, and a reader that takes the
written calls off a FIFO and matches each incoming frame to the oldest
one. At most one call is awaiting its reply at a time; casts are written
as soon as their turn in the queue comes, even while a call is waiting.

    with connect("localhost", 9999) as conn:
        conn.call("calc", "add", 1, 2)          # -> Integer(3)
        conn.module("calc").add(1, 2)            # same thing
        conn.cast("log", "info", "hello")        # returns once written
"""

import concurrent.futures
import enum
import logging
import queue
import threading

from .bert import BERTDecoder, BERTEncoder
from .config import ClientConfig
from .constants import CALL, CAST, ERROR, NOREPLY, REPLY
from .errors import (CallTimeoutError, ConnectionClosedError, FormatError,
                     ProtocolError, RpcError)
from .framing import read_frame, write_frame
from .transport import SocketTransport
from .types import Atom, List, Tuple

__all__ = ["State", "Connection", "Client", "Module", "connect"]

log = logging.getLogger(__name__)

REPLY_ATOM = Atom(REPLY)
NOREPLY_ATOM = Atom(NOREPLY)
ERROR_ATOM = Atom(ERROR)

# seconds close() waits for each connection thread to finish
JOIN_TIMEOUT = 5.0


class State(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SENDING = "sending"
    AWAITING_REPLY = "awaiting_reply"
    CLOSED = "closed"


class _Request(object):
    __slots__ = ("kind", "label", "payload", "future", "expects_reply")

    def __init__(self, kind, label, payload, expects_reply):
        self.kind = kind
        self.label = label
        self.payload = payload
        self.expects_reply = expects_reply
        self.future = concurrent.futures.Future()


def _atom(name):
    return name if isinstance(name, Atom) else Atom(name)


class Connection(object):
    """One BERT-RPC connection over a transport"""

    def __init__(self, transport, config=None, name=None):
        self.transport = transport
        self.config = config or ClientConfig()
        self.name = name or repr(transport)
        self.encoder = BERTEncoder(compressed=self.config.compressed, max_depth=self.config.max_depth)
        self.decoder = BERTDecoder(max_depth=self.config.max_depth)
        self._queue = queue.Queue()        # submitted, not yet written
        self._pending = queue.Queue()      # written, waiting for their reply
        self._reply_slot = threading.Semaphore(1)
        self._lock = threading.Lock()
        self._state = State.CONNECTED
        self._awaiting = False
        self._writer = threading.Thread(target=self._write_loop, name="filbert-writer-%s" % self.name,
                                        daemon=True)
        self._reader = threading.Thread(target=self._read_loop, name="filbert-reader-%s" % self.name,
                                        daemon=True)
        self._writer.start()
        self._reader.start()

    def __repr__(self):
        return "<Connection %s %s>" % (self.name, self.state.value)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def state(self):
        with self._lock:
            return self._state

    @property
    def closed(self):
        return self.state is State.CLOSED

    def _set_state(self, state):
        with self._lock:
            if self._state is not State.CLOSED:
                self._state = state

    def _settle(self):
        with self._lock:
            if self._state is not State.CLOSED:
                self._state = State.AWAITING_REPLY if self._awaiting else State.CONNECTED

    # ---- API ----
    def call_async(self, module, function, *args):
        """Queue a call and return a Future resolving to the reply term"""
        return self._submit(CALL, module, function, args)

    def cast_async(self, module, function, *args):
        """Queue a cast and return a Future resolving to None once written"""
        return self._submit(CAST, module, function, args)

    def call(self, module, function, *args, timeout=None):
        """Call ``module:function(args)`` on the peer and return the result term

        Raises ``RpcError`` when the peer answers ``{error, Info}``. On timeout
        the connection is closed, since the pending reply can no longer be
        matched to its call, and ``CallTimeoutError`` is raised.
        """
        future = self.call_async(module, function, *args)
        return self._wait(future, self.config.call_timeout if timeout is None else timeout, CALL)

    def cast(self, module, function, *args, timeout=None):
        """Send ``module:function(args)`` without waiting for a reply"""
        future = self.cast_async(module, function, *args)
        self._wait(future, self.config.call_timeout if timeout is None else timeout, CAST)

    def module(self, name, kind=CALL):
        return Module(self, name, kind)

    def close(self):
        """Close the connection, failing every queued or in-flight request"""
        if self._shutdown(ConnectionClosedError("Connection closed")):
            log.info("%s closed", self.name)

    # ---- internals ----
    def _submit(self, kind, module, function, args):
        request_term = Tuple([Atom(kind), _atom(module), _atom(function), List(args)])
        label = "%s:%s/%d" % (module, function, len(args))
        # encoding and size errors surface here, in the caller, and leave the connection usable
        payload = self.encoder.encode(request_term)
        if len(payload) > self.config.max_frame_size:
            raise ProtocolError("%s %s is %d bytes, over the %d byte frame limit"
                                % (kind, label, len(payload), self.config.max_frame_size))
        request = _Request(kind, label, payload, kind == CALL or self.config.cast_ack)
        with self._lock:
            if self._state is State.CLOSED:
                raise ConnectionClosedError("Connection %s is closed" % self.name)
            self._queue.put(request)
        return request.future

    def _wait(self, future, timeout, kind):
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            if kind == CALL:
                waiting_for = "a reply"
            elif self.config.cast_ack:
                waiting_for = "a cast acknowledgement"
            else:
                waiting_for = "a cast to be written"
            self._shutdown(ConnectionClosedError("Connection closed after a %s timed out" % kind))
            log.warning("%s closed after waiting %ss for %s", self.name, timeout, waiting_for)
            raise CallTimeoutError("Timed out after %s seconds waiting for %s" % (timeout, waiting_for))

    def _shutdown(self, error):
        with self._lock:
            if self._state is State.CLOSED:
                return False
            self._state = State.CLOSED
            self._queue.put(None)
            self._pending.put(None)
        self.transport.close()
        # wake a writer blocked on the reply slot so it sees the close
        self._reply_slot.release()
        self._fail_queued(self._queue, error)
        self._fail_queued(self._pending, error)
        if threading.current_thread() not in (self._writer, self._reader):
            self._writer.join(JOIN_TIMEOUT)
            self._reader.join(JOIN_TIMEOUT)
        return True

    def _fail_queued(self, requests, error):
        while True:
            try:
                request = requests.get_nowait()
            except queue.Empty:
                return
            if request is None:
                # leave the stop marker for the thread draining this queue
                requests.put(None)
                return
            if not request.future.done():
                request.future.set_exception(error)

    def _fail(self, request, exc):
        if self.closed:
            error = ConnectionClosedError("Connection closed during %s" % request.label)
            error.__cause__ = exc
            request.future.set_exception(error)
            return
        log.warning("%s invalidated during %s: %s", self.name, request.label, exc)
        self._shutdown(ConnectionClosedError("Connection invalidated: %s" % exc))
        request.future.set_exception(exc)

    def _write_loop(self):
        while True:
            request = self._queue.get()
            if request is None:
                return
            if not request.future.set_running_or_notify_cancel():
                continue
            if request.expects_reply:
                self._reply_slot.acquire()
            if self.closed:
                request.future.set_exception(ConnectionClosedError("Connection %s is closed" % self.name))
                continue
            self._set_state(State.SENDING)
            log.debug("%s -> %s %s (%d bytes)", self.name, request.kind, request.label, len(request.payload))
            try:
                write_frame(self.transport, request.payload, self.config.max_frame_size)
            except Exception as exc:
                self._fail(request, exc)
                continue
            if request.expects_reply:
                self._hand_to_reader(request)
            else:
                self._settle()
                request.future.set_result(None)

    def _hand_to_reader(self, request):
        with self._lock:
            closed = self._state is State.CLOSED
            if not closed:
                self._awaiting = True
                self._state = State.AWAITING_REPLY
                self._pending.put(request)
        if closed:
            request.future.set_exception(ConnectionClosedError("Connection closed during %s" % request.label))

    def _read_loop(self):
        while True:
            request = self._pending.get()
            if request is None:
                return
            try:
                result = self._read_reply(request)
            except RpcError as exc:
                self._reply_done()
                request.future.set_exception(exc)
            except Exception as exc:
                self._fail(request, exc)
            else:
                self._reply_done()
                request.future.set_result(result)

    def _reply_done(self):
        with self._lock:
            self._awaiting = False
            if self._state is State.AWAITING_REPLY:
                self._state = State.CONNECTED
        self._reply_slot.release()

    def _read_reply(self, request):
        frame = read_frame(self.transport, self.config.max_frame_size)
        log.debug("%s <- %d bytes for %s", self.name, len(frame), request.label)
        try:
            reply = self.decoder.decode(frame)
        except FormatError as exc:
            raise ProtocolError("Undecodable reply to %s: %s" % (request.label, exc))
        return self._unpack_reply(request, reply)

    def _unpack_reply(self, request, reply):
        if isinstance(reply, Tuple) and reply.items:
            head = reply.items[0]
            if request.kind == CALL and head == REPLY_ATOM and len(reply) == 2:
                return reply.items[1]
            if request.kind == CAST and head == NOREPLY_ATOM and len(reply) == 1:
                return None
            if head == ERROR_ATOM and len(reply) == 2:
                raise RpcError(reply.items[1])
        raise ProtocolError("Unexpected reply to %s %s: %r" % (request.kind, request.label, reply))


class Module(object):
    """Attribute style access to the functions of a remote module"""

    def __init__(self, connection, name, kind=CALL):
        if kind not in (CALL, CAST):
            raise ValueError("kind must be %r or %r" % (CALL, CAST))
        self._connection = connection
        self._name = name
        self._kind = kind

    def __getattr__(self, function):
        if function.startswith("_"):
            raise AttributeError(function)
        send = self._connection.call if self._kind == CALL else self._connection.cast

        def invoke(*args, **kwargs):
            return send(self._name, function, *args, **kwargs)
        invoke.__name__ = function
        return invoke

    def __repr__(self):
        return "<Module %s (%s)>" % (self._name, self._kind)


def connect(host, port, config=None):
    """Open a TCP connection to a BERT-RPC server"""
    config = config or ClientConfig()
    transport = SocketTransport.connect(host, port, timeout=config.connect_timeout)
    log.info("connected to %s:%d", host, port)
    return Connection(transport, config, name="%s:%d" % (host, port))


class Client(object):
    """Reconnecting front end for one server address

    Holds no connection until the first request. After the connection is
    closed or invalidated the next request opens a fresh one; the request
    that hit the failure is not retried.
    """

    def __init__(self, host, port, config=None):
        self.host = host
        self.port = port
        self.config = config or ClientConfig()
        self._connection = None
        self._lock = threading.Lock()

    @property
    def state(self):
        connection = self._connection
        if connection is None or connection.closed:
            return State.DISCONNECTED
        return connection.state

    @property
    def connection(self):
        with self._lock:
            if self._connection is None or self._connection.closed:
                self._connection = connect(self.host, self.port, self.config)
            return self._connection

    def call(self, module, function, *args, timeout=None):
        return self.connection.call(module, function, *args, timeout=timeout)

    def cast(self, module, function, *args, timeout=None):
        self.connection.cast(module, function, *args, timeout=timeout)

    def module(self, name, kind=CALL):
        return Module(self, name, kind)

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
