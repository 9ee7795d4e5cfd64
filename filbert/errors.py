__all__ = [
    "BertError", "FormatError", "TruncatedInputError", "EncodeError",
    "BertConnectionError", "ConnectionClosedError", "CallTimeoutError",
    "ProtocolError", "RpcError",
]


class BertError(Exception):
    """Base class for all filbert errors"""


class FormatError(BertError, ValueError):
    """Raised when bytes do not form a valid term"""

    def __init__(self, message, offset=None):
        if offset is not None:
            message = "%s at offset %d" % (message, offset)
        super(FormatError, self).__init__(message)
        self.offset = offset


class TruncatedInputError(FormatError):
    """Raised when the input ends in the middle of a term"""

    def __init__(self, offset, needed, got):
        super(TruncatedInputError, self).__init__(
            "Truncated input: needed %d bytes, got %d" % (needed, got), offset)
        self.needed = needed
        self.got = got


class EncodeError(BertError, TypeError):
    """Raised when a value cannot be encoded"""


class BertConnectionError(BertError, ConnectionError):
    """Raised on transport level failures"""


class ConnectionClosedError(BertConnectionError):
    """Raised when the connection is closed or was invalidated"""


class CallTimeoutError(ConnectionClosedError, TimeoutError):
    """Raised when a call does not complete in time; the connection is closed"""


class ProtocolError(BertError):
    """Raised on invalid frames or unexpected reply shapes"""


class RpcError(BertError):
    """Error reported by the remote peer

    ``info`` is the peer's error payload, unchanged. When it follows the
    BERT-RPC ``{Type, Code, Class, Detail, Backtrace}`` shape the parts are
    also available as attributes, otherwise they are ``None``.
    """

    def __init__(self, info):
        self.info = info
        self.type = self.code = self.error_class = self.detail = None
        self.backtrace = None
        items = getattr(info, "items", None)
        if getattr(info, "kind", None) == "tuple" and len(items) == 5:
            self.type, self.code, self.error_class, self.detail, self.backtrace = items
        super(RpcError, self).__init__(info)

    def __str__(self):
        if self.detail is not None:
            return "%s error %s (%s): %s" % (
                _text(self.type), _text(self.code), _text(self.error_class), _text(self.detail))
        return "Remote error: %r" % (self.info,)


def _text(term):
    value = term.to_python() if hasattr(term, "to_python") else term
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return str(value)
