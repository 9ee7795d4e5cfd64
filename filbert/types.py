"""Term model

Every value crossing the wire is one of the immutable ``Term`` variants
below. Terms compare and hash structurally so they can be used as keys of a
``Dict`` term, and order the way Erlang orders terms.
"""

import struct
from collections.abc import Mapping, Sequence

from .constants import DEFAULT_MAX_DEPTH
from .errors import EncodeError

__all__ = [
    "Term", "Atom", "Integer", "Float", "ByteList", "List", "Tuple", "Dict",
    "NIL", "to_term",
]

# Erlang term order: number < atom < reference < fun < port < pid < tuple < map < nil < list < bitstring
_ORDER = {
    "integer": 0, "float": 0, "atom": 1, "tuple": 6, "dict": 7,
    "nil": 8, "list": 9, "bytes": 10,
}


class Term(object):
    """Base class for all terms"""

    __slots__ = ()
    kind = None

    def __setattr__(self, name, value):
        raise AttributeError("%s is immutable" % type(self).__name__)

    def __delattr__(self, name):
        raise AttributeError("%s is immutable" % type(self).__name__)

    def _key(self):
        raise NotImplementedError

    def to_python(self):
        raise NotImplementedError

    def __eq__(self, other):
        if not isinstance(other, Term):
            return NotImplemented
        return type(self) is type(other) and self._key() == other._key()

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((type(self).__name__, self._key()))

    def __lt__(self, other):
        if not isinstance(other, Term):
            return NotImplemented
        return _compare(self, other) < 0

    def __le__(self, other):
        if not isinstance(other, Term):
            return NotImplemented
        return _compare(self, other) <= 0

    def __gt__(self, other):
        if not isinstance(other, Term):
            return NotImplemented
        return _compare(self, other) > 0

    def __ge__(self, other):
        if not isinstance(other, Term):
            return NotImplemented
        return _compare(self, other) >= 0


class Atom(Term):
    __slots__ = ("text",)
    kind = "atom"

    def __init__(self, text):
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode("latin-1")
        if not isinstance(text, str):
            raise TypeError("Atom text must be str, not %s" % type(text).__name__)
        if len(text.encode("utf-8")) > 0xffff:
            raise ValueError("Atom text too long")
        object.__setattr__(self, "text", text)

    def _key(self):
        return self.text

    def to_python(self):
        return self

    def __str__(self):
        return self.text

    def __repr__(self):
        return "Atom(%r)" % self.text


class Integer(Term):
    __slots__ = ("value",)
    kind = "integer"

    def __init__(self, value):
        if not isinstance(value, int):
            raise TypeError("Integer value must be int, not %s" % type(value).__name__)
        object.__setattr__(self, "value", int(value))

    @classmethod
    def from_sign_magnitude(cls, sign, digits):
        """Build an integer from a sign byte and little-endian base-256 digits"""
        value = int.from_bytes(digits, "little")
        return cls(-value if sign else value)

    def sign_magnitude(self):
        """Return ``(sign, digits)``: 1 for negative values and the magnitude as
        the minimal sequence of little-endian base-256 digits."""
        magnitude = abs(self.value)
        digits = magnitude.to_bytes((magnitude.bit_length() + 7) // 8, "little")
        return (1 if self.value < 0 else 0), digits

    def _key(self):
        return self.value

    def to_python(self):
        return self.value

    def __int__(self):
        return self.value

    def __index__(self):
        return self.value

    def __repr__(self):
        return "Integer(%d)" % self.value


class Float(Term):
    __slots__ = ("value",)
    kind = "float"

    def __init__(self, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError("Float value must be a number, not %s" % type(value).__name__)
        object.__setattr__(self, "value", float(value))

    def _key(self):
        # bit pattern, so nan equals itself and survives a round trip
        return struct.pack(">d", self.value)

    def to_python(self):
        return self.value

    def __float__(self):
        return self.value

    def __repr__(self):
        return "Float(%r)" % self.value


class ByteList(Term):
    __slots__ = ("data",)
    kind = "bytes"

    def __init__(self, data):
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError("ByteList data must be bytes, not %s" % type(data).__name__)
        object.__setattr__(self, "data", bytes(data))

    def _key(self):
        return self.data

    def to_python(self):
        return self.data

    def __len__(self):
        return len(self.data)

    def __bytes__(self):
        return self.data

    def __repr__(self):
        return "ByteList(%r)" % self.data


class List(Term, Sequence):
    """Proper list of terms. The empty list is the singleton ``NIL``."""

    __slots__ = ("items",)
    _nil = None

    def __new__(cls, items=()):
        items = tuple(to_term(item) for item in items)
        if not items and cls._nil is not None:
            return cls._nil
        self = object.__new__(cls)
        object.__setattr__(self, "items", items)
        return self

    @property
    def kind(self):
        return "list" if self.items else "nil"

    def _key(self):
        return self.items

    def to_python(self):
        return [item.to_python() for item in self.items]

    def __getitem__(self, index):
        return self.items[index]

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __repr__(self):
        return "List(%r)" % (list(self.items),)


NIL = List()
List._nil = NIL


class Tuple(Term, Sequence):
    """Fixed arity tuple of terms"""

    __slots__ = ("items",)
    kind = "tuple"

    def __init__(self, items=(), arity=None):
        items = tuple(to_term(item) for item in items)
        if arity is not None and arity != len(items):
            raise ValueError("Tuple arity %d does not match %d elements" % (arity, len(items)))
        object.__setattr__(self, "items", items)

    @property
    def arity(self):
        return len(self.items)

    def _key(self):
        return self.items

    def to_python(self):
        return tuple(item.to_python() for item in self.items)

    def __getitem__(self, index):
        return self.items[index]

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __repr__(self):
        return "Tuple(%r)" % (list(self.items),)


class Dict(Term, Mapping):
    """Mapping from term to term

    Iteration follows insertion order so a dict re-encodes to the same bytes,
    while equality ignores it. Duplicate keys are rejected with ``ValueError``.
    """

    __slots__ = ("pairs", "_index")
    kind = "dict"

    def __init__(self, pairs=()):
        if isinstance(pairs, Mapping):
            pairs = pairs.items()
        index = {}
        ordered = []
        for key, value in pairs:
            key, value = to_term(key), to_term(value)
            if key in index:
                raise ValueError("Duplicate Dict key %r" % (key,))
            index[key] = value
            ordered.append((key, value))
        object.__setattr__(self, "pairs", tuple(ordered))
        object.__setattr__(self, "_index", index)

    @classmethod
    def from_pairs(cls, pairs):
        return cls(pairs)

    def _key(self):
        return frozenset(self.pairs)

    def __eq__(self, other):
        if not isinstance(other, Term):
            return NotImplemented
        return type(other) is Dict and self._index == other._index

    def __hash__(self):
        return hash(("Dict", frozenset(self.pairs)))

    def to_python(self):
        result = {}
        for key, value in self.pairs:
            pykey = key.to_python()
            try:
                hash(pykey)
            except TypeError:
                pykey = key
            result[pykey] = value.to_python()
        return result

    def __getitem__(self, key):
        return self._index[to_term(key)]

    def __contains__(self, key):
        try:
            return to_term(key) in self._index
        except EncodeError:
            return False

    def __len__(self):
        return len(self.pairs)

    def __iter__(self):
        return (key for key, _ in self.pairs)

    def __repr__(self):
        return "Dict(%r)" % (list(self.pairs),)


def to_term(obj, max_depth=DEFAULT_MAX_DEPTH):
    """Convert a native Python value into a term

    Terms are returned unchanged. ``str`` becomes a UTF-8 ``ByteList`` and
    ``True``/``False`` become the atoms ``true``/``false``.
    """
    return _to_term(obj, 0, max_depth)


def _to_term(obj, depth, max_depth):
    if isinstance(obj, Term):
        return obj
    if depth > max_depth:
        raise EncodeError("Nesting deeper than %d, cyclic value?" % max_depth)
    if obj is True or obj is False:
        return Atom("true" if obj else "false")
    if isinstance(obj, int):
        return Integer(obj)
    if isinstance(obj, float):
        return Float(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return ByteList(obj)
    if isinstance(obj, str):
        return ByteList(obj.encode("utf-8"))
    depth += 1
    if isinstance(obj, list):
        return List([_to_term(item, depth, max_depth) for item in obj])
    if isinstance(obj, tuple):
        return Tuple([_to_term(item, depth, max_depth) for item in obj])
    if isinstance(obj, dict):
        return Dict([(_to_term(k, depth, max_depth), _to_term(v, depth, max_depth))
                     for k, v in obj.items()])
    raise EncodeError("Unsupported type %s" % type(obj).__name__)


def _compare(a, b):
    rank_a, rank_b = _ORDER[a.kind], _ORDER[b.kind]
    if rank_a != rank_b:
        return -1 if rank_a < rank_b else 1
    if rank_a == 0:
        return _cmp(a.value, b.value)
    if isinstance(a, Atom):
        return _cmp(a.text, b.text)
    if isinstance(a, ByteList):
        return _cmp(a.data, b.data)
    if isinstance(a, Tuple):
        if len(a) != len(b):
            return _cmp(len(a), len(b))
        return _compare_items(a.items, b.items)
    if isinstance(a, Dict):
        if len(a) != len(b):
            return _cmp(len(a), len(b))
        keys_a = sorted(a, key=_SortKey)
        keys_b = sorted(b, key=_SortKey)
        return (_compare_items(keys_a, keys_b)
                or _compare_items([a[k] for k in keys_a], [b[k] for k in keys_b]))
    # lists, shorter prefix first
    return _compare_items(a.items, b.items) or _cmp(len(a), len(b))


def _compare_items(items_a, items_b):
    for x, y in zip(items_a, items_b):
        result = _compare(x, y)
        if result:
            return result
    return 0


def _cmp(x, y):
    return (x > y) - (x < y)


class _SortKey(object):
    __slots__ = ("term",)

    def __init__(self, term):
        self.term = term

    def __lt__(self, other):
        return _compare(self.term, other.term) < 0
