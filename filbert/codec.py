"""Erlang External Term Format encoder and decoder"""

import zlib
from struct import pack, unpack

from .constants import *
from .errors import EncodeError, FormatError, TruncatedInputError
from .types import Atom, ByteList, Dict, Float, Integer, List, NIL, Term, Tuple, to_term

__all__ = ["ErlangTermDecoder", "ErlangTermEncoder", "ByteSource"]


class ByteSource(object):
    """Exact-size reads over a buffer or a stream, keeping track of the offset

    A stream is anything with a ``read(n)`` method. Reads that come back
    short are retried until the stream reports end of input.
    """

    def __init__(self, source):
        if isinstance(source, (bytes, bytearray, memoryview)):
            self.buf = memoryview(source).cast("B")
            self.stream = None
        else:
            self.buf = None
            self.stream = source
        self.offset = 0

    @property
    def buffered(self):
        return self.buf is not None

    def remaining(self):
        return len(self.buf) - self.offset

    def read(self, size):
        if self.buf is not None:
            data = self.buf[self.offset:self.offset + size]
            if len(data) < size:
                raise TruncatedInputError(self.offset, size, len(data))
            self.offset += size
            return data.tobytes()
        chunks = []
        got = 0
        while got < size:
            chunk = self.stream.read(size - got)
            if not chunk:
                raise TruncatedInputError(self.offset, size, got)
            chunks.append(chunk)
            got += len(chunk)
        self.offset += size
        return b"".join(chunks)

    def read_byte(self):
        return self.read(1)[0]

    def inflate(self, size):
        """Inflate a zlib stream that must expand to exactly ``size`` bytes"""
        start = self.offset
        inflater = zlib.decompressobj()
        out = []
        try:
            while not inflater.eof:
                if self.buf is not None:
                    if not self.remaining():
                        raise TruncatedInputError(self.offset, 1, 0)
                    chunk = self.read(self.remaining())
                else:
                    chunk = self.read(1)
                out.append(inflater.decompress(chunk))
        except zlib.error as exc:
            raise FormatError("Corrupt compressed term: %s" % exc, start)
        if inflater.unused_data:
            self.offset -= len(inflater.unused_data)
        data = b"".join(out)
        if len(data) != size:
            raise FormatError("Compressed term expanded to %d bytes, expected %d" % (len(data), size), start)
        return data


class ErlangTermDecoder(object):
    def __init__(self, max_depth=DEFAULT_MAX_DEPTH):
        self.max_depth = max_depth
        # Cache decode functions to avoid having to do a getattr
        self.decoders = {}
        for name in dir(self):
            if name.startswith("decode_"):
                try:
                    tag = int(name[7:])
                except ValueError:
                    continue
                self.decoders[tag] = getattr(self, name)

    def decode(self, source):
        """Decode one term from a bytes-like object or a stream with read(n)"""
        src = ByteSource(source)
        version = src.read_byte()
        if version != FORMAT_VERSION:
            raise FormatError("Bad version number. Expected %d found %d" % (FORMAT_VERSION, version), 0)
        term = self.decode_part(src)
        if src.buffered and src.remaining():
            raise FormatError("%d unparsed trailing bytes" % src.remaining(), src.offset)
        return term

    def decode_part(self, src, depth=0):
        if depth > self.max_depth:
            raise FormatError("Nesting deeper than %d" % self.max_depth, src.offset)
        offset = src.offset
        tag = src.read_byte()
        try:
            decoder = self.decoders[tag]
        except KeyError:
            raise FormatError("Unsupported tag %d" % tag, offset)
        return decoder(src, depth)

    def decode_70(self, src, depth):
        """NEW_FLOAT_EXT"""
        return Float(unpack(">d", src.read(8))[0])

    def decode_80(self, src, depth):
        """Compressed term"""
        size = unpack(">I", src.read(4))[0]
        inner = ByteSource(src.inflate(size))
        term = self.decode_part(inner, depth)
        if inner.remaining():
            raise FormatError("%d unparsed bytes in compressed term" % inner.remaining(), src.offset)
        return term

    def decode_97(self, src, depth):
        """SMALL_INTEGER_EXT"""
        return Integer(src.read_byte())

    def decode_98(self, src, depth):
        """INTEGER_EXT"""
        return Integer(unpack(">i", src.read(4))[0])

    def decode_99(self, src, depth):
        """FLOAT_EXT"""
        offset = src.offset
        text = src.read(31).split(b"\x00", 1)[0]
        try:
            return Float(float(text))
        except ValueError:
            raise FormatError("Invalid float string %r" % text, offset)

    def decode_100(self, src, depth):
        """ATOM_EXT"""
        length = unpack(">H", src.read(2))[0]
        return Atom(src.read(length).decode("latin-1"))

    def decode_104(self, src, depth):
        """SMALL_TUPLE_EXT"""
        arity = src.read_byte()
        items = []
        for _ in range(arity):
            items.append(self.decode_part(src, depth + 1))
        return Tuple(items)

    def decode_105(self, src, depth):
        """LARGE_TUPLE_EXT"""
        arity = unpack(">I", src.read(4))[0]
        items = []
        for _ in range(arity):
            items.append(self.decode_part(src, depth + 1))
        return Tuple(items)

    def decode_106(self, src, depth):
        """NIL_EXT"""
        return NIL

    def decode_107(self, src, depth):
        """STRING_EXT"""
        length = unpack(">H", src.read(2))[0]
        return List([Integer(c) for c in src.read(length)])

    def decode_108(self, src, depth):
        """LIST_EXT"""
        length = unpack(">I", src.read(4))[0]
        items = []
        for _ in range(length):
            items.append(self.decode_part(src, depth + 1))
        offset = src.offset
        tail = self.decode_part(src, depth + 1)
        if tail is not NIL:
            raise FormatError("Improper list tail %r" % (tail,), offset)
        return List(items)

    def decode_109(self, src, depth):
        """BINARY_EXT"""
        length = unpack(">I", src.read(4))[0]
        return ByteList(src.read(length))

    def decode_110(self, src, depth):
        """SMALL_BIG_EXT"""
        n = src.read_byte()
        sign = src.read_byte()
        return Integer.from_sign_magnitude(sign, src.read(n))

    def decode_111(self, src, depth):
        """LARGE_BIG_EXT"""
        n, sign = unpack(">IB", src.read(5))
        return Integer.from_sign_magnitude(sign, src.read(n))

    def decode_115(self, src, depth):
        """SMALL_ATOM_EXT"""
        length = src.read_byte()
        return Atom(src.read(length).decode("latin-1"))

    def decode_116(self, src, depth):
        """MAP_EXT"""
        offset = src.offset
        arity = unpack(">I", src.read(4))[0]
        pairs = []
        for _ in range(arity):
            key = self.decode_part(src, depth + 1)
            pairs.append((key, self.decode_part(src, depth + 1)))
        try:
            return Dict(pairs)
        except ValueError as exc:
            raise FormatError(str(exc), offset)

    def decode_118(self, src, depth):
        """ATOM_UTF8_EXT"""
        length = unpack(">H", src.read(2))[0]
        return self._utf8_atom(src, length)

    def decode_119(self, src, depth):
        """SMALL_ATOM_UTF8_EXT"""
        return self._utf8_atom(src, src.read_byte())

    def _utf8_atom(self, src, length):
        offset = src.offset
        try:
            return Atom(src.read(length).decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise FormatError("Invalid UTF-8 atom: %s" % exc, offset)


class ErlangTermEncoder(object):
    def __init__(self, compressed=False, max_depth=DEFAULT_MAX_DEPTH):
        self.compressed = compressed
        self.max_depth = max_depth

    def encode(self, obj, compressed=None):
        """Encode a term, or a native value convertible to one, into bytes

        ``compressed`` is True, False or a zlib level 0-9; the compressed form
        is only used when it is actually smaller.
        """
        out = []
        self.encode_part(to_term(obj, self.max_depth), out)
        ubuf = b"".join(out)
        level = self.compressed if compressed is None else compressed
        if level is True:
            level = 6
        if level is not False and level is not None:
            if not 0 <= level <= 9:
                raise ValueError("Invalid compression level: %r" % (level,))
            cbuf = zlib.compress(ubuf, level)
            if len(cbuf) + 5 <= len(ubuf):
                return pack(">BBI", FORMAT_VERSION, COMPRESSED, len(ubuf)) + cbuf
        return pack(">B", FORMAT_VERSION) + ubuf

    def encode_to(self, obj, sink, compressed=None):
        """Encode and write to ``sink``, returning the number of bytes written"""
        data = self.encode(obj, compressed)
        sink.write(data)
        return len(data)

    def encode_part(self, term, out, depth=0):
        if depth > self.max_depth:
            raise EncodeError("Nesting deeper than %d, cyclic value?" % self.max_depth)
        if not isinstance(term, Term):
            raise EncodeError("Unsupported type %s" % type(term).__name__)
        getattr(self, "encode_" + term.kind)(term, out, depth)

    def encode_integer(self, term, out, depth):
        value = term.value
        if 0 <= value <= 255:
            out.append(pack(">BB", SMALL_INTEGER_EXT, value))
        elif INT32_MIN <= value <= INT32_MAX:
            out.append(pack(">Bi", INTEGER_EXT, value))
        else:
            sign, digits = term.sign_magnitude()
            if len(digits) < 256:
                out.append(pack(">BBB", SMALL_BIG_EXT, len(digits), sign))
            else:
                out.append(pack(">BIB", LARGE_BIG_EXT, len(digits), sign))
            out.append(digits)

    def encode_float(self, term, out, depth):
        out.append(pack(">Bd", NEW_FLOAT_EXT, term.value))

    def encode_atom(self, term, out, depth):
        try:
            name = term.text.encode("latin-1")
            tag = ATOM_EXT
        except UnicodeEncodeError:
            name = term.text.encode("utf-8")
            tag = ATOM_UTF8_EXT
        out.append(pack(">BH", tag, len(name)))
        out.append(name)

    def encode_bytes(self, term, out, depth):
        if len(term.data) > 0xffffffff:
            raise EncodeError("Binary too large: %d bytes" % len(term.data))
        out.append(pack(">BI", BINARY_EXT, len(term.data)))
        out.append(term.data)

    def encode_nil(self, term, out, depth):
        out.append(pack(">B", NIL_EXT))

    def encode_list(self, term, out, depth):
        out.append(pack(">BI", LIST_EXT, len(term)))
        for item in term:
            self.encode_part(item, out, depth + 1)
        out.append(pack(">B", NIL_EXT))

    def encode_tuple(self, term, out, depth):
        arity = len(term)
        if arity < 256:
            out.append(pack(">BB", SMALL_TUPLE_EXT, arity))
        else:
            out.append(pack(">BI", LARGE_TUPLE_EXT, arity))
        for item in term:
            self.encode_part(item, out, depth + 1)

    def encode_dict(self, term, out, depth):
        out.append(pack(">BI", MAP_EXT, len(term)))
        for key, value in term.pairs:
            self.encode_part(key, out, depth + 1)
            self.encode_part(value, out, depth + 1)
