import io
import struct

import pytest

from filbert.codec import ErlangTermDecoder, ErlangTermEncoder
from filbert.errors import EncodeError, FormatError, TruncatedInputError
from filbert.types import NIL, Atom, ByteList, Dict, Float, Integer, List, Tuple

encoder = ErlangTermEncoder()
decoder = ErlangTermDecoder()


def encode(term):
    return encoder.encode(term)


def decode(data):
    return decoder.decode(data)


@pytest.mark.parametrize("term", [
    Atom("ok"),
    Atom(""),
    Atom("caf\xe9"),
    Atom("日本"),
    Integer(0),
    Integer(255),
    Integer(-1),
    Integer(2 ** 31 - 1),
    Integer(-2 ** 31),
    Integer(2 ** 31),
    Integer(-2 ** 64 - 1),
    Integer(2 ** 100),
    Integer(-(2 ** 2100)),
    Float(0.0),
    Float(-3.25),
    Float(1e300),
    Float(float("inf")),
    Float(float("nan")),
    ByteList(b""),
    ByteList(bytes(range(256))),
    NIL,
    List([Integer(1), Atom("two"), Float(3.0)]),
    Tuple([]),
    Tuple([Atom("a"), Tuple([Atom("b"), List([NIL, Tuple([])])])]),
    Tuple([Integer(i) for i in range(300)]),
    Dict(),
    Dict([(Atom("a"), Integer(1)), (List([Integer(1)]), Dict({Atom("x"): NIL}))]),
])
def test_round_trip(term):
    assert decode(encode(term)) == term


@pytest.mark.parametrize("value,expected", [
    (0, b"\x83\x61\x00"),
    (255, b"\x83\x61\xff"),
    (256, b"\x83\x62\x00\x00\x01\x00"),
    (-1, b"\x83\x62\xff\xff\xff\xff"),
    (2 ** 31, b"\x83\x6e\x04\x00\x00\x00\x00\x80"),
    (-2 ** 31 - 1, b"\x83\x6e\x04\x01\x01\x00\x00\x80"),
    (2 ** 100, b"\x83\x6e\x0d\x00" + b"\x00" * 12 + b"\x10"),
])
def test_integer_tag_selection(value, expected):
    assert encode(Integer(value)) == expected


def test_large_big_for_more_than_255_digits():
    data = encode(Integer(2 ** 2048))
    assert data[1] == 111
    assert struct.unpack(">I", data[2:6])[0] == 257
    assert data[6] == 0


def test_empty_list_is_only_nil_tag():
    assert encode(List([])) == b"\x83\x6a"


def test_list_has_length_elements_and_nil_tail():
    assert encode(List([Integer(1)])) == b"\x83\x6c\x00\x00\x00\x01\x61\x01\x6a"


def test_byte_list_always_binary_ext():
    assert encode(ByteList(b"ab")) == b"\x83\x6d\x00\x00\x00\x02ab"


def test_atom_encoding():
    assert encode(Atom("ok")) == b"\x83\x64\x00\x02ok"
    utf8 = "日".encode("utf-8")
    assert encode(Atom("日")) == b"\x83\x76\x00\x03" + utf8


def test_float_encoding():
    assert encode(Float(1.5)) == b"\x83\x46" + struct.pack(">d", 1.5)


def test_tuple_size_selects_tag():
    assert encode(Tuple([]))[:3] == b"\x83\x68\x00"
    data = encode(Tuple([NIL] * 256))
    assert data[1] == 105
    assert struct.unpack(">I", data[2:6])[0] == 256


def test_dict_encodes_as_map_ext():
    data = encode(Dict({Atom("a"): Integer(1)}))
    assert data == b"\x83\x74\x00\x00\x00\x01\x64\x00\x01a\x61\x01"


def test_native_values_are_converted():
    assert decode(encode((1, [b"x"], 2.0))) == Tuple([Integer(1), List([ByteList(b"x")]), Float(2.0)])


def test_bad_version():
    with pytest.raises(FormatError):
        decode(b"\x00\x61\x01")


def test_truncated_atom():
    with pytest.raises(TruncatedInputError) as info:
        decode(b"\x83\x64\x00\x0a" + b"abcde")
    assert info.value.needed == 10
    assert info.value.got == 5


@pytest.mark.parametrize("data", [
    b"",
    b"\x83",
    b"\x83\x62\x00\x00",
    b"\x83\x6c\x00\x00\x00\x02\x61\x01",
    b"\x83\x6e\x04\x00\x00\x00",
    b"\x83\x68\x02\x61\x01",
])
def test_truncated_input(data):
    with pytest.raises(TruncatedInputError):
        decode(data)


def test_unknown_tag_names_byte_and_offset():
    with pytest.raises(FormatError) as info:
        decode(b"\x83\x68\x01\xc8")
    assert info.value.offset == 3
    assert "200" in str(info.value)


def test_improper_list_is_rejected():
    with pytest.raises(FormatError) as info:
        decode(b"\x83\x6c\x00\x00\x00\x01\x61\x01\x61\x02")
    assert not isinstance(info.value, TruncatedInputError)


def test_trailing_bytes_are_rejected():
    with pytest.raises(FormatError):
        decode(b"\x83\x6a\x6a")


def test_string_ext_decodes_to_integer_list():
    assert decode(b"\x83\x6b\x00\x03\x01\x02\x03") == List([Integer(1), Integer(2), Integer(3)])
    assert decode(b"\x83\x6b\x00\x00") is NIL


def test_small_and_utf8_atoms():
    assert decode(b"\x83\x73\x02ok") == Atom("ok")
    name = "ångström".encode("utf-8")
    assert decode(b"\x83\x77" + bytes([len(name)]) + name) == Atom("ångström")
    assert decode(b"\x83\x76\x00" + bytes([len(name)]) + name) == Atom("ångström")
    with pytest.raises(FormatError):
        decode(b"\x83\x77\x01\xff")


def test_old_float_ext():
    text = b"1.50000000000000000000e+00"
    assert decode(b"\x83\x63" + text + b"\x00" * (31 - len(text))) == Float(1.5)
    with pytest.raises(FormatError):
        decode(b"\x83\x63" + b"x" * 31)


def test_map_with_duplicate_keys_is_rejected():
    with pytest.raises(FormatError):
        decode(b"\x83\x74\x00\x00\x00\x02\x61\x01\x6a\x61\x01\x6a")


def test_decode_from_stream():
    stream = io.BytesIO(encode(Tuple([Atom("a"), Integer(1)])) + b"rest")
    assert decoder.decode(stream) == Tuple([Atom("a"), Integer(1)])
    # streams are read only as far as the term goes
    assert stream.read() == b"rest"


def test_decode_from_short_reading_stream():
    class Trickle(object):
        def __init__(self, data):
            self.data = data

        def read(self, n):
            chunk, self.data = self.data[:1], self.data[1:]
            return chunk

    assert decoder.decode(Trickle(encode(ByteList(b"hello")))) == ByteList(b"hello")
    with pytest.raises(TruncatedInputError):
        decoder.decode(Trickle(encode(ByteList(b"hello"))[:-2]))


def test_compression():
    term = List([Integer(1)] * 200)
    data = encoder.encode(term, compressed=True)
    assert data[1] == 80
    assert struct.unpack(">I", data[2:6])[0] == len(encode(term)) - 1
    assert decode(data) == term
    assert decoder.decode(io.BytesIO(data + b"tail")) == term


def test_compression_skipped_when_not_smaller():
    assert ErlangTermEncoder(compressed=9).encode(Atom("a")) == encode(Atom("a"))
    with pytest.raises(ValueError):
        encoder.encode(Atom("a"), compressed=10)


def test_corrupt_compressed_term():
    with pytest.raises(FormatError):
        decode(b"\x83\x50\x00\x00\x00\x05" + b"not zlib data")


def test_nesting_limit_on_decode():
    data = b"\x83" + b"\x68\x01" * 300 + b"\x6a"
    with pytest.raises(FormatError):
        decode(data)
    assert ErlangTermDecoder(max_depth=400).decode(data) is not None


def test_nesting_limit_on_encode():
    term = NIL
    for _ in range(300):
        term = Tuple([term])
    with pytest.raises(EncodeError):
        encode(term)


def test_cyclic_value_is_encode_error():
    cyclic = []
    cyclic.append(cyclic)
    with pytest.raises(EncodeError):
        encode(cyclic)


def test_unsupported_value_is_encode_error():
    with pytest.raises(EncodeError):
        encode({1: object()})


def test_encode_to_sink_returns_byte_count():
    sink = io.BytesIO()
    count = encoder.encode_to(Tuple([Atom("ok")]), sink)
    assert count == len(sink.getvalue()) == 8
    assert decode(sink.getvalue()) == Tuple([Atom("ok")])
