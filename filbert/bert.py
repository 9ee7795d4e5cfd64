"""BERT codec

BERT is the external term format plus complex types carried as tuples
tagged with the atom ``bert``. Only ``{bert, dict, [{Key, Value}, ...]}``
is interpreted; other ``bert`` tuples decode as plain tuples. The encoder
refuses to write a hand built ``{bert, dict, _}`` tuple, since it would
not decode back to itself; use ``Dict`` instead.
"""

from .codec import ErlangTermDecoder, ErlangTermEncoder
from .constants import BERT, BERT_DICT
from .errors import EncodeError, FormatError
from .types import Atom, Dict, List, Tuple

__all__ = ["BERTDecoder", "BERTEncoder"]

BERT_ATOM = Atom(BERT)
DICT_ATOM = Atom(BERT_DICT)


def is_bert_dict(term):
    items = term.items
    return len(items) == 3 and items[0] == BERT_ATOM and items[1] == DICT_ATOM


class BERTDecoder(ErlangTermDecoder):
    def decode_104(self, src, depth):
        offset = src.offset
        term = super(BERTDecoder, self).decode_104(src, depth)
        return self.convert(term, offset)

    def convert(self, term, offset=None):
        if not is_bert_dict(term):
            return term
        pairs = term.items[2]
        if not isinstance(pairs, List):
            raise FormatError("BERT dict payload must be a list, got %r" % (pairs,), offset)
        for pair in pairs:
            if not isinstance(pair, Tuple) or len(pair) != 2:
                raise FormatError("BERT dict entry must be a 2-tuple, got %r" % (pair,), offset)
        try:
            return Dict(pair.items for pair in pairs)
        except ValueError as exc:
            raise FormatError(str(exc), offset)


class BERTEncoder(ErlangTermEncoder):
    def encode_tuple(self, term, out, depth):
        if is_bert_dict(term):
            raise EncodeError("Tuple %r is reserved for BERT dicts, use Dict" % (term,))
        super(BERTEncoder, self).encode_tuple(term, out, depth)

    def encode_dict(self, term, out, depth):
        pairs = List([Tuple(pair) for pair in term.pairs])
        super(BERTEncoder, self).encode_tuple(Tuple([BERT_ATOM, DICT_ATOM, pairs]), out, depth)
