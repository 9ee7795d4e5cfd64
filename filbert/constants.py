FORMAT_VERSION = 131

NEW_FLOAT_EXT = 70      # [Float64:IEEE float]
COMPRESSED = 80         # [UncompressedSize:32, ZlibData]
SMALL_INTEGER_EXT = 97  # [UInt8:Int]
INTEGER_EXT = 98        # [Int32:Int]
FLOAT_EXT = 99          # [31:Float String] Float in string format (formatted "%.20e", sscanf "%lf")
ATOM_EXT = 100          # [UInt16:Len, Len:AtomName] max Len is 255
SMALL_TUPLE_EXT = 104   # [UInt8:Arity, N:Elements]
LARGE_TUPLE_EXT = 105   # [UInt32:Arity, N:Elements]
NIL_EXT = 106           # empty list
STRING_EXT = 107        # [UInt16:Len, Len:Characters]
LIST_EXT = 108          # [UInt32:Len, Elements, Tail]
BINARY_EXT = 109        # [UInt32:Len, Len:Data]
SMALL_BIG_EXT = 110     # [UInt8:n, UInt8:Sign, n:nums]
LARGE_BIG_EXT = 111     # [UInt32:n, UInt8:Sign, n:nums]
SMALL_ATOM_EXT = 115    # [UInt8:Len, Len:AtomName]
MAP_EXT = 116           # [UInt32:Arity, N:Pairs]
ATOM_UTF8_EXT = 118     # [UInt16:Len, Len:AtomName]
SMALL_ATOM_UTF8_EXT = 119  # [UInt8:Len, Len:AtomName]

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

# Nesting limit applied by the codec to fail fast on adversarial or cyclic input
DEFAULT_MAX_DEPTH = 256

# BERT complex type marker, {bert, dict, [{Key, Value}, ...]}
BERT = "bert"
BERT_DICT = "dict"

# BERT-RPC message kinds
CALL = "call"
CAST = "cast"
REPLY = "reply"
NOREPLY = "noreply"
ERROR = "error"

FRAME_HEADER_SIZE = 4
DEFAULT_MAX_FRAME_SIZE = 64 * 1024 * 1024
