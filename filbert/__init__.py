"""BERT (Erlang External Term Format) serializer/deserializer and BERT-RPC client"""

__version__ = "1.0.0"
__license__ = "BSD"

import sys

from .types import *
from .errors import *
from .bert import BERTDecoder, BERTEncoder
from .framing import mailbox, port
from .config import ClientConfig
from .rpc import Client, Connection, connect

_encoder = BERTEncoder()
_decoder = BERTDecoder()
encode = _encoder.encode
encode_to = _encoder.encode_to
decode = _decoder.decode


def mailbox_gen(stream=None):
    return mailbox(sys.stdin.buffer if stream is None else stream, decode)


def port_gen(stream=None):
    return port(sys.stdout.buffer if stream is None else stream, encode)


def port_connection(instream=None, outstream=None):
    """Talk to Erlang as a port: returns (mailbox, port)

    Iterate the mailbox for incoming terms and ``send()`` terms into the port.
    """
    port = port_gen(outstream)
    next(port)
    return mailbox_gen(instream), port
