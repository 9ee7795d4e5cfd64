"""Client configuration

Defaults live on the dataclass; ``from_env`` applies ``FILBERT_*``
environment overrides on top of them.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Optional, Union

from .constants import DEFAULT_MAX_DEPTH, DEFAULT_MAX_FRAME_SIZE


@dataclass(frozen=True)
class ClientConfig:
    """BERT-RPC client settings."""
    connect_timeout: Optional[float] = 10.0  # seconds
    call_timeout: Optional[float] = None  # seconds, None waits forever
    max_frame_size: int = DEFAULT_MAX_FRAME_SIZE  # bytes
    cast_ack: bool = False  # wait for {noreply} after each cast
    max_depth: int = DEFAULT_MAX_DEPTH
    compressed: Union[bool, int] = False

    def __post_init__(self):
        if self.max_frame_size <= 0:
            raise ValueError("max_frame_size must be positive")
        if self.max_depth <= 0:
            raise ValueError("max_depth must be positive")
        for name in ("connect_timeout", "call_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError("%s must be positive or None" % name)

    @classmethod
    def from_env(cls, prefix: str = "FILBERT_", environ=None) -> "ClientConfig":
        environ = os.environ if environ is None else environ
        overrides = {}
        for field in fields(cls):
            raw = environ.get(prefix + field.name.upper())
            if raw is None:
                continue
            overrides[field.name] = _parse(field.name, raw)
        return replace(cls(), **overrides)


def _parse(name, raw):
    raw = raw.strip()
    if name in ("connect_timeout", "call_timeout"):
        if raw.lower() in ("", "none"):
            return None
        return float(raw)
    if name in ("cast_ack", "compressed"):
        lowered = raw.lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off", ""):
            return False
        if name == "compressed":
            return int(raw)
        raise ValueError("Invalid boolean for %s: %r" % (name, raw))
    return int(raw)
