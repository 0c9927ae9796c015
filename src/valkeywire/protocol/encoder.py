"""RESP request encoder.

Requests are always sent as an array of bulk strings:

    *<number of arguments>\\r\\n
    $<byte length>\\r\\n<argument>\\r\\n
    ...

Example:
    >>> encode_command([b"LPUSH", b"mylist", b"a"])
    b'*3\\r\\n$5\\r\\nLPUSH\\r\\n$6\\r\\nmylist\\r\\n$1\\r\\na\\r\\n'
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Union

from valkeywire.domain.value_objects.key import ValkeyKey

CommandArg = Union[bytes, str, int, float, ValkeyKey, Enum]


def encode_command(args: Sequence[bytes]) -> bytes:
    """Encode one command given as byte-string arguments."""
    parts = [b"*%d\r\n" % len(args)]
    for arg in args:
        parts.append(b"$%d\r\n" % len(arg))
        parts.append(arg)
        parts.append(b"\r\n")
    return b"".join(parts)


def encode_commands(commands: Iterable[Sequence[bytes]]) -> bytes:
    """Encode several commands back to back (for pipelining)."""
    return b"".join(encode_command(command) for command in commands)


def encode_arg(value: CommandArg) -> bytes:
    """Convert a command argument into the bytes sent on the wire.

    Args:
        value: bytes, str (UTF-8 encoded), int, float, ValkeyKey or Enum
               (its value is encoded)

    Raises:
        TypeError: If value has an unsupported type. bool is rejected because
                   commands spell booleans out as tokens.
    """
    if isinstance(value, bytes):
        return value
    if isinstance(value, ValkeyKey):
        return bytes(value)
    if isinstance(value, Enum):
        return encode_arg(value.value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bool):
        raise TypeError("bool is not a valid command argument")
    if isinstance(value, int):
        return b"%d" % value
    if isinstance(value, float):
        if math.isinf(value):
            return b"+inf" if value > 0 else b"-inf"
        return repr(value).encode("ascii")
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"Unsupported command argument type: {type(value).__name__}")


def build_command(*args: CommandArg) -> list[bytes]:
    """Normalise command arguments to bytes (see encode_arg)."""
    return [encode_arg(arg) for arg in args]
