"""Key value object.

A key is an opaque byte string. Two keys are equal when their bytes are
equal; text keys are stored UTF-8 encoded.
"""

from __future__ import annotations

import uuid


class ValkeyKey:
    """Immutable byte-string key.

    Example:
        >>> ValkeyKey("user:1") == ValkeyKey(b"user:1")
        True
        >>> bytes(ValkeyKey("café"))
        b'caf\\xc3\\xa9'
    """

    __slots__ = ("_raw",)

    def __init__(self, value: str | bytes | bytearray | memoryview | ValkeyKey) -> None:
        if isinstance(value, ValkeyKey):
            raw = value._raw
        elif isinstance(value, str):
            raw = value.encode("utf-8")
        elif isinstance(value, (bytes, bytearray, memoryview)):
            raw = bytes(value)
        else:
            raise TypeError(f"ValkeyKey expects str or bytes, got {type(value).__name__}")
        object.__setattr__(self, "_raw", raw)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("ValkeyKey is immutable")

    @classmethod
    def random(cls, prefix: str = "") -> ValkeyKey:
        """Return a key built from a random UUID (useful for tests)."""
        return cls(f"{prefix}{uuid.uuid4()}")

    def __bytes__(self) -> bytes:
        return self._raw

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ValkeyKey):
            return self._raw == other._raw
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._raw)

    def __len__(self) -> int:
        return len(self._raw)

    def __repr__(self) -> str:
        return f"ValkeyKey({self._raw!r})"

    def __str__(self) -> str:
        return self._raw.decode("utf-8", errors="backslashreplace")
