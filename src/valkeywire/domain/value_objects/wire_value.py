"""Decoded protocol replies.

Each RESP type tag has exactly one class below. All of them are immutable and
own their payload bytes, so a value never refers back into a read buffer.

    Null            _            also RESP2 $-1 and *-1
    Boolean         #t / #f
    Integer         :
    Double          ,
    BigNumber       (
    SimpleString    +
    BulkString      $
    VerbatimString  =            format ("txt", "mkd") + payload
    Error           -
    BulkError       !
    Array           *
    Set             ~
    Map             %            ordered key/value pairs
    Push            >            out-of-band, never matched to a request
    Attribute       |            metadata pairs attached to the next value
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from valkeywire.decoding import WireCursor


@dataclass(frozen=True)
class WireValue:
    """Base class of every decoded reply."""

    type_name: ClassVar[str] = "value"

    def decode(self, target: Any) -> Any:
        """Decode this value as ``target`` (see valkeywire.decoding.decode)."""
        from valkeywire.decoding import decode

        return decode(self, target)


@dataclass(frozen=True)
class Null(WireValue):
    type_name: ClassVar[str] = "null"


@dataclass(frozen=True)
class Boolean(WireValue):
    type_name: ClassVar[str] = "boolean"

    value: bool


@dataclass(frozen=True)
class Integer(WireValue):
    type_name: ClassVar[str] = "integer"

    value: int


@dataclass(frozen=True)
class Double(WireValue):
    type_name: ClassVar[str] = "double"

    value: float


@dataclass(frozen=True)
class BigNumber(WireValue):
    type_name: ClassVar[str] = "big number"

    value: int


@dataclass(frozen=True)
class SimpleString(WireValue):
    type_name: ClassVar[str] = "simple string"

    value: bytes


@dataclass(frozen=True)
class BulkString(WireValue):
    type_name: ClassVar[str] = "bulk string"

    value: bytes


@dataclass(frozen=True)
class VerbatimString(WireValue):
    type_name: ClassVar[str] = "verbatim string"

    format: str
    value: bytes


@dataclass(frozen=True)
class Error(WireValue):
    type_name: ClassVar[str] = "error"

    message: str


@dataclass(frozen=True)
class BulkError(WireValue):
    type_name: ClassVar[str] = "bulk error"

    message: str


@dataclass(frozen=True)
class _Sequence(WireValue):
    """Shared behaviour of the ordered aggregate types."""

    elements: tuple[WireValue, ...]

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self):
        return iter(self.elements)

    def __getitem__(self, index: int) -> WireValue:
        return self.elements[index]

    def decode_elements(self, *targets: Any) -> Any:
        """Decode the elements positionally, one target per element.

        A single target returns a single value, several targets return a tuple.
        The element count must match the number of targets.
        """
        from valkeywire.decoding import decode

        decoded = decode(self, tuple[targets])  # type: ignore[valid-type]
        return decoded[0] if len(targets) == 1 else decoded

    def cursor(self) -> WireCursor:
        """Return a cursor reading the elements one at a time."""
        from valkeywire.decoding import WireCursor

        return WireCursor(self)


@dataclass(frozen=True)
class Array(_Sequence):
    type_name: ClassVar[str] = "array"


@dataclass(frozen=True)
class Set(_Sequence):
    type_name: ClassVar[str] = "set"


@dataclass(frozen=True)
class Push(_Sequence):
    type_name: ClassVar[str] = "push"


@dataclass(frozen=True)
class Map(WireValue):
    type_name: ClassVar[str] = "map"

    pairs: tuple[tuple[WireValue, WireValue], ...]

    def __len__(self) -> int:
        return len(self.pairs)


@dataclass(frozen=True)
class Attribute(WireValue):
    """A value together with the attribute map sent in front of it."""

    type_name: ClassVar[str] = "attribute"

    pairs: tuple[tuple[WireValue, WireValue], ...]
    value: WireValue


ERROR_TYPES = (Error, BulkError)
STRING_TYPES = (SimpleString, BulkString, VerbatimString)
SEQUENCE_TYPES = (Array, Set, Push)
