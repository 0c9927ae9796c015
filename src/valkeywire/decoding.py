"""Typed decoding of wire values.

Command wrappers receive a generic WireValue and narrow it to the Python
shape their caller asked for. The requested shape is a type hint:

    decode(value, str)                      # any string, or an integer in base 10
    decode(value, int | None)               # Null becomes None
    decode(value, list[str])                # array or set, element by element
    decode(value, tuple[bytes, list[str]])  # fixed arity array
    decode(value, dict[str, int])           # map (or RESP2 flat array)
    decode(value, GeoCoordinates)           # any class with from_wire()

Every supported shape is listed in this module. A shape that is not supported
raises TypeError, and a reply that does not fit the requested shape raises
DecodeError. Nothing is coerced between incompatible shapes: an Integer is
never a sequence, and a sequence is never a string.

Attributes sent in front of a value do not change how the value decodes; they
are read separately through attributes_of().
"""

from __future__ import annotations

import re
import types
from collections.abc import Callable
from typing import Any, Protocol, Union, get_args, get_origin, runtime_checkable

from valkeywire.domain.value_objects.key import ValkeyKey
from valkeywire.domain.value_objects.wire_value import (
    ERROR_TYPES,
    SEQUENCE_TYPES,
    STRING_TYPES,
    Array,
    Attribute,
    BigNumber,
    Boolean,
    Double,
    Integer,
    Map,
    Null,
    Push,
    Set,
    WireValue,
)
from valkeywire.exceptions import DecodeError, ServerError

_INTEGER_TEXT = re.compile(rb"[+-]?[0-9]+")


@runtime_checkable
class WireDecodable(Protocol):
    """Protocol for reply types that know how to build themselves."""

    @classmethod
    def from_wire(cls, value: WireValue) -> Any:
        """Build an instance from a wire value, raising DecodeError on mismatch."""
        ...


def unwrap(value: WireValue) -> WireValue:
    """Return the primary value, stripping any attributes attached to it."""
    while isinstance(value, Attribute):
        value = value.value
    return value


def _target_name(target: Any) -> str:
    if isinstance(target, type):
        return target.__name__
    return repr(target).replace("typing.", "")


def _mismatch(value: WireValue, target: Any) -> DecodeError:
    return DecodeError(
        "Reply does not have the requested shape",
        expected=_target_name(target),
        received=value.type_name,
    )


# =============================================================================
# SCALARS
# =============================================================================


def _decode_bytes(value: WireValue) -> bytes:
    if isinstance(value, STRING_TYPES):
        return value.value
    if isinstance(value, (Integer, BigNumber)):
        return str(value.value).encode("ascii")
    raise _mismatch(value, bytes)


def _decode_str(value: WireValue) -> str:
    if isinstance(value, STRING_TYPES):
        try:
            return value.value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"String reply is not valid UTF-8: {e}") from e
    if isinstance(value, (Integer, BigNumber)):
        # Geohashes and similar identifiers arrive as integers
        return str(value.value)
    raise _mismatch(value, str)


def _decode_int(value: WireValue) -> int:
    if isinstance(value, (Integer, BigNumber)):
        return value.value
    if isinstance(value, STRING_TYPES) and _INTEGER_TEXT.fullmatch(value.value):
        return int(value.value)
    raise _mismatch(value, int)


def _decode_float(value: WireValue) -> float:
    if isinstance(value, Double):
        return value.value
    if isinstance(value, (Integer, BigNumber)):
        return float(value.value)
    if isinstance(value, STRING_TYPES):
        # RESP2 servers send doubles (scores, distances) as bulk strings
        try:
            return float(value.value)
        except ValueError:
            pass
    raise _mismatch(value, float)


def _decode_bool(value: WireValue) -> bool:
    if isinstance(value, Boolean):
        return value.value
    if isinstance(value, Integer) and value.value in (0, 1):
        return value.value == 1
    raise _mismatch(value, bool)


def _decode_key(value: WireValue) -> ValkeyKey:
    if isinstance(value, STRING_TYPES):
        return ValkeyKey(value.value)
    raise _mismatch(value, ValkeyKey)


_SCALAR_DECODERS: dict[Any, Callable[[WireValue], Any]] = {
    bytes: _decode_bytes,
    str: _decode_str,
    int: _decode_int,
    float: _decode_float,
    bool: _decode_bool,
    ValkeyKey: _decode_key,
}


# =============================================================================
# AGGREGATES
# =============================================================================


def _map_pairs(value: WireValue, target: Any) -> tuple[tuple[WireValue, WireValue], ...]:
    """Return key/value pairs of a map-shaped reply.

    RESP2 servers send maps as flat arrays of alternating keys and values,
    so an even-length Array is accepted wherever a map is requested.
    """
    if isinstance(value, Map):
        return value.pairs
    if isinstance(value, Array):
        if len(value.elements) % 2:
            raise DecodeError(
                "Flat array cannot be read as a map: odd number of elements",
                expected=_target_name(target),
                received=f"array of {len(value.elements)}",
            )
        elements = value.elements
        return tuple((elements[i], elements[i + 1]) for i in range(0, len(elements), 2))
    raise _mismatch(value, target)


def map_pairs(value: WireValue) -> tuple[tuple[WireValue, WireValue], ...]:
    """Return the key/value pairs of a Map (or RESP2 flat array) reply."""
    return _map_pairs(unwrap(value), dict)


def _decode_list(value: WireValue, target: Any, args: tuple[Any, ...]) -> list[Any]:
    if not isinstance(value, SEQUENCE_TYPES):
        raise _mismatch(value, target)
    element_type = args[0] if args else WireValue
    return [decode(element, element_type) for element in value.elements]


def _decode_set(value: WireValue, target: Any, args: tuple[Any, ...]) -> set[Any]:
    if not isinstance(value, (Set, Array)):
        raise _mismatch(value, target)
    element_type = args[0] if args else WireValue
    return {decode(element, element_type) for element in value.elements}


def _decode_tuple(value: WireValue, target: Any, args: tuple[Any, ...]) -> tuple[Any, ...]:
    if not isinstance(value, (Array, Set, Push)):
        raise _mismatch(value, target)
    elements = value.elements

    # tuple[X, ...] is a homogeneous sequence of any length
    if len(args) == 2 and args[1] is Ellipsis:
        return tuple(decode(element, args[0]) for element in elements)

    if not args:
        return elements

    if len(elements) != len(args):
        raise DecodeError(
            "Reply has the wrong number of elements",
            expected=f"{len(args)} elements",
            received=f"{len(elements)} elements",
        )
    return tuple(decode(element, arg) for element, arg in zip(elements, args))


def _decode_dict(value: WireValue, target: Any, args: tuple[Any, ...]) -> dict[Any, Any]:
    key_type, value_type = args if args else (WireValue, WireValue)
    return {
        decode(key, key_type): decode(item, value_type)
        for key, item in _map_pairs(value, target)
    }


_AGGREGATE_DECODERS: dict[Any, Callable[[WireValue, Any, tuple[Any, ...]], Any]] = {
    list: _decode_list,
    set: _decode_set,
    frozenset: lambda value, target, args: frozenset(_decode_set(value, target, args)),
    tuple: _decode_tuple,
    dict: _decode_dict,
}


# =============================================================================
# ENTRY POINT
# =============================================================================


def decode(value: WireValue, target: Any) -> Any:
    """Decode a wire value as the requested shape.

    Args:
        value: Reply received from the server
        target: Requested shape (type hint), see module documentation

    Returns:
        The decoded value

    Raises:
        DecodeError: If the reply does not have the requested shape
        ServerError: If the reply (or an element of it) is an error value
        TypeError: If target is not a supported shape
    """
    origin = get_origin(target)
    args = get_args(target)
    if origin is None and target in _AGGREGATE_DECODERS:
        origin = target

    # Raw access to a specific wire value type, attributes included
    if origin is None and isinstance(target, type) and issubclass(target, WireValue):
        if target is not Attribute:
            value = unwrap(value)
        if isinstance(value, target):
            return value
        raise _mismatch(value, target)

    value = unwrap(value)

    if origin is Union or origin is types.UnionType:
        optional = type(None) in args
        choices = [arg for arg in args if arg is not type(None)]
        if len(choices) != 1:
            raise TypeError(f"Only 'X | None' unions can be decoded, got {_target_name(target)}")
        if optional and isinstance(value, Null):
            return None
        return decode(value, choices[0])

    if isinstance(value, ERROR_TYPES):
        raise ServerError(value.message)

    if isinstance(value, Null):
        raise DecodeError(
            "Unexpected null reply",
            expected=_target_name(target),
            received=value.type_name,
        )

    if origin is None:
        scalar = _SCALAR_DECODERS.get(target)
        if scalar is not None:
            return scalar(value)
        if isinstance(target, type) and callable(getattr(target, "from_wire", None)):
            return target.from_wire(value)
        raise TypeError(f"Cannot decode replies as {_target_name(target)}")

    aggregate = _AGGREGATE_DECODERS.get(origin)
    if aggregate is not None:
        return aggregate(value, target, args)

    raise TypeError(f"Cannot decode replies as {_target_name(target)}")


# =============================================================================
# PARTIAL CONSUMPTION
# =============================================================================


class WireCursor:
    """Read the elements of an Array, Set or Push one at a time.

    Example:
        >>> cursor = WireCursor(reply)
        >>> member = cursor.next(str)
        >>> distance = cursor.next(float)
        >>> cursor.at_end
        True
    """

    def __init__(self, value: WireValue) -> None:
        value = unwrap(value)
        if not isinstance(value, SEQUENCE_TYPES):
            raise DecodeError(
                "Only sequences can be read with a cursor",
                expected="array",
                received=value.type_name,
            )
        self._elements = value.elements
        self._position = 0

    @property
    def position(self) -> int:
        """Index of the next element to be read."""
        return self._position

    @property
    def remaining(self) -> int:
        """Number of elements not read yet."""
        return len(self._elements) - self._position

    @property
    def at_end(self) -> bool:
        """True once every element was read."""
        return self._position >= len(self._elements)

    def next(self, target: Any = WireValue) -> Any:
        """Decode the next element as target and advance.

        Raises:
            DecodeError: If there is no element left, or it has the wrong shape
        """
        if self.at_end:
            raise DecodeError(
                f"Read past the end of a {len(self._elements)} element sequence",
                expected="one more element",
                received="end of sequence",
            )
        element = self._elements[self._position]
        self._position += 1
        return decode(element, target)

    def skip(self, count: int = 1) -> None:
        """Advance over count elements without decoding them."""
        if count < 0 or count > self.remaining:
            raise DecodeError(
                f"Cannot skip {count} elements",
                expected=f"at most {self.remaining}",
                received=str(count),
            )
        self._position += count

    def rest(self, target: Any = WireValue) -> list[Any]:
        """Decode every remaining element as target."""
        values = [decode(element, target) for element in self._elements[self._position :]]
        self._position = len(self._elements)
        return values


class ByteReader:
    """Read fixed-width pieces of a string reply.

    Example:
        >>> reader = ByteReader(BulkString(b"abcdef"))
        >>> reader.read_string(2)
        'ab'
        >>> reader.remaining
        4
    """

    def __init__(self, value: WireValue | bytes) -> None:
        if isinstance(value, WireValue):
            self._payload = _decode_bytes(unwrap(value))
        else:
            self._payload = bytes(value)
        self._position = 0

    @property
    def remaining(self) -> int:
        """Number of bytes not read yet."""
        return len(self._payload) - self._position

    def read_bytes(self, length: int) -> bytes:
        """Read exactly length bytes.

        Raises:
            DecodeError: If fewer than length bytes are left
        """
        if length < 0 or length > self.remaining:
            raise DecodeError(
                "Read past the end of the string payload",
                expected=f"{length} bytes",
                received=f"{self.remaining} bytes left",
            )
        start = self._position
        self._position += length
        return self._payload[start : self._position]

    def read_string(self, length: int, encoding: str = "utf-8") -> str:
        """Read exactly length bytes and decode them as text."""
        raw = self.read_bytes(length)
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError as e:
            raise DecodeError(f"String payload is not valid {encoding}: {e}") from e

    def read_rest(self) -> bytes:
        """Read every remaining byte."""
        return self.read_bytes(self.remaining)


# =============================================================================
# ATTRIBUTES
# =============================================================================


class AttributeView:
    """Positional and keyed access to attribute pairs.

    ``view[0]`` returns the first (key, value) pair; ``view["ttl"]`` returns
    the value stored under a string key.
    """

    def __init__(self, pairs: tuple[tuple[WireValue, WireValue], ...]) -> None:
        self._pairs = pairs

    def __len__(self) -> int:
        return len(self._pairs)

    def __getitem__(self, item: int | str | bytes) -> Any:
        if isinstance(item, int):
            return self._pairs[item]
        found = self.get(item)
        if found is None:
            raise KeyError(item)
        return found

    def __iter__(self):
        return iter(self._pairs)

    def get(self, key: str | bytes, default: WireValue | None = None) -> WireValue | None:
        """Return the value stored under key, or default."""
        wanted = key.encode("utf-8") if isinstance(key, str) else key
        for pair_key, pair_value in self._pairs:
            pair_key = unwrap(pair_key)
            if isinstance(pair_key, STRING_TYPES) and pair_key.value == wanted:
                return pair_value
        return default

    def decode(self, key: int | str | bytes, target: Any) -> Any:
        """Decode the value at position or under key as target."""
        if isinstance(key, int):
            return decode(self._pairs[key][1], target)
        return decode(self[key], target)


def attributes_of(value: WireValue) -> AttributeView | None:
    """Return the attributes attached to value, or None if it carries none."""
    if isinstance(value, Attribute):
        return AttributeView(value.pairs)
    return None


__all__ = [
    "AttributeView",
    "ByteReader",
    "WireCursor",
    "WireDecodable",
    "attributes_of",
    "decode",
    "map_pairs",
    "unwrap",
]
