"""Domain value objects: keys and decoded wire values."""

from valkeywire.domain.value_objects.key import ValkeyKey
from valkeywire.domain.value_objects.wire_value import (
    Array,
    Attribute,
    BigNumber,
    Boolean,
    BulkError,
    BulkString,
    Double,
    Error,
    Integer,
    Map,
    Null,
    Push,
    Set,
    SimpleString,
    VerbatimString,
    WireValue,
)

__all__ = [
    "ValkeyKey",
    "WireValue",
    "Null",
    "Boolean",
    "Integer",
    "Double",
    "BigNumber",
    "SimpleString",
    "BulkString",
    "VerbatimString",
    "Error",
    "BulkError",
    "Array",
    "Set",
    "Map",
    "Push",
    "Attribute",
]
