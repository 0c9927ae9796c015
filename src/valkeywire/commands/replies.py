"""Typed replies of the command surface.

Every class here implements from_wire() so it can be used directly as a
decode target:

    coordinates = reply.decode(GeoCoordinates)
    libraries = reply.decode(list[FunctionLibrary])
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from valkeywire.decoding import decode, map_pairs
from valkeywire.domain.value_objects.key import ValkeyKey
from valkeywire.domain.value_objects.wire_value import (
    SEQUENCE_TYPES,
    STRING_TYPES,
    Array,
    WireValue,
)
from valkeywire.exceptions import DecodeError


def _fields(value: WireValue) -> dict[str, WireValue]:
    """Index a map reply (or its RESP2 flat array form) by string key."""
    return {decode(key, str): item for key, item in map_pairs(value)}


def _require(fields: dict[str, WireValue], name: str, expected: str) -> WireValue:
    try:
        return fields[name]
    except KeyError:
        raise DecodeError(
            f"Reply has no '{name}' field", expected=expected, received=", ".join(fields)
        ) from None


@dataclass(frozen=True)
class ListPopResult:
    """Reply of LMPOP: the list that was popped from and the popped elements.

    Attributes:
        key: First key (in argument order) that held elements
        values: Popped elements, left undecoded
    """

    key: ValkeyKey
    values: Array

    @classmethod
    def from_wire(cls, value: WireValue) -> ListPopResult:
        key, values = decode(value, tuple[ValkeyKey, Array])
        return cls(key=key, values=values)


@dataclass(frozen=True)
class GeoCoordinates:
    """Longitude/latitude pair."""

    longitude: float
    latitude: float

    @classmethod
    def from_wire(cls, value: WireValue) -> GeoCoordinates:
        longitude, latitude = decode(value, tuple[float, float])
        return cls(longitude=longitude, latitude=latitude)


@dataclass(frozen=True)
class GeoSearchEntry:
    """One match of GEOSEARCH.

    When WITHDIST, WITHHASH or WITHCOORD were requested, attributes holds the
    extra values in the server's order (distance, hash, coordinates), only
    for the options that were requested. They stay undecoded:

        distance = entry.attributes[0].decode(float)
        coordinates = entry.attributes[2].decode(GeoCoordinates)

    Attributes:
        member: Name of the matching member
        attributes: Values returned alongside the member
    """

    member: str
    attributes: tuple[WireValue, ...] = ()

    @classmethod
    def from_wire(cls, value: WireValue) -> GeoSearchEntry:
        if isinstance(value, STRING_TYPES):
            return cls(member=decode(value, str))
        if isinstance(value, SEQUENCE_TYPES) and len(value) >= 1:
            return cls(member=decode(value[0], str), attributes=tuple(value.elements[1:]))
        raise DecodeError(
            "Cannot decode geo search entry",
            expected="string or array",
            received=value.type_name,
        )


@dataclass(frozen=True)
class FunctionInfo:
    """A function registered by a library.

    Attributes:
        name: Function name, as used with FCALL
        description: Description given at registration, if any
        flags: Function flags (e.g. "no-writes")
    """

    name: str
    description: str | None = None
    flags: frozenset[str] = frozenset()

    @classmethod
    def from_wire(cls, value: WireValue) -> FunctionInfo:
        fields = _fields(value)
        flags = fields.get("flags")
        description = fields.get("description")
        return cls(
            name=decode(_require(fields, "name", "function description"), str),
            description=None if description is None else decode(description, str | None),
            flags=frozenset() if flags is None else frozenset(decode(flags, list[str])),
        )


@dataclass(frozen=True)
class FunctionLibrary:
    """An entry of FUNCTION LIST.

    Attributes:
        library_name: Name declared in the library's shebang line
        engine: Scripting engine, e.g. "LUA"
        functions: Functions the library registered
        library_code: Source code (only with WITHCODE)
    """

    library_name: str
    engine: str
    functions: tuple[FunctionInfo, ...] = ()
    library_code: str | None = None

    @classmethod
    def from_wire(cls, value: WireValue) -> FunctionLibrary:
        fields = _fields(value)
        code = fields.get("library_code")
        return cls(
            library_name=decode(_require(fields, "library_name", "function library"), str),
            engine=decode(_require(fields, "engine", "function library"), str),
            functions=tuple(
                decode(_require(fields, "functions", "function library"), list[FunctionInfo])
            ),
            library_code=None if code is None else decode(code, str | None),
        )


@dataclass(frozen=True)
class ReplicaInfo:
    """A replica as reported by ROLE on a primary."""

    host: str
    port: int
    replication_offset: int


@dataclass(frozen=True)
class Role:
    """Reply of ROLE.

    Attributes:
        kind: "primary", "replica" or "sentinel"
        replication_offset: Primary: current offset. Replica: offset received so far
        replicas: Primary only, the connected replicas
        primary_host: Replica only, host of its primary
        primary_port: Replica only, port of its primary
        replication_state: Replica only, e.g. "connected" or "sync"
        monitored_primaries: Sentinel only, names of the monitored primaries
    """

    kind: Literal["primary", "replica", "sentinel"]
    replication_offset: int | None = None
    replicas: tuple[ReplicaInfo, ...] = ()
    primary_host: str | None = None
    primary_port: int | None = None
    replication_state: str | None = None
    monitored_primaries: tuple[str, ...] = ()

    @classmethod
    def from_wire(cls, value: WireValue) -> Role:
        cursor = decode(value, Array).cursor()
        name = cursor.next(str)

        if name == "master":
            offset = cursor.next(int)
            replicas = tuple(
                ReplicaInfo(host=host, port=port, replication_offset=replica_offset)
                for host, port, replica_offset in cursor.next(list[tuple[str, int, int]])
            )
            return cls(kind="primary", replication_offset=offset, replicas=replicas)

        if name == "slave":
            host = cursor.next(str)
            port = cursor.next(int)
            state = cursor.next(str)
            offset = cursor.next(int)
            return cls(
                kind="replica",
                replication_offset=offset,
                primary_host=host,
                primary_port=port,
                replication_state=state,
            )

        if name == "sentinel":
            return cls(kind="sentinel", monitored_primaries=tuple(cursor.next(list[str])))

        raise DecodeError(
            f"Unknown role '{name}'",
            expected="master, slave or sentinel",
            received=name,
        )
