"""Geospatial commands."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Union

from valkeywire.commands.base import CommandMixin, KeyArg
from valkeywire.commands.replies import GeoCoordinates, GeoSearchEntry


class GeoUnit(str, Enum):
    """Distance unit."""

    M = "m"
    KM = "km"
    FT = "ft"
    MI = "mi"


class GeoOrder(str, Enum):
    """Sort order of search results, by distance from the origin."""

    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class GeoMember:
    """A member to add with GEOADD."""

    longitude: float
    latitude: float
    member: str | bytes


@dataclass(frozen=True)
class FromMember:
    """Search around the position of an existing member."""

    member: str | bytes

    def to_args(self) -> list:
        return ["FROMMEMBER", self.member]


@dataclass(frozen=True)
class FromLonLat:
    """Search around a longitude/latitude position."""

    longitude: float
    latitude: float

    def to_args(self) -> list:
        return ["FROMLONLAT", self.longitude, self.latitude]


@dataclass(frozen=True)
class ByRadius:
    """Circular search area."""

    radius: float
    unit: GeoUnit = GeoUnit.M

    def to_args(self) -> list:
        return ["BYRADIUS", self.radius, self.unit]


@dataclass(frozen=True)
class ByBox:
    """Rectangular search area, centered on the origin."""

    width: float
    height: float
    unit: GeoUnit = GeoUnit.M

    def to_args(self) -> list:
        return ["BYBOX", self.width, self.height, self.unit]


GeoOrigin = Union[FromMember, FromLonLat]
GeoShape = Union[ByRadius, ByBox]


class GeoCommands(CommandMixin):
    """GEOADD, GEOPOS, GEODIST and GEOSEARCH."""

    async def geoadd(
        self,
        key: KeyArg,
        members: Iterable[GeoMember],
        *,
        nx: bool = False,
        xx: bool = False,
        ch: bool = False,
    ) -> int:
        """Add members to a geospatial index.

        Returns:
            Number of members added (or changed, with ch=True)
        """
        if nx and xx:
            raise ValueError("nx and xx are mutually exclusive")
        args: list = ["GEOADD", key]
        if nx:
            args.append("NX")
        if xx:
            args.append("XX")
        if ch:
            args.append("CH")
        count = len(args)
        for item in members:
            args += [item.longitude, item.latitude, item.member]
        if len(args) == count:
            raise ValueError("geoadd() requires at least one member")
        return await self.execute(*args, decode_as=int)

    async def geopos(self, key: KeyArg, *members: str | bytes) -> list[GeoCoordinates | None]:
        """Return the position of each member (None for unknown members)."""
        return await self.execute(
            "GEOPOS", key, *members, decode_as=list[GeoCoordinates | None]
        )

    async def geodist(
        self,
        key: KeyArg,
        member1: str | bytes,
        member2: str | bytes,
        unit: GeoUnit | None = None,
    ) -> float | None:
        """Return the distance between two members, or None if one is missing."""
        args: list = ["GEODIST", key, member1, member2]
        if unit is not None:
            args.append(unit)
        return await self.execute(*args, decode_as=float | None)

    async def geosearch(
        self,
        key: KeyArg,
        origin: GeoOrigin,
        shape: GeoShape,
        *,
        order: GeoOrder | None = None,
        count: int | None = None,
        any_: bool = False,
        withcoord: bool = False,
        withdist: bool = False,
        withhash: bool = False,
    ) -> list[GeoSearchEntry]:
        """Search members inside an area.

        Args:
            key: Geospatial index
            origin: Center of the area (FromMember or FromLonLat)
            shape: Area (ByRadius or ByBox)
            order: Sort by distance from the origin
            count: Maximum number of matches
            any_: With count, return as soon as count matches were found
            withcoord: Include each match's coordinates
            withdist: Include each match's distance from the origin
            withhash: Include each match's geohash

        Returns:
            Matches; requested extras are in GeoSearchEntry.attributes, in the
            order distance, hash, coordinates
        """
        if any_ and count is None:
            raise ValueError("any_ requires count")

        args: list = ["GEOSEARCH", key, *origin.to_args(), *shape.to_args()]
        if order is not None:
            args.append(order)
        if count is not None:
            args += ["COUNT", count]
            if any_:
                args.append("ANY")
        if withcoord:
            args.append("WITHCOORD")
        if withdist:
            args.append("WITHDIST")
        if withhash:
            args.append("WITHHASH")
        return await self.execute(*args, decode_as=list[GeoSearchEntry])
