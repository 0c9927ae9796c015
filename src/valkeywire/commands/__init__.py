"""Command surface.

Each mixin turns typed arguments into a command, sends it through execute()
and decodes the reply. ValkeyCommands combines them; ValkeyConnection and
ValkeyClient both inherit it.
"""

from valkeywire.commands.functions import FunctionCommands
from valkeywire.commands.generic import GenericCommands
from valkeywire.commands.geo import (
    ByBox,
    ByRadius,
    FromLonLat,
    FromMember,
    GeoCommands,
    GeoMember,
    GeoOrder,
    GeoUnit,
)
from valkeywire.commands.lists import ListCommands, ListWhere
from valkeywire.commands.replies import (
    FunctionInfo,
    FunctionLibrary,
    GeoCoordinates,
    GeoSearchEntry,
    ListPopResult,
    ReplicaInfo,
    Role,
)
from valkeywire.commands.scripting import ScriptingCommands
from valkeywire.commands.server import ServerCommands


class ValkeyCommands(
    GenericCommands,
    ListCommands,
    GeoCommands,
    FunctionCommands,
    ScriptingCommands,
    ServerCommands,
):
    """All commands, for classes that provide execute()."""


__all__ = [
    "ByBox",
    "ByRadius",
    "FromLonLat",
    "FromMember",
    "FunctionInfo",
    "FunctionLibrary",
    "GeoCoordinates",
    "GeoMember",
    "GeoOrder",
    "GeoSearchEntry",
    "GeoUnit",
    "ListPopResult",
    "ListWhere",
    "ReplicaInfo",
    "Role",
    "ValkeyCommands",
]
