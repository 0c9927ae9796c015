"""Shared base of the command mixins."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from valkeywire.domain.value_objects.key import ValkeyKey
from valkeywire.domain.value_objects.wire_value import WireValue

if TYPE_CHECKING:
    from valkeywire.protocol.encoder import CommandArg

KeyArg = ValkeyKey | str | bytes


class CommandMixin:
    """Base of the command mixins.

    The class the mixins are combined into provides execute(), normally
    through valkeywire.core.CommandExecutor.
    """

    if TYPE_CHECKING:

        async def execute(self, *args: CommandArg, decode_as: Any = WireValue) -> Any: ...


def keys_with_count(keys: Iterable[KeyArg]) -> list[KeyArg]:
    """Return [numkeys, key, ...] as used by LMPOP, FCALL and EVAL."""
    keys = list(keys)
    return [len(keys), *keys]
