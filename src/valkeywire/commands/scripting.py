"""Lua scripting commands (EVAL, EVALSHA, SCRIPT LOAD/SHOW/EXISTS)."""

from __future__ import annotations

from collections.abc import Iterable

from valkeywire.commands.base import CommandMixin, KeyArg, keys_with_count
from valkeywire.domain.value_objects.wire_value import WireValue


class ScriptingCommands(CommandMixin):
    """Script cache management and evaluation."""

    async def script_load(self, script: str) -> str:
        """Load a script into the script cache; returns its SHA1 digest."""
        return await self.execute("SCRIPT", "LOAD", script, decode_as=str)

    async def script_show(self, sha1: str) -> str:
        """Return the source of a cached script (Valkey 8+)."""
        return await self.execute("SCRIPT", "SHOW", sha1, decode_as=str)

    async def script_exists(self, *sha1s: str) -> list[bool]:
        """Report, for each digest, whether the script is cached."""
        if not sha1s:
            raise ValueError("script_exists() requires at least one digest")
        return await self.execute("SCRIPT", "EXISTS", *sha1s, decode_as=list[bool])

    async def eval(
        self,
        script: str,
        keys: Iterable[KeyArg] = (),
        args: Iterable[str | bytes | int | float] = (),
    ) -> WireValue:
        """Run a script; the reply is whatever the script returned."""
        return await self.execute("EVAL", script, *keys_with_count(keys), *args)

    async def evalsha(
        self,
        sha1: str,
        keys: Iterable[KeyArg] = (),
        args: Iterable[str | bytes | int | float] = (),
    ) -> WireValue:
        """Run a cached script by digest."""
        return await self.execute("EVALSHA", sha1, *keys_with_count(keys), *args)
