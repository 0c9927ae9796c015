"""Server-side function commands (FUNCTION LOAD/LIST/DELETE, FCALL)."""

from __future__ import annotations

from collections.abc import Iterable

from valkeywire.commands.base import CommandMixin, KeyArg, keys_with_count
from valkeywire.commands.replies import FunctionLibrary
from valkeywire.domain.value_objects.wire_value import WireValue


class FunctionCommands(CommandMixin):
    """Function library management and invocation."""

    async def function_load(self, code: str, replace: bool = False) -> str:
        """Load a function library.

        Args:
            code: Library source, starting with a "#!<engine> name=<library>" line
            replace: Replace an existing library with the same name

        Returns:
            The library name
        """
        args: list = ["FUNCTION", "LOAD"]
        if replace:
            args.append("REPLACE")
        args.append(code)
        return await self.execute(*args, decode_as=str)

    async def function_list(
        self,
        library_name_pattern: str | None = None,
        withcode: bool = False,
    ) -> list[FunctionLibrary]:
        """List loaded libraries, optionally filtered by a glob-style name pattern."""
        args: list = ["FUNCTION", "LIST"]
        if library_name_pattern is not None:
            args += ["LIBRARYNAME", library_name_pattern]
        if withcode:
            args.append("WITHCODE")
        return await self.execute(*args, decode_as=list[FunctionLibrary])

    async def function_delete(self, library_name: str) -> None:
        """Delete a library and all its functions."""
        await self.execute("FUNCTION", "DELETE", library_name, decode_as=str)

    async def fcall(
        self,
        function: str,
        keys: Iterable[KeyArg] = (),
        args: Iterable[str | bytes | int | float] = (),
    ) -> WireValue:
        """Invoke a function; the reply is whatever the function returned."""
        return await self.execute("FCALL", function, *keys_with_count(keys), *args)
