"""List commands."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from valkeywire.commands.base import CommandMixin, KeyArg, keys_with_count
from valkeywire.commands.replies import ListPopResult
from valkeywire.domain.value_objects.wire_value import Array


class ListWhere(str, Enum):
    """End of a list to pop from or push to."""

    LEFT = "LEFT"
    RIGHT = "RIGHT"


class ListCommands(CommandMixin):
    """LPUSH, RPUSH, LRANGE, LLEN, LMPOP and LMOVE."""

    async def lpush(self, key: KeyArg, *elements: str | bytes | int | float) -> int:
        """Prepend elements; returns the list length after the push."""
        if not elements:
            raise ValueError("lpush() requires at least one element")
        return await self.execute("LPUSH", key, *elements, decode_as=int)

    async def rpush(self, key: KeyArg, *elements: str | bytes | int | float) -> int:
        """Append elements; returns the list length after the push."""
        if not elements:
            raise ValueError("rpush() requires at least one element")
        return await self.execute("RPUSH", key, *elements, decode_as=int)

    async def lrange(self, key: KeyArg, start: int, stop: int) -> Array:
        """Return the elements between start and stop (inclusive), undecoded.

        Example:
            >>> await client.lrange(key, 0, -1).decode(list[str])
        """
        return await self.execute("LRANGE", key, start, stop, decode_as=Array)

    async def llen(self, key: KeyArg) -> int:
        """Return the length of the list at key (0 if missing)."""
        return await self.execute("LLEN", key, decode_as=int)

    async def lmpop(
        self,
        keys: Iterable[KeyArg],
        where: ListWhere,
        count: int | None = None,
    ) -> ListPopResult | None:
        """Pop elements from the first non-empty list among keys.

        Args:
            keys: Candidate lists, checked in order
            where: End to pop from
            count: Maximum number of elements to pop (server default: 1)

        Returns:
            The list popped from and its elements, or None if every list is empty
        """
        args: list = ["LMPOP", *keys_with_count(keys), where]
        if count is not None:
            args += ["COUNT", count]
        return await self.execute(*args, decode_as=ListPopResult | None)

    async def lmove(
        self,
        source: KeyArg,
        destination: KeyArg,
        wherefrom: ListWhere,
        whereto: ListWhere,
    ) -> bytes | None:
        """Atomically move one element from source to destination.

        Returns:
            The moved element, or None if source is empty
        """
        return await self.execute(
            "LMOVE", source, destination, wherefrom, whereto, decode_as=bytes | None
        )
