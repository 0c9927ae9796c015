"""Key and string commands."""

from __future__ import annotations

from valkeywire.commands.base import CommandMixin, KeyArg


class GenericCommands(CommandMixin):
    """PING, DEL, EXISTS, GET and SET."""

    async def ping(self, message: str | bytes | None = None) -> str:
        """Ping the server; returns "PONG" or the echoed message."""
        if message is None:
            return await self.execute("PING", decode_as=str)
        return await self.execute("PING", message, decode_as=str)

    async def delete(self, *keys: KeyArg) -> int:
        """Delete keys; returns the number of keys that existed."""
        if not keys:
            raise ValueError("delete() requires at least one key")
        return await self.execute("DEL", *keys, decode_as=int)

    async def exists(self, *keys: KeyArg) -> int:
        """Return how many of the keys exist (repeated keys count twice)."""
        if not keys:
            raise ValueError("exists() requires at least one key")
        return await self.execute("EXISTS", *keys, decode_as=int)

    async def get(self, key: KeyArg) -> bytes | None:
        """Return the string stored at key, or None."""
        return await self.execute("GET", key, decode_as=bytes | None)

    async def set(
        self,
        key: KeyArg,
        value: str | bytes | int | float,
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool = False,
        xx: bool = False,
    ) -> bool:
        """Store a string value.

        Args:
            key: Key to write
            value: Value to store
            ex: Expire after this many seconds
            px: Expire after this many milliseconds
            nx: Only set if the key does not exist
            xx: Only set if the key already exists

        Returns:
            True if the value was stored, False if the NX/XX condition failed
        """
        if nx and xx:
            raise ValueError("nx and xx are mutually exclusive")
        if ex is not None and px is not None:
            raise ValueError("ex and px are mutually exclusive")

        args: list = ["SET", key, value]
        if ex is not None:
            args += ["EX", ex]
        if px is not None:
            args += ["PX", px]
        if nx:
            args.append("NX")
        if xx:
            args.append("XX")
        return await self.execute(*args, decode_as=str | None) is not None
