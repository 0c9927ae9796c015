"""Server introspection commands."""

from __future__ import annotations

from valkeywire.commands.base import CommandMixin
from valkeywire.commands.replies import Role


class ServerCommands(CommandMixin):
    """ROLE."""

    async def role(self) -> Role:
        """Return the replication role of the server."""
        return await self.execute("ROLE", decode_as=Role)
