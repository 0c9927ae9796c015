"""Testing utilities for valkey-wire.

This module provides helpers for tests that talk to a real server.

Example:
    >>> from valkeywire import HostnameAddress, ValkeyClient
    >>> from valkeywire.testing import run_client, with_key
    >>>
    >>> async def scenario(client):
    ...     async with with_key(client) as key:
    ...         await client.lpush(key, "a")
    ...         return await client.llen(key)
    >>>
    >>> client = ValkeyClient(HostnameAddress("localhost"))
    >>> assert await run_client(client, scenario) == 1
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, TypeVar

from valkeywire.domain.value_objects.key import ValkeyKey
from valkeywire.exceptions import ValkeyError

if TYPE_CHECKING:
    from valkeywire.client import ValkeyClient
    from valkeywire.core import CommandExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def with_key(executor: CommandExecutor, prefix: str = "") -> AsyncIterator[ValkeyKey]:
    """Provide a fresh random key and delete it afterwards.

    The key is deleted on every exit path. When the body raised, a failing
    deletion is logged and the body's exception propagates; when the body
    succeeded, a failing deletion is raised.

    Args:
        executor: Client or connection used for the cleanup DEL
        prefix: Optional key prefix

    Example:
        >>> async with with_key(client) as key:
        ...     await client.set(key, "value")
    """
    key = ValkeyKey.random(prefix)
    try:
        yield key
    except BaseException:
        try:
            await executor.execute("DEL", key, decode_as=int)
        except (ValkeyError, OSError) as cleanup_error:
            logger.warning("Failed to delete test key %s: %s", key, cleanup_error)
        raise
    await executor.execute("DEL", key, decode_as=int)


async def run_client(
    client: ValkeyClient,
    operation: Callable[[ValkeyClient], Awaitable[T]],
) -> T:
    """Run client.run() alongside operation and return the operation's result.

    Whichever finishes first wins: the other one is cancelled. If the run
    loop ends first (for example because it gave up reconnecting), its error
    is raised.

    Args:
        client: Client to run
        operation: Coroutine function receiving the client

    Returns:
        The value returned by operation
    """
    run_task = asyncio.create_task(client.run(), name=f"valkeywire-run-{client.name}")
    operation_task = asyncio.create_task(operation(client))
    try:
        done, _ = await asyncio.wait(
            {run_task, operation_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if operation_task in done:
            return operation_task.result()
        # The run loop ended first: surface its error, or a plain stop
        run_task.result()
        raise RuntimeError(f"Client '{client.name}' stopped before the operation completed")
    finally:
        for task in (operation_task, run_task):
            task.cancel()
        await asyncio.gather(operation_task, run_task, return_exceptions=True)
