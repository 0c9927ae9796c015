"""Request/reply matching for one connection.

The server answers the commands of a connection strictly in the order they
were written. The pipeline records one PendingRequest per written command and
hands every reply to the oldest one.

Callers that stop waiting (cancelled, timed out) keep their slot in the
queue: the command was already written, so its reply will still arrive and is
consumed and dropped in order. Without that, every later caller would receive
the reply meant for the caller before it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field

from valkeywire.domain.value_objects.wire_value import WireValue
from valkeywire.exceptions import ValkeyConnectionError

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """One command waiting for its reply.

    Attributes:
        command: Command name, for logs and errors
        future: Completion slot, resolved exactly once
        started_at: time.perf_counter() when the request was registered
    """

    command: str
    future: asyncio.Future[WireValue]
    started_at: float = field(default_factory=time.perf_counter)

    @property
    def detached(self) -> bool:
        """True when the caller stopped waiting for the reply."""
        return self.future.cancelled()

    def detach(self) -> None:
        """Stop waiting for the reply; it will be discarded when it arrives."""
        self.future.cancel()

    async def wait(self) -> WireValue:
        """Wait for the reply (cancelling the wait detaches the request)."""
        return await self.future


class CommandPipeline:
    """FIFO queue of pending requests.

    Enqueueing happens from any caller task; completion is driven only by the
    connection's read loop. All access happens on one event loop, so the
    deque needs no extra locking.
    """

    def __init__(self) -> None:
        self._pending: deque[PendingRequest] = deque()
        self._closed_error: ValkeyConnectionError | None = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def is_closed(self) -> bool:
        """True once fail_all() was called."""
        return self._closed_error is not None

    def enqueue(self, command: str) -> PendingRequest:
        """Register a new outstanding request at the back of the queue.

        Raises:
            ValkeyConnectionError: If the pipeline was already failed
        """
        if self._closed_error is not None:
            raise ValkeyConnectionError(str(self._closed_error))
        request = PendingRequest(command, asyncio.get_running_loop().create_future())
        self._pending.append(request)
        return request

    def complete_next(self, value: WireValue) -> PendingRequest | None:
        """Complete the oldest outstanding request with value.

        Returns:
            The completed request, or None when the queue is empty.
            A request whose caller detached is still returned (and removed);
            its reply is dropped.
        """
        if not self._pending:
            return None
        request = self._pending.popleft()
        if request.future.done():
            logger.debug("Discarding reply to '%s': caller no longer waiting", request.command)
        else:
            request.future.set_result(value)
        return request

    def fail_all(self, error: ValkeyConnectionError) -> int:
        """Fail every outstanding request with error and refuse new ones.

        Returns:
            Number of requests that were still waiting
        """
        if self._closed_error is None:
            self._closed_error = error
        failed = 0
        while self._pending:
            request = self._pending.popleft()
            if not request.future.done():
                request.future.set_exception(error)
                failed += 1
        if failed:
            logger.debug("Failed %d pending requests: %s", failed, error)
        return failed
