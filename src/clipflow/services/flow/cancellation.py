"""Explicit cancellation token threaded through a flow."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """Set once by the queue, checked by the flow at each checkpoint.

    The flow task itself is also cancelled, but the token lets the flow
    notice a cancellation that happened while it was not awaiting, and
    lets the timeout race include cancellation as a third contender.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError()

    async def wait(self) -> None:
        await self._event.wait()
