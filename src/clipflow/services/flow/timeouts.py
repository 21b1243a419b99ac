"""Race a strategy call against a timer and the flow's cancellation token."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

from clipflow.services.flow.cancellation import CancellationToken
from clipflow.services.transformations.errors import TransformationError


T = TypeVar("T")


async def race_with_timeout(
    operation: Coroutine[Any, Any, T],
    seconds: float,
    token: CancellationToken | None = None,
) -> T:
    """Run `operation`, giving up after `seconds`.

    Whichever of operation, timer or cancellation finishes first wins and
    the others are cancelled.

    Raises:
        TransformationError: timeout, when the timer wins.
        asyncio.CancelledError: when the token is cancelled first.
        Exception: whatever `operation` raised.
    """
    work = asyncio.ensure_future(operation)
    timer = asyncio.ensure_future(asyncio.sleep(seconds))
    contenders: set[asyncio.Future[Any]] = {work, timer}
    cancelled: asyncio.Future[Any] | None = None
    if token is not None:
        cancelled = asyncio.ensure_future(token.wait())
        contenders.add(cancelled)

    try:
        done, _ = await asyncio.wait(contenders, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for contender in contenders:
            if not contender.done():
                contender.cancel()

    if work in done:
        return work.result()
    if cancelled is not None and cancelled in done:
        raise asyncio.CancelledError()
    raise TransformationError.timeout(seconds)
