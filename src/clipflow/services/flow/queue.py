"""Single-flight execution queue.

At most one (request, task) pair is tracked. A second `start` while one is
active is rejected with `already_processing`; it is dropped, never queued.

Every method is synchronous and runs on the event loop thread, so the
check-then-set in `start` cannot interleave with another `start` or with
`cancel`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from clipflow.services.flow.cancellation import CancellationToken
from clipflow.services.flow.errors import FlowError
from clipflow.services.flow.types import TransformationRequest


logger = logging.getLogger(__name__)

FlowRunner = Callable[[CancellationToken], Coroutine[Any, Any, Any]]


@dataclass(slots=True)
class _ActiveFlow:
    request: TransformationRequest
    task: asyncio.Task[Any]
    token: CancellationToken


class SingleFlightQueue:
    def __init__(self) -> None:
        self._active: _ActiveFlow | None = None

    @property
    def is_processing(self) -> bool:
        return self._active is not None

    @property
    def request(self) -> TransformationRequest | None:
        return self._active.request if self._active else None

    @property
    def task(self) -> asyncio.Task[Any] | None:
        return self._active.task if self._active else None

    def start(
        self, request: TransformationRequest, runner: FlowRunner
    ) -> asyncio.Task[Any]:
        """Track `request` and start `runner` as its task.

        Raises:
            FlowError: already_processing when another request is tracked.
        """
        if self._active is not None:
            logger.debug(
                f"Rejected request {request.id}; {self._active.request.id} in flight"
            )
            raise FlowError.already_processing()

        token = CancellationToken()
        task = asyncio.create_task(runner(token), name=f"flow-{request.id}")
        self._active = _ActiveFlow(request, task, token)
        return task

    def cancel(self) -> bool:
        """Cancel the tracked task and clear state. No-op when idle."""
        active = self._active
        if active is None:
            return False
        self._active = None
        active.token.cancel()
        active.task.cancel()
        logger.info(f"Cancelled request {active.request.id}")
        return True

    def finish(self, request: TransformationRequest) -> None:
        """Clear state after natural completion of `request`.

        A stale caller finishing an older request leaves a newer one alone.
        """
        if self._active is not None and self._active.request.id == request.id:
            self._active = None
