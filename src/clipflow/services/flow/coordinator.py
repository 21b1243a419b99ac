"""Transformation flow coordinator.

The one entry point a hotkey or API call uses. A trigger that the queue
accepts runs, in order:

1. permission and self-write checks
2. capture of the original buffer text for rollback
3. read and classify the buffer
4. the strategy call, raced against the request timeout
5. write-back with the self-write marker
6. a short settle delay, then the paste side-effect

Cancellation is checked between steps. Nothing escapes `handle_trigger`:
every failure becomes a FlowError that drives the state machine and the
recovery manager.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from clipflow.core.observability import get_tracer
from clipflow.services.clipboard.buffer import BufferWriteError
from clipflow.services.clipboard.content import ClassifiedContent, ContentKind
from clipflow.services.clipboard.marker import is_self_write
from clipflow.services.clipboard.paste import PasteError
from clipflow.services.flow.cancellation import CancellationToken
from clipflow.services.flow.errors import FlowError
from clipflow.services.flow.queue import SingleFlightQueue
from clipflow.services.flow.recovery import ErrorRecoveryManager, RecoveryAction
from clipflow.services.flow.timeouts import race_with_timeout
from clipflow.services.flow.types import (
    DEFAULT_TIMEOUT_SECONDS,
    IDLE,
    Cancelled,
    Completed,
    Failed,
    HistoryDescriptor,
    HistoryEntry,
    Idle,
    Processing,
    ProcessingState,
    RequestSource,
    TransformationFlowOutcome,
    TransformationRequest,
)
from clipflow.services.transformations.base import (
    Transformation,
    history_metadata_for,
)
from clipflow.services.transformations.pipeline import TransformationPipeline


logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

DEFAULT_PASTE_DELAY_SECONDS = 0.05
DEFAULT_MAX_INPUT_BYTES = 100_000

Strategy = Transformation | TransformationPipeline
StateListener = Callable[[ProcessingState], Awaitable[None] | None]


class FlowBuffer(Protocol):
    def current_version(self) -> int: ...

    def has_marker(self) -> bool: ...

    def plain_text(self) -> str | None: ...

    def read_text(self) -> ClassifiedContent: ...

    def write_text(self, text: str, marker: bool = True) -> None: ...


class PasteTrigger(Protocol):
    def is_permission_granted(self) -> bool: ...

    def perform(self) -> None: ...


class HistorySink(Protocol):
    async def record(self, entry: HistoryEntry) -> None: ...


class TransformationFlowCoordinator:
    def __init__(
        self,
        buffer: FlowBuffer,
        paste: PasteTrigger,
        recovery: ErrorRecoveryManager,
        transformation: Strategy,
        *,
        queue: SingleFlightQueue | None = None,
        history: HistorySink | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        paste_delay: float = DEFAULT_PASTE_DELAY_SECONDS,
        max_input_bytes: int = DEFAULT_MAX_INPUT_BYTES,
    ):
        self.buffer = buffer
        self.paste = paste
        self.recovery = recovery
        self.transformation = transformation
        self.queue = queue or SingleFlightQueue()
        self.history = history
        self.timeout = timeout
        self.paste_delay = paste_delay
        self.max_input_bytes = max_input_bytes

        self._state: ProcessingState = IDLE
        self.last_error: FlowError | None = None
        self.last_outcome: TransformationFlowOutcome | None = None
        self.last_terminal_state: ProcessingState | None = None
        self.last_recovery_action: RecoveryAction | None = None

        self._listeners: list[StateListener] = []
        self._observer: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._captured_inputs: dict[uuid.UUID, str] = {}

    # Observable state

    @property
    def processing_state(self) -> ProcessingState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return isinstance(self._state, Processing)

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register `listener` for every transition; returns an unsubscribe."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _transition(self, state: ProcessingState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                result = listener(state)
                if inspect.isawaitable(result):
                    self._spawn(result)
            except Exception:
                logger.exception("State listener failed")

    # Entry points

    async def handle_trigger(
        self,
        transformation: Transformation | None = None,
        pipeline: TransformationPipeline | None = None,
        timeout: float | None = None,
    ) -> bool:
        """Start a flow unless one is already running.

        Returns whether the trigger was accepted, not whether the flow
        succeeded; watch `processing_state` or the state listeners for that.
        """
        if self.queue.is_processing:
            self.last_error = FlowError.already_processing()
            logger.debug("Trigger ignored; a transformation is already in progress")
            return False

        strategy: Strategy = pipeline or transformation or self.transformation
        if isinstance(strategy, TransformationPipeline):
            source = RequestSource.pipeline(strategy.id)
        else:
            source = RequestSource.single(strategy.id)
        request = TransformationRequest(
            source=source, timeout=timeout if timeout is not None else self.timeout
        )

        try:
            task = self.queue.start(
                request, lambda token: self._execute_flow(request, strategy, token)
            )
        except FlowError as error:
            self.last_error = error
            return False

        self.last_error = None
        self._transition(Processing(request))
        self._observer = asyncio.create_task(
            self._await_completion(request, task), name=f"flow-observer-{request.id}"
        )
        logger.info(f"Accepted transformation request {request.id} ({strategy.id})")
        return True

    async def cancel_current_transformation(self) -> None:
        """Cancel the running flow, if any. Safe to call repeatedly."""
        request = self.queue.request
        self.queue.cancel()
        observer = self._observer
        if request is not None and observer is not None and not observer.done():
            await asyncio.wait({observer})
        elif isinstance(self._state, Processing):
            self._transition(IDLE)

    def reset(self) -> None:
        """Clear error state and force idle."""
        self.queue.cancel()
        self.recovery.clear()
        self.last_error = None
        self._captured_inputs.clear()
        if not isinstance(self._state, Idle):
            self._transition(IDLE)

    async def wait_for_completion(self) -> None:
        """Wait for the current flow and any pending history writes."""
        observer = self._observer
        if observer is not None and not observer.done():
            await asyncio.wait({observer})
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def shutdown(self) -> None:
        await self.cancel_current_transformation()
        await self.wait_for_completion()

    # The flow itself

    async def _execute_flow(
        self,
        request: TransformationRequest,
        strategy: Strategy,
        token: CancellationToken,
    ) -> TransformationFlowOutcome:
        with tracer.start_as_current_span("transformation_flow") as span:
            span.set_attribute("clipflow.request_id", str(request.id))
            span.set_attribute("clipflow.source", request.source.kind.value)
            span.set_attribute("clipflow.transformation_id", strategy.id)
            span.set_attribute("clipflow.timeout_seconds", request.timeout)
            return await self._run_steps(request, strategy, token)

    async def _run_steps(
        self,
        request: TransformationRequest,
        strategy: Strategy,
        token: CancellationToken,
    ) -> TransformationFlowOutcome:
        if not self.paste.is_permission_granted():
            raise FlowError.permission_required()
        if is_self_write(self.buffer):
            raise FlowError.self_write_detected()

        # Capture before reading so a failing read can still be rolled back
        self.recovery.capture()
        text = self._require_text(self.buffer.read_text())
        self._captured_inputs[request.id] = text

        token.raise_if_cancelled()

        try:
            output, descriptor = await race_with_timeout(
                self._run_strategy(strategy, text), request.timeout, token
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise FlowError.transformation_failed(exc) from exc

        token.raise_if_cancelled()

        try:
            self.buffer.write_text(output, marker=True)
        except BufferWriteError as exc:
            raise FlowError.write_back_failed(exc) from exc

        await asyncio.sleep(self.paste_delay)
        token.raise_if_cancelled()

        try:
            self.paste.perform()
        except PasteError as exc:
            raise FlowError.side_effect_failed(exc) from exc

        self.recovery.clear()
        return TransformationFlowOutcome(
            request=request,
            original_text=text,
            transformed_text=output,
            descriptor=descriptor,
        )

    def _require_text(self, content: ClassifiedContent) -> str:
        match content.kind:
            case ContentKind.BINARY:
                raise FlowError.binary_content(content.binary_type or "unknown")
            case ContentKind.EMPTY:
                raise FlowError.buffer_empty()
            case ContentKind.UNKNOWN:
                raise FlowError.no_text_content()
        if content.text is None:
            raise FlowError.no_text_content()

        byte_count = len(content.text.encode("utf-8"))
        if self.max_input_bytes and byte_count > self.max_input_bytes:
            raise FlowError.input_too_large(byte_count, self.max_input_bytes)
        return content.text

    async def _run_strategy(
        self, strategy: Strategy, text: str
    ) -> tuple[str, HistoryDescriptor]:
        if isinstance(strategy, TransformationPipeline):
            result = await strategy.execute(text)
            last = result.stage_results[-1] if result.stage_results else None
            if last is None:
                descriptor = HistoryDescriptor(strategy.id, strategy.display_name)
            else:
                descriptor = HistoryDescriptor.for_strategy(
                    last.transformation_id, last.transformation_name, last.metadata
                )
            return result.output, descriptor

        output = await strategy.transform(text)
        descriptor = HistoryDescriptor.for_strategy(
            strategy.id, strategy.display_name, history_metadata_for(strategy)
        )
        return output, descriptor

    # Completion handling

    def _owns_state(self, request: TransformationRequest) -> bool:
        state = self._state
        return isinstance(state, Processing) and state.request.id == request.id

    async def _await_completion(
        self, request: TransformationRequest, task: asyncio.Task[Any]
    ) -> None:
        try:
            outcome: TransformationFlowOutcome = await task
        except asyncio.CancelledError:
            if self._owns_state(request):
                self.recovery.clear()
            self._finish(request, Cancelled(request))
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return
        except FlowError as error:
            await self._fail(request, error)
            return
        except Exception as exc:
            logger.exception(f"Unexpected error in transformation flow {request.id}")
            await self._fail(request, FlowError.transformation_failed(exc))
            return

        self.last_outcome = outcome
        self._record(self._success_entry(outcome))
        logger.info(
            f"Transformation {request.id} completed in {outcome.processing_time_ms}ms"
        )
        self._finish(request, Completed(outcome))

    async def _fail(self, request: TransformationRequest, error: FlowError) -> None:
        input_text = self._captured_inputs.get(request.id)
        if input_text is not None:
            self._record(self._failure_entry(request, error, input_text))
        if not self._owns_state(request):
            logger.debug(f"Ignoring failure of superseded flow {request.id}")
            self._finish(request, Failed(request, error))
            return

        if error.is_silent:
            logger.debug(f"Flow {request.id} ended silently: {error.kind.value}")
        else:
            logger.warning(f"Flow {request.id} failed: {error.kind.value}")

        await self.handle_flow_error(error)
        self._finish(request, Failed(request, error))

    def _finish(
        self, request: TransformationRequest, terminal: ProcessingState
    ) -> None:
        self._captured_inputs.pop(request.id, None)
        self.queue.finish(request)
        if not self._owns_state(request):
            return
        self.last_terminal_state = terminal
        self._transition(terminal)
        self._transition(IDLE)

    async def handle_flow_error(self, error: FlowError) -> None:
        """Record the error, then roll back and notify unless it is silent."""
        self.last_error = error
        if error.is_silent:
            self.recovery.clear()
            return
        self.last_recovery_action = await self.recovery.handle_error(error)

    # History

    def _success_entry(self, outcome: TransformationFlowOutcome) -> HistoryEntry:
        descriptor = outcome.descriptor
        return HistoryEntry(
            transformation_id=descriptor.transformation_id,
            transformation_name=descriptor.transformation_name,
            provider_name=descriptor.provider_name,
            model_used=descriptor.model_used,
            system_prompt=descriptor.system_prompt,
            input_text=outcome.original_text,
            output_text=outcome.transformed_text,
            processing_time_ms=outcome.processing_time_ms,
            was_successful=True,
            timestamp=outcome.finished_at,
        )

    def _failure_entry(
        self, request: TransformationRequest, error: FlowError, input_text: str
    ) -> HistoryEntry:
        transformation_id = request.source.transformation_id or "pipeline"
        elapsed = time.time() - request.created_at.timestamp()
        return HistoryEntry(
            transformation_id=transformation_id,
            transformation_name=transformation_id,
            input_text=input_text,
            output_text="",
            processing_time_ms=int(max(elapsed, 0) * 1000),
            was_successful=False,
            error_message=str(error),
        )

    def _record(self, entry: HistoryEntry) -> None:
        if self.history is None:
            return
        self._spawn(self._persist(self.history, entry))

    @staticmethod
    async def _persist(history: HistorySink, entry: HistoryEntry) -> None:
        try:
            await history.record(entry)
        except Exception:
            logger.exception("Failed to persist history entry")

    def _spawn(self, awaitable: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
