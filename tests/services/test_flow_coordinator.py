"""Tests for the transformation flow coordinator.

Every test drives the real buffer, paste trigger, queue and recovery
manager; only the strategy, notifier and history sink are stand-ins.
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from clipflow.services.clipboard.buffer import InMemoryBuffer
from clipflow.services.clipboard.paste import PasteError, PasteSimulator
from clipflow.services.flow.coordinator import TransformationFlowCoordinator
from clipflow.services.flow.errors import FlowErrorKind
from clipflow.services.flow.recovery import (
    ErrorCategoryKind,
    ErrorRecoveryManager,
    RecoveryActionKind,
    categorize,
)
from clipflow.services.flow.types import (
    IDLE,
    Cancelled,
    Completed,
    Failed,
    Processing,
    RequestSourceKind,
)
from clipflow.services.transformations.errors import (
    TransformationError,
    TransformationErrorKind,
)
from clipflow.services.transformations.pipeline import TransformationPipeline


class UppercaseTransformation:
    id = "uppercase"
    display_name = "Uppercase"

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls = 0

    async def transform(self, text: str) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return text.upper()


class FailingTransformation:
    id = "failing"
    display_name = "Always Fails"

    async def transform(self, text: str) -> str:
        raise TransformationError.network("connection reset")


def build_coordinator(
    buffer: InMemoryBuffer,
    transformation: object | None = None,
    *,
    paste: object | None = None,
    history: object | None = None,
    **kwargs: object,
) -> tuple[TransformationFlowCoordinator, AsyncMock]:
    notifier = AsyncMock()
    recovery = ErrorRecoveryManager(buffer, notifier)
    coordinator = TransformationFlowCoordinator(
        buffer,
        paste or PasteSimulator(buffer),  # type: ignore[arg-type]
        recovery,
        transformation or UppercaseTransformation(),  # type: ignore[arg-type]
        history=history,  # type: ignore[arg-type]
        paste_delay=0,
        **kwargs,  # type: ignore[arg-type]
    )
    return coordinator, notifier


@pytest.mark.asyncio
class TestSuccessfulFlow:
    """Trigger to paste on plain text."""

    async def test_hello_world_is_uppercased_marked_and_pasted(self) -> None:
        """Test the result replaces the buffer, carries the marker and is pasted."""
        buffer = InMemoryBuffer()
        buffer.set_text("hello world")
        paste = PasteSimulator(buffer)
        coordinator, notifier = build_coordinator(buffer, paste=paste)

        accepted = await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert accepted is True
        assert buffer.plain_text() == "HELLO WORLD"
        assert buffer.has_marker() is True
        assert len(paste.events) == 1
        assert paste.events[0].text_length == len("HELLO WORLD")
        assert isinstance(coordinator.last_terminal_state, Completed)
        assert coordinator.processing_state == IDLE
        assert coordinator.last_error is None
        assert coordinator.recovery.has_captured_content is False
        notifier.notify.assert_not_awaited()

    async def test_outcome_records_original_and_transformed_text(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        coordinator, _ = build_coordinator(buffer)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        outcome = coordinator.last_outcome
        assert outcome is not None
        assert outcome.original_text == "abc"
        assert outcome.transformed_text == "ABC"
        assert outcome.descriptor.transformation_id == "uppercase"
        assert outcome.processing_time_ms >= 0

    async def test_state_listener_sees_processing_terminal_then_idle(self) -> None:
        """Test every accepted trigger ends with a terminal state followed by idle."""
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        coordinator, _ = build_coordinator(buffer)
        seen: list[str] = []
        coordinator.add_state_listener(lambda state: seen.append(state.name))

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert seen == ["processing", "completed", "idle"]

    async def test_unsubscribed_listener_is_not_called(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        coordinator, _ = build_coordinator(buffer)
        listener = MagicMock()
        unsubscribe = coordinator.add_state_listener(listener)
        unsubscribe()

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        listener.assert_not_called()

    async def test_async_listener_is_awaited(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        coordinator, _ = build_coordinator(buffer)
        listener = AsyncMock()
        coordinator.add_state_listener(listener)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert listener.await_count == 3

    async def test_explicit_transformation_overrides_default(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        default = UppercaseTransformation()
        coordinator, _ = build_coordinator(buffer, default)
        override = UppercaseTransformation()

        await coordinator.handle_trigger(transformation=override)
        await coordinator.wait_for_completion()

        assert override.calls == 1
        assert default.calls == 0

    async def test_pipeline_trigger_uses_pipeline_source(self) -> None:
        """Test a pipeline request is tagged and named after its last stage."""
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        coordinator, _ = build_coordinator(buffer)
        pipeline = TransformationPipeline(
            [UppercaseTransformation()], pipeline_id="shout"
        )
        states: list[object] = []
        coordinator.add_state_listener(states.append)

        await coordinator.handle_trigger(pipeline=pipeline)
        await coordinator.wait_for_completion()

        processing = states[0]
        assert isinstance(processing, Processing)
        assert processing.request.source.kind is RequestSourceKind.PIPELINE
        assert processing.request.source.transformation_id == "shout"
        assert buffer.plain_text() == "ABC"
        assert coordinator.last_outcome is not None
        assert coordinator.last_outcome.descriptor.transformation_id == "uppercase"


@pytest.mark.asyncio
class TestSilentFailures:
    """Failures that end the flow without telling the user."""

    async def test_self_written_content_is_skipped_silently(self) -> None:
        """Test marker-tagged content is never transformed twice."""
        buffer = InMemoryBuffer()
        buffer.write_text("PREVIOUS", marker=True)
        transformation = UppercaseTransformation()
        coordinator, notifier = build_coordinator(buffer, transformation)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.SELF_WRITE_DETECTED
        assert buffer.plain_text() == "PREVIOUS"
        assert transformation.calls == 0
        assert isinstance(coordinator.last_terminal_state, Failed)
        assert coordinator.processing_state == IDLE
        notifier.notify.assert_not_awaited()

    async def test_empty_buffer_fails_silently(self) -> None:
        buffer = InMemoryBuffer()
        coordinator, notifier = build_coordinator(buffer)
        seen: list[str] = []
        coordinator.add_state_listener(lambda state: seen.append(state.name))

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.BUFFER_EMPTY
        assert seen == ["processing", "failed", "idle"]
        notifier.notify.assert_not_awaited()

    async def test_second_trigger_is_rejected_while_processing(self) -> None:
        """Test back-to-back triggers run the strategy exactly once."""
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        transformation = UppercaseTransformation(delay=0.1)
        coordinator, notifier = build_coordinator(buffer, transformation)

        first = await coordinator.handle_trigger()
        second = await coordinator.handle_trigger()

        assert first is True
        assert second is False
        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.ALREADY_PROCESSING

        await coordinator.wait_for_completion()

        assert transformation.calls == 1
        assert buffer.plain_text() == "ABC"
        assert isinstance(coordinator.last_terminal_state, Completed)
        notifier.notify.assert_not_awaited()

    async def test_trigger_accepted_again_after_completion(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        coordinator, _ = build_coordinator(buffer)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()
        buffer.set_text("def")
        accepted = await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert accepted is True
        assert buffer.plain_text() == "DEF"


@pytest.mark.asyncio
class TestReportedFailures:
    """Failures that roll the buffer back and notify once."""

    async def test_binary_content_notifies_once_and_leaves_buffer(self) -> None:
        """Test an image with a text caption is still rejected as binary."""
        buffer = InMemoryBuffer()
        buffer.set_representations(
            {"image/png": b"\x89PNG\r\n", "text/plain": "a caption"}
        )
        version = buffer.current_version()
        coordinator, notifier = build_coordinator(buffer)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.BINARY_CONTENT
        assert coordinator.last_error.content_type == "image/png"
        assert buffer.current_version() == version
        assert buffer.types() == ["image/png", "text/plain"]
        notifier.notify.assert_awaited_once()
        title, message, category = notifier.notify.await_args.args
        assert title == "Cannot Transform"
        assert message == "Only text content can be transformed. Found: an image"
        assert category.kind is ErrorCategoryKind.CONTENT_ISSUE

    async def test_timeout_restores_original_text(self) -> None:
        """Test a strategy slower than the timeout leaves the buffer as it was."""
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        version = buffer.current_version()
        coordinator, notifier = build_coordinator(
            buffer, UppercaseTransformation(delay=5), timeout=0.2
        )

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        error = coordinator.last_error
        assert error is not None
        assert error.kind is FlowErrorKind.TRANSFORMATION_FAILED
        assert isinstance(error.cause, TransformationError)
        assert error.cause.kind is TransformationErrorKind.TIMEOUT
        assert categorize(error).kind is ErrorCategoryKind.TIMEOUT
        assert buffer.plain_text() == "original"
        assert buffer.current_version() == version
        notifier.notify.assert_awaited_once()

    async def test_timeout_fires_at_configured_deadline(self) -> None:
        """Test a one second timeout beats a five second strategy on time."""
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        coordinator, _ = build_coordinator(
            buffer, UppercaseTransformation(delay=5), timeout=1.0
        )

        started = time.monotonic()
        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()
        elapsed = time.monotonic() - started

        assert 0.95 <= elapsed < 1.5
        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.TRANSFORMATION_FAILED
        assert buffer.plain_text() == "original"

    async def test_per_request_timeout_overrides_default(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        coordinator, _ = build_coordinator(
            buffer, UppercaseTransformation(delay=5), timeout=30
        )

        await coordinator.handle_trigger(timeout=0.1)
        await coordinator.wait_for_completion()

        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.TRANSFORMATION_FAILED

    async def test_strategy_error_is_reported_with_retry_action(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        coordinator, notifier = build_coordinator(buffer, FailingTransformation())

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.TRANSFORMATION_FAILED
        assert coordinator.last_recovery_action is not None
        assert coordinator.last_recovery_action.kind is RecoveryActionKind.RETRY
        assert buffer.plain_text() == "original"
        title = notifier.notify.await_args.args[0]
        assert title == "Connection Problem"

    async def test_permission_required_is_checked_first(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        paste = PasteSimulator(buffer, permission_granted=False)
        transformation = UppercaseTransformation()
        coordinator, notifier = build_coordinator(buffer, transformation, paste=paste)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.PERMISSION_REQUIRED
        assert coordinator.last_recovery_action is not None
        assert (
            coordinator.last_recovery_action.kind
            is RecoveryActionKind.REQUEST_PERMISSION
        )
        assert transformation.calls == 0
        notifier.notify.assert_awaited_once()

    async def test_input_too_large_is_rejected_before_transform(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("x" * 64)
        transformation = UppercaseTransformation()
        coordinator, notifier = build_coordinator(
            buffer, transformation, max_input_bytes=16
        )

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        error = coordinator.last_error
        assert error is not None
        assert error.kind is FlowErrorKind.INPUT_TOO_LARGE
        assert error.byte_count == 64
        assert error.max_bytes == 16
        assert transformation.calls == 0
        notifier.notify.assert_awaited_once()

    async def test_write_back_failure_keeps_original(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        buffer.available = False
        coordinator, notifier = build_coordinator(buffer)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.WRITE_BACK_FAILED
        assert buffer.plain_text() == "original"
        assert buffer.has_marker() is False
        notifier.notify.assert_awaited_once()

    async def test_paste_failure_does_not_roll_back(self) -> None:
        """Test a failed paste keeps the transformed text in the buffer."""
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        paste = MagicMock()
        paste.is_permission_granted.return_value = True
        paste.perform.side_effect = PasteError("target window closed")
        coordinator, notifier = build_coordinator(buffer, paste=paste)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert coordinator.last_error is not None
        assert coordinator.last_error.kind is FlowErrorKind.SIDE_EFFECT_FAILED
        assert buffer.plain_text() == "ORIGINAL"
        assert buffer.has_marker() is True
        assert coordinator.recovery.has_captured_content is False
        notifier.notify.assert_awaited_once()


@pytest.mark.asyncio
class TestCancellation:
    async def test_cancel_leaves_buffer_untouched(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        coordinator, notifier = build_coordinator(
            buffer, UppercaseTransformation(delay=5)
        )
        seen: list[str] = []
        coordinator.add_state_listener(lambda state: seen.append(state.name))

        await coordinator.handle_trigger()
        await asyncio.sleep(0.01)
        await coordinator.cancel_current_transformation()

        assert isinstance(coordinator.last_terminal_state, Cancelled)
        assert coordinator.processing_state == IDLE
        assert coordinator.queue.is_processing is False
        assert buffer.plain_text() == "original"
        assert seen == ["processing", "cancelled", "idle"]
        notifier.notify.assert_not_awaited()

    async def test_cancel_is_idempotent(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("original")
        coordinator, _ = build_coordinator(buffer, UppercaseTransformation(delay=5))

        await coordinator.handle_trigger()
        await coordinator.cancel_current_transformation()
        await coordinator.cancel_current_transformation()

        assert coordinator.processing_state == IDLE

    async def test_cancel_when_idle_is_a_no_op(self) -> None:
        buffer = InMemoryBuffer()
        coordinator, _ = build_coordinator(buffer)

        await coordinator.cancel_current_transformation()

        assert coordinator.processing_state == IDLE
        assert coordinator.last_terminal_state is None

    async def test_reset_clears_error_and_forces_idle(self) -> None:
        buffer = InMemoryBuffer()
        coordinator, _ = build_coordinator(buffer)
        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()
        assert coordinator.last_error is not None

        coordinator.reset()

        assert coordinator.last_error is None
        assert coordinator.processing_state == IDLE


@pytest.mark.asyncio
class TestHistoryRecording:
    async def test_success_is_recorded(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        history = AsyncMock()
        coordinator, _ = build_coordinator(buffer, history=history)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        history.record.assert_awaited_once()
        entry = history.record.await_args.args[0]
        assert entry.was_successful is True
        assert entry.input_text == "abc"
        assert entry.output_text == "ABC"
        assert entry.transformation_id == "uppercase"
        assert entry.error_message is None

    async def test_failure_after_read_is_recorded(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        history = AsyncMock()
        coordinator, _ = build_coordinator(
            buffer, FailingTransformation(), history=history
        )

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        history.record.assert_awaited_once()
        entry = history.record.await_args.args[0]
        assert entry.was_successful is False
        assert entry.input_text == "abc"
        assert entry.output_text == ""
        assert "connection reset" in (entry.error_message or "")

    async def test_precondition_failure_is_not_recorded(self) -> None:
        history = AsyncMock()
        coordinator, _ = build_coordinator(InMemoryBuffer(), history=history)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        history.record.assert_not_awaited()

    async def test_history_failure_does_not_fail_the_flow(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("abc")
        history = AsyncMock()
        history.record.side_effect = RuntimeError("disk full")
        coordinator, _ = build_coordinator(buffer, history=history)

        await coordinator.handle_trigger()
        await coordinator.wait_for_completion()

        assert isinstance(coordinator.last_terminal_state, Completed)
        assert buffer.plain_text() == "ABC"
