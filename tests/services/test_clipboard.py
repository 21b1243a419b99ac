"""Tests for buffer classification, the in-memory buffer, marker and paste."""

from __future__ import annotations

import pytest

from clipflow.services.clipboard.buffer import (
    BufferWriteError,
    BufferWriteErrorKind,
    InMemoryBuffer,
)
from clipflow.services.clipboard.content import (
    SELF_WRITE_MARKER_TYPE,
    ContentKind,
    classify,
    friendly_type_name,
    is_binary_type,
)
from clipflow.services.clipboard.marker import is_safe_to_process, is_self_write
from clipflow.services.clipboard.paste import PasteError, PasteSimulator


class TestClassify:
    """Tests for content classification."""

    def test_plain_text(self) -> None:
        content = classify({"text/plain": "hello"})
        assert content.kind is ContentKind.TEXT
        assert content.text == "hello"
        assert content.is_processable is True

    def test_empty_mapping_is_empty(self) -> None:
        assert classify({}).kind is ContentKind.EMPTY

    def test_empty_string_is_empty(self) -> None:
        assert classify({"text/plain": ""}).kind is ContentKind.EMPTY

    def test_marker_alone_is_empty(self) -> None:
        assert classify({SELF_WRITE_MARKER_TYPE: b""}).kind is ContentKind.EMPTY

    def test_binary_wins_over_text(self) -> None:
        """Test an image published with a caption is binary, not text."""
        content = classify({"text/plain": "caption", "image/png": b"\x89PNG"})
        assert content.kind is ContentKind.BINARY
        assert content.binary_type == "image/png"
        assert content.text is None

    @pytest.mark.parametrize(
        "content_type",
        ["text/uri-list", "application/pdf", "application/zip", "video/mp4"],
    )
    def test_file_like_types_are_binary(self, content_type: str) -> None:
        content = classify({content_type: b"data", "text/plain": "name"})
        assert content.kind is ContentKind.BINARY

    def test_unknown_type(self) -> None:
        assert classify({"application/x-custom": b"??"}).kind is ContentKind.UNKNOWN

    def test_bytes_are_decoded(self) -> None:
        content = classify({"text/plain": "héllo".encode()})
        assert content.text == "héllo"

    def test_utf16_payload(self) -> None:
        content = classify({"text/plain;charset=utf-16": "hi".encode("utf-16")})
        assert content.text == "hi"

    def test_undecodable_bytes_are_unknown(self) -> None:
        assert classify({"text/plain": b"\xff\xfe\xfd"}).kind is ContentKind.UNKNOWN

    def test_prefix_matches_unlisted_media(self) -> None:
        assert is_binary_type("image/avif") is True
        assert is_binary_type("text/plain") is False

    @pytest.mark.parametrize(
        ("content_type", "expected"),
        [
            ("image/jpeg", "an image"),
            ("text/uri-list", "a file"),
            ("application/pdf", "a PDF"),
            ("application/gzip", "an archive"),
            ("audio/wav", "audio"),
            ("video/quicktime", "video"),
            ("application/octet-stream", "non-text content"),
        ],
    )
    def test_friendly_type_name(self, content_type: str, expected: str) -> None:
        assert friendly_type_name(content_type) == expected


class TestInMemoryBuffer:
    def test_every_mutation_bumps_version(self) -> None:
        buffer = InMemoryBuffer()
        assert buffer.current_version() == 0

        buffer.set_text("a")
        buffer.write_text("b")
        buffer.clear()

        assert buffer.current_version() == 3

    def test_write_text_sets_text_and_marker_together(self) -> None:
        buffer = InMemoryBuffer()
        buffer.write_text("RESULT")

        snapshot = buffer.snapshot()
        assert snapshot.types == ["text/plain", SELF_WRITE_MARKER_TYPE]
        assert snapshot.has_marker is True
        assert buffer.read_text().text == "RESULT"

    def test_write_without_marker(self) -> None:
        buffer = InMemoryBuffer()
        buffer.write_text("restored", marker=False)
        assert buffer.has_marker() is False

    def test_set_representations_replaces_everything(self) -> None:
        buffer = InMemoryBuffer()
        buffer.write_text("RESULT")
        buffer.set_representations({"image/png": b"png"})

        assert buffer.types() == ["image/png"]
        assert buffer.has_marker() is False
        assert buffer.plain_text() is None

    def test_snapshot_is_not_affected_by_later_writes(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("before")
        snapshot = buffer.snapshot()

        buffer.set_text("after")

        assert snapshot.representations["text/plain"] == "before"
        assert snapshot.version == 1

    def test_unavailable_buffer_rejects_writes(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("kept")
        buffer.available = False

        with pytest.raises(BufferWriteError) as exc_info:
            buffer.write_text("lost")

        assert exc_info.value.kind is BufferWriteErrorKind.BUFFER_UNAVAILABLE
        assert str(exc_info.value) == "Buffer is not available"
        assert buffer.plain_text() == "kept"

    def test_plain_text_decodes_bytes(self) -> None:
        buffer = InMemoryBuffer({"text/plain": b"bytes"})
        assert buffer.plain_text() == "bytes"


class TestSelfWriteMarker:
    def test_marker_detection(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("external")
        assert is_self_write(buffer) is False
        assert is_safe_to_process(buffer) is True

        buffer.write_text("ours")
        assert is_self_write(buffer) is True
        assert is_safe_to_process(buffer) is False


class TestPasteSimulator:
    def test_perform_records_event(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("pasted")
        paste = PasteSimulator(buffer)

        paste.perform()

        assert [e.text_length for e in paste.events] == [6]

    def test_perform_without_permission_fails(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("pasted")
        paste = PasteSimulator(buffer, permission_granted=False)

        assert paste.is_permission_granted() is False
        with pytest.raises(PasteError, match="permission"):
            paste.perform()

    def test_perform_without_text_fails(self) -> None:
        paste = PasteSimulator(InMemoryBuffer())
        with pytest.raises(PasteError, match="no text"):
            paste.perform()

    def test_event_history_is_bounded(self) -> None:
        buffer = InMemoryBuffer()
        buffer.set_text("x")
        paste = PasteSimulator(buffer, history_size=2)

        for _ in range(5):
            paste.perform()

        assert len(paste.events) == 2
