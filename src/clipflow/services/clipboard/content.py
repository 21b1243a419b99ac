"""Content classification for the shared buffer.

A buffer holds one payload per representation type. Producers commonly
publish several at once (an image plus a text caption, a file plus its
path), so classification checks binary types first: if any binary
representation is present, the content is binary even when text is also
offered.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum


SELF_WRITE_MARKER_TYPE = "application/x-clipflow-self-write"
PLAIN_TEXT_TYPE = "text/plain"

IMAGE_TYPES: frozenset[str] = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/tiff",
        "image/heic",
        "image/heif",
        "image/gif",
        "image/bmp",
        "image/webp",
        "image/x-icon",
        "image/svg+xml",
    }
)
FILE_TYPES: frozenset[str] = frozenset(
    {
        "text/uri-list",
        "application/x-file-url",
        "x-special/gnome-copied-files",
    }
)
DOCUMENT_TYPES: frozenset[str] = frozenset({"application/pdf"})
ARCHIVE_TYPES: frozenset[str] = frozenset(
    {
        "application/zip",
        "application/x-tar",
        "application/gzip",
        "application/x-7z-compressed",
    }
)
AUDIO_TYPES: frozenset[str] = frozenset(
    {"audio/mpeg", "audio/mp4", "audio/aiff", "audio/wav", "audio/x-m4a"}
)
VIDEO_TYPES: frozenset[str] = frozenset(
    {"video/mp4", "video/quicktime", "video/mpeg", "video/x-m4v"}
)
RAW_DATA_TYPES: frozenset[str] = frozenset({"application/octet-stream"})

BINARY_TYPES: frozenset[str] = (
    IMAGE_TYPES
    | FILE_TYPES
    | DOCUMENT_TYPES
    | ARCHIVE_TYPES
    | AUDIO_TYPES
    | VIDEO_TYPES
    | RAW_DATA_TYPES
)

TEXT_TYPES: tuple[str, ...] = (
    PLAIN_TEXT_TYPE,
    "text/plain;charset=utf-8",
    "text/plain;charset=utf-16",
    "UTF8_STRING",
    "STRING",
    "text/markdown",
    "text/html",
    "text/rtf",
)

_BINARY_PREFIXES = ("image/", "audio/", "video/")


class ContentKind(StrEnum):
    TEXT = "text"
    BINARY = "binary"
    EMPTY = "empty"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ClassifiedContent:
    """Result of reading the buffer: its kind plus the text or binary type."""

    kind: ContentKind
    text: str | None = None
    binary_type: str | None = None

    @property
    def is_processable(self) -> bool:
        return self.kind is ContentKind.TEXT


def is_binary_type(content_type: str) -> bool:
    return content_type in BINARY_TYPES or content_type.startswith(_BINARY_PREFIXES)


def first_binary_type(types: Iterable[str]) -> str | None:
    for content_type in types:
        if is_binary_type(content_type):
            return content_type
    return None


def first_text_type(types: Iterable[str]) -> str | None:
    available = set(types)
    for content_type in TEXT_TYPES:
        if content_type in available:
            return content_type
    return None


def classify(representations: dict[str, str | bytes]) -> ClassifiedContent:
    """Classify a buffer snapshot. Binary indicators win over text.

    The self-write marker is bookkeeping, not content, and is ignored here.
    """
    types = [t for t in representations if t != SELF_WRITE_MARKER_TYPE]
    if not types:
        return ClassifiedContent(ContentKind.EMPTY)

    binary_type = first_binary_type(types)
    if binary_type is not None:
        return ClassifiedContent(ContentKind.BINARY, binary_type=binary_type)

    text_type = first_text_type(types)
    if text_type is None:
        return ClassifiedContent(ContentKind.UNKNOWN)

    text = decode_text(representations[text_type], text_type)
    if text is None:
        return ClassifiedContent(ContentKind.UNKNOWN)
    if not text:
        return ClassifiedContent(ContentKind.EMPTY)
    return ClassifiedContent(ContentKind.TEXT, text=text)


def decode_text(payload: str | bytes, content_type: str) -> str | None:
    """Decode a text payload; None when the bytes are not valid text."""
    if isinstance(payload, str):
        return payload
    encoding = "utf-16" if "utf-16" in content_type else "utf-8"
    try:
        return payload.decode(encoding)
    except UnicodeDecodeError:
        return None


def friendly_type_name(content_type: str) -> str:
    """Human phrase for a binary type, used in notifications."""
    if content_type in IMAGE_TYPES or content_type.startswith("image/"):
        return "an image"
    if content_type in FILE_TYPES:
        return "a file"
    if content_type in DOCUMENT_TYPES:
        return "a PDF"
    if content_type in ARCHIVE_TYPES:
        return "an archive"
    if content_type in AUDIO_TYPES or content_type.startswith("audio/"):
        return "audio"
    if content_type in VIDEO_TYPES or content_type.startswith("video/"):
        return "video"
    return "non-text content"
