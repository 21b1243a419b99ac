"""Heuristic code detection.

Unwrapping hard-wrapped prose is destructive for source code (Python
indentation, for one), so text-reshaping strategies ask this detector
first. Confidence is a weighted blend of five signals; a fenced markdown
block is treated as certain.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from clipflow.services.transformations.whitespace import leading_width


@dataclass(frozen=True, slots=True)
class CodePreservationConfig:
    skip_threshold: float = 0.7
    conservative_threshold: float = 0.4
    preserve_fenced_blocks: bool = True
    preserve_indented_blocks: bool = True


CODE_KEYWORDS = (
    # Definitions
    "function", "func", "def", "async", "await",
    "class", "interface", "struct", "enum", "trait", "protocol",
    # Declarations and modifiers
    "const", "var", "val", "mut", "let",
    "public", "private", "protected", "static",
    # Modules
    "import", "export", "require", "include",
    # Exceptions
    "catch", "throw", "throws", "finally", "except",
    # Language specific
    "fn", "impl", "pub", "mod", "crate",
    "fun", "suspend", "companion",
    "guard", "defer", "extension",
    "elif", "lambda", "yield",
    "chan",
    "nullptr", "sizeof", "typedef",
    "instanceof", "typeof",
)  # fmt: skip

SYNTAX_PATTERNS = (
    "=>", "->", "::", "===", "!==", "&&", "||",
    "#{", "$(", "${",
    "#include", "#define", "#import", "#if", "#endif",
    "///", "/**",
    "@objc", "@main", "@Published", "@Override", "@Test",
)  # fmt: skip

CODE_LINE_ENDINGS = (";", "{", "}", ",", ":", "(", ")", "\\")

SIGNAL_WEIGHTS = (0.3, 0.3, 0.15, 0.15, 0.1)

_KEYWORD_PATTERNS = tuple(
    re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE) for keyword in CODE_KEYWORDS
)
_FENCED_START = re.compile(r"```[a-zA-Z]*\s*\n")
_FENCED_BLOCK = re.compile(r"```[a-zA-Z]*[\s\S]*?```")


class CodeDetector:
    def __init__(self, config: CodePreservationConfig | None = None):
        self.config = config or CodePreservationConfig()

    def code_confidence(self, text: str) -> float:
        """Confidence in [0, 1] that `text` is source code."""
        if not text:
            return 0.0
        if self.config.preserve_fenced_blocks and self.contains_fenced_code_block(
            text
        ):
            return 1.0

        scores = (
            self.braces_score(text),
            self.keywords_score(text),
            self.indentation_hierarchy_score(text),
            self.special_syntax_score(text),
            self.line_structure_score(text),
        )
        weighted = sum(s * w for s, w in zip(scores, SIGNAL_WEIGHTS, strict=True))
        return min(max(weighted, 0.0), 1.0)

    def should_skip_transformation(self, text: str) -> bool:
        return self.code_confidence(text) > self.config.skip_threshold

    def should_use_conservative_mode(self, text: str) -> bool:
        confidence = self.code_confidence(text)
        return (
            self.config.conservative_threshold
            < confidence
            <= self.config.skip_threshold
        )

    def braces_score(self, text: str) -> float:
        count = sum(text.count(c) for c in "{}[]")
        if count >= 4:
            return 1.0
        if count >= 2:
            return 0.7
        if count >= 1:
            return 0.3
        return 0.0

    def keywords_score(self, text: str) -> float:
        matches = sum(1 for pattern in _KEYWORD_PATTERNS if pattern.search(text))
        if matches >= 5:
            return 1.0
        if matches >= 3:
            return 0.7
        if matches >= 1:
            return 0.4
        return 0.0

    def indentation_hierarchy_score(self, text: str) -> float:
        levels = {leading_width(line) for line in text.split("\n") if line.strip()}
        if len(levels) >= 3:
            return 1.0
        if len(levels) >= 2:
            return 0.6
        return 0.0

    def special_syntax_score(self, text: str) -> float:
        matches = sum(1 for pattern in SYNTAX_PATTERNS if pattern in text)
        if matches >= 3:
            return 1.0
        if matches >= 2:
            return 0.6
        if matches >= 1:
            return 0.3
        return 0.0

    def line_structure_score(self, text: str) -> float:
        lines = [line.strip() for line in text.split("\n") if line.strip()]
        if not lines:
            return 0.0
        code_like = sum(1 for line in lines if line.endswith(CODE_LINE_ENDINGS))
        return min(code_like / len(lines) * 2, 1.0)

    def contains_fenced_code_block(self, text: str) -> bool:
        return _FENCED_START.search(text) is not None

    def detect_code_blocks(self, text: str) -> list[tuple[int, int]]:
        """Return sorted (start, end) offsets of fenced and indented blocks."""
        blocks = [(m.start(), m.end()) for m in _FENCED_BLOCK.finditer(text)]
        if self.config.preserve_indented_blocks:
            blocks.extend(self._indented_blocks(text))
        return sorted(blocks)

    def _indented_blocks(self, text: str) -> list[tuple[int, int]]:
        blocks: list[tuple[int, int]] = []
        block_start: int | None = None
        offset = 0
        for line in text.split("\n"):
            indented = line.startswith(("    ", "\t"))
            blank = not line.strip()
            if indented or (blank and block_start is not None):
                if block_start is None:
                    block_start = offset
            elif block_start is not None:
                blocks.append((block_start, offset))
                block_start = None
            offset += len(line) + 1
        if block_start is not None:
            blocks.append((block_start, len(text)))
        return blocks
