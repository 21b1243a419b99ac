"""Rejoin prose that a terminal or mail client hard-wrapped at a fixed width.

A block (lines between blank lines) is unwrapped only when its line
lengths cluster around a typical wrap column. Lists, quotes, indented
continuations and anything that looks like code keep their line breaks.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from clipflow.services.transformations.code_detector import CodeDetector
from clipflow.services.transformations.errors import TransformationError
from clipflow.services.transformations.whitespace import leading_width


DEFAULT_PRESERVE_PREFIXES = (
    "-", "*", ">", "•", "1.", "2.", "3.", "4.", "5.", "6.", "7.", "8.", "9.",
)  # fmt: skip

CODE_INDICATORS = (
    "func ", "def ", "class ", "struct ", "enum ",
    "import ", "from ", "require ", "#include",
    "if (", "for (", "while (", "switch ", "case ",
    "return ", "throw ", "try {", "catch ",
    "=>", "->", "//", "/*", "*/",
    "public ", "private ", "protected ", "static ",
    "const ", "let ", "var ",
)  # fmt: skip


@dataclass(frozen=True, slots=True)
class SmartUnwrapConfig:
    min_consecutive_lines: int = 3
    length_tolerance: int = 5
    wrap_range_lower: int = 65
    wrap_range_upper: int = 85
    consistency_threshold: float = 0.7
    preserve_code_blocks: bool = True
    preserve_prefixes: tuple[str, ...] = field(default=DEFAULT_PRESERVE_PREFIXES)


class SmartUnwrapTransformation:
    id = "smart-unwrap"
    display_name = "Smart Unwrap"

    def __init__(
        self,
        config: SmartUnwrapConfig | None = None,
        code_detector: CodeDetector | None = None,
    ):
        self.config = config or SmartUnwrapConfig()
        self.code_detector = code_detector or CodeDetector()

    async def transform(self, text: str) -> str:
        if not text:
            raise TransformationError.empty_input()

        if self.config.preserve_code_blocks and (
            self.code_detector.should_skip_transformation(text)
        ):
            return text

        result: list[str] = []
        for block in self._split_into_blocks(text):
            if block == [""]:
                result.append("")
            elif self._should_unwrap(block):
                result.append(" ".join(line.strip() for line in block))
            else:
                result.extend(block)
        return "\n".join(result)

    def _split_into_blocks(self, text: str) -> list[list[str]]:
        blocks: list[list[str]] = []
        current: list[str] = []
        for line in text.split("\n"):
            if line.strip():
                current.append(line)
                continue
            if current:
                blocks.append(current)
                current = []
            # Blank lines are kept as their own separator blocks
            blocks.append([""])
        if current:
            blocks.append(current)
        return blocks

    def _should_unwrap(self, lines: list[str]) -> bool:
        if len(lines) < self.config.min_consecutive_lines:
            return False
        if self.config.preserve_code_blocks and self._contains_code_indicators(lines):
            return False
        if any(
            line.strip().startswith(self.config.preserve_prefixes) for line in lines
        ):
            return False
        if self._has_indented_continuations(lines):
            return False
        return self._is_hard_wrapped(lines)

    def _has_indented_continuations(self, lines: list[str]) -> bool:
        first = leading_width(lines[0])
        return any(leading_width(line) > first for line in lines[1:])

    def _is_hard_wrapped(self, lines: list[str]) -> bool:
        # The last line of a paragraph is usually short; leave it out
        lengths = [len(line) for line in (lines[:-1] if len(lines) > 1 else lines)]
        if not lengths:
            return False

        median = sorted(lengths)[len(lengths) // 2]
        if not self.config.wrap_range_lower <= median <= self.config.wrap_range_upper:
            return False

        consistent = sum(
            1 for n in lengths if abs(n - median) <= self.config.length_tolerance
        )
        return consistent / len(lengths) >= self.config.consistency_threshold

    def _contains_code_indicators(self, lines: list[str]) -> bool:
        for line in lines:
            if any(indicator in line for indicator in CODE_INDICATORS):
                return True
            if "{" in line or "}" in line:
                return True
            if line.startswith(("    ", "\t")):
                return True
            if line.strip().endswith((";", "{", "}")):
                return True
        return False
