"""Strip the indentation and trailing blanks that terminals add to copies."""

from __future__ import annotations

from dataclasses import dataclass

from clipflow.services.transformations.errors import TransformationError


TAB_WIDTH = 4


@dataclass(frozen=True, slots=True)
class WhitespaceStripConfig:
    maximum_strip: int = 8
    strip_trailing: bool = True
    normalize_line_endings: bool = True


def leading_width(line: str) -> int:
    width = 0
    for char in line:
        if char == " ":
            width += 1
        elif char == "\t":
            width += TAB_WIDTH
        else:
            break
    return width


def _strip_leading(line: str, amount: int) -> str:
    index = 0
    remaining = amount
    while remaining > 0 and index < len(line):
        char = line[index]
        if char == " ":
            remaining -= 1
        elif char == "\t":
            remaining -= min(TAB_WIDTH, remaining)
        else:
            break
        index += 1
    return line[index:]


class WhitespaceStripTransformation:
    id = "whitespace-strip"
    display_name = "Strip Whitespace"

    def __init__(self, config: WhitespaceStripConfig | None = None):
        self.config = config or WhitespaceStripConfig()

    async def transform(self, text: str) -> str:
        if not text:
            raise TransformationError.empty_input()

        result = text
        if self.config.normalize_line_endings:
            result = result.replace("\r\n", "\n")
        result = self._strip_common_indent(result)
        if self.config.strip_trailing:
            result = "\n".join(line.rstrip(" \t") for line in result.split("\n"))
        return result

    def _strip_common_indent(self, text: str) -> str:
        lines = text.split("\n")
        widths = [leading_width(line) for line in lines if line.strip()]
        if not widths:
            return text

        amount = min(min(widths), self.config.maximum_strip)
        if amount <= 0:
            return text
        return "\n".join(_strip_leading(line, amount) for line in lines)
