"""Minimal Lua source segmenter.

Splits source into code, string and comment segments. This is not a full
tokenizer: it only knows enough Lua to tell where strings and comments
begin and end, so text transforms can leave literals untouched.
"""

import re
from dataclasses import dataclass
from enum import Enum


class SegmentKind(str, Enum):
    CODE = "code"
    STRING = "string"
    LONG_STRING = "long_string"
    COMMENT = "comment"


@dataclass(frozen=True)
class Segment:
    """A contiguous slice of source text of one kind."""

    kind: SegmentKind
    text: str

    @property
    def is_literal(self) -> bool:
        return self.kind in (SegmentKind.STRING, SegmentKind.LONG_STRING)


def long_bracket_level(source: str, index: int) -> int | None:
    """Return the level of a long bracket opening at index.

    ``[[`` is level 0, ``[==[`` is level 2. Returns None when the ``[`` at
    index does not open a long bracket.
    """
    if index >= len(source) or source[index] != "[":
        return None
    j = index + 1
    while j < len(source) and source[j] == "=":
        j += 1
    if j < len(source) and source[j] == "[":
        return j - index - 1
    return None


def _long_bracket_end(source: str, start: int, level: int) -> int:
    close = "]" + "=" * level + "]"
    end = source.find(close, start)
    return len(source) if end == -1 else end + len(close)


def _short_string_end(source: str, start: int) -> int:
    quote = source[start]
    j = start + 1
    n = len(source)
    while j < n:
        c = source[j]
        if c == "\\":
            j += 2
            continue
        if c == quote:
            return j + 1
        if c == "\n":
            # Unterminated string; stop at the line end
            return j
        j += 1
    return n


def segments(source: str) -> list[Segment]:
    """Split Lua source into code, string and comment segments.

    Joining the text of every segment reproduces the input exactly.

    Example:
        >>> [s.kind.value for s in segments('x = "a" -- note')]
        ['code', 'string', 'code', 'comment']
    """
    result: list[Segment] = []
    n = len(source)
    code_start = 0
    i = 0

    def flush_code(end: int) -> None:
        if end > code_start:
            result.append(Segment(SegmentKind.CODE, source[code_start:end]))

    while i < n:
        c = source[i]

        if c == "-" and source.startswith("--", i):
            flush_code(i)
            level = long_bracket_level(source, i + 2)
            if level is not None:
                end = _long_bracket_end(source, i + level + 4, level)
            else:
                end = source.find("\n", i)
                end = n if end == -1 else end
            result.append(Segment(SegmentKind.COMMENT, source[i:end]))
            i = code_start = end
            continue

        if c == "[":
            level = long_bracket_level(source, i)
            if level is not None:
                flush_code(i)
                end = _long_bracket_end(source, i + level + 2, level)
                result.append(Segment(SegmentKind.LONG_STRING, source[i:end]))
                i = code_start = end
                continue

        if c in "'\"":
            flush_code(i)
            end = min(_short_string_end(source, i), n)
            result.append(Segment(SegmentKind.STRING, source[i:end]))
            i = code_start = end
            continue

        i += 1

    flush_code(n)
    return result


def render(parts: list[Segment]) -> str:
    return "".join(segment.text for segment in parts)


def is_block_comment(segment: Segment) -> bool:
    return segment.kind is SegmentKind.COMMENT and long_bracket_level(segment.text, 2) is not None


def strip_comments(parts: list[Segment]) -> list[Segment]:
    """Drop comment segments.

    Block comments become a single space so the code on either side does
    not merge into one token.
    """
    stripped: list[Segment] = []
    for segment in parts:
        if segment.kind is not SegmentKind.COMMENT:
            stripped.append(segment)
        elif is_block_comment(segment):
            stripped.append(Segment(SegmentKind.CODE, " "))
    return stripped


_TRAILING_WS = re.compile(r"[ \t\r]+\n")
_LEADING_WS = re.compile(r"\n[ \t]+")
_BLANK_LINES = re.compile(r"\n{2,}")


def tidy_lines(source: str, strip_indent: bool = False) -> str:
    """Trim trailing whitespace and drop blank lines outside literals.

    Args:
        source: Lua source without comments
        strip_indent: Also remove leading indentation

    Returns:
        Source with literals untouched
    """
    source_parts = segments(source)
    parts: list[str] = []
    for index, segment in enumerate(source_parts):
        if segment.kind is not SegmentKind.CODE:
            parts.append(segment.text)
            continue
        text = _TRAILING_WS.sub("\n", segment.text)
        if index == len(source_parts) - 1:
            text = text.rstrip(" \t\r")
        if strip_indent:
            text = _LEADING_WS.sub("\n", text)
        parts.append(_BLANK_LINES.sub("\n", text))

    result = "".join(parts).lstrip("\n")
    if strip_indent:
        result = result.lstrip(" \t")
    return result
