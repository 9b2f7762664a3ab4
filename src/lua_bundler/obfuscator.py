"""Source obfuscation for local modules.

Three intensity levels, each including the previous one:

1. Basic: strip comments, indentation and blank lines
2. Medium: rewrite string literals as decimal byte escapes
3. Heavy: rewrite decimal integer literals as hex and prepend a
   dead-code block

Literals passed to ``require`` or ``HttpGet`` are never rewritten, so the
dependency scanner still finds them in obfuscated output. Output is
deterministic for a given input.
"""

import hashlib
import logging
import re
from typing import Protocol

from lua_bundler.lexer import (
    Segment,
    SegmentKind,
    render,
    segments,
    strip_comments,
    tidy_lines,
)

logger = logging.getLogger(__name__)

MIN_LEVEL = 1
MAX_LEVEL = 3
LEVEL_NAMES = ["None", "Basic", "Medium", "Heavy"]

# A string literal following one of these calls is a dependency reference
_PROTECTED_CALL = re.compile(r"\b(?:require|HttpGet|HttpGetAsync)\s*\(?\s*$")
_DECIMAL_INTEGER = re.compile(r"(?<![\w.])(\d+)(?![\w.])")


class SourceObfuscator(Protocol):
    """Anything that can obfuscate a module's source."""

    def obfuscate(self, source: str) -> str:
        ...


def clamp_level(level: int) -> int:
    """Clamp an obfuscation level into the supported 1-3 range."""
    return max(MIN_LEVEL, min(level, MAX_LEVEL))


def _copy_escape(body: str, i: int) -> int:
    """Return the index just past the escape sequence starting at body[i]."""
    if i + 1 >= len(body):
        return len(body)
    nxt = body[i + 1]
    if nxt.isdigit():
        j = i + 1
        while j < len(body) and j < i + 4 and body[j].isdigit():
            j += 1
        return j
    if nxt == "x":
        return min(i + 4, len(body))
    if nxt == "z":
        # \z skips the whitespace after it, which must stay whitespace
        j = i + 2
        while j < len(body) and body[j].isspace():
            j += 1
        return j
    if nxt == "u" and i + 2 < len(body) and body[i + 2] == "{":
        close = body.find("}", i + 3)
        return len(body) if close == -1 else close + 1
    return i + 2


def encode_string_literal(literal: str) -> str:
    """Rewrite a quoted Lua string as decimal byte escapes.

    Existing escape sequences are copied unchanged so the literal keeps its
    value.

    Example:
        >>> encode_string_literal('"hi"')
        '"\\\\104\\\\105"'
    """
    if len(literal) < 2 or literal[-1] != literal[0]:
        return literal

    quote = literal[0]
    body = literal[1:-1]
    out: list[str] = []
    i = 0
    while i < len(body):
        if body[i] == "\\":
            end = _copy_escape(body, i)
            out.append(body[i:end])
            i = end
            continue
        out.extend(f"\\{byte:03d}" for byte in body[i].encode("utf-8"))
        i += 1
    return quote + "".join(out) + quote


def _encode_strings(parts: list[Segment]) -> list[Segment]:
    result: list[Segment] = []
    previous_code = ""
    for segment in parts:
        if segment.kind is SegmentKind.CODE:
            previous_code = segment.text
            result.append(segment)
        elif segment.kind is SegmentKind.STRING and not _PROTECTED_CALL.search(previous_code):
            result.append(Segment(segment.kind, encode_string_literal(segment.text)))
            previous_code = ""
        else:
            result.append(segment)
            previous_code = ""
    return result


def _hex_integers(parts: list[Segment]) -> list[Segment]:
    result: list[Segment] = []
    for segment in parts:
        if segment.kind is SegmentKind.CODE:
            text = _DECIMAL_INTEGER.sub(lambda m: f"0x{int(m.group(1)):X}", segment.text)
            result.append(Segment(segment.kind, text))
        else:
            result.append(segment)
    return result


def _dead_code_block(source: str) -> str:
    digest = hashlib.sha256(source.encode("utf-8")).hexdigest()
    name = f"_0x{digest[:8]}"
    value = int(digest[8:14], 16)
    return f"do local {name}=0x{value:X} if {name}~=0x{value:X} then return end end\n"


class Obfuscator:
    """Level-based obfuscator for local Lua modules.

    Attributes:
        level: Intensity, clamped to 1-3
    """

    def __init__(self, level: int) -> None:
        self.level = clamp_level(level)

    @property
    def level_name(self) -> str:
        return LEVEL_NAMES[self.level]

    def obfuscate(self, source: str) -> str:
        parts = strip_comments(segments(source))

        if self.level >= 2:
            parts = _encode_strings(parts)
        if self.level >= 3:
            parts = _hex_integers(parts)

        result = tidy_lines(render(parts), strip_indent=True)

        if self.level >= 3:
            result = _dead_code_block(source) + result

        logger.debug(f"Obfuscated {len(source)} -> {len(result)} chars at level {self.level}")
        return result
