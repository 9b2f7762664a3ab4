"""Release-mode transforms for bundled output.

The release pipeline runs three passes over the composed bundle, in a
fixed order:

1. remove debug output statements (print/warn) line by line
2. remove comments
3. minify

Passes 1 and 2 depend on line boundaries, which minification removes, so
the order cannot change. Every pass is total and idempotent.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence

from lua_bundler.lexer import (
    SegmentKind,
    long_bracket_level,
    render,
    segments,
    strip_comments,
    tidy_lines,
)

logger = logging.getLogger(__name__)

DEFAULT_DEBUG_FUNCTIONS = ("print", "warn")

# Give up on a call whose parentheses do not close within this many lines
MAX_CALL_LINES = 200


def _call_end(lines: list[str], row: int, col: int) -> tuple[int, int] | None:
    """Find the position just past the parenthesis closing the one at (row, col).

    Quoted strings are skipped within each line. Returns None when the call
    does not close within MAX_CALL_LINES.
    """
    depth = 0
    for r in range(row, min(len(lines), row + MAX_CALL_LINES)):
        line = lines[r]
        c = col if r == row else 0
        quote = ""
        while c < len(line):
            ch = line[c]
            if quote:
                if ch == "\\":
                    c += 1
                elif ch == quote:
                    quote = ""
            elif ch in "'\"":
                quote = ch
            elif ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return r, c + 1
            c += 1
    return None


def _statement_tail(rest: str) -> str | None:
    """What stays of a line once a debug call before ``rest`` is removed.

    Returns None when more code follows the call, an empty string when only
    whitespace, ``;`` or closed comments follow, and the opening of a block
    comment that continues on later lines otherwise.
    """
    rest = rest.strip().lstrip(";").strip()
    if not rest:
        return ""
    if not rest.startswith("--"):
        return None

    level = long_bracket_level(rest, 2)
    if level is None:
        return ""

    close = "]" + "=" * level + "]"
    end = rest.find(close, level + 4)
    if end == -1:
        return rest
    return _statement_tail(rest[end + len(close):])


def remove_debug_statements(
    text: str,
    functions: Sequence[str] = DEFAULT_DEBUG_FUNCTIONS,
) -> str:
    """Remove lines that consist of a single debug output call.

    A call spanning several lines is removed with all of its lines. Lines
    where the call is followed by more code are kept. A block comment
    opened after the call and closed on a later line is kept from its
    opening bracket on.

    Args:
        text: Lua source
        functions: Names of debug output functions

    Returns:
        Source without debug statements

    Example:
        >>> remove_debug_statements('print("hi")\\nlocal x = 1')
        'local x = 1'
    """
    if not functions:
        return text

    names = "|".join(re.escape(name) for name in functions)
    pattern = re.compile(rf"^\s*(?:{names})\s*\(")

    lines = text.split("\n")
    kept: list[str] = []
    i = 0
    while i < len(lines):
        match = pattern.match(lines[i])
        if match:
            end = _call_end(lines, i, match.end() - 1)
            if end is not None:
                row, col = end
                tail = _statement_tail(lines[row][col:])
                if tail is not None:
                    if tail:
                        kept.append(tail)
                    i = row + 1
                    continue
        kept.append(lines[i])
        i += 1

    return "\n".join(kept)


def remove_comments(text: str) -> str:
    """Remove line and block comments, leaving string literals intact.

    Lines emptied by the removal are dropped and trailing whitespace is
    trimmed.
    """
    return tidy_lines(render(strip_comments(segments(text))))


def _is_word(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _needs_space(prev: str, nxt: str) -> bool:
    """Whether whitespace between two characters must survive minification."""
    if _is_word(prev) and _is_word(nxt):
        return True
    if prev == "-" and nxt == "-":
        return True
    if prev == "[" and nxt in "[=":
        return True
    if prev == "." and (nxt == "." or nxt.isdigit()):
        return True
    return prev.isalnum() and nxt == "."


def minify(text: str) -> str:
    """Collapse Lua source into compact form.

    Whitespace outside literals is dropped except where two tokens would
    otherwise merge; comments count as whitespace. Long strings keep their
    newlines.
    """
    pieces: list[str | None] = []
    for segment in segments(text):
        if segment.kind is SegmentKind.COMMENT:
            pieces.append(None)
        elif segment.kind is SegmentKind.CODE:
            for part in re.split(r"(\s+)", segment.text):
                if not part:
                    continue
                pieces.append(None if part.isspace() else part)
        else:
            pieces.append(segment.text)

    out: list[str] = []
    pending_space = False
    for piece in pieces:
        if piece is None:
            pending_space = True
            continue
        if pending_space and out and _needs_space(out[-1][-1], piece[0]):
            out.append(" ")
        out.append(piece)
        pending_space = False

    return "".join(out)


@dataclass(frozen=True)
class TransformPass:
    """A named text transform."""

    name: str
    func: Callable[[str], str]

    def __call__(self, text: str) -> str:
        return self.func(text)


class TransformPipeline:
    """Ordered sequence of text transforms.

    Example:
        >>> pipeline = TransformPipeline.release()
        >>> [p.name for p in pipeline.passes]
        ['remove debug statements', 'remove comments', 'minify']
    """

    def __init__(self, passes: Sequence[TransformPass]) -> None:
        self.passes = list(passes)

    @classmethod
    def release(cls, debug_functions: Sequence[str] = DEFAULT_DEBUG_FUNCTIONS) -> "TransformPipeline":
        """Build the standard release pipeline."""
        functions = tuple(debug_functions)
        return cls([
            TransformPass(
                "remove debug statements",
                lambda text: remove_debug_statements(text, functions),
            ),
            TransformPass("remove comments", remove_comments),
            TransformPass("minify", minify),
        ])

    def apply(self, text: str) -> str:
        for transform in self.passes:
            logger.info(f"  - {transform.name}")
            text = transform(text)
        return text

    def __len__(self) -> int:
        return len(self.passes)
