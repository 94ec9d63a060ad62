"""Map a (first line, last line) selection onto a precise source span."""

from __future__ import annotations

from clang.cindex import Cursor

from ..errors import InvalidRangeError
from ..syntax import SourceFile, SourceSpan, function_body


def resolve_range(
    source: SourceFile, function: Cursor, first_line: int, last_line: int
) -> SourceSpan:
    """Return the span covering lines *first_line*..*last_line* of *function*.

    The span starts at the first non-whitespace character of the selection,
    so the call that replaces it keeps the original indentation, and ends
    right before the last line's terminator.  It must lie strictly between
    the braces of the function body.
    """
    if first_line > last_line:
        raise InvalidRangeError(
            f"first line {first_line} is after last line {last_line}"
        )
    if first_line < 1 or last_line > source.line_count:
        raise InvalidRangeError(
            f"lines {first_line}-{last_line} are outside {source.path}"
            f" ({source.line_count} lines)"
        )

    body = function_body(function)
    if body is None:
        raise InvalidRangeError(f"function {function.spelling!r} has no body")
    body_span = source.cursor_span(body)
    # Exclusive of both braces.
    inner_begin = body_span.begin.offset + 1
    inner_end = body_span.end.offset - 1

    end = source.line_end(last_line).offset
    begin = source.skip_whitespace(source.position(first_line).offset, end)
    if begin == end:
        raise InvalidRangeError(
            f"lines {first_line}-{last_line} contain no code to extract"
        )

    if begin < inner_begin or end > inner_end:
        raise InvalidRangeError(
            f"lines {first_line}-{last_line} are not inside the body of"
            f" {function.spelling!r} (lines {source.line_of(inner_begin)}"
            f"-{source.line_of(inner_end)})"
        )
    return source.span(begin, end)
