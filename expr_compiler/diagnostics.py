"""Caret-style error reports for the CLI."""

from __future__ import annotations

from .errors import CompileError

# Whitespace the lexer skips that also breaks a terminal line
LINE_BREAKS = "\n\r\v\f"


def format_diagnostic(source: str, pos: int, message: str) -> str:
    """Echo the line of `source` containing offset `pos` and put a caret under it.

    >>> print(format_diagnostic("1 @ 2", 2, "invalid token '@'"))
    1 @ 2
      ^ invalid token '@'
    """
    pos = max(0, min(pos, len(source)))

    start = max(source.rfind(ch, 0, pos) for ch in LINE_BREAKS) + 1
    end = len(source)
    for ch in LINE_BREAKS:
        i = source.find(ch, pos)
        if i != -1:
            end = min(end, i)

    line = source[start:end]
    # Keep tabs so the caret lines up with the echoed input
    pad = "".join("\t" if ch == "\t" else " " for ch in source[start:pos])
    return f"{line}\n{pad}^ {message}"


def format_error(source: str, err: CompileError) -> str:
    return format_diagnostic(source, err.pos, err.message)
