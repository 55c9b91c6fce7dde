"""
Exception hierarchy for the expression compiler.

Every user-facing error carries the 0-based source offset where it was
detected so the driver can point a caret at it. Errors are raised at the
point of detection and are never recovered from.
"""

from __future__ import annotations


class CompileError(Exception):
    """Base class for all compilation errors."""

    kind = "Compile"

    def __init__(self, message: str, pos: int):
        self.message = message
        self.pos = pos
        super().__init__(f"{self.kind} error at {pos}: {message}")


class LexerError(CompileError):
    kind = "Lexer"


class LiteralOverflowError(LexerError):
    """Integer literal does not fit in a signed 32-bit immediate."""


class ParseError(CompileError):
    kind = "Parse"


class CodeGenError(CompileError):
    """Malformed AST reached the code generator (internal defect)."""

    kind = "Code generation"
