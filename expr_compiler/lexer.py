"""
Lexer / Tokenizer for the expression compiler.

Converts a single-line arithmetic expression into a flat list of tokens:
single-character operators (+ - * / ( )), decimal integer literals, and a
trailing EOF sentinel. Every token remembers its 0-based source offset so
that diagnostics can point at the offending character.
"""

from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import List

from .errors import LexerError, LiteralOverflowError

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Token types
# ──────────────────────────────────────────────

class TokenType(enum.Enum):
    OPERATOR = "OPERATOR"
    NUMBER = "NUMBER"
    EOF = "EOF"


# Largest literal that fits a sign-extended `push imm32`
INT32_MAX = 2 ** 31 - 1

OPERATOR_CHARS = "+-*/()"
DIGITS = "0123456789"
WHITESPACE = " \t\r\n\f\v"


# ──────────────────────────────────────────────
# Token data class
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str | int
    pos: int

    def is_op(self, op: str) -> bool:
        return self.type is TokenType.OPERATOR and self.value == op

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, @{self.pos})"


# ──────────────────────────────────────────────
# Lexer
# ──────────────────────────────────────────────

class Lexer:
    """Tokenizes an arithmetic expression into a list of Tokens."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.tokens: List[Token] = []

    def _peek(self) -> str:
        return self.source[self.pos] if self.pos < len(self.source) else "\0"

    def _skip_whitespace(self):
        while self.pos < len(self.source) and self.source[self.pos] in WHITESPACE:
            self.pos += 1

    def _read_number(self) -> Token:
        start = self.pos
        # ASCII digits only; str.isdigit() would also accept e.g. '²'
        while self.pos < len(self.source) and self.source[self.pos] in DIGITS:
            self.pos += 1

        text = self.source[start:self.pos]
        value = int(text, 10)
        if value > INT32_MAX:
            raise LiteralOverflowError(
                f"integer literal {text} exceeds {INT32_MAX}", start)
        return Token(TokenType.NUMBER, value, start)

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source and return a list of tokens."""
        self.pos = 0
        self.tokens = []

        while True:
            self._skip_whitespace()
            if self.pos >= len(self.source):
                break

            ch = self._peek()

            if ch in OPERATOR_CHARS:
                self.tokens.append(Token(TokenType.OPERATOR, ch, self.pos))
                self.pos += 1
                continue

            if ch in DIGITS:
                self.tokens.append(self._read_number())
                continue

            raise LexerError(f"invalid token {ch!r}", self.pos)

        self.tokens.append(Token(TokenType.EOF, "", len(self.source)))
        logger.debug("lexed %d tokens", len(self.tokens) - 1)
        return self.tokens


def tokenize(source: str) -> List[Token]:
    """Convenience wrapper: ``Lexer(source).tokenize()``."""
    return Lexer(source).tokenize()
