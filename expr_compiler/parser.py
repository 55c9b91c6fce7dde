"""
Recursive-descent parser for the expression compiler.

Parses the token list from the Lexer into an AST defined in ast_nodes.
Two mutually recursive precedence levels, lowest first:

    expr    := mul ( ('+' | '-') mul )*
    mul     := primary ( ('*' | '/') primary )*
    primary := '(' expr ')' | NUMBER

Both binary levels are left-associative, so ``10-3-2`` parses as
``(10-3)-2``. The cursor is owned by the Parser instance and only ever
moves forward.
"""

from __future__ import annotations
import logging
import sys
from typing import List

from .lexer import Token, TokenType
from .ast_nodes import BINARY_OPS, BinaryOp, Expression, NumberLiteral, depth
from .errors import ParseError

logger = logging.getLogger(__name__)

# Deepest parenthesis nesting accepted; deeper input is a ParseError
MAX_NESTING = 512

# Python frames used per nesting level: primary -> expr -> mul -> primary
_FRAMES_PER_LEVEL = 3


class Parser:
    """Recursive descent parser producing an AST from tokens."""

    def __init__(self, tokens: List[Token], source: str = ""):
        if not tokens or tokens[-1].type is not TokenType.EOF:
            raise ValueError("token list must end with an EOF token")
        self.tokens = tokens
        self.source = source
        self.pos = 0
        self.nesting = 0

    # ── Cursor helpers ────────────────────────

    def _cur(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def consume(self, op: str) -> bool:
        """Advance past operator `op` if it is next; never raises."""
        if not self._cur().is_op(op):
            return False
        self._advance()
        return True

    def expect(self, op: str) -> Token:
        """Advance past operator `op` or fail."""
        tok = self._cur()
        if not tok.is_op(op):
            raise ParseError(f"expected '{op}'", tok.pos)
        return self._advance()

    def expect_number(self) -> int:
        """Advance past a number token and return its value, or fail."""
        tok = self._cur()
        if tok.type is not TokenType.NUMBER:
            raise ParseError("expected a number", tok.pos)
        self._advance()
        return tok.value

    def at_eof(self) -> bool:
        return self._cur().type is TokenType.EOF

    # ── Entry point ───────────────────────────

    def parse(self) -> Expression:
        """Parse the full token stream into a single expression tree."""
        # Each nesting level costs a few frames; make room for MAX_NESTING of them
        limit = sys.getrecursionlimit()
        sys.setrecursionlimit(limit + _FRAMES_PER_LEVEL * MAX_NESTING)
        try:
            node = self._parse_expr()
        finally:
            sys.setrecursionlimit(limit)

        if not self.at_eof():
            tok = self._cur()
            raise ParseError(f"unexpected trailing token {tok.value!r}", tok.pos)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("parsed AST of depth %d", depth(node))
        return node

    # ── Grammar rules ─────────────────────────

    def _parse_expr(self) -> Expression:
        node = self._parse_mul()
        while True:
            tok = self._cur()
            if self.consume("+") or self.consume("-"):
                node = BinaryOp(kind=BINARY_OPS[tok.value], left=node,
                                right=self._parse_mul(), pos=tok.pos)
            else:
                return node

    def _parse_mul(self) -> Expression:
        node = self._parse_primary()
        while True:
            tok = self._cur()
            if self.consume("*") or self.consume("/"):
                node = BinaryOp(kind=BINARY_OPS[tok.value], left=node,
                                right=self._parse_primary(), pos=tok.pos)
            else:
                return node

    def _parse_primary(self) -> Expression:
        tok = self._cur()
        if self.consume("("):
            if self.nesting >= MAX_NESTING:
                raise ParseError(
                    f"parentheses nested deeper than {MAX_NESTING}", tok.pos)
            self.nesting += 1
            node = self._parse_expr()
            self.expect(")")
            self.nesting -= 1
            return node

        return NumberLiteral(value=self.expect_number(), pos=tok.pos)


def parse(tokens: List[Token], source: str = "") -> Expression:
    """Convenience wrapper: ``Parser(tokens, source).parse()``."""
    return Parser(tokens, source).parse()
