"""
AST Node definitions for the expression compiler.

The tree has exactly two shapes: a binary operation that owns two
children, and an integer literal leaf. Nodes are built bottom-up by the
parser and only read by the code generator.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Dict, Iterator, Union


# ──────────────────────────────────────────────
# Node kinds
# ──────────────────────────────────────────────

class NodeKind(enum.Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    NUM = "NUM"

    @property
    def symbol(self) -> str:
        """Source operator character for binary kinds."""
        return self.value


BINARY_OPS: Dict[str, NodeKind] = {
    "+": NodeKind.ADD,
    "-": NodeKind.SUB,
    "*": NodeKind.MUL,
    "/": NodeKind.DIV,
}


# ──────────────────────────────────────────────
# Base AST node
# ──────────────────────────────────────────────

@dataclass
class ASTNode:
    """Base class for all AST nodes."""
    pos: int = 0


# ──────────────────────────────────────────────
# Expressions
# ──────────────────────────────────────────────

Expression = Union["BinaryOp", "NumberLiteral"]


@dataclass
class NumberLiteral(ASTNode):
    """Integer constant."""
    value: int = 0

    @property
    def kind(self) -> NodeKind:
        return NodeKind.NUM


@dataclass
class BinaryOp(ASTNode):
    """Binary operation: left op right."""
    kind: NodeKind = NodeKind.ADD
    left: Expression = None   # type: ignore
    right: Expression = None  # type: ignore

    @property
    def op(self) -> str:
        return self.kind.symbol


def walk(node: Expression) -> Iterator[Expression]:
    """Yield every node in post-order (children before parent).

    Uses an explicit stack so arbitrarily deep trees do not hit the
    interpreter's recursion limit.
    """
    stack = [(node, False)]
    while stack:
        cur, expanded = stack.pop()
        if isinstance(cur, BinaryOp) and not expanded:
            stack.append((cur, True))
            stack.append((cur.right, False))
            stack.append((cur.left, False))
        else:
            yield cur


def depth(node: Expression) -> int:
    """Height of the tree; a lone literal has depth 1."""
    best = 0
    stack = [(node, 1)]
    while stack:
        cur, level = stack.pop()
        best = max(best, level)
        if isinstance(cur, BinaryOp):
            stack.append((cur.left, level + 1))
            stack.append((cur.right, level + 1))
    return best


def to_sexpr(node: Expression) -> str:
    """Fully parenthesised prefix rendering, e.g. ``(+ 1 (* 2 3))``."""
    parts = []
    for cur in walk(node):
        if isinstance(cur, BinaryOp):
            right = parts.pop()
            left = parts.pop()
            parts.append(f"({cur.op} {left} {right})")
        else:
            parts.append(str(cur.value))
    return parts[0]
