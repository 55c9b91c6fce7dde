"""
x86-64 Code Generator for the expression compiler.

Translates the AST into GNU as assembly (Intel syntax) for a zero-argument
routine that returns the value of the expression.

Register usage convention:
  - rax: accumulator, left operand and result; return value on exit
  - rdi: scratch, right operand
  - rdx: high half of the dividend for idiv (written by cqo)
  - rsp: runtime operand stack, one 8-byte slot per pushed value

Stack discipline:
  Every subtree leaves exactly one value on the runtime stack. A literal
  pushes itself; a binary node pops its two operands (right first) and
  pushes the result. The final value is popped into rax before `ret`.
"""

from __future__ import annotations
import logging
from typing import List, Optional

from .ast_nodes import ASTNode, BinaryOp, Expression, NodeKind, NumberLiteral
from .errors import CodeGenError

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Target profiles
# ──────────────────────────────────────────────

TARGET_PROFILES = {
    "x86_64-linux": {
        "syntax": ".intel_syntax noprefix",
        "entry": "main",
        "description": "x86-64 ELF (System V), GNU as Intel syntax",
    },
    "x86_64-darwin": {
        "syntax": ".intel_syntax noprefix",
        "entry": "_main",
        "description": "x86-64 Mach-O, underscore-prefixed symbols",
    },
}

DEFAULT_TARGET = "x86_64-linux"

# Instructions applied after `pop rdi; pop rax`
_OP_INSTRUCTIONS = {
    NodeKind.ADD: ["add rax, rdi"],
    NodeKind.SUB: ["sub rax, rdi"],
    NodeKind.MUL: ["imul rax, rdi"],
    # sign-extend rax into rdx:rax, quotient -> rax, remainder -> rdx (dropped)
    NodeKind.DIV: ["cqo", "idiv rdi"],
}


class CodeGenerator:
    """Generates x86-64 assembly from an expression AST."""

    def __init__(self, target: str = DEFAULT_TARGET, entry: Optional[str] = None):
        if target not in TARGET_PROFILES:
            raise ValueError(f"unknown target {target!r}; "
                             f"choose from {', '.join(TARGET_PROFILES)}")
        self.target = target
        self.profile = TARGET_PROFILES[target]
        self.entry = entry or self.profile["entry"]

        self._lines: List[str] = []
        self._depth = 0             # values currently on the runtime stack
        self.max_depth = 0

    # ── Output helpers ────────────────────────

    def _emit(self, line: str):
        """Emit an instruction, indented two spaces."""
        self._lines.append(f"  {line}")

    def _emit_directive(self, line: str):
        self._lines.append(line)

    def _emit_label(self, label: str):
        self._lines.append(f"{label}:")

    def _push(self, operand: str):
        self._emit(f"push {operand}")
        self._depth += 1
        self.max_depth = max(self.max_depth, self._depth)

    def _pop(self, register: str, node: ASTNode):
        if self._depth <= 0:
            raise CodeGenError("operand stack underflow", node.pos)
        self._emit(f"pop {register}")
        self._depth -= 1

    # ── Main generation entry point ───────────

    def generate(self, ast: Expression) -> str:
        """Generate the complete assembly listing for `ast`."""
        self._lines = []
        self._depth = 0
        self.max_depth = 0

        self._emit_directive(self.profile["syntax"])
        self._emit_directive(f".globl {self.entry}")
        self._emit_label(self.entry)

        self._gen_expr(ast)
        if self._depth != 1:
            raise CodeGenError(
                f"expected one value on the operand stack, found {self._depth}",
                ast.pos)

        # Result of the whole expression is on top of the stack
        self._pop("rax", ast)
        self._emit("ret")

        logger.debug("generated %d lines for %s (max stack depth %d)",
                     len(self._lines), self.entry, self.max_depth)
        return "\n".join(self._lines) + "\n"

    # ── Expressions ───────────────────────────

    def _gen_expr(self, root: Expression):
        """Post-order emission driven by an explicit work stack.

        Each entry is (node, depth_before). depth_before is None until the
        node is first visited; a BinaryOp is re-queued with its recorded
        depth so its operator is emitted after both operands.
        """
        work = [(root, None)]
        while work:
            node, before = work.pop()

            if before is None:
                before = self._depth
                if isinstance(node, BinaryOp):
                    self._check_binary_op(node)
                    work.append((node, before))
                    work.append((node.right, None))
                    work.append((node.left, None))
                    continue
                if not isinstance(node, NumberLiteral):
                    raise CodeGenError(f"unknown AST node {type(node).__name__}",
                                       getattr(node, "pos", 0))
                self._push(str(node.value))
            else:
                self._gen_binary_op(node)

            if self._depth != before + 1:
                raise CodeGenError("subtree did not leave exactly one value",
                                   node.pos)

    def _check_binary_op(self, node: BinaryOp):
        if node.kind not in _OP_INSTRUCTIONS:
            raise CodeGenError(f"unsupported binary operator {node.kind.name}",
                               node.pos)
        if node.left is None or node.right is None:
            raise CodeGenError("binary node is missing an operand", node.pos)

    def _gen_binary_op(self, node: BinaryOp):
        """Both operands are on the stack, right on top."""
        self._pop("rdi", node)
        self._pop("rax", node)
        for ins in _OP_INSTRUCTIONS[node.kind]:
            self._emit(ins)
        self._push("rax")
