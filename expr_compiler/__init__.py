"""
exprcc — Arithmetic Expression Compiler for x86-64
==================================================
Compiles a single-line integer expression (``+ - * /`` and parentheses)
into GNU as assembly for a zero-argument routine returning its value.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌───────────┐
    │ "1+2*3"  │───>│  Lexer   │───>│  Parser  │───>│  CodeGen  │───> asm text
    │  (str)   │    │ (tokens) │    │  (AST)   │    │ (push/pop)│
    └──────────┘    └──────────┘    └──────────┘    └───────────┘

    - lexer.py:       single-character operators and decimal literals
    - parser.py:      recursive descent, two precedence levels
    - ast_nodes.py:   BinaryOp / NumberLiteral dataclasses
    - codegen.py:     post-order stack-machine emitter
    - emulator.py:    runs the emitted subset to check return values
    - diagnostics.py: caret-style error reports
"""

__version__ = "0.1.0"

import logging

from .errors import (CompileError, LexerError, LiteralOverflowError,
                     ParseError, CodeGenError)
from .lexer import Lexer, Token, TokenType, tokenize
from .ast_nodes import BinaryOp, NumberLiteral, NodeKind, Expression
from .parser import Parser, parse
from .codegen import CodeGenerator, TARGET_PROFILES, DEFAULT_TARGET
from .emulator import StackEmulator, StopReason, EmulatorError, EmulatorFault, evaluate
from .diagnostics import format_diagnostic, format_error

logger = logging.getLogger(__name__)


def compile_source(source: str, *, target: str = DEFAULT_TARGET,
                   entry: str = None) -> str:
    """Compile an expression to x86-64 assembly text.

    Full pipeline: Lexer -> Parser -> AST -> CodeGenerator.

    Args:
        source: The expression, e.g. ``"2*(3+4)"``.
        target: Key into TARGET_PROFILES (default ``x86_64-linux``).
        entry: Override the profile's entry symbol.

    Returns:
        Assembly text ending in a newline.

    Raises:
        LexerError, ParseError: malformed input (first error only).
        CodeGenError: internal defect in the generated AST.
    """
    logger.debug("compiling %r for %s", source, target)
    tokens = Lexer(source).tokenize()
    ast = Parser(tokens, source).parse()
    gen = CodeGenerator(target=target, entry=entry)
    return gen.generate(ast)


def run_source(source: str, *, target: str = DEFAULT_TARGET,
               entry: str = None) -> int:
    """Compile `source` and execute it on the StackEmulator."""
    asm = compile_source(source, target=target, entry=entry)
    return evaluate(asm, entry=entry or TARGET_PROFILES[target]["entry"])
