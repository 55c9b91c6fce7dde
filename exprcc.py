#!/usr/bin/env python3
"""
exprcc — Arithmetic Expression Compiler CLI

Usage:
    python exprcc.py <expression> [-o output.s] [--target x86_64-linux|x86_64-darwin]
                                  [--entry SYMBOL] [--tokens] [--ast] [--run] [--verbose]

Examples:
    python exprcc.py "1+2*3" > tmp.s && cc -o tmp tmp.s && ./tmp; echo $?
    python exprcc.py "2*(3+4*(5-1))" --run          # prints 38
    python exprcc.py "(1+2)*3" --ast
    python exprcc.py "6/2+1" -o out.s --target x86_64-darwin
    python exprcc.py -- "-1+2"                       # expression starting with "-"

An expression that starts with "-" and is not preceded by "--" is moved
behind an implicit "--" so it reaches the parser instead of argparse.

Exit status: 0 on success, 1 on usage / lexer / parse errors,
2 on internal compiler errors.
"""

import argparse
import logging
import os
import sys

# Allow running from project root or as module
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from expr_compiler import __version__, compile_source
from expr_compiler.lexer import Lexer
from expr_compiler.parser import Parser
from expr_compiler.ast_nodes import BinaryOp
from expr_compiler.codegen import TARGET_PROFILES, DEFAULT_TARGET
from expr_compiler.emulator import EmulatorFault, evaluate
from expr_compiler.errors import CodeGenError, LexerError, ParseError
from expr_compiler.diagnostics import format_error

logger = logging.getLogger("exprcc")


class _ArgumentParser(argparse.ArgumentParser):
    """argparse exits with 2 on usage errors; this tool exits with 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="exprcc",
        description="Compile an integer arithmetic expression to x86-64 assembly",
        epilog="Targets: " + ", ".join(TARGET_PROFILES.keys()),
    )
    parser.add_argument("expression", help="Expression to compile, e.g. \"1+2*3\"")
    parser.add_argument("-o", "--output", help="Output assembly file (default: stdout)")
    parser.add_argument("--target", default=DEFAULT_TARGET,
                        choices=list(TARGET_PROFILES.keys()),
                        help=f"Target profile (default: {DEFAULT_TARGET})")
    parser.add_argument("--entry", default=None,
                        help="Entry symbol (default: taken from the target profile)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log compilation details to stderr")
    parser.add_argument("--tokens", action="store_true",
                        help="Dump token stream and exit (debug)")
    parser.add_argument("--ast", action="store_true",
                        help="Dump AST and exit (debug)")
    parser.add_argument("--run", action="store_true",
                        help="Execute the generated code on the built-in emulator "
                             "and print the returned value")
    parser.add_argument("--version", action="version",
                        version=f"exprcc {__version__}")
    return parser


def setup_logging(verbose: bool):
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        handlers=[handler],
        force=True,
    )


# Options whose next argument is a value, never the expression
_VALUE_OPTIONS = {"-o", "--output", "--target", "--entry"}


def protect_expression(argv):
    """Move a leading-"-" expression such as "-1+2" behind "--"."""
    argv = list(argv)
    for i, arg in enumerate(argv):
        if arg == "--":
            break
        if i > 0 and argv[i - 1] in _VALUE_OPTIONS:
            continue
        if len(arg) > 1 and arg[0] == "-" and arg[1] in "0123456789(":
            return argv[:i] + argv[i + 1:] + ["--", arg]
    return argv


def main(argv=None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = build_arg_parser().parse_args(protect_expression(argv))
    setup_logging(args.verbose)

    source = args.expression
    profile = TARGET_PROFILES[args.target]
    entry = args.entry or profile["entry"]

    logger.info("Target: %s (%s)", args.target, profile["description"])
    logger.info("Entry:  %s", entry)

    try:
        # Token dump mode
        if args.tokens:
            for tok in Lexer(source).tokenize():
                print(tok)
            return 0

        # AST dump mode
        if args.ast:
            tokens = Lexer(source).tokenize()
            _print_ast(Parser(tokens, source).parse())
            return 0

        result = compile_source(source, target=args.target, entry=entry)

        if args.run:
            print(evaluate(result, entry=entry))
            return 0

        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(result)
            logger.info("Output: %s", args.output)
        else:
            sys.stdout.write(result)

        logger.info("Generated %d lines of assembly", result.count("\n"))

    except (LexerError, ParseError) as e:
        print(format_error(source, e), file=sys.stderr)
        return 1
    except EmulatorFault as e:
        print(f"Runtime fault: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error writing {args.output}: {e}", file=sys.stderr)
        return 1
    except CodeGenError as e:
        print(f"Internal compiler error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Internal compiler error: {e}", file=sys.stderr)
        if args.verbose:
            logger.exception("traceback")
        return 2

    return 0


def _print_ast(root):
    """Pretty-print an expression tree (debug helper)."""
    stack = [(root, 0)]
    while stack:
        node, indent = stack.pop()
        prefix = "  " * indent
        if isinstance(node, BinaryOp):
            print(f"{prefix}{node.kind.name} '{node.op}' @{node.pos}")
            stack.append((node.right, indent + 1))
            stack.append((node.left, indent + 1))
        else:
            print(f"{prefix}NUM {node.value} @{node.pos}")


if __name__ == "__main__":
    sys.exit(main())
