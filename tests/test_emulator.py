"""
Stack Emulator Tests

Each test feeds a hand-written listing (same dialect the code generator
emits) to the emulator and checks registers, stack and stop reason.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from expr_compiler.emulator import (StackEmulator, StopReason, EmulatorError,
                                    EmulatorFault, evaluate, trunc_div,
                                    to_signed, MASK64)


HEADER = ".intel_syntax noprefix\n.globl main\nmain:\n"


def _emu(body: str) -> StackEmulator:
    emu = StackEmulator()
    emu.load(HEADER + body)
    return emu


class TestHelpers:
    def test_trunc_div(self):
        assert trunc_div(7, 2) == 3
        assert trunc_div(-7, 2) == -3
        assert trunc_div(7, -2) == -3
        assert trunc_div(-7, -2) == 3

    def test_to_signed(self):
        assert to_signed(MASK64) == -1
        assert to_signed(1 << 63) == -(1 << 63)
        assert to_signed(5) == 5


class TestLoad:
    def test_entry_from_globl(self):
        emu = _emu("  push 1\n  pop rax\n  ret\n")
        assert emu.entry == "main"
        assert emu.labels["main"] == 0
        assert len(emu.program) == 3

    def test_explicit_entry_must_exist(self):
        emu = StackEmulator(entry="start")
        with pytest.raises(EmulatorError):
            emu.load(HEADER + "  ret\n")

    def test_comments_ignored(self):
        emu = _emu("  push 9   # nine\n  pop rax\n  ret\n")
        assert emu.run() is StopReason.RETURN
        assert emu.result == 9

    def test_unsupported_instruction(self):
        with pytest.raises(EmulatorError) as exc:
            _emu("  mov rax, 1\n  ret\n")
        assert exc.value.line_no == 4

    def test_wrong_arity(self):
        with pytest.raises(EmulatorError):
            _emu("  add rax\n")

    def test_immediate_only_allowed_in_push(self):
        with pytest.raises(EmulatorError):
            _emu("  pop 3\n")
        with pytest.raises(EmulatorError):
            _emu("  add rax, 3\n")

    def test_no_globl_starts_at_top(self):
        emu = StackEmulator()
        emu.load("  push 4\n  pop rax\n  ret\n")
        assert emu.entry is None
        assert emu.run() is StopReason.RETURN
        assert emu.result == 4


class TestExecution:
    def test_push_pop_order(self):
        emu = _emu("  push 1\n  push 2\n  pop rdi\n  pop rax\n  ret\n")
        assert emu.run() is StopReason.RETURN
        assert emu.regs.rdi == 2
        assert emu.regs.rax == 1
        assert emu.regs.stack == []

    def test_arithmetic(self):
        body = "  push {a}\n  push {b}\n  pop rdi\n  pop rax\n  {op} rax, rdi\n  push rax\n  pop rax\n  ret\n"
        assert evaluate(HEADER + body.format(a=5, b=3, op="add")) == 8
        assert evaluate(HEADER + body.format(a=5, b=3, op="sub")) == 2
        assert evaluate(HEADER + body.format(a=3, b=5, op="sub")) == -2
        assert evaluate(HEADER + body.format(a=5, b=3, op="imul")) == 15

    def test_cqo_sign_extends(self):
        emu = _emu("  push -5\n  pop rax\n  cqo\n  ret\n")
        emu.run()
        assert emu.regs.rdx == MASK64
        emu = _emu("  push 5\n  pop rax\n  cqo\n  ret\n")
        emu.run()
        assert emu.regs.rdx == 0

    def test_idiv_quotient_and_remainder(self):
        emu = _emu("  push -7\n  push 2\n  pop rdi\n  pop rax\n  cqo\n  idiv rdi\n  ret\n")
        assert emu.run() is StopReason.RETURN
        assert emu.result == -3
        assert to_signed(emu.regs.rdx) == -1

    def test_divide_by_zero_faults(self):
        emu = _emu("  push 1\n  push 0\n  pop rdi\n  pop rax\n  cqo\n  idiv rdi\n  ret\n")
        assert emu.run() is StopReason.FAULT
        assert "division by zero" in emu.fault

    def test_quotient_overflow_faults(self):
        emu = _emu("  push -9223372036854775808\n  push -1\n  pop rdi\n  pop rax\n"
                   "  cqo\n  idiv rdi\n  ret\n")
        assert emu.run() is StopReason.FAULT

    def test_pop_empty_stack_faults(self):
        emu = _emu("  pop rax\n  ret\n")
        assert emu.run() is StopReason.FAULT

    def test_missing_ret_faults(self):
        emu = _emu("  push 1\n")
        assert emu.run() is StopReason.FAULT

    def test_timeout(self):
        emu = _emu("  push 1\n  pop rax\n  ret\n")
        assert emu.run(max_steps=1) is StopReason.TIMEOUT
        assert emu.steps == 1

    def test_reset(self):
        emu = _emu("  push 1\n  pop rax\n  ret\n")
        emu.run()
        emu.reset()
        assert emu.pc == 0
        assert emu.regs.rax == 0
        assert emu.run() is StopReason.RETURN

    def test_evaluate_raises_on_fault(self):
        with pytest.raises(EmulatorFault):
            evaluate(HEADER + "  pop rax\n  ret\n")

    def test_evaluate_raises_on_timeout(self):
        with pytest.raises(EmulatorError):
            evaluate(HEADER + "  push 1\n  pop rax\n  ret\n", max_steps=2)
