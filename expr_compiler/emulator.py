"""
x86-64 Stack Emulator for compiler output.

Executes the small instruction subset the code generator emits, so that
the value a compiled routine returns can be checked without an assembler,
a linker or an x86-64 host.

Register model:
  rax, rdi, rdx — 64-bit general purpose registers, stored unsigned
  stack        — list of 64-bit slots; push appends, pop removes the top

Supported input:
  directives   .intel_syntax, .globl / .global (anything starting with '.')
  labels       name:
  push imm|reg, pop reg
  add reg, reg / sub reg, reg / imul reg, reg
  cqo, idiv reg, ret

Execution model:
  1. load() parses the listing into (mnemonic, operands) tuples
  2. run() starts at the entry label and steps until `ret`
  3. idiv by zero, or INT64_MIN / -1, stops with FAULT like a #DE trap

Termination reasons:
  - RETURN:   `ret` executed; result holds rax as a signed integer
  - TIMEOUT:  max_steps exceeded
  - FAULT:    divide error or stack underflow
"""

from __future__ import annotations
import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MASK64 = (1 << 64) - 1
INT64_MIN = -(1 << 63)

REGISTERS = ("rax", "rdi", "rdx")


class StopReason(Enum):
    RETURN = 'RETURN'
    TIMEOUT = 'TIMEOUT'
    FAULT = 'FAULT'


class EmulatorError(Exception):
    """Listing contains something the emulator cannot execute."""

    def __init__(self, message: str, line_no: int = 0):
        self.line_no = line_no
        super().__init__(f"Emulator error at line {line_no}: {message}"
                         if line_no else f"Emulator error: {message}")


class EmulatorFault(Exception):
    """Generated code trapped at run time (e.g. division by zero)."""


# ══════════════════════════════════════════════
# Integer helpers
# ══════════════════════════════════════════════

def to_signed(value: int) -> int:
    value &= MASK64
    return value - (1 << 64) if value & (1 << 63) else value


def to_unsigned(value: int) -> int:
    return value & MASK64


def trunc_div(a: int, b: int) -> int:
    """Signed division truncating toward zero (C semantics)."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


class Registers:
    """Register file plus the runtime operand stack."""

    __slots__ = ('rax', 'rdi', 'rdx', 'stack')

    def __init__(self):
        self.rax: int = 0
        self.rdi: int = 0
        self.rdx: int = 0
        self.stack: List[int] = []

    def get(self, name: str) -> int:
        return getattr(self, name)

    def set(self, name: str, value: int):
        setattr(self, name, to_unsigned(value))


Instruction = Tuple[str, Tuple[str, ...], int]   # mnemonic, operands, line no


class StackEmulator:
    """Runs compiler output and reports the returned value.

    Usage:
        emu = StackEmulator()
        emu.load(asm_text)
        reason = emu.run()
        print(emu.result)
    """

    DEFAULT_MAX_STEPS = 1_000_000

    def __init__(self, entry: Optional[str] = None):
        self.entry = entry
        self.regs = Registers()
        self.program: List[Instruction] = []
        self.labels: Dict[str, int] = {}
        self.pc = 0
        self.steps = 0
        self.fault: Optional[str] = None

        self._dispatch = {
            'push': self._op_push,
            'pop': self._op_pop,
            'add': self._op_add,
            'sub': self._op_sub,
            'imul': self._op_imul,
            'cqo': self._op_cqo,
            'idiv': self._op_idiv,
            'ret': self._op_ret,
        }

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load(self, asm_text: str):
        """Parse an assembly listing into the instruction list."""
        self.program = []
        self.labels = {}
        globals_: List[str] = []

        for line_no, raw in enumerate(asm_text.splitlines(), start=1):
            line = raw.split('#', 1)[0].split(';', 1)[0].strip()
            if not line:
                continue

            if line.startswith('.'):
                parts = line.split()
                if parts[0] in ('.globl', '.global') and len(parts) > 1:
                    globals_.append(parts[1])
                continue

            if line.endswith(':'):
                self.labels[line[:-1].strip()] = len(self.program)
                continue

            mnem, _, rest = line.partition(' ')
            mnem = mnem.lower()
            if mnem not in self._dispatch:
                raise EmulatorError(f"unsupported instruction {mnem!r}", line_no)
            operands = tuple(op.strip().lower() for op in rest.split(',') if op.strip())
            self._check_operands(mnem, operands, line_no)
            self.program.append((mnem, operands, line_no))

        if self.entry is None:
            self.entry = globals_[0] if globals_ else None
        if self.entry is not None and self.entry not in self.labels:
            raise EmulatorError(f"entry symbol {self.entry!r} is not defined")

        self.reset()

    def _check_operands(self, mnem: str, operands: Tuple[str, ...], line_no: int):
        arity = {'push': 1, 'pop': 1, 'add': 2, 'sub': 2, 'imul': 2,
                 'cqo': 0, 'idiv': 1, 'ret': 0}[mnem]
        if len(operands) != arity:
            raise EmulatorError(
                f"{mnem} takes {arity} operand(s), got {len(operands)}", line_no)
        for i, op in enumerate(operands):
            if op in REGISTERS:
                continue
            if mnem == 'push' and _parse_imm(op) is not None:
                continue
            raise EmulatorError(f"bad operand {i + 1} for {mnem}: {op!r}", line_no)

    def reset(self):
        self.regs = Registers()
        self.pc = self.labels.get(self.entry, 0) if self.entry else 0
        self.steps = 0
        self.fault = None

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason if stopped, else None."""
        if self.pc >= len(self.program):
            self.fault = "fell off the end of the routine"
            return StopReason.FAULT

        mnem, operands, line_no = self.program[self.pc]
        self.pc += 1
        self.steps += 1
        try:
            return self._dispatch[mnem](*operands)
        except EmulatorFault as e:
            self.fault = f"line {line_no}: {e}"
            logger.debug("fault: %s", self.fault)
            return StopReason.FAULT

    def run(self, max_steps: int = None) -> StopReason:
        """Run until `ret`, a fault, or `max_steps` instructions."""
        if max_steps is None:
            max_steps = self.DEFAULT_MAX_STEPS

        while self.steps < max_steps:
            reason = self.step()
            if reason is not None:
                return reason
        return StopReason.TIMEOUT

    @property
    def result(self) -> int:
        """rax interpreted as a signed 64-bit integer."""
        return to_signed(self.regs.rax)

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════

    def _value(self, operand: str) -> int:
        if operand in REGISTERS:
            return self.regs.get(operand)
        return to_unsigned(_parse_imm(operand))

    def _op_push(self, src: str):
        self.regs.stack.append(self._value(src))

    def _op_pop(self, dst: str):
        if not self.regs.stack:
            raise EmulatorFault("pop from empty stack")
        self.regs.set(dst, self.regs.stack.pop())

    def _op_add(self, dst: str, src: str):
        self.regs.set(dst, self.regs.get(dst) + self.regs.get(src))

    def _op_sub(self, dst: str, src: str):
        self.regs.set(dst, self.regs.get(dst) - self.regs.get(src))

    def _op_imul(self, dst: str, src: str):
        self.regs.set(dst, to_signed(self.regs.get(dst)) * to_signed(self.regs.get(src)))

    def _op_cqo(self):
        self.regs.rdx = MASK64 if self.regs.rax & (1 << 63) else 0

    def _op_idiv(self, src: str):
        divisor = to_signed(self.regs.get(src))
        # rdx:rax as a signed 128-bit dividend
        dividend = (self.regs.rdx << 64) | self.regs.rax
        if dividend & (1 << 127):
            dividend -= 1 << 128
        if divisor == 0:
            raise EmulatorFault("division by zero")
        quotient = trunc_div(dividend, divisor)
        if not INT64_MIN <= quotient <= -INT64_MIN - 1:
            raise EmulatorFault("quotient overflow")
        self.regs.set('rax', quotient)
        self.regs.set('rdx', dividend - quotient * divisor)

    def _op_ret(self):
        return StopReason.RETURN


def _parse_imm(text: str) -> Optional[int]:
    try:
        return int(text, 0)
    except ValueError:
        return None


def evaluate(asm_text: str, entry: Optional[str] = None,
             max_steps: int = None) -> int:
    """Run a compiled routine and return its value.

    Raises EmulatorFault if the generated code traps, and EmulatorError if
    it does not return within `max_steps`.
    """
    emu = StackEmulator(entry=entry)
    emu.load(asm_text)
    reason = emu.run(max_steps)
    if reason is StopReason.FAULT:
        raise EmulatorFault(emu.fault)
    if reason is not StopReason.RETURN:
        raise EmulatorError(f"routine did not return ({reason.value})")
    return emu.result
