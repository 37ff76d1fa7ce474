"""
sim8086 — Execution Engine

Applies one decoded instruction to an EmulatorState and reports the
cursor the decode loop should continue from.

Execution model:
  1. Look up the handler for the opcode (dispatch table below)
  2. Read operands: immediate value, register (incl. byte halves) or
     memory at the effective address, 8 or 16 bits per the width bit
  3. Compute, write back, update S/Z flags
  4. Jumps: add the signed 8-bit offset to the cursor when taken

The cursor passed in is the offset just past the instruction. Jump
targets are relative to it and wrap at 16 bits.

Flags modelled: Z and S only. Jumps that test carry, overflow or parity
cannot be evaluated and come back NOT_EXECUTABLE with state untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, Dict, Optional

from .config import ADDRESS_MASK, REG_CX, REGISTER_NAMES
from .instruction import EffectiveAddress, Immediate, OpCode, Operand, Register
from .renderer import render_operand
from .state import EmulatorState

log = logging.getLogger(__name__)


class ExecStatus(Enum):
    EXECUTED = 'EXECUTED'
    NOT_EXECUTABLE = 'NOT_EXECUTABLE'


@dataclass(frozen=True)
class Change:
    """One register or memory location written by an instruction."""
    target: str
    old: int
    new: int


@dataclass
class StepResult:
    status: ExecStatus
    cursor: int
    change: Optional[Change] = None
    flags_before: str = ''
    flags_after: str = ''
    result: Optional[int] = None    # cmp: the discarded difference

    @property
    def executed(self) -> bool:
        return self.status is ExecStatus.EXECUTED


# ══════════════════════════════════════════════
# ALU
# ══════════════════════════════════════════════

def _mask(wide: bool) -> int:
    return 0xFFFF if wide else 0xFF


def add(a: int, b: int, wide: bool = True) -> int:
    return (a + b) & _mask(wide)


def sub(a: int, b: int, wide: bool = True) -> int:
    return (a - b) & _mask(wide)


def set_flags(state: EmulatorState, result: int, wide: bool = True):
    """Overwrite Z and S from a result: zero sets Z, top bit set sets S."""
    sign_bit = 0x8000 if wide else 0x80
    state.zero = result == 0
    state.sign = bool(result & sign_bit)


# ══════════════════════════════════════════════
# Operand access
# ══════════════════════════════════════════════

def read_operand(state: EmulatorState, operand: Operand, wide: bool) -> int:
    if isinstance(operand, Immediate):
        return operand.value & _mask(wide)
    if isinstance(operand, Register):
        return state.read_register(operand)
    if isinstance(operand, EffectiveAddress):
        addr = state.address_of(operand)
        return state.read16(addr) if wide else state.read8(addr)
    raise ValueError(f"Operand {operand!r} cannot be read")


def write_operand(state: EmulatorState, operand: Operand, value: int, wide: bool):
    if isinstance(operand, Register):
        state.write_register(operand, value)
    elif isinstance(operand, EffectiveAddress):
        addr = state.address_of(operand)
        if wide:
            state.write16(addr, value)
        else:
            state.write8(addr, value)
    else:
        raise ValueError(f"Operand {operand!r} cannot be written")


def _target_name(state: EmulatorState, operand: Operand) -> str:
    if isinstance(operand, EffectiveAddress):
        return f'{render_operand(operand)}@0x{state.address_of(operand):04x}'
    return render_operand(operand)


def _writable(operand: Operand) -> bool:
    return isinstance(operand, (Register, EffectiveAddress))


# ══════════════════════════════════════════════
# Handlers: (source, destination, state, cursor, wide) -> StepResult
# ══════════════════════════════════════════════

def _op_mov(source, destination, state, cursor, wide):
    if not _writable(destination):
        return StepResult(ExecStatus.NOT_EXECUTABLE, cursor)
    value = read_operand(state, source, wide)
    old = read_operand(state, destination, wide)
    write_operand(state, destination, value, wide)
    change = Change(_target_name(state, destination), old, value)
    return StepResult(ExecStatus.EXECUTED, cursor, change)


def _op_arith(alu_fn, store, source, destination, state, cursor, wide):
    if not _writable(destination):
        return StepResult(ExecStatus.NOT_EXECUTABLE, cursor)
    old = read_operand(state, destination, wide)
    result = alu_fn(old, read_operand(state, source, wide), wide)
    set_flags(state, result, wide)
    if not store:
        return StepResult(ExecStatus.EXECUTED, cursor, result=result)
    write_operand(state, destination, result, wide)
    change = Change(_target_name(state, destination), old, result)
    return StepResult(ExecStatus.EXECUTED, cursor, change)


def _take(cursor: int, offset: Operand) -> int:
    return (cursor + offset.value) & ADDRESS_MASK


def _op_jump(condition, source, destination, state, cursor, wide):
    if condition(state):
        cursor = _take(cursor, destination)
    return StepResult(ExecStatus.EXECUTED, cursor)


def _op_loop(condition, source, destination, state, cursor, wide):
    old = state.registers[REG_CX]
    cx = (old - 1) & 0xFFFF
    state.registers[REG_CX] = cx
    if cx != 0 and condition(state):
        cursor = _take(cursor, destination)
    change = Change(REGISTER_NAMES[REG_CX], old, cx)
    return StepResult(ExecStatus.EXECUTED, cursor, change)


def _always(state):
    return True


def _build_dispatch() -> Dict[OpCode, Callable]:
    """Opcode -> handler. Opcodes missing here are NOT_EXECUTABLE."""
    return {
        # ── Data movement / arithmetic ──
        OpCode.MOV: _op_mov,
        OpCode.ADD: partial(_op_arith, add, True),
        OpCode.SUB: partial(_op_arith, sub, True),
        OpCode.CMP: partial(_op_arith, sub, False),

        # ── Conditional jumps on Z / S ──
        OpCode.JNZ: partial(_op_jump, lambda s: not s.zero),
        OpCode.JNE: partial(_op_jump, lambda s: not s.zero),
        OpCode.JE: partial(_op_jump, lambda s: s.zero),
        OpCode.JS: partial(_op_jump, lambda s: s.sign),
        OpCode.JNS: partial(_op_jump, lambda s: not s.sign),
        OpCode.JCXZ: partial(_op_jump, lambda s: s.registers[REG_CX] == 0),

        # ── Loops: decrement cx, jump while cx != 0 (and condition) ──
        OpCode.LOOP: partial(_op_loop, _always),
        OpCode.LOOPZ: partial(_op_loop, lambda s: s.zero),
        OpCode.LOOPNZ: partial(_op_loop, lambda s: not s.zero),
    }


_DISPATCH = _build_dispatch()


def is_executable(opcode: OpCode) -> bool:
    return opcode in _DISPATCH


def execute(opcode: OpCode, source: Operand, destination: Operand,
            state: EmulatorState, cursor: int, wide: bool = True) -> StepResult:
    """Execute one instruction against ``state``.

    Args:
        opcode: decoded operation
        source, destination: resolved operands (None where absent)
        state: registers, flags and memory, mutated in place
        cursor: offset just past this instruction
        wide: width bit of the instruction (16-bit when True)

    Returns the StepResult whose ``cursor`` the decode loop continues from.
    """
    flags_before = state.flag_letters()
    handler = _DISPATCH.get(opcode)
    if handler is None:
        log.debug("Opcode %s not executable", opcode.mnemonic)
        return StepResult(ExecStatus.NOT_EXECUTABLE, cursor,
                          flags_before=flags_before, flags_after=flags_before)

    step = handler(source, destination, state, cursor, wide)
    step.flags_before = flags_before
    step.flags_after = state.flag_letters()
    return step
