"""
sim8086 — Byte Pattern Table

Each ByteMatcher recognises one byte position of an instruction encoding:
a byte matches when ``(byte & mask)`` is one of the accepted values. When
a matcher fires, its Action copies the bitfields it knows about into the
InstructionRecord.

Field layout reference (Intel 8086 Family User's Manual, Table 4-12):

  100010dw  mod reg r/m   [disp-lo] [disp-hi]            mov r/m <-> reg
  000000dw  mod reg r/m   ...                            add r/m <-> reg
  001010dw  mod reg r/m   ...                            sub r/m <-> reg
  001110dw  mod reg r/m   ...                            cmp r/m <-> reg
  1100011w  mod 000 r/m   [disp]  data  [data if w=1]    mov imm -> r/m
  1011wreg  data  [data if w=1]                          mov imm -> reg
  101000dw  addr-lo addr-hi                              mov mem <-> acc
  100000sw  mod OOO r/m   [disp]  data  [data if sw=01]  add/sub/cmp imm -> r/m
  00OOO10w  data  [data if w=1]                          add/sub/cmp imm -> acc
  0111cccc / 111000cc  ip-inc8                           jcc / loop

The mod/reg/rm matchers come in five variants per family, one per
addressing form (register, disp8, disp16, direct address, plain memory).
Only the direct-address variant looks at rm; it must be tried before the
plain memory variant, which also accepts mod=00.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from .instruction import InstructionRecord, Mod, OpCode, Shape


# ──────────────────────────────────────────────
# Matcher and action identities
# ──────────────────────────────────────────────

class MatcherKind(Enum):
    # ── mov/add/sub/cmp reg <-> r/m ──
    REG_RM_HEAD = 'reg_rm_head'
    MOD_REG_RM_REG_MODE = 'mod_reg_rm_reg_mode'
    MOD_REG_RM_DISP8 = 'mod_reg_rm_disp8'
    MOD_REG_RM_DISP16 = 'mod_reg_rm_disp16'
    MOD_REG_RM_DIRECT = 'mod_reg_rm_direct'
    MOD_REG_RM_MEM = 'mod_reg_rm_mem'

    # ── mov imm -> r/m ──
    MOV_IMMED_RM_BYTE = 'mov_immed_rm_byte'
    MOV_IMMED_RM_WORD = 'mov_immed_rm_word'
    MOD_000_RM_REG_MODE = 'mod_000_rm_reg_mode'
    MOD_000_RM_DISP8 = 'mod_000_rm_disp8'
    MOD_000_RM_DISP16 = 'mod_000_rm_disp16'
    MOD_000_RM_DIRECT = 'mod_000_rm_direct'
    MOD_000_RM_MEM = 'mod_000_rm_mem'

    # ── mov imm -> reg, mov mem <-> acc ──
    MOV_IMMED_REG_BYTE = 'mov_immed_reg_byte'
    MOV_IMMED_REG_WORD = 'mov_immed_reg_word'
    MOV_ACC_MEM = 'mov_acc_mem'

    # ── add/sub/cmp imm -> r/m ──
    IMMED_RM_HEAD_BYTE = 'immed_rm_head_byte'
    IMMED_RM_HEAD_WORD = 'immed_rm_head_word'
    MOD_OP_RM_REG_MODE = 'mod_op_rm_reg_mode'
    MOD_OP_RM_DISP8 = 'mod_op_rm_disp8'
    MOD_OP_RM_DISP16 = 'mod_op_rm_disp16'
    MOD_OP_RM_DIRECT = 'mod_op_rm_direct'
    MOD_OP_RM_MEM = 'mod_op_rm_mem'

    # ── add/sub/cmp imm -> acc ──
    IMMED_ACC_HEAD_BYTE = 'immed_acc_head_byte'
    IMMED_ACC_HEAD_WORD = 'immed_acc_head_word'

    # ── jumps / loops ──
    JNZ = 'jnz'
    JE = 'je'
    JL = 'jl'
    JLE = 'jle'
    JB = 'jb'
    JBE = 'jbe'
    JP = 'jp'
    JO = 'jo'
    JS = 'js'
    JNE = 'jne'
    JNL = 'jnl'
    JG = 'jg'
    JNB = 'jnb'
    JA = 'ja'
    JNP = 'jnp'
    JNO = 'jno'
    JNS = 'jns'
    LOOP = 'loop'
    LOOPZ = 'loopz'
    LOOPNZ = 'loopnz'
    JCXZ = 'jcxz'

    # ── trailing bytes ──
    DISP_LO = 'disp_lo'
    DISP_HI = 'disp_hi'
    DATA_LO = 'data_lo'
    DATA_HI = 'data_hi'


class Action(Enum):
    HEAD_REG_RM = 'head_reg_rm'
    MOD_REG_RM = 'mod_reg_rm'
    HEAD_IMMED_RM_MOV = 'head_immed_rm_mov'
    MOD_RM = 'mod_rm'
    HEAD_IMMED_REG_MOV = 'head_immed_reg_mov'
    HEAD_ACC_MEM = 'head_acc_mem'
    HEAD_IMMED_RM_ARITH = 'head_immed_rm_arith'
    MOD_OP_RM = 'mod_op_rm'
    HEAD_IMMED_ACC = 'head_immed_acc'
    HEAD_JUMP = 'head_jump'
    DISP_LO = 'disp_lo'
    DISP_HI = 'disp_hi'
    DATA_LO = 'data_lo'
    DATA_HI = 'data_hi'


@dataclass(frozen=True)
class ByteMatcher:
    kind: MatcherKind
    mask: int
    accepted: Tuple[int, ...]
    action: Action
    opcode: Optional[OpCode] = None

    def matches(self, byte: int) -> bool:
        return (byte & self.mask) in self.accepted


# ──────────────────────────────────────────────
# Sub-opcode tables
# ──────────────────────────────────────────────

# 000000dw / 001010dw / 001110dw / 100010dw, keyed by byte & 0xFC
REG_RM_OPCODES = {
    0x88: OpCode.MOV,
    0x00: OpCode.ADD,
    0x28: OpCode.SUB,
    0x38: OpCode.CMP,
}

# reg field of 100000sw mod OOO r/m
GROUP1_OPCODES = {
    0b000: OpCode.ADD,
    0b101: OpCode.SUB,
    0b111: OpCode.CMP,
}

# 00OOO10w, keyed by byte & 0xFE
IMMED_ACC_OPCODES = {
    0x04: OpCode.ADD,
    0x2C: OpCode.SUB,
    0x3C: OpCode.CMP,
}


def _group1(mod_rm_bits: int) -> Tuple[int, ...]:
    """Second-byte values for the supported add/sub/cmp sub-opcodes."""
    return tuple(mod_rm_bits | (op << 3) for op in sorted(GROUP1_OPCODES))


# ──────────────────────────────────────────────
# Matcher table
# ──────────────────────────────────────────────
# Format: kind: (mask, accepted values, action, opcode)

_TABLE = {
    MatcherKind.REG_RM_HEAD:         (0xFC, (0x88, 0x00, 0x28, 0x38), Action.HEAD_REG_RM, None),
    MatcherKind.MOD_REG_RM_REG_MODE: (0xC0, (0xC0,), Action.MOD_REG_RM, None),
    MatcherKind.MOD_REG_RM_DISP8:    (0xC0, (0x40,), Action.MOD_REG_RM, None),
    MatcherKind.MOD_REG_RM_DISP16:   (0xC0, (0x80,), Action.MOD_REG_RM, None),
    MatcherKind.MOD_REG_RM_DIRECT:   (0xC7, (0x06,), Action.MOD_REG_RM, None),
    MatcherKind.MOD_REG_RM_MEM:      (0xC0, (0x00,), Action.MOD_REG_RM, None),

    MatcherKind.MOV_IMMED_RM_BYTE:   (0xFF, (0xC6,), Action.HEAD_IMMED_RM_MOV, OpCode.MOV),
    MatcherKind.MOV_IMMED_RM_WORD:   (0xFF, (0xC7,), Action.HEAD_IMMED_RM_MOV, OpCode.MOV),
    MatcherKind.MOD_000_RM_REG_MODE: (0xF8, (0xC0,), Action.MOD_RM, None),
    MatcherKind.MOD_000_RM_DISP8:    (0xF8, (0x40,), Action.MOD_RM, None),
    MatcherKind.MOD_000_RM_DISP16:   (0xF8, (0x80,), Action.MOD_RM, None),
    MatcherKind.MOD_000_RM_DIRECT:   (0xFF, (0x06,), Action.MOD_RM, None),
    MatcherKind.MOD_000_RM_MEM:      (0xF8, (0x00,), Action.MOD_RM, None),

    MatcherKind.MOV_IMMED_REG_BYTE:  (0xF8, (0xB0,), Action.HEAD_IMMED_REG_MOV, OpCode.MOV),
    MatcherKind.MOV_IMMED_REG_WORD:  (0xF8, (0xB8,), Action.HEAD_IMMED_REG_MOV, OpCode.MOV),
    MatcherKind.MOV_ACC_MEM:         (0xFC, (0xA0,), Action.HEAD_ACC_MEM, OpCode.MOV),

    MatcherKind.IMMED_RM_HEAD_BYTE:  (0xFF, (0x80, 0x82, 0x83), Action.HEAD_IMMED_RM_ARITH, None),
    MatcherKind.IMMED_RM_HEAD_WORD:  (0xFF, (0x81,), Action.HEAD_IMMED_RM_ARITH, None),
    MatcherKind.MOD_OP_RM_REG_MODE:  (0xF8, _group1(0xC0), Action.MOD_OP_RM, None),
    MatcherKind.MOD_OP_RM_DISP8:     (0xF8, _group1(0x40), Action.MOD_OP_RM, None),
    MatcherKind.MOD_OP_RM_DISP16:    (0xF8, _group1(0x80), Action.MOD_OP_RM, None),
    MatcherKind.MOD_OP_RM_DIRECT:    (0xFF, _group1(0x06), Action.MOD_OP_RM, None),
    MatcherKind.MOD_OP_RM_MEM:       (0xF8, _group1(0x00), Action.MOD_OP_RM, None),

    MatcherKind.IMMED_ACC_HEAD_BYTE: (0xFF, (0x04, 0x2C, 0x3C), Action.HEAD_IMMED_ACC, None),
    MatcherKind.IMMED_ACC_HEAD_WORD: (0xFF, (0x05, 0x2D, 0x3D), Action.HEAD_IMMED_ACC, None),

    MatcherKind.JNZ:    (0xFF, (0x75,), Action.HEAD_JUMP, OpCode.JNZ),
    MatcherKind.JE:     (0xFF, (0x74,), Action.HEAD_JUMP, OpCode.JE),
    MatcherKind.JL:     (0xFF, (0x7C,), Action.HEAD_JUMP, OpCode.JL),
    MatcherKind.JLE:    (0xFF, (0x7E,), Action.HEAD_JUMP, OpCode.JLE),
    MatcherKind.JB:     (0xFF, (0x72,), Action.HEAD_JUMP, OpCode.JB),
    MatcherKind.JBE:    (0xFF, (0x76,), Action.HEAD_JUMP, OpCode.JBE),
    MatcherKind.JP:     (0xFF, (0x7A,), Action.HEAD_JUMP, OpCode.JP),
    MatcherKind.JO:     (0xFF, (0x70,), Action.HEAD_JUMP, OpCode.JO),
    MatcherKind.JS:     (0xFF, (0x78,), Action.HEAD_JUMP, OpCode.JS),
    MatcherKind.JNE:    (0xFF, (0x75,), Action.HEAD_JUMP, OpCode.JNE),   # same byte as jnz
    MatcherKind.JNL:    (0xFF, (0x7D,), Action.HEAD_JUMP, OpCode.JNL),
    MatcherKind.JG:     (0xFF, (0x7F,), Action.HEAD_JUMP, OpCode.JG),
    MatcherKind.JNB:    (0xFF, (0x73,), Action.HEAD_JUMP, OpCode.JNB),
    MatcherKind.JA:     (0xFF, (0x77,), Action.HEAD_JUMP, OpCode.JA),
    MatcherKind.JNP:    (0xFF, (0x7B,), Action.HEAD_JUMP, OpCode.JNP),
    MatcherKind.JNO:    (0xFF, (0x71,), Action.HEAD_JUMP, OpCode.JNO),
    MatcherKind.JNS:    (0xFF, (0x79,), Action.HEAD_JUMP, OpCode.JNS),
    MatcherKind.LOOP:   (0xFF, (0xE2,), Action.HEAD_JUMP, OpCode.LOOP),
    MatcherKind.LOOPZ:  (0xFF, (0xE1,), Action.HEAD_JUMP, OpCode.LOOPZ),
    MatcherKind.LOOPNZ: (0xFF, (0xE0,), Action.HEAD_JUMP, OpCode.LOOPNZ),
    MatcherKind.JCXZ:   (0xFF, (0xE3,), Action.HEAD_JUMP, OpCode.JCXZ),

    # mask 0: any byte value
    MatcherKind.DISP_LO: (0x00, (0x00,), Action.DISP_LO, None),
    MatcherKind.DISP_HI: (0x00, (0x00,), Action.DISP_HI, None),
    MatcherKind.DATA_LO: (0x00, (0x00,), Action.DATA_LO, None),
    MatcherKind.DATA_HI: (0x00, (0x00,), Action.DATA_HI, None),
}

MATCHERS: Dict[MatcherKind, ByteMatcher] = {
    kind: ByteMatcher(kind, mask, accepted, action, opcode)
    for kind, (mask, accepted, action, opcode) in _TABLE.items()
}


# ──────────────────────────────────────────────
# Field extraction
# ──────────────────────────────────────────────

def _mod_rm(byte: int, record: InstructionRecord):
    record.mod = Mod(byte >> 6)
    record.rm = byte & 0b111


def _head_reg_rm(matcher, byte, record):
    record.opcode = REG_RM_OPCODES[byte & 0xFC]
    record.shape = Shape.REG_RM
    record.d = bool(byte & 0b10)
    record.w = bool(byte & 0b01)


def _mod_reg_rm(matcher, byte, record):
    _mod_rm(byte, record)
    record.reg = (byte >> 3) & 0b111


def _head_immed_rm_mov(matcher, byte, record):
    record.opcode = matcher.opcode
    record.shape = Shape.IMMED_RM_MOV
    record.w = bool(byte & 0b01)


def _mod_000_rm(matcher, byte, record):
    _mod_rm(byte, record)


def _head_immed_reg_mov(matcher, byte, record):
    record.opcode = matcher.opcode
    record.shape = Shape.IMMED_REG
    record.w = bool(byte & 0b1000)
    record.reg = byte & 0b111


def _head_acc_mem(matcher, byte, record):
    # bit 1 clear: memory -> accumulator
    record.opcode = matcher.opcode
    record.shape = Shape.ACC_MEM
    record.d = not (byte & 0b10)
    record.w = bool(byte & 0b01)
    record.reg = 0


def _head_immed_rm_arith(matcher, byte, record):
    record.shape = Shape.IMMED_RM_ARITH
    record.s = bool(byte & 0b10)
    record.w = bool(byte & 0b01)


def _mod_op_rm(matcher, byte, record):
    _mod_rm(byte, record)
    record.opcode = GROUP1_OPCODES[(byte >> 3) & 0b111]


def _head_immed_acc(matcher, byte, record):
    record.opcode = IMMED_ACC_OPCODES[byte & 0xFE]
    record.shape = Shape.IMMED_REG
    record.d = True
    record.w = bool(byte & 0b01)
    record.reg = 0


def _head_jump(matcher, byte, record):
    record.opcode = matcher.opcode
    record.shape = Shape.JUMP


def _disp_lo(matcher, byte, record):
    record.disp_lo = byte


def _disp_hi(matcher, byte, record):
    record.disp_hi = byte


def _data_lo(matcher, byte, record):
    record.data_lo = byte


def _data_hi(matcher, byte, record):
    record.data_hi = byte


_ACTIONS: Dict[Action, Callable[[ByteMatcher, int, InstructionRecord], None]] = {
    Action.HEAD_REG_RM: _head_reg_rm,
    Action.MOD_REG_RM: _mod_reg_rm,
    Action.HEAD_IMMED_RM_MOV: _head_immed_rm_mov,
    Action.MOD_RM: _mod_000_rm,
    Action.HEAD_IMMED_REG_MOV: _head_immed_reg_mov,
    Action.HEAD_ACC_MEM: _head_acc_mem,
    Action.HEAD_IMMED_RM_ARITH: _head_immed_rm_arith,
    Action.MOD_OP_RM: _mod_op_rm,
    Action.HEAD_IMMED_ACC: _head_immed_acc,
    Action.HEAD_JUMP: _head_jump,
    Action.DISP_LO: _disp_lo,
    Action.DISP_HI: _disp_hi,
    Action.DATA_LO: _data_lo,
    Action.DATA_HI: _data_hi,
}


def apply(matcher: ByteMatcher, byte: int, record: InstructionRecord) -> None:
    """Copy the fields this matcher knows about from ``byte`` into ``record``.

    Only called for a byte the matcher accepted, so every lookup succeeds.
    """
    _ACTIONS[matcher.action](matcher, byte, record)
