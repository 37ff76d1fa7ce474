"""
sim8086 — Instruction Record + Operand Resolver

An InstructionRecord is the scratch area the decoder trie writes into,
one bitfield at a time, as each byte matcher fires. After the walk the
resolver turns those raw fields into semantic operands:

  Immediate         16-bit value (already sign-extended where the
                    encoding calls for it)
  Register          (width, index) into the emulator register file
  EffectiveAddress  up to two base registers + 16-bit displacement;
                    no base registers at all means a direct address
  None              the shape has no such operand (jump source)

Register file storage order is ax bx cx dx sp bp si di (see config).
The 8086 encodes registers as ax cx dx bx sp bp si di, and with w=0
fields 4-7 are the HIGH bytes of ax/cx/dx/bx, not sp/bp/si/di.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Union

from .config import (
    REGISTER_NAMES, LOW_BYTE_NAMES, HIGH_BYTE_NAMES,
    REG_AX, REG_BX, REG_CX, REG_DX, REG_SP, REG_BP, REG_SI, REG_DI,
)


# ──────────────────────────────────────────────
# Enumerations
# ──────────────────────────────────────────────

class OpCode(Enum):
    MOV = 'mov'
    ADD = 'add'
    SUB = 'sub'
    CMP = 'cmp'
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
    NONE = 'none'

    @property
    def mnemonic(self) -> str:
        return self.value


class Shape(Enum):
    """Encoded instruction shape — decides how operands are resolved."""
    REG_RM = 'reg_rm'                  # register <-> register/memory
    ACC_MEM = 'acc_mem'                # memory <-> accumulator, 16-bit address
    IMMED_REG = 'immed_reg'            # immediate -> register (incl. accumulator)
    IMMED_RM_MOV = 'immed_rm_mov'      # mov immediate -> register/memory
    IMMED_RM_ARITH = 'immed_rm_arith'  # add/sub/cmp immediate -> register/memory
    JUMP = 'jump'                      # 8-bit relative jump / loop
    NONE = 'none'


class Mod(IntEnum):
    MEM = 0b00          # memory, no displacement (except rm=110: direct address)
    MEM_DISP8 = 0b01    # memory, 8-bit signed displacement
    MEM_DISP16 = 0b10   # memory, 16-bit displacement
    REG = 0b11          # register mode


class RegWidth(Enum):
    LOW = 'low'
    HIGH = 'high'
    FULL = 'full'


# ──────────────────────────────────────────────
# Operands
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Immediate:
    value: int


@dataclass(frozen=True)
class Register:
    width: RegWidth
    index: int

    @property
    def name(self) -> str:
        if self.width is RegWidth.LOW:
            return LOW_BYTE_NAMES[self.index]
        if self.width is RegWidth.HIGH:
            return HIGH_BYTE_NAMES[self.index]
        return REGISTER_NAMES[self.index]


@dataclass(frozen=True)
class EffectiveAddress:
    base1: Optional[int] = None
    base2: Optional[int] = None
    displacement: int = 0

    @property
    def is_direct(self) -> bool:
        """No base registers: the displacement is the absolute address."""
        return self.base1 is None and self.base2 is None


Operand = Union[Immediate, Register, EffectiveAddress, None]


# Encoded reg/rm field -> storage index, w=1
_FULL_BY_FIELD = (REG_AX, REG_CX, REG_DX, REG_BX, REG_SP, REG_BP, REG_SI, REG_DI)

# Encoded reg/rm field -> (storage index, half), w=0
_BYTE_BY_FIELD = (
    (REG_AX, RegWidth.LOW), (REG_CX, RegWidth.LOW),
    (REG_DX, RegWidth.LOW), (REG_BX, RegWidth.LOW),
    (REG_AX, RegWidth.HIGH), (REG_CX, RegWidth.HIGH),
    (REG_DX, RegWidth.HIGH), (REG_BX, RegWidth.HIGH),
)

# rm field -> base register pair (mod != 11)
_EA_BASES = (
    (REG_BX, REG_SI),   # 000 [bx + si]
    (REG_BX, REG_DI),   # 001 [bx + di]
    (REG_BP, REG_SI),   # 010 [bp + si]
    (REG_BP, REG_DI),   # 011 [bp + di]
    (REG_SI, None),     # 100 [si]
    (REG_DI, None),     # 101 [di]
    (REG_BP, None),     # 110 [bp]  (mod=00: direct address instead)
    (REG_BX, None),     # 111 [bx]
)

DIRECT_ADDRESS_RM = 0b110


# ──────────────────────────────────────────────
# Instruction record
# ──────────────────────────────────────────────

class InstructionRecord:
    """Bitfields accumulated by one trie walk.

    Reused across the decode loop: call reset() before every decode.
    Each field is written by exactly one matcher on the path, except
    mod/rm which a combined mod-reg-rm matcher sets together.
    """

    __slots__ = ('opcode', 'shape', 'mod', 'd', 'w', 's', 'reg', 'rm',
                 'disp_lo', 'disp_hi', 'data_lo', 'data_hi')

    def __init__(self):
        self.reset()

    def reset(self):
        self.opcode: OpCode = OpCode.NONE
        self.shape: Shape = Shape.NONE
        self.mod: Optional[Mod] = None
        self.d: bool = False       # direction: reg field is the destination
        self.w: bool = False       # width: word operation
        self.s: bool = False       # sign-extend 8-bit immediate
        self.reg: Optional[int] = None
        self.rm: Optional[int] = None
        self.disp_lo: Optional[int] = None
        self.disp_hi: Optional[int] = None
        self.data_lo: Optional[int] = None
        self.data_hi: Optional[int] = None

    @property
    def is_direct_address(self) -> bool:
        return self.mod is Mod.MEM and self.rm == DIRECT_ADDRESS_RM

    def __repr__(self) -> str:
        fields = ', '.join(f'{name}={getattr(self, name)!r}' for name in self.__slots__)
        return f'InstructionRecord({fields})'


# ──────────────────────────────────────────────
# Bit helpers
# ──────────────────────────────────────────────

def sign_extend8(byte: int) -> int:
    """Widen a signed byte to an unsigned 16-bit two's complement value."""
    return (byte | 0xFF00) if byte & 0x80 else byte


def to_signed16(value: int) -> int:
    return value - 0x10000 if value & 0x8000 else value


def word(lo: int, hi: Optional[int]) -> int:
    """Concatenate lo|hi, absent high byte treated as 0."""
    return lo | ((hi or 0) << 8)


# ──────────────────────────────────────────────
# Field resolution
# ──────────────────────────────────────────────

def register_operand(field: int, wide: bool) -> Register:
    """Map a 3-bit reg/rm field plus the width bit onto the register file."""
    if wide:
        return Register(RegWidth.FULL, _FULL_BY_FIELD[field])
    index, half = _BYTE_BY_FIELD[field]
    return Register(half, index)


def displacement(record: InstructionRecord) -> int:
    """16-bit displacement: lone low byte is sign-extended, lo|hi is not."""
    if record.disp_lo is None:
        return 0
    if record.disp_hi is None:
        return sign_extend8(record.disp_lo)
    return word(record.disp_lo, record.disp_hi)


def effective_address(record: InstructionRecord) -> EffectiveAddress:
    disp = displacement(record)
    if record.is_direct_address:
        return EffectiveAddress(displacement=disp)
    base1, base2 = _EA_BASES[record.rm]
    return EffectiveAddress(base1, base2, disp)


def immediate(record: InstructionRecord) -> int:
    """Immediate data as a 16-bit value.

    With the sign-extend flag set only one data byte is encoded (0x82/0x83)
    and it is widened with its sign; otherwise lo|hi unsigned. This also
    covers 0x83, a word operation with a byte immediate, so ``83 c6 fe``
    is ``add si, -2``: extension is keyed on the missing high data byte,
    not on w=0.
    """
    if record.s and record.data_hi is None:
        return sign_extend8(record.data_lo)
    return word(record.data_lo, record.data_hi)


def jump_offset(record: InstructionRecord) -> int:
    """Signed 8-bit jump displacement as a 16-bit two's complement offset."""
    return sign_extend8(record.disp_lo)


def _rm_operand(record: InstructionRecord) -> Operand:
    if record.mod is Mod.REG:
        return register_operand(record.rm, record.w)
    return effective_address(record)


def _direct_address(record: InstructionRecord) -> EffectiveAddress:
    return EffectiveAddress(displacement=word(record.disp_lo, record.disp_hi))


def resolve_destination(record: InstructionRecord) -> Operand:
    shape = record.shape
    if shape is Shape.REG_RM:
        if record.d:
            return register_operand(record.reg, record.w)
        return _rm_operand(record)
    if shape in (Shape.IMMED_RM_MOV, Shape.IMMED_RM_ARITH):
        return _rm_operand(record)
    if shape is Shape.IMMED_REG:
        return register_operand(record.reg, record.w)
    if shape is Shape.ACC_MEM:
        if record.d:
            return register_operand(record.reg, record.w)
        return _direct_address(record)
    if shape is Shape.JUMP:
        return Immediate(jump_offset(record))
    return None


def resolve_source(record: InstructionRecord) -> Operand:
    shape = record.shape
    if shape is Shape.REG_RM:
        if record.d:
            return _rm_operand(record)
        return register_operand(record.reg, record.w)
    if shape in (Shape.IMMED_REG, Shape.IMMED_RM_MOV, Shape.IMMED_RM_ARITH):
        return Immediate(immediate(record))
    if shape is Shape.ACC_MEM:
        if record.d:
            return _direct_address(record)
        return register_operand(record.reg, record.w)
    return None
