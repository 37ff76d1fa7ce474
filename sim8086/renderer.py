"""
sim8086 — Text Renderer

Turns a decoded InstructionRecord back into NASM-style assembly text:

    mov cx, bx
    mov [bp + di], byte 7
    add word [bx + 2], -3
    mov ax, [2555]
    jnz -2

The output of a full listing reassembles to the same bytes.
"""

from __future__ import annotations

from .config import REGISTER_NAMES
from .instruction import (
    EffectiveAddress, Immediate, InstructionRecord, Operand, Register, Shape,
    jump_offset, resolve_destination, resolve_source, to_signed16,
)


def _size(record: InstructionRecord) -> str:
    return 'word' if record.w else 'byte'


def render_address(ea: EffectiveAddress) -> str:
    if ea.is_direct:
        return f'[{ea.displacement}]'
    text = REGISTER_NAMES[ea.base1]
    if ea.base2 is not None:
        text += f' + {REGISTER_NAMES[ea.base2]}'
    disp = to_signed16(ea.displacement)
    if disp > 0:
        text += f' + {disp}'
    elif disp < 0:
        text += f' - {-disp}'
    return f'[{text}]'


def render_operand(operand: Operand) -> str:
    if isinstance(operand, Register):
        return operand.name
    if isinstance(operand, EffectiveAddress):
        return render_address(operand)
    if isinstance(operand, Immediate):
        return str(operand.value)
    return ''


def render_instruction(record: InstructionRecord) -> str:
    mnemonic = record.opcode.mnemonic
    shape = record.shape

    if shape is Shape.JUMP:
        return f'{mnemonic} {to_signed16(jump_offset(record))}'
    if shape is Shape.NONE:
        return mnemonic

    destination = resolve_destination(record)
    source = resolve_source(record)
    dest_text = render_operand(destination)
    src_text = render_operand(source)

    # memory destination + immediate source: the width is not implied by
    # either operand, so one of them carries byte/word
    to_memory = isinstance(destination, EffectiveAddress)
    if shape is Shape.IMMED_RM_MOV and to_memory:
        src_text = f'{_size(record)} {src_text}'
    elif shape is Shape.IMMED_RM_ARITH:
        if record.s and record.data_hi is None:
            src_text = str(to_signed16(source.value))
        if to_memory:
            dest_text = f'{_size(record)} {dest_text}'

    return f'{mnemonic} {dest_text}, {src_text}'
