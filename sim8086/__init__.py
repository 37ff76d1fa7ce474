"""
sim8086 — 8086 Subset Decoder and Micro-Emulator
=================================================
Decodes raw 8086 machine code (mov / add / sub / cmp in their register,
memory, immediate and accumulator forms, plus the 8-bit relative jumps
and loops) into NASM-style text, and optionally executes it against a
register file, two flags (S, Z) and a flat memory.

Architecture (for contributors / porters to other languages):
    ┌──────────┐    ┌──────────────┐    ┌─────────────┐    ┌──────────┐
    │  bytes   │───>│ Decoder trie │───>│ Instruction │───>│ Renderer │──> text
    │ (buffer) │    │ (patterns)   │    │ record      │    └──────────┘
    └──────────┘    └──────────────┘    │ + resolver  │───>┌──────────┐
                                        └─────────────┘    │ Emulator │──> state
                                                           └──────────┘
    - patterns.py:    byte matchers (mask + accepted values) and field extraction
    - decoder.py:     decode paths merged into a prefix trie; one byte per level
    - instruction.py: raw bitfields -> operands (register, memory, immediate)
    - renderer.py:    operands -> assembly text
    - state.py:       registers, flags, memory
    - emulator.py:    opcode dispatch table, arithmetic, flags, jumps
    - runner.py:      decode/execute loop, trace annotations, final dump
"""

__version__ = "0.1.0"

import io
from typing import Optional

from .decoder import (
    DECODE_PATHS, DecodeError, DecoderTrie, NoMatch, OutOfBounds,
    TrieConstructionError, get_decoder,
)
from .emulator import ExecStatus, StepResult, execute, set_flags
from .instruction import (
    EffectiveAddress, Immediate, InstructionRecord, Mod, OpCode, Register,
    RegWidth, Shape, resolve_destination, resolve_source,
)
from .renderer import render_instruction, render_operand
from .runner import RunResult, RunState, disassemble, run
from .state import EmulatorState


def emulate(data: bytes, state: Optional[EmulatorState] = None):
    """Decode and execute ``data``; returns (RunResult, trace text)."""
    buf = io.StringIO()
    result = run(data, buf, emulate=True, state=state)
    return result, buf.getvalue()
