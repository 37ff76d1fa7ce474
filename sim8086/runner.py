"""
sim8086 — Decode / Execute Loop

Drives the decoder over a byte buffer and writes one text line per
instruction. In emulate mode each instruction is also executed and the
line carries its effects:

    mov cx, 1 ; cx 0x0 -> 0x1 ; ip 0x0 -> 0x3
    sub cx, 1 ; cx 0x1 -> 0x0 ; ip 0x3 -> 0x6 ; flags  -> Z
    jnz -5 ; ip 0x6 -> 0x8

Loop states:
  DECODING     decode the instruction at the cursor
  DISPATCHING  render (and execute); the cursor moves to the next
               instruction, or to the jump target
  EXHAUSTED    cursor reached the end of the buffer (success)
  FAILED       a DecodeError stopped the run; a diagnostic line is written

A jump that never leaves the buffer loops for ever; there is no step limit.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TextIO

from .decoder import DecodeError, DecoderTrie, NoMatch, get_decoder
from .emulator import ExecStatus, StepResult, execute
from .instruction import InstructionRecord, resolve_destination, resolve_source
from .renderer import render_instruction
from .state import EmulatorState

log = logging.getLogger(__name__)


class RunState(Enum):
    DECODING = 'DECODING'
    DISPATCHING = 'DISPATCHING'
    EXHAUSTED = 'EXHAUSTED'
    FAILED = 'FAILED'


@dataclass
class RunResult:
    state: RunState
    instructions: int
    cursor: int
    error: Optional[DecodeError] = None
    emulator: Optional[EmulatorState] = None

    @property
    def ok(self) -> bool:
        return self.state is RunState.EXHAUSTED


# ──────────────────────────────────────────────
# Line formatting
# ──────────────────────────────────────────────

def annotate(step: StepResult, cursor_before: int) -> str:
    """Effects of one executed instruction as ' ; '-separated notes."""
    notes = []
    if step.status is ExecStatus.NOT_EXECUTABLE:
        notes.append('not executed')
    if step.change is not None:
        notes.append(f'{step.change.target} 0x{step.change.old:x} -> 0x{step.change.new:x}')
    if step.result is not None:
        notes.append(f'result 0x{step.result:x}')
    notes.append(f'ip 0x{cursor_before:x} -> 0x{step.cursor:x}')
    if step.flags_before != step.flags_after:
        notes.append(f'flags {step.flags_before} -> {step.flags_after}')
    return ' ; '.join(notes)


def format_failure(error: DecodeError) -> str:
    if isinstance(error, NoMatch):
        return f'; decode failed at offset {error.offset}: byte 0b{error.byte:08b}'
    return f'; decode failed at offset {error.offset}: stream truncated'


def write_final_dump(state: EmulatorState, out: TextIO):
    out.write('\nFinal Registers:\n')
    for name, value in state.register_dump():
        out.write(f'      {name}: 0x{value:04x}\n')
    out.write(f'Final Flags: {state.flag_letters()}\n')


# ──────────────────────────────────────────────
# Loop
# ──────────────────────────────────────────────

def run(data: bytes, out: TextIO, emulate: bool = False,
        state: Optional[EmulatorState] = None,
        decoder: Optional[DecoderTrie] = None) -> RunResult:
    """Decode (and optionally execute) ``data`` from offset 0, writing to ``out``.

    Args:
        data: raw machine code
        out: text stream receiving one line per instruction
        emulate: execute instructions and annotate their effects
        state: emulator state to run against (fresh zeroed state if None)
        decoder: trie to decode with (shared instance if None)

    Returns a RunResult; decode failures are reported there, not raised.
    """
    decoder = decoder or get_decoder()
    if emulate and state is None:
        state = EmulatorState()

    log.info("Emulate: %s", emulate)
    log.info("Input length: %d bytes", len(data))

    record = InstructionRecord()
    cursor = 0
    count = 0
    error = None
    run_state = RunState.DECODING if data else RunState.EXHAUSTED

    while run_state is RunState.DECODING:
        record.reset()
        try:
            next_cursor = decoder.decode(data, cursor, record)
        except DecodeError as exc:
            log.error("%s", exc)
            out.write(format_failure(exc) + '\n')
            error = exc
            run_state = RunState.FAILED
            break

        run_state = RunState.DISPATCHING
        line = render_instruction(record)
        if emulate:
            step = execute(record.opcode, resolve_source(record), resolve_destination(record),
                           state, next_cursor, record.w)
            if step.status is ExecStatus.NOT_EXECUTABLE:
                log.warning("Not executed at offset %d: %s", cursor, line)
            line = f'{line} ; {annotate(step, cursor)}'
            next_cursor = step.cursor
            if log.isEnabledFor(logging.DEBUG):
                log.debug("%04X  %s  | %s", cursor, line, state.display())
        else:
            log.debug("%04X  %s", cursor, line)
        out.write(line + '\n')
        count += 1

        cursor = next_cursor
        run_state = RunState.DECODING if cursor < len(data) else RunState.EXHAUSTED

    if emulate:
        write_final_dump(state, out)

    log.info("%s after %d instructions at offset %d", run_state.value, count, cursor)
    return RunResult(run_state, count, cursor, error, state)


def disassemble(data: bytes) -> List[str]:
    """Decode-only run returning the listing lines (diagnostic line on failure)."""
    buf = io.StringIO()
    run(data, buf)
    return buf.getvalue().splitlines()
