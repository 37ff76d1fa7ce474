"""
Emulator state and execution engine tests.

Operands are built directly (no decoding) so each test pins down one
execution rule.
"""

from sim8086.config import MEMORY_SIZE, REG_AX, REG_BX, REG_CX, REG_SI
from sim8086.emulator import ExecStatus, execute, set_flags
from sim8086.instruction import EffectiveAddress, Immediate, OpCode, Register, RegWidth
from sim8086.state import EmulatorState

AX = Register(RegWidth.FULL, REG_AX)
BX = Register(RegWidth.FULL, REG_BX)
CX = Register(RegWidth.FULL, REG_CX)
SI = Register(RegWidth.FULL, REG_SI)
AL = Register(RegWidth.LOW, REG_AX)
AH = Register(RegWidth.HIGH, REG_AX)


# ═══════════════════════════════════════════════
# State
# ═══════════════════════════════════════════════

class TestState:
    def test_starts_zeroed(self):
        state = EmulatorState()
        assert state.registers == [0] * 8
        assert not state.zero and not state.sign
        assert len(state.memory) == MEMORY_SIZE
        assert not any(state.memory[:0x10000])

    def test_byte_halves_alias(self):
        state = EmulatorState()
        state.write_register(AH, 0x12)
        state.write_register(AL, 0x34)
        assert state.read_register(AX) == 0x1234
        state.write_register(AL, 0x1FF)     # truncated to the byte
        assert state.read_register(AX) == 0x12FF
        assert state.read_register(AH) == 0x12

    def test_word_access_little_endian(self):
        state = EmulatorState()
        state.write16(1000, 0x1234)
        assert state.memory[1000] == 0x34
        assert state.memory[1001] == 0x12
        assert state.read16(1000) == 0x1234
        assert state.read8(1001) == 0x12

    def test_address_wraps_at_16_bits(self):
        state = EmulatorState()
        state.write_register(BX, 0xFFFF)
        assert state.address_of(EffectiveAddress(REG_BX, None, 2)) == 1
        state.write_register(SI, 0x8000)
        assert state.address_of(EffectiveAddress(REG_BX, REG_SI, 0)) == 0x7FFF

    def test_flag_letters(self):
        state = EmulatorState()
        assert state.flag_letters() == ''
        state.zero = True
        assert state.flag_letters() == 'Z'
        state.sign = True
        assert state.flag_letters() == 'SZ'

    def test_reset(self):
        state = EmulatorState()
        state.write_register(CX, 7)
        state.write8(5, 9)
        state.zero = True
        state.reset()
        assert state.registers == [0] * 8
        assert state.memory[5] == 0
        assert not state.zero

    def test_dump_memory(self, tmp_path):
        state = EmulatorState()
        state.write16(0x100, 0xBEEF)
        path = tmp_path / 'mem.data'
        assert state.dump_memory(path) == MEMORY_SIZE
        image = path.read_bytes()
        assert len(image) == MEMORY_SIZE
        assert image[0x100:0x102] == b'\xEF\xBE'


# ═══════════════════════════════════════════════
# Flags
# ═══════════════════════════════════════════════

class TestFlags:
    def test_zero(self):
        state = EmulatorState()
        state.sign = True
        set_flags(state, 0)
        assert state.zero and not state.sign

    def test_sign(self):
        state = EmulatorState()
        state.zero = True
        set_flags(state, 0x8001)
        assert state.sign and not state.zero

    def test_neither(self):
        state = EmulatorState()
        state.zero = state.sign = True
        set_flags(state, 0x7FFF)
        assert not state.zero and not state.sign

    def test_byte_width_uses_bit_7(self):
        state = EmulatorState()
        set_flags(state, 0x80, wide=False)
        assert state.sign
        set_flags(state, 0x80, wide=True)
        assert not state.sign


# ═══════════════════════════════════════════════
# Data movement / arithmetic
# ═══════════════════════════════════════════════

class TestMovArith:
    def test_mov_immediate_to_register(self):
        state = EmulatorState()
        step = execute(OpCode.MOV, Immediate(1), AX, state, 3)
        assert step.status is ExecStatus.EXECUTED
        assert step.cursor == 3
        assert state.read_register(AX) == 1
        assert (step.change.target, step.change.old, step.change.new) == ('ax', 0, 1)

    def test_mov_leaves_flags(self):
        state = EmulatorState()
        state.zero = True
        execute(OpCode.MOV, Immediate(5), AX, state, 3)
        assert state.zero

    def test_mov_byte_register_keeps_other_half(self):
        state = EmulatorState()
        state.write_register(AX, 0x1234)
        execute(OpCode.MOV, Immediate(0xAB), AL, state, 2, wide=False)
        assert state.read_register(AX) == 0x12AB

    def test_mov_word_to_memory(self):
        state = EmulatorState()
        state.write_register(BX, 1000)
        execute(OpCode.MOV, Immediate(0x1234), EffectiveAddress(REG_BX, None, 0), state, 4)
        assert state.read16(1000) == 0x1234

    def test_mov_byte_to_memory_touches_one_byte(self):
        state = EmulatorState()
        state.write16(1000, 0xFFFF)
        step = execute(OpCode.MOV, Immediate(7), EffectiveAddress(None, None, 1000),
                       state, 5, wide=False)
        assert state.read16(1000) == 0xFF07
        assert step.change.target == '[1000]@0x03e8'

    def test_mov_memory_to_register(self):
        state = EmulatorState()
        state.write16(0x10, 0xCAFE)
        execute(OpCode.MOV, EffectiveAddress(None, None, 0x10), CX, state, 3)
        assert state.read_register(CX) == 0xCAFE

    def test_add_wraps_and_sets_zero(self):
        state = EmulatorState()
        state.write_register(AX, 0xFFFF)
        step = execute(OpCode.ADD, Immediate(1), AX, state, 3)
        assert state.read_register(AX) == 0
        assert state.zero and not state.sign
        assert step.flags_before == '' and step.flags_after == 'Z'

    def test_sub_sets_sign(self):
        state = EmulatorState()
        state.write_register(BX, 1)
        execute(OpCode.SUB, Immediate(2), BX, state, 3)
        assert state.read_register(BX) == 0xFFFF
        assert state.sign and not state.zero

    def test_add_registers(self):
        state = EmulatorState()
        state.write_register(AX, 0x0102)
        state.write_register(BX, 0x0304)
        execute(OpCode.ADD, BX, AX, state, 2)
        assert state.read_register(AX) == 0x0406
        assert not state.zero and not state.sign

    def test_byte_add_wraps_in_8_bits(self):
        state = EmulatorState()
        state.write_register(AX, 0x12FF)
        execute(OpCode.ADD, Immediate(1), AL, state, 2, wide=False)
        assert state.read_register(AX) == 0x1200
        assert state.zero

    def test_sub_memory_destination(self):
        state = EmulatorState()
        state.write16(200, 10)
        ea = EffectiveAddress(None, None, 200)
        execute(OpCode.SUB, Immediate(3), ea, state, 6)
        assert state.read16(200) == 7

    def test_cmp_equal_sets_zero_only(self):
        state = EmulatorState()
        state.write_register(AX, 5)
        step = execute(OpCode.CMP, Immediate(5), AX, state, 3)
        assert state.read_register(AX) == 5
        assert state.zero and not state.sign
        assert step.change is None
        assert step.result == 0

    def test_cmp_below_sets_sign(self):
        state = EmulatorState()
        state.write_register(AX, 3)
        step = execute(OpCode.CMP, Immediate(5), AX, state, 3)
        assert state.read_register(AX) == 3
        assert state.sign
        assert step.result == 0xFFFE


# ═══════════════════════════════════════════════
# Jumps / loops
# ═══════════════════════════════════════════════

class TestJumps:
    def test_jnz_taken_backwards(self):
        state = EmulatorState()
        step = execute(OpCode.JNZ, None, Immediate(0xFFFE), state, 0x10)
        assert step.cursor == 0x0E

    def test_jnz_not_taken(self):
        state = EmulatorState()
        state.zero = True
        step = execute(OpCode.JNZ, None, Immediate(0xFFFE), state, 0x10)
        assert step.cursor == 0x10

    def test_jne_behaves_like_jnz(self):
        state = EmulatorState()
        assert execute(OpCode.JNE, None, Immediate(4), state, 2).cursor == 6

    def test_je_js_jns(self):
        state = EmulatorState()
        assert execute(OpCode.JE, None, Immediate(4), state, 2).cursor == 2
        assert execute(OpCode.JS, None, Immediate(4), state, 2).cursor == 2
        assert execute(OpCode.JNS, None, Immediate(4), state, 2).cursor == 6
        state.zero = state.sign = True
        assert execute(OpCode.JE, None, Immediate(4), state, 2).cursor == 6
        assert execute(OpCode.JS, None, Immediate(4), state, 2).cursor == 6

    def test_jump_target_wraps(self):
        state = EmulatorState()
        step = execute(OpCode.JNZ, None, Immediate(0xFFFC), state, 2)
        assert step.cursor == 0xFFFE

    def test_jcxz(self):
        state = EmulatorState()
        assert execute(OpCode.JCXZ, None, Immediate(6), state, 2).cursor == 8
        state.write_register(CX, 1)
        assert execute(OpCode.JCXZ, None, Immediate(6), state, 2).cursor == 2

    def test_loop_counts_down(self):
        state = EmulatorState()
        state.write_register(CX, 2)
        step = execute(OpCode.LOOP, None, Immediate(0xFFFA), state, 8)
        assert step.cursor == 2
        assert state.read_register(CX) == 1
        assert (step.change.old, step.change.new) == (2, 1)
        step = execute(OpCode.LOOP, None, Immediate(0xFFFA), state, 8)
        assert step.cursor == 8
        assert state.read_register(CX) == 0

    def test_loop_with_zero_cx_runs_65535_more_times(self):
        state = EmulatorState()
        step = execute(OpCode.LOOP, None, Immediate(0xFFFA), state, 8)
        assert state.read_register(CX) == 0xFFFF
        assert step.cursor == 2

    def test_loopz_and_loopnz(self):
        state = EmulatorState()
        state.write_register(CX, 5)
        assert execute(OpCode.LOOPZ, None, Immediate(0xFFFA), state, 8).cursor == 8
        assert execute(OpCode.LOOPNZ, None, Immediate(0xFFFA), state, 8).cursor == 2
        state.zero = True
        assert execute(OpCode.LOOPZ, None, Immediate(0xFFFA), state, 8).cursor == 2
        assert state.read_register(CX) == 2

    def test_jumps_do_not_touch_flags(self):
        state = EmulatorState()
        state.sign = True
        step = execute(OpCode.JNZ, None, Immediate(2), state, 2)
        assert step.flags_before == step.flags_after == 'S'


class TestNotExecutable:
    def test_carry_based_jump(self):
        state = EmulatorState()
        state.write_register(AX, 9)
        step = execute(OpCode.JL, None, Immediate(4), state, 2)
        assert step.status is ExecStatus.NOT_EXECUTABLE
        assert step.cursor == 2
        assert state.read_register(AX) == 9

    def test_none_opcode(self):
        state = EmulatorState()
        step = execute(OpCode.NONE, None, None, state, 0)
        assert step.status is ExecStatus.NOT_EXECUTABLE
        assert step.cursor == 0
        assert not step.executed

    def test_immediate_destination(self):
        state = EmulatorState()
        step = execute(OpCode.MOV, Immediate(1), Immediate(2), state, 3)
        assert step.status is ExecStatus.NOT_EXECUTABLE
