"""
Byte pattern table tests: mask/accept behaviour and field extraction.
"""

from sim8086.instruction import InstructionRecord, Mod, OpCode, Shape
from sim8086.patterns import MATCHERS, MatcherKind as K, apply


def _apply(kind, byte, record=None):
    record = record or InstructionRecord()
    matcher = MATCHERS[kind]
    assert matcher.matches(byte), f"{kind.name} should accept 0x{byte:02X}"
    apply(matcher, byte, record)
    return record


class TestMatching:
    def test_every_kind_has_a_matcher(self):
        assert set(MATCHERS) == set(K)

    def test_reg_rm_head(self):
        m = MATCHERS[K.REG_RM_HEAD]
        for byte in (0x88, 0x89, 0x8A, 0x8B, 0x00, 0x03, 0x28, 0x2B, 0x38, 0x3B):
            assert m.matches(byte)
        for byte in (0x8C, 0x04, 0x2C, 0x3C, 0x84):
            assert not m.matches(byte)

    def test_direct_address_matcher(self):
        m = MATCHERS[K.MOD_REG_RM_DIRECT]
        assert m.matches(0x06)
        assert m.matches(0x3E)      # reg field ignored
        assert not m.matches(0x46)  # mod=01
        assert not m.matches(0x07)  # rm=111

    def test_group1_rejects_unsupported_operations(self):
        m = MATCHERS[K.MOD_OP_RM_REG_MODE]
        assert m.matches(0xC6)      # add
        assert m.matches(0xEE)      # sub
        assert m.matches(0xFE)      # cmp
        for reg in (0b001, 0b010, 0b011, 0b100, 0b110):   # or adc sbb and xor
            assert not m.matches(0xC0 | (reg << 3))

    def test_trailing_byte_matchers_accept_everything(self):
        for kind in (K.DISP_LO, K.DISP_HI, K.DATA_LO, K.DATA_HI):
            assert all(MATCHERS[kind].matches(b) for b in range(256))

    def test_jne_and_jnz_share_encoding(self):
        assert MATCHERS[K.JNE].accepted == MATCHERS[K.JNZ].accepted == (0x75,)


class TestExtraction:
    def test_reg_rm_head_fields(self):
        r = _apply(K.REG_RM_HEAD, 0x8B)
        assert r.opcode is OpCode.MOV
        assert r.shape is Shape.REG_RM
        assert r.d and r.w

        r = _apply(K.REG_RM_HEAD, 0x2A)
        assert r.opcode is OpCode.SUB
        assert r.d and not r.w

        assert _apply(K.REG_RM_HEAD, 0x01).opcode is OpCode.ADD
        assert _apply(K.REG_RM_HEAD, 0x39).opcode is OpCode.CMP

    def test_mod_reg_rm_fields(self):
        r = _apply(K.MOD_REG_RM_REG_MODE, 0xD9)
        assert r.mod is Mod.REG
        assert r.reg == 0b011
        assert r.rm == 0b001

    def test_mod_000_leaves_reg_alone(self):
        r = _apply(K.MOD_000_RM_DISP16, 0x85)
        assert r.mod is Mod.MEM_DISP16
        assert r.rm == 0b101
        assert r.reg is None

    def test_immed_reg_mov(self):
        r = _apply(K.MOV_IMMED_REG_WORD, 0xBC)
        assert r.opcode is OpCode.MOV
        assert r.shape is Shape.IMMED_REG
        assert r.w
        assert r.reg == 0b100

    def test_acc_mem_direction(self):
        load = _apply(K.MOV_ACC_MEM, 0xA1)
        assert load.d and load.w and load.reg == 0
        store = _apply(K.MOV_ACC_MEM, 0xA2)
        assert not store.d and not store.w

    def test_immed_rm_arith_head(self):
        r = _apply(K.IMMED_RM_HEAD_BYTE, 0x83)
        assert r.shape is Shape.IMMED_RM_ARITH
        assert r.s and r.w
        # sub-opcode comes from the next byte
        assert r.opcode is OpCode.NONE
        _apply(K.MOD_OP_RM_DISP8, 0x6F, r)
        assert r.opcode is OpCode.SUB
        assert r.mod is Mod.MEM_DISP8
        assert r.rm == 0b111

    def test_immed_acc_head(self):
        r = _apply(K.IMMED_ACC_HEAD_WORD, 0x2D)
        assert r.opcode is OpCode.SUB
        assert r.shape is Shape.IMMED_REG
        assert r.d and r.w
        assert r.reg == 0
        assert _apply(K.IMMED_ACC_HEAD_BYTE, 0x3C).opcode is OpCode.CMP

    def test_jump_head(self):
        r = _apply(K.LOOPNZ, 0xE0)
        assert r.opcode is OpCode.LOOPNZ
        assert r.shape is Shape.JUMP

    def test_trailing_bytes(self):
        r = InstructionRecord()
        _apply(K.DISP_LO, 0x12, r)
        _apply(K.DISP_HI, 0x34, r)
        _apply(K.DATA_LO, 0x56, r)
        _apply(K.DATA_HI, 0x78, r)
        assert (r.disp_lo, r.disp_hi, r.data_lo, r.data_hi) == (0x12, 0x34, 0x56, 0x78)

    def test_reset_clears_everything(self):
        r = _apply(K.REG_RM_HEAD, 0x8B)
        _apply(K.MOD_REG_RM_DISP8, 0x41, r)
        r.reset()
        assert r.opcode is OpCode.NONE
        assert r.shape is Shape.NONE
        assert r.mod is None and r.reg is None and r.rm is None
        assert not (r.d or r.w or r.s)
