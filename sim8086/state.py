"""
sim8086 — Emulator State (registers, flags, memory)

Register model for the emulated 8086 subset:
  ax bx cx dx   — 16-bit general registers; the low/high bytes are
                  addressable as al/ah, bl/bh, cl/ch, dl/dh
  sp bp si di   — 16-bit pointer/index registers
  Z             — zero flag (result == 0)
  S             — sign flag (top bit of result)

Memory is a flat 1 MiB bytearray. Without segment registers every
effective address is a 16-bit offset, so only the first 64K is ever
touched by instructions; the rest is kept so memory dumps have the
real 8086 physical size. 16-bit accesses are little-endian.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple, Union

from . import config
from .instruction import EffectiveAddress, Register, RegWidth


class EmulatorState:
    """Everything an instruction can read or write.

    Created zeroed; reset() brings it back to that state between
    independent runs. One instance per run, owned by the caller.
    """

    __slots__ = ('registers', 'zero', 'sign', 'memory')

    def __init__(self, memory_size: int = config.MEMORY_SIZE):
        self.registers: List[int] = [0] * len(config.REGISTER_NAMES)
        self.zero: bool = False
        self.sign: bool = False
        self.memory = bytearray(memory_size)

    def reset(self):
        """Zero every register, flag and memory byte."""
        for i in range(len(self.registers)):
            self.registers[i] = 0
        self.zero = False
        self.sign = False
        self.memory[:] = bytes(len(self.memory))

    # --- Registers ---

    def read_register(self, reg: Register) -> int:
        value = self.registers[reg.index]
        if reg.width is RegWidth.LOW:
            return value & 0xFF
        if reg.width is RegWidth.HIGH:
            return (value >> 8) & 0xFF
        return value

    def write_register(self, reg: Register, value: int):
        """Write a register; byte halves leave the other half untouched."""
        current = self.registers[reg.index]
        if reg.width is RegWidth.LOW:
            self.registers[reg.index] = (current & 0xFF00) | (value & 0xFF)
        elif reg.width is RegWidth.HIGH:
            self.registers[reg.index] = (current & 0x00FF) | ((value & 0xFF) << 8)
        else:
            self.registers[reg.index] = value & 0xFFFF

    # --- Memory ---

    def read8(self, addr: int) -> int:
        return self.memory[addr % len(self.memory)]

    def write8(self, addr: int, value: int):
        self.memory[addr % len(self.memory)] = value & 0xFF

    def read16(self, addr: int) -> int:
        """Read 16-bit value (little-endian, low byte at addr)."""
        return self.read8(addr) | (self.read8(addr + 1) << 8)

    def write16(self, addr: int, value: int):
        """Write 16-bit value (little-endian)."""
        self.write8(addr, value & 0xFF)
        self.write8(addr + 1, (value >> 8) & 0xFF)

    def address_of(self, ea: EffectiveAddress) -> int:
        """Effective address: base registers + displacement, wrapped to 16 bits."""
        addr = ea.displacement
        if ea.base1 is not None:
            addr += self.registers[ea.base1]
        if ea.base2 is not None:
            addr += self.registers[ea.base2]
        return addr & config.ADDRESS_MASK

    def dump_memory(self, path: Union[str, Path]) -> int:
        """Write the full memory image to ``path``. Returns bytes written."""
        path = Path(path)
        path.write_bytes(bytes(self.memory))
        return len(self.memory)

    # --- Display ---

    def flag_letters(self) -> str:
        """Set flags as letters in S, Z order ('' when none are set)."""
        active = {'S': self.sign, 'Z': self.zero}
        return ''.join(letter for letter in config.FLAG_ORDER if active[letter])

    def register_dump(self) -> List[Tuple[str, int]]:
        return list(zip(config.REGISTER_NAMES, self.registers))

    def display(self) -> str:
        """One-line register/flag summary for debug logging."""
        regs = ' '.join(f'{name}={value:04X}' for name, value in self.register_dump())
        return f'{regs} [{self.flag_letters() or "-"}]'
