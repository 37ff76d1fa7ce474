"""
sim8086 — Configuration Constants
=================================

Module-level settings shared by the decoder, the emulator and the CLI.
Edit here rather than threading values through call sites.
"""

import logging


# =============================================================================
#  MEMORY
# =============================================================================
MEMORY_SIZE = 1024 * 1024        # 1 MiB, the full 8086 physical address space
ADDRESS_MASK = 0xFFFF            # effective addresses wrap at 16 bits


# =============================================================================
#  REGISTERS
#  Storage order of the emulator register file. This is NOT the 8086 encoding
#  order (ax cx dx bx ...); the resolver maps encoded fields onto it.
# =============================================================================
REGISTER_NAMES = ("ax", "bx", "cx", "dx", "sp", "bp", "si", "di")
LOW_BYTE_NAMES = ("al", "bl", "cl", "dl")
HIGH_BYTE_NAMES = ("ah", "bh", "ch", "dh")

REG_AX = 0
REG_BX = 1
REG_CX = 2
REG_DX = 3
REG_SP = 4
REG_BP = 5
REG_SI = 6
REG_DI = 7


# =============================================================================
#  FLAGS
# =============================================================================
FLAG_ORDER = ("S", "Z")          # order of letters in flag dumps


# =============================================================================
#  LOGGING
# =============================================================================
LOGGER_NAME = "sim8086"
DEFAULT_CONSOLE_LEVEL = logging.WARNING
FILE_LOG_FORMAT = (
    "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
)
FILE_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
