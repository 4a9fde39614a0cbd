"""CHIP-8 memory image with the built-in hexadecimal font."""

from __future__ import annotations

from typing import Iterable, List

MEMORY_SIZE = 0x1000
PROGRAM_START = 0x0200
MAX_PROGRAM_SIZE = MEMORY_SIZE - PROGRAM_START

FONT_START = 0x0050
FONT_GLYPH_SIZE = 5
FONT_SET = (
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
)
FONT_END = FONT_START + len(FONT_SET)


def glyph_address(digit: int) -> int:
    """Return the address of the 5-byte glyph for hexadecimal ``digit``."""

    return FONT_START + FONT_GLYPH_SIZE * (digit & 0x0F)


class Memory:
    """4 KB byte-addressable memory.

    Every access is wrapped modulo the memory size, so a guest program that
    walks the address register past 0xFFF reads and writes the low pages
    again instead of faulting.
    """

    length: int
    data: List[int]

    def __init__(self) -> None:
        self.length = MEMORY_SIZE
        self.data = [0x00] * MEMORY_SIZE
        self._install_font()

    def _install_font(self) -> None:
        self.data[FONT_START:FONT_END] = list(FONT_SET)

    def _index(self, address: int) -> int:
        return address % self.length

    def clear(self) -> None:
        self.data = [0x00] * MEMORY_SIZE
        self._install_font()

    def load8(self, address: int) -> int:
        return self.data[self._index(address)] & 0xFF

    def store8(self, address: int, value: int) -> None:
        self.data[self._index(address)] = value & 0xFF

    def load16(self, address: int) -> int:
        hi = self.load8(address)
        lo = self.load8(address + 1)
        return ((hi << 8) | lo) & 0xFFFF

    def store16(self, address: int, value: int) -> None:
        self.store8(address, (value >> 8) & 0xFF)
        self.store8(address + 1, value & 0xFF)

    def load_block(self, address: int, length: int) -> List[int]:
        return [self.load8(address + offset) for offset in range(length)]

    def store_block(self, address: int, values: Iterable[int]) -> None:
        for offset, value in enumerate(values):
            self.store8(address + offset, value)


__all__ = [
    "FONT_END",
    "FONT_GLYPH_SIZE",
    "FONT_SET",
    "FONT_START",
    "MAX_PROGRAM_SIZE",
    "MEMORY_SIZE",
    "Memory",
    "PROGRAM_START",
    "glyph_address",
]
