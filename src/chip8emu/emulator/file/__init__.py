"""File loading helpers for the CHIP-8 emulator."""

from chip8emu.emulator.file.program import (
    ROM_SUFFIXES,
    ProgramInfo,
    ProgramLoadError,
    check_program_size,
    load_program,
    load_rom,
    read_rom,
)

__all__ = [
    "ROM_SUFFIXES",
    "ProgramInfo",
    "ProgramLoadError",
    "check_program_size",
    "load_program",
    "load_rom",
    "read_rom",
]
