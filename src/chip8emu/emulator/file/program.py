"""Program loaders for CHIP-8 ROM images."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from chip8emu.memory import MAX_PROGRAM_SIZE, PROGRAM_START, Memory

ROM_SUFFIXES = (".ch8", ".c8", ".rom", ".bin")


class ProgramLoadError(RuntimeError):
    """Raised when a CHIP-8 program cannot be read or does not fit in memory."""


@dataclass
class ProgramInfo:
    data: bytes
    name: str = ""
    path: Optional[Path] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def start(self) -> int:
        return PROGRAM_START

    @property
    def end(self) -> int:
        """Last address occupied by the program (inclusive)."""

        return PROGRAM_START + len(self.data) - 1


def check_program_size(data: bytes) -> None:
    if len(data) > MAX_PROGRAM_SIZE:
        raise ProgramLoadError(
            f"program is {len(data)} bytes; at most {MAX_PROGRAM_SIZE} bytes fit above 0x{PROGRAM_START:03X}"
        )


def load_program(memory: Memory, data: bytes, *, name: str = "", path: Optional[Path] = None) -> ProgramInfo:
    """Copy ``data`` verbatim into memory starting at 0x200.

    The size check happens before the first byte is written, so a rejected
    program leaves memory untouched.
    """

    payload = bytes(data)
    check_program_size(payload)
    memory.store_block(PROGRAM_START, payload)
    return ProgramInfo(data=payload, name=name, path=path)


def read_rom(path: str | Path) -> bytes:
    file_path = Path(path)
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise ProgramLoadError(f"cannot read {file_path}: {exc.strerror or exc}") from exc
    if not data:
        raise ProgramLoadError(f"{file_path} is empty")
    check_program_size(data)
    return data


def load_rom(memory: Memory, path: str | Path) -> ProgramInfo:
    """Read a raw ROM image from disk and place it at 0x200."""

    file_path = Path(path)
    data = read_rom(file_path)
    return load_program(memory, data, name=file_path.stem.upper(), path=file_path)
