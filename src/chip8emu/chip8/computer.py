"""CHIP-8 system wiring."""

from __future__ import annotations

import os
import random
from pathlib import Path
from typing import Optional

from chip8emu.chip8.display import Chip8Display
from chip8emu.chip8.hardware import Chip8Hardware
from chip8emu.chip8.keyboard import Chip8Keypad
from chip8emu.chip8.sound import Chip8SoundProcessor
from chip8emu.cpu.cpu import Chip8CPU
from chip8emu.emulator.file import ProgramInfo, ProgramLoadError, load_program, load_rom
from chip8emu.memory import Memory
from chip8emu.system.computer import (
    DEFAULT_INSTRUCTIONS_PER_SECOND,
    DEFAULT_TICKS_PER_SECOND,
    Computer,
    TimeManager,
)


class Chip8Computer(Computer):
    """Concrete CHIP-8 machine: one CPU, its hardware and the beeper."""

    hardware: Chip8Hardware
    cpu_core: Chip8CPU
    program_info: Optional[ProgramInfo]

    ENV_ROM_PATH = "CHIP8EMU_ROM"

    def __init__(
        self,
        *,
        enable_audio: bool = False,
        rng: Optional[random.Random] = None,
        instructions_per_second: int = DEFAULT_INSTRUCTIONS_PER_SECOND,
        ticks_per_second: int = DEFAULT_TICKS_PER_SECOND,
        time_manager: Optional[TimeManager] = None,
    ) -> None:
        hardware = Chip8Hardware(sound_processor=Chip8SoundProcessor(enable_audio=enable_audio))
        super().__init__(
            hardware,
            instructions_per_second=instructions_per_second,
            ticks_per_second=ticks_per_second,
            time_manager=time_manager,
        )
        self.program_info = None
        self.cpu_core = Chip8CPU(hardware, rng=rng)
        self.set_cpu(self.cpu_core)

    # ------------------------------------------------------------------
    # Hardware accessors
    # ------------------------------------------------------------------
    @property
    def memory(self) -> Memory:
        return self.hardware.memory

    @property
    def display(self) -> Chip8Display:
        return self.hardware.display

    @property
    def keypad(self) -> Chip8Keypad:
        return self.hardware.keypad

    @property
    def sound_processor(self) -> Chip8SoundProcessor:
        return self.hardware.sound_processor

    # ------------------------------------------------------------------
    # Host interface
    # ------------------------------------------------------------------
    def set_key(self, key: int, pressed: bool) -> None:
        self.cpu_core.set_key(key, pressed)

    def pixel_at(self, row: int, col: int) -> bool:
        return self.cpu_core.pixel_at(row, col)

    def is_sound_active(self) -> bool:
        return self.cpu_core.is_sound_active()

    # The beeper follows the gate after every instruction as well as every tick.
    def cycle(self) -> None:
        super().cycle()
        self.sound_processor.update(self.cpu_core.is_sound_active())

    def tick(self) -> None:
        super().tick()
        self.sound_processor.update(self.cpu_core.is_sound_active())

    def run_frame(self, cycles: int) -> None:
        """Execute ``cycles`` instructions followed by one timer tick."""

        for _ in range(cycles):
            self.cycle()
        self.tick()

    def reset(self) -> None:
        self.cpu_core.reset()
        self.sound_processor.update(False)
        self.scheduler.reset()
        self.cycle_count = 0
        self.tick_count = 0

    # ------------------------------------------------------------------
    # Program loading
    # ------------------------------------------------------------------
    def load_program(self, data: bytes, *, name: str = "") -> ProgramInfo:
        info = load_program(self.memory, data, name=name)
        self.program_info = info
        return info

    def load_program_file(self, path: str | os.PathLike[str]) -> ProgramInfo:
        info = load_rom(self.memory, Path(path))
        self.program_info = info
        return info

    def reload(self) -> ProgramInfo:
        """Reset the machine and copy the last loaded program back in."""

        info = self.program_info
        if info is None:
            raise ProgramLoadError("no program loaded")
        self.reset()
        load_program(self.memory, info.data, name=info.name, path=info.path)
        return info

    @classmethod
    def resolve_rom_path(cls, rom_path: str | os.PathLike[str] | None) -> Optional[Path]:
        if rom_path is not None and str(rom_path):
            return Path(rom_path)
        env_value = os.getenv(cls.ENV_ROM_PATH)
        if env_value:
            return Path(env_value)
        return None
