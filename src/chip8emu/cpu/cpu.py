"""CHIP-8 execution engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
import random
from typing import Callable, Dict, List, Optional, TYPE_CHECKING

from chip8emu.chip8.display import Chip8Display
from chip8emu.chip8.keyboard import Chip8Keypad
from chip8emu.emulator.file.program import ProgramInfo, load_program
from chip8emu.memory import PROGRAM_START, Memory, glyph_address

if TYPE_CHECKING:
    from chip8emu.chip8.hardware import Chip8Hardware

REGISTER_COUNT = 16
STACK_SIZE = 16
FLAG = 0x0F
ADDRESS_LIMIT = 0x0FFF


class Chip8Error(RuntimeError):
    """Base class for faults raised by a running guest program."""


class StackOverflowError(Chip8Error):
    """Raised when a subroutine call would exceed the 16-entry call stack."""


class StackUnderflowError(Chip8Error):
    """Raised when a return is executed with an empty call stack."""


class Op(IntEnum):
    UNKNOWN = 0
    CLS = 1
    RET = 2
    JP = 3
    CALL = 4
    SE_IMM = 5
    SNE_IMM = 6
    SE_REG = 7
    LD_IMM = 8
    ADD_IMM = 9
    LD_REG = 10
    OR = 11
    AND = 12
    XOR = 13
    ADD_REG = 14
    SUB = 15
    SHR = 16
    SUBN = 17
    SHL = 18
    SNE_REG = 19
    LD_I = 20
    JP_V0 = 21
    RND = 22
    DRW = 23
    SKP = 24
    SKNP = 25
    LD_VX_DT = 26
    LD_VX_K = 27
    LD_DT_VX = 28
    LD_ST_VX = 29
    ADD_I = 30
    LD_F = 31
    LD_B = 32
    LD_MEM_VX = 33
    LD_VX_MEM = 34


_PRIMARY_OPS: Dict[int, Op] = {
    0x1: Op.JP,
    0x2: Op.CALL,
    0x3: Op.SE_IMM,
    0x4: Op.SNE_IMM,
    0x5: Op.SE_REG,
    0x6: Op.LD_IMM,
    0x7: Op.ADD_IMM,
    0x9: Op.SNE_REG,
    0xA: Op.LD_I,
    0xB: Op.JP_V0,
    0xC: Op.RND,
    0xD: Op.DRW,
}

# Selector 0x0, keyed by the low byte.
_SYSTEM_OPS: Dict[int, Op] = {
    0xE0: Op.CLS,
    0xEE: Op.RET,
}

# Selector 0x8, keyed by the low nibble.
_ALU_OPS: Dict[int, Op] = {
    0x0: Op.LD_REG,
    0x1: Op.OR,
    0x2: Op.AND,
    0x3: Op.XOR,
    0x4: Op.ADD_REG,
    0x5: Op.SUB,
    0x6: Op.SHR,
    0x7: Op.SUBN,
    0xE: Op.SHL,
}

# Selector 0xE, keyed by the low byte.
_KEY_OPS: Dict[int, Op] = {
    0x9E: Op.SKP,
    0xA1: Op.SKNP,
}

# Selector 0xF, keyed by the low byte.
_MISC_OPS: Dict[int, Op] = {
    0x07: Op.LD_VX_DT,
    0x0A: Op.LD_VX_K,
    0x15: Op.LD_DT_VX,
    0x18: Op.LD_ST_VX,
    0x1E: Op.ADD_I,
    0x29: Op.LD_F,
    0x33: Op.LD_B,
    0x55: Op.LD_MEM_VX,
    0x65: Op.LD_VX_MEM,
}


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction word and its operand fields."""

    op: Op
    word: int
    x: int
    y: int
    n: int
    nn: int
    nnn: int


def decode(word: int) -> Instruction:
    word &= 0xFFFF
    selector = word >> 12
    n = word & 0x000F
    nn = word & 0x00FF
    if selector == 0x0:
        op = _SYSTEM_OPS.get(nn, Op.UNKNOWN)
    elif selector == 0x8:
        op = _ALU_OPS.get(n, Op.UNKNOWN)
    elif selector == 0xE:
        op = _KEY_OPS.get(nn, Op.UNKNOWN)
    elif selector == 0xF:
        op = _MISC_OPS.get(nn, Op.UNKNOWN)
    else:
        op = _PRIMARY_OPS[selector]
    return Instruction(
        op=op,
        word=word,
        x=(word >> 8) & 0x0F,
        y=(word >> 4) & 0x0F,
        n=n,
        nn=nn,
        nnn=word & 0x0FFF,
    )


@dataclass
class CPURegisters:
    """Register file, call stack and timers."""

    v: List[int] = field(default_factory=lambda: [0x00] * REGISTER_COUNT)
    index: int = 0
    program_counter: int = PROGRAM_START
    stack_pointer: int = 0
    stack: List[int] = field(default_factory=lambda: [0x0000] * STACK_SIZE)
    delay_timer: int = 0
    sound_timer: int = 0


@dataclass
class CPUStatus:
    blocking: bool = False
    wait_register: int = 0


class Chip8CPU:
    """Fetch/decode/dispatch loop over one private machine state.

    ``cycle`` executes at most one instruction; ``tick`` is the 60 Hz timer
    interrupt. The two are driven independently by the host.
    """

    def __init__(self, hardware: Optional["Chip8Hardware"] = None, *, rng: Optional[random.Random] = None) -> None:
        self.memory: Memory = hardware.memory if hardware is not None else Memory()
        self.display: Chip8Display = hardware.display if hardware is not None else Chip8Display()
        self.keypad: Chip8Keypad = hardware.keypad if hardware is not None else Chip8Keypad()
        self.registers = CPURegisters()
        self.status = CPUStatus()
        self._rng = rng if rng is not None else random.Random()
        self._opcode_table: Dict[Op, Callable[[Instruction], None]] = {}
        self._init_opcode_table()

    # ------------------------------------------------------------------
    # Host interface
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self.registers = CPURegisters()
        self.status = CPUStatus()
        self.memory.clear()
        self.display.clear()
        self.keypad.clear()

    def load_program(self, data: bytes, *, name: str = "") -> ProgramInfo:
        return load_program(self.memory, data, name=name)

    def set_key(self, key: int, pressed: bool) -> None:
        self.keypad.set_key(key, pressed)

    def pixel_at(self, row: int, col: int) -> bool:
        return self.display.pixel_at(row, col)

    def is_sound_active(self) -> bool:
        return self.registers.sound_timer != 0

    @property
    def blocking(self) -> bool:
        return self.status.blocking

    def tick(self) -> None:
        regs = self.registers
        if regs.delay_timer > 0:
            regs.delay_timer -= 1
        if regs.sound_timer > 0:
            regs.sound_timer -= 1

    def cycle(self) -> None:
        if self.status.blocking:
            self._wait_for_key(self.status.wait_register)
            return
        instruction = decode(self._fetch())
        self._opcode_table[instruction.op](instruction)

    # ------------------------------------------------------------------
    # Fetch and dispatch
    # ------------------------------------------------------------------
    def _fetch(self) -> int:
        pc = self.registers.program_counter
        word = self.memory.load16(pc)
        self.registers.program_counter = (pc + 2) & 0xFFFF
        return word

    def _init_opcode_table(self) -> None:
        self._opcode_table.clear()
        self._register_opcode(Op.UNKNOWN, self._opcode_unknown)
        self._register_opcode(Op.CLS, self._opcode_cls)
        self._register_opcode(Op.RET, self._opcode_ret)
        self._register_opcode(Op.JP, self._opcode_jp)
        self._register_opcode(Op.CALL, self._opcode_call)
        self._register_opcode(Op.SE_IMM, self._opcode_se_imm)
        self._register_opcode(Op.SNE_IMM, self._opcode_sne_imm)
        self._register_opcode(Op.SE_REG, self._opcode_se_reg)
        self._register_opcode(Op.LD_IMM, self._opcode_ld_imm)
        self._register_opcode(Op.ADD_IMM, self._opcode_add_imm)
        self._register_opcode(Op.LD_REG, self._opcode_ld_reg)
        self._register_opcode(Op.OR, self._opcode_or)
        self._register_opcode(Op.AND, self._opcode_and)
        self._register_opcode(Op.XOR, self._opcode_xor)
        self._register_opcode(Op.ADD_REG, self._opcode_add_reg)
        self._register_opcode(Op.SUB, self._opcode_sub)
        self._register_opcode(Op.SHR, self._opcode_shr)
        self._register_opcode(Op.SUBN, self._opcode_subn)
        self._register_opcode(Op.SHL, self._opcode_shl)
        self._register_opcode(Op.SNE_REG, self._opcode_sne_reg)
        self._register_opcode(Op.LD_I, self._opcode_ld_i)
        self._register_opcode(Op.JP_V0, self._opcode_jp_v0)
        self._register_opcode(Op.RND, self._opcode_rnd)
        self._register_opcode(Op.DRW, self._opcode_drw)
        self._register_opcode(Op.SKP, self._opcode_skp)
        self._register_opcode(Op.SKNP, self._opcode_sknp)
        self._register_opcode(Op.LD_VX_DT, self._opcode_ld_vx_dt)
        self._register_opcode(Op.LD_VX_K, self._opcode_ld_vx_k)
        self._register_opcode(Op.LD_DT_VX, self._opcode_ld_dt_vx)
        self._register_opcode(Op.LD_ST_VX, self._opcode_ld_st_vx)
        self._register_opcode(Op.ADD_I, self._opcode_add_i)
        self._register_opcode(Op.LD_F, self._opcode_ld_f)
        self._register_opcode(Op.LD_B, self._opcode_ld_b)
        self._register_opcode(Op.LD_MEM_VX, self._opcode_ld_mem_vx)
        self._register_opcode(Op.LD_VX_MEM, self._opcode_ld_vx_mem)
        missing = [op.name for op in Op if op not in self._opcode_table]
        if missing:
            raise RuntimeError("opcode handlers missing: " + ", ".join(missing))

    def _register_opcode(self, op: Op, handler: Callable[[Instruction], None]) -> None:
        self._opcode_table[op] = handler

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.registers.program_counter = (self.registers.program_counter + 2) & 0xFFFF

    # ------------------------------------------------------------------
    # Control flow
    # ------------------------------------------------------------------
    def _opcode_unknown(self, ins: Instruction) -> None:
        return

    def _opcode_cls(self, ins: Instruction) -> None:
        self.display.clear()

    def _opcode_ret(self, ins: Instruction) -> None:
        regs = self.registers
        if regs.stack_pointer == 0:
            raise StackUnderflowError(f"return with empty call stack at 0x{(regs.program_counter - 2) & 0xFFFF:03X}")
        regs.stack_pointer -= 1
        regs.program_counter = regs.stack[regs.stack_pointer]

    def _opcode_jp(self, ins: Instruction) -> None:
        self.registers.program_counter = ins.nnn

    def _opcode_call(self, ins: Instruction) -> None:
        regs = self.registers
        if regs.stack_pointer >= STACK_SIZE:
            raise StackOverflowError(f"call stack overflow at 0x{(regs.program_counter - 2) & 0xFFFF:03X}")
        regs.stack[regs.stack_pointer] = regs.program_counter
        regs.stack_pointer += 1
        regs.program_counter = ins.nnn

    def _opcode_jp_v0(self, ins: Instruction) -> None:
        self.registers.program_counter = (ins.nnn + self.registers.v[0]) & 0xFFFF

    def _opcode_se_imm(self, ins: Instruction) -> None:
        self._skip_if(self.registers.v[ins.x] == ins.nn)

    def _opcode_sne_imm(self, ins: Instruction) -> None:
        self._skip_if(self.registers.v[ins.x] != ins.nn)

    def _opcode_se_reg(self, ins: Instruction) -> None:
        v = self.registers.v
        self._skip_if(v[ins.x] == v[ins.y])

    def _opcode_sne_reg(self, ins: Instruction) -> None:
        v = self.registers.v
        self._skip_if(v[ins.x] != v[ins.y])

    # ------------------------------------------------------------------
    # Arithmetic and logic
    # ------------------------------------------------------------------
    def _opcode_ld_imm(self, ins: Instruction) -> None:
        self.registers.v[ins.x] = ins.nn

    def _opcode_add_imm(self, ins: Instruction) -> None:
        v = self.registers.v
        v[ins.x] = (v[ins.x] + ins.nn) & 0xFF

    def _opcode_ld_reg(self, ins: Instruction) -> None:
        v = self.registers.v
        v[ins.x] = v[ins.y]

    def _opcode_or(self, ins: Instruction) -> None:
        v = self.registers.v
        v[ins.x] = (v[ins.x] | v[ins.y]) & 0xFF

    def _opcode_and(self, ins: Instruction) -> None:
        v = self.registers.v
        v[ins.x] = v[ins.x] & v[ins.y]

    def _opcode_xor(self, ins: Instruction) -> None:
        v = self.registers.v
        v[ins.x] = (v[ins.x] ^ v[ins.y]) & 0xFF

    # The flag is always written last so that VF as a destination ends up
    # holding the flag.
    def _opcode_add_reg(self, ins: Instruction) -> None:
        v = self.registers.v
        total = v[ins.x] + v[ins.y]
        v[ins.x] = total & 0xFF
        v[FLAG] = 1 if total > 0xFF else 0

    def _opcode_sub(self, ins: Instruction) -> None:
        v = self.registers.v
        minuend, subtrahend = v[ins.x], v[ins.y]
        v[ins.x] = (minuend - subtrahend) & 0xFF
        v[FLAG] = 1 if minuend >= subtrahend else 0

    def _opcode_subn(self, ins: Instruction) -> None:
        v = self.registers.v
        minuend, subtrahend = v[ins.y], v[ins.x]
        v[ins.x] = (minuend - subtrahend) & 0xFF
        v[FLAG] = 1 if minuend >= subtrahend else 0

    def _opcode_shr(self, ins: Instruction) -> None:
        v = self.registers.v
        source = v[ins.y]
        v[ins.x] = source >> 1
        v[FLAG] = source & 0x01

    def _opcode_shl(self, ins: Instruction) -> None:
        v = self.registers.v
        source = v[ins.y]
        v[ins.x] = (source << 1) & 0xFF
        v[FLAG] = (source >> 7) & 0x01

    def _opcode_rnd(self, ins: Instruction) -> None:
        self.registers.v[ins.x] = self._rng.randrange(0x100) & ins.nn

    # ------------------------------------------------------------------
    # Memory and index
    # ------------------------------------------------------------------
    def _opcode_ld_i(self, ins: Instruction) -> None:
        self.registers.index = ins.nnn

    def _opcode_add_i(self, ins: Instruction) -> None:
        regs = self.registers
        total = regs.index + regs.v[ins.x]
        regs.index = total & 0xFFFF
        regs.v[FLAG] = 1 if total > ADDRESS_LIMIT else 0

    def _opcode_ld_f(self, ins: Instruction) -> None:
        self.registers.index = glyph_address(self.registers.v[ins.x])

    def _opcode_ld_b(self, ins: Instruction) -> None:
        value = self.registers.v[ins.x]
        address = self.registers.index
        self.memory.store8(address, value // 100)
        self.memory.store8(address + 1, (value // 10) % 10)
        self.memory.store8(address + 2, value % 10)

    def _opcode_ld_mem_vx(self, ins: Instruction) -> None:
        regs = self.registers
        self.memory.store_block(regs.index, regs.v[: ins.x + 1])
        regs.index = (regs.index + ins.x + 1) & 0xFFFF

    def _opcode_ld_vx_mem(self, ins: Instruction) -> None:
        regs = self.registers
        regs.v[: ins.x + 1] = self.memory.load_block(regs.index, ins.x + 1)
        regs.index = (regs.index + ins.x + 1) & 0xFFFF

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------
    def _opcode_drw(self, ins: Instruction) -> None:
        regs = self.registers
        x, y = regs.v[ins.x], regs.v[ins.y]
        rows = self.memory.load_block(regs.index, ins.n)
        regs.v[FLAG] = 0
        if self.display.draw_sprite(x, y, rows):
            regs.v[FLAG] = 1

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def _opcode_skp(self, ins: Instruction) -> None:
        self._skip_if(self.keypad.is_pressed(self.registers.v[ins.x]))

    def _opcode_sknp(self, ins: Instruction) -> None:
        self._skip_if(not self.keypad.is_pressed(self.registers.v[ins.x]))

    def _opcode_ld_vx_k(self, ins: Instruction) -> None:
        self._wait_for_key(ins.x)

    def _wait_for_key(self, register: int) -> None:
        key = self.keypad.first_pressed()
        if key is None:
            self.status.blocking = True
            self.status.wait_register = register
            return
        self.status.blocking = False
        self.registers.v[register] = key

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def _opcode_ld_vx_dt(self, ins: Instruction) -> None:
        self.registers.v[ins.x] = self.registers.delay_timer

    def _opcode_ld_dt_vx(self, ins: Instruction) -> None:
        self.registers.delay_timer = self.registers.v[ins.x]

    def _opcode_ld_st_vx(self, ins: Instruction) -> None:
        self.registers.sound_timer = self.registers.v[ins.x]
