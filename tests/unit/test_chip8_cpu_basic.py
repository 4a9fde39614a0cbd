"""CHIP-8 CPU instruction tests."""

from __future__ import annotations

import random
from typing import Callable, Sequence

import pytest

from chip8emu.cpu.cpu import FLAG, Chip8CPU, StackOverflowError, StackUnderflowError
from chip8emu.emulator.file import ProgramLoadError
from chip8emu.memory import FONT_SET, FONT_START, PROGRAM_START


def make_cpu(seed: int = 0) -> Chip8CPU:
    return Chip8CPU(rng=random.Random(seed))


def load_words(cpu: Chip8CPU, words: Sequence[int], address: int = PROGRAM_START) -> None:
    for offset, word in enumerate(words):
        cpu.memory.store16(address + offset * 2, word)


def run(cpu: Chip8CPU, words: Sequence[int], steps: int | None = None) -> None:
    load_words(cpu, words)
    for _ in range(len(words) if steps is None else steps):
        cpu.cycle()


def test_initial_state() -> None:
    cpu = make_cpu()
    regs = cpu.registers
    assert regs.program_counter == 0x200
    assert regs.v == [0] * 16
    assert regs.index == 0
    assert regs.stack_pointer == 0
    assert regs.delay_timer == 0 and regs.sound_timer == 0
    assert cpu.blocking is False
    assert cpu.memory.load_block(FONT_START, len(FONT_SET)) == list(FONT_SET)


def test_add_immediate_wraps_and_leaves_flag() -> None:
    cpu = make_cpu()
    cpu.registers.v[FLAG] = 0x07
    run(cpu, [0x63F0, 0x7320])
    assert cpu.registers.v[3] == 0x10
    assert cpu.registers.v[FLAG] == 0x07
    assert cpu.registers.program_counter == 0x204


@pytest.mark.parametrize("first, second", [(0x10, 0x20), (0xFF, 0x01), (0x80, 0x80), (0xC8, 0x64)])
def test_two_immediate_adds_equal_one_combined_add(first: int, second: int) -> None:
    cpu = make_cpu()
    run(cpu, [0x6500, 0x7500 | first, 0x7500 | second])
    assert cpu.registers.v[5] == (first + second) % 256


@pytest.mark.parametrize("a, b", [(0x00, 0x00), (0x14, 0x22), (0xFF, 0x01), (0x80, 0x80), (0xFF, 0xFF), (0x7F, 0x80)])
def test_add_register_sets_carry(a: int, b: int) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = a
    cpu.registers.v[1] = b
    run(cpu, [0x8014])
    assert cpu.registers.v[0] == (a + b) % 256
    assert cpu.registers.v[FLAG] == (1 if a + b > 255 else 0)


@pytest.mark.parametrize("a, b", [(0x30, 0x10), (0x10, 0x30), (0x42, 0x42), (0x00, 0xFF), (0xFF, 0x00)])
def test_subtract_sets_no_borrow_flag(a: int, b: int) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = a
    cpu.registers.v[1] = b
    run(cpu, [0x8015])
    assert cpu.registers.v[0] == (a - b) % 256
    assert cpu.registers.v[FLAG] == (1 if a >= b else 0)


@pytest.mark.parametrize("a, b", [(0x30, 0x10), (0x10, 0x30), (0x42, 0x42)])
def test_reverse_subtract_sets_no_borrow_flag(a: int, b: int) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = a
    cpu.registers.v[1] = b
    run(cpu, [0x8017])
    assert cpu.registers.v[0] == (b - a) % 256
    assert cpu.registers.v[FLAG] == (1 if b >= a else 0)


def test_flag_register_as_destination_keeps_flag() -> None:
    cpu = make_cpu()
    cpu.registers.v[FLAG] = 0xFF
    cpu.registers.v[1] = 0x01
    run(cpu, [0x8F14])
    assert cpu.registers.v[FLAG] == 1


def test_shift_right_uses_source_register() -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 0xAA
    cpu.registers.v[1] = 0x03
    run(cpu, [0x8016])
    assert cpu.registers.v[0] == 0x01
    assert cpu.registers.v[FLAG] == 1
    assert cpu.registers.v[1] == 0x03


def test_shift_left_uses_source_register() -> None:
    cpu = make_cpu()
    cpu.registers.v[1] = 0x81
    run(cpu, [0x801E])
    assert cpu.registers.v[0] == 0x02
    assert cpu.registers.v[FLAG] == 1

    cpu = make_cpu()
    cpu.registers.v[1] = 0x41
    run(cpu, [0x801E])
    assert cpu.registers.v[0] == 0x82
    assert cpu.registers.v[FLAG] == 0


@pytest.mark.parametrize(
    "word, expected",
    [(0x8010, 0b1010), (0x8011, 0b1110), (0x8012, 0b1000), (0x8013, 0b0110)],
)
def test_register_logic(word: int, expected: int) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 0b1100
    cpu.registers.v[1] = 0b1010
    run(cpu, [word])
    assert cpu.registers.v[0] == expected


def _equal_registers(cpu: Chip8CPU) -> None:
    cpu.registers.v[2] = 0x42
    cpu.registers.v[3] = 0x42


def _different_registers(cpu: Chip8CPU) -> None:
    cpu.registers.v[2] = 0x42
    cpu.registers.v[3] = 0x41


@pytest.mark.parametrize(
    "word, setup, expected_pc",
    [
        (0x3242, _equal_registers, 0x204),
        (0x3243, _equal_registers, 0x202),
        (0x4242, _equal_registers, 0x202),
        (0x4243, _equal_registers, 0x204),
        (0x5230, _equal_registers, 0x204),
        (0x5230, _different_registers, 0x202),
        (0x9230, _equal_registers, 0x202),
        (0x9230, _different_registers, 0x204),
        (0x5231, _equal_registers, 0x204),
        (0x523F, _different_registers, 0x202),
        (0x9231, _equal_registers, 0x202),
        (0x923F, _different_registers, 0x204),
    ],
)
def test_conditional_skips(word: int, setup: Callable[[Chip8CPU], None], expected_pc: int) -> None:
    cpu = make_cpu()
    setup(cpu)
    run(cpu, [word])
    assert cpu.registers.program_counter == expected_pc


def test_jumps() -> None:
    cpu = make_cpu()
    run(cpu, [0x1ABC])
    assert cpu.registers.program_counter == 0xABC

    cpu = make_cpu()
    cpu.registers.v[0] = 0x10
    run(cpu, [0xB300])
    assert cpu.registers.program_counter == 0x310


def test_call_then_return_resumes_after_call() -> None:
    cpu = make_cpu()
    load_words(cpu, [0x2300])
    load_words(cpu, [0x00EE], address=0x300)

    cpu.cycle()
    assert cpu.registers.program_counter == 0x300
    assert cpu.registers.stack_pointer == 1
    assert cpu.registers.stack[0] == 0x202

    cpu.cycle()
    assert cpu.registers.program_counter == 0x202
    assert cpu.registers.stack_pointer == 0


def test_call_stack_overflow_raises() -> None:
    cpu = make_cpu()
    load_words(cpu, [0x2200])
    for _ in range(16):
        cpu.cycle()
    assert cpu.registers.stack_pointer == 16

    with pytest.raises(StackOverflowError):
        cpu.cycle()
    assert cpu.registers.stack_pointer == 16


def test_return_with_empty_stack_raises() -> None:
    cpu = make_cpu()
    load_words(cpu, [0x00EE])
    with pytest.raises(StackUnderflowError):
        cpu.cycle()
    assert cpu.registers.stack_pointer == 0


@pytest.mark.parametrize("word", [0x0123, 0x00E1, 0x8018, 0xE0FF, 0xF0FF, 0xF030])
def test_unknown_opcode_only_consumes_fetch(word: int) -> None:
    cpu = make_cpu()
    cpu.registers.v[1] = 0x21
    before_v = list(cpu.registers.v)
    load_words(cpu, [word])
    before_memory = list(cpu.memory.data)

    cpu.cycle()

    assert cpu.registers.program_counter == 0x202
    assert cpu.registers.v == before_v
    assert cpu.registers.index == 0
    assert cpu.memory.data == before_memory
    assert cpu.display.lit_count() == 0


def test_load_and_add_index() -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 0x10
    run(cpu, [0xA123, 0xF01E])
    assert cpu.registers.index == 0x133
    assert cpu.registers.v[FLAG] == 0


def test_add_index_flags_twelve_bit_overflow() -> None:
    cpu = make_cpu()
    cpu.registers.index = 0xFFF
    cpu.registers.v[0] = 0x01
    run(cpu, [0xF01E])
    assert cpu.registers.index == 0x1000
    assert cpu.registers.v[FLAG] == 1


def test_font_glyph_address() -> None:
    cpu = make_cpu()
    cpu.registers.v[4] = 0x0B
    run(cpu, [0xF429])
    assert cpu.registers.index == 0x050 + 5 * 0xB
    assert cpu.memory.load_block(cpu.registers.index, 5) == [0xE0, 0x90, 0xE0, 0x90, 0xE0]


@pytest.mark.parametrize("value, digits", [(234, [2, 3, 4]), (7, [0, 0, 7]), (100, [1, 0, 0]), (255, [2, 5, 5])])
def test_binary_coded_decimal(value: int, digits: list) -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = value
    cpu.registers.index = 0x300
    run(cpu, [0xF033])
    assert cpu.memory.load_block(0x300, 3) == digits
    assert cpu.registers.index == 0x300


def test_register_block_round_trip() -> None:
    cpu = make_cpu()
    values = [0x11, 0x22, 0x33, 0x44, 0x55, 0x66]
    cpu.registers.v[:6] = values
    cpu.registers.v[6] = 0x99
    cpu.registers.index = 0x400
    load_words(cpu, [0xF555, 0xF565])

    cpu.cycle()
    assert cpu.memory.load_block(0x400, 6) == values
    assert cpu.memory.load8(0x406) == 0x00
    assert cpu.registers.index == 0x406

    cpu.registers.v[:6] = [0] * 6
    cpu.registers.index = 0x400
    cpu.cycle()
    assert cpu.registers.v[:6] == values
    assert cpu.registers.v[6] == 0x99
    assert cpu.registers.index == 0x406


def test_register_store_wraps_past_end_of_memory() -> None:
    cpu = make_cpu()
    cpu.registers.v[:4] = [0xA1, 0xA2, 0xA3, 0xA4]
    cpu.registers.index = 0xFFE
    run(cpu, [0xF355])
    assert cpu.memory.load8(0xFFE) == 0xA1
    assert cpu.memory.load8(0xFFF) == 0xA2
    assert cpu.memory.load8(0x000) == 0xA3
    assert cpu.memory.load8(0x001) == 0xA4
    assert cpu.registers.index == 0x1002


def test_timer_loads_and_tick() -> None:
    cpu = make_cpu()
    run(cpu, [0x6005, 0xF015, 0xF018, 0xF107])
    regs = cpu.registers
    assert regs.delay_timer == 5
    assert regs.sound_timer == 5
    assert regs.v[1] == 5
    assert cpu.is_sound_active() is True

    cpu.tick()
    assert regs.delay_timer == 4
    assert regs.sound_timer == 4

    for _ in range(10):
        cpu.tick()
    assert regs.delay_timer == 0
    assert regs.sound_timer == 0
    assert cpu.is_sound_active() is False


def test_tick_decrements_timers_independently() -> None:
    cpu = make_cpu()
    cpu.registers.delay_timer = 0
    cpu.registers.sound_timer = 2
    cpu.tick()
    assert cpu.registers.delay_timer == 0
    assert cpu.registers.sound_timer == 1


def test_random_is_masked() -> None:
    cpu = make_cpu(seed=1234)
    expected = random.Random(1234).randrange(256) & 0x0F
    run(cpu, [0xC30F, 0xC400])
    assert cpu.registers.v[3] == expected
    assert cpu.registers.v[4] == 0


def test_reset_restores_initial_state() -> None:
    cpu = make_cpu()
    cpu.registers.v[0] = 0xFF
    cpu.registers.index = 0x300
    cpu.memory.store8(0x300, 0xFF)
    run(cpu, [0xD011, 0xF00A])
    assert cpu.blocking is True
    cpu.set_key(3, True)

    cpu.reset()

    assert cpu.registers.program_counter == 0x200
    assert cpu.registers.v == [0] * 16
    assert cpu.blocking is False
    assert cpu.memory.load8(0x300) == 0
    assert cpu.memory.load8(FONT_START) == FONT_SET[0]
    assert cpu.display.lit_count() == 0
    assert cpu.keypad.first_pressed() is None


def test_load_program_rejects_oversized_image() -> None:
    cpu = make_cpu()
    before = list(cpu.memory.data)
    with pytest.raises(ProgramLoadError):
        cpu.load_program(bytes([0xAA]) * (0x1000 - 0x200 + 1))
    assert cpu.memory.data == before
