"""CHIP-8 emulator pygame application."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
import json
import random
import signal
import sys
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.emulator.file import ROM_SUFFIXES, ProgramInfo, ProgramLoadError
from chip8emu.system.computer import DEFAULT_INSTRUCTIONS_PER_SECOND

BASE_CAPTION = "CHIP-8 Emulator"

# pygame key names to hex keys, laid out like the COSMAC VIP pad on the
# left-hand side of a QWERTY keyboard.
DEFAULT_KEYMAP: Dict[str, int] = {
    "1": 0x1,
    "2": 0x2,
    "3": 0x3,
    "4": 0xC,
    "q": 0x4,
    "w": 0x5,
    "e": 0x6,
    "r": 0xD,
    "a": 0x7,
    "s": 0x8,
    "d": 0x9,
    "f": 0xE,
    "z": 0xA,
    "x": 0x0,
    "c": 0xB,
    "v": 0xF,
}


@dataclass
class RunState:
    running: bool = True

    def stop(self) -> None:
        self.running = False


def _parse_key_value(value: object) -> int:
    if isinstance(value, bool):
        raise ValueError(f"invalid hex key: {value!r}")
    if isinstance(value, int):
        key = value
    elif isinstance(value, str):
        text = value.strip().lower()
        if text.startswith("0x"):
            text = text[2:]
        if len(text) != 1:
            raise ValueError(f"invalid hex key: {value!r}")
        key = int(text, 16)
    else:
        raise ValueError(f"invalid hex key: {value!r}")
    if not (0 <= key <= 0xF):
        raise ValueError(f"hex key out of range: {value!r}")
    return key


def load_keymap(path: str | Path) -> Dict[str, int]:
    """Read a JSON object mapping pygame key names to hex keys."""

    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("keymap must be a JSON object")
    keymap: Dict[str, int] = {}
    for name, value in data.items():
        keymap[str(name).lower()] = _parse_key_value(value)
    return keymap


def _write_keymap_template(path: Path) -> None:
    template = {name: f"0x{key:X}" for name, key in DEFAULT_KEYMAP.items()}
    path.write_text(json.dumps(template, indent=2), encoding="utf-8")


def _resolve_keymap(keymap: Mapping[str, int], pygame) -> Dict[int, int]:
    resolved: Dict[int, int] = {}
    for name, key in keymap.items():
        try:
            code = pygame.key.key_code(name)
        except ValueError:
            print(f"Unknown key name in keymap: {name}", file=sys.stderr)
            continue
        resolved[code] = key
    return resolved


def _handle_key_event(computer: Chip8Computer, keys: Mapping[int, int], key: int, pressed: bool) -> None:
    hex_key = keys.get(key)
    if hex_key is None:
        return
    computer.set_key(hex_key, pressed)


def _install_signal_handlers(state: RunState) -> None:
    def _handle_stop(signum, frame) -> None:
        state.stop()

    def _handle_hangup(signum, frame) -> None:
        raise SystemExit(1)

    signal.signal(signal.SIGINT, _handle_stop)
    signal.signal(signal.SIGTERM, _handle_stop)
    sighup = getattr(signal, "SIGHUP", None)
    if sighup is not None:
        signal.signal(sighup, _handle_hangup)


def _build_caption(info: Optional[ProgramInfo], paused: bool) -> str:
    caption = BASE_CAPTION
    if info is not None and info.name:
        caption = f"{caption} | {info.name}"
    if paused:
        caption = f"{caption} | Paused"
    return caption


def _pygame_loop(
    computer: Chip8Computer,
    *,
    scale: int,
    fps: int,
    keymap: Mapping[str, int],
    state: RunState,
) -> None:
    import pygame  # type: ignore

    display = computer.display
    pygame.init()
    screen = pygame.display.set_mode((display.WIDTH * scale, display.HEIGHT * scale))
    pygame.display.set_caption(_build_caption(computer.program_info, False))
    clock = pygame.time.Clock()
    keys = _resolve_keymap(keymap, pygame)

    computer.power_on()
    try:
        while state.running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    state.stop()
                    continue
                if event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        state.stop()
                        continue
                    if event.key == pygame.K_F5:
                        computer.reload()
                        continue
                    if event.key == pygame.K_p:
                        if computer.get_running_status() == computer.STATUS_RUNNING:
                            computer.pause()
                        else:
                            computer.resume()
                        paused = computer.get_running_status() == computer.STATUS_PAUSED
                        pygame.display.set_caption(_build_caption(computer.program_info, paused))
                        continue
                    _handle_key_event(computer, keys, event.key, True)
                elif event.type == pygame.KEYUP:
                    _handle_key_event(computer, keys, event.key, False)

            computer.run_realtime()

            surface = display.render_pygame_surface(scale)
            screen.blit(surface, (0, 0))
            pygame.display.flip()
            clock.tick(fps)
    finally:
        computer.sound_processor.update(False)
        computer.power_off()
        pygame.quit()


def _positive(value: int, name: str, parser: argparse.ArgumentParser) -> int:
    if value <= 0:
        parser.error(f"{name} must be positive")
    return value


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chip8emu", description="CHIP-8 emulator")
    parser.add_argument(
        "rom",
        nargs="?",
        default=None,
        help=f"Path to a CHIP-8 ROM image. Defaults to ${Chip8Computer.ENV_ROM_PATH} if omitted",
    )
    parser.add_argument("--scale", type=int, default=10, help="Integer scaling factor for display (default: 10)")
    parser.add_argument("--fps", type=int, default=60, help="Target frames per second for the window (default: 60)")
    parser.add_argument(
        "--ips",
        type=int,
        default=DEFAULT_INSTRUCTIONS_PER_SECOND,
        help=f"Instructions executed per second (default: {DEFAULT_INSTRUCTIONS_PER_SECOND})",
    )
    parser.add_argument(
        "--audio",
        dest="audio",
        action="store_true",
        help="Enable the square-wave beeper (requires pygame mixer)",
    )
    parser.add_argument("--no-audio", dest="audio", action="store_false", help="Disable the beeper")
    parser.set_defaults(audio=True)
    parser.add_argument("--keymap", type=str, default=None, help="Path to JSON file mapping pygame key names to hex keys")
    parser.add_argument(
        "--write-keymap-template",
        metavar="PATH",
        help="Write the default keymap as JSON to the given path and exit",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for the random-number instruction")
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_argument_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.write_keymap_template:
        _write_keymap_template(Path(args.write_keymap_template))
        return 0

    _positive(args.scale, "scale", parser)
    _positive(args.fps, "fps", parser)
    _positive(args.ips, "ips", parser)

    rom_path = Chip8Computer.resolve_rom_path(args.rom)
    if rom_path is None:
        parser.error(f"a ROM path is required (or set {Chip8Computer.ENV_ROM_PATH})")
    if rom_path.suffix.lower() not in ROM_SUFFIXES:
        print(f"Warning: unexpected ROM extension '{rom_path.suffix}'", file=sys.stderr)

    keymap: Dict[str, int] = dict(DEFAULT_KEYMAP)
    if args.keymap:
        try:
            keymap = load_keymap(args.keymap)
        except (OSError, ValueError) as exc:
            print(f"Failed to load keymap: {exc}", file=sys.stderr)
            return 1

    computer = Chip8Computer(
        enable_audio=args.audio,
        rng=random.Random(args.seed),
        instructions_per_second=args.ips,
    )
    try:
        computer.load_program_file(rom_path)
    except ProgramLoadError as exc:
        print(f"Failed to load program: {exc}", file=sys.stderr)
        return 1

    state = RunState()
    _install_signal_handlers(state)
    try:
        _pygame_loop(computer, scale=args.scale, fps=args.fps, keymap=keymap, state=state)
    except RuntimeError as exc:
        raise SystemExit(str(exc))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
