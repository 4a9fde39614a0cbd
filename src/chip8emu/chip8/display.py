"""CHIP-8 monochrome display model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Iterable, List

WIDTH = 64
HEIGHT = 32


@dataclass
class Chip8Display:
    WIDTH: ClassVar[int] = WIDTH
    HEIGHT: ClassVar[int] = HEIGHT

    foreground: int = 0xFFFFFF
    background: int = 0x000000
    pixels: List[List[bool]] = field(default_factory=lambda: [[False] * WIDTH for _ in range(HEIGHT)])

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------
    def clear(self) -> None:
        for row in self.pixels:
            row[:] = [False] * self.WIDTH

    def pixel_at(self, row: int, col: int) -> bool:
        if not (0 <= row < self.HEIGHT and 0 <= col < self.WIDTH):
            raise ValueError("pixel coordinate out of range")
        return self.pixels[row][col]

    def lit_count(self) -> int:
        return sum(sum(1 for pixel in row if pixel) for row in self.pixels)

    def draw_sprite(self, x: int, y: int, rows: Iterable[int]) -> bool:
        """XOR a sprite onto the buffer with its origin at (x, y).

        The origin is wrapped into the screen, but sprite rows and columns
        running off the right or bottom edge are clipped. Returns True when
        any lit pixel was switched off.
        """

        origin_x = x % self.WIDTH
        origin_y = y % self.HEIGHT
        collision = False
        for line, value in enumerate(rows):
            row_index = origin_y + line
            if row_index >= self.HEIGHT:
                break
            row = self.pixels[row_index]
            for bit in range(8):
                if not (value >> (7 - bit)) & 0x01:
                    continue
                col = origin_x + bit
                if col >= self.WIDTH:
                    break
                if row[col]:
                    collision = True
                row[col] = not row[col]
        return collision

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def render_pixels(self) -> List[List[int]]:
        return [
            [self.foreground if pixel else self.background for pixel in row]
            for row in self.pixels
        ]

    def render_text(self, on: str = "#", off: str = ".") -> str:
        return "\n".join("".join(on if pixel else off for pixel in row) for row in self.pixels)

    def render_pygame_surface(self, scaling: int = 1):
        """Render the display into a pygame Surface.

        Parameters
        ----------
        scaling:
            Integer scale factor applied to both axes.

        Returns
        -------
        pygame.Surface
            RGB surface representing the current screen.

        Raises
        ------
        RuntimeError
            If pygame is not available.
        """

        if scaling <= 0:
            raise ValueError("scaling factor must be positive")

        try:
            import pygame  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pygame is required for render_pygame_surface") from exc

        surface = pygame.Surface((self.WIDTH * scaling, self.HEIGHT * scaling))
        surface.fill(self.background)
        surface.lock()
        try:
            for y, row in enumerate(self.pixels):
                for x, pixel in enumerate(row):
                    if pixel:
                        surface.fill(self.foreground, (x * scaling, y * scaling, scaling, scaling))
        finally:
            surface.unlock()
        return surface
