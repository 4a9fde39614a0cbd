"""CHIP-8 beeper with optional square-wave playback."""

from __future__ import annotations

from array import array
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class Chip8SoundProcessor:
    """Square wave beeper gated by the sound timer.

    The VM only reports whether the sound timer is nonzero; this class turns
    the gate's rising and falling edges into play/stop calls on a pygame
    mixer channel.
    """

    history: List[Tuple[str, Tuple[float, ...]]] = field(default_factory=list)
    sample_rate: int = 44100
    frequency: float = 440.0
    volume: float = 0.3
    enable_audio: bool = False

    def __post_init__(self) -> None:
        self._audio_initialized: bool = False
        self._channel = None
        self._sound = None
        self._active: bool = False

    @property
    def active(self) -> bool:
        return self._active

    def update(self, gate: bool) -> None:
        """Follow the sound gate, starting or stopping the tone on edges."""

        if gate and not self._active:
            self.set_line_on()
        elif not gate and self._active:
            self.set_line_off()

    def set_line_on(self) -> None:
        self.history.append(("set_line_on", (self.frequency,)))
        self._active = True
        if not self._ensure_mixer():
            return
        self._channel.set_volume(self.volume)
        self._channel.play(self._sound, loops=-1)

    def set_line_off(self) -> None:
        self.history.append(("set_line_off", tuple()))
        self._active = False
        if self._channel is not None:
            self._channel.stop()

    # ------------------------------------------------------------------
    # Audio control helpers
    # ------------------------------------------------------------------

    def _ensure_mixer(self) -> bool:
        if not self.enable_audio:
            return False
        if self._audio_initialized:
            return True
        try:
            import pygame  # type: ignore

            if not pygame.mixer.get_init():
                pygame.mixer.init(frequency=self.sample_rate, size=-16, channels=1)
            self._channel = pygame.mixer.Channel(0)
            self._sound = pygame.mixer.Sound(buffer=self.render_period())
            self._audio_initialized = True
        except Exception:
            self.enable_audio = False
            self._channel = None
            self._sound = None
            self._audio_initialized = False
        return self._audio_initialized

    def render_period(self, amplitude: Optional[int] = None) -> array:
        """Render one full period of the square wave as signed 16-bit samples."""

        if self.frequency <= 0.0:
            raise ValueError("frequency must be positive")
        if amplitude is None:
            amplitude = 32767
        samples = max(2, int(round(self.sample_rate / self.frequency)))
        half = samples // 2
        buffer = array("h", [amplitude] * half)
        buffer.extend([-amplitude] * (samples - half))
        return buffer
