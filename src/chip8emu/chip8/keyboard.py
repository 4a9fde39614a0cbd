"""CHIP-8 hexadecimal keypad."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

KEY_COUNT = 16


@dataclass
class Chip8Keypad:
    """Sixteen independent key flags, one per hexadecimal digit.

    The physical COSMAC VIP pad is laid out as::

        1 2 3 C
        4 5 6 D
        7 8 9 E
        A 0 B F
    """

    _keys: List[bool] = field(default_factory=lambda: [False] * KEY_COUNT)

    def set_key(self, key: int, pressed: bool) -> None:
        if not (0 <= key < KEY_COUNT):
            raise ValueError("key out of range")
        self._keys[key] = bool(pressed)

    def press(self, key: int) -> None:
        self.set_key(key, True)

    def release(self, key: int) -> None:
        self.set_key(key, False)

    def is_pressed(self, key: int) -> bool:
        return self._keys[key & 0x0F]

    def first_pressed(self) -> Optional[int]:
        """Return the lowest-numbered held key, or None when nothing is held."""

        for key, pressed in enumerate(self._keys):
            if pressed:
                return key
        return None

    def get_keys(self) -> List[bool]:
        return list(self._keys)

    def set_keys(self, keys: Iterable[bool]) -> None:
        values = list(keys)
        if len(values) != KEY_COUNT:
            raise ValueError("keypad state must have 16 entries")
        self._keys = [bool(value) for value in values]

    def clear(self) -> None:
        self._keys = [False] * KEY_COUNT
