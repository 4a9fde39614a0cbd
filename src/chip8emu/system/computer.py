"""Computer scaffold providing wall-clock pacing and run control."""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple

NANOSECONDS_PER_SECOND = 1_000_000_000
DEFAULT_INSTRUCTIONS_PER_SECOND = 700
DEFAULT_TICKS_PER_SECOND = 60
# Longest stretch of wall-clock time replayed in one step; a stalled host
# drops the rest instead of bursting through it.
MAX_CATCHUP_NS = NANOSECONDS_PER_SECOND // 4


class TimeManager:
    """Tracks wall-clock time elapsed between host loop iterations."""

    def __init__(self, clock: Callable[[], int] = time.perf_counter_ns) -> None:
        self._clock = clock
        self._last_ns = clock()

    def reset(self) -> int:
        self._last_ns = self._clock()
        return self._last_ns

    def elapsed(self) -> int:
        now = self._clock()
        delta = max(now - self._last_ns, 0)
        self._last_ns = now
        return delta


class Scheduler:
    """Converts elapsed time into due instruction cycles and timer ticks.

    Each rate keeps its own lag accumulator, scaled by the rate so that the
    arithmetic stays in integers: after ``advance`` over exactly one second,
    precisely ``rate`` events have come due.
    """

    def __init__(
        self,
        instructions_per_second: int = DEFAULT_INSTRUCTIONS_PER_SECOND,
        ticks_per_second: int = DEFAULT_TICKS_PER_SECOND,
    ) -> None:
        if instructions_per_second <= 0 or ticks_per_second <= 0:
            raise ValueError("rates must be positive")
        self.instructions_per_second = int(instructions_per_second)
        self.ticks_per_second = int(ticks_per_second)
        self._cycle_lag = 0
        self._tick_lag = 0

    def reset(self) -> None:
        self._cycle_lag = 0
        self._tick_lag = 0

    def advance(self, elapsed_ns: int) -> Tuple[int, int]:
        if elapsed_ns < 0:
            raise ValueError("elapsed time must not be negative")
        self._cycle_lag += int(elapsed_ns) * self.instructions_per_second
        self._tick_lag += int(elapsed_ns) * self.ticks_per_second
        cycles, self._cycle_lag = divmod(self._cycle_lag, NANOSECONDS_PER_SECOND)
        ticks, self._tick_lag = divmod(self._tick_lag, NANOSECONDS_PER_SECOND)
        return cycles, ticks


class Computer:
    """Host machine tying together hardware, a CPU and the pacing loop."""

    STATUS_RUNNING = 0
    STATUS_PAUSED = 1
    STATUS_STOPPED = 2

    def __init__(
        self,
        hardware: object,
        *,
        instructions_per_second: int = DEFAULT_INSTRUCTIONS_PER_SECOND,
        ticks_per_second: int = DEFAULT_TICKS_PER_SECOND,
        time_manager: Optional[TimeManager] = None,
    ) -> None:
        self.hardware = hardware
        self.scheduler = Scheduler(instructions_per_second, ticks_per_second)
        self.cycle_count: int = 0
        self.tick_count: int = 0
        self._cpu: Optional[object] = None
        self._running_status: int = self.STATUS_STOPPED
        self._time_manager = time_manager if time_manager is not None else TimeManager()

    # ------------------------------------------------------------------
    # CPU integration
    # ------------------------------------------------------------------
    @property
    def cpu(self) -> Optional[object]:
        return self._cpu

    def set_cpu(self, cpu: object) -> None:
        self._cpu = cpu

    def cycle(self) -> None:
        if self._cpu is not None:
            self._cpu.cycle()
        self.cycle_count += 1

    def tick(self) -> None:
        if self._cpu is not None:
            self._cpu.tick()
        self.tick_count += 1

    def run_for(self, elapsed_ns: int) -> Tuple[int, int]:
        """Run the cycles and ticks that fall due within ``elapsed_ns``.

        Ticks are spread evenly between the cycles instead of being bunched
        at the end, so timer reads inside a busy loop see a steady decrement.
        """

        if self._running_status != self.STATUS_RUNNING:
            return 0, 0
        cycles, ticks = self.scheduler.advance(min(elapsed_ns, MAX_CATCHUP_NS))
        done = 0
        for index in range(ticks):
            boundary = (index + 1) * cycles // ticks
            while done < boundary:
                self.cycle()
                done += 1
            self.tick()
        while done < cycles:
            self.cycle()
            done += 1
        return cycles, ticks

    def run_realtime(self) -> Tuple[int, int]:
        return self.run_for(self._time_manager.elapsed())

    # ------------------------------------------------------------------
    # Control lifecycle
    # ------------------------------------------------------------------
    def power_on(self) -> None:
        self.scheduler.reset()
        self._time_manager.reset()
        self._running_status = self.STATUS_RUNNING

    def power_off(self) -> None:
        self._running_status = self.STATUS_STOPPED

    def pause(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        self._running_status = self.STATUS_PAUSED

    def resume(self) -> None:
        if self._running_status != self.STATUS_PAUSED:
            return
        # Time spent paused must not be replayed.
        self._time_manager.reset()
        self._running_status = self.STATUS_RUNNING

    def get_running_status(self) -> int:
        return self._running_status
