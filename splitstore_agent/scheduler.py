"""
splitstore_agent.scheduler
AUTHOR: carter-vin

Fixed-interval tick loop

States:
- IDLE: constructed, not started
- RUNNING: waiting for the next tick or cancellation
- STOPPED: terminal; a new Scheduler is needed to run again

Cancellation is cooperative and only observed between ticks.
A tick that overruns the interval delays the next tick; ticks are never skipped.
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Callable


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class Scheduler:
    def __init__(
        self,
        interval_s: float,
        on_tick: Callable[[], None],
        *,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval must be positive, got {interval_s}")

        self._interval_s = interval_s
        self._on_tick = on_tick
        self._monotonic = monotonic
        self._state = SchedulerState.IDLE
        self._ticks = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def ticks(self) -> int:
        return self._ticks

    def start(self, cancel: threading.Event) -> None:
        """
        Run the tick loop until cancel is set

        Blocks the calling thread. Errors raised by on_tick stop the
        scheduler and propagate.
        """
        if self._state is not SchedulerState.IDLE:
            raise RuntimeError(f"scheduler cannot start from state {self._state.value}")

        self._state = SchedulerState.RUNNING
        next_due = self._monotonic() + self._interval_s

        try:
            while not cancel.wait(max(0.0, next_due - self._monotonic())):
                self._on_tick()
                self._ticks += 1

                # Overrun: fire once immediately, then realign on the interval
                now = self._monotonic()
                next_due += self._interval_s
                if next_due < now:
                    next_due = now
        finally:
            self._state = SchedulerState.STOPPED
