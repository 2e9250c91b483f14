"""Gapless scheduling of synthesized speech chunks."""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)


class PlaybackState(Enum):
    """Whether the assistant is currently audible."""
    IDLE = "idle"
    SPEAKING = "speaking"


_unit_ids = itertools.count(1)


@dataclass(eq=False)
class PlaybackUnit:
    """One decoded audio chunk with a fixed start on the playback clock."""
    samples: np.ndarray
    sample_rate: int
    start: float
    id: int = field(default_factory=lambda: next(_unit_ids))
    stopped: bool = False

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate

    @property
    def end(self) -> float:
        return self.start + self.duration

    def stop(self) -> None:
        self.stopped = True


class PlaybackScheduler:
    """Active playback set plus the cursor used to chain chunks back-to-back.

    ``schedule`` starts each unit at ``max(cursor, now)`` and moves the cursor to
    the end of that unit, so chunks arriving while earlier ones are still queued
    play without gaps. ``interrupt`` forces the IDLE state from anywhere.

    The speaker callback reports finished units from the audio driver thread,
    hence the lock around the active set.
    """

    def __init__(self, on_state_change: Optional[Callable[[PlaybackState], None]] = None) -> None:
        self._lock = threading.RLock()
        self._active: set[PlaybackUnit] = set()
        self._cursor = 0.0
        self._state = PlaybackState.IDLE
        self._on_state_change = on_state_change

    @property
    def cursor(self) -> float:
        return self._cursor

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def speaking(self) -> bool:
        return self._state is PlaybackState.SPEAKING

    def active_units(self) -> list[PlaybackUnit]:
        with self._lock:
            return sorted(self._active, key=lambda unit: (unit.start, unit.id))

    def _set_state(self, state: PlaybackState) -> None:
        # Caller holds the lock
        if state is self._state:
            return
        old_state = self._state
        self._state = state
        logger.debug("Playback state: %s -> %s", old_state.value, state.value)
        if self._on_state_change is not None:
            self._on_state_change(state)

    def schedule(self, samples: np.ndarray, sample_rate: int, now: float) -> PlaybackUnit:
        """Queue ``samples`` right after everything already scheduled."""
        with self._lock:
            start = max(self._cursor, now)
            unit = PlaybackUnit(samples=samples, sample_rate=sample_rate, start=start)
            self._cursor = start + unit.duration
            self._active.add(unit)
            self._set_state(PlaybackState.SPEAKING)
            return unit

    def on_unit_finished(self, unit: PlaybackUnit) -> None:
        """Drop a unit that played to its end; go idle once nothing is left."""
        with self._lock:
            if unit not in self._active:
                return
            self._active.discard(unit)
            if not self._active:
                self._set_state(PlaybackState.IDLE)

    def interrupt(self) -> list[PlaybackUnit]:
        """Stop and discard every active unit and rewind the cursor to zero."""
        with self._lock:
            stopped = list(self._active)
            for unit in stopped:
                unit.stop()
            self._active.clear()
            self._cursor = 0.0
            self._set_state(PlaybackState.IDLE)
        if stopped:
            logger.info("Playback interrupted, dropped %d queued chunk(s)", len(stopped))
        return stopped
