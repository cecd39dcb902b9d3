"""Timeline clock and shot locator."""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional, Sequence

from config.settings import settings
from models.shot import Shot

logger = logging.getLogger(__name__)


# =============================================================================
# SHOT LOCATOR
# =============================================================================

def locate(t: float, shots: Sequence[Shot]) -> Optional[int]:
    """
    Return the id of the shot whose interval ``[start, start + duration)``
    contains ``t``, or None when ``t`` falls outside every interval
    (negative, at or past the total duration, or no shots).
    """
    accumulated = 0.0
    for shot in shots:
        if accumulated <= t < accumulated + shot.duration:
            return shot.id
        accumulated += shot.duration
    return None


def shot_offsets(shots: Sequence[Shot]) -> list[tuple[Shot, float]]:
    """Pair every shot with its start time on the timeline."""
    offsets = []
    accumulated = 0.0
    for shot in shots:
        offsets.append((shot, accumulated))
        accumulated += shot.duration
    return offsets


def shot_start(shot_id: int, shots: Sequence[Shot]) -> Optional[float]:
    for shot, start in shot_offsets(shots):
        if shot.id == shot_id:
            return start
    return None


# =============================================================================
# TIMELINE CLOCK
# =============================================================================

class ClockState(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"


class ClockEvent(str, Enum):
    """What changed on the clock."""

    TIME = "time"
    STATE = "state"
    TOTAL_DURATION = "total_duration"


ClockListener = Callable[[ClockEvent, "TimelineClock"], None]


class TimelineClock:
    """
    Virtual play-time clock driven by wall-clock time.

    The clock does not follow any media element: while playing, ``time`` is
    recomputed from the wall clock relative to a virtual start reference, so
    playback keeps going while generation tasks are in flight. The total
    duration is never stored; it is read from ``total_duration_fn`` each time.
    """

    def __init__(
        self,
        total_duration_fn: Callable[[], float],
        now: Callable[[], float] = time.monotonic,
        tick_interval: Optional[float] = None,
        restart_epsilon: Optional[float] = None,
    ):
        self._total_duration_fn = total_duration_fn
        self._now = now
        self.tick_interval = settings.tick_interval if tick_interval is None else tick_interval
        self.restart_epsilon = settings.restart_epsilon if restart_epsilon is None else restart_epsilon

        self._time = 0.0
        self._state = ClockState.STOPPED
        self._virtual_start = 0.0
        self._last_total = self.total_duration
        self._listeners: list[ClockListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def time(self) -> float:
        return self._time

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state == ClockState.PLAYING

    @property
    def total_duration(self) -> float:
        return max(0.0, self._total_duration_fn())

    def subscribe(self, listener: ClockListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ClockListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: ClockEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def play(self) -> None:
        """Start playing from the current time."""
        if self.is_playing:
            return
        self._virtual_start = self._now() - self._time
        self._set_state(ClockState.PLAYING)
        logger.debug(f"Playing from {self._time:.2f}s")

    def pause(self) -> None:
        """Stop at the current sampled time."""
        if not self.is_playing:
            return
        self.tick()
        if self.is_playing:
            self._set_state(ClockState.STOPPED)
        logger.debug(f"Paused at {self._time:.2f}s")

    def toggle(self) -> None:
        """
        Play/pause toggle. Near the end of the timeline this restarts from
        zero and plays instead of immediately finishing again.
        """
        if self._time >= self.total_duration - self.restart_epsilon:
            self.seek(0.0)
            self.play()
        elif self.is_playing:
            self.pause()
        else:
            self.play()

    def seek(self, t: float) -> None:
        """Move the playhead. Allowed in either state; never changes play state."""
        total = self.total_duration
        t = min(max(0.0, t), total)
        if self.is_playing:
            self._virtual_start = self._now() - t
        self._set_time(t)

    def tick(self) -> None:
        """Sample the wall clock; stop exactly at the end of the timeline."""
        if not self.is_playing:
            return

        total = self.total_duration
        t = self._now() - self._virtual_start
        if t >= total:
            self._set_time(total)
            self._set_state(ClockState.STOPPED)
        else:
            self._set_time(t)

    def refresh(self) -> None:
        """Re-read the total duration after the shot list changed."""
        total = self.total_duration
        if total != self._last_total:
            self._last_total = total
            self._emit(ClockEvent.TOTAL_DURATION)

        if self._time > total:
            self.seek(total)
        if self.is_playing:
            self.tick()

    async def run(self) -> None:
        """Sample at the tick rate until the clock stops."""
        while self.is_playing:
            await asyncio.sleep(self.tick_interval)
            self.tick()

    # ------------------------------------------------------------------

    def _set_time(self, t: float) -> None:
        if t != self._time:
            self._time = t
            self._emit(ClockEvent.TIME)

    def _set_state(self, state: ClockState) -> None:
        if state != self._state:
            self._state = state
            self._emit(ClockEvent.STATE)
