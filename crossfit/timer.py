"""
Workout Timer State Machine
===========================

idle -> intro (3, 2, 1, GO) -> running <-> paused -> complete

- start() from idle, paused or complete replays the full 3-2-1-GO intro
  (complete also resets the clock first)
- running ticks once per second: countdown stops at 0, countup stops at cap
- reset() returns to idle from anywhere
- close() cancels everything; the timer is dead afterwards

All scheduling goes through a single cancellable handle, so there is never
more than one pending callback per timer.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

from crossfit.timer_config import TimerConfig, TimerType

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    IDLE = "idle"
    INTRO = "intro"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETE = "complete"


class TimerStateError(Exception):
    """Raised for a transition the current state does not allow."""


@dataclass(frozen=True)
class Cue:
    """Feedback the client should play: vibration pattern (ms) + haptic style."""
    name: str
    vibration: Tuple[int, ...]
    haptic: str


INTRO_BEEP = Cue("intro_beep", (100,), "impact_heavy")
GO = Cue("go", (0, 300), "notification_success")
PAUSE = Cue("pause", (), "impact_medium")
RESET = Cue("reset", (), "impact_light")
COMPLETE_ALARM = Cue("complete", (0, 500, 200, 500, 200, 500), "notification_success")


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Anything that can run a callback once after a delay (seconds)."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


def format_clock(seconds: int) -> str:
    """Timer display: zero-padded MM:SS."""
    seconds = abs(int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class WorkoutTimer:
    """
    Drives one workout clock.

    Args:
        config: parsed TimerConfig for the workout
        scheduler: where delayed callbacks are armed
        on_cue: called with every Cue (haptics/vibration on the client)
        on_change: called after any state or clock change
    """

    INTRO_FROM = 3
    TICK_SECONDS = 1.0

    def __init__(
        self,
        config: TimerConfig,
        scheduler: Scheduler,
        on_cue: Optional[Callable[[Cue], None]] = None,
        on_change: Optional[Callable[["WorkoutTimer"], None]] = None,
    ):
        self.config = config
        self._scheduler = scheduler
        self._on_cue = on_cue
        self._on_change = on_change

        self.state = TimerState.IDLE
        self.current_time = config.initial_time
        self.intro_count: Optional[int] = None
        self.closed = False
        self._handle: Optional[Cancellable] = None

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    @property
    def timer_label(self) -> str:
        return "TIME REMAINING" if self.config.type == TimerType.COUNTDOWN else "ELAPSED TIME"

    @property
    def display(self) -> str:
        return format_clock(self.current_time)

    @property
    def has_pending_callback(self) -> bool:
        return self._handle is not None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self):
        """Start, resume or restart. Always goes through the 3-2-1-GO intro."""
        self._check_open()
        if self.state not in (TimerState.IDLE, TimerState.PAUSED, TimerState.COMPLETE):
            raise TimerStateError(f"Cannot start from {self.state.value}")

        if self.state == TimerState.COMPLETE:
            self.current_time = self.config.initial_time

        self.state = TimerState.INTRO
        self.intro_count = self.INTRO_FROM
        self._emit(INTRO_BEEP)
        self._arm(self.TICK_SECONDS, self._advance_intro)
        self._changed()

    def restart(self):
        """Restart a finished workout (clock back to its initial value)."""
        if self.state != TimerState.COMPLETE:
            raise TimerStateError(f"Cannot restart from {self.state.value}")
        self.start()

    def pause(self):
        self._check_open()
        if self.state != TimerState.RUNNING:
            raise TimerStateError(f"Cannot pause from {self.state.value}")

        self._cancel()
        self.state = TimerState.PAUSED
        self._emit(PAUSE)
        self._changed()

    def reset(self):
        self._check_open()
        self._cancel()
        self.state = TimerState.IDLE
        self.intro_count = None
        self.current_time = self.config.initial_time
        self._emit(RESET)
        self._changed()

    def close(self):
        """Teardown: nothing fires after this."""
        self._cancel()
        self.closed = True

    # ------------------------------------------------------------------
    # Scheduled callbacks
    # ------------------------------------------------------------------

    def _advance_intro(self):
        self._handle = None
        self.intro_count -= 1

        if self.intro_count > 0:
            self._emit(INTRO_BEEP)
            self._arm(self.TICK_SECONDS, self._advance_intro)
        else:
            # GO: clock starts on the same beat
            self._emit(GO)
            self.intro_count = None
            self.state = TimerState.RUNNING
            self._arm(self.TICK_SECONDS, self._tick)
        self._changed()

    def _tick(self):
        self._handle = None

        if self.config.type == TimerType.COUNTDOWN:
            new_time = self.current_time - 1
            if new_time <= 0:
                self.current_time = 0
                self._complete()
                return
        else:
            new_time = self.current_time + 1
            if self.config.cap and new_time >= self.config.cap:
                self.current_time = self.config.cap
                self._complete()
                return

        self.current_time = new_time
        self._arm(self.TICK_SECONDS, self._tick)
        self._changed()

    def _complete(self):
        self._cancel()
        self.state = TimerState.COMPLETE
        self._emit(COMPLETE_ALARM)
        self._changed()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _arm(self, delay: float, callback: Callable[[], None]):
        self._cancel()
        self._handle = self._scheduler.call_later(delay, callback)

    def _cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _check_open(self):
        if self.closed:
            raise TimerStateError("Timer is closed")

    def _emit(self, cue: Cue):
        if self._on_cue:
            self._on_cue(cue)

    def _changed(self):
        if self._on_change:
            self._on_change(self)

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "current_time": self.current_time,
            "display": self.display,
            "label": self.timer_label,
            "intro_count": self.intro_count,
            "config": self.config.to_dict(),
        }


class CueRecorder:
    """Collects cues so a polling client can replay them."""

    def __init__(self, max_cues: int = 50):
        self.max_cues = max_cues
        self.cues: List[Cue] = []

    def __call__(self, cue: Cue):
        self.cues.append(cue)
        if len(self.cues) > self.max_cues:
            self.cues = self.cues[-self.max_cues:]

    def drain(self) -> List[Cue]:
        cues, self.cues = self.cues, []
        return cues
