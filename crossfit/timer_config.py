"""
Timer Config Parser
===================

Maps a CrossFit workout format string ("20-minute AMRAP",
"For Time (12-minute cap)", ...) to the timer the workout needs.

Rules are evaluated in order; the first pattern found anywhere in the
string wins. Anything unrecognised gets DEFAULT_TIMER_CONFIG.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple


class TimerType(str, Enum):
    COUNTDOWN = "countdown"
    COUNTUP = "countup"


@dataclass(frozen=True)
class TimerConfig:
    """Timer behaviour for one workout session. Durations are seconds."""
    type: TimerType
    duration: int
    cap: Optional[int] = None

    @property
    def initial_time(self) -> int:
        """Clock value before the first tick."""
        return self.duration if self.type == TimerType.COUNTDOWN else 0

    def to_dict(self) -> dict:
        data = {"type": self.type.value, "duration": self.duration}
        if self.cap is not None:
            data["cap"] = self.cap
        return data


# 15-minute count-up: used for every format the rules don't recognise
DEFAULT_TIMER_CONFIG = TimerConfig(type=TimerType.COUNTUP, duration=0, cap=15 * 60)


def _minutes(match: re.Match, group: int = 1) -> int:
    return int(match.group(group)) * 60


TIMER_RULES: List[Tuple[re.Pattern, Callable[[re.Match], TimerConfig]]] = [
    # AMRAP: count down from the window
    (
        re.compile(r"(\d+)-minute\s+AMRAP", re.IGNORECASE),
        lambda m: TimerConfig(TimerType.COUNTDOWN, _minutes(m)),
    ),
    # For Time: count up to the cap
    (
        re.compile(r"For\s+Time\s*\((\d+)-minute\s+cap\)", re.IGNORECASE),
        lambda m: TimerConfig(TimerType.COUNTUP, 0, cap=_minutes(m)),
    ),
    # N Rounds For Time
    (
        re.compile(r"(\d+)\s+Rounds?\s+For\s+Time\s*\((\d+)-minute\s+cap\)", re.IGNORECASE),
        lambda m: TimerConfig(TimerType.COUNTUP, 0, cap=_minutes(m, 2)),
    ),
    # Intervals: first window only
    (
        re.compile(r"Intervals?\s*\((\d+)\s*min", re.IGNORECASE),
        lambda m: TimerConfig(TimerType.COUNTDOWN, _minutes(m)),
    ),
]


def parse_timer_config(format_text: Optional[str]) -> TimerConfig:
    """
    Parse a workout format string into a TimerConfig.

    Never raises: empty or unrecognised input returns DEFAULT_TIMER_CONFIG.
    """
    if not format_text:
        return DEFAULT_TIMER_CONFIG

    for pattern, build in TIMER_RULES:
        match = pattern.search(format_text)
        if match:
            return build(match)

    return DEFAULT_TIMER_CONFIG
