"""
CrossFit Workout Runner
=======================

Turns a CrossFit Open workout into a running session:
- format string -> timer config (countdown AMRAP / capped count-up)
- 3-2-1-GO intro + ticking clock state machine with haptic cues
- score formatting, parsing and personal-record selection
"""

from crossfit.timer_config import TimerConfig, TimerType, parse_timer_config, DEFAULT_TIMER_CONFIG
from crossfit.timer import WorkoutTimer, TimerState, TimerStateError
from crossfit.scores import format_time, parse_time, format_score, find_best_score

__all__ = [
    'TimerConfig',
    'TimerType',
    'parse_timer_config',
    'DEFAULT_TIMER_CONFIG',
    'WorkoutTimer',
    'TimerState',
    'TimerStateError',
    'format_time',
    'parse_time',
    'format_score',
    'find_best_score',
]
