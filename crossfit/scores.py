"""
CrossFit score formatting, parsing and comparison.
"""

import math
import re
from collections.abc import Mapping
from typing import Any, Optional, Sequence

from crossfit.schemas import CFWorkoutData, NewCFScore

SCORE_TIME = "time"
SCORE_ROUNDS_REPS = "rounds_reps"
SCORE_COMPLETED = "completed"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _leading_int(text: Optional[str]) -> Optional[int]:
    """Integer prefix of text ("12abc" -> 12), None if there is none."""
    if text is None:
        return None
    match = _LEADING_INT.match(str(text))
    return int(match.group(1)) if match else None


def _field(score: Any, name: str):
    if isinstance(score, Mapping):
        return score.get(name)
    return getattr(score, name, None)


def format_time(seconds: int) -> str:
    """
    Seconds to M:SS. Minutes are unpadded and never roll over into hours:
    3661 -> "61:01".
    """
    seconds = int(seconds)
    return f"{seconds // 60}:{seconds % 60:02d}"


def parse_time(text: Optional[str]) -> int:
    """
    "M:SS" (exactly two parts) -> seconds, otherwise a plain integer.
    Anything unparseable is 0.
    """
    if not text:
        return 0

    parts = text.split(":")
    if len(parts) == 2:
        minutes = _leading_int(parts[0])
        seconds = _leading_int(parts[1])
        if minutes is None or seconds is None:
            return 0
        return minutes * 60 + seconds

    return _leading_int(text) or 0


def format_score(score: Any) -> str:
    """Display string for a score (mapping or object with score fields)."""
    score_type = _field(score, "score_type")

    if score_type == SCORE_ROUNDS_REPS:
        rounds = _field(score, "rounds") or 0
        reps = _field(score, "reps")
        if reps and reps > 0:
            return f"{rounds} rounds + {reps} reps"
        return f"{rounds} rounds"
    elif score_type == SCORE_TIME:
        return format_time(_field(score, "time_seconds") or 0)

    return "Completed"


def find_best_score(scores: Sequence[Any]):
    """
    Personal record among scores of one workout.

    The first score's type decides the rule:
    - time: lowest time_seconds (missing counts as infinitely slow)
    - rounds_reps: highest rounds, then reps (rounds * 1000 + reps)
    - anything else: the first (most recent) score
    Ties keep the earlier entry.
    """
    if not scores:
        return None

    score_type = _field(scores[0], "score_type")

    if score_type == SCORE_TIME:
        best = scores[0]
        for current in scores[1:]:
            if (_field(current, "time_seconds") or math.inf) < (_field(best, "time_seconds") or math.inf):
                best = current
        return best

    if score_type == SCORE_ROUNDS_REPS:
        def total(s):
            return (_field(s, "rounds") or 0) * 1000 + (_field(s, "reps") or 0)

        best = scores[0]
        for current in scores[1:]:
            if total(current) > total(best):
                best = current
        return best

    return scores[0]


def build_score(
    cf_data: CFWorkoutData,
    workout_id: Optional[str] = None,
    rounds: Optional[str] = None,
    reps: Optional[str] = None,
    minutes: Optional[str] = None,
    seconds: Optional[str] = None,
    notes: Optional[str] = None,
    elapsed_seconds: int = 0,
) -> NewCFScore:
    """
    Score for a finished workout from the raw form inputs.

    AMRAPs record rounds + reps. Everything else records a time: the entered
    minutes/seconds, or the timer's clock when nothing was entered.
    """
    if "amrap" in cf_data.format.lower():
        return NewCFScore(
            cf_workout_id=cf_data.id,
            workout_id=workout_id,
            score_type=SCORE_ROUNDS_REPS,
            rounds=_leading_int(rounds) or 0,
            reps=_leading_int(reps) or 0,
            notes=notes or None,
        )

    total_seconds = (_leading_int(minutes) or 0) * 60 + (_leading_int(seconds) or 0)
    return NewCFScore(
        cf_workout_id=cf_data.id,
        workout_id=workout_id,
        score_type=SCORE_TIME,
        time_seconds=total_seconds if total_seconds > 0 else elapsed_seconds,
        notes=notes or None,
    )
