"""
CrossFit Workout Service
========================

Glue between the workout store and the CrossFit pieces:
- schedule / reroll an Open workout on a calendar day
- load a workout's CF data + timer config
- record a finished workout's score
- keep one live server-side timer per workout
"""

import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.orm import Session

import crud
import models
from config import Settings
from crossfit import open_workouts
from crossfit.schemas import CFWorkoutData
from crossfit.scores import build_score, find_best_score
from crossfit.timer import AsyncioScheduler, CueRecorder, Scheduler, TimerState, WorkoutTimer
from crossfit.timer_config import TimerConfig, parse_timer_config

logger = logging.getLogger(__name__)

CF_WORKOUT_COLOR = "#1e3a5f"

# Timers in these states finish on their own
ACTIVE_STATES = {TimerState.INTRO, TimerState.RUNNING}


class WorkoutNotFound(Exception):
    """No workout with that id, or it is not a CrossFit workout."""


@dataclass
class CrossFitSession:
    workout: models.Workout
    cf_data: CFWorkoutData
    timer_config: TimerConfig


def parse_crossfit_notes(notes: Optional[str]) -> Optional[CFWorkoutData]:
    """CF data from a workout's notes, None for regular workouts or broken JSON."""
    if not notes:
        return None
    try:
        parsed = json.loads(notes)
    except json.JSONDecodeError as e:
        logger.warning(f"Error parsing CF data: {e}")
        return None

    if not isinstance(parsed, dict) or not parsed.get("isCrossFit"):
        return None

    try:
        return CFWorkoutData.model_validate(parsed)
    except ValidationError as e:
        logger.warning(f"Invalid CF data: {e}")
        return None


def schedule_open_workout(
    db: Session,
    user_id: str,
    scheduled_date,
    year: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> models.Workout:
    cf_data = open_workouts.get_random_workout(rng=rng, year=year)
    return crud.create_workout(
        db,
        user_id=user_id,
        name=f"CF {cf_data.name}",
        scheduled_date=scheduled_date,
        color=CF_WORKOUT_COLOR,
        notes=cf_data.to_notes(),
    )


def reroll_open_workout(db: Session, workout_id: str, rng: Optional[random.Random] = None) -> models.Workout:
    """Swap a scheduled CF workout for a different random one."""
    session = load_crossfit_workout(db, workout_id)
    cf_data = open_workouts.get_random_workout(rng=rng, exclude_id=session.cf_data.id)
    return crud.update_workout(db, workout_id, {
        "name": f"CF {cf_data.name}",
        "notes": cf_data.to_notes(),
    })


def load_crossfit_workout(db: Session, workout_id: str) -> CrossFitSession:
    workout = crud.get_workout(db, workout_id)
    if not workout:
        raise WorkoutNotFound(f"Workout {workout_id} not found")

    cf_data = parse_crossfit_notes(workout.notes)
    if not cf_data:
        raise WorkoutNotFound(f"Workout {workout_id} is not a CrossFit workout")

    return CrossFitSession(
        workout=workout,
        cf_data=cf_data,
        timer_config=parse_timer_config(cf_data.format),
    )


def complete_workout(
    db: Session,
    workout_id: str,
    user_id: str,
    rounds: Optional[str] = None,
    reps: Optional[str] = None,
    minutes: Optional[str] = None,
    seconds: Optional[str] = None,
    notes: Optional[str] = None,
    elapsed_seconds: int = 0,
) -> models.CFWorkoutScore:
    """Save the score and mark the workout done."""
    session = load_crossfit_workout(db, workout_id)
    new_score = build_score(
        session.cf_data,
        workout_id=workout_id,
        rounds=rounds,
        reps=reps,
        minutes=minutes,
        seconds=seconds,
        notes=notes,
        elapsed_seconds=elapsed_seconds,
    )
    score = crud.create_score(db, user_id=user_id, **new_score.model_dump())
    crud.update_workout(db, workout_id, {"is_completed": True})
    logger.info(f"Saved {score.score_type} score for CF {session.cf_data.id} (user {user_id})")
    return score


def get_score_history(
    db: Session, user_id: str, cf_workout_id: str
) -> Tuple[List[models.CFWorkoutScore], Optional[models.CFWorkoutScore]]:
    """(scores most recent first, personal record)"""
    scores = crud.list_scores(db, user_id, cf_workout_id)
    return scores, find_best_score(scores)


# ============================================================================
# LIVE TIMERS
# ============================================================================

class TimerSessionManager:
    """
    One WorkoutTimer per workout id.
    In-memory storage for now; timers die with the process.
    Timers that are not counting and were not touched within `max_idle`
    are closed on the next access.
    """

    def __init__(self, scheduler_factory=AsyncioScheduler, max_idle: Optional[timedelta] = None, clock=datetime.now):
        self._scheduler_factory = scheduler_factory
        self._timers: Dict[str, Tuple[WorkoutTimer, CueRecorder]] = {}
        self._last_access: Dict[str, datetime] = {}
        self._max_idle = max_idle or timedelta(minutes=Settings.TIMER_IDLE_MINUTES)
        self._clock = clock

    def get_or_create(self, workout_id: str, config: TimerConfig) -> Tuple[WorkoutTimer, CueRecorder]:
        now = self._clock()
        self.evict_idle(now)
        if workout_id not in self._timers:
            recorder = CueRecorder()
            scheduler: Scheduler = self._scheduler_factory()
            timer = WorkoutTimer(config, scheduler, on_cue=recorder)
            self._timers[workout_id] = (timer, recorder)
        self._last_access[workout_id] = now
        return self._timers[workout_id]

    def get(self, workout_id: str) -> Optional[Tuple[WorkoutTimer, CueRecorder]]:
        entry = self._timers.get(workout_id)
        if entry:
            self._last_access[workout_id] = self._clock()
        return entry

    def evict_idle(self, now: Optional[datetime] = None) -> List[str]:
        """Close idle timers; a timer still in its intro or running is never idle."""
        cutoff = (now or self._clock()) - self._max_idle
        idle = [
            workout_id for workout_id, (timer, _) in self._timers.items()
            if timer.state not in ACTIVE_STATES and self._last_access.get(workout_id, cutoff) <= cutoff
        ]
        for workout_id in idle:
            self.close(workout_id)
        if idle:
            logger.info(f"Evicted {len(idle)} idle workout timers")
        return idle

    def close(self, workout_id: str):
        self._last_access.pop(workout_id, None)
        entry = self._timers.pop(workout_id, None)
        if entry:
            entry[0].close()

    def close_all(self):
        for workout_id in list(self._timers):
            self.close(workout_id)


# Global timer manager instance
timer_manager = TimerSessionManager()
