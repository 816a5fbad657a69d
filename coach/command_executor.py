"""
Coach Command Executor
======================

Applies confirmed coach commands to the workout store.

Supported actions:
- delete / PROPOSE_DELETE: remove workouts by id
- update / PROPOSE_UPDATE: patch one workout
- create_exercise: add missing exercises to the user's library
- create / CREATE_PLAN / PROPOSE_PLAN: put a plan on the calendar
"""

import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

import crud

logger = logging.getLogger(__name__)

DEFAULT_PLAN_WEEKS = 4
DEFAULT_SETS = 3
DEFAULT_REPS = 10
DEFAULT_COLOR = "#1e3a5f"
DEFAULT_MUSCLE_GROUP = "Other"

# Sunday first, matching day_of_week values the coach emits
DAYS_OF_WEEK = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

DELETE_ACTIONS = {"delete", "PROPOSE_DELETE"}
UPDATE_ACTIONS = {"update", "PROPOSE_UPDATE"}
PLAN_ACTIONS = {"create", "CREATE_PLAN", "PROPOSE_PLAN"}
CREATE_EXERCISE_ACTION = "create_exercise"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _int_or(value, default: int) -> int:
    """Leading integer of value; default when missing, unparseable or zero."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value) or default
    match = _LEADING_INT.match(str(value or ""))
    return (int(match.group(1)) if match else 0) or default


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _as_exercises(value) -> List[Dict[str, Any]]:
    """Exercise entries as dicts; a bare string is taken as the exercise name."""
    exercises = []
    for entry in _as_list(value):
        if isinstance(entry, str):
            exercises.append({"name": entry})
        elif isinstance(entry, dict):
            exercises.append(entry)
    return exercises


def next_weekday(today: date, day_name: str, week: int = 0) -> Optional[date]:
    """
    Next `day_name` strictly after today, `week` weeks further out.
    None for an unknown day name.
    """
    if day_name not in DAYS_OF_WEEK:
        return None
    current = (today.weekday() + 1) % 7
    days_until = DAYS_OF_WEEK.index(day_name) - current
    if days_until <= 0:
        days_until += 7
    return today + timedelta(days=days_until + week * 7)


@dataclass
class ExecutionReport:
    created_workout_ids: List[str] = field(default_factory=list)
    updated_workout_ids: List[str] = field(default_factory=list)
    deleted_workout_ids: List[str] = field(default_factory=list)
    created_exercises: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class CommandExecutor:
    """Runs commands for one user against the store."""

    def __init__(self, db: Session, user_id: str, today: Optional[date] = None):
        self.db = db
        self.user_id = user_id
        self.today = today or date.today()

    def execute_all(self, commands: Iterable[Dict[str, Any]]) -> ExecutionReport:
        report = ExecutionReport()
        for command in commands:
            self.execute(command, report)
        return report

    def execute(self, command: Dict[str, Any], report: Optional[ExecutionReport] = None) -> ExecutionReport:
        """
        Run one command. A malformed command is rolled back and reported
        in `skipped`; it never stops the rest of the batch.
        """
        report = report or ExecutionReport()
        if not isinstance(command, dict):
            report.skipped.append(f"not a command: {command!r}")
            return report

        action = command.get("action")
        try:
            if action in DELETE_ACTIONS:
                self._delete(command, report)
            elif action in UPDATE_ACTIONS:
                self._update(command, report)
            elif action == CREATE_EXERCISE_ACTION:
                self._create_exercises(command, report)
            elif action in PLAN_ACTIONS:
                plan = command.get("plan") or command
                self.schedule_plan(plan, report)
            else:
                logger.info(f"Skipping unknown coach action: {action}")
                report.skipped.append(f"unknown action: {action}")
        except (ValueError, TypeError, AttributeError) as e:
            self.db.rollback()
            logger.warning(f"Coach command {action} failed: {e}")
            report.skipped.append(f"failed {action}: {e}")

        return report

    # ------------------------------------------------------------------

    def _owned_workout(self, workout_id: str):
        workout = crud.get_workout(self.db, workout_id)
        if not workout or workout.user_id != self.user_id:
            return None
        return workout

    def _delete(self, command: Dict[str, Any], report: ExecutionReport):
        workout_ids = _as_list(command.get("workout_ids"))
        if not workout_ids:
            report.skipped.append("delete without workout_ids")
            return
        for workout_id in workout_ids:
            if self._owned_workout(str(workout_id)) and crud.delete_workout(self.db, str(workout_id)):
                report.deleted_workout_ids.append(str(workout_id))
            else:
                report.skipped.append(f"workout not found: {workout_id}")

    def _update(self, command: Dict[str, Any], report: ExecutionReport):
        workout_id = command.get("workout_id")
        if not workout_id or not self._owned_workout(str(workout_id)):
            report.skipped.append(f"workout not found: {workout_id}")
            return
        updates = command.get("updates") or {}
        if not isinstance(updates, dict):
            raise TypeError(f"updates must be an object, got {type(updates).__name__}")
        if "scheduled_date" in updates:
            # Checked before the write so a bad date leaves the workout untouched
            updates = dict(updates, scheduled_date=crud.as_date(updates["scheduled_date"]))
        crud.update_workout(self.db, str(workout_id), updates)
        report.updated_workout_ids.append(str(workout_id))

    def _create_exercises(self, command: Dict[str, Any], report: ExecutionReport):
        for exercise in _as_exercises(command.get("exercises")):
            name = str(exercise.get("name") or "").strip()
            if not name:
                report.skipped.append("exercise without a name")
                continue
            if crud.get_exercise_by_name(self.db, name, user_id=self.user_id):
                report.skipped.append(f"exercise exists: {name}")
                continue
            crud.create_exercise(
                self.db,
                name=name,
                user_id=self.user_id,
                muscle_group=exercise.get("muscle_group") or DEFAULT_MUSCLE_GROUP,
                description=exercise.get("description") or "",
            )
            report.created_exercises.append(name)

    def schedule_plan(self, plan: Dict[str, Any], report: Optional[ExecutionReport] = None) -> ExecutionReport:
        """
        Every workout on its weekday for `weeks` weeks (default 4).
        Exercises missing from the library are left out, and so are
        entries that are not workouts or exercises at all.
        """
        report = report or ExecutionReport()
        if not isinstance(plan, dict):
            raise TypeError(f"plan must be an object, got {type(plan).__name__}")
        weeks = _int_or(plan.get("weeks"), DEFAULT_PLAN_WEEKS)

        workouts = []
        for workout in _as_list(plan.get("workouts")):
            if not isinstance(workout, dict):
                report.skipped.append(f"not a workout: {workout!r}")
                continue
            workouts.append((workout, _as_exercises(workout.get("exercises"))))

        for week in range(weeks):
            for workout, exercises in workouts:
                scheduled_date = next_weekday(self.today, workout.get("day_of_week"), week)
                if scheduled_date is None:
                    if week == 0:
                        report.skipped.append(f"unknown day: {workout.get('day_of_week')}")
                    continue

                created = crud.create_workout(
                    self.db,
                    user_id=self.user_id,
                    name=str(workout.get("name") or "Workout"),
                    scheduled_date=scheduled_date,
                    color=workout.get("color") or DEFAULT_COLOR,
                )

                position = 0
                for exercise in exercises:
                    match = crud.get_exercise_by_name(self.db, str(exercise.get("name") or ""), user_id=self.user_id)
                    if not match:
                        if week == 0:
                            report.skipped.append(f"unknown exercise: {exercise.get('name')}")
                        continue
                    crud.add_workout_exercise(
                        self.db,
                        workout_id=created.id,
                        exercise_id=match.id,
                        sets=_int_or(exercise.get("sets"), DEFAULT_SETS),
                        reps=_int_or(exercise.get("reps"), DEFAULT_REPS),
                        position=position,
                    )
                    position += 1

                report.created_workout_ids.append(created.id)

        logger.info(f"Scheduled {len(report.created_workout_ids)} workouts for {self.user_id}")
        return report
