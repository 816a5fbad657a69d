from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from datetime import date, datetime
from typing import Optional, List, Dict, Any
import logging

import models

logger = logging.getLogger(__name__)

# Fields a workout patch may touch (coach commands go through here too)
WORKOUT_UPDATABLE_FIELDS = {"name", "scheduled_date", "color", "notes", "is_completed"}


def as_date(value):
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


# --- User CRUD ---

def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def upsert_user(db: Session, user_id: str, email: str = None, full_name: str = None) -> models.User:
    user = get_user(db, user_id)
    if not user:
        user = models.User(id=user_id, email=email, full_name=full_name)
        db.add(user)
        db.commit()
        db.refresh(user)
    else:
        # Update if changed
        changed = False
        if email and user.email != email:
            user.email = email
            changed = True
        if full_name and user.full_name != full_name:
            user.full_name = full_name
            changed = True
        if changed:
            db.commit()
    return user


def get_profile(db: Session, user_id: str) -> Optional[models.AthleteProfile]:
    return db.query(models.AthleteProfile).filter(models.AthleteProfile.user_id == user_id).first()


def upsert_profile(db: Session, user_id: str, **fields) -> models.AthleteProfile:
    profile = get_profile(db, user_id)
    if not profile:
        profile = models.AthleteProfile(user_id=user_id)
        db.add(profile)
    for key, value in fields.items():
        if hasattr(models.AthleteProfile, key) and value is not None:
            setattr(profile, key, value)
    db.commit()
    db.refresh(profile)
    return profile


# --- Workout CRUD ---

def create_workout(
    db: Session,
    user_id: str,
    name: str,
    scheduled_date=None,
    color: str = "#1e3a5f",
    notes: str = None,
) -> models.Workout:
    workout = models.Workout(
        user_id=user_id,
        name=name,
        scheduled_date=as_date(scheduled_date),
        color=color,
        notes=notes,
    )
    db.add(workout)
    db.commit()
    db.refresh(workout)
    return workout


def get_workout(db: Session, workout_id: str) -> Optional[models.Workout]:
    return db.query(models.Workout).filter(models.Workout.id == workout_id).first()


def update_workout(db: Session, workout_id: str, patch: Dict[str, Any]) -> Optional[models.Workout]:
    """
    Applies a partial update. Unknown keys are ignored (and logged).
    Returns None when the workout does not exist.
    """
    workout = get_workout(db, workout_id)
    if not workout:
        return None

    for key, value in (patch or {}).items():
        if key not in WORKOUT_UPDATABLE_FIELDS:
            logger.info(f"Ignoring non-updatable workout field: {key}")
            continue
        if key == "scheduled_date":
            value = as_date(value)
        setattr(workout, key, value)

    db.commit()
    db.refresh(workout)
    return workout


def delete_workout(db: Session, workout_id: str) -> bool:
    workout = get_workout(db, workout_id)
    if not workout:
        return False
    db.delete(workout)
    db.commit()
    return True


def list_workouts(
    db: Session,
    user_id: str,
    start_date=None,
    end_date=None,
) -> List[models.Workout]:
    """Workouts for a user, optionally within [start_date, end_date], oldest first."""
    query = db.query(models.Workout).filter(models.Workout.user_id == user_id)
    if start_date is not None:
        query = query.filter(models.Workout.scheduled_date >= as_date(start_date))
    if end_date is not None:
        query = query.filter(models.Workout.scheduled_date <= as_date(end_date))
    return query.order_by(models.Workout.scheduled_date, models.Workout.created_at).all()


# --- Exercise CRUD ---

def get_exercise_by_name(db: Session, name: str, user_id: str = None) -> Optional[models.Exercise]:
    """Case-insensitive lookup across the shared library and the user's own exercises."""
    query = db.query(models.Exercise).filter(func.lower(models.Exercise.name) == name.strip().lower())
    if user_id is not None:
        query = query.filter((models.Exercise.user_id.is_(None)) | (models.Exercise.user_id == user_id))
    else:
        query = query.filter(models.Exercise.user_id.is_(None))
    return query.first()


def create_exercise(
    db: Session,
    name: str,
    user_id: str = None,
    muscle_group: str = None,
    description: str = None,
) -> models.Exercise:
    exercise = models.Exercise(
        name=name.strip(),
        user_id=user_id,
        muscle_group=muscle_group,
        description=description,
    )
    db.add(exercise)
    db.commit()
    db.refresh(exercise)
    return exercise


def add_workout_exercise(
    db: Session,
    workout_id: str,
    exercise_id: str,
    sets: int = 3,
    reps: int = 10,
    weight: float = 0.0,
    position: int = 0,
) -> models.WorkoutExercise:
    link = models.WorkoutExercise(
        workout_id=workout_id,
        exercise_id=exercise_id,
        sets=sets,
        reps=reps,
        weight=weight,
        position=position,
    )
    db.add(link)
    db.commit()
    return link


# --- CrossFit score CRUD ---

def create_score(
    db: Session,
    user_id: str,
    cf_workout_id: str,
    score_type: str,
    workout_id: str = None,
    rounds: int = None,
    reps: int = None,
    time_seconds: int = None,
    notes: str = None,
    completed_at: datetime = None,
) -> models.CFWorkoutScore:
    """Scores are append-only: a new attempt is a new row."""
    score = models.CFWorkoutScore(
        user_id=user_id,
        cf_workout_id=cf_workout_id,
        workout_id=workout_id,
        score_type=score_type,
        rounds=rounds,
        reps=reps,
        time_seconds=time_seconds,
        notes=notes,
        completed_at=completed_at or datetime.utcnow(),
    )
    db.add(score)
    db.commit()
    db.refresh(score)
    return score


def list_scores(db: Session, user_id: str, cf_workout_id: str) -> List[models.CFWorkoutScore]:
    """Most recent first."""
    return db.query(models.CFWorkoutScore).filter(
        models.CFWorkoutScore.user_id == user_id,
        models.CFWorkoutScore.cf_workout_id == cf_workout_id,
    ).order_by(desc(models.CFWorkoutScore.completed_at)).all()
