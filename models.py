import uuid
from sqlalchemy import Column, Integer, String, Float, DateTime, Date, Boolean, Text, LargeBinary, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime


def new_id() -> str:
    """Opaque string identifier for store records."""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, nullable=True, index=True)
    full_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Optional per-user Gemini key (Fernet token, see coach/crypto.py)
    gemini_api_key_encrypted = Column(LargeBinary, nullable=True)

    profile = relationship("AthleteProfile", back_populates="user", uselist=False)
    workouts = relationship("Workout", back_populates="user")


class AthleteProfile(Base):
    __tablename__ = "athlete_profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    primary_goal = Column(String, nullable=True)       # e.g. "Sub-60 HYROX"
    fitness_level = Column(String, nullable=True)      # beginner / intermediate / advanced
    sleep_hours_avg = Column(Float, nullable=True)
    sleep_quality = Column(String, nullable=True)
    work_physical_demand = Column(String, nullable=True)
    stress_level = Column(String, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="profile")


class Workout(Base):
    __tablename__ = "workouts"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)

    name = Column(String, nullable=False)
    scheduled_date = Column(Date, index=True)
    color = Column(String, default="#1e3a5f")
    # Free text, or a CrossFit workout serialized as JSON (isCrossFit=true)
    notes = Column(Text, nullable=True)
    is_completed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="workouts")
    workout_exercises = relationship(
        "WorkoutExercise",
        back_populates="workout",
        cascade="all, delete-orphan",
        order_by="WorkoutExercise.position",
    )


class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(String(36), primary_key=True, default=new_id)
    # NULL = shared library exercise, otherwise private to the user who created it
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    name = Column(String, nullable=False, index=True)
    muscle_group = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class WorkoutExercise(Base):
    __tablename__ = "workout_exercises"

    id = Column(String(36), primary_key=True, default=new_id)
    workout_id = Column(String(36), ForeignKey("workouts.id", ondelete="CASCADE"), index=True, nullable=False)
    exercise_id = Column(String(36), ForeignKey("exercises.id"), nullable=False)

    position = Column(Integer, default=0)
    sets = Column(Integer, default=3)
    reps = Column(Integer, default=10)
    weight = Column(Float, default=0.0)

    workout = relationship("Workout", back_populates="workout_exercises")
    exercise = relationship("Exercise")


class CFWorkoutScore(Base):
    __tablename__ = "cf_workout_scores"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    cf_workout_id = Column(String, index=True, nullable=False)  # Open workout id, e.g. "24.2"
    workout_id = Column(String(36), ForeignKey("workouts.id", ondelete="SET NULL"), nullable=True)

    score_type = Column(String(20), nullable=False)  # time, rounds_reps, completed
    rounds = Column(Integer, nullable=True)
    reps = Column(Integer, nullable=True)
    time_seconds = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    completed_at = Column(DateTime, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
