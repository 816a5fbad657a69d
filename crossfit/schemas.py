"""
Pydantic Schemas for CrossFit workouts
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal
from datetime import date, datetime


ScoreType = Literal["time", "rounds_reps", "completed"]


class RxWeights(BaseModel):
    male: str = ""
    female: str = ""


class CFWorkoutData(BaseModel):
    """CrossFit Open workout, stored as JSON in a workout's notes."""
    model_config = ConfigDict(populate_by_name=True)

    is_crossfit: bool = Field(default=True, alias="isCrossFit")
    id: str
    year: int
    name: str
    subtitle: str = ""
    format: str
    description: str = ""
    rx_weights: RxWeights = Field(default_factory=RxWeights, alias="rxWeights")

    def to_notes(self) -> str:
        """Serialized with the camelCase keys the mobile client reads."""
        return self.model_dump_json(by_alias=True)


class TimerConfigOut(BaseModel):
    type: Literal["countdown", "countup"]
    duration: int
    cap: Optional[int] = None


class CFWorkoutResponse(BaseModel):
    workout_id: str
    name: str
    scheduled_date: Optional[date] = None
    is_completed: bool = False
    cf_data: CFWorkoutData
    timer: TimerConfigOut


class ScheduleCFWorkoutRequest(BaseModel):
    user_id: str
    scheduled_date: date
    year: Optional[int] = None  # Restrict the random pick to one Open season


class NewCFScore(BaseModel):
    cf_workout_id: str
    workout_id: Optional[str] = None
    score_type: ScoreType
    rounds: Optional[int] = None
    reps: Optional[int] = None
    time_seconds: Optional[int] = None
    notes: Optional[str] = None


class CompleteWorkoutRequest(BaseModel):
    """Raw form values from the finish screen."""
    user_id: str
    rounds: Optional[str] = None
    reps: Optional[str] = None
    minutes: Optional[str] = None
    seconds: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class CFScoreOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    cf_workout_id: str
    workout_id: Optional[str] = None
    score_type: ScoreType
    rounds: Optional[int] = None
    reps: Optional[int] = None
    time_seconds: Optional[int] = None
    notes: Optional[str] = None
    completed_at: datetime
    display: str = ""


class ScoreHistoryResponse(BaseModel):
    scores: List[CFScoreOut] = []
    best_score: Optional[CFScoreOut] = None


class CueOut(BaseModel):
    name: str
    vibration: List[int]
    haptic: str


class TimerSnapshot(BaseModel):
    state: str
    current_time: int
    display: str
    label: str
    intro_count: Optional[int] = None
    config: TimerConfigOut
    cues: List[CueOut] = []
