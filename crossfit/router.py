"""
CrossFit API Router
===================

Workout loading, live timer control and score history.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from crossfit.schemas import (
    CFWorkoutResponse, ScheduleCFWorkoutRequest, CompleteWorkoutRequest,
    CFScoreOut, ScoreHistoryResponse, TimerSnapshot, CueOut, TimerConfigOut,
)
from crossfit.scores import format_score
from crossfit.service import (
    WorkoutNotFound, load_crossfit_workout, schedule_open_workout,
    reroll_open_workout, complete_workout, get_score_history, timer_manager,
)
from crossfit.timer import TimerStateError


router = APIRouter(prefix="/api/crossfit", tags=["crossfit"])


# ==============================================================================
# Helper Functions
# ==============================================================================

def _workout_response(db: Session, workout_id: str) -> CFWorkoutResponse:
    try:
        session = load_crossfit_workout(db, workout_id)
    except WorkoutNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return CFWorkoutResponse(
        workout_id=session.workout.id,
        name=session.workout.name,
        scheduled_date=session.workout.scheduled_date,
        is_completed=bool(session.workout.is_completed),
        cf_data=session.cf_data,
        timer=TimerConfigOut(**session.timer_config.to_dict()),
    )


def _score_out(score) -> CFScoreOut:
    out = CFScoreOut.model_validate(score)
    out.display = format_score(score)
    return out


def _snapshot(timer, recorder) -> TimerSnapshot:
    data = timer.snapshot()
    return TimerSnapshot(
        state=data["state"],
        current_time=data["current_time"],
        display=data["display"],
        label=data["label"],
        intro_count=data["intro_count"],
        config=TimerConfigOut(**data["config"]),
        cues=[CueOut(name=c.name, vibration=list(c.vibration), haptic=c.haptic) for c in recorder.drain()],
    )


def _timer_for(db: Session, workout_id: str):
    entry = timer_manager.get(workout_id)
    if entry:
        return entry
    try:
        session = load_crossfit_workout(db, workout_id)
    except WorkoutNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return timer_manager.get_or_create(workout_id, session.timer_config)


# ==============================================================================
# Endpoints
# ==============================================================================

@router.post("/workouts", response_model=CFWorkoutResponse)
async def schedule_workout(body: ScheduleCFWorkoutRequest, db: Session = Depends(get_db)):
    """Put a random CrossFit Open workout on the calendar."""
    try:
        workout = schedule_open_workout(db, body.user_id, body.scheduled_date, year=body.year)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _workout_response(db, workout.id)


@router.get("/workouts/{workout_id}", response_model=CFWorkoutResponse)
async def get_workout(workout_id: str, db: Session = Depends(get_db)):
    return _workout_response(db, workout_id)


@router.post("/workouts/{workout_id}/reroll", response_model=CFWorkoutResponse)
async def reroll_workout(workout_id: str, db: Session = Depends(get_db)):
    try:
        reroll_open_workout(db, workout_id)
    except WorkoutNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    timer_manager.close(workout_id)
    return _workout_response(db, workout_id)


@router.get("/workouts/{workout_id}/timer", response_model=TimerSnapshot)
async def get_timer(workout_id: str, db: Session = Depends(get_db)):
    return _snapshot(*_timer_for(db, workout_id))


@router.post("/workouts/{workout_id}/timer/{action}", response_model=TimerSnapshot)
async def control_timer(workout_id: str, action: str, db: Session = Depends(get_db)):
    """
    action: start | pause | reset | restart | close
    start also resumes a paused clock (through the 3-2-1-GO intro).
    """
    timer, recorder = _timer_for(db, workout_id)

    if action == "close":
        snapshot = _snapshot(timer, recorder)
        timer_manager.close(workout_id)
        return snapshot

    operations = {
        "start": timer.start,
        "pause": timer.pause,
        "reset": timer.reset,
        "restart": timer.restart,
    }
    if action not in operations:
        raise HTTPException(status_code=404, detail=f"Unknown timer action: {action}")

    try:
        operations[action]()
    except TimerStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return _snapshot(timer, recorder)


@router.post("/workouts/{workout_id}/complete", response_model=CFScoreOut)
async def finish_workout(workout_id: str, body: CompleteWorkoutRequest, db: Session = Depends(get_db)):
    """Save the score (form values, or the live timer's clock) and mark the workout done."""
    entry = timer_manager.get(workout_id)
    elapsed = entry[0].current_time if entry else 0

    try:
        score = complete_workout(
            db,
            workout_id,
            user_id=body.user_id,
            rounds=body.rounds,
            reps=body.reps,
            minutes=body.minutes,
            seconds=body.seconds,
            notes=body.notes,
            elapsed_seconds=elapsed,
        )
    except WorkoutNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    timer_manager.close(workout_id)
    return _score_out(score)


@router.get("/scores/{cf_workout_id}", response_model=ScoreHistoryResponse)
async def score_history(cf_workout_id: str, user_id: str, db: Session = Depends(get_db)):
    scores, best = get_score_history(db, user_id, cf_workout_id)
    return ScoreHistoryResponse(
        scores=[_score_out(s) for s in scores],
        best_score=_score_out(best) if best else None,
    )
