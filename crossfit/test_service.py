"""
CrossFit Workout Service Tests
==============================

Uses the in-memory `db` fixture from the root conftest.
"""

import json
import random
from datetime import date, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import crud
from crossfit import service
from crossfit.open_workouts import get_random_workout, get_workout, get_workouts_by_year, load_open_workouts
from crossfit.router import router
from crossfit.service import (
    TimerSessionManager, WorkoutNotFound, complete_workout, get_score_history,
    load_crossfit_workout, parse_crossfit_notes, reroll_open_workout, schedule_open_workout,
)
from crossfit.test_timer import ManualScheduler
from crossfit.timer import TimerState
from crossfit.timer_config import TimerType
from database import get_db


def _schedule(db, user, cf_id):
    cf_data = get_workout(cf_id)
    return crud.create_workout(
        db, user_id=user.id, name=f"CF {cf_data.name}", scheduled_date=date(2025, 3, 1),
        color=service.CF_WORKOUT_COLOR, notes=cf_data.to_notes(),
    )


# ==============================================================================
# Catalog
# ==============================================================================

class TestOpenWorkouts:

    def test_catalog_loads(self):
        workouts = load_open_workouts()
        assert len(workouts) >= 15
        assert all(w.is_crossfit for w in workouts)
        assert len({w.id for w in workouts}) == len(workouts)

    def test_by_year(self):
        assert {w.id for w in get_workouts_by_year(2024)} == {"24.1", "24.2", "24.3"}

    def test_random_respects_year_and_exclusion(self):
        rng = random.Random(7)
        for _ in range(20):
            picked = get_random_workout(rng=rng, year=2024, exclude_id="24.2")
            assert picked.year == 2024
            assert picked.id != "24.2"

    def test_random_empty_year(self):
        with pytest.raises(ValueError):
            get_random_workout(year=1999)


# ==============================================================================
# Notes parsing / loading
# ==============================================================================

class TestLoadCrossFitWorkout:

    def test_notes_round_trip_with_camel_case_keys(self):
        notes = get_workout("22.1").to_notes()
        raw = json.loads(notes)
        assert raw["isCrossFit"] is True
        assert raw["rxWeights"] == {"male": "50 lb DB", "female": "35 lb DB"}
        assert parse_crossfit_notes(notes).id == "22.1"

    @pytest.mark.parametrize("notes", [None, "", "{not json", '{"isCrossFit": false}', "[1, 2]", '{"isCrossFit": true}'])
    def test_non_crossfit_notes(self, notes):
        assert parse_crossfit_notes(notes) is None

    def test_load_gives_timer_config(self, db, user):
        workout = _schedule(db, user, "25.3")
        session = load_crossfit_workout(db, workout.id)
        assert session.cf_data.id == "25.3"
        assert session.timer_config.type == TimerType.COUNTUP
        assert session.timer_config.cap == 1200

    def test_missing_workout(self, db):
        with pytest.raises(WorkoutNotFound):
            load_crossfit_workout(db, "nope")

    def test_regular_workout_is_not_crossfit(self, db, user):
        workout = crud.create_workout(db, user_id=user.id, name="Leg Day", notes="heavy squats")
        with pytest.raises(WorkoutNotFound):
            load_crossfit_workout(db, workout.id)


# ==============================================================================
# Scheduling / completion
# ==============================================================================

class TestScheduleAndComplete:

    def test_schedule_open_workout(self, db, user):
        workout = schedule_open_workout(db, user.id, date(2025, 3, 7), year=2025, rng=random.Random(1))
        assert workout.name.startswith("CF 25.")
        assert workout.color == "#1e3a5f"
        assert workout.scheduled_date == date(2025, 3, 7)
        assert parse_crossfit_notes(workout.notes).year == 2025

    def test_reroll_picks_a_different_workout(self, db, user):
        workout = _schedule(db, user, "24.1")
        rerolled = reroll_open_workout(db, workout.id, rng=random.Random(3))
        cf_data = parse_crossfit_notes(rerolled.notes)
        assert cf_data.id != "24.1"
        assert rerolled.name == f"CF {cf_data.name}"
        assert rerolled.id == workout.id

    def test_complete_amrap(self, db, user):
        workout = _schedule(db, user, "19.1")
        score = complete_workout(db, workout.id, user_id=user.id, rounds="9", reps="17", notes="felt good")
        assert score.score_type == "rounds_reps"
        assert (score.rounds, score.reps) == (9, 17)
        assert score.workout_id == workout.id
        assert crud.get_workout(db, workout.id).is_completed

    def test_complete_for_time_uses_timer_when_blank(self, db, user):
        workout = _schedule(db, user, "22.2")
        score = complete_workout(db, workout.id, user_id=user.id, elapsed_seconds=512)
        assert score.score_type == "time"
        assert score.time_seconds == 512

    def test_score_history_and_best(self, db, user):
        workout = _schedule(db, user, "22.2")
        complete_workout(db, workout.id, user_id=user.id, minutes="9", seconds="00")
        complete_workout(db, workout.id, user_id=user.id, minutes="8", seconds="15")
        complete_workout(db, workout.id, user_id=user.id, minutes="10", seconds="00")

        scores, best = get_score_history(db, user.id, "22.2")
        assert len(scores) == 3
        assert best.time_seconds == 495

    def test_score_history_empty(self, db, user):
        assert get_score_history(db, user.id, "25.1") == ([], None)


# ==============================================================================
# Live timers
# ==============================================================================

class TestTimerSessionManager:

    def test_one_timer_per_workout(self, db, user):
        manager = TimerSessionManager(scheduler_factory=ManualScheduler)
        config = load_crossfit_workout(db, _schedule(db, user, "24.2").id).timer_config

        timer, recorder = manager.get_or_create("w1", config)
        assert manager.get_or_create("w1", config)[0] is timer
        assert manager.get("w2") is None

        timer.start()
        assert recorder.drain()
        manager.close("w1")
        assert timer.closed
        assert manager.get("w1") is None

    def test_close_all(self):
        from crossfit.timer_config import DEFAULT_TIMER_CONFIG
        manager = TimerSessionManager(scheduler_factory=ManualScheduler)
        timers = [manager.get_or_create(f"w{i}", DEFAULT_TIMER_CONFIG)[0] for i in range(3)]
        manager.close_all()
        assert all(t.closed for t in timers)

    def test_idle_timers_are_closed(self):
        from crossfit.timer_config import DEFAULT_TIMER_CONFIG
        now = [datetime(2025, 3, 5, 9, 0)]
        manager = TimerSessionManager(
            scheduler_factory=ManualScheduler, max_idle=timedelta(hours=1), clock=lambda: now[0],
        )
        abandoned, _ = manager.get_or_create("abandoned", DEFAULT_TIMER_CONFIG)
        running, _ = manager.get_or_create("running", DEFAULT_TIMER_CONFIG)
        running.start()
        recent, _ = manager.get_or_create("recent", DEFAULT_TIMER_CONFIG)

        now[0] += timedelta(minutes=45)
        assert manager.get("recent")[0] is recent

        now[0] += timedelta(minutes=30)
        assert manager.evict_idle() == ["abandoned"]
        assert abandoned.closed
        assert manager.get("abandoned") is None
        assert manager.get("running")[0] is running
        assert not running.closed
        assert manager.get("recent")[0] is recent


# ==============================================================================
# API
# ==============================================================================

@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setattr(service, "timer_manager", TimerSessionManager(scheduler_factory=ManualScheduler))
    import crossfit.router as crossfit_router
    monkeypatch.setattr(crossfit_router, "timer_manager", service.timer_manager)

    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app)


class TestCrossFitAPI:

    def test_workout_flow(self, client, user):
        response = client.post("/api/crossfit/workouts", json={
            "user_id": user.id, "scheduled_date": "2025-03-07", "year": 2024,
        })
        assert response.status_code == 200
        body = response.json()
        workout_id = body["workout_id"]
        assert body["cf_data"]["isCrossFit"] is True
        assert body["cf_data"]["year"] == 2024

        response = client.post(f"/api/crossfit/workouts/{workout_id}/timer/start")
        assert response.status_code == 200
        snapshot = response.json()
        assert snapshot["state"] == TimerState.INTRO.value
        assert snapshot["intro_count"] == 3
        assert snapshot["cues"][0]["name"] == "intro_beep"

        # still in the intro: pausing is not allowed
        response = client.post(f"/api/crossfit/workouts/{workout_id}/timer/pause")
        assert response.status_code == 409

        response = client.post(f"/api/crossfit/workouts/{workout_id}/timer/jump")
        assert response.status_code == 404

        response = client.post(f"/api/crossfit/workouts/{workout_id}/complete", json={
            "user_id": user.id, "rounds": "5", "reps": "3", "minutes": "11", "seconds": "20",
        })
        assert response.status_code == 200
        score = response.json()
        assert score["display"]

        cf_id = body["cf_data"]["id"]
        response = client.get(f"/api/crossfit/scores/{cf_id}", params={"user_id": user.id})
        assert response.status_code == 200
        history = response.json()
        assert len(history["scores"]) == 1
        assert history["best_score"]["id"] == score["id"]

    def test_unknown_workout(self, client):
        assert client.get("/api/crossfit/workouts/missing").status_code == 404
        assert client.get("/api/crossfit/workouts/missing/timer").status_code == 404
