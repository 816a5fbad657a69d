"""
Coach Command Executor Tests
============================

Runs against the in-memory `db` fixture from the root conftest.
"""

from datetime import date

import pytest

import crud
from coach.command_executor import CommandExecutor, next_weekday

WEDNESDAY = date(2025, 3, 5)


@pytest.fixture
def library(db):
    return {
        name: crud.create_exercise(db, name=name, muscle_group=group)
        for name, group in [("Back Squat", "Legs"), ("Bench Press", "Chest"), ("Pull-up", "Back")]
    }


@pytest.fixture
def executor(db, user):
    return CommandExecutor(db, user.id, today=WEDNESDAY)


class TestNextWeekday:

    def test_later_this_week(self):
        assert next_weekday(WEDNESDAY, "Thursday") == date(2025, 3, 6)

    def test_same_day_goes_to_next_week(self):
        assert next_weekday(WEDNESDAY, "Wednesday") == date(2025, 3, 12)

    def test_earlier_day_wraps(self):
        assert next_weekday(WEDNESDAY, "Monday") == date(2025, 3, 10)
        assert next_weekday(WEDNESDAY, "Sunday") == date(2025, 3, 9)

    def test_week_offset(self):
        assert next_weekday(WEDNESDAY, "Thursday", week=2) == date(2025, 3, 20)

    def test_unknown_day(self):
        assert next_weekday(WEDNESDAY, "Funday") is None
        assert next_weekday(WEDNESDAY, None) is None


class TestSchedulePlan:

    def test_two_workouts_over_two_weeks(self, db, user, library, executor):
        plan = {
            "weeks": 2,
            "workouts": [
                {"name": "Upper", "day_of_week": "Monday", "color": "#ef4444", "exercises": [
                    {"name": "bench press", "sets": 5, "reps": "5"},
                    {"name": "Pull-up", "reps": "AMRAP"},
                    {"name": "Cable Fly", "sets": 3, "reps": "12"},
                ]},
                {"name": "Lower", "day_of_week": "Thursday", "exercises": [
                    {"name": "Back Squat", "sets": "4", "reps": "8-10"},
                ]},
            ],
        }
        report = executor.schedule_plan(plan)

        assert len(report.created_workout_ids) == 4
        assert "unknown exercise: Cable Fly" in report.skipped

        workouts = crud.list_workouts(db, user.id)
        assert [(w.name, w.scheduled_date) for w in workouts] == [
            ("Lower", date(2025, 3, 6)),
            ("Upper", date(2025, 3, 10)),
            ("Lower", date(2025, 3, 13)),
            ("Upper", date(2025, 3, 17)),
        ]

        upper = workouts[1]
        assert upper.color == "#ef4444"
        assert [(we.exercise.name, we.sets, we.reps) for we in upper.workout_exercises] == [
            ("Bench Press", 5, 5),
            ("Pull-up", 3, 10),
        ]

        lower = workouts[0]
        assert lower.color == "#1e3a5f"
        assert [(we.sets, we.reps) for we in lower.workout_exercises] == [(4, 8)]

    def test_default_four_weeks(self, db, user, executor):
        report = executor.schedule_plan({"workouts": [{"name": "Run", "day_of_week": "Saturday", "exercises": []}]})
        assert len(report.created_workout_ids) == 4

    def test_unknown_day_skipped(self, db, user, executor):
        report = executor.schedule_plan({"weeks": 1, "workouts": [{"name": "X", "day_of_week": "Someday"}]})
        assert report.created_workout_ids == []
        assert report.skipped == ["unknown day: Someday"]


class TestExecute:

    def test_propose_plan_uses_nested_plan(self, db, user, library, executor):
        command = {"action": "PROPOSE_PLAN", "plan": {"weeks": 1, "workouts": [
            {"name": "Push", "day_of_week": "Friday", "exercises": [{"name": "Bench Press"}]},
        ]}}
        report = executor.execute(command)
        assert len(report.created_workout_ids) == 1
        assert crud.get_workout(db, report.created_workout_ids[0]).scheduled_date == date(2025, 3, 7)

    def test_legacy_create_plan(self, db, user, executor):
        command = {"action": "CREATE_PLAN", "plan_ready": True, "weeks": 1,
                   "workouts": [{"name": "A", "day_of_week": "Monday"}]}
        assert len(executor.execute(command).created_workout_ids) == 1

    def test_delete(self, db, user, executor):
        keep = crud.create_workout(db, user_id=user.id, name="Keep")
        drop = crud.create_workout(db, user_id=user.id, name="Drop")
        report = executor.execute({"action": "delete", "workout_ids": [drop.id, "missing"]})
        assert report.deleted_workout_ids == [drop.id]
        assert report.skipped == ["workout not found: missing"]
        assert crud.get_workout(db, drop.id) is None
        assert crud.get_workout(db, keep.id) is not None

    def test_cannot_touch_other_users_workouts(self, db, user, executor):
        crud.upsert_user(db, "someone-else")
        theirs = crud.create_workout(db, user_id="someone-else", name="Theirs")
        report = executor.execute({"action": "delete", "workout_ids": [theirs.id]})
        assert report.deleted_workout_ids == []
        assert crud.get_workout(db, theirs.id) is not None

    def test_update(self, db, user, executor):
        workout = crud.create_workout(db, user_id=user.id, name="Leg Day", scheduled_date="2025-03-06")
        report = executor.execute({
            "action": "update",
            "workout_id": workout.id,
            "updates": {"name": "Leg Day (heavy)", "scheduled_date": "2025-03-08", "user_id": "hijack"},
        })
        assert report.updated_workout_ids == [workout.id]
        updated = crud.get_workout(db, workout.id)
        assert updated.name == "Leg Day (heavy)"
        assert updated.scheduled_date == date(2025, 3, 8)
        assert updated.user_id == user.id

    def test_create_exercise(self, db, user, library, executor):
        report = executor.execute({"action": "create_exercise", "exercises": [
            {"name": "Plate Halo", "muscle_group": "Shoulders", "description": "Circle a plate around the head"},
            {"name": "back squat"},
            {"name": "Sled Drag"},
        ]})
        assert report.created_exercises == ["Plate Halo", "Sled Drag"]
        assert "exercise exists: back squat" in report.skipped
        sled = crud.get_exercise_by_name(db, "sled drag", user_id=user.id)
        assert sled.muscle_group == "Other"
        assert sled.user_id == user.id

    def test_unknown_action(self, executor):
        report = executor.execute({"action": "launch_rocket"})
        assert report.skipped == ["unknown action: launch_rocket"]

    def test_execute_all(self, db, user, executor):
        workout = crud.create_workout(db, user_id=user.id, name="Old")
        report = executor.execute_all([
            {"action": "PROPOSE_DELETE", "workout_ids": [workout.id]},
            {"action": "create_exercise", "exercises": [{"name": "Wall Ball"}]},
        ])
        assert report.deleted_workout_ids == [workout.id]
        assert report.created_exercises == ["Wall Ball"]


class TestMalformedCommands:

    def test_bad_date_leaves_workout_untouched(self, db, user, executor):
        workout = crud.create_workout(db, user_id=user.id, name="Leg Day", scheduled_date="2025-03-06")
        report = executor.execute({
            "action": "update",
            "workout_id": workout.id,
            "updates": {"name": "Renamed", "scheduled_date": "next Tuesday"},
        })
        assert report.updated_workout_ids == []
        assert len(report.skipped) == 1
        assert report.skipped[0].startswith("failed update:")
        unchanged = crud.get_workout(db, workout.id)
        assert unchanged.name == "Leg Day"
        assert unchanged.scheduled_date == date(2025, 3, 6)

    def test_updates_not_an_object(self, db, user, executor):
        workout = crud.create_workout(db, user_id=user.id, name="Leg Day")
        report = executor.execute({"action": "update", "workout_id": workout.id, "updates": ["name"]})
        assert report.updated_workout_ids == []
        assert report.skipped[0].startswith("failed update:")

    def test_plan_with_exercise_names_as_strings(self, db, user, library, executor):
        report = executor.execute({"action": "CREATE_PLAN", "weeks": 1, "workouts": [
            {"name": "Legs", "day_of_week": "Friday", "exercises": ["Back Squat", 42, "Sled Push"]},
            "rest day",
        ]})
        assert len(report.created_workout_ids) == 1
        assert "unknown exercise: Sled Push" in report.skipped
        assert "not a workout: 'rest day'" in report.skipped

        legs = crud.get_workout(db, report.created_workout_ids[0])
        assert [(we.exercise.name, we.sets, we.reps) for we in legs.workout_exercises] == [("Back Squat", 3, 10)]

    def test_create_exercise_from_strings(self, db, user, executor):
        report = executor.execute({"action": "create_exercise", "exercises": ["Sandbag Carry", None]})
        assert report.created_exercises == ["Sandbag Carry"]

    def test_batch_continues_after_a_failure(self, db, user, executor):
        workout = crud.create_workout(db, user_id=user.id, name="Old")
        report = executor.execute_all([
            "not a command",
            {"action": "update", "workout_id": workout.id, "updates": {"scheduled_date": "soon"}},
            {"action": "create", "plan": "four weeks of running"},
            {"action": "delete", "workout_ids": [workout.id]},
        ])
        assert report.deleted_workout_ids == [workout.id]
        assert report.skipped[0] == "not a command: 'not a command'"
        assert report.skipped[1].startswith("failed update:")
        assert report.skipped[2].startswith("failed create:")
