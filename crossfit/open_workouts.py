"""
CrossFit Open workout catalog (2017-2025).
Loaded once from data/open_workouts.json.
"""
import json
import random
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from crossfit.schemas import CFWorkoutData

DATA_FILE = Path(__file__).parent / "data" / "open_workouts.json"


@lru_cache(maxsize=1)
def load_open_workouts() -> List[CFWorkoutData]:
    raw = json.loads(DATA_FILE.read_text(encoding="utf-8"))
    return [CFWorkoutData(isCrossFit=True, **item) for item in raw]


def get_workout(cf_workout_id: str) -> Optional[CFWorkoutData]:
    for workout in load_open_workouts():
        if workout.id == cf_workout_id:
            return workout
    return None


def get_workouts_by_year(year: int) -> List[CFWorkoutData]:
    return [w for w in load_open_workouts() if w.year == year]


def get_random_workout(
    rng: Optional[random.Random] = None,
    year: Optional[int] = None,
    exclude_id: Optional[str] = None,
) -> CFWorkoutData:
    """Random Open workout, optionally from one season and never `exclude_id`."""
    rng = rng or random.Random()
    pool = get_workouts_by_year(year) if year else list(load_open_workouts())
    if exclude_id:
        pool = [w for w in pool if w.id != exclude_id] or pool
    if not pool:
        raise ValueError(f"No Open workouts for year {year}")
    return rng.choice(pool)
