"""
Coach Knowledge Base
====================

Static coaching knowledge, one text block per training domain, plus the
keyword vocabularies used to route a message to its domains.

Texts live in coach/prompts/*.txt and are read once.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Sequence


PROMPTS_DIR = Path(__file__).parent / "prompts"

PROMPT_SEPARATOR = "\n\n---\n\n"


class TrainingDomain(str, Enum):
    HYROX = "hyrox"
    CROSSFIT = "crossfit"
    RUNNING = "running"
    POWERLIFTING = "powerlifting"
    HYPERTROPHY = "hypertrophy"
    OLYMPIC_LIFTING = "olympic_lifting"
    KETTLEBELL = "kettlebell"
    MOBILITY = "mobility"
    TRIATHLON = "triathlon"
    HYBRID = "hybrid"


VALID_DOMAINS: List[str] = [d.value for d in TrainingDomain]


# Checked in this order; result order follows it.
INTENT_KEYWORDS: Dict[TrainingDomain, List[str]] = {
    TrainingDomain.HYROX: [
        "hyrox", "skierg", "sled push", "sled pull", "wall balls", "farmer carry", "sandbag", "roxzone",
    ],
    TrainingDomain.CROSSFIT: [
        "crossfit", "wod", "metcon", "amrap", "emom", "fran", "grace", "helen", "murph", "chipper",
        "rx", "kipping", "butterfly pull", "muscle up", "comp", "open",
    ],
    TrainingDomain.RUNNING: [
        "running", "run", "marathon", "half marathon", "5k", "10k", "mile", "tempo", "intervals",
        "mileage", "pace", "long run", "sprint", "jog", "couch to",
    ],
    TrainingDomain.POWERLIFTING: [
        "powerlifting", "squat", "bench", "deadlift", "meet", "total", "peaking", "1rm", "one rep max",
        "sbd", "competition lift", "pause", "sumo", "conventional",
    ],
    TrainingDomain.HYPERTROPHY: [
        "hypertrophy", "muscle", "bodybuilding", "mass", "size", "pump", "aesthetic", "bulk", "gains",
        "bicep", "tricep", "chest", "back", "shoulders", "legs", "split", "ppl", "bro split", "arm day",
    ],
    TrainingDomain.OLYMPIC_LIFTING: [
        "olympic", "snatch", "clean and jerk", "clean & jerk", "jerk", "weightlifting", "oly", "c&j",
        "overhead squat", "front squat", "hang", "power clean", "power snatch",
    ],
    TrainingDomain.KETTLEBELL: [
        "kettlebell", "kb", "swing", "get up", "getup", "tgu", "turkish", "goblet",
        "simple and sinister", "rkc", "strongfirst", "pavel",
    ],
    TrainingDomain.MOBILITY: [
        "mobility", "stretch", "flexibility", "foam roll", "recovery", "cars", "frc", "pails", "rails",
        "joint", "range of motion", "tight", "stiff", "deload", "rest day",
    ],
    TrainingDomain.TRIATHLON: [
        "triathlon", "swim", "bike", "cycle", "cycling", "brick", "ironman", "sprint tri", "olympic tri",
        "ftp", "watts", "zwift", "trainer", "pool", "open water",
    ],
    TrainingDomain.HYBRID: [
        "hybrid", "multi sport", "all around", "general fitness", "well rounded", "functional", "overall",
        "endurance and strength", "strength and cardio", "balanced",
    ],
}


@lru_cache(maxsize=None)
def _read_prompt(name: str) -> str:
    return (PROMPTS_DIR / f"{name}.txt").read_text(encoding="utf-8").strip()


def get_core_prompt() -> str:
    """Coaching persona + command formats, sent on every turn."""
    return _read_prompt("core")


def get_knowledge_for_domain(domain) -> str:
    try:
        domain = TrainingDomain(domain)
    except ValueError:
        return ""
    return _read_prompt(domain.value)


def get_relevant_knowledge(intents: Sequence) -> str:
    """Knowledge blocks for the detected domains, hybrid when none were detected."""
    if not intents:
        return get_knowledge_for_domain(TrainingDomain.HYBRID)
    return "\n\n".join(get_knowledge_for_domain(intent) for intent in intents)


def assemble_prompt(intents: Sequence) -> str:
    return get_core_prompt() + PROMPT_SEPARATOR + get_relevant_knowledge(intents)
