"""
Training Intent Classifier
==========================

Routes a coach message to one or more training domains:
1. Keyword match against the domain vocabularies (instant, no network)
2. Gemini classification when no keyword matched and a key is available
3. Hybrid fallback

The matched domains pick the knowledge blocks appended to the core prompt.
"""

import json
import logging
import re
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from coach.knowledge import (
    INTENT_KEYWORDS, VALID_DOMAINS, TrainingDomain, assemble_prompt,
)
from coach.llm_client import LLMClient, LLMError

logger = logging.getLogger(__name__)

FALLBACK_INTENTS = [TrainingDomain.HYBRID.value]

CLASSIFICATION_PROMPT = """You are a fitness intent classifier. Based on the user's message, identify which training domain(s) they are asking about.

Valid domains: {domains}

Rules:
- Return ONLY a JSON array of matching domains, nothing else
- Return 1-3 most relevant domains
- If unclear or general fitness, return ["hybrid"]
- Examples:
  "I want bigger arms" → ["hypertrophy"]
  "Prepare me for a race" → ["running", "hyrox"]
  "Get stronger legs for skiing" → ["powerlifting", "hypertrophy"]

User message: "{message}"

Response (JSON array only):"""

_FENCE_RE = re.compile(r"```json?\n?|\n?```")


@dataclass
class PromptBuild:
    """Full system prompt for one chat turn and how it was chosen."""
    prompt: str
    detected_intents: List[str] = field(default_factory=list)
    used_llm: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def detect_training_intent(message: str) -> List[str]:
    """Domains whose keywords appear in the message, in fixed domain order."""
    lower_message = (message or "").lower()
    detected = []
    for domain, keywords in INTENT_KEYWORDS.items():
        if any(keyword in lower_message for keyword in keywords):
            detected.append(domain.value)
    return detected


def parse_classification(raw_response: str) -> List[str]:
    """
    Parse the classifier's JSON array.
    Unknown domains are dropped; anything unusable gives ["hybrid"].
    """
    text = _FENCE_RE.sub("", raw_response or "").strip()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        logger.info(f"Unparseable intent classification: {raw_response!r}")
        return list(FALLBACK_INTENTS)

    if not isinstance(parsed, list):
        return list(FALLBACK_INTENTS)

    valid = [d for d in parsed if isinstance(d, str) and d in VALID_DOMAINS]
    return valid or list(FALLBACK_INTENTS)


def build_dynamic_prompt(conversation_history: str) -> str:
    """Keyword-only prompt build (no network)."""
    return assemble_prompt(detect_training_intent(conversation_history))


class IntentClassifier:
    """Keyword matcher with a Gemini fallback."""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm_client = llm_client

    def classify_with_llm(self, message: str) -> List[str]:
        """One classification request, no retry. Errors give ["hybrid"]."""
        if not self.llm_client:
            return list(FALLBACK_INTENTS)

        prompt = CLASSIFICATION_PROMPT.format(domains=", ".join(VALID_DOMAINS), message=message)
        try:
            response = self.llm_client.generate(prompt, max_tokens=100, temperature=0.1)
        except LLMError as e:
            logger.warning(f"LLM classification failed, using hybrid fallback: {e}")
            return list(FALLBACK_INTENTS)

        return parse_classification(response.text.strip())

    def classify(self, message: str) -> PromptBuild:
        intents = detect_training_intent(message)
        used_llm = False

        if not intents and self.llm_client:
            logger.info("No keyword match, using LLM classification")
            intents = self.classify_with_llm(message)
            used_llm = True

        if not intents:
            intents = list(FALLBACK_INTENTS)

        return PromptBuild(prompt="", detected_intents=intents, used_llm=used_llm)

    def build_prompt(self, message: str) -> PromptBuild:
        """Core prompt + knowledge for the detected domains."""
        result = self.classify(message)
        result.prompt = assemble_prompt(result.detected_intents)
        return result
