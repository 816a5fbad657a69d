"""
Goal Chat Session
=================

One coaching conversation per user:
- athlete context (profile + schedule) rendered into the opening turn
- per-turn system prompt built by the intent classifier
- commands / legacy plan pulled out of each reply and queued for review
- failed turns are rolled back so a retry does not duplicate the message
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from config import Settings
from coach.commands import CommandDiagnostic, clean_response_text, parse_commands, parse_workout_plan
from coach.intent_classifier import IntentClassifier, PromptBuild
from coach.llm_client import HistoryTurn, LLMClient, LLMError

logger = logging.getLogger(__name__)

CONTEXT_INTRO = "Here is my current training context:"

MODEL_ACKNOWLEDGEMENT = (
    "I understand my role as your Hybrid Athlete Coach. I have access to your current schedule "
    "and profile, and I'm ready to help you optimize your training. Let me know what you'd like to work on."
)


def _get(obj: Any, key: str, default=None):
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


@dataclass
class ChatMessage:
    """Single visible chat message. role is 'user' or 'assistant'."""
    role: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return asdict(self)


class GoalChatSession:
    """
    Conversation state for one athlete.

    Gemini history is rebuilt on every turn from the visible messages, so
    rolling back a failed turn only needs to drop the last message.
    """

    def __init__(
        self,
        user_id: str,
        llm_client: Optional[LLMClient] = None,
        classifier: Optional[IntentClassifier] = None,
    ):
        self.user_id = user_id
        self.llm_client = llm_client
        self.classifier = classifier or IntentClassifier()

        self.messages: List[ChatMessage] = []
        self.pending_commands: List[Dict[str, Any]] = []
        self.workout_plan: Optional[Dict[str, Any]] = None
        self.diagnostics: List[CommandDiagnostic] = []
        self.error: Optional[str] = None
        self.last_prompt: Optional[PromptBuild] = None

        self.workouts: List[Any] = []
        self.profile: Any = None

        self.created_at = datetime.now()
        self.last_activity_at = datetime.now()

    def attach_clients(self, llm_client: LLMClient, classifier_client: Optional[LLMClient] = None):
        self.llm_client = llm_client
        self.classifier = IntentClassifier(classifier_client)

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def update_context(self, workouts, profile):
        self.workouts = list(workouts or [])
        self.profile = profile

    def build_context_string(self) -> str:
        lines = []
        profile = self.profile

        if profile:
            lines.append("=== ATHLETE PROFILE ===")
            if _get(profile, "primary_goal"):
                lines.append(f"Goal: {_get(profile, 'primary_goal')}")
            if _get(profile, "fitness_level"):
                lines.append(f"Level: {_get(profile, 'fitness_level')}")
            if _get(profile, "sleep_hours_avg"):
                lines.append(f"Sleep: {_get(profile, 'sleep_hours_avg')}h ({_get(profile, 'sleep_quality') or 'unknown'})")
            if _get(profile, "work_physical_demand"):
                lines.append(f"Work demand: {_get(profile, 'work_physical_demand')}")
            if _get(profile, "stress_level"):
                lines.append(f"Stress: {_get(profile, 'stress_level')}")
            lines.append("")

        lines.append("=== CURRENT SCHEDULE ===")
        if self.workouts:
            for w in self.workouts:
                names = [
                    _get(_get(we, "exercise"), "name")
                    for we in (_get(w, "workout_exercises") or [])
                ]
                exercise_names = ", ".join(n for n in names if n) or "No exercises"
                status = "✓" if _get(w, "is_completed") else "○"
                lines.append(f"{status} {_get(w, 'scheduled_date')} - {_get(w, 'name')} ({exercise_names})")
                lines.append(f"  ID: {_get(w, 'id')}")
        else:
            lines.append("No workouts scheduled.")
        lines.append("")

        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def _conversation_text(self) -> str:
        return "\n".join(m.content for m in self.messages if m.role == "user")

    def build_history(self, system_prompt: str) -> List[HistoryTurn]:
        """
        Opening turn (prompt + context) and acknowledgement, then every
        message except the one being sent. Consecutive same-role messages
        (the greeting after the acknowledgement) are merged.
        """
        history = [
            HistoryTurn(role="user", text=f"{system_prompt}\n\n{CONTEXT_INTRO}\n{self.build_context_string()}"),
            HistoryTurn(role="model", text=MODEL_ACKNOWLEDGEMENT),
        ]
        for message in self.messages[:-1]:
            role = "user" if message.role == "user" else "model"
            if history[-1].role == role:
                history[-1].text += f"\n\n{message.content}"
            else:
                history.append(HistoryTurn(role=role, text=message.content))
        return history

    def send_message(self, text: str) -> Optional[ChatMessage]:
        """
        One chat turn. Returns the assistant message (None for blank input or
        a reply that was only empty text).
        Raises LLMError after rolling back the user message.
        """
        if not text or not text.strip():
            return None

        self.messages.append(ChatMessage(role="user", content=text))
        self.error = None
        self.last_activity_at = datetime.now()

        try:
            if not self.llm_client:
                raise LLMError("No Gemini API key configured")

            self.last_prompt = self.classifier.build_prompt(self._conversation_text())
            logger.info(
                f"Coach turn for {self.user_id}: intents={self.last_prompt.detected_intents} "
                f"used_llm={self.last_prompt.used_llm}"
            )
            history = self.build_history(self.last_prompt.prompt)
            response = self.llm_client.chat(history, text)
        except LLMError as e:
            logger.error(f"Error sending message: {e}")
            self.error = str(e) or "Failed to get response from AI"
            self.messages.pop()
            raise

        extraction = parse_commands(response.text)
        self.diagnostics.extend(extraction.diagnostics)

        plan = parse_workout_plan(response.text)
        if plan:
            self.workout_plan = plan

        if extraction.commands:
            self.pending_commands = extraction.commands

        display_text = clean_response_text(response.text, extraction.has_commands or plan is not None)
        if not display_text:
            return None

        reply = ChatMessage(role="assistant", content=display_text)
        self.messages.append(reply)
        return reply

    def get_initial_greeting(self) -> Optional[ChatMessage]:
        """Opening assistant message; only for an empty conversation."""
        if self.messages:
            return None

        workouts = self.workouts
        goal = _get(self.profile, "primary_goal")

        if workouts and goal:
            greeting = (
                f"Looking at your schedule, I can see you have {len(workouts)} workouts planned. "
                f"As your hybrid coach, I'll help you optimize your training for {goal}. "
                "What would you like to work on today?"
            )
        elif workouts:
            greeting = (
                f"I can see you have {len(workouts)} workouts on your schedule. Before I can give you "
                "the best coaching, I'd like to learn more about you. What's your primary training goal right now?"
            )
        elif goal:
            greeting = (
                f"Welcome back! I remember you're working towards {goal}. "
                "Your schedule looks empty - ready to build out your training plan?"
            )
        else:
            greeting = (
                "Hey! I'm your Hybrid Athlete Coach - I specialize in helping athletes who train both "
                "strength and endurance. Before we start programming, I need to understand your goals. "
                "What are you training for?"
            )

        message = ChatMessage(role="assistant", content=greeting)
        self.messages = [message]
        return message

    def start_new_chat(self):
        self.messages = []
        self.pending_commands = []
        self.workout_plan = None
        self.diagnostics = []
        self.error = None
        self.last_prompt = None

    def clear_commands(self):
        self.pending_commands = []

    def clear_plan(self):
        self.workout_plan = None


class GoalChatManager:
    """
    Manages chat sessions for all users.
    In-memory storage for now; could be Redis in production.
    Sessions idle for longer than `max_idle` are dropped on the next access.
    """

    def __init__(self, max_idle: Optional[timedelta] = None, clock=datetime.now):
        self._sessions: Dict[str, GoalChatSession] = {}
        self._max_idle = max_idle or timedelta(minutes=Settings.CHAT_SESSION_IDLE_MINUTES)
        self._clock = clock

    def get_or_create(self, user_id: str) -> GoalChatSession:
        now = self._clock()
        self.evict_idle(now)
        if user_id not in self._sessions:
            self._sessions[user_id] = GoalChatSession(user_id)
        session = self._sessions[user_id]
        session.last_activity_at = now
        return session

    def get(self, user_id: str) -> Optional[GoalChatSession]:
        return self._sessions.get(user_id)

    def evict_idle(self, now: Optional[datetime] = None) -> List[str]:
        """Drop sessions nobody has touched within `max_idle`. Returns their user ids."""
        cutoff = (now or self._clock()) - self._max_idle
        idle = [user_id for user_id, s in self._sessions.items() if s.last_activity_at < cutoff]
        for user_id in idle:
            del self._sessions[user_id]
        if idle:
            logger.info(f"Evicted {len(idle)} idle coach sessions")
        return idle

    def clear(self, user_id: str):
        self._sessions.pop(user_id, None)

    def clear_all(self):
        self._sessions.clear()


# Global chat manager instance
goal_chat_manager = GoalChatManager()
