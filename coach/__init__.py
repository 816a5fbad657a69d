"""
Goal Coach - Hybrid Athlete AI Coach
====================================

Conversational training coach:
- keyword + LLM intent routing to domain knowledge (hyrox, crossfit, running, ...)
- per-user chat sessions with the athlete's profile and schedule as context
- structured commands (plans, edits, new exercises) extracted from replies
  and applied only after the athlete confirms
"""

from coach.intent_classifier import IntentClassifier, PromptBuild, detect_training_intent, build_dynamic_prompt
from coach.commands import parse_commands, parse_workout_plan, clean_response_text
from coach.goal_chat import GoalChatSession, GoalChatManager, ChatMessage
from coach.llm_client import LLMClient, GeminiClient, MockLLMClient, LLMError

__all__ = [
    'IntentClassifier',
    'PromptBuild',
    'detect_training_intent',
    'build_dynamic_prompt',
    'parse_commands',
    'parse_workout_plan',
    'clean_response_text',
    'GoalChatSession',
    'GoalChatManager',
    'ChatMessage',
    'LLMClient',
    'GeminiClient',
    'MockLLMClient',
    'LLMError',
]
