"""
Coach LLM Client Interface
==========================

Thin wrapper around Gemini (google-generativeai) for the coach:
- generate(): one-shot prompt (intent classification)
- chat(): multi-turn conversation with history

Every call carries a request timeout. Failures are raised as LLMError so
callers decide between fallback and retry.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import google.generativeai as genai

from config import Settings

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class HistoryTurn:
    """One turn of chat history. role is 'user' or 'model'."""
    role: str
    text: str

    def to_content(self) -> dict:
        return {"role": self.role, "parts": [self.text]}


class LLMError(Exception):
    """Gemini call failed (network, timeout, blocked or empty response)."""


class LLMClient(Protocol):
    """
    Protocol for LLM clients.
    All implementations must provide generate() and chat().
    """

    model_name: str

    def generate(self, prompt: str, max_tokens: int = 100, temperature: float = 0.1) -> LLMResponse:
        ...

    def chat(self, history: Sequence[HistoryTurn], message: str) -> LLMResponse:
        ...


def _response_text(response) -> str:
    # response.text raises when the candidate was blocked
    try:
        if response.text:
            return response.text
    except ValueError:
        pass

    if getattr(response, "candidates", None):
        parts = response.candidates[0].content.parts or []
        return "\n".join(p.text for p in parts if getattr(p, "text", None))
    return ""


class GeminiClient:
    """Gemini LLM client implementation."""

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: Optional[float] = None):
        if not api_key:
            raise LLMError("Gemini API key is required")
        self.api_key = api_key
        self.model_name = model or Settings.GEMINI_CHAT_MODEL
        self.timeout = timeout if timeout is not None else Settings.LLM_TIMEOUT_SECONDS
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name=self.model_name)

    @property
    def _request_options(self) -> dict:
        return {"timeout": self.timeout}

    def _to_response(self, response) -> LLMResponse:
        text = _response_text(response)
        if not text:
            finish_reason = response.candidates[0].finish_reason if getattr(response, "candidates", None) else "UNKNOWN"
            raise LLMError(f"Empty response from {self.model_name} (finish_reason: {finish_reason})")

        input_tokens = output_tokens = 0
        usage = getattr(response, "usage_metadata", None)
        if usage:
            input_tokens = getattr(usage, "prompt_token_count", 0)
            output_tokens = getattr(usage, "candidates_token_count", 0)

        return LLMResponse(
            text=text,
            model=self.model_name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    def generate(self, prompt: str, max_tokens: int = 100, temperature: float = 0.1) -> LLMResponse:
        config = genai.GenerationConfig(
            max_output_tokens=max_tokens,
            temperature=temperature,
        )
        try:
            response = self.model.generate_content(
                prompt,
                generation_config=config,
                request_options=self._request_options,
            )
        except Exception as e:
            logger.error(f"Gemini generate failed ({self.model_name}): {e}")
            raise LLMError(str(e)) from e
        return self._to_response(response)

    def chat(self, history: Sequence[HistoryTurn], message: str) -> LLMResponse:
        """Send `message` on top of `history` (oldest first)."""
        try:
            session = self.model.start_chat(history=[turn.to_content() for turn in history])
            response = session.send_message(message, request_options=self._request_options)
        except Exception as e:
            logger.error(f"Gemini chat failed ({self.model_name}): {e}")
            raise LLMError(str(e)) from e
        return self._to_response(response)


class MockLLMClient:
    """
    Mock LLM client for testing.
    Returns scripted responses in order (the last one repeats), or raises `error`.
    """

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.model_name = "mock"
        self.responses = list(responses or ["Mock response"])
        self.error = error
        self.prompts: List[str] = []
        self.histories: List[List[HistoryTurn]] = []

    @property
    def last_prompt(self) -> Optional[str]:
        return self.prompts[-1] if self.prompts else None

    def _next(self, prompt: str) -> LLMResponse:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        text = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return LLMResponse(text=text, model=self.model_name, input_tokens=len(prompt) // 4, output_tokens=len(text) // 4)

    def generate(self, prompt: str, max_tokens: int = 100, temperature: float = 0.1) -> LLMResponse:
        return self._next(prompt)

    def chat(self, history: Sequence[HistoryTurn], message: str) -> LLMResponse:
        self.histories.append(list(history))
        return self._next(message)


def create_client(api_key: Optional[str], model: Optional[str] = None) -> Optional[GeminiClient]:
    """GeminiClient for a resolved key, None when there is no key."""
    if not api_key:
        return None
    return GeminiClient(api_key=api_key, model=model)
