"""
Pydantic Schemas for the Goal Coach
Request/Response models for chat, command review and API key management
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


# ============ Request Schemas ============

class ChatRequest(BaseModel):
    """One chat turn."""
    user_id: str
    message: str = Field(..., max_length=4000)


class SessionRequest(BaseModel):
    user_id: str


class ConfirmCommandsRequest(BaseModel):
    """
    Apply queued commands. `indices` picks a subset of the pending queue;
    omit it to apply everything.
    """
    user_id: str
    indices: Optional[List[int]] = None


class APIKeyRequest(BaseModel):
    """Request to set Gemini API key."""
    user_id: str
    api_key: str = Field(..., min_length=30, max_length=100)


# ============ Response Schemas ============

class ChatMessageOut(BaseModel):
    role: str
    content: str
    timestamp: datetime


class CommandDiagnosticOut(BaseModel):
    block: str
    reason: str


class ChatStateResponse(BaseModel):
    """Visible conversation plus whatever is waiting for confirmation."""
    messages: List[ChatMessageOut] = []
    pending_commands: List[Dict[str, Any]] = []
    workout_plan: Optional[Dict[str, Any]] = None
    diagnostics: List[CommandDiagnosticOut] = []
    detected_intents: List[str] = []
    used_llm: bool = False
    error: Optional[str] = None


class ChatResponse(ChatStateResponse):
    """Response from chat endpoint."""
    reply: Optional[ChatMessageOut] = None


class ExecutionReportOut(BaseModel):
    created_workout_ids: List[str] = []
    updated_workout_ids: List[str] = []
    deleted_workout_ids: List[str] = []
    created_exercises: List[str] = []
    skipped: List[str] = []


class APIKeyResponse(BaseModel):
    """Response for API key operations."""
    success: bool
    message: str
    masked_key: Optional[str] = None
