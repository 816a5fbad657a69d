"""
FastAPI Router for the Goal Coach
Endpoints for chat, command confirmation and API key management
"""
from datetime import date, timedelta
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from config import Settings
from database import get_db
import crud
from coach.schemas import (
    ChatRequest, ChatResponse, ChatStateResponse, ChatMessageOut, CommandDiagnosticOut,
    SessionRequest, ConfirmCommandsRequest, ExecutionReportOut,
    APIKeyRequest, APIKeyResponse,
)
from coach.command_executor import CommandExecutor, ExecutionReport, PLAN_ACTIONS
from coach.crypto import (
    decrypt_api_key, mask_api_key, resolve_api_key, store_user_api_key, validate_api_key_format,
)
from coach.goal_chat import GoalChatSession, goal_chat_manager
from coach.llm_client import LLMError, create_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/coach", tags=["coach"])

# Schedule window rendered into the coach context
CONTEXT_PAST_DAYS = 7
CONTEXT_FUTURE_DAYS = 28


# ============ Helpers ============

def _load_context(db: Session, session: GoalChatSession):
    today = date.today()
    workouts = crud.list_workouts(
        db,
        session.user_id,
        start_date=today - timedelta(days=CONTEXT_PAST_DAYS),
        end_date=today + timedelta(days=CONTEXT_FUTURE_DAYS),
    )
    session.update_context(workouts, crud.get_profile(db, session.user_id))


def _ensure_clients(db: Session, session: GoalChatSession):
    if session.llm_client:
        return
    api_key = resolve_api_key(db, session.user_id)
    if not api_key:
        raise HTTPException(status_code=400, detail="No Gemini API key configured")
    session.attach_clients(
        create_client(api_key, Settings.GEMINI_CHAT_MODEL),
        create_client(api_key, Settings.GEMINI_CLASSIFIER_MODEL),
    )


def _message_out(message) -> ChatMessageOut:
    return ChatMessageOut(role=message.role, content=message.content, timestamp=message.timestamp)


def _state(session: GoalChatSession) -> dict:
    return dict(
        messages=[_message_out(m) for m in session.messages],
        pending_commands=session.pending_commands,
        workout_plan=session.workout_plan,
        diagnostics=[CommandDiagnosticOut(block=d.block, reason=d.reason) for d in session.diagnostics],
        detected_intents=session.last_prompt.detected_intents if session.last_prompt else [],
        used_llm=session.last_prompt.used_llm if session.last_prompt else False,
        error=session.error,
    )


# ============ Chat Endpoints ============

@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, db: Session = Depends(get_db)):
    """
    One coach turn. 502 on Gemini failure; the message is not kept,
    so the client can simply resend it.
    The Gemini call runs in the threadpool so live workout timers
    on the event loop keep ticking.
    """
    session = goal_chat_manager.get_or_create(request.user_id)
    _ensure_clients(db, session)
    _load_context(db, session)

    try:
        reply = await run_in_threadpool(session.send_message, request.message)
    except LLMError as e:
        raise HTTPException(status_code=502, detail=f"Coach unavailable, please retry: {e}")

    return ChatResponse(reply=_message_out(reply) if reply else None, **_state(session))


@router.get("/session/{user_id}", response_model=ChatStateResponse)
async def get_session(user_id: str):
    return ChatStateResponse(**_state(goal_chat_manager.get_or_create(user_id)))


@router.post("/greeting", response_model=ChatStateResponse)
async def greeting(request: SessionRequest, db: Session = Depends(get_db)):
    session = goal_chat_manager.get_or_create(request.user_id)
    _load_context(db, session)
    session.get_initial_greeting()
    return ChatStateResponse(**_state(session))


@router.post("/new", response_model=ChatStateResponse)
async def new_chat(request: SessionRequest):
    session = goal_chat_manager.get_or_create(request.user_id)
    session.start_new_chat()
    return ChatStateResponse(**_state(session))


# ============ Command Endpoints ============

@router.post("/commands/confirm", response_model=ExecutionReportOut)
async def confirm_commands(request: ConfirmCommandsRequest, db: Session = Depends(get_db)):
    """Apply queued commands the athlete approved."""
    session = goal_chat_manager.get_or_create(request.user_id)
    pending = session.pending_commands

    if request.indices is None:
        selected = list(range(len(pending)))
    else:
        invalid = [i for i in request.indices if i < 0 or i >= len(pending)]
        if invalid:
            raise HTTPException(status_code=404, detail=f"No pending command at {invalid}")
        selected = sorted(set(request.indices))

    executor = CommandExecutor(db, request.user_id)
    report = ExecutionReport()
    ran = set()
    try:
        for i in selected:
            # Leaves the queue before running so a resend can never apply it twice
            ran.add(i)
            executor.execute(pending[i], report)
    finally:
        session.pending_commands = [c for i, c in enumerate(pending) if i not in ran]

    if any(isinstance(pending[i], dict) and pending[i].get("action") in PLAN_ACTIONS for i in ran):
        session.clear_plan()

    logger.info(f"Applied {len(ran)} coach commands for {request.user_id} ({len(report.skipped)} skipped)")
    return ExecutionReportOut(**report.to_dict())


@router.delete("/commands/{user_id}", response_model=ChatStateResponse)
async def clear_commands(user_id: str):
    """Dismiss everything waiting for confirmation."""
    session = goal_chat_manager.get_or_create(user_id)
    session.clear_commands()
    session.clear_plan()
    return ChatStateResponse(**_state(session))


# ============ API Key Endpoints ============

@router.post("/api-key", response_model=APIKeyResponse)
async def set_api_key(request: APIKeyRequest, db: Session = Depends(get_db)):
    """Store the user's Gemini key (encrypted)."""
    if not validate_api_key_format(request.api_key):
        raise HTTPException(status_code=400, detail="Invalid API key format")

    store_user_api_key(db, request.user_id, request.api_key)

    # Next turn picks up the new key
    session = goal_chat_manager.get(request.user_id)
    if session:
        session.llm_client = None

    return APIKeyResponse(
        success=True,
        message="API key saved",
        masked_key=mask_api_key(request.api_key),
    )


@router.get("/api-key/{user_id}", response_model=APIKeyResponse)
async def get_api_key_status(user_id: str, db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    stored = decrypt_api_key(user.gemini_api_key_encrypted) if user else None
    if stored:
        return APIKeyResponse(success=True, message="Using your API key", masked_key=mask_api_key(stored))
    if Settings.GEMINI_API_KEY:
        return APIKeyResponse(success=True, message="Using the server API key")
    return APIKeyResponse(success=False, message="No API key configured")


@router.delete("/api-key/{user_id}", response_model=APIKeyResponse)
async def delete_api_key(user_id: str, db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if not user or not user.gemini_api_key_encrypted:
        raise HTTPException(status_code=404, detail="No stored API key")

    user.gemini_api_key_encrypted = None
    db.commit()

    session = goal_chat_manager.get(user_id)
    if session:
        session.llm_client = None

    return APIKeyResponse(success=True, message="API key removed")
