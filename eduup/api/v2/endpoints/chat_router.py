import json
import logging
from typing import List

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from eduup.api.v2.dependencies import get_bearer_user, get_current_user, get_db
from eduup.core import ai_service
from eduup.core.config import settings
from eduup.crud import chat_crud
from eduup.models.user.user_model import User
from eduup.schemas.chat.chat_schema import ChatHistoryEntry, ChatReply
from eduup.services import chat_service

router = APIRouter()
logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, message: str | None = None) -> JSONResponse:
    body = {"error": error}
    if message is not None:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


@router.post("", response_model=ChatReply, summary="Zeptat se AI učitele")
async def chat(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_bearer_user),
):
    """
    Body: ``{"message": str, "history": [{"role", "content"}]?}``.

    Without ``history`` the stored conversation is used as context.
    """
    if not settings.GEMINI_API_KEY:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server misconfigured")

    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")

    body = body if isinstance(body, dict) else {}
    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid message")

    try:
        # The model call blocks for seconds; keep it off the event loop.
        reply = await run_in_threadpool(chat_service.generate_reply, db, current_user.id, message, body.get("history"))
    except chat_service.ChatConfigurationError:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server misconfigured")
    except ai_service.AIQuotaExceededError:
        return _error(status.HTTP_429_TOO_MANY_REQUESTS, "QUOTA_EXCEEDED", chat_service.QUOTA_MESSAGE)
    except ai_service.AIServiceError as exc:
        if ai_service.looks_like_quota_error(exc.status_code, str(exc)):
            return _error(status.HTTP_429_TOO_MANY_REQUESTS, "QUOTA_EXCEEDED", chat_service.QUOTA_MESSAGE)
        logger.error("Chat reply failed for user %s: %s", current_user.id, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "AI_ERROR", str(exc))

    return {"reply": reply}


@router.get("/history", response_model=List[ChatHistoryEntry])
def read_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return chat_service.history_for_display(db, current_user.id)


@router.delete("/history")
def clear_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deleted = chat_crud.clear_messages_for_user(db, current_user.id)
    return {"deleted": deleted}
