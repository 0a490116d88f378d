"""Persistence helpers for the AI teacher chat."""

from __future__ import annotations

from sqlalchemy.orm import Session

from eduup.models.chat.chat_message_model import ChatMessage, ChatRole


def append_exchange(db: Session, user_id: int, *, question: str, reply: str) -> tuple[ChatMessage, ChatMessage]:
    """Store a student message and the teacher's reply in one transaction."""

    user_message = ChatMessage(user_id=user_id, role=ChatRole.USER, content=question)
    assistant_message = ChatMessage(user_id=user_id, role=ChatRole.ASSISTANT, content=reply)
    db.add(user_message)
    db.flush()
    db.add(assistant_message)
    db.commit()
    db.refresh(user_message)
    db.refresh(assistant_message)
    return user_message, assistant_message


def list_messages_for_user(db: Session, user_id: int, *, limit: int | None = None) -> list[ChatMessage]:
    """Return messages ordered from oldest to newest; ``limit`` keeps the latest ones."""

    query = db.query(ChatMessage).filter(ChatMessage.user_id == user_id)
    if limit is None:
        return query.order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).all()

    latest = query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit).all()
    return list(reversed(latest))


def clear_messages_for_user(db: Session, user_id: int) -> int:
    deleted = db.query(ChatMessage).filter(ChatMessage.user_id == user_id).delete()
    db.commit()
    return deleted
