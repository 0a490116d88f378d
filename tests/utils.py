"""Utility helpers for test factories."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

from eduup.crud.guest_progress_crud import GuestProgressStorage
from eduup.models.catalog.category_model import Category
from eduup.models.catalog.exercise_model import Exercise
from eduup.models.catalog.subject_model import Subject
from eduup.models.catalog.topic_model import Topic
from eduup.models.user.user_model import User
from eduup.services.local_progress_store import STORAGE_KEY

_created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)


def create_user(db, **kwargs) -> User:
    defaults = {
        "username": "user",
        "email": "user@example.com",
        "hashed_password": "x",
        "is_active": True,
        "is_superuser": False,
    }
    defaults.update(kwargs)
    user = User(**defaults)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_subject(db, name: str = "Čeština", **kwargs) -> Subject:
    subject = Subject(name=name, **kwargs)
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return subject


def create_topic(db, *, subject: str = "Čeština", grade: int = 5, name: str = "Vyjmenovaná slova", **kwargs) -> Topic:
    topic = Topic(subject=subject, grade=grade, name=name, **kwargs)
    db.add(topic)
    db.commit()
    db.refresh(topic)
    return topic


def create_category(db, topic: Topic, name: str = "Po B", **kwargs) -> Category:
    category = Category(topic_id=topic.id, name=name, **kwargs)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def create_exercise(
    db,
    *,
    topic: Topic | None = None,
    category: Category | None = None,
    type: str = "quiz",
    title: str = "Cvičení",
    payload: dict[str, Any] | None = None,
) -> Exercise:
    global _created_at
    _created_at = _created_at + timedelta(minutes=1)
    exercise = Exercise(
        type=type,
        title=title,
        topic_id=topic.id if topic else None,
        category_id=category.id if category else None,
        payload=payload if payload is not None else {"difficulty": 1, "questions": []},
        created_at=_created_at,
    )
    db.add(exercise)
    db.commit()
    db.refresh(exercise)
    return exercise


def quiz_payload(count: int = 3, difficulty: int = 1, **extra) -> dict[str, Any]:
    questions = [
        {"question": f"Otázka {index}", "options": ["A", "B"], "answer": "A"}
        for index in range(count)
    ]
    return {"difficulty": difficulty, "is_test": False, "questions": questions, **extra}


def fake_request(session: dict | None = None, headers: dict | None = None, body: Any = None):
    """Minimal stand-in for a Starlette request."""

    raw_body = body if isinstance(body, bytes) else json.dumps(body).encode() if body is not None else b""

    async def _body() -> bytes:
        return raw_body

    return SimpleNamespace(
        session=session if session is not None else {},
        headers=headers or {},
        cookies={},
        query_params={},
        body=_body,
    )


def guest_request(db, progress_map: dict | None = None, **kwargs):
    """A request whose visitor already has stored guest progress."""

    request = fake_request(**kwargs)
    if progress_map is not None:
        GuestProgressStorage(db, request.session)[STORAGE_KEY] = progress_map
    return request
