"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("FRONTEND_BASE_URL", "http://localhost:5173")

# Ensure the eduup package is importable when tests run from the repo root.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from eduup.db.base_class import Base
from eduup.models.user.user_model import User
from eduup.models.user.streak_model import UserStreak
from eduup.models.catalog.subject_model import Subject
from eduup.models.catalog.topic_model import Topic
from eduup.models.catalog.category_model import Category
from eduup.models.catalog.exercise_model import Exercise
from eduup.models.progress.user_progress_model import UserProgress
from eduup.models.progress.daily_activity_model import UserDailyActivity
from eduup.models.progress.exercise_attempt_model import ExerciseAttempt
from eduup.models.progress.guest_progress_model import GuestProgress
from eduup.models.chat.chat_message_model import ChatMessage


TABLES = [
    User.__table__,
    UserStreak.__table__,
    Subject.__table__,
    Topic.__table__,
    Category.__table__,
    Exercise.__table__,
    UserProgress.__table__,
    UserDailyActivity.__table__,
    ExerciseAttempt.__table__,
    GuestProgress.__table__,
    ChatMessage.__table__,
]


@pytest.fixture()
def engine():
    # One shared connection so threadpool workers see the same in-memory database.
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=TABLES)
        engine.dispose()


@pytest.fixture()
def db_session(engine) -> Session:
    SessionLocal = sessionmaker(bind=engine, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
