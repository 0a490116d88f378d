"""Imports every SQLAlchemy model so ``Base.metadata`` knows all tables."""

from eduup.db.base_class import Base

# Users
from eduup.models.user.user_model import User
from eduup.models.user.streak_model import UserStreak

# Catalog
from eduup.models.catalog.subject_model import Subject
from eduup.models.catalog.topic_model import Topic
from eduup.models.catalog.category_model import Category
from eduup.models.catalog.exercise_model import Exercise

# Progress & activity
from eduup.models.progress.user_progress_model import UserProgress
from eduup.models.progress.daily_activity_model import UserDailyActivity
from eduup.models.progress.exercise_attempt_model import ExerciseAttempt
from eduup.models.progress.guest_progress_model import GuestProgress

# Chat
from eduup.models.chat.chat_message_model import ChatMessage

__all__ = (
    "Base",
    "User",
    "UserStreak",
    "Subject",
    "Topic",
    "Category",
    "Exercise",
    "UserProgress",
    "UserDailyActivity",
    "ExerciseAttempt",
    "GuestProgress",
    "ChatMessage",
)
