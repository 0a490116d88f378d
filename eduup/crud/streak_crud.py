# Fichier: eduup/crud/streak_crud.py

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from eduup.models.progress.daily_activity_model import UserDailyActivity
from eduup.models.user.streak_model import UserStreak

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def get_streak(db: Session, user_id: int) -> Optional[UserStreak]:
    return db.query(UserStreak).filter(UserStreak.user_id == user_id).first()


def bump_streak(db: Session, user_id: int, today: Optional[date] = None) -> UserStreak:
    """
    Registers activity for ``today`` on the user's daily streak.

    Args:
        db: La session de base de données.
        user_id: The user whose streak moves.
        today: Day of the activity, UTC date by default.

    Returns:
        The streak row. A second call on the same day leaves it unchanged.
    """
    today = today or utc_today()
    streak = get_streak(db, user_id)

    if not streak:
        streak = UserStreak(user_id=user_id, streak_count=0, longest_streak=0)
        db.add(streak)

    if streak.last_active_date == today:
        return streak

    if streak.last_active_date == today - timedelta(days=1):
        streak.streak_count = (streak.streak_count or 0) + 1
    else:
        streak.streak_count = 1

    streak.last_active_date = today
    if streak.streak_count > (streak.longest_streak or 0):
        streak.longest_streak = streak.streak_count
        streak.longest_streak_date = today

    db.commit()
    db.refresh(streak)
    logger.info(f"STREAK: user {user_id} -> {streak.streak_count} (longest {streak.longest_streak})")
    return streak


def inc_daily_exercises(db: Session, user_id: int, day: Optional[date] = None) -> UserDailyActivity:
    """Adds one finished exercise to the (user, day) activity row."""
    day = day or utc_today()
    row = (
        db.query(UserDailyActivity)
        .filter(UserDailyActivity.user_id == user_id, UserDailyActivity.day == day)
        .first()
    )
    if not row:
        row = UserDailyActivity(user_id=user_id, day=day, exercises_completed=0)
        db.add(row)

    row.exercises_completed = (row.exercises_completed or 0) + 1
    db.commit()
    db.refresh(row)
    return row


def list_daily_activity(db: Session, user_id: int) -> list[UserDailyActivity]:
    return (
        db.query(UserDailyActivity)
        .filter(UserDailyActivity.user_id == user_id)
        .order_by(UserDailyActivity.day.asc())
        .all()
    )
