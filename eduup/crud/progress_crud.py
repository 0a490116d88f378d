# Fichier: eduup/crud/progress_crud.py

import logging
from typing import Optional

from sqlalchemy.orm import Session

from eduup.core.config import settings
from eduup.models.progress.exercise_attempt_model import ExerciseAttempt
from eduup.models.progress.user_progress_model import UserProgress

logger = logging.getLogger(__name__)


# ==============================================================================
# USER PROGRESS
# ==============================================================================

def get_progress(db: Session, user_id: int, exercise_id: str) -> Optional[UserProgress]:
    return (
        db.query(UserProgress)
        .filter(UserProgress.user_id == user_id, UserProgress.exercise_id == str(exercise_id))
        .first()
    )


def list_progress_for_user(db: Session, user_id: int) -> list[UserProgress]:
    """Every progress row of the user, oldest first."""
    return (
        db.query(UserProgress)
        .filter(UserProgress.user_id == user_id)
        .order_by(UserProgress.id.asc())
        .all()
    )


# ==============================================================================
# ATTEMPT HISTORY
# ==============================================================================

def get_attempt(db: Session, user_id: int, exercise_id: str, attempt_key: str) -> Optional[ExerciseAttempt]:
    return (
        db.query(ExerciseAttempt)
        .filter(
            ExerciseAttempt.user_id == user_id,
            ExerciseAttempt.exercise_id == str(exercise_id),
            ExerciseAttempt.attempt_key == attempt_key,
        )
        .first()
    )


def list_attempts(db: Session, user_id: int, exercise_id: str) -> list[ExerciseAttempt]:
    """Attempts of one exercise, newest first."""
    return (
        db.query(ExerciseAttempt)
        .filter(ExerciseAttempt.user_id == user_id, ExerciseAttempt.exercise_id == str(exercise_id))
        .order_by(ExerciseAttempt.created_at.desc(), ExerciseAttempt.id.desc())
        .all()
    )


def push_attempt(db: Session, attempt: ExerciseAttempt, limit: Optional[int] = None) -> ExerciseAttempt:
    """
    Stores a finished attempt and drops the oldest ones over the limit.

    Args:
        db: La session de base de données.
        attempt: The new, not yet persisted attempt.
        limit: How many attempts to keep per (user, exercise).

    Returns:
        The persisted attempt.
    """
    limit = limit or settings.ATTEMPT_HISTORY_LIMIT
    db.add(attempt)
    db.flush()

    stale = list_attempts(db, attempt.user_id, attempt.exercise_id)[limit:]
    for old in stale:
        db.delete(old)
    if stale:
        logger.info(f"ATTEMPTS: pruned {len(stale)} old attempt(s) of exercise {attempt.exercise_id} for user {attempt.user_id}")

    db.commit()
    db.refresh(attempt)
    return attempt
