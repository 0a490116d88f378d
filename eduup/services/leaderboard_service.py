"""Star leaderboard and the rank badge shown on the profile."""

import logging
import math
from typing import Any, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from eduup.models.progress.user_progress_model import UserProgress
from eduup.models.user.user_model import User

logger = logging.getLogger(__name__)

LEADERBOARD_LIMITS = (10, 100)
RANK_SCAN_LIMIT = 5000


def clamp_limit(limit: Any) -> int:
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return LEADERBOARD_LIMITS[0]
    return max(1, min(LEADERBOARD_LIMITS[-1], value))


def _leaderboard_query(db: Session):
    total_stars = func.coalesce(func.sum(UserProgress.best_stars), 0).label("total_stars")
    completed_count = func.coalesce(
        func.sum(case((UserProgress.completed.is_(True), 1), else_=0)), 0
    ).label("completed_count")

    return (
        db.query(
            User.id.label("user_id"),
            User.username.label("username"),
            total_stars,
            completed_count,
            func.max(UserProgress.last_played_at).label("last_active"),
        )
        .join(UserProgress, UserProgress.user_id == User.id)
        .filter(User.username.isnot(None), User.username != "")
        .group_by(User.id, User.username)
        .order_by(total_stars.desc(), completed_count.desc(), User.id.asc())
    )


def leaderboard_stars(db: Session, limit: Any = 10) -> list[dict[str, Any]]:
    rows = _leaderboard_query(db).limit(clamp_limit(limit)).all()
    return [
        {
            "user_id": row.user_id,
            "username": row.username,
            "total_stars": int(row.total_stars or 0),
            "completed_count": int(row.completed_count or 0),
            "last_active": row.last_active,
        }
        for row in rows
    ]


def rank_info(db: Session, user_id: int) -> Optional[dict[str, int]]:
    """Position of the user on the full leaderboard, or None when absent."""

    user_ids = [row.user_id for row in _leaderboard_query(db).limit(RANK_SCAN_LIMIT).all()]
    total = len(user_ids)
    if total == 0 or user_id not in user_ids:
        return None

    rank = user_ids.index(user_id) + 1
    return {"rank": rank, "total": total, "percentile": math.ceil(rank / total * 100)}


def rank_badge(rank: Optional[int], total: Optional[int]) -> Optional[str]:
    if not rank or not total:
        return None
    if rank == 1:
        return "🥇 #1"
    if rank == 2:
        return "🥈 #2"
    if rank == 3:
        return "🥉 #3"
    for threshold in (10, 25, 50, 100):
        if rank <= threshold:
            return f"TOP {threshold}"

    percentile = math.ceil(rank / total * 100)
    return f"TOP {min(max(percentile, 1), 100)}%"
