from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eduup.api.v2.dependencies import get_db, get_optional_user
from eduup.models.user.user_model import User
from eduup.schemas.progress.progress_schema import LeaderboardEntry
from eduup.services import leaderboard_service

router = APIRouter()


@router.get("", response_model=List[LeaderboardEntry], summary="Žebříček podle hvězd")
def read_leaderboard(
    limit: int = 10,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    rows = leaderboard_service.leaderboard_stars(db, limit)
    me = current_user.id if current_user else None
    return [
        LeaderboardEntry(position=position, is_me=row["user_id"] == me, **row)
        for position, row in enumerate(rows, start=1)
    ]
