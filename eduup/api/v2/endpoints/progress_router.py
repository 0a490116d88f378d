"""Progress endpoints: stored rows for accounts, server-side guest map."""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from eduup.api.v2.dependencies import get_current_user, get_db, get_guest_storage, get_optional_user
from eduup.crud import streak_crud
from eduup.models.user.user_model import User
from eduup.schemas.progress.progress_schema import (
    LocalProgressEntry,
    ProgressRead,
    ProgressSaveResponse,
    ProgressUpsert,
    StreakRead,
)
from eduup.services.local_progress_store import LocalProgressStore
from eduup.services.progress_service import ProgressService
from eduup.services.scoring_service import clamp_score, clamp_stars

router = APIRouter()


def _clamped(value: Any, clamp) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return clamp(value)
    return None


@router.post("", response_model=ProgressSaveResponse, summary="Uložit výsledek cvičení")
def save_progress(
    request: Request,
    payload: ProgressUpsert,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Saves into the guest map every time, and into the account when signed in."""
    local_entry = LocalProgressStore(get_guest_storage(request, db)).save_progress(
        payload.exercise_id,
        completed=payload.completed,
        score=_clamped(payload.score, clamp_score),
        stars=_clamped(payload.stars, clamp_stars),
    )

    service = ProgressService(db=db, user_id=current_user.id if current_user else None)
    remote = service.upsert_progress(
        payload.exercise_id, score=payload.score, stars=payload.stars, completed=payload.completed
    )
    if isinstance(remote, dict):
        return ProgressSaveResponse(local=local_entry, skipped=True, reason=remote["reason"])
    return ProgressSaveResponse(local=local_entry, remote=ProgressRead.model_validate(remote))


@router.get("/me", response_model=List[ProgressRead], summary="Progres přihlášeného uživatele")
def read_my_progress(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ProgressService(db=db, user_id=current_user.id).fetch_my_progress()


@router.get("/local", response_model=Dict[str, LocalProgressEntry], summary="Progres uložený v relaci")
def read_local_progress(request: Request, db: Session = Depends(get_db)):
    return LocalProgressStore(get_guest_storage(request, db)).get_progress_map()


@router.delete("/local", summary="Smazat progres uložený v relaci")
def clear_local_progress(request: Request, db: Session = Depends(get_db)):
    LocalProgressStore(get_guest_storage(request, db)).clear_all_progress()
    return {"status": "cleared"}


@router.get("/streak", response_model=StreakRead, summary="Denní série")
def read_streak(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    streak = streak_crud.get_streak(db, current_user.id)
    return streak if streak else StreakRead()
