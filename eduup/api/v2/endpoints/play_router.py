"""Play sessions: question selection, server-side grading and attempt review."""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from eduup.api.v2.dependencies import get_current_user, get_db, get_guest_storage, get_optional_user
from eduup.crud import catalog_crud, progress_crud
from eduup.models.catalog.exercise_model import Exercise
from eduup.models.user.user_model import User
from eduup.schemas.play.play_schema import (
    AttemptRead,
    PlaySession,
    Recommendation,
    SubmissionRequest,
    SubmissionResponse,
)
from eduup.services import play_service, scoring_service
from eduup.services.local_progress_store import LocalProgressStore
from eduup.services.progress_service import ProgressService

router = APIRouter()
logger = logging.getLogger(__name__)


def _exercise_or_404(db: Session, exercise_id: str) -> Exercise:
    exercise = catalog_crud.get_exercise(db, exercise_id)
    if not exercise:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exercise not found")
    return exercise


def _active_exercise(db: Session, exercise: Exercise, attempt_key: str) -> tuple[dict, list[dict]]:
    scope = [catalog_crud.exercise_to_dict(row) for row in catalog_crud.list_scope_exercises(db, exercise)]
    active = play_service.build_active_exercise(
        catalog_crud.exercise_to_dict(exercise),
        scope,
        play_service.session_seed(exercise.id, attempt_key),
    )
    return active, scope


@router.get("/{exercise_id}", response_model=PlaySession, summary="Démarrer une session de jeu")
def start_session(
    exercise_id: str,
    attempt_key: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Questions of one play session.

    The attempt key seeds the question order; reuse it on submit so the
    answers are graded against the same questions.
    """
    exercise = _exercise_or_404(db, exercise_id)
    attempt_key = attempt_key or uuid.uuid4().hex
    active, _ = _active_exercise(db, exercise, attempt_key)
    questions = active.get("questions") if isinstance(active.get("questions"), list) else []
    return PlaySession(attempt_key=attempt_key, exercise=active, question_count=len(questions))


@router.post("/{exercise_id}/submit", response_model=SubmissionResponse, summary="Odevzdat odpovědi")
def submit_answers(
    request: Request,
    exercise_id: str,
    submission: SubmissionRequest,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    exercise = _exercise_or_404(db, exercise_id)
    active, scope = _active_exercise(db, exercise, submission.attempt_key)

    try:
        result = scoring_service.grade_submission(
            active,
            submission.answers,
            match_attempts=[attempt.model_dump() for attempt in submission.match_attempts],
            finished_early=submission.finished_early,
        )
    except (scoring_service.UnsupportedExerciseType, scoring_service.IncompleteSubmission) as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    duplicate = False
    if current_user:
        stored = ProgressService(db, current_user.id).record_completion(
            exercise, result, submission.attempt_key, best_combo=submission.best_combo
        )
        duplicate = stored["duplicate"]

    # A resubmitted attempt was already counted.
    if not duplicate:
        LocalProgressStore(get_guest_storage(request, db)).save_progress(
            exercise.id, completed=True, score=result.score, stars=result.stars
        )

    recommendation = play_service.recommend_next(active, result.score, scope)
    return SubmissionResponse(
        result=result.as_dict(),
        recommendation=(
            Recommendation(
                button=recommendation["button"],
                title=recommendation["title"],
                text=recommendation["text"],
                direction=recommendation["direction"],
                target_difficulty=recommendation["target_difficulty"],
                exercise_id=str(recommendation["exercise"]["id"]),
                exercise_title=recommendation["exercise"].get("title"),
            )
            if recommendation
            else None
        ),
        saved_remotely=current_user is not None,
        duplicate=duplicate,
    )


@router.get("/{exercise_id}/attempts", response_model=List[AttemptRead], summary="Historie pokusů")
def list_attempts(
    exercise_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return progress_crud.list_attempts(db, current_user.id, exercise_id)


@router.get("/{exercise_id}/attempts/{attempt_key}", response_model=AttemptRead, summary="Rozbor pokusu")
def get_attempt(
    exercise_id: str,
    attempt_key: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    attempt = progress_crud.get_attempt(db, current_user.id, exercise_id, attempt_key)
    if not attempt:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found")
    return attempt
