"""Profile page: streak, rank, per-subject statistics and the activity calendar."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from eduup.api.v2.dependencies import get_current_user, get_db, get_guest_storage
from eduup.crud import catalog_crud, progress_crud, streak_crud
from eduup.models.user.user_model import User
from eduup.schemas.progress.progress_schema import ProfileResponse, RankInfo, StreakRead
from eduup.services import leaderboard_service, progress_service

router = APIRouter()


@router.get("", response_model=ProfileResponse)
def read_profile(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    exercises = [catalog_crud.exercise_to_dict(row) for row in catalog_crud.list_all_exercises(db)]
    known_ids = {str(exercise["id"]) for exercise in exercises}
    topics = catalog_crud.list_topics(db)

    lookup = progress_service.progress_lookup_for(db, current_user.id, get_guest_storage(request, db))
    # Rows of deleted exercises do not count.
    lookup = {exercise_id: entry for exercise_id, entry in lookup.items() if exercise_id in known_ids}

    streak = streak_crud.get_streak(db, current_user.id)
    rank = leaderboard_service.rank_info(db, current_user.id)
    subjects = [subject.name for subject in catalog_crud.list_subjects(db)]
    if not subjects:
        subjects = sorted({topic.subject for topic in topics})

    return ProfileResponse(
        username=current_user.username,
        email=current_user.email,
        created_at=current_user.created_at,
        is_admin=current_user.is_admin,
        streak=StreakRead.model_validate(streak) if streak else StreakRead(),
        rank=(
            RankInfo(**rank, badge=leaderboard_service.rank_badge(rank["rank"], rank["total"]))
            if rank
            else None
        ),
        overall=progress_service.overall_stats(exercises, lookup),
        subjects=[progress_service.subject_stats(name, topics, exercises, lookup) for name in subjects],
        activity=progress_service.activity_map(
            streak_crud.list_daily_activity(db, current_user.id),
            progress_crud.list_progress_for_user(db, current_user.id),
            exercises,
        ),
    )
