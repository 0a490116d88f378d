import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, MutableMapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eduup.crud import progress_crud, streak_crud
from eduup.models.catalog.exercise_model import Exercise
from eduup.models.progress.exercise_attempt_model import ExerciseAttempt
from eduup.models.progress.user_progress_model import UserProgress
from eduup.services.local_progress_store import LocalProgressStore
from eduup.services.play_service import exercise_difficulty, is_test_exercise
from eduup.services.scoring_service import GradeResult, clamp_score, clamp_stars, round_half_up

logger = logging.getLogger(__name__)


# ==============================================================================
# Progress entries
# ==============================================================================

def _read(entry: Any, *keys: str) -> Any:
    for key in keys:
        value = entry.get(key) if isinstance(entry, Mapping) else getattr(entry, key, None)
        if value is not None:
            return value
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_entry(entry: Any) -> Optional[dict[str, Any]]:
    """Common shape of a database row and a guest progress entry.

    ``score`` and ``stars`` are the best values when known, else the last.
    """
    if entry is None:
        return None
    score = _read(entry, "best_score", "bestScore", "score")
    stars = _read(entry, "best_stars", "bestStars", "stars")
    return {
        "completed": bool(_read(entry, "completed")),
        "score": score if _is_number(score) else None,
        "stars": stars if _is_number(stars) else None,
    }


def build_progress_lookup(
    remote_rows: Iterable[Any] = (),
    local_map: Optional[Mapping[str, Any]] = None,
) -> dict[str, dict[str, Any]]:
    """Stored rows win as soon as there are any; the guest map is the fallback."""

    lookup: dict[str, dict[str, Any]] = {}
    for row in remote_rows or []:
        exercise_id = _read(row, "exercise_id", "exerciseId")
        if exercise_id is not None:
            lookup[str(exercise_id)] = normalize_entry(row)
    if lookup:
        return lookup

    for exercise_id, entry in (local_map or {}).items():
        normalized = normalize_entry(entry)
        if normalized is not None:
            lookup[str(exercise_id)] = normalized
    return lookup


def progress_lookup_for(
    db: Session,
    user_id: Optional[int],
    storage: Optional[MutableMapping[str, Any]] = None,
) -> dict[str, dict[str, Any]]:
    """Lookup used by every page: stored rows of the user, else the guest map."""
    remote_rows = progress_crud.list_progress_for_user(db, user_id) if user_id else []
    local_map = LocalProgressStore(storage).get_progress_map() if storage is not None else {}
    return build_progress_lookup(remote_rows, local_map)


def _countable(exercises: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    return [exercise for exercise in exercises if not is_test_exercise(exercise)]


# ==============================================================================
# Aggregations
# ==============================================================================

def calc_stats_for_exercises(
    exercises: Iterable[Mapping[str, Any]],
    progress_by_id: Mapping[str, Mapping[str, Any]],
) -> dict[str, int]:
    items = _countable(exercises)
    completed_count = 0
    earned_stars = 0
    score_sum = 0
    score_count = 0

    for exercise in items:
        entry = progress_by_id.get(str(exercise.get("id")))
        if not entry:
            continue
        if entry.get("completed"):
            completed_count += 1
        if _is_number(entry.get("stars")):
            earned_stars += entry["stars"]
        if _is_number(entry.get("score")):
            score_sum += entry["score"]
            score_count += 1

    return {
        "total": len(items),
        "max_stars": len(items) * 3,
        "completed_count": completed_count,
        "earned_stars": earned_stars,
        "avg_score": round_half_up(score_sum / score_count) if score_count else 0,
    }


def _summary(exercises: list[Mapping[str, Any]], progress_by_id: Mapping[str, Mapping[str, Any]]) -> dict[str, int]:
    stats = calc_stats_for_exercises(exercises, progress_by_id)
    return {
        "completed": stats["completed_count"],
        "total": stats["total"],
        "stars": stats["earned_stars"],
        "max_stars": stats["max_stars"],
    }


def _group_summaries(
    exercises: Iterable[Mapping[str, Any]],
    progress_by_id: Mapping[str, Mapping[str, Any]],
    key: str,
    ids: Iterable[str],
) -> dict[str, dict[str, int]]:
    grouped: dict[str, list[Mapping[str, Any]]] = defaultdict(list)
    for exercise in exercises:
        if exercise.get(key) is not None:
            grouped[str(exercise[key])].append(exercise)
    return {str(group_id): _summary(grouped.get(str(group_id), []), progress_by_id) for group_id in ids}


def topic_progress(exercises, progress_by_id, topic_ids: Iterable[str]) -> dict[str, dict[str, int]]:
    return _group_summaries(exercises, progress_by_id, "topic_id", topic_ids)


def category_progress(exercises, progress_by_id, category_ids: Iterable[str]) -> dict[str, dict[str, int]]:
    return _group_summaries(exercises, progress_by_id, "category_id", category_ids)


def grade_progress(
    topics: Iterable[Any],
    exercises: Iterable[Mapping[str, Any]],
    progress_by_id: Mapping[str, Mapping[str, Any]],
) -> dict[int, dict[str, int]]:
    """Progress per school grade over the given topics (usually one subject)."""

    topic_grades = {str(_read(topic, "id")): _read(topic, "grade") for topic in topics}
    by_grade: dict[int, list[Mapping[str, Any]]] = {grade: [] for grade in topic_grades.values() if grade is not None}
    for exercise in exercises:
        grade = topic_grades.get(str(exercise.get("topic_id")))
        if grade is not None:
            by_grade[grade].append(exercise)
    return {grade: _summary(items, progress_by_id) for grade, items in sorted(by_grade.items())}


def is_test_unlocked(
    exercises: Iterable[Mapping[str, Any]],
    difficulty: int,
    progress_by_id: Mapping[str, Mapping[str, Any]],
) -> bool:
    same_level = [
        exercise
        for exercise in _countable(exercises)
        if exercise_difficulty(exercise) == difficulty
    ]
    if not same_level:
        return False
    return all((progress_by_id.get(str(exercise.get("id"))) or {}).get("completed") for exercise in same_level)


def subject_stats(
    subject: str,
    topics: Iterable[Any],
    exercises: Iterable[Mapping[str, Any]],
    progress_by_id: Mapping[str, Mapping[str, Any]],
) -> dict[str, Any]:
    """Profile card of one subject, with its weakest and strongest topics."""

    subject_topics = [topic for topic in topics if _read(topic, "subject") == subject]
    topic_ids = {str(_read(topic, "id")) for topic in subject_topics}
    subject_exercises = [
        exercise for exercise in _countable(exercises) if str(exercise.get("topic_id")) in topic_ids
    ]

    completed = 0
    total_stars = 0
    score_sum = 0
    score_count = 0
    for exercise in subject_exercises:
        entry = progress_by_id.get(str(exercise.get("id")))
        if not entry:
            continue
        if entry.get("completed"):
            completed += 1
        total_stars += entry.get("stars") or 0
        score_sum += entry.get("score") or 0
        score_count += 1

    performance = []
    for topic in subject_topics:
        topic_id = str(_read(topic, "id"))
        scores = [
            (progress_by_id[str(exercise.get("id"))].get("score") or 0)
            for exercise in subject_exercises
            if str(exercise.get("topic_id")) == topic_id and str(exercise.get("id")) in progress_by_id
        ]
        if scores:
            performance.append(
                {
                    "topic_id": topic_id,
                    "topic_name": _read(topic, "name"),
                    "avg_score": sum(scores) / len(scores),
                    "count": len(scores),
                }
            )
    performance.sort(key=lambda item: item["avg_score"])

    total = len(subject_exercises)
    return {
        "subject": subject,
        "completed": completed,
        "total_exercises": total,
        "avg_score": round_half_up(score_sum / score_count) if score_count else 0,
        "total_stars": total_stars,
        "max_stars": total * 3,
        "completion_rate": round_half_up(completed / total * 100) if total else 0,
        "weakest_topics": performance[:3],
        "strongest_topics": list(reversed(performance[-3:])),
    }


def overall_stats(
    exercises: Iterable[Mapping[str, Any]],
    progress_by_id: Mapping[str, Mapping[str, Any]],
) -> dict[str, int]:
    total_completed = 0
    total_stars = 0
    score_sum = 0
    score_count = 0
    for exercise in _countable(exercises):
        entry = progress_by_id.get(str(exercise.get("id")))
        if not entry:
            continue
        score = entry.get("score") or 0
        stars = entry.get("stars") or 0
        if entry.get("completed") or score > 0 or stars > 0:
            total_completed += 1
        total_stars += stars
        score_sum += score
        score_count += 1

    return {
        "total_completed": total_completed,
        "total_stars": total_stars,
        "overall_avg": round_half_up(score_sum / score_count) if score_count else 0,
    }


def _as_day(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def activity_map(
    daily_rows: Iterable[Any],
    progress_rows: Iterable[Any],
    exercises: Iterable[Mapping[str, Any]],
) -> dict[str, int]:
    """ISO day -> number of exercises finished that day."""

    daily_rows = list(daily_rows or [])
    if daily_rows:
        result: dict[str, int] = {}
        for row in daily_rows:
            day = _as_day(_read(row, "day"))
            if day is not None:
                result[day.isoformat()] = result.get(day.isoformat(), 0) + int(_read(row, "exercises_completed") or 0)
        return result

    known = {str(exercise.get("id")): is_test_exercise(exercise) for exercise in exercises}
    derived: dict[str, int] = defaultdict(int)
    for row in progress_rows or []:
        exercise_id = str(_read(row, "exercise_id"))
        if known and exercise_id not in known:
            continue
        if known.get(exercise_id) or not _read(row, "completed"):
            continue
        day = _as_day(_read(row, "completed_at", "updated_at", "created_at"))
        if day is not None:
            derived[day.isoformat()] += 1
    return dict(derived)


# ==============================================================================
# Stored progress of a signed-in user
# ==============================================================================

class ProgressService:
    def __init__(self, db: Session, user_id: Optional[int]):
        self.db = db
        self.user_id = user_id

    def upsert_progress(
        self,
        exercise_id: Optional[str],
        score: Any = 0,
        stars: Any = 0,
        completed: bool = True,
    ) -> UserProgress | dict[str, Any]:
        """
        Merges a result into the user's row for the exercise.

        Best values only grow and ``completed`` never reverts. The first
        completion of an exercise also moves the daily streak.
        """
        if not self.user_id:
            return {"skipped": True, "reason": "not_logged_in"}
        if not exercise_id:
            return {"skipped": True, "reason": "missing_exerciseId"}

        exercise_id = str(exercise_id)
        now = datetime.now(timezone.utc)
        row = progress_crud.get_progress(self.db, self.user_id, exercise_id)
        if not row:
            row = UserProgress(
                user_id=self.user_id,
                exercise_id=exercise_id,
                completed=False,
                attempts=0,
                best_score=0,
                best_stars=0,
            )
            self.db.add(row)

        was_completed = bool(row.completed)
        first_completion = bool(completed) and not was_completed

        row.attempts = (row.attempts or 0) + 1
        row.best_score = max(row.best_score or 0, clamp_score(score))
        row.best_stars = max(row.best_stars or 0, clamp_stars(stars))
        row.completed = bool(completed) or was_completed
        if first_completion:
            row.completed_at = now
        row.last_played_at = now
        row.updated_at = now

        self.db.commit()
        self.db.refresh(row)
        logger.info(
            f"--- [PROGRESS] user {self.user_id} exercise {exercise_id}: "
            f"attempts={row.attempts} best_score={row.best_score} best_stars={row.best_stars} ---"
        )

        if first_completion:
            try:
                streak_crud.bump_streak(self.db, self.user_id)
            except SQLAlchemyError as exc:
                self.db.rollback()
                logger.warning(f"bump_streak failed for user {self.user_id}: {exc}")

        return row

    def fetch_my_progress(self) -> list[UserProgress]:
        if not self.user_id:
            return []
        return progress_crud.list_progress_for_user(self.db, self.user_id)

    def record_completion(
        self,
        exercise: Exercise,
        result: GradeResult,
        attempt_key: str,
        best_combo: int = 0,
    ) -> dict[str, Any]:
        """
        Stores a finished play session.

        A repeated submission of the same attempt key returns the stored
        attempt and changes nothing.

        Returns:
            ``{"progress", "attempt", "duplicate"}``.
        """
        existing = progress_crud.get_attempt(self.db, self.user_id, exercise.id, attempt_key)
        if existing:
            logger.info(f"Attempt {attempt_key} of exercise {exercise.id} already recorded for user {self.user_id}")
            return self._duplicate(exercise, existing)

        # The attempt goes in first: a concurrent submit of the same key fails
        # here on the unique key, before any progress is counted.
        try:
            attempt = progress_crud.push_attempt(
                self.db,
                ExerciseAttempt(
                    user_id=self.user_id,
                    exercise_id=exercise.id,
                    attempt_key=attempt_key,
                    exercise_title=exercise.title,
                    topic_id=exercise.topic_id,
                    score=result.score,
                    stars=result.stars,
                    correct_count=result.correct_count,
                    total=result.total,
                    best_combo=max(0, int(best_combo or 0)),
                    items=sorted(result.items, key=lambda item: item.get("index") or 0),
                ),
            )
        except IntegrityError:
            self.db.rollback()
            stored = progress_crud.get_attempt(self.db, self.user_id, exercise.id, attempt_key)
            if stored is None:
                raise
            logger.info(f"Attempt {attempt_key} of exercise {exercise.id} was recorded concurrently for user {self.user_id}")
            return self._duplicate(exercise, stored)

        progress = self.upsert_progress(exercise.id, score=result.score, stars=result.stars, completed=True)

        try:
            streak_crud.inc_daily_exercises(self.db, self.user_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning(f"inc_daily_exercises failed for user {self.user_id}: {exc}")

        return {"progress": progress, "attempt": attempt, "duplicate": False}

    def _duplicate(self, exercise: Exercise, attempt: ExerciseAttempt) -> dict[str, Any]:
        return {
            "progress": progress_crud.get_progress(self.db, self.user_id, exercise.id),
            "attempt": attempt,
            "duplicate": True,
        }
