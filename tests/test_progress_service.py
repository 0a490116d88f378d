from datetime import date, datetime, timezone

from eduup.crud import progress_crud, streak_crud
from eduup.models.progress.exercise_attempt_model import ExerciseAttempt
from eduup.models.progress.daily_activity_model import UserDailyActivity
from eduup.services import progress_service
from eduup.services.progress_service import ProgressService
from eduup.services.scoring_service import GradeResult
from tests.utils import create_exercise, create_topic, create_user, quiz_payload


def test_upsert_skips_guests_and_missing_ids(db_session):
    assert ProgressService(db_session, None).upsert_progress("ex1") == {"skipped": True, "reason": "not_logged_in"}
    assert ProgressService(db_session, 1).upsert_progress(None) == {"skipped": True, "reason": "missing_exerciseId"}


def test_upsert_keeps_best_values_and_completion(db_session):
    user = create_user(db_session)
    service = ProgressService(db_session, user.id)

    first = service.upsert_progress("ex1", score=150, stars=7, completed=True)
    completed_at = first.completed_at
    second = service.upsert_progress("ex1", score=20, stars=1, completed=False)

    assert second.id == first.id
    assert second.attempts == 2
    assert second.best_score == 100
    assert second.best_stars == 3
    assert second.completed is True
    assert second.completed_at == completed_at


def test_first_completion_starts_streak(db_session):
    user = create_user(db_session)

    ProgressService(db_session, user.id).upsert_progress("ex1", score=90, stars=3)
    ProgressService(db_session, user.id).upsert_progress("ex2", score=90, stars=3)

    streak = streak_crud.get_streak(db_session, user.id)
    assert streak.streak_count == 1
    assert streak.last_active_date == streak_crud.utc_today()


def test_bump_streak_day_transitions(db_session):
    user = create_user(db_session)

    streak_crud.bump_streak(db_session, user.id, today=date(2024, 3, 1))
    streak_crud.bump_streak(db_session, user.id, today=date(2024, 3, 2))
    streak = streak_crud.bump_streak(db_session, user.id, today=date(2024, 3, 2))
    assert streak.streak_count == 2
    assert streak.longest_streak == 2

    streak = streak_crud.bump_streak(db_session, user.id, today=date(2024, 3, 5))
    assert streak.streak_count == 1
    assert streak.longest_streak == 2
    assert streak.longest_streak_date == date(2024, 3, 2)


def _result(score=67, stars=2):
    return GradeResult(
        score=score,
        stars=stars,
        correct_count=2,
        total=3,
        items=[{"index": 1, "correct": False}, {"index": 0, "correct": True}],
    )


def test_record_completion_is_idempotent_per_attempt_key(db_session):
    user = create_user(db_session)
    topic = create_topic(db_session)
    exercise = create_exercise(db_session, topic=topic, payload=quiz_payload())
    service = ProgressService(db_session, user.id)

    stored = service.record_completion(exercise, _result(), "attempt-1", best_combo=4)
    repeated = service.record_completion(exercise, _result(score=100, stars=3), "attempt-1")

    assert stored["duplicate"] is False
    assert stored["attempt"].items[0]["index"] == 0
    assert stored["attempt"].best_combo == 4
    assert repeated["duplicate"] is True
    assert repeated["attempt"].id == stored["attempt"].id
    assert repeated["progress"].best_score == 67
    assert repeated["progress"].attempts == 1

    activity = db_session.query(UserDailyActivity).filter_by(user_id=user.id).one()
    assert activity.exercises_completed == 1


def test_record_completion_survives_concurrent_duplicate(db_session, monkeypatch):
    user = create_user(db_session)
    exercise = create_exercise(db_session, topic=create_topic(db_session), payload=quiz_payload())
    service = ProgressService(db_session, user.id)
    stored = service.record_completion(exercise, _result(), "attempt-1")
    stored_id = stored["attempt"].id

    # The other request committed between our lookup and our insert.
    real_get_attempt = progress_crud.get_attempt
    lookups = []

    def stale_first_lookup(*args):
        lookups.append(args)
        return None if len(lookups) == 1 else real_get_attempt(*args)

    monkeypatch.setattr(progress_crud, "get_attempt", stale_first_lookup)

    repeated = service.record_completion(exercise, _result(score=100, stars=3), "attempt-1")

    assert repeated["duplicate"] is True
    assert repeated["attempt"].id == stored_id
    assert repeated["progress"].attempts == 1
    assert db_session.query(ExerciseAttempt).count() == 1
    activity = db_session.query(UserDailyActivity).filter_by(user_id=user.id).one()
    assert activity.exercises_completed == 1


def test_push_attempt_prunes_history(db_session):
    user = create_user(db_session)
    for index in range(4):
        progress_crud.push_attempt(
            db_session,
            ExerciseAttempt(user_id=user.id, exercise_id="ex1", attempt_key=f"k{index}", items=[]),
            limit=2,
        )

    attempts = progress_crud.list_attempts(db_session, user.id, "ex1")
    assert [attempt.attempt_key for attempt in attempts] == ["k3", "k2"]


def test_lookup_prefers_stored_rows():
    remote = [{"exercise_id": "a", "completed": True, "best_score": 90, "best_stars": 3}]
    local = {"b": {"completed": True, "bestScore": 50, "bestStars": 1}}

    assert progress_service.build_progress_lookup(remote, local) == {"a": {"completed": True, "score": 90, "stars": 3}}
    assert progress_service.build_progress_lookup([], local) == {"b": {"completed": True, "score": 50, "stars": 1}}


def test_stats_skip_test_exercises():
    exercises = [
        {"id": "a", "topic_id": "t1", "difficulty": 1},
        {"id": "b", "topic_id": "t1", "difficulty": 1},
        {"id": "t", "topic_id": "t1", "difficulty": 1, "is_test": True},
    ]
    lookup = {
        "a": {"completed": True, "score": 100, "stars": 3},
        "t": {"completed": True, "score": 100, "stars": 3},
    }

    stats = progress_service.calc_stats_for_exercises(exercises, lookup)

    assert stats == {"total": 2, "max_stars": 6, "completed_count": 1, "earned_stars": 3, "avg_score": 100}
    assert progress_service.topic_progress(exercises, lookup, ["t1", "t2"]) == {
        "t1": {"completed": 1, "total": 2, "stars": 3, "max_stars": 6},
        "t2": {"completed": 0, "total": 0, "stars": 0, "max_stars": 0},
    }


def test_test_unlocks_after_every_exercise_of_the_level():
    exercises = [
        {"id": "a", "difficulty": 1},
        {"id": "b", "difficulty": 1},
        {"id": "c", "difficulty": 2},
    ]

    assert not progress_service.is_test_unlocked(exercises, 1, {"a": {"completed": True}})
    assert progress_service.is_test_unlocked(exercises, 1, {"a": {"completed": True}, "b": {"completed": True}})
    assert not progress_service.is_test_unlocked(exercises, 3, {})


def test_subject_stats_rank_topics():
    topics = [
        {"id": "t1", "subject": "Matematika", "name": "Zlomky"},
        {"id": "t2", "subject": "Matematika", "name": "Rovnice"},
        {"id": "t3", "subject": "Čeština", "name": "Slovní druhy"},
    ]
    exercises = [
        {"id": "a", "topic_id": "t1"},
        {"id": "b", "topic_id": "t2"},
        {"id": "c", "topic_id": "t3"},
    ]
    lookup = {
        "a": {"completed": True, "score": 40, "stars": 1},
        "b": {"completed": True, "score": 90, "stars": 3},
        "c": {"completed": True, "score": 100, "stars": 3},
    }

    stats = progress_service.subject_stats("Matematika", topics, exercises, lookup)

    assert stats["completed"] == 2
    assert stats["total_exercises"] == 2
    assert stats["avg_score"] == 65
    assert stats["completion_rate"] == 100
    assert stats["weakest_topics"][0]["topic_name"] == "Zlomky"
    assert stats["strongest_topics"][0]["topic_name"] == "Rovnice"


def test_overall_stats_counts_scored_entries_as_completed():
    exercises = [{"id": "a"}, {"id": "b"}, {"id": "c"}]
    lookup = {"a": {"completed": False, "score": 30, "stars": 1}, "b": {"completed": True, "score": 90, "stars": 3}}

    assert progress_service.overall_stats(exercises, lookup) == {
        "total_completed": 2,
        "total_stars": 4,
        "overall_avg": 60,
    }


def test_activity_map_falls_back_to_completion_dates():
    exercises = [{"id": "a"}, {"id": "b"}, {"id": "t", "is_test": True}]
    day = datetime(2024, 5, 2, 10, tzinfo=timezone.utc)
    rows = [
        {"exercise_id": "a", "completed": True, "completed_at": day},
        {"exercise_id": "b", "completed": True, "completed_at": day},
        {"exercise_id": "t", "completed": True, "completed_at": day},
        {"exercise_id": "gone", "completed": True, "completed_at": day},
    ]

    assert progress_service.activity_map([], rows, exercises) == {"2024-05-02": 2}
    assert progress_service.activity_map(
        [{"day": date(2024, 5, 3), "exercises_completed": 4}], rows, exercises
    ) == {"2024-05-03": 4}
