import pytest
from fastapi import HTTPException

from eduup.api.v2.dependencies import get_current_admin
from eduup.api.v2.endpoints import admin_exercise_router
from eduup.schemas.admin.admin_schema import ExerciseForm
from eduup.services import exercise_templates
from eduup.services.exercise_templates import ExercisePayloadError, prepare_exercise_values
from tests.utils import create_category, create_topic, create_user


def test_templates_are_fresh_copies():
    quiz = exercise_templates.template_for("quiz")
    quiz["questions"].clear()

    assert exercise_templates.template_for("quiz")["questions"]
    assert exercise_templates.template_for("decision") == exercise_templates.template_for("quiz")
    assert exercise_templates.template_for("unknown") == {"questions": [{"question": "", "answer": "", "explanation": ""}]}


def test_prepare_values_parses_payload_and_difficulty():
    values = prepare_exercise_values(
        {"type": "fill", "title": "  Doplň ", "payload": '{"questions": []}', "difficulty": "7", "topic_id": "undefined"}
    )

    assert values["title"] == "Doplň"
    assert values["topic_id"] is None
    assert values["payload"] == {"questions": [], "difficulty": 3, "is_test": False}


def test_prepare_values_test_flag_forces_type():
    values = prepare_exercise_values({"type": "quiz", "title": "Test", "is_test": True, "difficulty": "abc"})

    assert values["type"] == "test"
    assert values["payload"]["difficulty"] == 1
    assert values["payload"]["is_test"] is True


def test_prepare_values_errors():
    with pytest.raises(ExercisePayloadError, match="Payload není platný JSON"):
        prepare_exercise_values({"title": "x", "payload": "{nope"})
    with pytest.raises(ExercisePayloadError, match="Název úlohy je povinný"):
        prepare_exercise_values({"title": "   ", "payload": {}})


def test_analysis_payload_is_normalized():
    payload = exercise_templates.normalize_analysis_payload(
        {"legend": "podmět", "questions": [{"question": "Najdi", "words": [{"word": "pes", "color": "green"}]}]}
    )

    assert payload["legend"] == {"red": "podmět", "blue": ""}
    assert payload["questions"][0]["words"] == [{"word": "pes", "color": "blue"}]
    assert payload["questions"][0]["answer"] == ""


def test_analysis_words_come_from_sentence():
    assert exercise_templates.split_to_words("  Pes   běží\tdomů ") == ["Pes", "běží", "domů"]

    payload = exercise_templates.normalize_analysis_payload({"questions": [{"question": "Pes běží."}]})

    assert payload["questions"][0]["words"] == [
        {"word": "Pes", "color": "blue"},
        {"word": "běží.", "color": "blue"},
    ]


def test_non_admin_is_forbidden(db_session):
    user = create_user(db_session)
    with pytest.raises(HTTPException) as exc:
        get_current_admin(user)
    assert exc.value.status_code == 403


def test_create_update_delete_exercise(db_session):
    admin = create_user(db_session, username="admin", email="admin@example.com", is_superuser=True)
    topic = create_topic(db_session)
    category = create_category(db_session, topic)

    created = admin_exercise_router.create_exercise(
        ExerciseForm(type="quiz", title="Nová", topic_id=topic.id, category_id=category.id, payload={"questions": []}),
        db=db_session,
        admin=admin,
    )
    assert created.created_by == admin.id
    assert created.payload["difficulty"] == 1

    updated = admin_exercise_router.update_exercise(
        created.id,
        ExerciseForm(type="fill", title="Upravená", topic_id=topic.id, difficulty=2, payload="{}"),
        db=db_session,
        admin=admin,
    )
    assert updated.type == "fill"
    assert updated.category_id is None
    assert updated.payload == {"difficulty": 2, "is_test": False}

    recent = admin_exercise_router.list_recent_exercises(db=db_session, admin=admin)
    assert [exercise.id for exercise in recent] == [created.id]

    admin_exercise_router.delete_exercise(created.id, db=db_session, admin=admin)
    with pytest.raises(HTTPException) as exc:
        admin_exercise_router.delete_exercise(created.id, db=db_session, admin=admin)
    assert exc.value.status_code == 404


def test_create_rejects_bad_input(db_session):
    admin = create_user(db_session, username="admin", email="admin@example.com", is_superuser=True)

    with pytest.raises(HTTPException) as bad_json:
        admin_exercise_router.create_exercise(ExerciseForm(title="x", payload="{"), db=db_session, admin=admin)
    with pytest.raises(HTTPException) as bad_topic:
        admin_exercise_router.create_exercise(ExerciseForm(title="x", topic_id="missing"), db=db_session, admin=admin)

    assert bad_json.value.status_code == 400
    assert bad_topic.value.status_code == 400
