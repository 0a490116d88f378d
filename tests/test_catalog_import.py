import json

import pytest

from eduup.models.catalog.category_model import Category
from eduup.models.catalog.exercise_model import Exercise
from eduup.models.catalog.subject_model import Subject
from eduup.models.catalog.topic_model import Topic
from eduup.utils import catalog_import


def test_normalize_record_recovers_types():
    record = catalog_import.normalize_record(
        {"order": "3", "grade": "5", "difficulty": "1.5", "is_test": "TRUE", "description": "null", "name": "Slovní druhy"}
    )

    assert record["order"] == 3
    assert record["grade"] == 5
    assert record["difficulty"] == 1.5
    assert record["is_test"] is True
    assert record["description"] is None
    assert record["name"] == "Slovní druhy"


def test_normalize_exercise_parses_nested_fields(caplog):
    record = catalog_import.normalize_exercise(
        {
            "id": "e1",
            "category_id": "",
            "options": '["a", "b"]',
            "content": "plain text",
            "questions": "{broken",
        }
    )

    assert record["options"] == ["a", "b"]
    assert record["content"] == "plain text"
    assert record["category_id"] is None
    assert record["questions"] == []
    assert "unreadable questions" in caplog.text


def test_exercise_values_split_columns_and_payload():
    values = catalog_import.exercise_values(
        {
            "id": "e1",
            "topic_id": "undefined",
            "title": "Doplň i/y",
            "difficulty": 2,
            "created_by": "someone@example.com",
            "payload": {"hint": "vyjmenovaná slova"},
            "questions": [{"question": "b_t", "answer": "y"}],
        }
    )

    assert values["type"] == "quiz"
    assert values["topic_id"] is None
    assert values["category_id"] is None
    assert values["payload"] == {
        "hint": "vyjmenovaná slova",
        "difficulty": 2,
        "questions": [{"question": "b_t", "answer": "y"}],
    }


def _export(tmp_path):
    datasets = {
        "subject": [{"name": "Čeština", "icon": "📚", "order": "1"}],
        "topic": [
            {"id": "t1", "subject": "Čeština", "grade": "5", "order": "1", "name": "Vyjmenovaná slova"},
            {"id": "t2", "subject": "Čeština", "grade": "", "name": "Bez ročníku"},
        ],
        "category": [{"id": "c1", "topic_id": "t1", "order": "1", "name": "Po B"}],
        "exercise": [
            {
                "id": "e1",
                "topic_id": "t1",
                "category_id": "c1",
                "type": "quiz",
                "title": "Doplň i/y",
                "difficulty": "1",
                "is_test": "false",
                "questions": json.dumps([{"question": "b_t", "options": ["i", "y"], "answer": "y"}]),
                "created_date": "2024-01-01",
            },
            {"id": "e2", "topic_id": "t1", "title": ""},
        ],
    }
    for kind, records in datasets.items():
        (tmp_path / f"{kind}.json").write_text(json.dumps(records, ensure_ascii=False), encoding="utf-8")
    return {kind: catalog_import.load_records(tmp_path / f"{kind}.json") for kind in datasets}


def test_import_catalog_is_idempotent(db_session, tmp_path):
    datasets = _export(tmp_path)

    first = catalog_import.import_catalog(db_session, datasets)
    second = catalog_import.import_catalog(db_session, datasets)

    assert first == second == {"subject": 1, "topic": 1, "category": 1, "exercise": 1}
    assert db_session.query(Subject).count() == 1
    assert db_session.query(Topic).count() == 1
    assert db_session.query(Category).count() == 1

    exercise = db_session.get(Exercise, "e1")
    assert exercise.category_id == "c1"
    assert exercise.payload["difficulty"] == 1
    assert exercise.payload["is_test"] is False
    assert exercise.payload["questions"][0]["answer"] == "y"
    assert "created_date" not in exercise.payload


def test_import_catalog_rolls_back_on_error(db_session):
    datasets = {
        "subject": [{"id": "s1", "name": "Matematika"}],
        # An unbindable value makes the flush fail after the subject was added.
        "topic": [{"id": "t1", "subject": "Matematika", "grade": 3, "name": "Sčítání", "order": object()}],
    }

    with pytest.raises(Exception):
        catalog_import.import_catalog(db_session, datasets)

    assert db_session.query(Subject).count() == 0


def test_load_records_from_csv_and_find_export_file(tmp_path):
    path = tmp_path / "Exercise_export.csv"
    path.write_text('id,title,questions\ne1,Sčítání,"[{""question"": ""1+1"", ""answer"": ""2""}]"\n', encoding="utf-8")

    assert catalog_import.find_export_file(tmp_path, "exercise") == path
    assert catalog_import.find_export_file(tmp_path, "topic") is None

    records = catalog_import.load_records(path)
    assert records == [{"id": "e1", "title": "Sčítání", "questions": '[{"question": "1+1", "answer": "2"}]'}]
    assert catalog_import.normalize_exercise(records[0])["questions"] == [{"question": "1+1", "answer": "2"}]


def test_load_records_rejects_non_array(tmp_path):
    path = tmp_path / "subject.json"
    path.write_text('{"name": "Čeština"}', encoding="utf-8")

    with pytest.raises(ValueError):
        catalog_import.load_records(path)
