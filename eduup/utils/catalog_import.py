# Fichier : eduup/utils/catalog_import.py
"""
Import of catalog exports (subjects, topics, categories, exercises).

Exports arrive as JSON arrays or CSV files where every cell is a string:
numbers, booleans and nested structures have to be recovered before the
rows can be stored.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from eduup.crud import catalog_crud
from eduup.models.catalog.category_model import Category
from eduup.models.catalog.exercise_model import Exercise, ExerciseType
from eduup.models.catalog.subject_model import Subject
from eduup.models.catalog.topic_model import Topic

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = ("order", "grade", "difficulty", "points")
NULL_STRINGS = ("null", "undefined")
JSON_BLOB_FIELDS = ("content", "data", "payload", "config")
JSON_LIST_FIELDS = ("options", "pairs", "items", "words", "answers", "cards", "left", "right")

# Export bookkeeping that is never part of an exercise.
EXPORT_META_FIELDS = {"created_date", "updated_date", "created_by", "created_by_id"}

EXERCISE_COLUMNS = ("id", "topic_id", "category_id", "type", "title", "instructions")
SUBJECT_COLUMNS = ("id", "name", "icon", "color", "order")
TOPIC_COLUMNS = ("id", "subject", "grade", "order", "name", "description", "explanation")
CATEGORY_COLUMNS = ("id", "topic_id", "order", "name", "description")

IMPORT_ORDER = ("subject", "topic", "category", "exercise")


def to_number_maybe(value: Any) -> Any:
    """Numeric strings become int/float; anything else is returned as is."""
    if value is None or isinstance(value, bool) or value == "":
        return value
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return value


def try_parse_json(value: Any) -> Any:
    """Parses strings that look like a JSON object or array."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text or text[0] not in "{[":
        return value
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return value


def normalize_record(record: dict) -> dict:
    """Normalization shared by every exported entity."""
    out = dict(record)

    for key in NUMERIC_FIELDS:
        if key in out:
            out[key] = to_number_maybe(out[key])

    if "is_test" in out:
        value = out["is_test"]
        out["is_test"] = value is True or (isinstance(value, str) and value.strip().lower() == "true")

    for key, value in out.items():
        if isinstance(value, str) and value in NULL_STRINGS:
            out[key] = None

    return out


def normalize_exercise(record: dict) -> dict:
    out = normalize_record(record)

    for key in JSON_BLOB_FIELDS + JSON_LIST_FIELDS:
        if key in out:
            out[key] = try_parse_json(out[key])

    questions = out.get("questions")
    if isinstance(questions, str):
        parsed = try_parse_json(questions)
        if isinstance(parsed, list):
            out["questions"] = parsed
        else:
            logger.warning(f"IMPORT: unreadable questions for exercise {out.get('id')}, replaced by []")
            out["questions"] = []

    if out.get("category_id") == "":
        out["category_id"] = None
    return out


def exercise_values(record: dict) -> dict:
    """
    Splits a normalized exercise into column values and payload.

    Fields that are not columns, a parsed ``payload`` dict included, end up
    in the payload.
    """
    values = {column: record.get(column) for column in EXERCISE_COLUMNS if column in record}
    values["type"] = values.get("type") or ExerciseType.QUIZ.value
    values["topic_id"] = catalog_crud.normalize_id(values.get("topic_id"))
    values["category_id"] = catalog_crud.normalize_id(values.get("category_id"))

    payload: dict[str, Any] = {}
    embedded = record.get("payload")
    if isinstance(embedded, dict):
        payload.update(embedded)

    for key, value in record.items():
        if key in EXERCISE_COLUMNS or key in EXPORT_META_FIELDS or key == "payload":
            continue
        payload[key] = value

    values["payload"] = payload
    return values


def load_records(path: Path | str) -> list[dict]:
    """Reads a ``.json`` array or a ``.csv`` export with a header row."""
    path = Path(path)
    if path.suffix.lower() == ".csv":
        with path.open(encoding="utf-8", newline="") as handle:
            return [dict(row) for row in csv.DictReader(handle)]

    with path.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, list):
        raise ValueError(f"{path.name} must contain a JSON array")
    return data


def _pick(record: dict, columns: Iterable[str]) -> dict:
    return {column: record[column] for column in columns if column in record and record[column] is not None}


def _upsert(db: Session, model, values: dict) -> bool:
    """Returns True when a new row was created."""
    row = db.get(model, values["id"]) if values.get("id") else None
    if row is None:
        db.add(model(**values))
        return True
    for field, value in values.items():
        setattr(row, field, value)
    return False


def import_subjects(db: Session, records: list[dict]) -> int:
    count = 0
    for record in map(normalize_record, records):
        values = _pick(record, SUBJECT_COLUMNS)
        if not values.get("name"):
            logger.warning(f"IMPORT: subject without name skipped ({record.get('id')})")
            continue
        if not values.get("id"):
            existing = catalog_crud.get_subject_by_name(db, values["name"])
            if existing:
                values["id"] = existing.id
        _upsert(db, Subject, values)
        count += 1
    return count


def import_topics(db: Session, records: list[dict]) -> int:
    count = 0
    for record in map(normalize_record, records):
        values = _pick(record, TOPIC_COLUMNS)
        if not values.get("name") or not values.get("subject") or not isinstance(values.get("grade"), int):
            logger.warning(f"IMPORT: incomplete topic skipped ({record.get('id')})")
            continue
        _upsert(db, Topic, values)
        count += 1
    return count


def import_categories(db: Session, records: list[dict]) -> int:
    count = 0
    for record in map(normalize_record, records):
        values = _pick(record, CATEGORY_COLUMNS)
        values["topic_id"] = catalog_crud.normalize_id(values.get("topic_id"))
        if not values.get("name") or not values["topic_id"]:
            logger.warning(f"IMPORT: incomplete category skipped ({record.get('id')})")
            continue
        _upsert(db, Category, values)
        count += 1
    return count


def import_exercises(db: Session, records: list[dict]) -> int:
    count = 0
    for record in map(normalize_exercise, records):
        values = exercise_values(record)
        if not values.get("title"):
            logger.warning(f"IMPORT: exercise without title skipped ({record.get('id')})")
            continue
        if not values.get("id"):
            values.pop("id", None)
        _upsert(db, Exercise, values)
        count += 1
    return count


_IMPORTERS = {
    "subject": import_subjects,
    "topic": import_topics,
    "category": import_categories,
    "exercise": import_exercises,
}


def import_catalog(db: Session, datasets: dict[str, list[dict]]) -> dict[str, int]:
    """
    Imports every dataset in dependency order and commits once.

    Args:
        datasets: records keyed by ``subject``, ``topic``, ``category`` or
            ``exercise``. Missing keys are skipped.

    Returns:
        The number of imported rows per entity.
    """
    counts: dict[str, int] = {}
    try:
        for kind in IMPORT_ORDER:
            records = datasets.get(kind)
            if not records:
                continue
            counts[kind] = _IMPORTERS[kind](db, records)
            # Later entities reference the rows flushed here.
            db.flush()
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"IMPORT: catalog imported {counts}")
    return counts


def find_export_file(directory: Path | str, kind: str) -> Optional[Path]:
    """Finds ``<kind>.json``, ``<kind>.csv`` or ``<Kind>_export.csv`` in a directory."""
    directory = Path(directory)
    for candidate in (f"{kind}.json", f"{kind}.csv", f"{kind.capitalize()}_export.csv"):
        path = directory / candidate
        if path.exists():
            return path
    return None
