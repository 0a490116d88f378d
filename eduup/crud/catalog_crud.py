# Fichier: eduup/crud/catalog_crud.py

from typing import Any, Optional

from sqlalchemy.orm import Session

from eduup.models.catalog.category_model import Category
from eduup.models.catalog.exercise_model import Exercise
from eduup.models.catalog.subject_model import Subject
from eduup.models.catalog.topic_model import Topic
from eduup.services.play_service import scope_filter


def normalize_id(value: Any) -> Optional[str]:
    """Query-string ids arrive as "", "null" or "undefined" when absent."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text in ("null", "undefined"):
        return None
    return text


def exercise_to_dict(row: Exercise) -> dict[str, Any]:
    """
    Flattens an exercise row: payload keys sit next to the columns.

    Payload keys are spread last, so a payload ``title`` or ``type`` wins
    over the column of the same name.
    """
    payload = row.payload if isinstance(row.payload, dict) else {}
    return {
        "id": row.id,
        "created_at": row.created_at,
        "created_by": row.created_by,
        "topic_id": row.topic_id,
        "category_id": row.category_id,
        "type": row.type,
        "title": row.title,
        "instructions": row.instructions,
        **payload,
    }


# ==============================================================================
# SUBJECTS / TOPICS / CATEGORIES
# ==============================================================================

def list_subjects(db: Session) -> list[Subject]:
    return db.query(Subject).order_by(Subject.order.asc(), Subject.name.asc()).all()


def get_subject_by_name(db: Session, name: str) -> Optional[Subject]:
    return db.query(Subject).filter(Subject.name == name).first()


def list_topics(db: Session, subject: Optional[str] = None, grade: Optional[int] = None) -> list[Topic]:
    query = db.query(Topic)
    if subject:
        query = query.filter(Topic.subject == subject)
    if grade is not None:
        query = query.filter(Topic.grade == grade)
    return query.order_by(Topic.order.asc(), Topic.name.asc()).all()


def get_topic(db: Session, topic_id: Any) -> Optional[Topic]:
    topic_id = normalize_id(topic_id)
    if topic_id is None:
        return None
    return db.get(Topic, topic_id)


def list_categories(db: Session, topic_id: Any) -> list[Category]:
    topic_id = normalize_id(topic_id)
    if topic_id is None:
        return []
    return (
        db.query(Category)
        .filter(Category.topic_id == topic_id)
        .order_by(Category.order.asc(), Category.name.asc())
        .all()
    )


def list_categories_for_topics(db: Session, topic_ids: list[str]) -> list[Category]:
    if not topic_ids:
        return []
    return (
        db.query(Category)
        .filter(Category.topic_id.in_(topic_ids))
        .order_by(Category.order.asc())
        .all()
    )


def get_category(db: Session, category_id: Any) -> Optional[Category]:
    category_id = normalize_id(category_id)
    if category_id is None:
        return None
    return db.get(Category, category_id)


def has_categories(db: Session, topic_id: Any) -> bool:
    topic_id = normalize_id(topic_id)
    if topic_id is None:
        return False
    return db.query(Category.id).filter(Category.topic_id == topic_id).first() is not None


# ==============================================================================
# EXERCISES
# ==============================================================================

def get_exercise(db: Session, exercise_id: Any) -> Optional[Exercise]:
    exercise_id = normalize_id(exercise_id)
    if exercise_id is None:
        return None
    return db.get(Exercise, exercise_id)


def list_exercises(db: Session, topic_id: Any, category_id: Any = None) -> list[Exercise]:
    """
    Exercises of a topic, newest first.

    Args:
        db: La session de base de données.
        topic_id: Required; without it nothing is returned.
        category_id: ``None`` selects the exercises filed under no category.

    Returns:
        The matching exercise rows.
    """
    topic_id = normalize_id(topic_id)
    category_id = normalize_id(category_id)
    if topic_id is None:
        return []

    query = db.query(Exercise).filter(Exercise.topic_id == topic_id)
    if category_id is not None:
        query = query.filter(Exercise.category_id == category_id)
    else:
        query = query.filter(Exercise.category_id.is_(None))
    return query.order_by(Exercise.created_at.desc(), Exercise.id.asc()).all()


def list_exercises_for_topics(db: Session, topic_ids: list[str]) -> list[Exercise]:
    if not topic_ids:
        return []
    return db.query(Exercise).filter(Exercise.topic_id.in_(topic_ids)).all()


def list_all_exercises(db: Session) -> list[Exercise]:
    return db.query(Exercise).all()


def list_scope_exercises(db: Session, exercise: Exercise) -> list[Exercise]:
    """Siblings of an exercise: its category when set, otherwise its whole topic."""
    scope = scope_filter({"category_id": exercise.category_id, "topic_id": exercise.topic_id})
    if "category_id" in scope:
        query = db.query(Exercise).filter(Exercise.category_id == scope["category_id"])
    elif "topic_id" in scope:
        query = db.query(Exercise).filter(Exercise.topic_id == scope["topic_id"])
    else:
        return [exercise]
    # Test pools are shuffled from this list, so its order must not depend on the database.
    return query.order_by(Exercise.created_at.asc(), Exercise.id.asc()).all()


def list_recent_exercises(db: Session, limit: int) -> list[Exercise]:
    return db.query(Exercise).order_by(Exercise.created_at.desc(), Exercise.id.asc()).limit(limit).all()


# ==============================================================================
# SEARCH
# ==============================================================================

def _contains(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search(db: Session, q: Optional[str]) -> list[dict[str, Any]]:
    """
    Topics and categories whose name contains ``q``, ignoring case.

    Returns:
        ``[{"subject", "grade", "topics": [{"topic", "matched", "categories"}]}]``,
        one group per (subject, grade). ``matched`` tells whether the topic
        name itself matched; ``categories`` lists its matching categories.
    """
    text = (q or "").strip()
    if not text:
        return []
    pattern = _contains(text)

    topic_hits = db.query(Topic).filter(Topic.name.ilike(pattern, escape="\\")).all()
    category_hits = (
        db.query(Category)
        .join(Topic, Category.topic_id == Topic.id)
        .filter(Category.name.ilike(pattern, escape="\\"))
        .order_by(Category.order.asc(), Category.name.asc())
        .all()
    )

    found: dict[str, dict[str, Any]] = {}
    for topic in topic_hits:
        found[topic.id] = {"topic": topic, "matched": True, "categories": []}
    for category in category_hits:
        entry = found.setdefault(category.topic_id, {"topic": category.topic, "matched": False, "categories": []})
        entry["categories"].append(category)

    groups: dict[tuple[str, int], list[dict[str, Any]]] = {}
    ordered = sorted(found.values(), key=lambda e: (e["topic"].subject, e["topic"].grade, e["topic"].order, e["topic"].name))
    for entry in ordered:
        groups.setdefault((entry["topic"].subject, entry["topic"].grade), []).append(entry)

    return [{"subject": subject, "grade": grade, "topics": topics} for (subject, grade), topics in groups.items()]
