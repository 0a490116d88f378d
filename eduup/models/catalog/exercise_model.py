"""Exercise rows: fixed columns plus a loosely typed JSON payload."""

import enum
from datetime import datetime
from typing import Any, Optional, TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eduup.db.base_class import Base
from eduup.models.catalog.subject_model import generate_catalog_id

if TYPE_CHECKING:
    from .topic_model import Topic
    from .category_model import Category


class ExerciseType(str, enum.Enum):
    FILL = "fill"
    MATCH = "match"
    MEMORY = "memory"
    QUIZ = "quiz"
    DECISION = "decision"
    SORT = "sort"
    ANALYSIS = "analysis"
    CLOZE = "cloze"
    LISTENING = "listening"
    IMAGE = "image"
    TEST = "test"


EXERCISE_TYPES = [member.value for member in ExerciseType]


def _coerce_difficulty(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


class Exercise(Base):
    __tablename__ = "exercises"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_catalog_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True, nullable=False
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    topic_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("topics.id", ondelete="CASCADE"), index=True, nullable=True
    )
    category_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("categories.id", ondelete="SET NULL"), index=True, nullable=True
    )
    # Kept as a plain string so unknown legacy types survive an import.
    type: Mapped[str] = mapped_column(String(30), nullable=False, default=ExerciseType.QUIZ.value)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    topic: Mapped[Optional["Topic"]] = relationship(back_populates="exercises")
    category: Mapped[Optional["Category"]] = relationship(back_populates="exercises")

    @property
    def difficulty(self) -> Optional[int]:
        return _coerce_difficulty((self.payload or {}).get("difficulty"))

    @property
    def is_test(self) -> bool:
        return (self.payload or {}).get("is_test") is True or self.type == ExerciseType.TEST.value

    @property
    def questions(self) -> list:
        questions = (self.payload or {}).get("questions")
        return questions if isinstance(questions, list) else []

    def __repr__(self):
        return f"<Exercise(id={self.id}, type='{self.type}', title='{self.title}')>"
