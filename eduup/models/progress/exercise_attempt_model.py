"""Finished attempts kept for the answer review screen."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eduup.db.base_class import Base


class ExerciseAttempt(Base):
    __tablename__ = "exercise_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "exercise_id", "attempt_key", name="uq_exercise_attempt_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    exercise_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    # Client-generated key of the play session; also seeds the question shuffle.
    attempt_key: Mapped[str] = mapped_column(String(100), nullable=False)
    exercise_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    topic_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stars: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    best_combo: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="attempts")
