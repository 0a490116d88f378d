from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eduup.db.base_class import Base


class UserProgress(Base):
    """Best result of a user on one exercise."""

    __tablename__ = "user_progress"
    __table_args__ = (UniqueConstraint("user_id", "exercise_id", name="uq_user_progress_exercise"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # No foreign key: progress outlives exercises deleted from the editor.
    exercise_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    best_score: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    best_stars: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_played_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    user = relationship("User", back_populates="progress")

    def __repr__(self):
        return f"<UserProgress(user_id={self.user_id}, exercise_id='{self.exercise_id}', best_score={self.best_score})>"
