"""Progress of visitors without an account, keyed by the id kept in their session."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from eduup.db.base_class import Base


class GuestProgress(Base):
    __tablename__ = "guest_progress"
    __table_args__ = (UniqueConstraint("guest_id", "exercise_id", name="uq_guest_progress_exercise"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guest_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    exercise_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Same shape as the browser's offline entry (exerciseId, bestScore, ...).
    entry: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<GuestProgress(guest_id='{self.guest_id}', exercise_id='{self.exercise_id}')>"
