from datetime import date
from typing import Optional

from sqlalchemy import Date, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eduup.db.base_class import Base


class UserStreak(Base):
    """Daily completion streak of a user (one row per user)."""

    __tablename__ = "user_streaks"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    streak_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    longest_streak_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_active_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    user = relationship("User", back_populates="streak")
