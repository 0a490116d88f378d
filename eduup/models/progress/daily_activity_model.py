from datetime import date

from sqlalchemy import Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eduup.db.base_class import Base


class UserDailyActivity(Base):
    """Number of exercises a user finished on a given day."""

    __tablename__ = "user_daily_activity"
    __table_args__ = (UniqueConstraint("user_id", "day", name="uq_user_daily_activity_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    exercises_completed: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    user = relationship("User", back_populates="daily_activity")
