from sqlalchemy import Integer, String, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from eduup.db.base_class import Base
from typing import List, Optional, TYPE_CHECKING
from datetime import datetime

if TYPE_CHECKING:
    from .streak_model import UserStreak
    from ..progress.user_progress_model import UserProgress
    from ..progress.daily_activity_model import UserDailyActivity
    from ..progress.exercise_attempt_model import ExerciseAttempt
    from ..chat.chat_message_model import ChatMessage


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Chosen after sign-up through the username dialog, hence nullable.
    username: Mapped[Optional[str]] = mapped_column(String(20), unique=True, index=True, nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_superuser: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    progress: Mapped[List["UserProgress"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    daily_activity: Mapped[List["UserDailyActivity"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    attempts: Mapped[List["ExerciseAttempt"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    chat_messages: Mapped[List["ChatMessage"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    streak: Mapped[Optional["UserStreak"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )

    @property
    def is_admin(self) -> bool:
        return bool(self.is_superuser)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"
