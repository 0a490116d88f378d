from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eduup.db.base_class import Base
from eduup.models.catalog.subject_model import generate_catalog_id

if TYPE_CHECKING:
    from .category_model import Category
    from .exercise_model import Exercise


class Topic(Base):
    """A topic of a subject for one school grade (1-9)."""

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_catalog_id)
    # Subjects are referenced by name, as in the exported catalog.
    subject: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    grade: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    categories: Mapped[List["Category"]] = relationship(
        back_populates="topic", cascade="all, delete-orphan", order_by="Category.order"
    )
    exercises: Mapped[List["Exercise"]] = relationship(back_populates="topic", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Topic(id={self.id}, subject='{self.subject}', grade={self.grade}, name='{self.name}')>"
