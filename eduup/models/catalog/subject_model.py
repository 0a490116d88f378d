import uuid
from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from eduup.db.base_class import Base


def generate_catalog_id() -> str:
    """Opaque identifier shared by every catalog entity."""
    return uuid.uuid4().hex


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_catalog_id)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    def __repr__(self):
        return f"<Subject(id={self.id}, name='{self.name}')>"
