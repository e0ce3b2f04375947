"""Category model: product grouping that financing plans can be restricted to."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from catalog.models.base import Base, TimestampMixin


class Category(TimestampMixin, Base):
    """A catalog category."""

    __tablename__ = "categories"

    description: Mapped[str] = mapped_column(String(200), nullable=False)
    logo: Mapped[str | None] = mapped_column(String(500))

    def __repr__(self) -> str:
        return f"<Category id={self.id} description={self.description}>"
