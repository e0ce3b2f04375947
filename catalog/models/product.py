"""Product model: catalog item whose flags drive default plan eligibility."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from catalog.models.category import Category
    from catalog.models.default_plan import ProductPlanDefault


class Product(TimestampMixin, Base):
    """A catalog product."""

    __tablename__ = "products"

    code: Mapped[str | None] = mapped_column(String(50), index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))

    # Foreign keys
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), index=True
    )

    # Default plan eligibility flags (not mutually exclusive in storage)
    applies_to_all_plans: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    applies_to_category_only: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    applies_to_special_plan_only: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false"),
        comment="Curated manually, never gets default plans on its own",
    )

    # Relationships
    category: Mapped[Category | None] = relationship("Category")
    default_plans: Mapped[list[ProductPlanDefault]] = relationship(
        "ProductPlanDefault", back_populates="product", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} category={self.category_id}>"
