"""ProductPlanDefault model: derived product × plan eligibility rows.

Never edited by hand: rows are rebuilt by the eligibility engine and only
their `active` column is patched when the plan itself is toggled.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from catalog.models.plan import FinancingPlan
    from catalog.models.product import Product


class ProductPlanDefault(TimestampMixin, Base):
    """A default (non-curated) plan association for a product."""

    __tablename__ = "product_plan_defaults"
    __table_args__ = (UniqueConstraint("product_id", "plan_id", name="uq_product_plan_defaults_product_plan"),)

    # Foreign keys
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("financing_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )

    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true"),
        comment="Mirrors financing_plans.active",
    )

    # Relationships
    product: Mapped[Product] = relationship("Product", back_populates="default_plans")
    plan: Mapped[FinancingPlan] = relationship("FinancingPlan", back_populates="default_products")

    def __repr__(self) -> str:
        return f"<ProductPlanDefault product={self.product_id} plan={self.plan_id} active={self.active}>"
