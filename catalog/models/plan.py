"""FinancingPlan and PlanCategory models.

A plan with no PlanCategory rows is unrestricted; with one or more rows it
only applies to products of those categories.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from catalog.models.default_plan import ProductPlanDefault


class FinancingPlan(TimestampMixin, Base):
    """An installment financing plan."""

    __tablename__ = "financing_plans"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    installments: Mapped[int] = mapped_column(Integer, nullable=False)
    surcharge_pct: Mapped[Decimal | None] = mapped_column(Numeric(6, 2))
    min_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))

    # Relationships
    categories: Mapped[list[PlanCategory]] = relationship(
        "PlanCategory", back_populates="plan", cascade="all, delete-orphan"
    )
    default_products: Mapped[list[ProductPlanDefault]] = relationship(
        "ProductPlanDefault", back_populates="plan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<FinancingPlan id={self.id} name={self.name} active={self.active}>"


class PlanCategory(TimestampMixin, Base):
    """Restricts a plan to one category."""

    __tablename__ = "plan_categories"
    __table_args__ = (UniqueConstraint("plan_id", "category_id", name="uq_plan_categories_plan_category"),)

    plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("financing_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Relationships
    plan: Mapped[FinancingPlan] = relationship("FinancingPlan", back_populates="categories")

    def __repr__(self) -> str:
        return f"<PlanCategory plan={self.plan_id} category={self.category_id}>"
