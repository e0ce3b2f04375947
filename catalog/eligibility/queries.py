"""Read queries feeding the eligibility engine.

All functions take the caller's AsyncSession so they run inside the same
transaction as the write that depends on them.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.models.default_plan import ProductPlanDefault
from catalog.models.plan import FinancingPlan, PlanCategory
from catalog.models.product import Product
from catalog.schemas.eligibility import ProductState

logger = logging.getLogger(__name__)


async def fetch_product_state(
    db: AsyncSession,
    product_id: int,
    for_update: bool = False,
) -> ProductState | None:
    """Load a product's flags and category, optionally locking its row."""
    stmt = select(Product).where(Product.id == product_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    product = result.scalar_one_or_none()
    if product is None:
        return None
    return ProductState.from_product(product)


async def fetch_active_plan_ids(db: AsyncSession, lock: bool = False) -> list[int]:
    """Ids of all active plans.

    With `lock=True` the rows are read FOR SHARE, so a concurrent plan
    toggle (FOR UPDATE) waits until the reading transaction commits.
    """
    stmt = select(FinancingPlan.id).where(FinancingPlan.active.is_(True)).order_by(FinancingPlan.id)
    if lock:
        stmt = stmt.with_for_update(read=True)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def fetch_plan_category_rows(db: AsyncSession) -> list[tuple[int, int]]:
    """Every (plan_id, category_id) restriction row."""
    result = await db.execute(select(PlanCategory.plan_id, PlanCategory.category_id))
    return [(plan_id, category_id) for plan_id, category_id in result.all()]


async def fetch_default_plan_rows(db: AsyncSession, product_id: int) -> list[ProductPlanDefault]:
    """Current derived rows for a product, ordered by plan id."""
    result = await db.execute(
        select(ProductPlanDefault)
        .where(ProductPlanDefault.product_id == product_id)
        .order_by(ProductPlanDefault.plan_id)
    )
    return list(result.scalars().all())


async def fetch_product_ids_page(db: AsyncSession, after_id: int, limit: int) -> list[int]:
    """Keyset-paginated product ids greater than `after_id`."""
    result = await db.execute(
        select(Product.id).where(Product.id > after_id).order_by(Product.id).limit(limit)
    )
    return list(result.scalars().all())
