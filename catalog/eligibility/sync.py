"""Plan-state synchronizer: pushes a plan's active flag to its derived rows.

Touches only the `active` column; which (product, plan) pairs exist is
left alone. Callers lock the plan row first with `lock_plan` and write
inside the same transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.models.default_plan import ProductPlanDefault
from catalog.models.plan import FinancingPlan

logger = logging.getLogger(__name__)


async def lock_plan(db: AsyncSession, plan_id: int) -> FinancingPlan | None:
    """SELECT … FOR UPDATE the plan row; serialises against recomputes and other syncs."""
    result = await db.execute(
        select(FinancingPlan)
        .where(FinancingPlan.id == plan_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def sync_plan_rows(db: AsyncSession, plan_id: int, active: bool) -> int:
    """Set `active` on every derived row of the plan. Returns rows matched."""
    result = await db.execute(
        update(ProductPlanDefault)
        .where(ProductPlanDefault.plan_id == plan_id)
        .values(active=active)
        .execution_options(synchronize_session=False)
    )
    rows = result.rowcount or 0
    logger.debug("Plan rows synced: plan=%s active=%s rows=%d", plan_id, active, rows)
    return rows
