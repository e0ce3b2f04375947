"""Association materializer: replaces a product's derived plan rows.

Replace, not diff: delete everything for the product, then insert the
fresh set. Atomicity comes from the caller's transaction; these functions
never commit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import delete, insert
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.models.default_plan import ProductPlanDefault

logger = logging.getLogger(__name__)


async def clear_default_plans(db: AsyncSession, product_id: int) -> int:
    """Delete all derived rows for a product. Returns the number removed."""
    result = await db.execute(
        delete(ProductPlanDefault)
        .where(ProductPlanDefault.product_id == product_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def replace_default_plans(db: AsyncSession, product_id: int, plan_ids: Iterable[int]) -> list[int]:
    """Make the product's derived rows exactly `plan_ids`, all active.

    Returns the sorted plan ids written.
    """
    ordered = sorted(set(plan_ids))
    removed = await clear_default_plans(db, product_id)

    if ordered:
        await db.execute(
            insert(ProductPlanDefault),
            [{"product_id": product_id, "plan_id": plan_id, "active": True} for plan_id in ordered],
        )

    logger.debug(
        "Default plans replaced: product=%s removed=%d inserted=%d",
        product_id,
        removed,
        len(ordered),
    )
    return ordered
