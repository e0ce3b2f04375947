"""Eligibility service: keeps product_plan_defaults in step with its sources.

Entry points called by the admin API after the primary save has committed:

- on_product_saved: change detector, then a full rebuild for that product
- on_plan_active_changed / resync_plan: push a plan's active flag to its rows
- resync_product / resync_all: operator repair of drifted rows

Maintenance is best-effort relative to the primary save: storage failures
are logged and reported in the returned result (status=failed, stale=True)
instead of being raised, so the product or plan edit itself still succeeds.
"""

from __future__ import annotations

import functools
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog.eligibility.calculator import compute_default_plans
from catalog.eligibility.changes import changed_fields, has_relevant_changes
from catalog.eligibility.errors import InconsistentStateError, StorageError
from catalog.eligibility.index import build_plan_category_index
from catalog.eligibility.locks import ProductLocks
from catalog.eligibility.materializer import clear_default_plans, replace_default_plans
from catalog.eligibility.modes import ensure_consistent, resolve_mode
from catalog.eligibility.queries import (
    fetch_active_plan_ids,
    fetch_plan_category_rows,
    fetch_product_ids_page,
    fetch_product_state,
)
from catalog.eligibility.sync import lock_plan, sync_plan_rows
from catalog.models.enums import MaintenanceStatus
from catalog.schemas.eligibility import (
    AssociationResult,
    PlanSyncResult,
    ProductState,
    ResyncSummary,
)

logger = logging.getLogger(__name__)


class EligibilityService:
    """Opens its own session per operation; never shares the caller's transaction."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: ProductLocks,
        resync_batch_size: int = 500,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks
        self._resync_batch_size = resync_batch_size

    # ── Products ─────────────────────────────────────────────────────

    async def on_product_saved(
        self,
        previous: ProductState | None,
        product: ProductState,
    ) -> AssociationResult:
        """Rebuild default plans after a create, or after an update that changed them.

        `previous` is the state read right before the update (None on create).
        """
        if not has_relevant_changes(previous, product.as_update()):
            logger.debug("Product %s saved without eligibility changes, skipping", product.product_id)
            return AssociationResult(product_id=product.product_id, status=MaintenanceStatus.UNCHANGED)

        if previous is not None:
            logger.info(
                "Eligibility fields changed for product %s: %s",
                product.product_id,
                ", ".join(changed_fields(previous, product.as_update())),
            )
        return await self.resync_product(product.product_id)

    async def resync_product(self, product_id: int) -> AssociationResult:
        """Recompute and replace one product's default plans from stored state."""
        try:
            async with self._locks.hold(product_id):
                return await self._rebuild(product_id)
        except StorageError as exc:
            logger.exception("Default plans for product %s may be stale", product_id)
            return AssociationResult(
                product_id=product_id,
                status=MaintenanceStatus.FAILED,
                error=str(exc),
            )

    async def _rebuild(self, product_id: int) -> AssociationResult:
        warning: str | None = None
        try:
            async with self._session_factory() as db, db.begin():
                state = await fetch_product_state(db, product_id, for_update=True)
                if state is None:
                    removed = await clear_default_plans(db, product_id)
                    logger.info("Product %s not found, removed %d default plan rows", product_id, removed)
                    return AssociationResult(
                        product_id=product_id,
                        status=MaintenanceStatus.APPLIED,
                        warning=f"Product {product_id} does not exist",
                    )

                mode = resolve_mode(state.flags)
                try:
                    ensure_consistent(mode, state.category_id, product_id)
                except InconsistentStateError as exc:
                    warning = str(exc)
                    logger.warning("%s; no default plans assigned", exc)

                active_plan_ids = await fetch_active_plan_ids(db, lock=True)
                index = build_plan_category_index(await fetch_plan_category_rows(db))
                eligible = compute_default_plans(mode, state.category_id, active_plan_ids, index)
                written = await replace_default_plans(db, product_id, eligible)
        except SQLAlchemyError as exc:
            msg = f"Could not rebuild default plans for product {product_id}: {exc}"
            raise StorageError(msg) from exc

        logger.info(
            "Default plans rebuilt: product=%s mode=%s plans=%s",
            product_id,
            mode.value,
            written,
        )
        return AssociationResult(
            product_id=product_id,
            status=MaintenanceStatus.APPLIED,
            mode=mode,
            plan_ids=written,
            warning=warning,
        )

    async def resync_all(self, batch_size: int | None = None) -> ResyncSummary:
        """Rebuild every product, reading ids in keyset-paginated batches.

        Raises StorageError if the product ids themselves cannot be read;
        per-product failures are counted and the run continues.
        """
        size = batch_size or self._resync_batch_size
        summary = ResyncSummary()
        after_id = 0

        while True:
            try:
                async with self._session_factory() as db:
                    page = await fetch_product_ids_page(db, after_id, size)
            except SQLAlchemyError as exc:
                msg = f"Could not list products after id {after_id}: {exc}"
                raise StorageError(msg) from exc

            if not page:
                break

            for product_id in page:
                result = await self.resync_product(product_id)
                summary.total += 1
                if result.stale:
                    summary.failed += 1
                    summary.failed_product_ids.append(product_id)
                else:
                    summary.applied += 1
            after_id = page[-1]

        logger.info(
            "Full resync finished: total=%d applied=%d failed=%d",
            summary.total,
            summary.applied,
            summary.failed,
        )
        return summary

    # ── Plans ────────────────────────────────────────────────────────

    async def on_plan_active_changed(self, plan_id: int, active: bool | None = None) -> PlanSyncResult:
        """Propagate a plan's own active flag to all its derived rows.

        The value written is read from the plan row under FOR UPDATE, not
        taken from `active` (what the caller committed). Overlapping toggles
        whose syncs run out of order still converge on the stored flag.
        """
        return await self._sync_plan(plan_id, expected=active, forced=None)

    async def resync_plan(self, plan_id: int, active: bool) -> PlanSyncResult:
        """Operator-forced sync: writes `active` to the plan's rows as given. Idempotent."""
        logger.info("Forced resync of plan %s to active=%s", plan_id, active)
        return await self._sync_plan(plan_id, expected=active, forced=active)

    async def _sync_plan(self, plan_id: int, expected: bool | None, forced: bool | None) -> PlanSyncResult:
        target = forced
        try:
            async with self._session_factory() as db, db.begin():
                plan = await lock_plan(db, plan_id)
                if plan is None:
                    logger.warning("Plan %s not found, derived rows not synced", plan_id)
                    return PlanSyncResult(
                        plan_id=plan_id,
                        active=bool(expected),
                        status=MaintenanceStatus.FAILED,
                        error=f"Plan {plan_id} does not exist",
                    )
                if target is None:
                    target = plan.active
                    if expected is not None and expected != target:
                        logger.info(
                            "Plan %s changed again before its sync ran (expected active=%s, stored %s)",
                            plan_id,
                            expected,
                            target,
                        )
                rows = await sync_plan_rows(db, plan_id, target)
        except SQLAlchemyError as exc:
            logger.exception("Failed to sync default plan rows for plan %s", plan_id)
            return PlanSyncResult(
                plan_id=plan_id,
                active=bool(target if target is not None else expected),
                status=MaintenanceStatus.FAILED,
                error=str(exc),
            )

        logger.info("Plan %s active=%s pushed to %d default plan rows", plan_id, target, rows)
        return PlanSyncResult(
            plan_id=plan_id,
            active=target,
            status=MaintenanceStatus.APPLIED,
            rows_updated=rows,
        )


@functools.lru_cache(maxsize=1)
def get_eligibility_service() -> EligibilityService:
    """FastAPI dependency: process-wide service bound to the app engine and Redis."""
    from catalog.config import settings
    from catalog.db.engine import async_session_factory, redis_client

    locks = ProductLocks(
        redis_client,
        timeout=settings.eligibility.lock_timeout,
        blocking_timeout=settings.eligibility.lock_blocking_timeout,
    )
    return EligibilityService(
        async_session_factory,
        locks,
        resync_batch_size=settings.eligibility.resync_batch_size,
    )
