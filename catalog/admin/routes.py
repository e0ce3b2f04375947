"""Admin JSON API: product and plan saves plus eligibility resync endpoints.

Each save commits the primary row first, then calls the eligibility
service, which rebuilds derived rows in its own transaction. A failed
rebuild never fails the save: the response carries `associations_stale`.
All routes require HTTP Basic Auth via verify_admin dependency.
"""
# ruff: noqa: B008

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.admin.auth import verify_admin
from catalog.config import settings
from catalog.db.engine import get_session
from catalog.eligibility.errors import InconsistentStateError, StorageError
from catalog.eligibility.materializer import clear_default_plans
from catalog.eligibility.modes import ensure_consistent, resolve_mode
from catalog.eligibility.queries import fetch_default_plan_rows
from catalog.eligibility.service import EligibilityService, get_eligibility_service
from catalog.models.category import Category
from catalog.models.plan import FinancingPlan, PlanCategory
from catalog.models.product import Product
from catalog.schemas.catalog import (
    DefaultPlanOut,
    PlanCategoriesUpdate,
    PlanCreate,
    PlanOut,
    PlanResyncRequest,
    PlanSaveResponse,
    PlanUpdate,
    ProductCreate,
    ProductOut,
    ProductSaveResponse,
    ProductUpdate,
)
from catalog.schemas.eligibility import (
    FLAG_FIELDS,
    AssociationResult,
    PlanSyncResult,
    ProductFlags,
    ProductState,
    ResyncSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

# Columns that cannot be cleared; an explicit null in a PATCH is ignored
_PRODUCT_REQUIRED = {"description", "price", "active"}
_PLAN_REQUIRED = {"name", "installments", "min_amount", "active"}


# ── Helpers ──────────────────────────────────────────────────────────


def _check_flags(flags: ProductFlags, category_id: int | None) -> None:
    """Reject category-only products without a category when strict mode is on."""
    if not settings.eligibility.strict_category_mode:
        return
    try:
        ensure_consistent(resolve_mode(flags), category_id)
    except InconsistentStateError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


async def _require_categories(db: AsyncSession, category_ids: list[int]) -> None:
    wanted = set(category_ids)
    if not wanted:
        return
    result = await db.execute(select(Category.id).where(Category.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown category id(s): {sorted(missing)}",
        )


async def _get_product(db: AsyncSession, product_id: int, for_update: bool = False) -> Product:
    product = await db.get(Product, product_id, with_for_update=True if for_update else None)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def _get_plan(db: AsyncSession, plan_id: int) -> FinancingPlan:
    plan = await db.get(FinancingPlan, plan_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    return plan


async def _plan_category_ids(db: AsyncSession, plan_id: int) -> list[int]:
    result = await db.execute(
        select(PlanCategory.category_id)
        .where(PlanCategory.plan_id == plan_id)
        .order_by(PlanCategory.category_id)
    )
    return list(result.scalars().all())


def _plan_out(plan: FinancingPlan, category_ids: list[int]) -> PlanOut:
    return PlanOut(
        id=plan.id,
        name=plan.name,
        installments=plan.installments,
        surcharge_pct=plan.surcharge_pct,
        min_amount=plan.min_amount,
        max_amount=plan.max_amount,
        active=plan.active,
        category_ids=category_ids,
    )


def _product_response(product: Product, result: AssociationResult) -> ProductSaveResponse:
    return ProductSaveResponse(
        product=ProductOut.model_validate(product),
        associations=result,
        associations_stale=result.stale,
    )


def _apply(target: Any, changes: dict[str, Any], required: set[str]) -> None:
    for field, value in changes.items():
        if value is None and field in FLAG_FIELDS:
            value = False
        elif value is None and field in required:
            continue
        setattr(target, field, value)


# ── Products ─────────────────────────────────────────────────────────


@router.post("/products", status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_session),
    service: EligibilityService = Depends(get_eligibility_service),
    admin: str = Depends(verify_admin),
) -> ProductSaveResponse:
    """Create a product, then assign its default plans."""
    flags = ProductFlags(**payload.model_dump(include=set(FLAG_FIELDS)))
    _check_flags(flags, payload.category_id)
    if payload.category_id is not None:
        await _require_categories(db, [payload.category_id])

    product = Product(**payload.model_dump())
    db.add(product)
    await db.commit()
    logger.info("Product %s created by %s", product.id, admin)

    result = await service.on_product_saved(None, ProductState.from_product(product))
    return _product_response(product, result)


@router.patch("/products/{product_id}")
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_session),
    service: EligibilityService = Depends(get_eligibility_service),
    admin: str = Depends(verify_admin),
) -> ProductSaveResponse:
    """Apply a partial update; default plans are rebuilt only if flags or category changed."""
    product = await _get_product(db, product_id)
    previous = ProductState.from_product(product)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("category_id") is not None:
        await _require_categories(db, [changes["category_id"]])

    _apply(product, changes, _PRODUCT_REQUIRED)
    current = ProductState.from_product(product)
    _check_flags(current.flags, current.category_id)

    await db.commit()
    logger.info("Product %s updated by %s: %s", product_id, admin, sorted(changes))

    result = await service.on_product_saved(previous, current)
    return _product_response(product, result)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> Response:
    """Delete a product together with its default plan rows."""
    # Product row first, then its derived rows: same lock order as a rebuild
    product = await _get_product(db, product_id, for_update=True)
    removed = await clear_default_plans(db, product_id)
    await db.delete(product)
    await db.commit()
    logger.info("Product %s deleted by %s (%d default plan rows)", product_id, admin, removed)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/products/{product_id}/default-plans")
async def list_default_plans(
    product_id: int,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> list[DefaultPlanOut]:
    """Derived default plan rows for a product."""
    await _get_product(db, product_id)
    rows = await fetch_default_plan_rows(db, product_id)
    return [DefaultPlanOut.model_validate(row) for row in rows]


@router.post("/products/{product_id}/resync")
async def resync_product(
    product_id: int,
    db: AsyncSession = Depends(get_session),
    service: EligibilityService = Depends(get_eligibility_service),
    admin: str = Depends(verify_admin),
) -> AssociationResult:
    """Force a rebuild of one product's default plans from stored state."""
    await _get_product(db, product_id)
    logger.info("Product %s resync requested by %s", product_id, admin)
    return await service.resync_product(product_id)


# ── Plans ────────────────────────────────────────────────────────────


@router.post("/plans", status_code=status.HTTP_201_CREATED)
async def create_plan(
    payload: PlanCreate,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> PlanSaveResponse:
    """Create a plan with its (optional) category restrictions."""
    category_ids = sorted(set(payload.category_ids))
    await _require_categories(db, category_ids)

    plan = FinancingPlan(**payload.model_dump(exclude={"category_ids"}))
    db.add(plan)
    await db.flush()
    db.add_all(PlanCategory(plan_id=plan.id, category_id=category_id) for category_id in category_ids)
    await db.commit()
    logger.info("Plan %s created by %s (categories=%s)", plan.id, admin, category_ids)

    return PlanSaveResponse(plan=_plan_out(plan, category_ids))


@router.patch("/plans/{plan_id}")
async def update_plan(
    plan_id: int,
    payload: PlanUpdate,
    db: AsyncSession = Depends(get_session),
    service: EligibilityService = Depends(get_eligibility_service),
    admin: str = Depends(verify_admin),
) -> PlanSaveResponse:
    """Apply a partial plan update; an `active` value is pushed to derived rows."""
    plan = await _get_plan(db, plan_id)
    changes = payload.model_dump(exclude_unset=True)
    _apply(plan, changes, _PLAN_REQUIRED)
    await db.commit()
    logger.info("Plan %s updated by %s: %s", plan_id, admin, sorted(changes))

    sync: PlanSyncResult | None = None
    if changes.get("active") is not None:
        sync = await service.on_plan_active_changed(plan_id, plan.active)

    return PlanSaveResponse(plan=_plan_out(plan, await _plan_category_ids(db, plan_id)), sync=sync)


@router.put("/plans/{plan_id}/categories")
async def replace_plan_categories(
    plan_id: int,
    payload: PlanCategoriesUpdate,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> PlanOut:
    """Replace a plan's category restrictions. An empty list makes it unrestricted.

    Existing products are not re-evaluated; run /admin/resync for that.
    """
    plan = await _get_plan(db, plan_id)
    category_ids = sorted(set(payload.category_ids))
    await _require_categories(db, category_ids)

    await db.execute(delete(PlanCategory).where(PlanCategory.plan_id == plan_id))
    db.add_all(PlanCategory(plan_id=plan_id, category_id=category_id) for category_id in category_ids)
    await db.commit()
    logger.info("Plan %s categories set to %s by %s", plan_id, category_ids, admin)

    return _plan_out(plan, category_ids)


@router.post("/plans/{plan_id}/resync")
async def resync_plan(
    plan_id: int,
    payload: PlanResyncRequest,
    db: AsyncSession = Depends(get_session),
    service: EligibilityService = Depends(get_eligibility_service),
    admin: str = Depends(verify_admin),
) -> PlanSyncResult:
    """Force the derived rows of a plan to the given active state."""
    await _get_plan(db, plan_id)
    logger.info("Plan %s resync (active=%s) requested by %s", plan_id, payload.active, admin)
    return await service.resync_plan(plan_id, payload.active)


# ── Catalog-wide ─────────────────────────────────────────────────────


@router.post("/resync")
async def resync_all(
    service: EligibilityService = Depends(get_eligibility_service),
    admin: str = Depends(verify_admin),
) -> ResyncSummary:
    """Rebuild default plans for every product."""
    logger.info("Full default plan resync requested by %s", admin)
    try:
        return await service.resync_all()
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
