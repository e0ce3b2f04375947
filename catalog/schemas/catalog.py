"""Pydantic schemas for the admin API: product and plan payloads.

Update payloads use `exclude_unset` semantics: only fields the client sent
are applied, and only those reach the change detector.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from catalog.schemas.eligibility import AssociationResult, PlanSyncResult


# ── Products ──────────────────────────────────────────────────────────


class ProductCreate(BaseModel):
    """New product."""

    code: str | None = Field(default=None, max_length=50)
    description: str = Field(min_length=1, max_length=500)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    active: bool = True
    category_id: int | None = None
    applies_to_all_plans: bool = False
    applies_to_category_only: bool = False
    applies_to_special_plan_only: bool = False


class ProductUpdate(BaseModel):
    """Partial product update."""

    code: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, min_length=1, max_length=500)
    price: Decimal | None = Field(default=None, ge=0)
    active: bool | None = None
    category_id: int | None = None
    applies_to_all_plans: bool | None = None
    applies_to_category_only: bool | None = None
    applies_to_special_plan_only: bool | None = None


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str | None = None
    description: str
    price: Decimal
    active: bool
    category_id: int | None = None
    applies_to_all_plans: bool
    applies_to_category_only: bool
    applies_to_special_plan_only: bool


class ProductSaveResponse(BaseModel):
    """Saved product plus what happened to its default plans."""

    product: ProductOut
    associations: AssociationResult
    associations_stale: bool = False


class DefaultPlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    plan_id: int
    active: bool


# ── Plans ─────────────────────────────────────────────────────────────


class PlanCreate(BaseModel):
    """New financing plan, optionally restricted to categories."""

    name: str = Field(min_length=1, max_length=200)
    installments: int = Field(gt=0)
    surcharge_pct: Decimal | None = None
    min_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)
    active: bool = True
    category_ids: list[int] = Field(default_factory=list)


class PlanUpdate(BaseModel):
    """Partial plan update."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    installments: int | None = Field(default=None, gt=0)
    surcharge_pct: Decimal | None = None
    min_amount: Decimal | None = Field(default=None, ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)
    active: bool | None = None


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    installments: int
    surcharge_pct: Decimal | None = None
    min_amount: Decimal
    max_amount: Decimal | None = None
    active: bool
    category_ids: list[int] = Field(default_factory=list)


class PlanCategoriesUpdate(BaseModel):
    """Full replacement of a plan's category restrictions (empty = unrestricted)."""

    category_ids: list[int] = Field(default_factory=list)


class PlanSaveResponse(BaseModel):
    plan: PlanOut
    sync: PlanSyncResult | None = None


class PlanResyncRequest(BaseModel):
    active: bool
