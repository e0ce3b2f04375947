"""Pydantic schemas for the default-plan eligibility engine.

Pure data classes: no DB dependencies. Used as inputs/outputs between
the admin API, the service layer and the deterministic rule functions.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from catalog.models.enums import EligibilityMode, MaintenanceStatus

# Fields that feed the eligibility calculation. Anything else on a product
# (price, description, images…) never triggers a recompute.
FLAG_FIELDS: tuple[str, ...] = (
    "applies_to_all_plans",
    "applies_to_category_only",
    "applies_to_special_plan_only",
)
ELIGIBILITY_FIELDS: tuple[str, ...] = (*FLAG_FIELDS, "category_id")


# ---------------------------------------------------------------------------
# Engine inputs
# ---------------------------------------------------------------------------


class ProductFlags(BaseModel):
    """The three independent booleans controlling default plan applicability."""

    model_config = ConfigDict(frozen=True)

    applies_to_all_plans: bool = False
    applies_to_category_only: bool = False
    applies_to_special_plan_only: bool = False

    @field_validator(*FLAG_FIELDS, mode="before")
    @classmethod
    def _none_is_false(cls, v: Any) -> Any:
        """Nullable legacy columns mean 'not set'."""
        return False if v is None else v


class ProductState(BaseModel):
    """Everything the engine needs to know about one product."""

    model_config = ConfigDict(frozen=True)

    product_id: int
    category_id: int | None = None
    flags: ProductFlags = Field(default_factory=ProductFlags)

    @classmethod
    def from_product(cls, product: Any) -> ProductState:
        """Build from a Product ORM row (or anything with the same attributes)."""
        return cls(
            product_id=product.id,
            category_id=product.category_id,
            flags=ProductFlags(
                applies_to_all_plans=product.applies_to_all_plans,
                applies_to_category_only=product.applies_to_category_only,
                applies_to_special_plan_only=product.applies_to_special_plan_only,
            ),
        )

    def as_update(self) -> dict[str, Any]:
        """Flatten into the same shape as a product update payload."""
        return {"category_id": self.category_id, **self.flags.model_dump()}


# ---------------------------------------------------------------------------
# Engine outputs
# ---------------------------------------------------------------------------


class AssociationResult(BaseModel):
    """Outcome of rebuilding one product's default plan associations."""

    product_id: int
    status: MaintenanceStatus
    mode: EligibilityMode | None = None
    plan_ids: list[int] = Field(default_factory=list)
    warning: str | None = None
    error: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stale(self) -> bool:
        """True when the derived rows may no longer match the product."""
        return self.status == MaintenanceStatus.FAILED


class PlanSyncResult(BaseModel):
    """Outcome of pushing a plan's active flag to its derived rows."""

    plan_id: int
    active: bool
    status: MaintenanceStatus
    rows_updated: int = 0
    error: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stale(self) -> bool:
        return self.status == MaintenanceStatus.FAILED


class ResyncSummary(BaseModel):
    """Totals for a catalog-wide resync."""

    total: int = 0
    applied: int = 0
    failed: int = 0
    failed_product_ids: list[int] = Field(default_factory=list)
