"""Eligibility mode resolver: collapses the three product flags into one intent.

Precedence (first match wins):

1. special-plan-only, with the other two flags off -> NO_DEFAULT_PLANS
2. applies_to_all_plans                             -> ALL_PLANS
3. applies_to_category_only                         -> CATEGORY_PLANS
4. nothing set                                      -> NO_DEFAULT_PLANS
"""

from __future__ import annotations

from catalog.eligibility.errors import InconsistentStateError
from catalog.models.enums import EligibilityMode
from catalog.schemas.eligibility import ProductFlags


def resolve_mode(flags: ProductFlags) -> EligibilityMode:
    """Resolve product flags into exactly one eligibility mode."""
    special_only = (
        flags.applies_to_special_plan_only
        and not flags.applies_to_all_plans
        and not flags.applies_to_category_only
    )
    if special_only:
        # Curated by hand elsewhere
        return EligibilityMode.NO_DEFAULT_PLANS
    if flags.applies_to_all_plans:
        return EligibilityMode.ALL_PLANS
    if flags.applies_to_category_only:
        return EligibilityMode.CATEGORY_PLANS
    return EligibilityMode.NO_DEFAULT_PLANS


def ensure_consistent(
    mode: EligibilityMode,
    category_id: int | None,
    product_id: int | None = None,
) -> None:
    """Raise InconsistentStateError for category-only mode without a category."""
    if mode == EligibilityMode.CATEGORY_PLANS and category_id is None:
        raise InconsistentStateError(product_id)
