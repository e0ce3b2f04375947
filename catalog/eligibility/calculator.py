"""Eligibility calculator: the set of plans a product gets by default.

Pure function of (mode, category, active plans, plan-category index).
No DB access; the service loads the inputs and persists the output.
"""

from __future__ import annotations

from collections.abc import Iterable

from catalog.eligibility.index import PlanCategoryIndex, is_unrestricted, plan_covers_category
from catalog.models.enums import EligibilityMode


def compute_default_plans(
    mode: EligibilityMode,
    category_id: int | None,
    active_plan_ids: Iterable[int],
    index: PlanCategoryIndex,
) -> frozenset[int]:
    """Compute the exact plan ids a product should be associated with.

    - NO_DEFAULT_PLANS: nothing.
    - ALL_PLANS: every active unrestricted plan, plus every active plan
      restricted to the product's category (when it has one).
    - CATEGORY_PLANS: only active plans restricted to the product's
      category; unrestricted plans are excluded. No category -> nothing.

    Only `active_plan_ids` are considered, so inactive plans never appear.
    """
    if mode == EligibilityMode.NO_DEFAULT_PLANS:
        return frozenset()

    plans = set(active_plan_ids)

    if mode == EligibilityMode.ALL_PLANS:
        return frozenset(
            plan_id
            for plan_id in plans
            if is_unrestricted(plan_id, index) or plan_covers_category(plan_id, category_id, index)
        )

    if category_id is None:
        return frozenset()
    return frozenset(plan_id for plan_id in plans if plan_covers_category(plan_id, category_id, index))
