"""Plan-category index: which categories each financing plan is restricted to."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

PlanCategoryIndex = Mapping[int, frozenset[int]]


def _pair(row: Any) -> tuple[int, int]:
    if isinstance(row, tuple):
        return row[0], row[1]
    return row.plan_id, row.category_id


def build_plan_category_index(rows: Iterable[Any]) -> dict[int, frozenset[int]]:
    """Group plan-category join rows into `plan_id -> {category_id, ...}`.

    Rows may be `(plan_id, category_id)` tuples or objects exposing
    `plan_id` / `category_id`. Plans missing from the result are unrestricted.
    """
    grouped: dict[int, set[int]] = {}
    for row in rows:
        plan_id, category_id = _pair(row)
        grouped.setdefault(plan_id, set()).add(category_id)
    return {plan_id: frozenset(categories) for plan_id, categories in grouped.items()}


def is_unrestricted(plan_id: int, index: PlanCategoryIndex) -> bool:
    """A plan with no category rows applies category-agnostically."""
    return plan_id not in index


def plan_covers_category(plan_id: int, category_id: int | None, index: PlanCategoryIndex) -> bool:
    """True if the plan is restricted to a set that includes the category."""
    if category_id is None:
        return False
    return category_id in index.get(plan_id, frozenset())
