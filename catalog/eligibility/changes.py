"""Change detector: decides whether a product save needs a recompute.

Compares the stored state (read right before the update) against the
update payload. Only the three plan flags and the category matter; a
field present in the payload with an equal value is not a change.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from catalog.schemas.eligibility import FLAG_FIELDS, ProductState

_TRUTHY = {"true", "t", "1", "yes", "y", "on"}


def _as_flag(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _as_category(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def changed_fields(previous: ProductState | None, update: Mapping[str, Any]) -> list[str]:
    """Names of eligibility fields whose value actually differs.

    With no previous state (a freshly created product) every eligibility
    field present in the payload counts as changed.
    """
    present = [name for name in (*FLAG_FIELDS, "category_id") if name in update]
    if previous is None:
        return present

    stored = previous.as_update()
    changed: list[str] = []
    for name in present:
        if name == "category_id":
            if _as_category(update[name]) != _as_category(stored[name]):
                changed.append(name)
        elif _as_flag(update[name]) != _as_flag(stored[name]):
            changed.append(name)
    return changed


def has_relevant_changes(previous: ProductState | None, update: Mapping[str, Any]) -> bool:
    """True if the default plan associations must be rebuilt."""
    if previous is None:
        return True
    return bool(changed_fields(previous, update))
