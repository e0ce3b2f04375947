"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization.
"""

from __future__ import annotations

from enum import Enum


class EligibilityMode(str, Enum):
    """Single resolved intent behind a product's three plan flags."""

    NO_DEFAULT_PLANS = "no_default_plans"
    ALL_PLANS = "all_plans"
    CATEGORY_PLANS = "category_plans"


class MaintenanceStatus(str, Enum):
    """Outcome of a derived-association maintenance run."""

    APPLIED = "applied"
    UNCHANGED = "unchanged"  # change detector declined to run
    FAILED = "failed"
