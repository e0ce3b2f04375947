"""SQLAlchemy ORM models for the catalog.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from catalog.models.base import Base
from catalog.models.category import Category
from catalog.models.default_plan import ProductPlanDefault
from catalog.models.enums import EligibilityMode, MaintenanceStatus
from catalog.models.plan import FinancingPlan, PlanCategory
from catalog.models.product import Product

__all__ = [
    # Base
    "Base",
    # Models
    "Category",
    "Product",
    "FinancingPlan",
    "PlanCategory",
    "ProductPlanDefault",
    # Enums
    "EligibilityMode",
    "MaintenanceStatus",
]
