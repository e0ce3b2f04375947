"""Default financing-plan eligibility engine: rule functions and maintenance service."""

from catalog.eligibility.calculator import compute_default_plans
from catalog.eligibility.changes import changed_fields, has_relevant_changes
from catalog.eligibility.errors import (
    EligibilityError,
    InconsistentStateError,
    LockTimeoutError,
    StorageError,
)
from catalog.eligibility.index import build_plan_category_index
from catalog.eligibility.modes import ensure_consistent, resolve_mode
from catalog.eligibility.service import EligibilityService, get_eligibility_service
from catalog.models.enums import EligibilityMode, MaintenanceStatus
from catalog.schemas.eligibility import (
    AssociationResult,
    PlanSyncResult,
    ProductFlags,
    ProductState,
    ResyncSummary,
)

__all__ = [
    "build_plan_category_index",
    "resolve_mode",
    "ensure_consistent",
    "compute_default_plans",
    "has_relevant_changes",
    "changed_fields",
    "EligibilityService",
    "get_eligibility_service",
    "EligibilityMode",
    "MaintenanceStatus",
    "ProductFlags",
    "ProductState",
    "AssociationResult",
    "PlanSyncResult",
    "ResyncSummary",
    "EligibilityError",
    "StorageError",
    "LockTimeoutError",
    "InconsistentStateError",
]
