"""Eligibility engine error taxonomy."""

from __future__ import annotations


class EligibilityError(Exception):
    """Base class for eligibility engine failures."""


class StorageError(EligibilityError):
    """Reading or writing source/derived rows failed."""


class LockTimeoutError(StorageError):
    """A per-product lock could not be acquired in time."""

    def __init__(self, product_id: int, waited: float) -> None:
        self.product_id = product_id
        self.waited = waited
        super().__init__(f"Timed out after {waited}s waiting for the lock on product {product_id}")


class InconsistentStateError(EligibilityError):
    """A product is in category-only mode but has no category."""

    def __init__(self, product_id: int | None = None) -> None:
        self.product_id = product_id
        target = f"Product {product_id}" if product_id is not None else "Product"
        super().__init__(f"{target} applies to its category only but has no category")
