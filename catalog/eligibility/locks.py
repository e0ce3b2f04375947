"""Redis-backed per-product lock.

Serialises recomputation of the same product across workers so two saves
cannot interleave their delete/insert. The recompute transaction also
locks the product row, so if Redis is unreachable the lock fails open and
the database remains the serialisation point.

Usage:
    from catalog.eligibility.locks import ProductLocks

    locks = ProductLocks(redis_client, timeout=30, blocking_timeout=10)
    async with locks.hold(product_id):
        ...
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

from redis.exceptions import LockError, RedisError

from catalog.eligibility.errors import LockTimeoutError

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = "eligibility:product:"


def lock_key(product_id: int) -> str:
    return f"{LOCK_KEY_PREFIX}{product_id}"


class ProductLocks:
    """Keyed lock factory over a redis.asyncio client."""

    def __init__(self, redis: Any, timeout: float, blocking_timeout: float) -> None:
        self._redis = redis
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @contextlib.asynccontextmanager
    async def hold(self, product_id: int) -> AsyncIterator[None]:
        """Hold the lock for one product for the duration of the block.

        Raises LockTimeoutError if another holder keeps it past the
        blocking timeout.
        """
        lock = self._redis.lock(
            lock_key(product_id),
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        acquired: bool | None
        try:
            acquired = await lock.acquire()
        except RedisError:
            logger.warning(
                "Redis unavailable, recomputing product %s under the row lock only",
                product_id,
                exc_info=True,
            )
            acquired = None

        if acquired is None:
            yield
            return
        if not acquired:
            raise LockTimeoutError(product_id, self._blocking_timeout)

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; the transaction already committed or rolled back
                logger.warning("Lock for product %s expired before release", product_id)
            except RedisError:
                logger.warning("Failed to release lock for product %s", product_id, exc_info=True)
