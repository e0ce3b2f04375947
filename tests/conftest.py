"""Shared fixtures: in-memory async SQLite catalog and an in-process Redis lock stand-in."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from catalog.eligibility.locks import ProductLocks
from catalog.eligibility.service import EligibilityService
from catalog.models import Base, Category, FinancingPlan, PlanCategory, Product, ProductPlanDefault
from catalog.schemas.eligibility import ProductState

# ── Redis lock stand-in ──────────────────────────────────────────────


class FakeLock:
    """Mimics redis.asyncio.lock.Lock on top of asyncio.Lock."""

    def __init__(self, redis: FakeRedis, name: str, blocking_timeout: float | None) -> None:
        self._redis = redis
        self.name = name
        self._blocking_timeout = blocking_timeout

    async def acquire(self) -> bool:
        lock = self._redis.locks.setdefault(self.name, asyncio.Lock())
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._blocking_timeout)
        except TimeoutError:
            return False
        self._redis.acquired.append(self.name)
        return True

    async def release(self) -> None:
        self._redis.locks[self.name].release()


class FakeRedis:
    def __init__(self) -> None:
        self.locks: dict[str, asyncio.Lock] = {}
        self.acquired: list[str] = []

    def lock(self, name: str, timeout: float | None = None, blocking_timeout: float | None = None) -> FakeLock:
        return FakeLock(self, name, blocking_timeout)


# ── Database ─────────────────────────────────────────────────────────


@pytest_asyncio.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def service(session_factory, fake_redis) -> EligibilityService:
    locks = ProductLocks(fake_redis, timeout=5, blocking_timeout=0.2)
    return EligibilityService(session_factory, locks, resync_batch_size=2)


@pytest_asyncio.fixture()
async def catalog(session_factory) -> None:
    """Categories 5, 7, 9 and four plans.

    P1 unrestricted active, P2 restricted to 5 active,
    P3 restricted to 7 active, P4 unrestricted inactive.
    """
    async with session_factory() as db:
        db.add_all([
            Category(id=5, description="Electro"),
            Category(id=7, description="Muebles"),
            Category(id=9, description="Jardin"),
        ])
        db.add_all([
            FinancingPlan(id=1, name="P1", installments=3, active=True),
            FinancingPlan(id=2, name="P2", installments=6, active=True),
            FinancingPlan(id=3, name="P3", installments=12, active=True),
            FinancingPlan(id=4, name="P4", installments=18, active=False),
        ])
        await db.flush()
        db.add_all([
            PlanCategory(plan_id=2, category_id=5),
            PlanCategory(plan_id=3, category_id=7),
        ])
        await db.commit()


# ── Helpers ──────────────────────────────────────────────────────────


async def add_product(
    factory: async_sessionmaker[AsyncSession],
    category_id: int | None = None,
    all_plans: bool = False,
    category_only: bool = False,
    special: bool = False,
) -> ProductState:
    async with factory() as db:
        product = Product(
            description="Heladera",
            category_id=category_id,
            applies_to_all_plans=all_plans,
            applies_to_category_only=category_only,
            applies_to_special_plan_only=special,
        )
        db.add(product)
        await db.commit()
        return ProductState.from_product(product)


async def update_product(
    factory: async_sessionmaker[AsyncSession],
    product_id: int,
    **changes: object,
) -> tuple[ProductState, ProductState]:
    """Apply changes and return (previous, current) states."""
    async with factory() as db:
        product = await db.get(Product, product_id)
        previous = ProductState.from_product(product)
        for field, value in changes.items():
            setattr(product, field, value)
        await db.commit()
        return previous, ProductState.from_product(product)


async def default_rows(factory: async_sessionmaker[AsyncSession], product_id: int) -> list[ProductPlanDefault]:
    async with factory() as db:
        result = await db.execute(
            select(ProductPlanDefault)
            .where(ProductPlanDefault.product_id == product_id)
            .order_by(ProductPlanDefault.plan_id)
        )
        return list(result.scalars().all())


async def default_plan_ids(factory: async_sessionmaker[AsyncSession], product_id: int) -> set[int]:
    return {row.plan_id for row in await default_rows(factory, product_id)}


async def set_plan_active(factory: async_sessionmaker[AsyncSession], plan_id: int, active: bool) -> None:
    """Commit a plan toggle the way the admin API does, without syncing rows."""
    async with factory() as db:
        plan = await db.get(FinancingPlan, plan_id)
        plan.active = active
        await db.commit()
