"""Tests for the admin JSON API.

Covers:
- HTTP Basic Auth (401 bad creds, 503 unconfigured)
- Product create/update/delete and their default plan side effects
- Strict category mode rejecting inconsistent products
- Plan saves pushing their active flag to derived rows
- Resync endpoints and stale reporting when maintenance fails
"""

from __future__ import annotations

import base64
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from catalog.admin.routes import router
from catalog.db.engine import get_session
from catalog.eligibility.errors import StorageError
from catalog.eligibility.service import get_eligibility_service
from catalog.models import MaintenanceStatus, Product
from catalog.schemas.eligibility import AssociationResult
from tests.conftest import add_product, default_plan_ids, default_rows

pytestmark = pytest.mark.usefixtures("catalog")


def _make_auth_header(username: str = "admin", password: str = "testpass123") -> dict[str, str]:
    """Build HTTP Basic Auth header."""
    credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {credentials}"}


AUTH = _make_auth_header()


@pytest.fixture
def mock_settings():
    """Patch settings seen by auth and routes."""
    with (
        patch("catalog.admin.auth.settings") as auth_settings,
        patch("catalog.admin.routes.settings") as route_settings,
    ):
        auth_settings.security.admin_username = "admin"
        auth_settings.security.admin_web_password = "testpass123"
        route_settings.eligibility.strict_category_mode = False
        yield route_settings


@pytest.fixture
def app(session_factory, service, mock_settings) -> FastAPI:
    async def _session() -> AsyncGenerator:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    test_app = FastAPI()
    test_app.include_router(router)
    test_app.dependency_overrides[get_session] = _session
    test_app.dependency_overrides[get_eligibility_service] = lambda: service
    return test_app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ── Auth ─────────────────────────────────────────────────────────────


class TestAuth:
    @pytest.mark.asyncio()
    async def test_401_without_credentials(self, client):
        resp = await client.get("/admin/products/1/default-plans")
        assert resp.status_code == 401

    @pytest.mark.asyncio()
    async def test_401_wrong_password(self, client):
        resp = await client.post("/admin/resync", headers=_make_auth_header(password="nope"))
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Basic"

    @pytest.mark.asyncio()
    async def test_401_wrong_username(self, client):
        resp = await client.post("/admin/resync", headers=_make_auth_header(username="root"))
        assert resp.status_code == 401

    @pytest.mark.asyncio()
    async def test_503_when_password_not_configured(self, client, mock_settings):
        with patch("catalog.admin.auth.settings") as unconfigured:
            unconfigured.security.admin_web_password = ""
            resp = await client.post("/admin/resync", headers=AUTH)
        assert resp.status_code == 503


# ── Products ─────────────────────────────────────────────────────────


class TestProducts:
    @pytest.mark.asyncio()
    async def test_create_assigns_default_plans(self, client, session_factory):
        resp = await client.post(
            "/admin/products",
            json={"description": "Heladera No Frost", "category_id": 5, "applies_to_all_plans": True},
            headers=AUTH,
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["associations"]["status"] == "applied"
        assert body["associations"]["mode"] == "all_plans"
        assert body["associations"]["plan_ids"] == [1, 2]
        assert body["associations_stale"] is False
        assert await default_plan_ids(session_factory, body["product"]["id"]) == {1, 2}

    @pytest.mark.asyncio()
    async def test_create_with_unknown_category(self, client):
        resp = await client.post(
            "/admin/products",
            json={"description": "Silla", "category_id": 99},
            headers=AUTH,
        )
        assert resp.status_code == 422
        assert "99" in resp.json()["detail"]

    @pytest.mark.asyncio()
    async def test_create_special_only(self, client):
        resp = await client.post(
            "/admin/products",
            json={"description": "Combo", "category_id": 5, "applies_to_special_plan_only": True},
            headers=AUTH,
        )
        assert resp.status_code == 201
        assert resp.json()["associations"]["plan_ids"] == []

    @pytest.mark.asyncio()
    async def test_category_only_without_category_warns(self, client):
        resp = await client.post(
            "/admin/products",
            json={"description": "Mesa", "applies_to_category_only": True},
            headers=AUTH,
        )
        assert resp.status_code == 201
        associations = resp.json()["associations"]
        assert associations["plan_ids"] == []
        assert "no category" in associations["warning"]

    @pytest.mark.asyncio()
    async def test_strict_mode_rejects_category_only_without_category(self, client, mock_settings):
        mock_settings.eligibility.strict_category_mode = True
        resp = await client.post(
            "/admin/products",
            json={"description": "Mesa", "applies_to_category_only": True},
            headers=AUTH,
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio()
    async def test_strict_mode_rejects_clearing_category(self, client, session_factory, mock_settings):
        mock_settings.eligibility.strict_category_mode = True
        product = await add_product(session_factory, category_id=7, category_only=True)

        resp = await client.patch(f"/admin/products/{product.product_id}", json={"category_id": None}, headers=AUTH)

        assert resp.status_code == 422
        async with session_factory() as db:
            stored = await db.get(Product, product.product_id)
            assert stored.category_id == 7

    @pytest.mark.asyncio()
    async def test_unrelated_update_is_unchanged(self, client, session_factory):
        product = await add_product(session_factory, category_id=5, all_plans=True)

        resp = await client.patch(f"/admin/products/{product.product_id}", json={"price": "1999.90"}, headers=AUTH)

        assert resp.status_code == 200
        assert resp.json()["associations"]["status"] == "unchanged"
        assert resp.json()["product"]["price"] == "1999.90"

    @pytest.mark.asyncio()
    async def test_category_change_rebuilds(self, client, session_factory, service):
        product = await add_product(session_factory, category_id=5, all_plans=True)
        await service.on_product_saved(None, product)

        resp = await client.patch(f"/admin/products/{product.product_id}", json={"category_id": 9}, headers=AUTH)

        assert resp.status_code == 200
        assert resp.json()["associations"]["status"] == "applied"
        assert await default_plan_ids(session_factory, product.product_id) == {1}

    @pytest.mark.asyncio()
    async def test_null_flag_means_false(self, client, session_factory, service):
        product = await add_product(session_factory, category_id=5, all_plans=True)
        await service.on_product_saved(None, product)

        resp = await client.patch(
            f"/admin/products/{product.product_id}",
            json={"applies_to_all_plans": None},
            headers=AUTH,
        )

        body = resp.json()
        assert body["product"]["applies_to_all_plans"] is False
        assert body["associations"]["mode"] == "no_default_plans"
        assert await default_rows(session_factory, product.product_id) == []

    @pytest.mark.asyncio()
    async def test_failed_maintenance_still_saves(self, app, client, session_factory):
        failing = MagicMock()
        failing.on_product_saved = AsyncMock(
            side_effect=lambda previous, product: AssociationResult(
                product_id=product.product_id,
                status=MaintenanceStatus.FAILED,
                error="Timed out",
            )
        )
        app.dependency_overrides[get_eligibility_service] = lambda: failing
        product = await add_product(session_factory, category_id=5, all_plans=True)

        resp = await client.patch(f"/admin/products/{product.product_id}", json={"category_id": 7}, headers=AUTH)

        assert resp.status_code == 200
        body = resp.json()
        assert body["product"]["category_id"] == 7
        assert body["associations_stale"] is True
        assert body["associations"]["status"] == "failed"
        assert body["associations"]["stale"] is True

    @pytest.mark.asyncio()
    async def test_delete_removes_default_plans(self, client, session_factory, service):
        product = await add_product(session_factory, category_id=5, all_plans=True)
        await service.on_product_saved(None, product)

        resp = await client.delete(f"/admin/products/{product.product_id}", headers=AUTH)

        assert resp.status_code == 204
        assert await default_rows(session_factory, product.product_id) == []
        resp = await client.get(f"/admin/products/{product.product_id}/default-plans", headers=AUTH)
        assert resp.status_code == 404

    @pytest.mark.asyncio()
    async def test_delete_locks_product_before_rows(self, client, session_factory, service):
        product = await add_product(session_factory, category_id=5, all_plans=True)
        await service.on_product_saved(None, product)
        statements: list[str] = []

        def _record(orm_execute_state):
            statements.append(str(orm_execute_state.statement.compile(dialect=postgresql.dialect())))

        event.listen(Session, "do_orm_execute", _record)
        try:
            resp = await client.delete(f"/admin/products/{product.product_id}", headers=AUTH)
        finally:
            event.remove(Session, "do_orm_execute", _record)

        assert resp.status_code == 204
        locked = next(i for i, sql in enumerate(statements) if "FROM products" in sql and "FOR UPDATE" in sql)
        cleared = next(i for i, sql in enumerate(statements) if sql.startswith("DELETE FROM product_plan_defaults"))
        assert locked < cleared

    @pytest.mark.asyncio()
    async def test_list_default_plans(self, client, session_factory, service):
        product = await add_product(session_factory, category_id=7, category_only=True)
        await service.on_product_saved(None, product)

        resp = await client.get(f"/admin/products/{product.product_id}/default-plans", headers=AUTH)

        assert resp.status_code == 200
        assert resp.json() == [{"product_id": product.product_id, "plan_id": 3, "active": True}]

    @pytest.mark.asyncio()
    async def test_resync_product(self, client, session_factory):
        product = await add_product(session_factory, category_id=5, all_plans=True)

        resp = await client.post(f"/admin/products/{product.product_id}/resync", headers=AUTH)

        assert resp.status_code == 200
        assert resp.json()["plan_ids"] == [1, 2]
        assert resp.json()["stale"] is False

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("PATCH", "/admin/products/404"),
            ("DELETE", "/admin/products/404"),
            ("GET", "/admin/products/404/default-plans"),
            ("POST", "/admin/products/404/resync"),
        ],
    )
    async def test_unknown_product(self, client, method, path):
        kwargs = {"json": {}} if method == "PATCH" else {}
        resp = await client.request(method, path, headers=AUTH, **kwargs)
        assert resp.status_code == 404


# ── Plans ────────────────────────────────────────────────────────────


class TestPlans:
    @pytest.mark.asyncio()
    async def test_create_with_categories(self, client):
        resp = await client.post(
            "/admin/plans",
            json={"name": "Ahora 12", "installments": 12, "category_ids": [7, 5, 5]},
            headers=AUTH,
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["plan"]["category_ids"] == [5, 7]
        assert body["sync"] is None

    @pytest.mark.asyncio()
    async def test_create_with_unknown_category(self, client):
        resp = await client.post(
            "/admin/plans",
            json={"name": "Ahora 3", "installments": 3, "category_ids": [42]},
            headers=AUTH,
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio()
    async def test_deactivate_pushes_to_rows(self, client, session_factory, service):
        product = await add_product(session_factory, category_id=5, all_plans=True)
        await service.on_product_saved(None, product)

        resp = await client.patch("/admin/plans/2", json={"active": False}, headers=AUTH)

        assert resp.status_code == 200
        body = resp.json()
        assert body["plan"]["active"] is False
        assert body["plan"]["category_ids"] == [5]
        assert body["sync"]["status"] == "applied"
        assert body["sync"]["rows_updated"] == 1
        rows = await default_rows(session_factory, product.product_id)
        assert {r.plan_id: r.active for r in rows} == {1: True, 2: False}

    @pytest.mark.asyncio()
    async def test_update_without_active_skips_sync(self, client):
        resp = await client.patch("/admin/plans/1", json={"name": "Plan Z"}, headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["plan"]["name"] == "Plan Z"
        assert resp.json()["sync"] is None

    @pytest.mark.asyncio()
    async def test_replace_categories(self, client):
        resp = await client.put("/admin/plans/1/categories", json={"category_ids": [9, 5]}, headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["category_ids"] == [5, 9]

        resp = await client.put("/admin/plans/1/categories", json={"category_ids": []}, headers=AUTH)
        assert resp.json()["category_ids"] == []

    @pytest.mark.asyncio()
    async def test_resync_plan(self, client, session_factory, service):
        product = await add_product(session_factory, category_id=7, category_only=True)
        await service.on_product_saved(None, product)

        resp = await client.post("/admin/plans/3/resync", json={"active": False}, headers=AUTH)

        assert resp.status_code == 200
        assert resp.json()["rows_updated"] == 1
        assert resp.json()["stale"] is False
        assert [r.active for r in await default_rows(session_factory, product.product_id)] == [False]

    @pytest.mark.asyncio()
    async def test_unknown_plan(self, client):
        resp = await client.patch("/admin/plans/404", json={"active": True}, headers=AUTH)
        assert resp.status_code == 404


# ── Catalog-wide resync ──────────────────────────────────────────────


class TestResyncAll:
    @pytest.mark.asyncio()
    async def test_resync_all(self, client, session_factory):
        first = await add_product(session_factory, category_id=5, all_plans=True)
        await add_product(session_factory, special=True)

        resp = await client.post("/admin/resync", headers=AUTH)

        assert resp.status_code == 200
        assert resp.json() == {"total": 2, "applied": 2, "failed": 0, "failed_product_ids": []}
        assert await default_plan_ids(session_factory, first.product_id) == {1, 2}

    @pytest.mark.asyncio()
    async def test_storage_failure_is_503(self, app, client):
        failing = MagicMock()
        failing.resync_all = AsyncMock(side_effect=StorageError("database unavailable"))
        app.dependency_overrides[get_eligibility_service] = lambda: failing

        resp = await client.post("/admin/resync", headers=AUTH)

        assert resp.status_code == 503


# ── Health ───────────────────────────────────────────────────────────


@pytest.mark.asyncio()
async def test_health():
    from catalog.main import app as main_app

    transport = httpx.ASGITransport(app=main_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        resp = await c.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
