"""Tests for FastAPI bootstrap: health, error handling, lifespan."""

from collections.abc import AsyncGenerator, Generator
from contextlib import contextmanager
from typing import NamedTuple
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import Request
from httpx import ASGITransport, AsyncClient

from booking_core.api.app import app
from booking_core.cache.memory import MemoryCacheStore
from booking_core.pipeline.mediator import Mediator


class HealthMocks(NamedTuple):
    """Mocks returned by mock_health_deps context manager."""

    db_session: AsyncMock
    cache_store: AsyncMock


@contextmanager
def mock_health_deps(
    *,
    db_error: Exception | None = None,
    cache_ok: bool = True,
) -> Generator[HealthMocks]:
    """Mock DB and cache dependencies for health check tests.

    Args:
        db_error: If set, async_session __aenter__ raises this exception.
        cache_ok: Result of the cache store's ping.
    """
    mock_cache = AsyncMock()
    mock_cache.ping = AsyncMock(return_value=cache_ok)

    mock_db_session = AsyncMock()
    mock_db_session.execute = AsyncMock()

    with patch("booking_core.api.app.async_session") as mock_session_factory:
        if db_error:
            mock_session_factory.return_value.__aenter__ = AsyncMock(
                side_effect=db_error
            )
        else:
            mock_session_factory.return_value.__aenter__ = AsyncMock(
                return_value=mock_db_session
            )
        mock_session_factory.return_value.__aexit__ = AsyncMock(return_value=False)
        app.state.cache_store = mock_cache

        yield HealthMocks(db_session=mock_db_session, cache_store=mock_cache)


@pytest.fixture()
async def client() -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


class TestHealth:
    async def test_health_all_ok(self, client: AsyncClient) -> None:
        """GET /health returns 200 when DB and cache are reachable."""
        with mock_health_deps():
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"] == {"db": "ok", "cache": "ok"}
        assert "timestamp" in data

    async def test_health_db_down(self, client: AsyncClient) -> None:
        """GET /health returns 503 when DB is unreachable."""
        with mock_health_deps(db_error=TimeoutError("db timeout")):
            response = await client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert "error" in data["checks"]["db"]
        assert data["checks"]["cache"] == "ok"

    async def test_health_cache_down(self, client: AsyncClient) -> None:
        """GET /health returns 503 when the cache does not answer."""
        with mock_health_deps(cache_ok=False):
            response = await client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["checks"]["db"] == "ok"
        assert "error" in data["checks"]["cache"]

    async def test_health_needs_no_tenant(self, client: AsyncClient) -> None:
        """/health skips tenant resolution entirely."""
        with mock_health_deps():
            response = await client.get("/health", headers={"X-TenantId": "garbage"})
        assert response.status_code == 200

    async def test_health_method_not_allowed(self, client: AsyncClient) -> None:
        response = await client.post("/health")
        assert response.status_code == 405


class TestErrorHandling:
    async def test_unhandled_exception_handler_returns_500(self) -> None:
        """Global exception handler returns 500 JSON response."""
        from booking_core.api.app import unhandled_exception_handler

        mock_request = Request(
            scope={"type": "http", "method": "GET", "path": "/test", "headers": []}
        )
        response = await unhandled_exception_handler(mock_request, RuntimeError("boom"))
        assert response.status_code == 500
        assert response.body == b'{"detail":"Internal server error"}'


class TestLifespan:
    async def test_lifespan_builds_pipeline(self) -> None:
        """Lifespan wires cache store, mediator and resolver onto app.state."""
        store = MemoryCacheStore()
        with (
            patch("booking_core.api.app.configure_logging"),
            patch("booking_core.api.app.create_cache_store", return_value=store),
            patch("booking_core.api.app.engine") as mock_engine,
        ):
            mock_engine.dispose = AsyncMock()
            from booking_core.api.app import lifespan

            async with lifespan(app):
                assert app.state.cache_store is store
                assert isinstance(app.state.mediator, Mediator)
                assert app.state.tenant_resolver.header_name == "x-tenantid"

    async def test_lifespan_closes_resources(self) -> None:
        """Lifespan closes the cache and disposes the engine on shutdown."""
        store = MagicMock()
        store.close = AsyncMock()
        with (
            patch("booking_core.api.app.configure_logging"),
            patch("booking_core.api.app.create_cache_store", return_value=store),
            patch("booking_core.api.app.engine") as mock_engine,
        ):
            mock_engine.dispose = AsyncMock()
            from booking_core.api.app import lifespan

            async with lifespan(app):
                pass
            store.close.assert_awaited_once()
            mock_engine.dispose.assert_awaited_once()
