"""Shared pytest fixtures."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from booking_core.storage.orm import Base, Tenant
from booking_core.storage.session import TenantScopedSession, bind_tenant
from booking_core.tenancy.context import ResolvedFrom, TenantContext


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-db",
        action="store_true",
        default=False,
        help="Run tests that require a live PostgreSQL instance",
    )
    parser.addoption(
        "--run-redis",
        action="store_true",
        default=False,
        help="Run tests that require a live Redis instance",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    markers_to_check = {
        "requires_db": ("--run-db", "needs --run-db flag"),
        "requires_redis": ("--run-redis", "needs --run-redis flag"),
    }

    skip_conditions = {
        marker_name: (not config.getoption(option_flag), reason_msg)
        for marker_name, (option_flag, reason_msg) in markers_to_check.items()
    }

    for item in items:
        for marker_name, (should_skip, reason_msg) in skip_conditions.items():
            if should_skip and marker_name in item.keywords:
                item.add_marker(pytest.mark.skip(reason=reason_msg))


# ── In-memory SQLite with the isolation hooks installed ────────────


SessionMaker = Callable[..., Session]


@pytest.fixture()
def sqlite_engine() -> Generator[Engine]:
    """Fresh in-memory schema shared by every connection of the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def make_session(sqlite_engine: Engine) -> Generator[SessionMaker]:
    """Factory for ``TenantScopedSession`` instances bound to a tenant.

    ``make_session()`` gives a session with no tenant,
    ``make_session(tenant_id, user_id="alice")`` one scoped to ``tenant_id``.
    """
    sessions: list[Session] = []

    def _make(tenant_id: uuid.UUID | None = None, user_id: str | None = None) -> Session:
        session = TenantScopedSession(bind=sqlite_engine, expire_on_commit=False)
        context = (
            TenantContext(tenant_id, f"tenant-{tenant_id}", ResolvedFrom.TOKEN)
            if tenant_id is not None
            else TenantContext.none()
        )
        bind_tenant(session, context, user_id)
        sessions.append(session)
        return session

    yield _make

    for session in sessions:
        session.close()


@pytest.fixture()
def two_tenants(make_session: SessionMaker) -> tuple[Tenant, Tenant]:
    """Two active tenants committed to the SQLite schema."""
    with make_session() as session:
        acme = Tenant(name="Acme Salon", subdomain="acme", is_active=True)
        globex = Tenant(name="Globex Spa", subdomain="globex", is_active=True)
        session.add_all([acme, globex])
        session.commit()
    return acme, globex
