"""Session class with tenant isolation and audit hooks installed."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from booking_core.storage.audit import install_audit
from booking_core.storage.isolation import TenantIsolationFilter
from booking_core.storage.orm import Base
from booking_core.tenancy.context import (
    SESSION_TENANT_KEY,
    SESSION_USER_KEY,
    TenantContext,
)


class TenantScopedSession(Session):
    """Sync session class used by every application session.

    Async sessions wrap it via ``sync_session_class`` so the same ORM
    events run for both.
    """


tenant_isolation = TenantIsolationFilter(Base)
tenant_isolation.install(TenantScopedSession)
install_audit(TenantScopedSession)


def bind_tenant(
    session: Session | AsyncSession,
    tenant: TenantContext,
    user_id: str | None = None,
) -> None:
    """Attach the operation's tenant and user to a session.

    Must be called once, right after the session is created and before it
    runs any query.
    """
    session.info[SESSION_TENANT_KEY] = tenant
    session.info[SESSION_USER_KEY] = user_id
