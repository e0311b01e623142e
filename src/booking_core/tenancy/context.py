"""Operation-scoped tenant context.

A ``TenantContext`` is built once per inbound request by the tenant
resolver and handed down explicitly: to the pipeline inside an
``OperationContext`` and to the persistence layer through the
request-scoped session's ``info`` mapping. Nothing here is module-level
mutable state, so concurrent operations never observe each other's tenant.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

# Key under which the tenant context is stored in ``Session.info``.
SESSION_TENANT_KEY = "tenant_context"
# Key under which the acting user id is stored in ``Session.info``.
SESSION_USER_KEY = "user_id"


class ResolvedFrom(StrEnum):
    """Where the tenant of a request was resolved from."""

    TOKEN = "token"
    HEADER = "header"
    SUBDOMAIN = "subdomain"
    NONE = "none"


@dataclass(frozen=True)
class TenantContext:
    """Resolved tenant of a single operation. Read-only once created."""

    tenant_id: uuid.UUID | None = None
    tenant_name: str | None = None
    resolved_from: ResolvedFrom = ResolvedFrom.NONE

    @classmethod
    def none(cls) -> TenantContext:
        """Context for a request that did not resolve to any tenant."""
        return cls()

    @property
    def is_established(self) -> bool:
        return self.tenant_id is not None


@dataclass(frozen=True)
class OperationContext:
    """Everything an operation needs about its caller.

    Carried down the pipeline to the handler. ``session`` is the
    request-scoped database session, already bound to ``tenant``.
    """

    tenant: TenantContext = field(default_factory=TenantContext.none)
    user_id: str | None = None
    session: AsyncSession | None = None

    @property
    def tenant_id(self) -> uuid.UUID | None:
        return self.tenant.tenant_id

    def require_session(self) -> AsyncSession:
        """Return the bound session or fail loudly for handlers that need one."""
        if self.session is None:
            raise RuntimeError("Operation requires a database session")
        return self.session
