"""FastAPI dependency injection."""

from __future__ import annotations

from typing import Annotated, cast

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from booking_core.api.middleware import TOKEN_CLAIMS_STATE
from booking_core.cache.base import CacheStore
from booking_core.pipeline.mediator import Mediator
from booking_core.storage.database import get_session
from booking_core.storage.session import bind_tenant
from booking_core.tenancy.context import OperationContext, TenantContext

__all__ = [
    "get_cache_store",
    "get_mediator",
    "get_operation_context",
    "get_session",
    "get_tenant_context",
]

USER_ID_CLAIM = "sub"


async def get_tenant_context(request: Request) -> TenantContext:
    """Tenant resolved by ``TenantResolutionMiddleware`` for this request."""
    context = getattr(request.state, "tenant_context", None)
    if isinstance(context, TenantContext):
        return context
    return TenantContext.none()


def _user_id(request: Request) -> str | None:
    claims = getattr(request.state, TOKEN_CLAIMS_STATE, None) or {}
    user_id = claims.get(USER_ID_CLAIM)
    return str(user_id) if user_id is not None else None


async def get_operation_context(
    request: Request,
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> OperationContext:
    """Bind the request session to the tenant and build the operation context.

    The session is bound before any handler can query through it, so every
    read and write of the request is scoped to ``tenant``.
    """
    user_id = _user_id(request)
    bind_tenant(session, tenant, user_id)
    return OperationContext(tenant=tenant, user_id=user_id, session=session)


async def get_mediator(request: Request) -> Mediator:
    """Retrieve Mediator from app state.

    Initialized during lifespan startup.
    """
    return cast(Mediator, request.app.state.mediator)


async def get_cache_store(request: Request) -> CacheStore:
    return cast(CacheStore, request.app.state.cache_store)
