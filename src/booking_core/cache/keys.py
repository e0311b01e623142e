"""Tenant-prefixed cache keys and invalidation patterns."""

from __future__ import annotations

import uuid

from booking_core.tenancy.context import TenantContext

TENANT_PREFIX = "tenant:"
GLOBAL_PREFIX = "global:"


class TenantKeyNamespacer:
    """Build physical cache keys for one operation's tenant.

    ``tenant:<id>:<base>`` for a tenant, ``global:<base>`` when no tenant
    applies. Tenant ids are fixed-width UUIDs followed by a separator, so
    keys and patterns of two tenants can never overlap.
    """

    def __init__(self, context: TenantContext) -> None:
        self._context = context

    def _effective_tenant(self, override: uuid.UUID | None) -> uuid.UUID | None:
        return override if override is not None else self._context.tenant_id

    def build_key(self, base_key: str, tenant_id: uuid.UUID | None = None) -> str:
        """Namespace ``base_key``. Already-namespaced keys pass through."""
        if base_key.startswith((TENANT_PREFIX, GLOBAL_PREFIX)):
            return base_key

        effective = self._effective_tenant(tenant_id)
        if effective is None:
            return f"{GLOBAL_PREFIX}{base_key}"
        return f"{TENANT_PREFIX}{effective}:{base_key}"

    def build_pattern(
        self, base_pattern: str, tenant_id: uuid.UUID | None = None
    ) -> str:
        """Namespace ``base_pattern`` as a trailing-wildcard glob."""
        effective = self._effective_tenant(tenant_id)
        if effective is None:
            return f"{GLOBAL_PREFIX}{base_pattern}*"
        return f"{TENANT_PREFIX}{effective}:{base_pattern}*"
