"""Tenant resolution and the operation-scoped tenant context."""

from booking_core.tenancy.context import (
    OperationContext,
    ResolvedFrom,
    TenantContext,
)
from booking_core.tenancy.resolver import TenantLookup, TenantResolver

__all__ = [
    "OperationContext",
    "ResolvedFrom",
    "TenantContext",
    "TenantLookup",
    "TenantResolver",
]
