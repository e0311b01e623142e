"""Tenant resolution from token claims, explicit header, or host subdomain."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

import structlog

from booking_core.errors import TenantResolutionError
from booking_core.tenancy.context import ResolvedFrom, TenantContext

logger = structlog.get_logger()

DEFAULT_HEADER_NAME = "X-TenantId"
DEFAULT_CLAIM_NAME = "tenant_id"
DEFAULT_NON_TENANT_SUBDOMAINS: frozenset[str] = frozenset({"www", "api"})


class TenantRecord(Protocol):
    """Minimal view of a stored tenant needed for resolution."""

    id: uuid.UUID
    name: str
    is_active: bool


class TenantLookup(Protocol):
    """Read access to tenants, used before any tenant context exists."""

    async def get_by_id(self, tenant_id: uuid.UUID) -> TenantRecord | None: ...

    async def get_by_subdomain(self, subdomain: str) -> TenantRecord | None: ...


def _parse_uuid(raw: Any) -> uuid.UUID | None:
    if isinstance(raw, uuid.UUID):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        return None


def extract_subdomain(host: str | None) -> str | None:
    """Return the first label of a dotted host name, lowercased.

    ``"acme.booking.example:8000"`` -> ``"acme"``. Hosts without a dot
    (``localhost``) have no subdomain.
    """
    if not host:
        return None
    hostname = host.split(":", 1)[0].strip().lower()
    if "." not in hostname:
        return None
    label = hostname.split(".", 1)[0]
    return label or None


class TenantResolver:
    """Resolve the tenant of an inbound request.

    Order (a later positive match overwrites an earlier one):

    1. Token claim. Ignored when unparseable, unknown, or inactive.
    2. Explicit header. When present it must resolve to an active tenant,
       otherwise the request fails with ``TenantResolutionError``; there is
       no fallback to the token result or to the subdomain.
    3. Host subdomain, only when no header was sent at all.

    The resolver never writes to storage.
    """

    def __init__(
        self,
        lookup: TenantLookup,
        *,
        header_name: str = DEFAULT_HEADER_NAME,
        claim_name: str = DEFAULT_CLAIM_NAME,
        non_tenant_subdomains: Iterable[str] = DEFAULT_NON_TENANT_SUBDOMAINS,
    ) -> None:
        self._lookup = lookup
        self._header_name = header_name.lower()
        self._claim_name = claim_name
        self._non_tenant_subdomains = frozenset(
            s.lower() for s in non_tenant_subdomains
        )

    @property
    def header_name(self) -> str:
        return self._header_name

    async def resolve(
        self,
        *,
        claims: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        host: str | None = None,
    ) -> TenantContext:
        """Resolve a tenant context from request inputs.

        Args:
            claims: Verified authentication token claims, if any.
            headers: Request headers. Lookup is case-insensitive.
            host: Request host name, optionally with port.

        Returns:
            Resolved context, or ``TenantContext.none()``.

        Raises:
            TenantResolutionError: tenant header present but invalid,
                unknown, or inactive.
        """
        context = TenantContext.none()

        if claims:
            context = await self._from_claims(claims) or context

        header_value = self._find_header(headers)
        if header_value is not None:
            return await self._from_header(header_value)

        from_host = await self._from_subdomain(host)
        return from_host or context

    def _find_header(self, headers: Mapping[str, str] | None) -> str | None:
        if not headers:
            return None
        for name, value in headers.items():
            if name.lower() == self._header_name:
                return value
        return None

    async def _from_claims(self, claims: Mapping[str, Any]) -> TenantContext | None:
        tenant_id = _parse_uuid(claims.get(self._claim_name))
        if tenant_id is None:
            return None
        tenant = await self._lookup.get_by_id(tenant_id)
        if tenant is None or not tenant.is_active:
            logger.debug("tenant_claim_ignored", tenant_id=str(tenant_id))
            return None
        logger.info(
            "tenant_resolved",
            source=ResolvedFrom.TOKEN.value,
            tenant_id=str(tenant.id),
            tenant_name=tenant.name,
        )
        return TenantContext(tenant.id, tenant.name, ResolvedFrom.TOKEN)

    async def _from_header(self, raw_value: str) -> TenantContext:
        tenant_id = _parse_uuid(raw_value)
        tenant = None if tenant_id is None else await self._lookup.get_by_id(tenant_id)
        if tenant is None or not tenant.is_active:
            logger.warning("tenant_header_invalid", tenant_header=raw_value)
            raise TenantResolutionError(raw_value)
        logger.info(
            "tenant_resolved",
            source=ResolvedFrom.HEADER.value,
            tenant_id=str(tenant.id),
            tenant_name=tenant.name,
        )
        return TenantContext(tenant.id, tenant.name, ResolvedFrom.HEADER)

    async def _from_subdomain(self, host: str | None) -> TenantContext | None:
        subdomain = extract_subdomain(host)
        if subdomain is None or subdomain in self._non_tenant_subdomains:
            return None
        tenant = await self._lookup.get_by_subdomain(subdomain)
        if tenant is None or not tenant.is_active:
            return None
        logger.info(
            "tenant_resolved",
            source=ResolvedFrom.SUBDOMAIN.value,
            tenant_id=str(tenant.id),
            tenant_name=tenant.name,
        )
        return TenantContext(tenant.id, tenant.name, ResolvedFrom.SUBDOMAIN)
