"""Business onboarding: creates the tenant a new business operates under.

``create_business`` runs before the caller has a tenant, so it is in the
pipeline's exemption list even though it is tenant-scoped.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from booking_core.errors import ConflictError
from booking_core.models.appointment import TenantRead
from booking_core.pipeline.operations import Operation, TenantScoped
from booking_core.storage.repositories import TenantRepository
from booking_core.tenancy.context import OperationContext

logger = structlog.get_logger()


@dataclass
class CreateBusinessCommand(Operation, TenantScoped):
    name: str
    subdomain: str | None = None


async def create_business(
    command: CreateBusinessCommand, context: OperationContext
) -> TenantRead:
    """Raises ConflictError when the business name is already taken."""
    session = context.require_session()
    repo = TenantRepository(session)
    if await repo.get_by_name(command.name) is not None:
        raise ConflictError(f"Business '{command.name}' already exists")

    tenant = await repo.create(name=command.name, subdomain=command.subdomain)
    await session.commit()
    logger.info(
        "business_created",
        tenant_id=str(tenant.id),
        tenant_name=tenant.name,
        created_by=context.user_id,
    )
    return TenantRead.model_validate(tenant)
