"""Business onboarding endpoint. Callable before the caller has a tenant."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from booking_core.api.deps import get_mediator, get_operation_context
from booking_core.api.schemas import BusinessCreateRequest
from booking_core.features.tenants import CreateBusinessCommand
from booking_core.models.appointment import TenantRead
from booking_core.pipeline.mediator import Mediator
from booking_core.tenancy.context import OperationContext

router = APIRouter(tags=["businesses"])


@router.post("/businesses", status_code=201)
async def create_business(
    body: BusinessCreateRequest,
    context: Annotated[OperationContext, Depends(get_operation_context)],
    mediator: Annotated[Mediator, Depends(get_mediator)],
) -> TenantRead:
    result: TenantRead = await mediator.send(
        CreateBusinessCommand(name=body.name, subdomain=body.subdomain), context
    )
    return result
