"""Appointment endpoints. Every call goes through the operation pipeline."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from booking_core.api.deps import get_mediator, get_operation_context
from booking_core.api.schemas import AppointmentCreateRequest, AppointmentListResponse
from booking_core.features.appointments import (
    CancelAppointmentCommand,
    CreateAppointmentCommand,
    GetAppointmentQuery,
    ListAppointmentsQuery,
)
from booking_core.models.appointment import AppointmentRead
from booking_core.pipeline.mediator import Mediator
from booking_core.storage.orm import AppointmentStatus
from booking_core.tenancy.context import OperationContext

router = APIRouter(tags=["appointments"])

ContextDep = Annotated[OperationContext, Depends(get_operation_context)]
MediatorDep = Annotated[Mediator, Depends(get_mediator)]


@router.get("/appointments")
async def list_appointments(
    context: ContextDep,
    mediator: MediatorDep,
    employee_id: uuid.UUID | None = None,
    status: AppointmentStatus | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    bypass_cache: bool = Query(
        default=False,
        alias="bypassCache",
        description="Skip the cached result and recompute.",
    ),
) -> AppointmentListResponse:
    """List appointments of the caller's tenant, earliest first."""
    items = await mediator.send(
        ListAppointmentsQuery(
            employee_id=employee_id,
            status=status,
            limit=limit,
            offset=offset,
            bypass_cache=bypass_cache,
        ),
        context,
    )
    return AppointmentListResponse(items=items, limit=limit, offset=offset)


@router.get("/appointments/{appointment_id}")
async def get_appointment(
    appointment_id: uuid.UUID,
    context: ContextDep,
    mediator: MediatorDep,
) -> AppointmentRead:
    result: AppointmentRead = await mediator.send(
        GetAppointmentQuery(appointment_id=appointment_id), context
    )
    return result


@router.post("/appointments", status_code=201)
async def create_appointment(
    body: AppointmentCreateRequest,
    context: ContextDep,
    mediator: MediatorDep,
) -> AppointmentRead:
    result: AppointmentRead = await mediator.send(
        CreateAppointmentCommand(**body.model_dump()), context
    )
    return result


@router.post("/appointments/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: uuid.UUID,
    context: ContextDep,
    mediator: MediatorDep,
) -> AppointmentRead:
    result: AppointmentRead = await mediator.send(
        CancelAppointmentCommand(appointment_id=appointment_id), context
    )
    return result
