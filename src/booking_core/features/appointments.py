"""Appointment queries and commands with their handlers.

Queries are cached per tenant; commands evict the affected entries
once they have committed.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from booking_core.errors import ConflictError, NotFoundError
from booking_core.models.appointment import AppointmentRead
from booking_core.pipeline.operations import (
    Cacheable,
    CacheInvalidator,
    Operation,
    TenantScoped,
)
from booking_core.storage.orm import AppointmentStatus
from booking_core.storage.repositories import (
    AppointmentRepository,
    EmployeeRepository,
    ServiceRepository,
)
from booking_core.tenancy.context import OperationContext

logger = structlog.get_logger()

APPOINTMENTS_LIST_KEY = "appointments_list"
APPOINTMENTS_CACHE_TTL = timedelta(minutes=5)


def appointment_key(appointment_id: uuid.UUID) -> str:
    return f"appointment:{appointment_id}"


@dataclass
class ListAppointmentsQuery(Operation, TenantScoped, Cacheable):
    employee_id: uuid.UUID | None = None
    status: AppointmentStatus | None = None
    limit: int = 50
    offset: int = 0
    bypass_cache: bool = False

    cache_duration = APPOINTMENTS_CACHE_TTL

    @property
    def cache_key(self) -> str:
        return (
            f"{APPOINTMENTS_LIST_KEY}:{self.employee_id or 'all'}:"
            f"{self.status or 'all'}:{self.limit}:{self.offset}"
        )


@dataclass
class GetAppointmentQuery(Operation, TenantScoped, Cacheable):
    appointment_id: uuid.UUID
    bypass_cache: bool = False

    cache_duration = APPOINTMENTS_CACHE_TTL

    @property
    def cache_key(self) -> str:
        return appointment_key(self.appointment_id)


@dataclass
class CreateAppointmentCommand(Operation, TenantScoped, CacheInvalidator):
    employee_id: uuid.UUID
    customer_name: str
    start_time: datetime
    end_time: datetime
    service_id: uuid.UUID | None = None
    notes: str | None = None

    cache_key_pattern_to_invalidate = APPOINTMENTS_LIST_KEY


@dataclass
class CancelAppointmentCommand(Operation, TenantScoped, CacheInvalidator):
    appointment_id: uuid.UUID

    cache_key_pattern_to_invalidate = APPOINTMENTS_LIST_KEY

    @property
    def cache_key_to_invalidate(self) -> str:
        return appointment_key(self.appointment_id)


async def list_appointments(
    query: ListAppointmentsQuery, context: OperationContext
) -> list[AppointmentRead]:
    repo = AppointmentRepository(context.require_session())
    rows = await repo.list_all(
        employee_id=query.employee_id,
        status=query.status,
        limit=query.limit,
        offset=query.offset,
    )
    return [AppointmentRead.model_validate(row) for row in rows]


async def get_appointment(
    query: GetAppointmentQuery, context: OperationContext
) -> AppointmentRead:
    """Raises NotFoundError for unknown ids and for other tenants' ids alike."""
    appointment = await AppointmentRepository(context.require_session()).get_by_id(
        query.appointment_id
    )
    if appointment is None:
        raise NotFoundError("Appointment", query.appointment_id)
    return AppointmentRead.model_validate(appointment)


async def create_appointment(
    command: CreateAppointmentCommand, context: OperationContext
) -> AppointmentRead:
    """Book an appointment for an employee of the caller's tenant.

    Raises:
        ConflictError: ``end_time`` is not after ``start_time``.
        NotFoundError: The employee, or the given service, does not exist
            in this tenant.
    """
    if command.end_time <= command.start_time:
        raise ConflictError("Appointment must end after it starts")

    session = context.require_session()
    employee = await EmployeeRepository(session).get_by_id(command.employee_id)
    if employee is None:
        raise NotFoundError("Employee", command.employee_id)
    if command.service_id is not None:
        service = await ServiceRepository(session).get_by_id(command.service_id)
        if service is None:
            raise NotFoundError("Service", command.service_id)

    appointment = await AppointmentRepository(session).create(
        employee_id=command.employee_id,
        service_id=command.service_id,
        customer_name=command.customer_name,
        start_time=command.start_time,
        end_time=command.end_time,
        notes=command.notes,
    )
    await session.commit()
    logger.info(
        "appointment_created",
        appointment_id=str(appointment.id),
        employee_id=str(command.employee_id),
    )
    return AppointmentRead.model_validate(appointment)


async def cancel_appointment(
    command: CancelAppointmentCommand, context: OperationContext
) -> AppointmentRead:
    session = context.require_session()
    repo = AppointmentRepository(session)
    appointment = await repo.get_by_id(command.appointment_id)
    if appointment is None:
        raise NotFoundError("Appointment", command.appointment_id)
    if appointment.status == AppointmentStatus.CANCELLED:
        raise ConflictError("Appointment is already cancelled")

    await repo.cancel(appointment)
    await session.commit()
    logger.info("appointment_cancelled", appointment_id=str(appointment.id))
    return AppointmentRead.model_validate(appointment)
