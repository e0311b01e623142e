"""Repositories for database operations.

Repositories never add tenant predicates themselves: the session they
receive is bound to a tenant and ``TenantIsolationFilter`` scopes every
query it runs.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from booking_core.storage.orm import (
    Appointment,
    AppointmentStatus,
    Employee,
    Service,
    Tenant,
)


class TenantRepository:
    """Tenant lookups and creation. Tenants are never tenant-filtered."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, tenant_id: uuid.UUID) -> Tenant | None:
        return await self._session.get(Tenant, tenant_id)

    async def get_by_subdomain(self, subdomain: str) -> Tenant | None:
        stmt = select(Tenant).where(
            Tenant.subdomain == subdomain.lower(),
            Tenant.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Tenant | None:
        result = await self._session.execute(select(Tenant).where(Tenant.name == name))
        return result.scalar_one_or_none()

    async def create(self, *, name: str, subdomain: str | None = None) -> Tenant:
        """Create a new active tenant.

        Args:
            name: Unique business name.
            subdomain: Optional unique host label used for resolution.

        Returns:
            The newly created Tenant ORM instance.
        """
        tenant = Tenant(
            name=name,
            subdomain=subdomain.lower() if subdomain else None,
            is_active=True,
        )
        self._session.add(tenant)
        await self._session.flush()
        return tenant


class SessionTenantLookup:
    """``TenantLookup`` opening a short-lived session per lookup.

    Used by tenant resolution, which runs before the request-scoped
    session exists.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, tenant_id: uuid.UUID) -> Tenant | None:
        async with self._session_factory() as session:
            return await TenantRepository(session).get_by_id(tenant_id)

    async def get_by_subdomain(self, subdomain: str) -> Tenant | None:
        async with self._session_factory() as session:
            return await TenantRepository(session).get_by_subdomain(subdomain)


class AppointmentRepository:
    """CRUD for appointments of the session's tenant."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, appointment_id: uuid.UUID) -> Appointment | None:
        stmt = select(Appointment).where(Appointment.id == appointment_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(
        self,
        *,
        employee_id: uuid.UUID | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Appointment]:
        """List appointments ordered by start time (earliest first).

        Args:
            employee_id: Only appointments of this employee.
            status: Only appointments in this status.
            limit: Maximum number of results.
            offset: Number of results to skip.
        """
        stmt = select(Appointment)
        if employee_id is not None:
            stmt = stmt.where(Appointment.employee_id == employee_id)
        if status is not None:
            stmt = stmt.where(Appointment.status == status)
        stmt = stmt.order_by(Appointment.start_time).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def create(
        self,
        *,
        employee_id: uuid.UUID,
        customer_name: str,
        start_time: datetime,
        end_time: datetime,
        service_id: uuid.UUID | None = None,
        notes: str | None = None,
    ) -> Appointment:
        """Create an appointment. ``tenant_id`` is stamped on flush."""
        appointment = Appointment(
            employee_id=employee_id,
            service_id=service_id,
            customer_name=customer_name,
            start_time=start_time,
            end_time=end_time,
            notes=notes,
            status=AppointmentStatus.SCHEDULED.value,
        )
        self._session.add(appointment)
        await self._session.flush()
        return appointment

    async def cancel(self, appointment: Appointment) -> Appointment:
        appointment.status = AppointmentStatus.CANCELLED.value
        await self._session.flush()
        return appointment


class EmployeeRepository:
    """Read access to employees of the session's tenant."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, employee_id: uuid.UUID) -> Employee | None:
        result = await self._session.execute(
            select(Employee).where(Employee.id == employee_id)
        )
        return result.scalar_one_or_none()


class ServiceRepository:
    """Read access to the bookable services of the session's tenant."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, service_id: uuid.UUID) -> Service | None:
        result = await self._session.execute(
            select(Service).where(Service.id == service_id)
        )
        return result.scalar_one_or_none()
