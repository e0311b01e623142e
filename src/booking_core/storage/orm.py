"""SQLAlchemy ORM models for all project entities."""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

import uuid_utils as uuid7_lib
from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    declared_attr,
    mapped_column,
    relationship,
    synonym,
)


def _uuid7() -> uuid.UUID:
    """Generate a UUIDv7 (time-ordered) for use as default PK value."""
    return uuid.UUID(bytes=uuid7_lib.uuid7().bytes)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


# ──────────────────────────────────────────────
# Mixins
# ──────────────────────────────────────────────


class TenantOwned:
    """Marks a mapped class as tenant-scoped.

    Every read is filtered to the ambient tenant and every insert is
    stamped with it (see ``storage.isolation``).
    """

    @declared_attr
    def tenant_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            ForeignKey("tenants.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        )


class SoftDeletable:
    """Rows are flagged instead of deleted and hidden from reads."""

    is_deleted: Mapped[bool] = mapped_column(default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Auditable:
    """Created/modified bookkeeping filled in on flush."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    created_by: Mapped[str | None] = mapped_column(String(100))
    last_modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_modified_by: Mapped[str | None] = mapped_column(String(100))


# ──────────────────────────────────────────────
# Tenants
# ──────────────────────────────────────────────


class Tenant(Base):
    """A business using the platform.

    Its own id doubles as its tenant id. It is deliberately not
    ``TenantOwned``: tenants must be readable before any tenant context
    exists (resolution, business creation).
    """

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=_uuid7)
    name: Mapped[str] = mapped_column(String(200), unique=True)
    subdomain: Mapped[str | None] = mapped_column(String(63), unique=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    tenant_id = synonym("id")


# ──────────────────────────────────────────────
# Scheduling
# ──────────────────────────────────────────────


class Employee(TenantOwned, SoftDeletable, Auditable, Base):
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=_uuid7)
    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str | None] = mapped_column(String(320))
    is_active: Mapped[bool] = mapped_column(default=True)

    appointments: Mapped[list["Appointment"]] = relationship(back_populates="employee")


class Service(TenantOwned, SoftDeletable, Auditable, Base):
    __tablename__ = "services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=_uuid7)
    name: Mapped[str] = mapped_column(String(200))
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)


class AppointmentStatus(StrEnum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Appointment(TenantOwned, SoftDeletable, Auditable, Base):
    __tablename__ = "appointments"

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, tenant_id={self.tenant_id}, "
            f"status='{self.status}')>"
        )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=_uuid7)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), index=True
    )
    service_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("services.id", ondelete="SET NULL")
    )
    customer_name: Mapped[str] = mapped_column(String(200))
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(
        Enum(
            *(s.value for s in AppointmentStatus),
            name="appointment_status_enum",
        ),
        default=AppointmentStatus.SCHEDULED.value,
    )
    notes: Mapped[str | None] = mapped_column(Text)

    employee: Mapped["Employee"] = relationship(back_populates="appointments")
