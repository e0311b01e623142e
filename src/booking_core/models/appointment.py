"""Read models returned by feature handlers.

Handlers return these instead of ORM instances so results can be
cached (pickled) and serialized without an open session.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from booking_core.storage.orm import AppointmentStatus


class AppointmentRead(BaseModel):
    """Snapshot of a single appointment."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    employee_id: uuid.UUID
    service_id: uuid.UUID | None = None
    customer_name: str
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    notes: str | None = None


class TenantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    subdomain: str | None = None
    is_active: bool
