"""Request/response schemas for the API layer."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from booking_core.models.appointment import AppointmentRead


class AppointmentCreateRequest(BaseModel):
    """Request body for POST /appointments."""

    employee_id: uuid.UUID
    customer_name: str = Field(..., min_length=1, max_length=200)
    start_time: datetime
    end_time: datetime
    service_id: uuid.UUID | None = None
    notes: str | None = None


class AppointmentListResponse(BaseModel):
    """Page of appointments for ``GET /appointments``."""

    items: list[AppointmentRead]
    limit: int = Field(description="Maximum items per page (as requested).")
    offset: int = Field(description="Number of items skipped (as requested).")


class BusinessCreateRequest(BaseModel):
    """Request body for POST /businesses."""

    name: str = Field(..., min_length=1, max_length=200)
    subdomain: str | None = Field(
        default=None,
        min_length=1,
        max_length=63,
        pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$",
    )
