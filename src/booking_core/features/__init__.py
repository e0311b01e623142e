"""Feature handlers and their operations."""

from booking_core.features.appointments import (
    CancelAppointmentCommand,
    CreateAppointmentCommand,
    GetAppointmentQuery,
    ListAppointmentsQuery,
    cancel_appointment,
    create_appointment,
    get_appointment,
    list_appointments,
)
from booking_core.features.tenants import CreateBusinessCommand, create_business
from booking_core.pipeline.mediator import Mediator


def register_handlers(mediator: Mediator) -> None:
    """Register every feature handler on ``mediator``."""
    mediator.register(ListAppointmentsQuery, list_appointments)
    mediator.register(GetAppointmentQuery, get_appointment)
    mediator.register(CreateAppointmentCommand, create_appointment)
    mediator.register(CancelAppointmentCommand, cancel_appointment)
    mediator.register(CreateBusinessCommand, create_business)


__all__ = [
    "CancelAppointmentCommand",
    "CreateAppointmentCommand",
    "CreateBusinessCommand",
    "GetAppointmentQuery",
    "ListAppointmentsQuery",
    "register_handlers",
]
