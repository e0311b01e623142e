"""Domain-specific exceptions for booking-core."""

from __future__ import annotations


class BookingCoreError(Exception):
    """Base class for errors surfaced to API callers."""


class UnauthorizedError(BookingCoreError):
    """Tenant context is required but missing or invalid.

    Always surfaced as an authorization failure (HTTP 401), never as a
    server error, so clients do not retry it as a transient fault.
    """


class TenantResolutionError(UnauthorizedError):
    """An explicit tenant header did not resolve to an active tenant."""

    def __init__(self, raw_value: str) -> None:
        self.raw_value = raw_value
        super().__init__("Invalid tenant ID")


class NotFoundError(BookingCoreError):
    """Requested record does not exist (or belongs to another tenant)."""

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} ({key}) was not found")


class ForbiddenError(BookingCoreError):
    """Caller is authenticated but not allowed to perform the operation."""


class HandlerNotFoundError(LookupError):
    """No handler is registered for an operation type."""

    def __init__(self, operation_type: type) -> None:
        self.operation_type = operation_type
        super().__init__(f"No handler registered for {operation_type.__name__}")


class ConflictError(BookingCoreError):
    """Request clashes with existing state (duplicate name, bad time range)."""
