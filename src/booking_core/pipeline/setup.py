"""One-stop factory for assembling the operation pipeline.

Usage::

    from booking_core.cache import create_cache_store
    from booking_core.pipeline.setup import create_mediator

    mediator = create_mediator(get_settings(), create_cache_store(get_settings()))
    result = await mediator.send(ListAppointmentsQuery(), context)
"""

import structlog

from booking_core.cache.base import CacheStore
from booking_core.config import Settings
from booking_core.features import register_handlers
from booking_core.pipeline.mediator import Mediator, default_behaviors

logger = structlog.get_logger()


def create_mediator(settings: Settings, cache_store: CacheStore) -> Mediator:
    """Assemble a Mediator with the standard behaviors and feature handlers.

    Args:
        settings: Application settings (slow operation threshold).
        cache_store: Shared cache backend for read-through and invalidation.

    Returns:
        Mediator with every feature handler registered.
    """
    mediator = Mediator(
        default_behaviors(
            cache_store,
            slow_operation_threshold_ms=settings.slow_operation_threshold_ms,
        )
    )
    register_handlers(mediator)
    logger.info(
        "mediator_created",
        behaviors=[type(b).__name__ for b in mediator.behaviors],
    )
    return mediator
