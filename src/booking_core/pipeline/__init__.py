"""Operation pipeline: descriptors, behaviors, mediator.

Note: ``create_mediator`` lives in ``pipeline.setup`` and is NOT re-exported
here to avoid a circular import (pipeline -> features -> pipeline).
Import directly: ``from booking_core.pipeline.setup import create_mediator``.
"""

from booking_core.pipeline.behaviors import (
    TENANT_EXEMPT_OPERATIONS,
    CacheInvalidationBehavior,
    CachingBehavior,
    LoggingBehavior,
    PerformanceBehavior,
    TenantBehavior,
)
from booking_core.pipeline.mediator import Mediator, default_behaviors
from booking_core.pipeline.operations import (
    Cacheable,
    CacheInvalidator,
    Operation,
    TenantScoped,
)

__all__ = [
    "TENANT_EXEMPT_OPERATIONS",
    "CacheInvalidationBehavior",
    "CacheInvalidator",
    "Cacheable",
    "CachingBehavior",
    "LoggingBehavior",
    "Mediator",
    "Operation",
    "PerformanceBehavior",
    "TenantBehavior",
    "TenantScoped",
    "default_behaviors",
]
