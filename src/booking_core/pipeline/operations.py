"""Operation descriptors and their capability tags.

Commands and queries are plain (usually dataclass) objects deriving from
``Operation`` plus any combination of the tag mixins below. The pipeline
inspects the tags with ``isinstance``.
"""

from __future__ import annotations

import re
import uuid
from datetime import timedelta
from typing import ClassVar

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_OPERATION_SUFFIXES = ("Command", "Query")


def _default_operation_name(cls: type) -> str:
    """``CreateAppointmentCommand`` -> ``create_appointment``."""
    name = cls.__name__
    for suffix in _OPERATION_SUFFIXES:
        if name.endswith(suffix) and name != suffix:
            name = name[: -len(suffix)]
            break
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class Operation:
    """Base for every command and query sent through the pipeline.

    ``operation_name`` identifies the operation in logs and in the tenant
    exemption list. Derived from the class name unless set explicitly.
    """

    operation_name: ClassVar[str] = ""

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if not cls.__dict__.get("operation_name"):
            cls.operation_name = _default_operation_name(cls)


class TenantScoped:
    """Operation that must carry the caller's tenant id.

    The pipeline fills ``tenant_id`` before the handler runs.
    """

    tenant_id: uuid.UUID | None = None


class Cacheable:
    """Query whose result may be served from the tenant's cache.

    ``cache_key`` of None disables caching for that call.
    """

    cache_key: str | None = None
    cache_duration: timedelta | None = None
    bypass_cache: bool = False


class CacheInvalidator:
    """Command that evicts cache entries after it succeeds.

    ``cache_key_pattern_to_invalidate`` may hold several patterns
    separated by ``|``.
    """

    cache_key_to_invalidate: str | None = None
    cache_key_pattern_to_invalidate: str | None = None
