"""Pipeline stages wrapped around every handler invocation.

Each behavior receives the operation, its ``OperationContext`` and a
``call_next`` coroutine factory for the rest of the chain. It may
short-circuit (cache hit) or continue. None of them swallows a handler
error.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol

import structlog

from booking_core.cache.base import CacheStore
from booking_core.errors import UnauthorizedError
from booking_core.pipeline.operations import (
    Cacheable,
    CacheInvalidator,
    Operation,
    TenantScoped,
)
from booking_core.tenancy.context import OperationContext

logger = structlog.get_logger()

NextStep = Callable[[], Awaitable[Any]]

# Operations allowed to run before a tenant exists.
TENANT_EXEMPT_OPERATIONS: frozenset[str] = frozenset(
    {"register", "login", "refresh_token", "create_business"}
)

DEFAULT_SLOW_OPERATION_MS = 500


class Behavior(Protocol):
    async def __call__(
        self,
        operation: Operation,
        context: OperationContext,
        call_next: NextStep,
    ) -> Any: ...


def _log_fields(operation: Operation, context: OperationContext) -> dict[str, Any]:
    tenant = context.tenant
    return {
        "operation": operation.operation_name,
        "user_id": context.user_id or "anonymous",
        "tenant_id": str(tenant.tenant_id) if tenant.tenant_id else None,
        "tenant_name": tenant.tenant_name or "unknown",
    }


class LoggingBehavior:
    """Log entry, then success or failure with elapsed time."""

    async def __call__(
        self,
        operation: Operation,
        context: OperationContext,
        call_next: NextStep,
    ) -> Any:
        fields = _log_fields(operation, context)
        logger.info("operation_started", **fields)

        start = time.perf_counter()
        try:
            response = await call_next()
        except asyncio.CancelledError:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            logger.warning("operation_cancelled", elapsed_ms=elapsed_ms, **fields)
            raise
        except Exception as exc:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            logger.error(
                "operation_failed",
                elapsed_ms=elapsed_ms,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
                **fields,
            )
            raise

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info("operation_succeeded", elapsed_ms=elapsed_ms, **fields)
        return response


class PerformanceBehavior:
    """Warn about operations slower than ``threshold_ms``."""

    def __init__(self, threshold_ms: int = DEFAULT_SLOW_OPERATION_MS) -> None:
        self._threshold_ms = threshold_ms

    async def __call__(
        self,
        operation: Operation,
        context: OperationContext,
        call_next: NextStep,
    ) -> Any:
        start = time.perf_counter()
        try:
            return await call_next()
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            if elapsed_ms > self._threshold_ms:
                logger.warning(
                    "slow_operation",
                    elapsed_ms=elapsed_ms,
                    threshold_ms=self._threshold_ms,
                    **_log_fields(operation, context),
                )


class TenantBehavior:
    """Copy the resolved tenant id onto ``TenantScoped`` operations.

    Raises:
        UnauthorizedError: a non-exempt tenant-scoped operation runs
            without an established tenant.
    """

    def __init__(
        self, exempt_operations: Iterable[str] = TENANT_EXEMPT_OPERATIONS
    ) -> None:
        self._exempt = frozenset(exempt_operations)

    @property
    def exempt_operations(self) -> frozenset[str]:
        return self._exempt

    async def __call__(
        self,
        operation: Operation,
        context: OperationContext,
        call_next: NextStep,
    ) -> Any:
        if (
            isinstance(operation, TenantScoped)
            and operation.operation_name not in self._exempt
        ):
            tenant_id = context.tenant.tenant_id
            if tenant_id is None:
                logger.warning(
                    "tenant_context_missing", operation=operation.operation_name
                )
                raise UnauthorizedError("Tenant context is not established")
            operation.tenant_id = tenant_id

        return await call_next()


class CachingBehavior:
    """Serve ``Cacheable`` queries through the tenant's cache view."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    async def __call__(
        self,
        operation: Operation,
        context: OperationContext,
        call_next: NextStep,
    ) -> Any:
        if not isinstance(operation, Cacheable) or operation.cache_key is None:
            return await call_next()

        cache = self._store.scoped(context.tenant)
        return await cache.get_or_create(
            operation.cache_key,
            call_next,
            operation.cache_duration,
            operation.bypass_cache,
        )


class CacheInvalidationBehavior:
    """Evict cache entries after a ``CacheInvalidator`` command succeeds.

    Runs only when the handler returned normally. Eviction failures are
    logged and never fail the command.
    """

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    async def __call__(
        self,
        operation: Operation,
        context: OperationContext,
        call_next: NextStep,
    ) -> Any:
        response = await call_next()

        if not isinstance(operation, CacheInvalidator):
            return response

        cache = self._store.scoped(context.tenant)
        key = operation.cache_key_to_invalidate
        pattern = operation.cache_key_pattern_to_invalidate
        try:
            if key is not None:
                await cache.remove(key)
            if pattern is not None:
                await cache.remove_by_pattern(pattern)
        except Exception as exc:
            logger.error(
                "cache_invalidation_failed",
                operation=operation.operation_name,
                cache_key=key,
                pattern=pattern,
                error=str(exc),
                exc_info=True,
            )
        return response
