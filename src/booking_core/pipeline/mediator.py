"""Mediator: dispatch operations to handlers through the behavior chain."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from functools import partial
from typing import Any, TypeVar

from booking_core.cache.base import CacheStore
from booking_core.errors import HandlerNotFoundError
from booking_core.pipeline.behaviors import (
    Behavior,
    CacheInvalidationBehavior,
    CachingBehavior,
    LoggingBehavior,
    NextStep,
    PerformanceBehavior,
    TenantBehavior,
)
from booking_core.pipeline.operations import Operation
from booking_core.tenancy.context import OperationContext

_OpT = TypeVar("_OpT", bound=Operation)

Handler = Callable[[Any, OperationContext], Awaitable[Any]]


class Mediator:
    """Send operations to their registered handler.

    Behaviors run outermost first, in the order given. The chain is
    rebuilt per call, so a Mediator is safe to share between concurrent
    operations as long as its behaviors are.
    """

    def __init__(self, behaviors: Sequence[Behavior] = ()) -> None:
        self._behaviors = tuple(behaviors)
        self._handlers: dict[type[Operation], Handler] = {}

    @property
    def behaviors(self) -> tuple[Behavior, ...]:
        return self._behaviors

    def register(self, operation_type: type[_OpT], handler: Handler) -> None:
        """Register ``handler`` for exactly ``operation_type``."""
        self._handlers[operation_type] = handler

    def handler(
        self, operation_type: type[_OpT]
    ) -> Callable[[Handler], Handler]:
        """Decorator form of ``register``."""

        def decorator(func: Handler) -> Handler:
            self.register(operation_type, func)
            return func

        return decorator

    async def send(self, operation: Operation, context: OperationContext) -> Any:
        """Run ``operation`` through every behavior and its handler.

        Raises:
            HandlerNotFoundError: no handler registered for the type.
        """
        handler = self._handlers.get(type(operation))
        if handler is None:
            raise HandlerNotFoundError(type(operation))

        call_next: NextStep = partial(handler, operation, context)
        for behavior in reversed(self._behaviors):
            call_next = partial(behavior, operation, context, call_next)
        return await call_next()


def default_behaviors(
    cache_store: CacheStore,
    *,
    slow_operation_threshold_ms: int,
) -> list[Behavior]:
    """The fixed stage order: logging, timing, tenant, cache read, invalidation."""
    return [
        LoggingBehavior(),
        PerformanceBehavior(slow_operation_threshold_ms),
        TenantBehavior(),
        CachingBehavior(cache_store),
        CacheInvalidationBehavior(cache_store),
    ]
