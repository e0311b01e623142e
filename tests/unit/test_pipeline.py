"""Tests for the operation pipeline: mediator, behaviors, descriptors."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from booking_core.cache.memory import MemoryCacheStore
from booking_core.errors import HandlerNotFoundError, UnauthorizedError
from booking_core.pipeline import (
    TENANT_EXEMPT_OPERATIONS,
    CacheInvalidationBehavior,
    Cacheable,
    CacheInvalidator,
    CachingBehavior,
    LoggingBehavior,
    Mediator,
    Operation,
    PerformanceBehavior,
    TenantBehavior,
    TenantScoped,
    default_behaviors,
)
from booking_core.tenancy.context import OperationContext, ResolvedFrom, TenantContext

TENANT_A = TenantContext(uuid.uuid4(), "Acme", ResolvedFrom.TOKEN)
TENANT_B = TenantContext(uuid.uuid4(), "Globex", ResolvedFrom.HEADER)


@dataclass
class ListBookingsQuery(Operation, TenantScoped, Cacheable):
    key: str | None = "bookings"
    bypass_cache: bool = False

    cache_duration = timedelta(minutes=5)

    @property
    def cache_key(self) -> str | None:
        return self.key


@dataclass
class AddBookingCommand(Operation, TenantScoped, CacheInvalidator):
    customer: str = "Carol"
    cache_key_pattern_to_invalidate = "bookings"


@dataclass
class PingQuery(Operation):
    pass


@dataclass
class SignUpCommand(Operation, TenantScoped):
    operation_name = "register"


def _ctx(tenant: TenantContext = TENANT_A) -> OperationContext:
    return OperationContext(tenant=tenant, user_id="alice")


@pytest.fixture()
def store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture()
def mediator(store: MemoryCacheStore) -> Mediator:
    return Mediator(default_behaviors(store, slow_operation_threshold_ms=10_000))


class TestOperationNames:
    def test_derived_from_class_name(self) -> None:
        assert ListBookingsQuery.operation_name == "list_bookings"
        assert AddBookingCommand.operation_name == "add_booking"
        assert PingQuery.operation_name == "ping"

    def test_explicit_name_is_kept(self) -> None:
        assert SignUpCommand.operation_name == "register"


class TestMediator:
    async def test_dispatches_to_handler(self, mediator: Mediator) -> None:
        handler = AsyncMock(return_value="pong")
        mediator.register(PingQuery, handler)
        ctx = _ctx()
        op = PingQuery()

        assert await mediator.send(op, ctx) == "pong"
        handler.assert_awaited_once_with(op, ctx)

    async def test_decorator_registration(self, mediator: Mediator) -> None:
        @mediator.handler(PingQuery)
        async def _ping(op: PingQuery, ctx: OperationContext) -> str:
            return "pong"

        assert await mediator.send(PingQuery(), _ctx()) == "pong"

    async def test_unknown_operation(self, mediator: Mediator) -> None:
        with pytest.raises(HandlerNotFoundError, match="PingQuery"):
            await mediator.send(PingQuery(), _ctx())

    async def test_behavior_order(self) -> None:
        calls: list[str] = []

        def _recorder(name: str) -> Any:
            async def behavior(op: Any, ctx: Any, call_next: Any) -> Any:
                calls.append(f"{name}:before")
                result = await call_next()
                calls.append(f"{name}:after")
                return result

            return behavior

        async def handler(op: Any, ctx: Any) -> str:
            calls.append("handler")
            return "ok"

        mediator = Mediator([_recorder("outer"), _recorder("inner")])
        mediator.register(PingQuery, handler)
        await mediator.send(PingQuery(), _ctx())

        assert calls == [
            "outer:before",
            "inner:before",
            "handler",
            "inner:after",
            "outer:after",
        ]

    def test_default_behavior_order(self, store: MemoryCacheStore) -> None:
        types = [type(b) for b in default_behaviors(store, slow_operation_threshold_ms=1)]
        assert types == [
            LoggingBehavior,
            PerformanceBehavior,
            TenantBehavior,
            CachingBehavior,
            CacheInvalidationBehavior,
        ]


class TestTenantBehavior:
    async def test_copies_tenant_onto_operation(self, mediator: Mediator) -> None:
        seen: list[uuid.UUID | None] = []

        async def handler(op: ListBookingsQuery, ctx: OperationContext) -> list[str]:
            seen.append(op.tenant_id)
            return []

        mediator.register(ListBookingsQuery, handler)
        await mediator.send(ListBookingsQuery(key=None), _ctx())
        assert seen == [TENANT_A.tenant_id]

    async def test_missing_tenant_is_unauthorized(self, mediator: Mediator) -> None:
        handler = AsyncMock(return_value=[])
        mediator.register(ListBookingsQuery, handler)

        with pytest.raises(UnauthorizedError):
            await mediator.send(ListBookingsQuery(), _ctx(TenantContext.none()))
        handler.assert_not_awaited()

    @pytest.mark.parametrize(
        "operation_name", ["register", "login", "refresh_token", "create_business"]
    )
    async def test_exempt_operation_runs_without_tenant(
        self, mediator: Mediator, operation_name: str
    ) -> None:
        command_type = type(
            "ExemptCommand",
            (Operation, TenantScoped),
            {"operation_name": operation_name},
        )
        handler = AsyncMock(return_value="created")
        mediator.register(command_type, handler)
        op = command_type()

        assert await mediator.send(op, _ctx(TenantContext.none())) == "created"
        assert op.tenant_id is None
        handler.assert_awaited_once()

    def test_default_exemptions(self) -> None:
        assert TENANT_EXEMPT_OPERATIONS == {
            "register",
            "login",
            "refresh_token",
            "create_business",
        }
        assert TenantBehavior().exempt_operations == TENANT_EXEMPT_OPERATIONS

    async def test_unscoped_operation_is_untouched(self, mediator: Mediator) -> None:
        mediator.register(PingQuery, AsyncMock(return_value="pong"))
        assert await mediator.send(PingQuery(), _ctx(TenantContext.none())) == "pong"

    async def test_custom_exemptions(self) -> None:
        behavior = TenantBehavior(exempt_operations={"list_bookings"})
        call_next = AsyncMock(return_value="ok")
        result = await behavior(ListBookingsQuery(), _ctx(TenantContext.none()), call_next)
        assert result == "ok"
        assert behavior.exempt_operations == frozenset({"list_bookings"})


class TestCachingBehavior:
    async def test_second_call_is_served_from_cache(self, mediator: Mediator) -> None:
        handler = AsyncMock(return_value=["a1"])
        mediator.register(ListBookingsQuery, handler)

        first = await mediator.send(ListBookingsQuery(), _ctx())
        second = await mediator.send(ListBookingsQuery(), _ctx())

        assert first == second == ["a1"]
        handler.assert_awaited_once()

    async def test_tenants_never_share_results(self, mediator: Mediator) -> None:
        async def handler(op: ListBookingsQuery, ctx: OperationContext) -> list[str]:
            return [ctx.tenant.tenant_name or ""]

        mediator.register(ListBookingsQuery, handler)

        assert await mediator.send(ListBookingsQuery(), _ctx(TENANT_A)) == ["Acme"]
        assert await mediator.send(ListBookingsQuery(), _ctx(TENANT_B)) == ["Globex"]
        assert await mediator.send(ListBookingsQuery(), _ctx(TENANT_A)) == ["Acme"]

    async def test_bypass_recomputes(self, mediator: Mediator) -> None:
        handler = AsyncMock(side_effect=[["old"], ["new"]])
        mediator.register(ListBookingsQuery, handler)

        await mediator.send(ListBookingsQuery(), _ctx())
        result = await mediator.send(ListBookingsQuery(bypass_cache=True), _ctx())

        assert result == ["new"]
        assert handler.await_count == 2

    async def test_bypass_on_both_calls_runs_handler_twice(
        self, mediator: Mediator, store: MemoryCacheStore
    ) -> None:
        handler = AsyncMock(side_effect=[["first"], ["second"]])
        mediator.register(ListBookingsQuery, handler)

        first = await mediator.send(ListBookingsQuery(bypass_cache=True), _ctx())
        second = await mediator.send(ListBookingsQuery(bypass_cache=True), _ctx())

        assert (first, second) == (["first"], ["second"])
        assert handler.await_count == 2
        assert await store.scoped(TENANT_A).get("bookings") is None

    async def test_no_key_means_no_caching(
        self, mediator: Mediator, store: MemoryCacheStore
    ) -> None:
        handler = AsyncMock(return_value=["a"])
        mediator.register(ListBookingsQuery, handler)

        await mediator.send(ListBookingsQuery(key=None), _ctx())
        await mediator.send(ListBookingsQuery(key=None), _ctx())

        assert handler.await_count == 2
        assert len(store) == 0

    async def test_handler_error_is_not_cached(self, mediator: Mediator) -> None:
        handler = AsyncMock(side_effect=[RuntimeError("db down"), ["a"]])
        mediator.register(ListBookingsQuery, handler)

        with pytest.raises(RuntimeError, match="db down"):
            await mediator.send(ListBookingsQuery(), _ctx())
        assert await mediator.send(ListBookingsQuery(), _ctx()) == ["a"]


class TestCacheInvalidationBehavior:
    async def test_success_evicts_matching_entries(
        self, mediator: Mediator, store: MemoryCacheStore
    ) -> None:
        listing = AsyncMock(side_effect=[["a1"], ["a1", "a2"]])
        mediator.register(ListBookingsQuery, listing)
        mediator.register(AddBookingCommand, AsyncMock(return_value="a2"))

        await mediator.send(ListBookingsQuery(), _ctx())
        await mediator.send(AddBookingCommand(), _ctx())
        result = await mediator.send(ListBookingsQuery(), _ctx())

        assert result == ["a1", "a2"]
        assert listing.await_count == 2

    async def test_eviction_stays_in_own_tenant(
        self, mediator: Mediator, store: MemoryCacheStore
    ) -> None:
        mediator.register(ListBookingsQuery, AsyncMock(return_value=["x"]))
        mediator.register(AddBookingCommand, AsyncMock(return_value="ok"))

        await mediator.send(ListBookingsQuery(), _ctx(TENANT_A))
        await mediator.send(ListBookingsQuery(), _ctx(TENANT_B))
        await mediator.send(AddBookingCommand(), _ctx(TENANT_A))

        assert await store.scoped(TENANT_A).exists("bookings") is False
        assert await store.scoped(TENANT_B).exists("bookings") is True

    async def test_failed_command_does_not_evict(
        self, mediator: Mediator, store: MemoryCacheStore
    ) -> None:
        mediator.register(ListBookingsQuery, AsyncMock(return_value=["x"]))
        mediator.register(AddBookingCommand, AsyncMock(side_effect=ValueError("bad")))

        await mediator.send(ListBookingsQuery(), _ctx())
        with pytest.raises(ValueError, match="bad"):
            await mediator.send(AddBookingCommand(), _ctx())

        assert await store.scoped(TENANT_A).exists("bookings") is True

    async def test_exact_key_and_pattern(self, store: MemoryCacheStore) -> None:
        @dataclass
        class CancelBookingCommand(Operation, TenantScoped, CacheInvalidator):
            cache_key_to_invalidate = "booking:1"
            cache_key_pattern_to_invalidate = "bookings|calendar"

        cache = store.scoped(TENANT_A)
        await cache.set("booking:1", 1)
        await cache.set("booking:2", 2)
        await cache.set("bookings:all", 3)
        await cache.set("calendar:week", 4)

        behavior = CacheInvalidationBehavior(store)
        await behavior(CancelBookingCommand(), _ctx(), AsyncMock(return_value="ok"))

        assert await cache.exists("booking:1") is False
        assert await cache.exists("booking:2") is True
        assert await cache.exists("bookings:all") is False
        assert await cache.exists("calendar:week") is False

    async def test_eviction_error_does_not_fail_command(self) -> None:
        store = MagicMock()
        tenant_cache = MagicMock()
        tenant_cache.remove_by_pattern = AsyncMock(side_effect=RuntimeError("down"))
        store.scoped.return_value = tenant_cache

        behavior = CacheInvalidationBehavior(store)
        with patch("booking_core.pipeline.behaviors.logger") as mock_logger:
            result = await behavior(
                AddBookingCommand(), _ctx(), AsyncMock(return_value="ok")
            )

        assert result == "ok"
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args[0][0] == "cache_invalidation_failed"


class TestLoggingBehavior:
    async def test_logs_start_and_success(self) -> None:
        with patch("booking_core.pipeline.behaviors.logger") as mock_logger:
            result = await LoggingBehavior()(
                PingQuery(), _ctx(), AsyncMock(return_value="pong")
            )

        assert result == "pong"
        events = [c[0][0] for c in mock_logger.info.call_args_list]
        assert events == ["operation_started", "operation_succeeded"]
        fields = mock_logger.info.call_args_list[1][1]
        assert fields["operation"] == "ping"
        assert fields["user_id"] == "alice"
        assert fields["tenant_id"] == str(TENANT_A.tenant_id)
        assert fields["tenant_name"] == "Acme"
        assert "elapsed_ms" in fields

    async def test_anonymous_defaults(self) -> None:
        with patch("booking_core.pipeline.behaviors.logger") as mock_logger:
            await LoggingBehavior()(
                PingQuery(), OperationContext(), AsyncMock(return_value=None)
            )
        fields = mock_logger.info.call_args_list[0][1]
        assert fields["user_id"] == "anonymous"
        assert fields["tenant_id"] is None
        assert fields["tenant_name"] == "unknown"

    async def test_logs_and_reraises_failure(self) -> None:
        with patch("booking_core.pipeline.behaviors.logger") as mock_logger:
            with pytest.raises(KeyError):
                await LoggingBehavior()(
                    PingQuery(), _ctx(), AsyncMock(side_effect=KeyError("x"))
                )

        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args[0][0] == "operation_failed"
        assert mock_logger.error.call_args[1]["error_type"] == "KeyError"

    async def test_logs_cancellation(self) -> None:
        with patch("booking_core.pipeline.behaviors.logger") as mock_logger:
            with pytest.raises(asyncio.CancelledError):
                await LoggingBehavior()(
                    PingQuery(),
                    _ctx(),
                    AsyncMock(side_effect=asyncio.CancelledError()),
                )
        assert mock_logger.warning.call_args[0][0] == "operation_cancelled"


class TestPerformanceBehavior:
    async def test_warns_on_slow_operation(self) -> None:
        async def slow() -> str:
            await asyncio.sleep(0.05)
            return "done"

        with patch("booking_core.pipeline.behaviors.logger") as mock_logger:
            result = await PerformanceBehavior(threshold_ms=10)(PingQuery(), _ctx(), slow)

        assert result == "done"
        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args[0][0] == "slow_operation"
        assert mock_logger.warning.call_args[1]["threshold_ms"] == 10

    async def test_fast_operation_is_quiet(self) -> None:
        with patch("booking_core.pipeline.behaviors.logger") as mock_logger:
            await PerformanceBehavior(threshold_ms=10_000)(
                PingQuery(), _ctx(), AsyncMock(return_value=None)
            )
        mock_logger.warning.assert_not_called()

    async def test_slow_failure_is_still_reported(self) -> None:
        async def slow_fail() -> None:
            await asyncio.sleep(0.05)
            raise RuntimeError("late")

        with patch("booking_core.pipeline.behaviors.logger") as mock_logger:
            with pytest.raises(RuntimeError):
                await PerformanceBehavior(threshold_ms=10)(PingQuery(), _ctx(), slow_fail)
        mock_logger.warning.assert_called_once()


class TestTwoTenantScenario:
    async def test_read_invalidate_reread(self, mediator: Mediator, store: MemoryCacheStore) -> None:
        """A's write evicts only A's entries; B keeps hitting its own."""
        results = {
            TENANT_A.tenant_id: [["a1"], ["a1", "a2"]],
            TENANT_B.tenant_id: [["b1"]],
        }
        handler_calls: list[uuid.UUID | None] = []

        async def list_handler(op: ListBookingsQuery, ctx: OperationContext) -> list[str]:
            handler_calls.append(op.tenant_id)
            return results[op.tenant_id].pop(0)

        mediator.register(ListBookingsQuery, list_handler)
        mediator.register(AddBookingCommand, AsyncMock(return_value="a2"))

        def query(key: str) -> ListBookingsQuery:
            return ListBookingsQuery(key=key)

        assert await mediator.send(query("bookings_A"), _ctx(TENANT_A)) == ["a1"]
        assert await store.get(f"tenant:{TENANT_A.tenant_id}:bookings_A") == ["a1"]
        assert await mediator.send(query("bookings_A"), _ctx(TENANT_A)) == ["a1"]
        assert await mediator.send(query("bookings_B"), _ctx(TENANT_B)) == ["b1"]
        assert handler_calls == [TENANT_A.tenant_id, TENANT_B.tenant_id]

        await mediator.send(AddBookingCommand(), _ctx(TENANT_A))

        assert await mediator.send(query("bookings_A"), _ctx(TENANT_A)) == ["a1", "a2"]
        assert await mediator.send(query("bookings_B"), _ctx(TENANT_B)) == ["b1"]
        assert handler_calls == [
            TENANT_A.tenant_id,
            TENANT_B.tenant_id,
            TENANT_A.tenant_id,
        ]
