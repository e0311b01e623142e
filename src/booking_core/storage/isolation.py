"""Automatic tenant isolation at the data-access boundary.

``TenantIsolationFilter`` is installed on a SQLAlchemy ``Session`` class
and hooks two ORM events:

* ``do_orm_execute``: every ORM SELECT, bulk UPDATE and bulk DELETE gets
  ``tenant_id == <ambient>`` loader criteria for each ``TenantOwned``
  entity (plus ``is_deleted IS false`` for ``SoftDeletable`` ones). The
  criteria propagate to joined, aliased and relationship loads.
* ``before_flush``: new ``TenantOwned`` objects without a tenant id are
  stamped with the ambient one. Existing values are never overwritten.

The ambient tenant is read from ``session.info["tenant_context"]``, which
the request-scoped session receives when it is created. With no tenant the
criteria compare against the nil UUID, so tenant-scoped reads return
nothing instead of everything.
"""

from __future__ import annotations

import uuid
from typing import Any, TypeVar

import structlog
from sqlalchemy import and_, event
from sqlalchemy.orm import DeclarativeBase, ORMExecuteState, Session, with_loader_criteria
from sqlalchemy.sql import Executable

from booking_core.storage.orm import SoftDeletable, TenantOwned
from booking_core.tenancy.context import SESSION_TENANT_KEY, TenantContext

logger = structlog.get_logger()

NIL_TENANT_ID = uuid.UUID(int=0)
# Execution option that exempts a statement from tenant criteria.
INCLUDE_ALL_TENANTS = "include_all_tenants"

_StmtT = TypeVar("_StmtT", bound=Executable)


def session_tenant_id(session: Session) -> uuid.UUID | None:
    """Ambient tenant id bound to ``session``, if any."""
    context = session.info.get(SESSION_TENANT_KEY)
    if isinstance(context, TenantContext):
        return context.tenant_id
    return None


class TenantIsolationFilter:
    """Scope statements and stamp inserts for every tenant-owned class.

    Args:
        base: Declarative base whose registry is scanned once, at
            construction, for ``TenantOwned`` classes.
    """

    def __init__(self, base: type[DeclarativeBase]) -> None:
        self._scoped_types: tuple[type[Any], ...] = tuple(
            sorted(
                (
                    mapper.class_
                    for mapper in base.registry.mappers
                    if issubclass(mapper.class_, TenantOwned)
                ),
                key=lambda cls: cls.__name__,
            )
        )

    @property
    def scoped_types(self) -> tuple[type[Any], ...]:
        return self._scoped_types

    def is_tenant_scoped(self, entity_type: type[Any]) -> bool:
        return entity_type in self._scoped_types

    def scope_query(self, statement: _StmtT, tenant_id: uuid.UUID | None) -> _StmtT:
        """Attach tenant criteria for all scoped entities to ``statement``."""
        effective = tenant_id if tenant_id is not None else NIL_TENANT_ID
        options = []
        for entity in self._scoped_types:
            if issubclass(entity, SoftDeletable):
                options.append(
                    with_loader_criteria(
                        entity,
                        lambda cls: and_(
                            cls.tenant_id == effective,
                            cls.is_deleted.is_(False),
                        ),
                        include_aliases=True,
                    )
                )
            else:
                options.append(
                    with_loader_criteria(
                        entity,
                        lambda cls: cls.tenant_id == effective,
                        include_aliases=True,
                    )
                )
        return statement.options(*options)  # type: ignore[attr-defined,no-any-return]

    def stamp_on_insert(self, entity: object, tenant_id: uuid.UUID | None) -> bool:
        """Assign ``tenant_id`` to a new tenant-owned object that has none.

        Returns:
            True if the object was stamped.
        """
        if tenant_id is None or not self.is_tenant_scoped(type(entity)):
            return False
        if getattr(entity, "tenant_id", None) is not None:
            return False
        entity.tenant_id = tenant_id  # type: ignore[attr-defined]
        return True

    def install(self, session_class: type[Session]) -> None:
        """Register the ORM event listeners on ``session_class``."""
        event.listen(session_class, "do_orm_execute", self._on_execute)
        event.listen(session_class, "before_flush", self._on_before_flush)

    def _on_execute(self, state: ORMExecuteState) -> None:
        if (
            not (state.is_select or state.is_update or state.is_delete)
            or state.is_column_load
            or state.is_relationship_load
            or state.execution_options.get(INCLUDE_ALL_TENANTS, False)
        ):
            return
        state.statement = self.scope_query(
            state.statement, session_tenant_id(state.session)
        )

    def _on_before_flush(
        self, session: Session, flush_context: Any, instances: Any
    ) -> None:
        tenant_id = session_tenant_id(session)
        for obj in session.new:
            if self.stamp_on_insert(obj, tenant_id):
                logger.debug(
                    "tenant_stamped",
                    entity=type(obj).__name__,
                    tenant_id=str(tenant_id),
                )
