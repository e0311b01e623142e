"""Created/modified bookkeeping for ``Auditable`` rows."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from booking_core.storage.orm import Auditable
from booking_core.tenancy.context import SESSION_USER_KEY

SYSTEM_USER = "system"


def stamp_audit_fields(session: Session, flush_context: Any, instances: Any) -> None:
    """``before_flush`` hook filling created_by / last_modified_* columns.

    ``created_by`` is only set when empty. The acting user comes from
    ``session.info["user_id"]``; "system" when nobody is signed in.
    """
    user = session.info.get(SESSION_USER_KEY) or SYSTEM_USER
    now = datetime.now(UTC)

    for obj in session.new:
        if isinstance(obj, Auditable) and not obj.created_by:
            obj.created_by = user

    for obj in session.dirty:
        if isinstance(obj, Auditable) and session.is_modified(obj):
            obj.last_modified_at = now
            obj.last_modified_by = user


def install_audit(session_class: type[Session]) -> None:
    event.listen(session_class, "before_flush", stamp_audit_fields)
