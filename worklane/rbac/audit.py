"""Audit emission for authorization-model writes.

Callers emit exactly one event after a mutation commits, never before and never
for a failed mutation. The sink is fire-and-forget: a failure to record the
event is logged and does not undo or fail the already-committed write.
"""

import logging
import uuid
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Any, Protocol

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from worklane.db import get_db
from worklane.models.audit_log import AuditLog
from worklane.models.enums import AuditAction, AuditResourceType

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class AuditEvent:
    actor_id: uuid.UUID
    org_id: uuid.UUID
    action: AuditAction
    resource_type: AuditResourceType
    resource_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...

class DatabaseAuditSink:
    def __init__(self, db: Session):
        self.db = db

    def emit(self, event: AuditEvent) -> None:
        row = AuditLog(
            actor_id=event.actor_id,
            org_id=event.org_id,
            action=event.action.value,
            resource_type=event.resource_type.value,
            resource_id=event.resource_id,
            details=_jsonable(event.metadata),
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("failed to record audit event %s", event.action.value)
            return
        logger.info(
            "audit %s %s:%s by %s in org %s",
            event.action.value,
            event.resource_type.value,
            event.resource_id,
            event.actor_id,
            event.org_id,
        )

def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(_jsonable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, uuid.UUID):
        return str(value)
    if hasattr(value, "value") and not isinstance(value, (str, int, float, bool)):
        return value.value
    return value

def get_audit_sink(db: Session = Depends(get_db)) -> Generator[AuditSink, None, None]:
    yield DatabaseAuditSink(db)
