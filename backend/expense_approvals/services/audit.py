"""Audit log helper: append-only writes through the unit of work."""
import json
import logging
import uuid
from typing import Any

from expense_approvals.models.audit import AuditLog
from expense_approvals.repositories.base import UnitOfWork

logger = logging.getLogger(__name__)


def log(
    uow: UnitOfWork,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_id: uuid.UUID | str | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Write a single audit log entry inside the caller's transaction.

    Args:
        uow: Unit of work whose transaction the entry joins; nothing is committed here.
        action: Short verb, e.g. 'approval_request_decided', 'expense_overridden'.
        entity_type: Domain name, e.g. 'expense', 'approval_request', 'approval_flow'.
        entity_id: PK of the affected record.
        actor_id: User who performed the action (None for system actions).
        before: Dict snapshot of state before the action (JSON-serialisable).
        after: Dict snapshot of state after the action.
        notes: Free-text annotation.
    """
    entry = AuditLog(
        actor_id=uuid.UUID(str(actor_id)) if actor_id else None,
        action=action,
        entity_type=entity_type,
        entity_id=uuid.UUID(str(entity_id)) if entity_id else None,
        before_state=json.dumps(before, default=str) if before is not None else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        notes=notes,
    )
    uow.audit.add(entry)
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry
