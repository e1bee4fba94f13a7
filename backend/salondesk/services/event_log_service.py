# Overview: Append-only workflow event log written inside the caller's transaction.

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import WorkflowEvent
from ..time_utils import utcnow
"""
Workflow Event Log Invariants

- Append-only audit log for appointment and commanda state changes.
- No domain/business logic in the log itself.
- Events are flushed inside the same DB transaction as the change they record,
  so a rolled-back operation leaves no event behind.
"""


def append_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    appointment_id: int | None = None,
    commanda_id: int | None = None,
    actor: str | None = None,
    occurred_at: Optional[datetime] = None,
    payload: dict | None = None,
) -> WorkflowEvent:
    """
    Append-only workflow event.

    - No deletes/updates of existing events.
    - Does not commit; the caller's transaction decides.
    """
    event = WorkflowEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        appointment_id=appointment_id,
        commanda_id=commanda_id,
        actor=actor,
        occurred_at=occurred_at or utcnow(),
        payload=json.dumps(payload, default=str, sort_keys=True) if payload else None,
    )
    db.session.add(event)
    db.session.flush()
    return event


def events_for(entity_type: str, entity_id: int) -> list[WorkflowEvent]:
    return (
        db.session.query(WorkflowEvent)
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(WorkflowEvent.id)
        .all()
    )
