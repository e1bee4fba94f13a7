from __future__ import annotations

import json

from ..extensions import db
from ..time_utils import to_utc_z


class WorkflowEvent(db.Model):
    """
    Append-only audit log of appointment and commanda state changes.

    IMMUTABLE: rows are written in the same transaction as the change they
    record and are never updated or deleted.
    """
    __tablename__ = "workflow_events"
    __table_args__ = (
        db.Index("ix_workflow_events_entity", "entity_type", "entity_id"),
        db.Index("ix_workflow_events_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)

    appointment_id = db.Column(db.Integer, nullable=True, index=True)
    commanda_id = db.Column(db.Integer, nullable=True, index=True)

    actor = db.Column(db.String(64), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "appointment_id": self.appointment_id,
            "commanda_id": self.commanda_id,
            "actor": self.actor,
            "occurred_at": to_utc_z(self.occurred_at),
            "payload": json.loads(self.payload) if self.payload else None,
        }
