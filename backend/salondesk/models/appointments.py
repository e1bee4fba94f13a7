from __future__ import annotations

from ..extensions import db
from ..money import money_str, money_sum
from ..time_utils import minutes_between, to_utc_z
from .types import Money


# Lifecycle states (see services/lifecycle_service.py for the transition table)
STATUS_CREATED = "CREATED"
STATUS_CONFIRMED = "CONFIRMED"
STATUS_CHECKED_IN = "CHECKED_IN"
STATUS_IN_SERVICE = "IN_SERVICE"
STATUS_AWAITING_PAYMENT = "AWAITING_PAYMENT"
STATUS_DONE = "DONE"
STATUS_NO_SHOW = "NO_SHOW"
STATUS_CANCELED = "CANCELED"

APPOINTMENT_STATUSES = (
    STATUS_CREATED,
    STATUS_CONFIRMED,
    STATUS_CHECKED_IN,
    STATUS_IN_SERVICE,
    STATUS_AWAITING_PAYMENT,
    STATUS_DONE,
    STATUS_NO_SHOW,
    STATUS_CANCELED,
)

TERMINAL_STATUSES = frozenset({STATUS_DONE, STATUS_NO_SHOW, STATUS_CANCELED})


class Appointment(db.Model):
    """
    Scheduled service engagement between a customer and a professional.

    Status only changes through WorkflowCoordinator.transition. Once an
    appointment reaches DONE, NO_SHOW or CANCELED it is frozen; a reschedule
    creates a new row pointing back through rescheduled_from_id.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        db.Index("ix_appointments_professional_start", "professional_ref", "start_at"),
        db.CheckConstraint(
            "status IN ('CREATED','CONFIRMED','CHECKED_IN','IN_SERVICE',"
            "'AWAITING_PAYMENT','DONE','NO_SHOW','CANCELED')",
            name="ck_appointments_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_ref = db.Column(db.String(64), nullable=False, index=True)
    professional_ref = db.Column(db.String(64), nullable=False, index=True)

    start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    end_at = db.Column(db.DateTime(timezone=True), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=STATUS_CREATED, index=True)
    notes = db.Column(db.Text, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    # Currently linked commanda (at most one OPEN at a time)
    commanda_id = db.Column(
        db.Integer,
        db.ForeignKey("commandas.id", use_alter=True, name="fk_appointments_commanda_id"),
        nullable=True,
        index=True,
    )
    rescheduled_from_id = db.Column(db.Integer, db.ForeignKey("appointments.id"), nullable=True)

    # Audit timestamps
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    checked_in_at = db.Column(db.DateTime(timezone=True), nullable=True)
    service_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    service_finished_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    no_show_at = db.Column(db.DateTime(timezone=True), nullable=True)
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    services = db.relationship(
        "AppointmentService",
        backref="appointment",
        order_by="AppointmentService.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start_at, self.end_at)

    @property
    def total_price(self):
        return money_sum(s.price_at_booking for s in self.services)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_ref": self.customer_ref,
            "professional_ref": self.professional_ref,
            "start_at": to_utc_z(self.start_at),
            "end_at": to_utc_z(self.end_at),
            "status": self.status,
            "notes": self.notes,
            "cancel_reason": self.cancel_reason,
            "commanda_id": self.commanda_id,
            "rescheduled_from_id": self.rescheduled_from_id,
            "services": [s.to_dict() for s in self.services],
            "total_price": money_str(self.total_price),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "checked_in_at": to_utc_z(self.checked_in_at),
            "service_started_at": to_utc_z(self.service_started_at),
            "service_finished_at": to_utc_z(self.service_finished_at),
            "completed_at": to_utc_z(self.completed_at),
            "no_show_at": to_utc_z(self.no_show_at),
            "canceled_at": to_utc_z(self.canceled_at),
            "version_id": self.version_id,
        }


class AppointmentService(db.Model):
    """Service selected at booking time, with its price captured."""
    __tablename__ = "appointment_services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey("appointments.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    service_ref = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    price_at_booking = db.Column(Money(), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_ref": self.service_ref,
            "name": self.name,
            "price_at_booking": money_str(self.price_at_booking),
            "duration_minutes": self.duration_minutes,
        }
