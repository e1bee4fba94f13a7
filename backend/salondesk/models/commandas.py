from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..money import ZERO, floor_zero, money_str, money_sum
from ..time_utils import to_utc_z
from .types import Money, Percentage


COMMANDA_OPEN = "OPEN"
COMMANDA_CLOSED = "CLOSED"
COMMANDA_CANCELED = "CANCELED"

CLOSE_MODE_SETTLED = "SETTLED"
CLOSE_MODE_WITHOUT_SETTLEMENT = "WITHOUT_SETTLEMENT"

DISCOUNT_BASIS_NONE = "NONE"
DISCOUNT_BASIS_VALUE = "VALUE"
DISCOUNT_BASIS_PERCENTAGE = "PERCENTAGE"


class Commanda(db.Model):
    """
    Open tab for one visit: billable items plus the payments that settle them.

    WHY: The appointment only says *what* happened; the commanda is where the
    money is reconciled. Totals are derived from items on every read, never
    trusted from a stored column, so an item edit can't leave a stale total.

    LIFECYCLE:
        OPEN -> CLOSED    (settlement_service.close, exactly once)
        OPEN -> CANCELED  (appointment canceled, or operator cancel)
    CLOSED and CANCELED commandas are immutable.
    """
    __tablename__ = "commandas"
    __table_args__ = (
        db.Index("ix_commandas_status_created", "status", "created_at"),
        db.CheckConstraint("discount_amount >= 0", name="ck_commandas_discount"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey("appointments.id"), nullable=True, index=True)
    customer_ref = db.Column(db.String(64), nullable=True, index=True)
    # Attending professional; receives the gratuity when change is left as a tip
    professional_ref = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=COMMANDA_OPEN, index=True)

    # Ticket-level discount applied on top of item totals
    discount_amount = db.Column(Money(), nullable=False, default=ZERO)

    # Closing options
    leave_change_as_tip = db.Column(db.Boolean, nullable=False, default=False)
    allow_debt = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    # Close disposition (written once, at close)
    close_mode = db.Column(db.String(24), nullable=True)
    change_amount = db.Column(Money(), nullable=True)
    tip_amount = db.Column(Money(), nullable=True)
    debt_amount = db.Column(Money(), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.String(64), nullable=True)

    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "CommandaItem",
        backref="commanda",
        order_by="CommandaItem.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    payments = db.relationship(
        "CommandaPayment",
        backref="commanda",
        order_by="CommandaPayment.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == COMMANDA_OPEN

    @property
    def subtotal(self) -> Decimal:
        return money_sum(item.final_price for item in self.items)

    @property
    def total(self) -> Decimal:
        return floor_zero(self.subtotal - (self.discount_amount or ZERO))

    @property
    def total_received(self) -> Decimal:
        return money_sum(p.gross_amount for p in self.payments)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "appointment_id": self.appointment_id,
            "customer_ref": self.customer_ref,
            "professional_ref": self.professional_ref,
            "status": self.status,
            "subtotal": money_str(self.subtotal),
            "discount_amount": money_str(self.discount_amount or ZERO),
            "total": money_str(self.total),
            "total_received": money_str(self.total_received),
            "leave_change_as_tip": bool(self.leave_change_as_tip),
            "allow_debt": bool(self.allow_debt),
            "notes": self.notes,
            "close_mode": self.close_mode,
            "change_amount": money_str(self.change_amount),
            "tip_amount": money_str(self.tip_amount),
            "debt_amount": money_str(self.debt_amount),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by": self.closed_by,
            "canceled_at": to_utc_z(self.canceled_at),
            "cancel_reason": self.cancel_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [p.to_dict() for p in self.payments]
        return data


class CommandaItem(db.Model):
    """
    Billable line on a commanda.

    kind is the variant tag (SERVICE, PRODUCT, PACKAGE); all kinds share the
    price/quantity/discount shape. unit_price is captured from the catalog
    when the line is added and never follows later catalog edits.
    """
    __tablename__ = "commanda_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_commanda_items_quantity"),
        db.CheckConstraint("final_price >= 0", name="ck_commanda_items_final_price"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    commanda_id = db.Column(db.Integer, db.ForeignKey("commandas.id"), nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False)
    catalog_ref = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=False)

    unit_price = db.Column(Money(), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    discount_basis = db.Column(db.String(16), nullable=False, default=DISCOUNT_BASIS_NONE)
    discount_value = db.Column(Money(), nullable=False, default=ZERO)
    discount_percentage = db.Column(Percentage(), nullable=False, default=ZERO)
    final_price = db.Column(Money(), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def gross_price(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "commanda_id": self.commanda_id,
            "kind": self.kind,
            "catalog_ref": self.catalog_ref,
            "description": self.description,
            "unit_price": money_str(self.unit_price),
            "quantity": self.quantity,
            "discount_basis": self.discount_basis,
            "discount_value": money_str(self.discount_value),
            "discount_percentage": money_str(self.discount_percentage),
            "final_price": money_str(self.final_price),
            "created_at": to_utc_z(self.created_at),
        }


class CommandaPayment(db.Model):
    """
    Tender applied to a commanda (the AppliedPayment).

    The instrument's fee schedule is copied onto the row when the payment is
    applied; net_amount is computed from those copies and the row is never
    updated afterwards. Rows can only be deleted while the commanda is OPEN.
    """
    __tablename__ = "commanda_payments"
    __table_args__ = (
        db.CheckConstraint("gross_amount > 0", name="ck_commanda_payments_gross"),
        db.CheckConstraint("net_amount >= 0", name="ck_commanda_payments_net"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    commanda_id = db.Column(db.Integer, db.ForeignKey("commandas.id"), nullable=False, index=True)
    instrument_id = db.Column(db.Integer, db.ForeignKey("payment_instruments.id"), nullable=False, index=True)

    # Captured from the instrument at application time
    instrument_type = db.Column(db.String(16), nullable=False)
    instrument_name = db.Column(db.String(100), nullable=False)
    percentage_fee = db.Column(Percentage(), nullable=False)
    fixed_fee = db.Column(Money(), nullable=False)
    settlement_days = db.Column(db.Integer, nullable=False, default=0)

    gross_amount = db.Column(Money(), nullable=False)
    fee_amount = db.Column(Money(), nullable=False)
    net_amount = db.Column(Money(), nullable=False)
    expected_settlement_on = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "commanda_id": self.commanda_id,
            "instrument_id": self.instrument_id,
            "instrument_type": self.instrument_type,
            "instrument_name": self.instrument_name,
            "percentage_fee": money_str(self.percentage_fee),
            "fixed_fee": money_str(self.fixed_fee),
            "settlement_days": self.settlement_days,
            "gross_amount": money_str(self.gross_amount),
            "fee_amount": money_str(self.fee_amount),
            "net_amount": money_str(self.net_amount),
            "expected_settlement_on": (
                self.expected_settlement_on.isoformat() if self.expected_settlement_on else None
            ),
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
