from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z
from .types import Money, Percentage


# Instrument types (tender methods)
INSTRUMENT_CASH = "CASH"
INSTRUMENT_PIX = "PIX"
INSTRUMENT_CREDIT = "CREDIT"
INSTRUMENT_DEBIT = "DEBIT"
INSTRUMENT_TRANSFER = "TRANSFER"
INSTRUMENT_INVOICE = "INVOICE"
INSTRUMENT_OTHER = "OTHER"

VALID_INSTRUMENT_TYPES = [
    INSTRUMENT_CASH,
    INSTRUMENT_PIX,
    INSTRUMENT_CREDIT,
    INSTRUMENT_DEBIT,
    INSTRUMENT_TRANSFER,
    INSTRUMENT_INVOICE,
    INSTRUMENT_OTHER,
]

# D+N settlement delay used when an instrument is registered without one
DEFAULT_SETTLEMENT_DAYS = {
    INSTRUMENT_CASH: 0,
    INSTRUMENT_PIX: 0,
    INSTRUMENT_DEBIT: 1,
    INSTRUMENT_CREDIT: 30,
    INSTRUMENT_TRANSFER: 1,
}

# Catalog item kinds (tagged variant shared by catalog entries and commanda items)
KIND_SERVICE = "SERVICE"
KIND_PRODUCT = "PRODUCT"
KIND_PACKAGE = "PACKAGE"

VALID_ITEM_KINDS = [KIND_SERVICE, KIND_PRODUCT, KIND_PACKAGE]


class PaymentInstrument(db.Model):
    """
    Tender method with its fee schedule.

    Read-mostly reference data owned by the back office. Payments copy the
    schedule when they are applied, so edits here never touch a settled
    commanda.
    """
    __tablename__ = "payment_instruments"
    __table_args__ = (
        db.CheckConstraint("percentage_fee >= 0 AND percentage_fee <= 10000", name="ck_instrument_pct_fee"),
        db.CheckConstraint("fixed_fee >= 0", name="ck_instrument_fixed_fee"),
        db.CheckConstraint("settlement_days >= 0", name="ck_instrument_settlement_days"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    instrument_type = db.Column(db.String(16), nullable=False, index=True)
    card_brand = db.Column(db.String(32), nullable=True)

    # Fee schedule
    percentage_fee = db.Column(Percentage(), nullable=False, default=Decimal("0.00"))
    fixed_fee = db.Column(Money(), nullable=False, default=Decimal("0.00"))
    settlement_days = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "instrument_type": self.instrument_type,
            "card_brand": self.card_brand,
            "percentage_fee": money_str(self.percentage_fee),
            "fixed_fee": money_str(self.fixed_fee),
            "settlement_days": self.settlement_days,
            "is_active": self.is_active,
            "display_order": self.display_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class CatalogEntry(db.Model):
    """Price list entry for a service, product or package."""
    __tablename__ = "catalog_entries"
    __table_args__ = (
        db.UniqueConstraint("kind", "ref", name="uq_catalog_kind_ref"),
        db.CheckConstraint("unit_price >= 0", name="ck_catalog_unit_price"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, index=True)
    ref = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(Money(), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "ref": self.ref,
            "name": self.name,
            "unit_price": money_str(self.unit_price),
            "duration_minutes": self.duration_minutes,
            "is_active": self.is_active,
        }
