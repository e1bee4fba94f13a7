# Overview: Read-only collaborators (price catalog, payment instruments) and their back-office registration.

"""
Catalog and Payment Instrument Lookups

The workflow never reaches for "the current catalog" ambiently: the
coordinator is handed a CatalogLookup and a PaymentInstrumentLookup and
passes them down. SQL-backed implementations read the reference tables;
the static ones serve batch jobs and tests that already hold the data.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from ..extensions import db
from ..models import CatalogEntry, PaymentInstrument
from ..models.catalog import DEFAULT_SETTLEMENT_DAYS, VALID_INSTRUMENT_TYPES, VALID_ITEM_KINDS
from ..money import HUNDRED, ZERO, MoneyError, to_money
from ..time_utils import utcnow
from .errors import InvalidInput


@dataclass(frozen=True)
class CatalogPrice:
    kind: str
    ref: str
    name: str
    unit_price: Decimal
    duration_minutes: int = 0


@dataclass(frozen=True)
class InstrumentSchedule:
    """Fee schedule snapshot for one payment instrument."""
    id: int
    name: str
    instrument_type: str
    percentage_fee: Decimal
    fixed_fee: Decimal
    settlement_days: int = 0
    is_active: bool = True
    card_brand: Optional[str] = None


class CatalogLookup(Protocol):
    def lookup(self, kind: str, ref: str) -> Optional[CatalogPrice]: ...


class PaymentInstrumentLookup(Protocol):
    def get(self, instrument_id) -> Optional[InstrumentSchedule]: ...


class SqlCatalogLookup:
    """Reads active entries from catalog_entries."""

    def lookup(self, kind: str, ref: str) -> Optional[CatalogPrice]:
        entry = db.session.query(CatalogEntry).filter_by(kind=kind, ref=str(ref), is_active=True).first()
        if entry is None:
            return None
        return CatalogPrice(
            kind=entry.kind,
            ref=entry.ref,
            name=entry.name,
            unit_price=entry.unit_price,
            duration_minutes=entry.duration_minutes or 0,
        )


class SqlInstrumentLookup:
    """Reads payment_instruments; inactive rows are returned so callers can tell 'inactive' from 'missing'."""

    def get(self, instrument_id) -> Optional[InstrumentSchedule]:
        try:
            key = int(instrument_id)
        except (TypeError, ValueError):
            return None
        instrument = db.session.get(PaymentInstrument, key)
        if instrument is None:
            return None
        return schedule_from_instrument(instrument)


class StaticCatalog:
    def __init__(self, entries: list[CatalogPrice] | None = None):
        self._entries = {(e.kind, e.ref): e for e in entries or []}

    def lookup(self, kind: str, ref: str) -> Optional[CatalogPrice]:
        return self._entries.get((kind, str(ref)))


class StaticInstruments:
    def __init__(self, schedules: list[InstrumentSchedule] | None = None):
        self._schedules = {s.id: s for s in schedules or []}

    def get(self, instrument_id) -> Optional[InstrumentSchedule]:
        return self._schedules.get(instrument_id)


def schedule_from_instrument(instrument: PaymentInstrument) -> InstrumentSchedule:
    return InstrumentSchedule(
        id=instrument.id,
        name=instrument.name,
        instrument_type=instrument.instrument_type,
        percentage_fee=instrument.percentage_fee,
        fixed_fee=instrument.fixed_fee,
        settlement_days=instrument.settlement_days,
        is_active=bool(instrument.is_active),
        card_brand=instrument.card_brand,
    )


# =============================================================================
# BACK-OFFICE REGISTRATION (CLI / seeding)
# =============================================================================

def validate_fee_schedule(percentage_fee, fixed_fee, settlement_days) -> tuple[Decimal, Decimal, int]:
    """Fees are non-negative and the percentage is at most 100."""
    try:
        pct = to_money(percentage_fee)
        fixed = to_money(fixed_fee)
    except MoneyError as exc:
        raise InvalidInput(str(exc)) from exc
    if pct < ZERO or pct > HUNDRED:
        raise InvalidInput("percentage_fee must be between 0 and 100")
    if fixed < ZERO:
        raise InvalidInput("fixed_fee must be >= 0")
    if settlement_days < 0:
        raise InvalidInput("settlement_days must be >= 0")
    return pct, fixed, settlement_days


def register_instrument(
    name: str,
    instrument_type: str,
    *,
    percentage_fee="0",
    fixed_fee="0",
    settlement_days: int | None = None,
    card_brand: str | None = None,
    is_active: bool = True,
    display_order: int = 0,
    commit: bool = True,
) -> PaymentInstrument:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("Instrument name is required")
    if len(name) > 100:
        raise InvalidInput("Instrument name must be at most 100 characters")
    if instrument_type not in VALID_INSTRUMENT_TYPES:
        raise InvalidInput(f"Invalid instrument type: {instrument_type}. Must be one of {VALID_INSTRUMENT_TYPES}")
    if settlement_days is None:
        settlement_days = DEFAULT_SETTLEMENT_DAYS.get(instrument_type, 0)

    pct, fixed, days = validate_fee_schedule(percentage_fee, fixed_fee, settlement_days)

    instrument = PaymentInstrument(
        name=name,
        instrument_type=instrument_type,
        card_brand=card_brand,
        percentage_fee=pct,
        fixed_fee=fixed,
        settlement_days=days,
        is_active=is_active,
        display_order=display_order,
    )
    db.session.add(instrument)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return instrument


def update_instrument_schedule(
    instrument_id: int,
    *,
    percentage_fee=None,
    fixed_fee=None,
    settlement_days: int | None = None,
    is_active: bool | None = None,
    commit: bool = True,
) -> PaymentInstrument:
    """Edit a fee schedule. Payments already applied keep the schedule they captured."""
    instrument = db.session.get(PaymentInstrument, instrument_id)
    if instrument is None:
        raise InvalidInput(f"Payment instrument {instrument_id} not found")

    pct, fixed, days = validate_fee_schedule(
        instrument.percentage_fee if percentage_fee is None else percentage_fee,
        instrument.fixed_fee if fixed_fee is None else fixed_fee,
        instrument.settlement_days if settlement_days is None else settlement_days,
    )
    instrument.percentage_fee = pct
    instrument.fixed_fee = fixed
    instrument.settlement_days = days
    if is_active is not None:
        instrument.is_active = is_active
    instrument.updated_at = utcnow()

    if commit:
        db.session.commit()
    return instrument


def list_instruments(include_inactive: bool = False) -> list[PaymentInstrument]:
    query = db.session.query(PaymentInstrument)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(PaymentInstrument.display_order, PaymentInstrument.id).all()


def add_catalog_entry(
    kind: str,
    ref: str,
    name: str,
    unit_price,
    *,
    duration_minutes: int | None = None,
    commit: bool = True,
) -> CatalogEntry:
    if kind not in VALID_ITEM_KINDS:
        raise InvalidInput(f"Invalid catalog kind: {kind}. Must be one of {VALID_ITEM_KINDS}")
    if not ref or not name:
        raise InvalidInput("Catalog ref and name are required")
    try:
        price = to_money(unit_price)
    except MoneyError as exc:
        raise InvalidInput(str(exc)) from exc
    if price < ZERO:
        raise InvalidInput("unit_price must be >= 0")

    entry = CatalogEntry(
        kind=kind,
        ref=str(ref),
        name=name,
        unit_price=price,
        duration_minutes=duration_minutes,
        is_active=True,
    )
    db.session.add(entry)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return entry


def list_catalog(kind: str | None = None) -> list[CatalogEntry]:
    query = db.session.query(CatalogEntry)
    if kind:
        query = query.filter_by(kind=kind)
    return query.order_by(CatalogEntry.kind, CatalogEntry.ref).all()
