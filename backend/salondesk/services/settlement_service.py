# Overview: Multi-tender settlement of a commanda; fees, balance, close eligibility and close disposition.

"""
Commanda Settlement Service

WHY: A customer may split a bill across cash, PIX and cards. Every tender
carries its own fee schedule, the salon needs the net it will actually
receive, and the commanda may only close once it is paid or debt is
explicitly authorized.

DESIGN PRINCIPLES:
- The fee schedule is copied onto the payment when it is applied; later
  edits to the instrument never change an applied payment.
- fee = round_half_even(gross * pct / 100) + fixed
- net = max(gross - pct_fee - fixed, 0), so sum(net) <= sum(gross)
- total_received counts gross amounts; fees are the salon's cost, not the
  customer's.
- A close happens at most once. Overage becomes change (or a tip for the
  attending professional); an authorized shortfall becomes debt.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..models import Commanda, CommandaPayment
from ..models.commandas import (
    CLOSE_MODE_SETTLED,
    CLOSE_MODE_WITHOUT_SETTLEMENT,
    COMMANDA_CANCELED,
    COMMANDA_CLOSED,
    COMMANDA_OPEN,
)
from ..money import ZERO, MoneyError, floor_zero, money_str, money_sum, percentage_of, quantize, to_money
from ..time_utils import settlement_date, utcnow
from .catalog_service import InstrumentSchedule, PaymentInstrumentLookup
from .commanda_service import ensure_open
from .errors import (
    CloseReason,
    EntityNotFound,
    InvalidAmount,
    InvalidInput,
    LedgerClosed,
    UnclosableLedger,
    UnknownInstrument,
)


# Close reason codes
REASON_LEDGER_NOT_OPEN = "LEDGER_NOT_OPEN"
REASON_NO_ITEMS = "NO_ITEMS"
REASON_SHORTFALL = "SHORTFALL"
REASON_DEBT_NOT_AUTHORIZED = "DEBT_NOT_AUTHORIZED"


@dataclass(frozen=True)
class FeeBreakdown:
    gross: Decimal
    percentage_fee: Decimal
    fixed_fee: Decimal
    fee: Decimal
    net: Decimal


@dataclass(frozen=True)
class Summary:
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    total_received: Decimal
    total_fees: Decimal
    total_net: Decimal
    shortfall: Decimal
    overage: Decimal
    payment_count: int

    def to_dict(self) -> dict:
        return {
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "total_received": money_str(self.total_received),
            "total_fees": money_str(self.total_fees),
            "total_net": money_str(self.total_net),
            "shortfall": money_str(self.shortfall),
            "overage": money_str(self.overage),
            "payment_count": self.payment_count,
        }


# =============================================================================
# FEES
# =============================================================================

def compute_fee(gross, percentage_fee, fixed_fee) -> FeeBreakdown:
    """
    Percentage first (rounded to the cent), then the fixed fee, then floor.

    >>> compute_fee(Decimal("100.00"), Decimal("3.00"), Decimal("0.50")).net
    Decimal('96.50')
    """
    gross = quantize(gross)
    pct_amount = percentage_of(gross, percentage_fee)
    fixed = quantize(fixed_fee)
    return FeeBreakdown(
        gross=gross,
        percentage_fee=pct_amount,
        fixed_fee=fixed,
        fee=quantize(pct_amount + fixed),
        net=floor_zero(quantize(gross - pct_amount - fixed)),
    )


# =============================================================================
# PAYMENTS
# =============================================================================

def _resolve_instrument(instrument_id, instruments: PaymentInstrumentLookup) -> InstrumentSchedule:
    schedule = instruments.get(instrument_id)
    if schedule is None:
        raise UnknownInstrument(instrument_id)
    if not schedule.is_active:
        raise UnknownInstrument(instrument_id, inactive=True)
    return schedule


def add_payment(
    commanda: Commanda,
    instrument_id,
    gross_amount,
    *,
    instruments: PaymentInstrumentLookup,
    actor: str | None = None,
    at: datetime | None = None,
) -> CommandaPayment:
    """
    Apply a tender to an OPEN commanda.

    Overpaying is allowed (cash change); the overage is settled at close.
    """
    ensure_open(commanda)

    try:
        gross = to_money(gross_amount)
    except MoneyError as exc:
        raise InvalidAmount(str(exc)) from exc
    if gross <= ZERO:
        raise InvalidAmount("Payment amount must be positive", details={"gross_amount": money_str(gross)})

    schedule = _resolve_instrument(instrument_id, instruments)
    breakdown = compute_fee(gross, schedule.percentage_fee, schedule.fixed_fee)
    applied_at = at or utcnow()

    payment = CommandaPayment(
        instrument_id=schedule.id,
        instrument_type=schedule.instrument_type,
        instrument_name=schedule.name,
        percentage_fee=quantize(schedule.percentage_fee),
        fixed_fee=quantize(schedule.fixed_fee),
        settlement_days=schedule.settlement_days,
        gross_amount=breakdown.gross,
        fee_amount=breakdown.fee,
        net_amount=breakdown.net,
        expected_settlement_on=settlement_date(applied_at, schedule.settlement_days),
        created_at=applied_at,
        created_by=actor,
    )
    commanda.payments.append(payment)
    commanda.updated_at = applied_at
    return payment


def remove_payment(commanda: Commanda, payment_id: int) -> CommandaPayment:
    ensure_open(commanda)
    for payment in commanda.payments:
        if payment.id == payment_id:
            commanda.payments.remove(payment)
            commanda.updated_at = utcnow()
            return payment
    raise EntityNotFound("CommandaPayment", payment_id)


# =============================================================================
# BALANCE / CLOSE
# =============================================================================

def summarize(commanda: Commanda) -> Summary:
    total = commanda.total
    received = commanda.total_received
    return Summary(
        subtotal=commanda.subtotal,
        discount=quantize(commanda.discount_amount or ZERO),
        total=total,
        total_received=received,
        total_fees=money_sum(p.fee_amount for p in commanda.payments),
        total_net=money_sum(p.net_amount for p in commanda.payments),
        shortfall=floor_zero(total - received),
        overage=floor_zero(received - total),
        payment_count=len(commanda.payments),
    )


def can_close(commanda: Commanda) -> list[CloseReason]:
    """Every unmet close condition; an empty list means the commanda may close."""
    reasons = []
    if commanda.status != COMMANDA_OPEN:
        reasons.append(CloseReason(
            REASON_LEDGER_NOT_OPEN,
            f"Commanda is {commanda.status}",
        ))
    if not commanda.items:
        reasons.append(CloseReason(REASON_NO_ITEMS, "A commanda without items cannot be closed"))

    shortfall = summarize(commanda).shortfall
    if shortfall > ZERO and not commanda.allow_debt:
        reasons.append(CloseReason(
            REASON_SHORTFALL,
            f"Outstanding balance of {money_str(shortfall)}",
            amount=shortfall,
        ))
        reasons.append(CloseReason(
            REASON_DEBT_NOT_AUTHORIZED,
            "Closing with an outstanding balance requires allow_debt",
        ))
    return reasons


def apply_close_options(
    commanda: Commanda,
    *,
    leave_change_as_tip: bool | None = None,
    allow_debt: bool | None = None,
    notes: str | None = None,
) -> None:
    if leave_change_as_tip is not None:
        commanda.leave_change_as_tip = bool(leave_change_as_tip)
    if allow_debt is not None:
        commanda.allow_debt = bool(allow_debt)
    if notes is not None:
        commanda.notes = notes


def _record_disposition(commanda: Commanda, summary: Summary) -> None:
    commanda.change_amount = ZERO
    commanda.tip_amount = ZERO
    commanda.debt_amount = summary.shortfall
    if summary.overage > ZERO:
        if commanda.leave_change_as_tip:
            commanda.tip_amount = summary.overage
        else:
            commanda.change_amount = summary.overage


def close(
    commanda: Commanda,
    *,
    leave_change_as_tip: bool | None = None,
    allow_debt: bool | None = None,
    notes: str | None = None,
    actor: str | None = None,
    at: datetime | None = None,
) -> Summary:
    """
    Close an OPEN commanda once.

    Closing options are applied first, then eligibility is re-checked. A
    second close of the same commanda fails with LedgerClosed.
    """
    if commanda.status in (COMMANDA_CLOSED, COMMANDA_CANCELED):
        raise LedgerClosed(commanda.id, commanda.status)

    apply_close_options(commanda, leave_change_as_tip=leave_change_as_tip, allow_debt=allow_debt, notes=notes)

    reasons = can_close(commanda)
    if reasons:
        raise UnclosableLedger(commanda.id, reasons)

    summary = summarize(commanda)
    now = at or utcnow()
    _record_disposition(commanda, summary)
    commanda.status = COMMANDA_CLOSED
    commanda.close_mode = CLOSE_MODE_SETTLED
    commanda.closed_at = now
    commanda.closed_by = actor
    commanda.updated_at = now
    return summary


def close_without_settlement(
    commanda: Commanda,
    *,
    actor: str | None = None,
    at: datetime | None = None,
) -> Summary:
    """Manager override: close regardless of balance, recording any shortfall as debt."""
    ensure_open(commanda)
    summary = summarize(commanda)
    now = at or utcnow()
    _record_disposition(commanda, summary)
    commanda.status = COMMANDA_CLOSED
    commanda.close_mode = CLOSE_MODE_WITHOUT_SETTLEMENT
    commanda.closed_at = now
    commanda.closed_by = actor
    commanda.updated_at = now
    return summary


def cancel(commanda: Commanda, reason: str | None = None, *, at: datetime | None = None) -> Commanda:
    """Only an OPEN commanda can be canceled; applied payments stay on record."""
    ensure_open(commanda)
    if reason is not None and len(reason) > 255:
        raise InvalidInput("cancel reason must be at most 255 characters")
    now = at or utcnow()
    commanda.status = COMMANDA_CANCELED
    commanda.canceled_at = now
    commanda.cancel_reason = reason
    commanda.updated_at = now
    return commanda
