from datetime import date, datetime
from decimal import Decimal

import pytest

from salondesk.services import commanda_service, settlement_service
from salondesk.services.catalog_service import CatalogPrice, InstrumentSchedule, StaticCatalog, StaticInstruments
from salondesk.services.errors import InvalidAmount, LedgerClosed, UnclosableLedger, UnknownInstrument


CATALOG = StaticCatalog([
    CatalogPrice("SERVICE", "SVC-CUT", "Haircut", Decimal("50.00"), 45),
])

CASH = InstrumentSchedule(1, "Cash", "CASH", Decimal("0"), Decimal("0"), 0)
CREDIT = InstrumentSchedule(2, "Credit card", "CREDIT", Decimal("3.00"), Decimal("0.50"), 30)
RETIRED = InstrumentSchedule(3, "Old voucher", "OTHER", Decimal("0"), Decimal("0"), 0, is_active=False)
INSTRUMENTS = StaticInstruments([CASH, CREDIT, RETIRED])


@pytest.fixture
def commanda():
    """OPEN commanda with one 50.00 haircut."""
    commanda = commanda_service.new_commanda(customer_ref="C-1", professional_ref="P-7")
    commanda_service.add_item(commanda, "SERVICE", "SVC-CUT", catalog=CATALOG)
    return commanda


def pay(commanda, instrument_id, amount):
    return settlement_service.add_payment(commanda, instrument_id, amount, instruments=INSTRUMENTS)


class TestFees:
    def test_credit_card_fee(self):
        breakdown = settlement_service.compute_fee(Decimal("100.00"), Decimal("3.00"), Decimal("0.50"))
        assert breakdown.percentage_fee == Decimal("3.00")
        assert breakdown.fee == Decimal("3.50")
        assert breakdown.net == Decimal("96.50")

    def test_fee_larger_than_gross_floors_net_at_zero(self):
        breakdown = settlement_service.compute_fee(Decimal("0.40"), Decimal("0"), Decimal("0.50"))
        assert breakdown.net == Decimal("0.00")

    def test_percentage_fee_uses_bankers_rounding(self):
        assert settlement_service.compute_fee(Decimal("10.50"), Decimal("1"), Decimal("0")).net == Decimal("10.40")
        assert settlement_service.compute_fee(Decimal("11.50"), Decimal("1"), Decimal("0")).net == Decimal("11.38")

    def test_payment_captures_fee_schedule(self, commanda):
        payment = settlement_service.add_payment(
            commanda, 2, "100.00", instruments=INSTRUMENTS, at=datetime(2026, 3, 2, 15, 0),
        )
        assert payment.instrument_type == "CREDIT"
        assert payment.instrument_name == "Credit card"
        assert payment.percentage_fee == Decimal("3.00")
        assert payment.fixed_fee == Decimal("0.50")
        assert payment.settlement_days == 30
        assert payment.gross_amount == Decimal("100.00")
        assert payment.fee_amount == Decimal("3.50")
        assert payment.net_amount == Decimal("96.50")
        assert payment.expected_settlement_on == date(2026, 4, 1)


class TestPayments:
    def test_unknown_or_inactive_instrument(self, commanda):
        with pytest.raises(UnknownInstrument):
            pay(commanda, 99, "10.00")
        with pytest.raises(UnknownInstrument) as exc:
            pay(commanda, 3, "10.00")
        assert exc.value.details["inactive"] is True
        assert commanda.payments == []

    @pytest.mark.parametrize("amount", ["0", "-5.00", "abc", 10.0, "10000000.00", "100000000000000000000"])
    def test_invalid_amounts(self, commanda, amount):
        with pytest.raises(InvalidAmount):
            pay(commanda, 1, amount)

    def test_split_tenders(self, commanda):
        pay(commanda, 1, "20.00")
        pay(commanda, 2, "30.00")
        summary = settlement_service.summarize(commanda)
        assert summary.total_received == Decimal("50.00")
        assert summary.total_fees == Decimal("1.40")
        assert summary.total_net == Decimal("48.60")
        assert summary.shortfall == Decimal("0.00")
        assert summary.payment_count == 2
        assert settlement_service.can_close(commanda) == []

    def test_payment_on_closed_commanda(self, commanda):
        pay(commanda, 1, "50.00")
        settlement_service.close(commanda)
        with pytest.raises(LedgerClosed):
            pay(commanda, 1, "1.00")


class TestClose:
    def test_exact_cash_payment_closes(self, commanda):
        payment = pay(commanda, 1, "50.00")
        assert payment.net_amount == Decimal("50.00")

        summary = settlement_service.close(commanda, actor="reception-1")
        assert commanda.status == "CLOSED"
        assert commanda.close_mode == "SETTLED"
        assert commanda.closed_by == "reception-1"
        assert commanda.closed_at is not None
        assert summary.shortfall == Decimal("0.00")
        assert commanda.change_amount == Decimal("0.00")
        assert commanda.debt_amount == Decimal("0.00")

    def test_partial_payment_without_debt_is_unclosable(self, commanda):
        pay(commanda, 1, "30.00")

        reasons = settlement_service.can_close(commanda)
        assert [r.code for r in reasons] == ["SHORTFALL", "DEBT_NOT_AUTHORIZED"]
        assert reasons[0].amount == Decimal("20.00")

        with pytest.raises(UnclosableLedger) as exc:
            settlement_service.close(commanda)
        assert exc.value.details["reasons"][0] == {
            "code": "SHORTFALL",
            "message": "Outstanding balance of 20.00",
            "amount": "20.00",
        }
        assert commanda.status == "OPEN"

    def test_partial_payment_with_debt_closes(self, commanda):
        payment = pay(commanda, 1, "30.00")
        settlement_service.close(commanda, allow_debt=True)

        assert commanda.status == "CLOSED"
        assert commanda.allow_debt is True
        assert commanda.debt_amount == Decimal("20.00")
        assert payment.gross_amount == Decimal("30.00")
        assert payment.net_amount == Decimal("30.00")

    def test_overage_recorded_as_change(self, commanda):
        pay(commanda, 1, "60.00")
        summary = settlement_service.close(commanda, leave_change_as_tip=False)
        assert summary.overage == Decimal("10.00")
        assert commanda.change_amount == Decimal("10.00")
        assert commanda.tip_amount == Decimal("0.00")

    def test_overage_recorded_as_tip(self, commanda):
        pay(commanda, 1, "60.00")
        settlement_service.close(commanda, leave_change_as_tip=True)
        assert commanda.tip_amount == Decimal("10.00")
        assert commanda.change_amount == Decimal("0.00")
        assert commanda.professional_ref == "P-7"

    def test_second_close_observes_ledger_closed(self, commanda):
        pay(commanda, 1, "50.00")
        settlement_service.close(commanda)
        closed_at = commanda.closed_at

        with pytest.raises(LedgerClosed):
            settlement_service.close(commanda)
        assert commanda.closed_at == closed_at

    def test_money_is_conserved_on_close(self, commanda):
        pay(commanda, 2, "33.33")
        pay(commanda, 1, "20.00")
        summary = settlement_service.close(commanda)

        assert summary.shortfall == Decimal("0.00")
        assert summary.total_received == summary.total + summary.overage - summary.shortfall
        assert summary.total_net <= summary.total_received
        assert sum(p.net_amount for p in commanda.payments) <= sum(p.gross_amount for p in commanda.payments)

    def test_commanda_without_items_cannot_close(self):
        commanda = commanda_service.new_commanda(customer_ref="C-1")
        pay(commanda, 1, "40.00")

        assert [r.code for r in settlement_service.can_close(commanda)] == ["NO_ITEMS"]
        with pytest.raises(UnclosableLedger) as exc:
            settlement_service.close(commanda)
        assert exc.value.reasons[0].code == "NO_ITEMS"
        assert commanda.status == "OPEN"

    def test_empty_commanda_reports_every_reason(self):
        commanda = commanda_service.new_commanda(customer_ref="C-1")
        settlement_service.cancel(commanda)

        codes = [r.code for r in settlement_service.can_close(commanda)]
        assert codes == ["LEDGER_NOT_OPEN", "NO_ITEMS"]

    def test_close_without_settlement_records_debt(self, commanda):
        pay(commanda, 1, "10.00")
        settlement_service.close_without_settlement(commanda)
        assert commanda.status == "CLOSED"
        assert commanda.close_mode == "WITHOUT_SETTLEMENT"
        assert commanda.debt_amount == Decimal("40.00")


class TestCancel:
    def test_cancel_open_commanda(self, commanda):
        settlement_service.cancel(commanda, "customer left")
        assert commanda.status == "CANCELED"
        assert commanda.cancel_reason == "customer left"
        assert settlement_service.can_close(commanda)[0].code == "LEDGER_NOT_OPEN"

        with pytest.raises(LedgerClosed):
            settlement_service.cancel(commanda)
        with pytest.raises(LedgerClosed):
            settlement_service.close(commanda)
