from datetime import datetime
from decimal import Decimal

import pytest

from salondesk.services import commanda_service, lifecycle_service
from salondesk.services.catalog_service import CatalogPrice, StaticCatalog
from salondesk.services.errors import (
    EntityNotFound,
    InvalidAmount,
    InvalidDiscount,
    InvalidInput,
    LedgerClosed,
    UnknownCatalogItem,
)


CATALOG = StaticCatalog([
    CatalogPrice("SERVICE", "SVC-CUT", "Haircut", Decimal("50.00"), 45),
    CatalogPrice("PRODUCT", "PRD-SHAMPOO", "Shampoo 300ml", Decimal("35.90")),
    CatalogPrice("PACKAGE", "PKG-SPA", "Spa day", Decimal("200.00")),
])


def _commanda_with(kind, ref, quantity=1, unit_price=None):
    commanda = commanda_service.new_commanda(customer_ref="C-1")
    item = commanda_service.add_item(commanda, kind, ref, quantity, unit_price, catalog=CATALOG)
    item.id = 1
    return commanda, item


class TestItems:
    def test_commanda_seeded_from_appointment_services(self):
        appointment = lifecycle_service.build_appointment(
            customer_ref="C-1",
            professional_ref="P-7",
            start_at=datetime(2026, 3, 2, 14, 0),
            services=[{"service_ref": "SVC-CUT", "price": "45.00"}],
            catalog=CATALOG,
        )
        commanda = commanda_service.new_commanda(appointment=appointment)

        assert commanda.status == "OPEN"
        assert commanda.customer_ref == "C-1"
        assert commanda.professional_ref == "P-7"
        assert len(commanda.items) == 1
        item = commanda.items[0]
        assert (item.kind, item.catalog_ref, item.quantity) == ("SERVICE", "SVC-CUT", 1)
        assert item.unit_price == Decimal("45.00")
        assert item.final_price == Decimal("45.00")
        assert commanda.total == Decimal("45.00")

    def test_add_item_captures_catalog_price(self):
        commanda, item = _commanda_with("PRODUCT", "PRD-SHAMPOO", quantity=2)
        assert item.description == "Shampoo 300ml"
        assert item.unit_price == Decimal("35.90")
        assert item.final_price == Decimal("71.80")
        assert commanda.subtotal == Decimal("71.80")

    def test_add_item_with_price_override(self):
        _, item = _commanda_with("PACKAGE", "PKG-SPA", unit_price=Decimal("180.00"))
        assert item.unit_price == Decimal("180.00")
        assert item.final_price == Decimal("180.00")

    def test_add_item_validation(self):
        commanda = commanda_service.new_commanda()
        with pytest.raises(UnknownCatalogItem):
            commanda_service.add_item(commanda, "PRODUCT", "PRD-NOPE", catalog=CATALOG)
        with pytest.raises(InvalidInput):
            commanda_service.add_item(commanda, "PRODUCT", "PRD-SHAMPOO", 0, catalog=CATALOG)
        with pytest.raises(InvalidInput):
            commanda_service.add_item(commanda, "GIFT", "PRD-SHAMPOO", catalog=CATALOG)
        with pytest.raises(InvalidAmount):
            commanda_service.add_item(commanda, "PRODUCT", "PRD-SHAMPOO", 1, "-1.00", catalog=CATALOG)
        with pytest.raises(InvalidAmount):
            commanda_service.add_item(commanda, "PRODUCT", "PRD-SHAMPOO", 1, "10000000.00", catalog=CATALOG)
        with pytest.raises(InvalidInput):
            commanda_service.add_item(commanda, "PRODUCT", "PRD-SHAMPOO", 10_000, catalog=CATALOG)
        assert commanda.items == []

    def test_update_item_rederives_percentage_discount(self):
        commanda, item = _commanda_with("PRODUCT", "PRD-SHAMPOO")
        commanda_service.apply_item_discount(commanda, 1, percentage="10")
        assert item.discount_value == Decimal("3.59")
        assert item.final_price == Decimal("32.31")

        commanda_service.update_item(commanda, 1, quantity=2)
        assert item.discount_value == Decimal("7.18")
        assert item.final_price == Decimal("64.62")

        commanda_service.update_item(commanda, 1, unit_price="30.00")
        assert item.discount_value == Decimal("6.00")
        assert item.final_price == Decimal("54.00")

    def test_update_item_needs_a_change(self):
        commanda, _ = _commanda_with("PRODUCT", "PRD-SHAMPOO")
        with pytest.raises(InvalidInput):
            commanda_service.update_item(commanda, 1)
        with pytest.raises(EntityNotFound):
            commanda_service.update_item(commanda, 99, quantity=2)

    def test_remove_item(self):
        commanda, _ = _commanda_with("SERVICE", "SVC-CUT")
        commanda_service.remove_item(commanda, 1)
        assert commanda.items == []
        assert commanda.total == Decimal("0.00")


class TestDiscounts:
    def test_value_discount_larger_than_price_floors_at_zero(self):
        commanda, item = _commanda_with("SERVICE", "SVC-CUT")
        commanda_service.apply_item_discount(commanda, 1, value="80.00")
        assert item.discount_basis == "VALUE"
        assert item.final_price == Decimal("0.00")
        assert item.discount_percentage == Decimal("100.00")
        assert commanda.total == Decimal("0.00")

    def test_ticket_discount_never_makes_total_negative(self):
        commanda, _ = _commanda_with("SERVICE", "SVC-CUT")
        commanda_service.set_ticket_discount(commanda, "500.00")
        assert commanda.subtotal == Decimal("50.00")
        assert commanda.total == Decimal("0.00")

        commanda_service.set_ticket_discount(commanda, "5.00")
        assert commanda.total == Decimal("45.00")

    def test_value_and_percentage_must_agree(self):
        commanda, item = _commanda_with("SERVICE", "SVC-CUT")
        commanda_service.apply_item_discount(commanda, 1, value="5.00", percentage="10")
        assert item.discount_basis == "VALUE"
        assert item.final_price == Decimal("45.00")

        with pytest.raises(InvalidDiscount) as exc:
            commanda_service.apply_item_discount(commanda, 1, value="6.00", percentage="10")
        assert exc.value.details["implied_value"] == "5.00"
        assert item.final_price == Decimal("45.00")

    def test_discount_bounds(self):
        commanda, _ = _commanda_with("SERVICE", "SVC-CUT")
        with pytest.raises(InvalidDiscount):
            commanda_service.apply_item_discount(commanda, 1, percentage="100.01")
        with pytest.raises(InvalidDiscount):
            commanda_service.apply_item_discount(commanda, 1, percentage="-1")
        with pytest.raises(InvalidDiscount):
            commanda_service.apply_item_discount(commanda, 1, value="-0.01")
        with pytest.raises(InvalidDiscount):
            commanda_service.apply_item_discount(commanda, 1)
        with pytest.raises(InvalidDiscount):
            commanda_service.set_ticket_discount(commanda, "-1.00")

    def test_full_percentage_discount(self):
        commanda, item = _commanda_with("SERVICE", "SVC-CUT")
        commanda_service.apply_item_discount(commanda, 1, percentage="100")
        assert item.discount_value == Decimal("50.00")
        assert item.final_price == Decimal("0.00")


class TestClosedCommanda:
    @pytest.mark.parametrize("status", ["CLOSED", "CANCELED"])
    def test_every_mutation_is_rejected(self, status):
        commanda, _ = _commanda_with("SERVICE", "SVC-CUT")
        commanda.status = status

        calls = [
            lambda: commanda_service.add_item(commanda, "PRODUCT", "PRD-SHAMPOO", catalog=CATALOG),
            lambda: commanda_service.update_item(commanda, 1, quantity=2),
            lambda: commanda_service.remove_item(commanda, 1),
            lambda: commanda_service.apply_item_discount(commanda, 1, value="1.00"),
            lambda: commanda_service.set_ticket_discount(commanda, "1.00"),
            lambda: commanda_service.set_flags(commanda, allow_debt=True),
        ]
        for call in calls:
            with pytest.raises(LedgerClosed):
                call()
        assert len(commanda.items) == 1
        assert commanda.allow_debt is False
