# Overview: Commanda line-item management; items, discounts and ticket-level totals.

"""
Commanda Item Service

WHY: A commanda is the open tab for a visit. Operators add services,
products and packages, fix quantities and prices, and grant discounts
before the customer pays.

RULES:
- Every mutation requires the commanda to be OPEN (LedgerClosed otherwise).
- unit_price is captured from the catalog when the line is added.
- final_price = max(unit_price * quantity - discount_value, 0)
- Exactly one discount basis (VALUE or PERCENTAGE) is authoritative; the
  other is derived from it for display.
- total = max(subtotal - ticket discount, 0)

These functions mutate model instances only. Loading, locking and
committing belong to the WorkflowCoordinator.
"""

from __future__ import annotations

from decimal import Decimal

from ..models import Appointment, Commanda, CommandaItem
from ..models.catalog import KIND_SERVICE, VALID_ITEM_KINDS
from ..models.commandas import (
    COMMANDA_OPEN,
    DISCOUNT_BASIS_NONE,
    DISCOUNT_BASIS_PERCENTAGE,
    DISCOUNT_BASIS_VALUE,
)
from ..money import CENT, HUNDRED, ZERO, MoneyError, floor_zero, percentage_of, quantize, to_money
from ..time_utils import utcnow
from .catalog_service import CatalogLookup
from .errors import (
    EntityNotFound,
    InvalidAmount,
    InvalidDiscount,
    InvalidInput,
    LedgerClosed,
    UnknownCatalogItem,
)

# Upper bound on a single line quantity
MAX_QUANTITY = 9999


def ensure_open(commanda: Commanda) -> None:
    if commanda.status != COMMANDA_OPEN:
        raise LedgerClosed(commanda.id, commanda.status)


def new_commanda(
    *,
    appointment: Appointment | None = None,
    customer_ref: str | None = None,
    professional_ref: str | None = None,
) -> Commanda:
    """
    Build an OPEN commanda.

    Linked to an appointment, it is seeded 1:1 from the appointment's
    selected services at their booking prices.
    """
    commanda = Commanda(
        status=COMMANDA_OPEN,
        customer_ref=customer_ref,
        professional_ref=professional_ref,
        discount_amount=ZERO,
        leave_change_as_tip=False,
        allow_debt=False,
    )
    if appointment is not None:
        commanda.appointment_id = appointment.id
        commanda.customer_ref = customer_ref or appointment.customer_ref
        commanda.professional_ref = professional_ref or appointment.professional_ref
        for service in appointment.services:
            commanda.items.append(_build_item(
                kind=KIND_SERVICE,
                catalog_ref=service.service_ref,
                description=service.name,
                unit_price=service.price_at_booking,
                quantity=1,
            ))
    return commanda


def _build_item(*, kind: str, catalog_ref: str, description: str, unit_price: Decimal, quantity: int) -> CommandaItem:
    item = CommandaItem(
        kind=kind,
        catalog_ref=str(catalog_ref),
        description=description,
        unit_price=quantize(unit_price),
        quantity=quantity,
        discount_basis=DISCOUNT_BASIS_NONE,
        discount_value=ZERO,
        discount_percentage=ZERO,
    )
    recalculate_item(item)
    return item


def recalculate_item(item: CommandaItem) -> None:
    """Re-derive the non-authoritative discount field and final_price."""
    gross = quantize(item.unit_price * item.quantity)

    if item.discount_basis == DISCOUNT_BASIS_PERCENTAGE:
        item.discount_value = percentage_of(gross, item.discount_percentage)
    elif item.discount_basis == DISCOUNT_BASIS_VALUE:
        if gross > ZERO:
            derived = quantize(item.discount_value * HUNDRED / gross)
            item.discount_percentage = min(derived, HUNDRED)
        else:
            item.discount_percentage = ZERO
    else:
        item.discount_value = ZERO
        item.discount_percentage = ZERO

    item.final_price = floor_zero(quantize(gross - item.discount_value))


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInput("quantity must be an integer")
    if quantity <= 0:
        raise InvalidInput("quantity must be greater than zero")
    if quantity > MAX_QUANTITY:
        raise InvalidInput(f"quantity cannot exceed {MAX_QUANTITY}")
    return quantity


def _validate_price(value, field: str) -> Decimal:
    try:
        price = to_money(value)
    except MoneyError as exc:
        raise InvalidAmount(f"{field}: {exc}") from exc
    if price < ZERO:
        raise InvalidAmount(f"{field} cannot be negative")
    return price


def find_item(commanda: Commanda, item_id: int) -> CommandaItem:
    for item in commanda.items:
        if item.id == item_id:
            return item
    raise EntityNotFound("CommandaItem", item_id)


def _touch(commanda: Commanda) -> None:
    commanda.updated_at = utcnow()


def add_item(
    commanda: Commanda,
    kind: str,
    catalog_ref: str,
    quantity: int = 1,
    unit_price_override=None,
    *,
    catalog: CatalogLookup,
    description: str | None = None,
) -> CommandaItem:
    """
    Add a line to an OPEN commanda.

    The unit price is read from the catalog now and stored on the line;
    an explicit override (e.g. a negotiated price) wins over the catalog.
    """
    ensure_open(commanda)

    if kind not in VALID_ITEM_KINDS:
        raise InvalidInput(f"Invalid item kind: {kind}. Must be one of {VALID_ITEM_KINDS}")
    quantity = _validate_quantity(quantity)

    entry = catalog.lookup(kind, str(catalog_ref))
    if entry is None:
        raise UnknownCatalogItem(kind, str(catalog_ref))

    if unit_price_override is not None:
        unit_price = _validate_price(unit_price_override, "unit_price")
    else:
        unit_price = quantize(entry.unit_price)

    item = _build_item(
        kind=kind,
        catalog_ref=catalog_ref,
        description=description or entry.name,
        unit_price=unit_price,
        quantity=quantity,
    )
    commanda.items.append(item)
    _touch(commanda)
    return item


def update_item(commanda: Commanda, item_id: int, *, quantity=None, unit_price=None) -> CommandaItem:
    """Change quantity and/or unit price; a percentage discount follows the new gross."""
    ensure_open(commanda)
    item = find_item(commanda, item_id)

    if quantity is None and unit_price is None:
        raise InvalidInput("Nothing to update: provide quantity and/or unit_price")
    if quantity is not None:
        item.quantity = _validate_quantity(quantity)
    if unit_price is not None:
        item.unit_price = _validate_price(unit_price, "unit_price")

    recalculate_item(item)
    _touch(commanda)
    return item


def remove_item(commanda: Commanda, item_id: int) -> CommandaItem:
    ensure_open(commanda)
    item = find_item(commanda, item_id)
    commanda.items.remove(item)
    _touch(commanda)
    return item


def apply_item_discount(commanda: Commanda, item_id: int, *, value=None, percentage=None) -> CommandaItem:
    """
    Set an item discount by value or by percentage.

    Both may be given only if they describe the same discount (within one
    cent once the percentage is applied to the line's gross); the value
    then becomes the authoritative basis.
    """
    ensure_open(commanda)
    item = find_item(commanda, item_id)

    if value is None and percentage is None:
        raise InvalidDiscount("Provide a discount value or a discount percentage")

    gross = quantize(item.unit_price * item.quantity)

    pct = None
    if percentage is not None:
        try:
            pct = to_money(percentage)
        except MoneyError as exc:
            raise InvalidDiscount(f"percentage: {exc}") from exc
        if pct < ZERO or pct > HUNDRED:
            raise InvalidDiscount("Discount percentage must be between 0 and 100")

    amount = None
    if value is not None:
        try:
            amount = to_money(value)
        except MoneyError as exc:
            raise InvalidDiscount(f"value: {exc}") from exc
        if amount < ZERO:
            raise InvalidDiscount("Discount value cannot be negative")

    if amount is not None and pct is not None:
        implied = percentage_of(gross, pct)
        if abs(implied - amount) > CENT:
            raise InvalidDiscount(
                "Discount value and percentage disagree",
                details={"value": str(amount), "percentage": str(pct), "implied_value": str(implied)},
            )

    if amount is not None:
        item.discount_basis = DISCOUNT_BASIS_VALUE
        item.discount_value = amount
    else:
        item.discount_basis = DISCOUNT_BASIS_PERCENTAGE
        item.discount_percentage = pct

    recalculate_item(item)
    _touch(commanda)
    return item


def set_ticket_discount(commanda: Commanda, amount) -> Commanda:
    """Ticket-level discount on top of item totals; total never drops below zero."""
    ensure_open(commanda)
    try:
        discount = to_money(amount)
    except MoneyError as exc:
        raise InvalidDiscount(str(exc)) from exc
    if discount < ZERO:
        raise InvalidDiscount("Ticket discount cannot be negative")

    commanda.discount_amount = discount
    _touch(commanda)
    return commanda


def set_flags(commanda: Commanda, *, leave_change_as_tip: bool | None = None, allow_debt: bool | None = None) -> Commanda:
    ensure_open(commanda)
    if leave_change_as_tip is not None:
        commanda.leave_change_as_tip = bool(leave_change_as_tip)
    if allow_debt is not None:
        commanda.allow_debt = bool(allow_debt)
    _touch(commanda)
    return commanda
