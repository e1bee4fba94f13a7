# Overview: Flask API routes for commandas; items, discounts, payments, balance and close.

# backend/salondesk/routes/commandas.py
"""
Commanda API Routes

WHY: Front desk builds the bill, takes split tenders and closes the tab.

DESIGN:
- Mutations return the full commanda plus its balance summary, so the
  client never recomputes money.
- Money travels as 2-decimal strings. JSON numbers are accepted on input
  and converted without float arithmetic.
- Closing an appointment-linked commanda also moves the appointment to DONE.
"""

from flask import Blueprint, jsonify

from ..route_helpers import failure_response, get_coordinator, internal_error_response, invalid_input_response
from ..services.settlement_service import summarize
from ..validation import (
    ValidationError,
    optional_str,
    parse_bool,
    parse_int,
    parse_money,
    require_json,
)


commandas_bp = Blueprint("commandas", __name__, url_prefix="/api/commandas")


def _commanda_payload(commanda, **extra):
    payload = {"commanda": commanda.to_dict(), "summary": summarize(commanda).to_dict()}
    payload.update(extra)
    return payload


def _respond(result, status: int = 200):
    """Commanda-valued result -> commanda + summary."""
    if not result.ok:
        return failure_response(result.error)
    return jsonify(_commanda_payload(result.value)), status


# =============================================================================
# COMMANDA
# =============================================================================

@commandas_bp.post("")
def open_adhoc_commanda_route():
    """
    Open a commanda that is not linked to an appointment (walk-in sale).

    Request body: {"customer_ref": "C-1", "professional_ref": "P-7"}  (both optional)
    """
    try:
        data = require_json()
        result = get_coordinator().open_adhoc_ledger(
            optional_str(data.get("customer_ref"), "customer_ref", max_length=64),
            optional_str(data.get("professional_ref"), "professional_ref", max_length=64),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        return _respond(result, 201)
    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to open commanda")


@commandas_bp.get("/<int:commanda_id>")
def get_commanda_route(commanda_id: int):
    try:
        return _respond(get_coordinator().get_ledger(commanda_id))
    except Exception:
        return internal_error_response("Failed to load commanda")


# =============================================================================
# ITEMS
# =============================================================================

@commandas_bp.post("/<int:commanda_id>/items")
def add_item_route(commanda_id: int):
    """
    Add a line item.

    Request body:
    {
        "kind": "PRODUCT",          (SERVICE, PRODUCT, PACKAGE)
        "catalog_ref": "PRD-1",
        "quantity": 2,              (optional, default 1)
        "unit_price": "12.50",      (optional, overrides the catalog price)
        "description": "..."        (optional)
    }
    """
    try:
        data = require_json()
        kind = data.get("kind")
        catalog_ref = data.get("catalog_ref")
        if not kind or not catalog_ref:
            return invalid_input_response("kind and catalog_ref required")

        result = get_coordinator().add_item(
            commanda_id,
            kind,
            str(catalog_ref),
            parse_int(data.get("quantity", 1), "quantity", required=True),
            parse_money(data.get("unit_price"), "unit_price"),
            description=optional_str(data.get("description"), "description"),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        if not result.ok:
            return failure_response(result.error)

        item = result.value
        return jsonify(_commanda_payload(item.commanda, item=item.to_dict())), 201

    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to add commanda item")


@commandas_bp.patch("/<int:commanda_id>/items/<int:item_id>")
def update_item_route(commanda_id: int, item_id: int):
    """Request body: {"quantity": 3, "unit_price": "40.00"} (either or both)."""
    try:
        data = require_json()
        result = get_coordinator().update_item(
            commanda_id,
            item_id,
            quantity=parse_int(data.get("quantity"), "quantity"),
            unit_price=parse_money(data.get("unit_price"), "unit_price"),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        if not result.ok:
            return failure_response(result.error)

        item = result.value
        return jsonify(_commanda_payload(item.commanda, item=item.to_dict())), 200

    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to update commanda item")


@commandas_bp.delete("/<int:commanda_id>/items/<int:item_id>")
def remove_item_route(commanda_id: int, item_id: int):
    try:
        return _respond(get_coordinator().remove_item(commanda_id, item_id))
    except Exception:
        return internal_error_response("Failed to remove commanda item")


@commandas_bp.post("/<int:commanda_id>/items/<int:item_id>/discount")
def item_discount_route(commanda_id: int, item_id: int):
    """Request body: {"value": "10.00"} or {"percentage": "15"} (both allowed if they agree)."""
    try:
        data = require_json()
        result = get_coordinator().apply_discount(
            commanda_id,
            item_id,
            value=parse_money(data.get("value"), "value"),
            percentage=parse_money(data.get("percentage"), "percentage"),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        if not result.ok:
            return failure_response(result.error)

        item = result.value
        return jsonify(_commanda_payload(item.commanda, item=item.to_dict())), 200

    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to apply item discount")


# =============================================================================
# TICKET OPTIONS
# =============================================================================

@commandas_bp.put("/<int:commanda_id>/discount")
def ticket_discount_route(commanda_id: int):
    """Request body: {"amount": "5.00"}"""
    try:
        data = require_json()
        result = get_coordinator().set_ticket_discount(
            commanda_id,
            parse_money(data.get("amount"), "amount", required=True),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        return _respond(result)
    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to set commanda discount")


@commandas_bp.patch("/<int:commanda_id>/flags")
def flags_route(commanda_id: int):
    """Request body: {"leave_change_as_tip": true, "allow_debt": false} (either or both)."""
    try:
        data = require_json()
        result = get_coordinator().set_flags(
            commanda_id,
            leave_change_as_tip=parse_bool(data.get("leave_change_as_tip"), "leave_change_as_tip"),
            allow_debt=parse_bool(data.get("allow_debt"), "allow_debt"),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        return _respond(result)
    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to set commanda flags")


# =============================================================================
# PAYMENTS
# =============================================================================

@commandas_bp.post("/<int:commanda_id>/payments")
def add_payment_route(commanda_id: int):
    """
    Apply a tender.

    Request body:
    {
        "instrument_id": 2,
        "amount": "60.00"
    }

    Returns:
        201: Payment applied, with fee/net captured from the instrument
        400: Unknown/inactive instrument or invalid amount
        409: Commanda not open
    """
    try:
        data = require_json()
        instrument_id = parse_int(data.get("instrument_id"), "instrument_id", required=True)
        amount = parse_money(data.get("amount"), "amount", required=True)

        result = get_coordinator().add_payment(
            commanda_id,
            instrument_id,
            amount,
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        if not result.ok:
            return failure_response(result.error)

        payment = result.value
        return jsonify(_commanda_payload(payment.commanda, payment=payment.to_dict())), 201

    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to add payment")


@commandas_bp.delete("/<int:commanda_id>/payments/<int:payment_id>")
def remove_payment_route(commanda_id: int, payment_id: int):
    try:
        return _respond(get_coordinator().remove_payment(commanda_id, payment_id))
    except Exception:
        return internal_error_response("Failed to remove payment")


# =============================================================================
# BALANCE / CLOSE
# =============================================================================

@commandas_bp.get("/<int:commanda_id>/summary")
def summary_route(commanda_id: int):
    try:
        result = get_coordinator().summarize(commanda_id)
        if not result.ok:
            return failure_response(result.error)
        return jsonify({"commanda_id": commanda_id, "summary": result.value.to_dict()}), 200
    except Exception:
        return internal_error_response("Failed to summarize commanda")


@commandas_bp.get("/<int:commanda_id>/can-close")
def can_close_route(commanda_id: int):
    try:
        result = get_coordinator().can_close(commanda_id)
        if not result.ok:
            return failure_response(result.error)
        return jsonify({
            "commanda_id": commanda_id,
            "closable": not result.value,
            "reasons": [reason.to_dict() for reason in result.value],
        }), 200
    except Exception:
        return internal_error_response("Failed to check commanda close eligibility")


@commandas_bp.post("/<int:commanda_id>/close")
def close_route(commanda_id: int):
    """
    Close the commanda.

    Request body (all optional):
    {
        "leave_change_as_tip": true,
        "allow_debt": false,
        "notes": "...",
        "role": "RECEPTION",
        "actor": "reception-1"
    }

    Returns:
        200: Closed; disposition (change/tip/debt) on the commanda
        409: Already closed, or not closable (reasons in details)
    """
    try:
        data = require_json()
        result = get_coordinator().close(
            commanda_id,
            leave_change_as_tip=parse_bool(data.get("leave_change_as_tip"), "leave_change_as_tip"),
            allow_debt=parse_bool(data.get("allow_debt"), "allow_debt"),
            notes=optional_str(data.get("notes"), "notes", max_length=2000),
            role=optional_str(data.get("role"), "role", max_length=32),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        return _respond(result)
    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to close commanda")


@commandas_bp.post("/<int:commanda_id>/cancel")
def cancel_route(commanda_id: int):
    """Request body: {"reason": "..."} (optional)"""
    try:
        data = require_json()
        result = get_coordinator().cancel_ledger(
            commanda_id,
            optional_str(data.get("reason"), "reason"),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        return _respond(result)
    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to cancel commanda")
