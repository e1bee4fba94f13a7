# Overview: Flask API routes for appointments; booking, action menu and lifecycle transitions.

# backend/salondesk/routes/appointments.py
"""
Appointment API Routes

DESIGN:
- Every status change goes through POST /<id>/transitions with an action
  name; there is no endpoint that writes status directly.
- GET /<id>/actions returns the same menu the engine enforces.
- Business-rule failures come back with the error's code and HTTP status;
  unexpected failures are logged and answered with 500.
"""

from flask import Blueprint, jsonify, request

from ..route_helpers import failure_response, get_coordinator, internal_error_response, invalid_input_response
from ..services import lifecycle_service
from ..services.settlement_service import summarize
from ..validation import (
    ValidationError,
    optional_str,
    parse_bool,
    parse_datetime,
    parse_int,
    parse_money,
    require_json,
)


appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


def _parse_services(raw):
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("services must be a list")
    parsed = []
    for index, entry in enumerate(raw):
        if isinstance(entry, str):
            parsed.append({"service_ref": entry})
            continue
        if not isinstance(entry, dict):
            raise ValidationError(f"services[{index}] must be a service ref or an object")
        parsed.append({
            "service_ref": entry.get("service_ref"),
            "name": optional_str(entry.get("name"), f"services[{index}].name"),
            "price": parse_money(entry.get("price"), f"services[{index}].price"),
        })
    return parsed


def _parse_items(raw):
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")
    parsed = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{index}] must be an object")
        parsed.append({
            "kind": entry.get("kind"),
            "catalog_ref": entry.get("catalog_ref"),
            "quantity": parse_int(entry.get("quantity", 1), f"items[{index}].quantity"),
            "unit_price": parse_money(entry.get("unit_price"), f"items[{index}].unit_price"),
            "description": optional_str(entry.get("description"), f"items[{index}].description"),
        })
    return parsed


def _parse_changes(raw):
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("changes must be an object")
    changes = dict(raw)
    if "start_at" in changes:
        changes["start_at"] = parse_datetime(changes["start_at"], "changes.start_at", required=True)
    if "end_at" in changes:
        changes["end_at"] = parse_datetime(changes["end_at"], "changes.end_at")
    if "services" in changes:
        changes["services"] = _parse_services(changes["services"]) or []
    return changes


# =============================================================================
# BOOKING / QUERIES
# =============================================================================

@appointments_bp.post("")
def book_appointment_route():
    """
    Book an appointment (status CREATED).

    Request body:
    {
        "customer_ref": "C-1",
        "professional_ref": "P-7",
        "start_at": "2026-03-02T14:00:00Z",
        "end_at": "2026-03-02T15:00:00Z",      (optional, derived from service durations)
        "services": ["SVC-CUT", {"service_ref": "SVC-COLOR", "price": "80.00"}],
        "notes": "..."
    }
    """
    try:
        data = require_json()
        result = get_coordinator().book(
            data.get("customer_ref"),
            data.get("professional_ref"),
            parse_datetime(data.get("start_at"), "start_at", required=True),
            _parse_services(data.get("services")),
            end_at=parse_datetime(data.get("end_at"), "end_at"),
            notes=optional_str(data.get("notes"), "notes", max_length=2000),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        if not result.ok:
            return failure_response(result.error)
        return jsonify({"appointment": result.value.to_dict()}), 201

    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to book appointment")


@appointments_bp.get("/<int:appointment_id>")
def get_appointment_route(appointment_id: int):
    try:
        result = get_coordinator().get_appointment(appointment_id)
        if not result.ok:
            return failure_response(result.error)
        return jsonify({"appointment": result.value.to_dict()}), 200
    except Exception:
        return internal_error_response("Failed to load appointment")


@appointments_bp.get("/<int:appointment_id>/actions")
def allowed_actions_route(appointment_id: int):
    """Action menu for the appointment. Query params: role (MANAGER, RECEPTION, PROFESSIONAL)."""
    try:
        role = request.args.get("role") or None
        result = get_coordinator().allowed_actions(appointment_id, role=role)
        if not result.ok:
            return failure_response(result.error)
        return jsonify({"appointment_id": appointment_id, "role": role, "actions": result.value}), 200
    except Exception:
        return internal_error_response("Failed to compute allowed actions")


# =============================================================================
# TRANSITIONS
# =============================================================================

@appointments_bp.post("/<int:appointment_id>/transitions")
def transition_route(appointment_id: int):
    """
    Apply a lifecycle action.

    Request body:
    {
        "action": "finish_service",
        "role": "PROFESSIONAL",                 (optional)
        "actor": "reception-1",                 (optional, audit)
        "items": [{"kind": "PRODUCT", "catalog_ref": "PRD-1", "quantity": 2}],  (finish_service)
        "changes": {"start_at": "...", "services": [...]},                     (edit)
        "reason": "...",                        (cancel)
        "new_start": "...",                     (reschedule)
        "leave_change_as_tip": true,            (close_settlement)
        "allow_debt": false,                    (close_settlement)
        "notes": "..."                          (close_settlement)
    }

    Returns:
        200: Action applied (201 for reschedule, with the new appointment)
        400/403/404/409: Business-rule failure with its code
    """
    try:
        data = require_json()
        action = data.get("action")
        if not action or not isinstance(action, str):
            return invalid_input_response("action is required")

        result = get_coordinator().transition(
            appointment_id,
            action,
            role=optional_str(data.get("role"), "role", max_length=32),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
            items=_parse_items(data.get("items")),
            changes=_parse_changes(data.get("changes")),
            reason=optional_str(data.get("reason"), "reason"),
            new_start=parse_datetime(data.get("new_start"), "new_start"),
            leave_change_as_tip=parse_bool(data.get("leave_change_as_tip"), "leave_change_as_tip"),
            allow_debt=parse_bool(data.get("allow_debt"), "allow_debt"),
            notes=optional_str(data.get("notes"), "notes", max_length=2000),
        )
        if not result.ok:
            return failure_response(result.error)

        status = 201 if action == lifecycle_service.RESCHEDULE else 200
        return jsonify({
            "appointment": result.value.to_dict(),
            "from_status": result.meta.get("from_status"),
            "to_status": result.meta.get("to_status"),
        }), status

    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to apply appointment transition")


@appointments_bp.post("/<int:appointment_id>/commanda")
def open_ledger_route(appointment_id: int):
    """Open (or return the already open) commanda for the appointment."""
    try:
        data = require_json()
        result = get_coordinator().open_ledger(
            appointment_id,
            role=optional_str(data.get("role"), "role", max_length=32),
            actor=optional_str(data.get("actor"), "actor", max_length=64),
        )
        if not result.ok:
            return failure_response(result.error)

        commanda = result.value
        created = result.meta.get("created", False)
        return jsonify({
            "commanda": commanda.to_dict(),
            "summary": summarize(commanda).to_dict(),
            "created": created,
        }), 201 if created else 200

    except ValidationError as e:
        return invalid_input_response(str(e))
    except Exception:
        return internal_error_response("Failed to open commanda")
