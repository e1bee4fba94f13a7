# Overview: Appointment lifecycle; the authoritative transition table, action menu and role rules.

"""
Appointment Lifecycle Service

================================================================================
PURPOSE: Enforce the appointment state machine from booking to payment
================================================================================

STATE MACHINE:
    CREATED -> CONFIRMED -> CHECKED_IN -> IN_SERVICE -> AWAITING_PAYMENT -> DONE

    CONFIRMED, CHECKED_IN     may end in NO_SHOW
    every non-terminal state  may end in CANCELED
    DONE, NO_SHOW, CANCELED   are terminal; only `reschedule` is accepted,
                              and it creates a NEW appointment

RULES (NON-NEGOTIABLE):
1. TRANSITIONS below is the only source of truth. The action menu shown to
   operators (allowed_actions) and the engine (resolve_target) both read it.
2. Terminal appointments are immutable.
3. `edit` and `open_ledger` never change status and are rejected once the
   appointment is terminal.
4. Role filtering only ever removes actions from the table, never adds.

Side effects that touch the commanda (seeding on finish_service, closing on
close_settlement, cancel cascade) live in WorkflowCoordinator, which owns the
transaction that spans both aggregates.

================================================================================
"""

from __future__ import annotations

from datetime import datetime, timedelta

from ..models import Appointment, AppointmentService
from ..models.appointments import (
    STATUS_AWAITING_PAYMENT,
    STATUS_CANCELED,
    STATUS_CHECKED_IN,
    STATUS_CONFIRMED,
    STATUS_CREATED,
    STATUS_DONE,
    STATUS_IN_SERVICE,
    STATUS_NO_SHOW,
    TERMINAL_STATUSES,
)
from ..models.catalog import KIND_SERVICE
from ..money import MoneyError, ZERO, to_money
from ..time_utils import parse_iso_datetime, utcnow
from .catalog_service import CatalogLookup
from .errors import ActionNotPermitted, InvalidInput, InvalidTransition, UnknownCatalogItem


# Actions
CONFIRM = "confirm"
CHECK_IN = "check_in"
START_SERVICE = "start_service"
FINISH_SERVICE = "finish_service"
CLOSE_SETTLEMENT = "close_settlement"
COMPLETE_WITHOUT_SETTLEMENT = "complete_without_settlement"
NO_SHOW = "no_show"
CANCEL = "cancel"
RESCHEDULE = "reschedule"
EDIT = "edit"
OPEN_LEDGER = "open_ledger"

# (from_status, action) -> to_status
TRANSITIONS: dict[tuple[str, str], str] = {
    (STATUS_CREATED, CONFIRM): STATUS_CONFIRMED,
    (STATUS_CREATED, CANCEL): STATUS_CANCELED,
    (STATUS_CONFIRMED, CHECK_IN): STATUS_CHECKED_IN,
    (STATUS_CONFIRMED, NO_SHOW): STATUS_NO_SHOW,
    (STATUS_CONFIRMED, CANCEL): STATUS_CANCELED,
    (STATUS_CHECKED_IN, START_SERVICE): STATUS_IN_SERVICE,
    (STATUS_CHECKED_IN, NO_SHOW): STATUS_NO_SHOW,
    (STATUS_CHECKED_IN, CANCEL): STATUS_CANCELED,
    (STATUS_IN_SERVICE, FINISH_SERVICE): STATUS_AWAITING_PAYMENT,
    (STATUS_IN_SERVICE, CANCEL): STATUS_CANCELED,
    (STATUS_AWAITING_PAYMENT, CLOSE_SETTLEMENT): STATUS_DONE,
    (STATUS_AWAITING_PAYMENT, COMPLETE_WITHOUT_SETTLEMENT): STATUS_DONE,
    (STATUS_AWAITING_PAYMENT, CANCEL): STATUS_CANCELED,
}

# Accepted from any non-terminal state, status unchanged
NON_STATUS_ACTIONS = (EDIT, OPEN_LEDGER)

# Menu order
ACTIONS = (
    CONFIRM,
    CHECK_IN,
    START_SERVICE,
    FINISH_SERVICE,
    CLOSE_SETTLEMENT,
    COMPLETE_WITHOUT_SETTLEMENT,
    NO_SHOW,
    CANCEL,
    RESCHEDULE,
    EDIT,
    OPEN_LEDGER,
)

ROLE_MANAGER = "MANAGER"
ROLE_RECEPTION = "RECEPTION"
ROLE_PROFESSIONAL = "PROFESSIONAL"
VALID_ROLES = (ROLE_MANAGER, ROLE_RECEPTION, ROLE_PROFESSIONAL)

_PROFESSIONAL_ACTIONS = frozenset({CHECK_IN, START_SERVICE, FINISH_SERVICE, EDIT, OPEN_LEDGER})
_MANAGER_ONLY_ACTIONS = frozenset({COMPLETE_WITHOUT_SETTLEMENT})

# Audit column stamped when a status is entered
_STAMP_COLUMNS = {
    STATUS_CONFIRMED: "confirmed_at",
    STATUS_CHECKED_IN: "checked_in_at",
    STATUS_IN_SERVICE: "service_started_at",
    STATUS_AWAITING_PAYMENT: "service_finished_at",
    STATUS_DONE: "completed_at",
    STATUS_NO_SHOW: "no_show_at",
    STATUS_CANCELED: "canceled_at",
}


def validate_role(role: str | None) -> None:
    if role is not None and role not in VALID_ROLES:
        raise InvalidInput(f"Invalid role: {role}. Must be one of {VALID_ROLES}")


def is_permitted(role: str | None, action: str) -> bool:
    """None is a trusted caller (scheduler, batch job) and may do anything."""
    if role is None or role == ROLE_MANAGER:
        return True
    if role == ROLE_PROFESSIONAL:
        return action in _PROFESSIONAL_ACTIONS
    return action not in _MANAGER_ONLY_ACTIONS


def _in_table(status: str, action: str) -> bool:
    if action == RESCHEDULE:
        return status in TERMINAL_STATUSES
    if action in NON_STATUS_ACTIONS:
        return status not in TERMINAL_STATUSES
    return (status, action) in TRANSITIONS


def allowed_actions(status: str, role: str | None = None) -> list[str]:
    """
    Action menu for an appointment in `status`.

    Built from the same table resolve_target enforces, so anything listed
    here is accepted by the engine (close_settlement still needs a closable
    commanda).
    """
    validate_role(role)
    return [a for a in ACTIONS if _in_table(status, a) and is_permitted(role, a)]


def check_action(status: str, action: str, role: str | None = None) -> None:
    """Raise InvalidTransition for a pair outside the table, ActionNotPermitted for a role refusal."""
    validate_role(role)
    if action not in ACTIONS or not _in_table(status, action):
        raise InvalidTransition(status, action)
    if not is_permitted(role, action):
        raise ActionNotPermitted(role, action)


def resolve_target(status: str, action: str, role: str | None = None) -> str:
    """
    Target status for a status-changing action.

    edit / open_ledger resolve to the current status; reschedule resolves to
    CREATED (the status of the new appointment it produces).
    """
    check_action(status, action, role)
    if action in NON_STATUS_ACTIONS:
        return status
    if action == RESCHEDULE:
        return STATUS_CREATED
    return TRANSITIONS[(status, action)]


def apply_status(appointment: Appointment, target: str, *, at: datetime | None = None) -> Appointment:
    """Set status and stamp its audit timestamp. Callers resolve `target` first."""
    now = at or utcnow()
    appointment.status = target
    column = _STAMP_COLUMNS.get(target)
    if column:
        setattr(appointment, column, now)
    appointment.updated_at = now
    return appointment


# =============================================================================
# BOOKING / EDITING
# =============================================================================

def _coerce_datetime(value, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError as exc:
            raise InvalidInput(f"{field} must be an ISO-8601 datetime") from exc
        if parsed is not None:
            return parsed
    raise InvalidInput(f"{field} is required")


def build_services(selections, catalog: CatalogLookup) -> list[AppointmentService]:
    """
    Resolve selected services against the catalog, capturing today's price.

    Each selection is a service ref or a mapping with `service_ref` and an
    optional negotiated `price`.
    """
    rows = []
    for position, selection in enumerate(selections or []):
        if isinstance(selection, str):
            selection = {"service_ref": selection}
        if not isinstance(selection, dict) or not selection.get("service_ref"):
            raise InvalidInput("Each service needs a service_ref")

        ref = str(selection["service_ref"])
        entry = catalog.lookup(KIND_SERVICE, ref)
        if entry is None:
            raise UnknownCatalogItem(KIND_SERVICE, ref)

        price = entry.unit_price
        if selection.get("price") is not None:
            try:
                price = to_money(selection["price"])
            except MoneyError as exc:
                raise InvalidInput(f"price: {exc}") from exc
            if price < ZERO:
                raise InvalidInput("price cannot be negative")

        rows.append(AppointmentService(
            position=position,
            service_ref=ref,
            name=selection.get("name") or entry.name,
            price_at_booking=to_money(price),
            duration_minutes=int(entry.duration_minutes or 0),
        ))
    return rows


def _resolve_end(start_at: datetime, end_at, services: list[AppointmentService]) -> datetime:
    if end_at is not None:
        end = _coerce_datetime(end_at, "end_at")
    else:
        minutes = sum(s.duration_minutes for s in services)
        if minutes <= 0:
            raise InvalidInput("end_at is required when the selected services carry no duration")
        end = start_at + timedelta(minutes=minutes)
    if end <= start_at:
        raise InvalidInput("end_at must be after start_at")
    return end


def build_appointment(
    *,
    customer_ref: str,
    professional_ref: str,
    start_at,
    services=None,
    end_at=None,
    notes: str | None = None,
    catalog: CatalogLookup,
) -> Appointment:
    """New CREATED appointment; not added to the session."""
    if not customer_ref:
        raise InvalidInput("customer_ref is required")
    if not professional_ref:
        raise InvalidInput("professional_ref is required")

    start = _coerce_datetime(start_at, "start_at")
    rows = build_services(services, catalog)
    end = _resolve_end(start, end_at, rows)

    appointment = Appointment(
        customer_ref=str(customer_ref),
        professional_ref=str(professional_ref),
        start_at=start,
        end_at=end,
        status=STATUS_CREATED,
        notes=notes,
    )
    appointment.services.extend(rows)
    return appointment


EDITABLE_FIELDS = frozenset({"start_at", "end_at", "professional_ref", "services", "notes"})


def apply_edit(appointment: Appointment, changes: dict, catalog: CatalogLookup) -> Appointment:
    """
    Edit schedule, professional, services or notes of a non-terminal appointment.

    Moving start_at without an end_at keeps the current duration.
    """
    check_action(appointment.status, EDIT)
    if not changes:
        raise InvalidInput("Nothing to edit")
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise InvalidInput(f"Fields not editable: {', '.join(sorted(unknown))}")

    if "professional_ref" in changes:
        if not changes["professional_ref"]:
            raise InvalidInput("professional_ref cannot be empty")
        appointment.professional_ref = str(changes["professional_ref"])

    if "notes" in changes:
        appointment.notes = changes["notes"]

    if "services" in changes:
        rows = build_services(changes["services"], catalog)
        appointment.services.clear()
        appointment.services.extend(rows)

    if "start_at" in changes or "end_at" in changes:
        duration = appointment.end_at - appointment.start_at
        start = _coerce_datetime(changes["start_at"], "start_at") if "start_at" in changes else appointment.start_at
        if changes.get("end_at") is not None:
            end = _coerce_datetime(changes["end_at"], "end_at")
        else:
            end = start + duration
        if end <= start:
            raise InvalidInput("end_at must be after start_at")
        appointment.start_at = start
        appointment.end_at = end

    appointment.updated_at = utcnow()
    return appointment


def build_reschedule(source: Appointment, new_start) -> Appointment:
    """
    Copy a terminal appointment into a new CREATED one at `new_start`.

    Customer, professional and selected services (with their captured
    prices) carry over; the duration is preserved. The source row is
    left untouched.
    """
    check_action(source.status, RESCHEDULE)
    if new_start is None:
        raise InvalidInput("new_start is required to reschedule")
    start = _coerce_datetime(new_start, "new_start")

    copy = Appointment(
        customer_ref=source.customer_ref,
        professional_ref=source.professional_ref,
        start_at=start,
        end_at=start + (source.end_at - source.start_at),
        status=STATUS_CREATED,
        notes=source.notes,
        rescheduled_from_id=source.id,
    )
    for service in source.services:
        copy.services.append(AppointmentService(
            position=service.position,
            service_ref=service.service_ref,
            name=service.name,
            price_at_booking=service.price_at_booking,
            duration_minutes=service.duration_minutes,
        ))
    return copy
