# Overview: Public workflow boundary; serializes, persists and audits appointment and commanda operations.

"""
Workflow Coordinator

WHY: Appointment status and commanda settlement must move together. Closing
the commanda and marking the appointment DONE is one decision, so it is one
database transaction. This class is the only place that loads, locks and
commits; the lifecycle, commanda and settlement services below it only
mutate instances and raise.

EVERY OPERATION:
1. takes the in-process entity locks (appointment before commanda)
2. loads rows with SELECT ... FOR UPDATE
3. applies the service call(s)
4. appends a workflow event and commits
5. on a WorkflowError rolls back and returns OperationResult.failure
StaleDataError / OperationalError are retried from a clean session by
run_with_retry. Anything else rolls back and propagates.

Collaborators (catalog prices, payment instruments) are injected, so batch
jobs and tests can run the workflow against fixed reference data.
"""

from __future__ import annotations

from contextlib import ExitStack, contextmanager

from flask import current_app

from ..extensions import db
from ..models import Appointment, Commanda
from ..models.catalog import KIND_SERVICE
from ..models.commandas import COMMANDA_OPEN
from ..time_utils import utcnow
from . import commanda_service, lifecycle_service, settlement_service
from .catalog_service import (
    CatalogLookup,
    PaymentInstrumentLookup,
    SqlCatalogLookup,
    SqlInstrumentLookup,
)
from .concurrency import APPOINTMENT, COMMANDA, EntityLocks, entity_locks, lock_for_update, run_with_retry
from .errors import EntityNotFound, InvalidInput, LedgerClosed, MissingLedger, OperationResult, WorkflowError
from .event_log_service import append_event


class WorkflowCoordinator:
    def __init__(
        self,
        catalog: CatalogLookup | None = None,
        instruments: PaymentInstrumentLookup | None = None,
        locks: EntityLocks | None = None,
    ):
        self.catalog = catalog or SqlCatalogLookup()
        self.instruments = instruments or SqlInstrumentLookup()
        self.locks = locks if locks is not None else entity_locks

    # =========================================================================
    # PLUMBING
    # =========================================================================

    def _run(self, operation: str, func, *, appointment_id=None, commanda_id=None, follow_link: bool = True) -> OperationResult:
        config = current_app.config
        try:
            with self._lock_scope(appointment_id, commanda_id, follow_link):
                value, meta = run_with_retry(
                    func,
                    attempts=int(config.get("RETRY_ATTEMPTS", 3)),
                    backoff_base=float(config.get("RETRY_BACKOFF_BASE", 0.1)),
                )
        except WorkflowError as exc:
            db.session.rollback()
            current_app.logger.info("%s rejected (%s): %s", operation, exc.code, exc.message)
            return OperationResult.failure(exc)
        except Exception:
            db.session.rollback()
            raise
        return OperationResult.success(value, **meta)

    @contextmanager
    def _lock_scope(self, appointment_id, commanda_id, follow_link: bool):
        timeout = float(current_app.config.get("ENTITY_LOCK_TIMEOUT", 10.0))
        with ExitStack() as stack:
            if appointment_id is None and commanda_id is not None and follow_link:
                appointment_id = db.session.query(Commanda.appointment_id).filter_by(id=commanda_id).scalar()
            if appointment_id is not None:
                stack.enter_context(self.locks.hold((APPOINTMENT, appointment_id), timeout=timeout))
                if commanda_id is None and follow_link:
                    # Read under the appointment lock; only holders of it relink a commanda
                    commanda_id = db.session.query(Appointment.commanda_id).filter_by(id=appointment_id).scalar()
            if commanda_id is not None:
                stack.enter_context(self.locks.hold((COMMANDA, commanda_id), timeout=timeout))
            yield

    def _read(self, func) -> OperationResult:
        try:
            value = func()
        except WorkflowError as exc:
            db.session.rollback()
            return OperationResult.failure(exc)
        return OperationResult.success(value)

    @staticmethod
    def _load_appointment(appointment_id, *, for_update: bool = True) -> Appointment:
        query = db.session.query(Appointment).filter_by(id=appointment_id)
        if for_update:
            query = lock_for_update(query)
        appointment = query.populate_existing().first()
        if appointment is None:
            raise EntityNotFound("Appointment", appointment_id)
        return appointment

    @staticmethod
    def _load_commanda(commanda_id, *, for_update: bool = True) -> Commanda:
        query = db.session.query(Commanda).filter_by(id=commanda_id)
        if for_update:
            query = lock_for_update(query)
        commanda = query.populate_existing().first()
        if commanda is None:
            raise EntityNotFound("Commanda", commanda_id)
        return commanda

    def _linked_commanda(self, appointment: Appointment) -> Commanda | None:
        if appointment.commanda_id is None:
            return None
        return self._load_commanda(appointment.commanda_id)

    def _linked_appointment(self, commanda: Commanda) -> Appointment | None:
        if commanda.appointment_id is None:
            return None
        return self._load_appointment(commanda.appointment_id)

    @staticmethod
    def _commit(event_type: str, entity_type: str, entity_id: int, *, appointment_id=None, commanda_id=None, actor=None, payload=None) -> None:
        append_event(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            appointment_id=appointment_id,
            commanda_id=commanda_id,
            actor=actor,
            payload=payload,
        )
        db.session.commit()
        current_app.logger.info("%s %s %s committed", event_type, entity_type, entity_id)

    def _commanda_event(self, event_type: str, commanda: Commanda, actor=None, payload=None) -> None:
        self._commit(
            event_type,
            "commanda",
            commanda.id,
            appointment_id=commanda.appointment_id,
            commanda_id=commanda.id,
            actor=actor,
            payload=payload,
        )

    def _open_linked_ledger(self, appointment: Appointment) -> tuple[Commanda, bool]:
        """Reuse the linked OPEN commanda or seed a new one from the appointment's services."""
        current = self._linked_commanda(appointment)
        if current is not None and current.status == COMMANDA_OPEN:
            return current, False

        commanda = commanda_service.new_commanda(appointment=appointment)
        db.session.add(commanda)
        db.session.flush()
        appointment.commanda_id = commanda.id
        appointment.updated_at = utcnow()
        return commanda, True

    def _add_requested_items(self, commanda: Commanda, items) -> None:
        for raw in items or []:
            if not isinstance(raw, dict):
                raise InvalidInput("Each item must be an object")
            if not raw.get("catalog_ref"):
                raise InvalidInput("Each item needs a catalog_ref")
            commanda_service.add_item(
                commanda,
                raw.get("kind") or KIND_SERVICE,
                raw["catalog_ref"],
                raw.get("quantity", 1),
                raw.get("unit_price"),
                catalog=self.catalog,
                description=raw.get("description"),
            )

    # =========================================================================
    # APPOINTMENTS
    # =========================================================================

    def book(
        self,
        customer_ref: str,
        professional_ref: str,
        start_at,
        services=None,
        *,
        end_at=None,
        notes: str | None = None,
        actor: str | None = None,
    ) -> OperationResult[Appointment]:
        def op():
            appointment = lifecycle_service.build_appointment(
                customer_ref=customer_ref,
                professional_ref=professional_ref,
                start_at=start_at,
                services=services,
                end_at=end_at,
                notes=notes,
                catalog=self.catalog,
            )
            db.session.add(appointment)
            db.session.flush()
            self._commit(
                "appointment.booked",
                "appointment",
                appointment.id,
                appointment_id=appointment.id,
                actor=actor,
                payload={"services": [s.service_ref for s in appointment.services]},
            )
            return appointment, {}

        return self._run("book", op)

    def get_appointment(self, appointment_id: int) -> OperationResult[Appointment]:
        return self._read(lambda: self._load_appointment(appointment_id, for_update=False))

    def allowed_actions(self, appointment_id: int, role: str | None = None) -> OperationResult[list[str]]:
        def read():
            appointment = self._load_appointment(appointment_id, for_update=False)
            return lifecycle_service.allowed_actions(appointment.status, role)

        return self._read(read)

    def transition(
        self,
        appointment_id: int,
        action: str,
        *,
        role: str | None = None,
        actor: str | None = None,
        items=None,
        changes: dict | None = None,
        reason: str | None = None,
        new_start=None,
        leave_change_as_tip: bool | None = None,
        allow_debt: bool | None = None,
        notes: str | None = None,
    ) -> OperationResult[Appointment]:
        """
        Apply one lifecycle action.

        The value is the appointment after the action; for `reschedule` it is
        the newly created appointment.
        """
        def op():
            appointment = self._load_appointment(appointment_id)
            from_status = appointment.status
            target = lifecycle_service.resolve_target(from_status, action, role)
            payload = {"from": from_status, "to": target}
            result = appointment

            if action == lifecycle_service.EDIT:
                lifecycle_service.apply_edit(appointment, changes or {}, self.catalog)
                payload["fields"] = sorted(changes or {})

            elif action == lifecycle_service.OPEN_LEDGER:
                commanda, created = self._open_linked_ledger(appointment)
                payload.update(commanda_id=commanda.id, created=created)

            elif action == lifecycle_service.RESCHEDULE:
                result = lifecycle_service.build_reschedule(appointment, new_start)
                db.session.add(result)
                db.session.flush()
                payload["new_appointment_id"] = result.id

            elif action == lifecycle_service.FINISH_SERVICE:
                self._finish_service(appointment, items)
                lifecycle_service.apply_status(appointment, target)
                payload["commanda_id"] = appointment.commanda_id

            elif action == lifecycle_service.CLOSE_SETTLEMENT:
                commanda = self._linked_commanda(appointment)
                if commanda is None:
                    raise MissingLedger(appointment.id)
                settlement_service.close(
                    commanda,
                    leave_change_as_tip=leave_change_as_tip,
                    allow_debt=allow_debt,
                    notes=notes,
                    actor=actor,
                )
                lifecycle_service.apply_status(appointment, target, at=commanda.closed_at)
                payload["commanda_id"] = commanda.id

            elif action == lifecycle_service.COMPLETE_WITHOUT_SETTLEMENT:
                commanda = self._linked_commanda(appointment)
                if commanda is not None and commanda.status == COMMANDA_OPEN:
                    settlement_service.close_without_settlement(commanda, actor=actor)
                    payload["commanda_id"] = commanda.id
                lifecycle_service.apply_status(appointment, target)

            elif action in (lifecycle_service.CANCEL, lifecycle_service.NO_SHOW):
                # No OPEN commanda outlives its appointment
                commanda = self._linked_commanda(appointment)
                if commanda is not None and commanda.status == COMMANDA_OPEN:
                    if action == lifecycle_service.NO_SHOW:
                        settlement_service.cancel(commanda, reason or "no show")
                    else:
                        settlement_service.cancel(commanda, reason)
                    payload["commanda_id"] = commanda.id
                if action == lifecycle_service.CANCEL:
                    appointment.cancel_reason = reason
                lifecycle_service.apply_status(appointment, target)

            else:
                lifecycle_service.apply_status(appointment, target)

            self._commit(
                f"appointment.{action}",
                "appointment",
                appointment.id,
                appointment_id=appointment.id,
                commanda_id=appointment.commanda_id,
                actor=actor,
                payload=payload,
            )
            return result, {"from_status": from_status, "to_status": target}

        return self._run(f"transition:{action}", op, appointment_id=appointment_id)

    def _finish_service(self, appointment: Appointment, items) -> None:
        """Seed or reuse the commanda; items sent with the request are added either way."""
        current = self._linked_commanda(appointment)
        if current is not None and current.status == COMMANDA_OPEN:
            self._add_requested_items(current, items)
            return
        if not appointment.services and not items:
            raise MissingLedger(appointment.id)
        commanda, _ = self._open_linked_ledger(appointment)
        self._add_requested_items(commanda, items)

    # =========================================================================
    # COMMANDAS
    # =========================================================================

    def open_ledger(self, appointment_id: int, *, role: str | None = None, actor: str | None = None) -> OperationResult[Commanda]:
        """Linked commanda for the appointment; returns the OPEN one if it already exists."""
        def op():
            appointment = self._load_appointment(appointment_id)
            lifecycle_service.check_action(appointment.status, lifecycle_service.OPEN_LEDGER, role)
            commanda, created = self._open_linked_ledger(appointment)
            if created:
                self._commanda_event("commanda.opened", commanda, actor, {"items": len(commanda.items)})
            else:
                db.session.commit()
            return commanda, {"created": created}

        return self._run("open_ledger", op, appointment_id=appointment_id)

    def open_adhoc_ledger(
        self,
        customer_ref: str | None = None,
        professional_ref: str | None = None,
        *,
        actor: str | None = None,
    ) -> OperationResult[Commanda]:
        def op():
            commanda = commanda_service.new_commanda(customer_ref=customer_ref, professional_ref=professional_ref)
            db.session.add(commanda)
            db.session.flush()
            self._commanda_event("commanda.opened", commanda, actor)
            return commanda, {"created": True}

        return self._run("open_adhoc_ledger", op)

    def get_ledger(self, commanda_id: int) -> OperationResult[Commanda]:
        return self._read(lambda: self._load_commanda(commanda_id, for_update=False))

    def _mutate_commanda(self, operation: str, commanda_id: int, mutate, *, actor=None) -> OperationResult:
        def op():
            commanda = self._load_commanda(commanda_id)
            value, payload = mutate(commanda)
            db.session.flush()
            if hasattr(value, "id") and value is not commanda:
                payload = dict(payload or {}, id=value.id)
            self._commanda_event(f"commanda.{operation}", commanda, actor, payload)
            return value, {}

        return self._run(operation, op, commanda_id=commanda_id, follow_link=False)

    def add_item(
        self,
        commanda_id: int,
        kind: str,
        catalog_ref: str,
        quantity: int = 1,
        unit_price=None,
        *,
        description: str | None = None,
        actor: str | None = None,
    ):
        def mutate(commanda):
            item = commanda_service.add_item(
                commanda, kind, catalog_ref, quantity, unit_price,
                catalog=self.catalog, description=description,
            )
            return item, {"kind": kind, "catalog_ref": catalog_ref, "quantity": item.quantity}

        return self._mutate_commanda("item_added", commanda_id, mutate, actor=actor)

    def update_item(self, commanda_id: int, item_id: int, *, quantity=None, unit_price=None, actor: str | None = None):
        def mutate(commanda):
            item = commanda_service.update_item(commanda, item_id, quantity=quantity, unit_price=unit_price)
            return item, {"quantity": item.quantity, "unit_price": item.unit_price}

        return self._mutate_commanda("item_updated", commanda_id, mutate, actor=actor)

    def remove_item(self, commanda_id: int, item_id: int, *, actor: str | None = None):
        def mutate(commanda):
            commanda_service.remove_item(commanda, item_id)
            return commanda, {"item_id": item_id}

        return self._mutate_commanda("item_removed", commanda_id, mutate, actor=actor)

    def apply_discount(self, commanda_id: int, item_id: int, *, value=None, percentage=None, actor: str | None = None):
        def mutate(commanda):
            item = commanda_service.apply_item_discount(commanda, item_id, value=value, percentage=percentage)
            return item, {"basis": item.discount_basis, "value": item.discount_value}

        return self._mutate_commanda("item_discounted", commanda_id, mutate, actor=actor)

    def set_ticket_discount(self, commanda_id: int, amount, *, actor: str | None = None):
        def mutate(commanda):
            commanda_service.set_ticket_discount(commanda, amount)
            return commanda, {"amount": commanda.discount_amount}

        return self._mutate_commanda("discounted", commanda_id, mutate, actor=actor)

    def set_flags(self, commanda_id: int, *, leave_change_as_tip: bool | None = None, allow_debt: bool | None = None, actor: str | None = None):
        def mutate(commanda):
            commanda_service.set_flags(commanda, leave_change_as_tip=leave_change_as_tip, allow_debt=allow_debt)
            return commanda, {
                "leave_change_as_tip": commanda.leave_change_as_tip,
                "allow_debt": commanda.allow_debt,
            }

        return self._mutate_commanda("flags_set", commanda_id, mutate, actor=actor)

    def add_payment(self, commanda_id: int, instrument_id, amount, *, actor: str | None = None):
        def mutate(commanda):
            payment = settlement_service.add_payment(
                commanda, instrument_id, amount, instruments=self.instruments, actor=actor,
            )
            return payment, {
                "instrument_id": payment.instrument_id,
                "gross": payment.gross_amount,
                "net": payment.net_amount,
            }

        return self._mutate_commanda("payment_added", commanda_id, mutate, actor=actor)

    def remove_payment(self, commanda_id: int, payment_id: int, *, actor: str | None = None):
        def mutate(commanda):
            payment = settlement_service.remove_payment(commanda, payment_id)
            return commanda, {"payment_id": payment_id, "gross": payment.gross_amount}

        return self._mutate_commanda("payment_removed", commanda_id, mutate, actor=actor)

    def summarize(self, commanda_id: int) -> OperationResult[settlement_service.Summary]:
        return self._read(lambda: settlement_service.summarize(self._load_commanda(commanda_id, for_update=False)))

    def can_close(self, commanda_id: int):
        return self._read(lambda: settlement_service.can_close(self._load_commanda(commanda_id, for_update=False)))

    def close(
        self,
        commanda_id: int,
        *,
        leave_change_as_tip: bool | None = None,
        allow_debt: bool | None = None,
        notes: str | None = None,
        role: str | None = None,
        actor: str | None = None,
    ) -> OperationResult[Commanda]:
        """
        Close a commanda. A linked appointment moves to DONE in the same
        transaction, so it must be AWAITING_PAYMENT.
        """
        def op():
            commanda = self._load_commanda(commanda_id)
            if commanda.status != COMMANDA_OPEN:
                raise LedgerClosed(commanda.id, commanda.status)

            appointment = self._linked_appointment(commanda)
            if appointment is not None:
                lifecycle_service.check_action(appointment.status, lifecycle_service.CLOSE_SETTLEMENT, role)

            summary = settlement_service.close(
                commanda,
                leave_change_as_tip=leave_change_as_tip,
                allow_debt=allow_debt,
                notes=notes,
                actor=actor,
            )
            if appointment is not None:
                lifecycle_service.apply_status(appointment, lifecycle_service.TRANSITIONS[
                    (appointment.status, lifecycle_service.CLOSE_SETTLEMENT)
                ], at=commanda.closed_at)

            self._commanda_event("commanda.closed", commanda, actor, summary.to_dict())
            return commanda, {"summary": summary}

        return self._run("close", op, commanda_id=commanda_id)

    def cancel_ledger(self, commanda_id: int, reason: str | None = None, *, actor: str | None = None) -> OperationResult[Commanda]:
        """Cancel an OPEN commanda. A linked appointment keeps its status and can open a new one."""
        def op():
            commanda = self._load_commanda(commanda_id)
            settlement_service.cancel(commanda, reason)
            self._commanda_event("commanda.canceled", commanda, actor, {"reason": reason})
            return commanda, {}

        return self._run("cancel_ledger", op, commanda_id=commanda_id)
