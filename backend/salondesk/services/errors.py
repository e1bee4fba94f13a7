"""
Domain errors for the appointment / commanda workflow.

Service functions raise these; WorkflowCoordinator catches them at the
engine boundary and hands them back inside an OperationResult, so callers
never have to catch business-rule violations. Anything that is not a
WorkflowError (storage failure, broken invariant) propagates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Generic, Optional, TypeVar

from ..money import money_str


class WorkflowError(Exception):
    """Base class for expected business-rule violations."""
    code = "WORKFLOW_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class InvalidTransition(WorkflowError):
    """Requested action is not in the transition table row for the current state."""
    code = "INVALID_TRANSITION"
    http_status = 409

    def __init__(self, from_status: str, action: str):
        super().__init__(
            f"Action '{action}' is not allowed from status {from_status}",
            details={"from": from_status, "action": action},
        )
        self.from_status = from_status
        self.action = action


class ActionNotPermitted(WorkflowError):
    code = "ACTION_NOT_PERMITTED"
    http_status = 403

    def __init__(self, role: str, action: str):
        super().__init__(
            f"Role {role} may not perform '{action}'",
            details={"role": role, "action": action},
        )
        self.role = role
        self.action = action


class MissingLedger(WorkflowError):
    """finish_service with nothing to bill: no open commanda, no services, no items."""
    code = "MISSING_LEDGER"
    http_status = 409

    def __init__(self, appointment_id: int | None):
        super().__init__(
            "No commanda can be derived: supply line items or open a commanda first",
            details={"appointment_id": appointment_id},
        )


class LedgerClosed(WorkflowError):
    code = "LEDGER_CLOSED"
    http_status = 409

    def __init__(self, commanda_id: int | None, status: str):
        super().__init__(
            f"Commanda {commanda_id} is {status}; no further changes are accepted",
            details={"commanda_id": commanda_id, "status": status},
        )
        self.status = status


@dataclass(frozen=True)
class CloseReason:
    """One condition blocking a commanda from closing."""
    code: str
    message: str
    amount: Optional[Decimal] = None

    def to_dict(self) -> dict:
        data = {"code": self.code, "message": self.message}
        if self.amount is not None:
            data["amount"] = money_str(self.amount)
        return data


class UnclosableLedger(WorkflowError):
    """Carries every unmet close condition, not just the first one found."""
    code = "UNCLOSABLE_LEDGER"
    http_status = 409

    def __init__(self, commanda_id: int | None, reasons: list[CloseReason]):
        super().__init__(
            "; ".join(r.message for r in reasons) or "Commanda cannot be closed",
            details={"commanda_id": commanda_id, "reasons": [r.to_dict() for r in reasons]},
        )
        self.reasons = list(reasons)


class UnknownInstrument(WorkflowError):
    code = "UNKNOWN_INSTRUMENT"

    def __init__(self, instrument_id, inactive: bool = False):
        state = "inactive" if inactive else "not found"
        super().__init__(
            f"Payment instrument {instrument_id} is {state}",
            details={"instrument_id": instrument_id, "inactive": inactive},
        )


class UnknownCatalogItem(WorkflowError):
    code = "UNKNOWN_CATALOG_ITEM"

    def __init__(self, kind: str, ref: str):
        super().__init__(
            f"Catalog entry {kind}:{ref} not found",
            details={"kind": kind, "ref": ref},
        )


class InvalidAmount(WorkflowError):
    code = "INVALID_AMOUNT"


class InvalidDiscount(WorkflowError):
    code = "INVALID_DISCOUNT"


class InvalidInput(WorkflowError):
    code = "INVALID_INPUT"


class EntityNotFound(WorkflowError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} not found", details={"entity": entity, "id": entity_id})


class ConcurrencyTimeout(WorkflowError):
    code = "CONCURRENCY_TIMEOUT"
    http_status = 503


T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a coordinator call: either a value or a WorkflowError."""
    value: Optional[T] = None
    error: Optional[WorkflowError] = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None, **meta) -> "OperationResult[T]":
        return cls(value=value, meta=meta)

    @classmethod
    def failure(cls, error: WorkflowError) -> "OperationResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error (handy in scripts and tests)."""
        if self.error is not None:
            raise self.error
        return self.value
