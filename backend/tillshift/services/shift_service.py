"""
Shift (drawer session) management service

WHY: Each shift is a period of cash accountability for one cashier at one
location. This is the only entry point for opening shifts and recording
manual cash movements.

DESIGN PRINCIPLES:
- One OPEN shift per (operator, location); the ledger store's unique index
  enforces it, this layer only translates the failure
- Shifts are never reopened; new work needs a new shift
- Cash movements are append-only and only accepted while OPEN
- Closing belongs to reconciliation_service (it needs the sales summary)
"""

from __future__ import annotations

from datetime import datetime

from ..errors import InvalidArgumentError
from ..extensions import db
from ..models import CashMovement, MovementType, Shift, ShiftStatus
from ..validation import optional_text, parse_cents, require_identifier
from . import audit_service, ledger_store
from .concurrency import run_with_retry


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

def open_shift(
    operator_id: str,
    location_id: str,
    opening_cash_cents: int,
    notes: str | None = None,
) -> Shift:
    """
    Open a new shift for an operator at a location.

    Args:
        operator_id: Cashier opening the drawer (from the identity subsystem)
        location_id: Store/terminal the drawer belongs to
        opening_cash_cents: Declared starting cash (>= 0)
        notes: Optional opening notes

    Raises:
        InvalidArgumentError: Negative or non-integer balance, blank identity
        ConflictError: The operator already has an OPEN shift here
    """
    operator_id = require_identifier(operator_id, "operator_id")
    location_id = require_identifier(location_id, "location_id")
    opening_cash_cents = parse_cents(opening_cash_cents, "opening_cash_cents")
    notes = optional_text(notes, "notes", max_length=None)

    shift = ledger_store.create_session(
        operator_id=operator_id,
        location_id=location_id,
        opening_cash_cents=opening_cash_cents,
        opening_notes=notes,
    )

    audit_service.emit_fact(
        action="CREATE",
        entity_type="Shift",
        entity_id=shift.id,
        actor_id=operator_id,
        location_id=location_id,
        reason=f"Shift opened. Opening cash: {opening_cash_cents / 100:.2f}",
        after={"opening_cash_cents": opening_cash_cents, "status": shift.status},
    )

    return shift


def get_current_shift(operator_id: str, location_id: str) -> Shift | None:
    """The operator's OPEN shift at this location, if any. Read-only."""
    operator_id = require_identifier(operator_id, "operator_id")
    location_id = require_identifier(location_id, "location_id")
    return ledger_store.find_open_session(operator_id, location_id)


def get_shift(session_id: int) -> Shift:
    return ledger_store.get_session(session_id)


def list_shifts(
    *,
    operator_id: str | None = None,
    location_id: str | None = None,
    status: str | None = None,
    opened_from: datetime | None = None,
    opened_to: datetime | None = None,
    limit: int = 50,
) -> list[Shift]:
    if status is not None:
        try:
            status = ShiftStatus(status.upper()).value
        except ValueError:
            raise InvalidArgumentError(
                "status must be one of: OPEN, CLOSED, REVIEW",
                field="status",
            )
    return ledger_store.list_sessions(
        operator_id=operator_id,
        location_id=location_id,
        status=status,
        opened_from=opened_from,
        opened_to=opened_to,
        limit=max(1, min(limit, 500)),
    )


def get_review_queue(location_id: str | None = None, limit: int = 100) -> list[Shift]:
    """
    Shifts closed with a variance beyond tolerance, newest first.

    REVIEW is terminal: there is no approval transition, this is a read-only
    worklist for managers.
    """
    return list_shifts(location_id=location_id, status=ShiftStatus.REVIEW.value, limit=limit)


# =============================================================================
# CASH MOVEMENTS
# =============================================================================

def add_cash_movement(
    session_id: int,
    movement_type: MovementType | str,
    amount_cents: int,
    performed_by: str,
    reason: str | None = None,
    category: str | None = None,
    attachment: str | None = None,
) -> CashMovement:
    """
    Record a manual cash event on an OPEN shift.

    The OPEN check is a conditional UPDATE on the shift row in the same
    transaction as the insert, so a close that commits first is seen here
    and a close that starts later waits for this insert to commit.

    Raises:
        InvalidArgumentError: amount <= 0, unknown type, missing performer
        NotFoundError: Unknown shift
        InvalidStateError: Shift is no longer OPEN (no row is written)
    """
    performed_by = require_identifier(performed_by, "performed_by")
    amount_cents = parse_cents(amount_cents, "amount_cents", allow_zero=False, session_id=session_id)
    mtype = ledger_store.coerce_movement_type(movement_type, session_id)
    reason = optional_text(reason, "reason")
    category = optional_text(category, "category", max_length=64)
    attachment = optional_text(attachment, "attachment", max_length=512)

    def _op() -> CashMovement:
        ledger_store.claim_open_session(session_id)
        return ledger_store.append_movement(
            session_id=session_id,
            movement_type=mtype,
            amount_cents=amount_cents,
            performed_by=performed_by,
            reason=reason,
            category=category,
            attachment=attachment,
            commit=True,
        )

    try:
        movement = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    shift = ledger_store.get_session(session_id)

    audit_service.emit_fact(
        action="CREATE",
        entity_type="CashMovement",
        entity_id=movement.id,
        actor_id=performed_by,
        location_id=shift.location_id,
        reason=f"Cash movement: {mtype.value} of {amount_cents / 100:.2f} for {reason or 'N/A'}",
        after=movement.to_dict(),
    )

    return movement


def get_shift_movements(session_id: int) -> list[CashMovement]:
    ledger_store.get_session(session_id)
    return ledger_store.list_movements(session_id)
