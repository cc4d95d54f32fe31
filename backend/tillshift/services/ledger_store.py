# Overview: Persistence for shifts and their append-only cash movements.

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, InvalidArgumentError, InvalidStateError, NotFoundError
from ..models import CashMovement, MovementType, Shift, ShiftStatus, TERMINAL_STATUSES
from ..validation import parse_cents
from tillshift.time_utils import utcnow
from .concurrency import run_with_retry

"""
Ledger Store Invariants (authoritative)

- No business rules beyond persistence: callers validate status transitions
  other than the close, which is only legal out of OPEN.
- The one-open-shift rule is enforced by the partial unique index on
  shifts(operator_id, location_id) WHERE status = 'OPEN'. create_session never
  reads before inserting.
- Cash movements are insert-only, and only after claim_open_session has
  matched the shift as OPEN inside the same transaction.
- close_session is a single conditional UPDATE; the status check and the
  status transition cannot be separated.
"""


def coerce_movement_type(value: Any, session_id: int | None = None) -> MovementType:
    try:
        return MovementType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in MovementType)
        raise InvalidArgumentError(
            f"movement_type must be one of: {allowed}",
            field="movement_type",
            session_id=session_id,
        )


# =============================================================================
# SHIFTS
# =============================================================================

def find_open_session(operator_id: str, location_id: str) -> Shift | None:
    """The OPEN shift for this operator at this location, if any."""
    return db.session.query(Shift).filter_by(
        operator_id=operator_id,
        location_id=location_id,
        status=ShiftStatus.OPEN.value,
    ).first()


def get_session(session_id: int) -> Shift:
    """Load a shift by id or raise NotFoundError."""
    shift = db.session.query(Shift).filter_by(id=session_id).first()
    if not shift:
        raise NotFoundError(f"Shift {session_id} not found", session_id=session_id)
    return shift


def _raise_not_open(session_id: int, message: str):
    """Explain a conditional UPDATE that matched no OPEN row."""
    db.session.rollback()
    current = db.session.get(Shift, session_id)
    if current is None:
        raise NotFoundError(f"Shift {session_id} not found", session_id=session_id)
    raise InvalidStateError(
        message.format(session_id=session_id, status=current.status),
        field="status",
        session_id=session_id,
    )


def claim_open_session(session_id: int) -> None:
    """
    Hold an OPEN shift for a write in the current transaction.

    Bumps version_id with UPDATE ... WHERE status = 'OPEN' and leaves the
    transaction open. The row (SQLite: the database) stays write-locked until
    the caller commits, so a concurrent close_session either committed first
    and is seen here, or waits for the caller's commit.
    """
    stmt = (
        update(Shift)
        .where(Shift.id == session_id, Shift.status == ShiftStatus.OPEN.value)
        .values(version_id=Shift.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        _raise_not_open(session_id, "Shift {session_id} is {status}; movements require an OPEN shift")


def create_session(
    operator_id: str,
    location_id: str,
    opening_cash_cents: int,
    opening_notes: str | None = None,
) -> Shift:
    """
    Insert a new OPEN shift.

    Check-and-create is one INSERT: the partial unique index rejects a second
    OPEN row for the same pair, which surfaces here as ConflictError even when
    two requests race on different workers.
    """
    def _op() -> Shift:
        shift = Shift(
            operator_id=operator_id,
            location_id=location_id,
            status=ShiftStatus.OPEN.value,
            opening_cash_cents=opening_cash_cents,
            opening_notes=opening_notes,
            opened_at=utcnow(),
        )
        db.session.add(shift)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            # The winning shift may already be closed again; still a conflict
            existing = find_open_session(operator_id, location_id)
            raise ConflictError(
                "You already have an active shift",
                field="operator_id",
                session_id=existing.id if existing else None,
            )
        return shift

    return run_with_retry(_op)


def close_session(
    session_id: int,
    closing_cash_cents: int,
    expected_cash_cents: int,
    variance_cents: int,
    denomination_breakdown: Optional[dict],
    notes: Optional[str],
    final_status: ShiftStatus | str,
    closed_by: Optional[str] = None,
) -> Shift:
    """
    Freeze the count on an OPEN shift.

    Every closing field and the status move in one UPDATE ... WHERE status =
    'OPEN'. Zero affected rows means either the shift does not exist or it
    already left OPEN; a second close never overwrites the first.
    """
    try:
        status = ShiftStatus(final_status)
    except ValueError:
        status = None
    if status not in TERMINAL_STATUSES:
        raise InvalidArgumentError(
            "final_status must be CLOSED or REVIEW",
            field="final_status",
            session_id=session_id,
        )

    def _op() -> Shift:
        stmt = (
            update(Shift)
            .where(Shift.id == session_id, Shift.status == ShiftStatus.OPEN.value)
            .values(
                status=status.value,
                closing_cash_cents=closing_cash_cents,
                expected_cash_cents=expected_cash_cents,
                variance_cents=variance_cents,
                denomination_breakdown=denomination_breakdown,
                closing_notes=notes,
                closed_by=closed_by,
                closed_at=utcnow(),
                version_id=Shift.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            _raise_not_open(session_id, "Shift {session_id} is already {status}")
        db.session.commit()
        return db.session.get(Shift, session_id, populate_existing=True)

    return run_with_retry(_op)


def list_sessions(
    *,
    operator_id: str | None = None,
    location_id: str | None = None,
    status: str | None = None,
    opened_from: datetime | None = None,
    opened_to: datetime | None = None,
    limit: int = 50,
) -> list[Shift]:
    """Shift history, newest first."""
    query = db.session.query(Shift)
    if operator_id:
        query = query.filter(Shift.operator_id == operator_id)
    if location_id:
        query = query.filter(Shift.location_id == location_id)
    if status:
        query = query.filter(Shift.status == status)
    if opened_from:
        query = query.filter(Shift.opened_at >= opened_from)
    if opened_to:
        query = query.filter(Shift.opened_at <= opened_to)
    return query.order_by(desc(Shift.opened_at), desc(Shift.id)).limit(limit).all()


# =============================================================================
# CASH MOVEMENTS
# =============================================================================

def append_movement(
    session_id: int,
    movement_type: MovementType | str,
    amount_cents: int,
    performed_by: str,
    reason: str | None = None,
    category: str | None = None,
    attachment: str | None = None,
    *,
    commit: bool = True,
) -> CashMovement:
    """
    Append a movement row to a shift's ledger.

    Does not look at the shift status; shift_service decides whether the
    shift may still take movements (and holds the row lock while it does).
    """
    mtype = coerce_movement_type(movement_type, session_id)
    amount = parse_cents(amount_cents, "amount_cents", allow_zero=False, session_id=session_id)

    if db.session.get(Shift, session_id) is None:
        raise NotFoundError(f"Shift {session_id} not found", session_id=session_id)

    movement = CashMovement(
        shift_id=session_id,
        movement_type=mtype.value,
        amount_cents=amount,
        reason=reason,
        category=category,
        attachment=attachment,
        performed_by=performed_by,
        created_at=utcnow(),
    )
    db.session.add(movement)

    if commit:
        db.session.commit()
    else:
        db.session.flush()

    return movement


def list_movements(session_id: int) -> list[CashMovement]:
    """All movements for a shift in the order they were recorded."""
    return db.session.query(CashMovement).filter_by(
        shift_id=session_id
    ).order_by(CashMovement.created_at, CashMovement.id).all()
