"""
Shift reconciliation service

WHY: At close the drawer is counted and compared to what the ledger and the
sales data say should be there. Discrepancies beyond a tolerance are flagged
for manager review instead of being silently accepted.

EXPECTED CASH:
    opening + cash sales + CASH_IN - (CASH_OUT + EXPENSE) - CASH_DROP

Cash drops are deductions from the drawer even though they are not expenses:
the money was banked, not spent.

compute_summary is the only place this formula lives. On-demand summaries
and the authoritative close both go through it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from ..errors import InvalidArgumentError, InvalidStateError
from ..models import CashMovement, MovementType, Shift, ShiftStatus
from ..validation import optional_text, parse_cents
from . import audit_service, ledger_store
from .order_source import PaymentMode, SalesFact, get_order_source


# Sign of each movement type's effect on the drawer
MOVEMENT_DIRECTION = {
    MovementType.CASH_IN: 1,
    MovementType.CASH_OUT: -1,
    MovementType.EXPENSE: -1,
    MovementType.CASH_DROP: -1,
}


@dataclass
class ShiftSummary:
    session_id: int
    operator_id: str
    location_id: str
    status: str
    opening_cash_cents: int
    sales_by_mode: dict[str, int]
    total_sales_cents: int
    order_count: int
    movements_by_type: dict[str, int]
    movement_count: int
    cash_sales_cents: int
    cash_in_cents: int
    cash_out_cents: int
    cash_drop_cents: int
    expected_cash_cents: int
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "operator_id": self.operator_id,
            "location_id": self.location_id,
            "status": self.status,
            "opening_cash_cents": self.opening_cash_cents,
            "sales_by_mode": dict(self.sales_by_mode),
            "total_sales_cents": self.total_sales_cents,
            "order_count": self.order_count,
            "movements_by_type": dict(self.movements_by_type),
            "movement_count": self.movement_count,
            "cash_sales_cents": self.cash_sales_cents,
            "cash_in_cents": self.cash_in_cents,
            "cash_out_cents": self.cash_out_cents,
            "cash_drop_cents": self.cash_drop_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "warnings": list(self.warnings),
        }


def build_summary(shift: Shift, movements: list[CashMovement], sales: list[SalesFact]) -> ShiftSummary:
    """Pure aggregation over whatever rows exist at read time."""
    sales_by_mode = {mode.value: 0 for mode in PaymentMode}
    for fact in sales:
        sales_by_mode[fact.payment_mode.value] += fact.amount_cents

    movements_by_type = {mtype.value: 0 for mtype in MovementType}
    drawer_delta = 0
    for movement in movements:
        mtype = MovementType(movement.movement_type)
        movements_by_type[mtype.value] += movement.amount_cents
        drawer_delta += MOVEMENT_DIRECTION[mtype] * movement.amount_cents

    cash_sales = sales_by_mode[PaymentMode.CASH.value]
    cash_in = movements_by_type[MovementType.CASH_IN.value]
    cash_out = movements_by_type[MovementType.CASH_OUT.value] + movements_by_type[MovementType.EXPENSE.value]
    cash_drop = movements_by_type[MovementType.CASH_DROP.value]

    expected = shift.opening_cash_cents + cash_sales + drawer_delta

    warnings = []
    if expected < 0:
        warnings.append("Expected cash is negative: more cash left the drawer than entered it")

    return ShiftSummary(
        session_id=shift.id,
        operator_id=shift.operator_id,
        location_id=shift.location_id,
        status=shift.status,
        opening_cash_cents=shift.opening_cash_cents,
        sales_by_mode=sales_by_mode,
        total_sales_cents=sum(sales_by_mode.values()),
        order_count=len(sales),
        movements_by_type=movements_by_type,
        movement_count=len(movements),
        cash_sales_cents=cash_sales,
        cash_in_cents=cash_in,
        cash_out_cents=cash_out,
        cash_drop_cents=cash_drop,
        expected_cash_cents=expected,
        warnings=warnings,
    )


def compute_summary(session_id: int) -> ShiftSummary:
    """
    Current cash position of a shift.

    Read-only and safe to call concurrently; two calls may differ if a
    movement or sale lands in between. Only the summary taken inside
    close_shift is persisted.

    Raises:
        NotFoundError: Unknown shift
        DependencyError: Order service unreachable or returned bad data
    """
    shift = ledger_store.get_session(session_id)
    movements = ledger_store.list_movements(session_id)
    sales = get_order_source().list_completed_sales(session_id)
    return build_summary(shift, movements, sales)


def get_variance_threshold_cents() -> int:
    threshold = current_app.config.get("VARIANCE_THRESHOLD_CENTS", 0)
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        raise ValueError(f"VARIANCE_THRESHOLD_CENTS must be a non-negative integer, got {threshold!r}")
    return threshold


def decide_final_status(variance_cents: int, threshold_cents: int) -> ShiftStatus:
    """REVIEW when the count is off by more than the tolerance, either way."""
    if abs(variance_cents) > threshold_cents:
        return ShiftStatus.REVIEW
    return ShiftStatus.CLOSED


def close_shift(
    session_id: int,
    closing_cash_cents: int,
    denomination_breakdown: Optional[dict] = None,
    notes: str | None = None,
    *,
    closed_by: str | None = None,
    variance_threshold_cents: int | None = None,
) -> tuple[Shift, ShiftSummary]:
    """
    Count the drawer, compute variance, and freeze the shift.

    IMMUTABLE: The close happens once. A second attempt raises
    InvalidStateError and leaves the first result untouched.

    Args:
        session_id: Shift to close
        closing_cash_cents: Physically counted cash (>= 0)
        denomination_breakdown: How the count was composed (stored as-is)
        notes: Optional closing notes
        closed_by: Who performed the count (defaults to the shift owner)
        variance_threshold_cents: Override for VARIANCE_THRESHOLD_CENTS

    Returns:
        (closed shift, the summary the close was computed from)

    Raises:
        InvalidArgumentError: Negative/non-integer count, bad breakdown
        NotFoundError: Unknown shift
        InvalidStateError: Shift already CLOSED or REVIEW
        DependencyError: Sales data unavailable; nothing is written
    """
    closing_cash_cents = parse_cents(closing_cash_cents, "closing_cash_cents", session_id=session_id)
    if denomination_breakdown is not None and not isinstance(denomination_breakdown, dict):
        raise InvalidArgumentError(
            "denomination_breakdown must be an object",
            field="denomination_breakdown",
            session_id=session_id,
        )
    notes = optional_text(notes, "notes", max_length=None)

    if variance_threshold_cents is None:
        threshold = get_variance_threshold_cents()
    else:
        threshold = parse_cents(variance_threshold_cents, "variance_threshold_cents", session_id=session_id)

    shift = ledger_store.get_session(session_id)
    if not shift.is_open:
        raise InvalidStateError(
            f"Shift {session_id} is already {shift.status}",
            field="status",
            session_id=session_id,
        )

    before = {
        "status": shift.status,
        "closing_cash_cents": shift.closing_cash_cents,
        "expected_cash_cents": shift.expected_cash_cents,
        "variance_cents": shift.variance_cents,
    }

    summary = compute_summary(session_id)
    variance = closing_cash_cents - summary.expected_cash_cents
    final_status = decide_final_status(variance, threshold)

    closed = ledger_store.close_session(
        session_id=session_id,
        closing_cash_cents=closing_cash_cents,
        expected_cash_cents=summary.expected_cash_cents,
        variance_cents=variance,
        denomination_breakdown=denomination_breakdown,
        notes=notes,
        final_status=final_status,
        closed_by=closed_by or summary.operator_id,
    )

    after = {
        "status": closed.status,
        "closing_cash_cents": closed.closing_cash_cents,
        "expected_cash_cents": closed.expected_cash_cents,
        "variance_cents": closed.variance_cents,
    }

    if final_status == ShiftStatus.REVIEW:
        current_app.logger.warning(
            "Shift %s closed for REVIEW: variance %s exceeds threshold %s",
            session_id, variance, threshold,
        )

    audit_service.emit_fact(
        action="UPDATE",
        entity_type="Shift",
        entity_id=session_id,
        severity=audit_service.SEVERITY_HIGH if final_status == ShiftStatus.REVIEW else audit_service.SEVERITY_LOW,
        actor_id=closed.closed_by,
        location_id=closed.location_id,
        reason=f"Shift closed. Status: {closed.status}. Variance: {variance / 100:.2f}",
        before=before,
        after={
            "session_id": session_id,
            "operator_id": closed.operator_id,
            "final_status": closed.status,
            **after,
        },
    )

    summary.status = closed.status
    return closed, summary
