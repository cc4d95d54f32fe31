from __future__ import annotations

import enum

from sqlalchemy import event

from ..extensions import db
from tillshift.time_utils import to_utc_z


class ShiftStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    REVIEW = "REVIEW"


TERMINAL_STATUSES = (ShiftStatus.CLOSED, ShiftStatus.REVIEW)


class MovementType(str, enum.Enum):
    """
    Manual cash events. Direction is not encoded in the amount (always > 0);
    the reconciliation summary decides whether a type adds to or removes
    from the drawer.
    """
    CASH_IN = "CASH_IN"
    CASH_OUT = "CASH_OUT"
    CASH_DROP = "CASH_DROP"
    EXPENSE = "EXPENSE"


class Shift(db.Model):
    """
    One cashier's drawer session at one location.

    WHY: Cash accountability. The drawer is opened with a declared balance,
    collects movements and sales while OPEN, and is counted exactly once at
    close, where variance against the expected balance is frozen.

    LIFECYCLE:
    - OPEN: Drawer active, movements may be appended
    - CLOSED: Counted, variance within tolerance
    - REVIEW: Counted, variance beyond tolerance (flagged for a manager)

    INVARIANTS:
    - At most one OPEN shift per (operator_id, location_id); the partial
      unique index below is the enforcement point, not application code.
    - closing/expected/variance are written together, once, by the
      conditional close in ledger_store.close_session.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_open_operator_location",
            "operator_id",
            "location_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        db.Index("ix_shifts_location_status_opened", "location_id", "status", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Resolved by the identity subsystem; opaque here
    operator_id = db.Column(db.String(64), nullable=False, index=True)
    location_id = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=ShiftStatus.OPEN.value, index=True)

    # Cash tracking (all amounts in cents)
    opening_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_cash_cents = db.Column(db.Integer, nullable=True)
    expected_cash_cents = db.Column(db.Integer, nullable=True)  # opening + cash sales + in - out - drops
    variance_cents = db.Column(db.Integer, nullable=True)  # closing - expected

    # How the physical count was composed, e.g. {"500": 10, "100": 3}. Audit only.
    denomination_breakdown = db.Column(db.JSON, nullable=True)

    opening_notes = db.Column(db.Text, nullable=True)
    closing_notes = db.Column(db.Text, nullable=True)
    closed_by = db.Column(db.String(64), nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == ShiftStatus.OPEN.value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operator_id": self.operator_id,
            "location_id": self.location_id,
            "status": self.status,
            "opening_cash_cents": self.opening_cash_cents,
            "closing_cash_cents": self.closing_cash_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "variance_cents": self.variance_cents,
            "denomination_breakdown": self.denomination_breakdown,
            "opening_notes": self.opening_notes,
            "closing_notes": self.closing_notes,
            "closed_by": self.closed_by,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "version_id": self.version_id,
        }


class CashMovement(db.Model):
    """
    Append-only ledger row for a manual drawer event (in, out, drop, expense).

    IMMUTABLE: Never updated or deleted once flushed. Corrections are new
    offsetting rows. Enforced by the mapper listeners below.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_shift_created", "shift_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)  # always > 0

    reason = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(64), nullable=True)
    attachment = db.Column(db.String(512), nullable=True)  # receipt image/document reference

    performed_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    shift = db.relationship("Shift", backref=db.backref("movements", lazy=True, order_by="CashMovement.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "movement_type": self.movement_type,
            "amount_cents": self.amount_cents,
            "reason": self.reason,
            "category": self.category,
            "attachment": self.attachment,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }


class ImmutableLedgerError(RuntimeError):
    """Raised when code tries to rewrite a cash movement."""


@event.listens_for(CashMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise ImmutableLedgerError(f"Cash movement {target.id} is immutable; append an offsetting entry instead")


@event.listens_for(CashMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise ImmutableLedgerError(f"Cash movement {target.id} is immutable; append an offsetting entry instead")
