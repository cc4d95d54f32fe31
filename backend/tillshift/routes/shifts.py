# Overview: Flask API routes for shift operations; parses input and returns JSON responses.

# backend/tillshift/routes/shifts.py
"""
Shift API Routes

WHY: Thin HTTP surface over the shift services for the POS UI.

DESIGN:
- Shift lifecycle: open -> close (CLOSED or REVIEW, never reopened)
- Cash movements: append-only while OPEN
- Summary: on-demand expected cash; the close computes its own

IDENTITY:
- operator_id / location_id come from the body, falling back to the
  X-Operator-Id / X-Location-Id headers set by the upstream gateway
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import with_operator_context, require_json_body
from ..errors import InvalidArgumentError, ShiftServiceError
from ..services import reconciliation_service, shift_service
from ..time_utils import parse_iso_datetime


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


def _error_response(exc: ShiftServiceError):
    return jsonify(exc.to_dict()), exc.status_code


def _identity(data: dict, field: str):
    value = data.get(field) if data else None
    if value is None:
        value = getattr(g, field, None)
    return value


def _date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise InvalidArgumentError(f"Invalid {name} format", field=name)


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

@shifts_bp.post("/open")
@with_operator_context
@require_json_body
def open_shift_route():
    """
    Open a new shift.

    Request body:
    {
        "operator_id": "u-17",         (optional if X-Operator-Id is set)
        "location_id": "store-1",      (optional if X-Location-Id is set)
        "opening_cash_cents": 100000,  // Starting cash ($1,000.00)
        "notes": "Float from safe"     (optional)
    }

    Returns 409 if the operator already has an open shift at this location.
    """
    data = g.json_body
    try:
        shift = shift_service.open_shift(
            operator_id=_identity(data, "operator_id"),
            location_id=_identity(data, "location_id"),
            opening_cash_cents=data.get("opening_cash_cents"),
            notes=data.get("notes"),
        )
        return jsonify({"shift": shift.to_dict()}), 201

    except ShiftServiceError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/current")
@with_operator_context
def current_shift_route():
    """
    The caller's open shift, or null.

    Query params (fall back to identity headers):
    - operator_id
    - location_id
    """
    try:
        shift = shift_service.get_current_shift(
            operator_id=request.args.get("operator_id") or g.operator_id,
            location_id=request.args.get("location_id") or g.location_id,
        )
        return jsonify({"shift": shift.to_dict() if shift else None}), 200

    except ShiftServiceError as e:
        return _error_response(e)


@shifts_bp.post("/<int:session_id>/close")
@with_operator_context
@require_json_body
def close_shift_route(session_id: int):
    """
    Close a shift with the physical count.

    Request body:
    {
        "closing_cash_cents": 125000,                   // Actual cash counted
        "denomination_breakdown": {"50000": 2, ...},    (optional)
        "notes": "Drawer balanced",                     (optional)
        "closed_by": "u-17"                             (optional, defaults to header/owner)
    }

    Status is CLOSED when |variance| <= VARIANCE_THRESHOLD_CENTS, else REVIEW.
    Returns 409 if already closed, 503 if sales data is unavailable.
    """
    data = g.json_body
    try:
        if "closing_cash_cents" not in data:
            raise InvalidArgumentError(
                "closing_cash_cents required",
                field="closing_cash_cents",
                session_id=session_id,
            )

        shift, summary = reconciliation_service.close_shift(
            session_id=session_id,
            closing_cash_cents=data.get("closing_cash_cents"),
            denomination_breakdown=data.get("denomination_breakdown"),
            notes=data.get("notes"),
            closed_by=data.get("closed_by") or g.operator_id,
        )
        return jsonify({"shift": shift.to_dict(), "summary": summary.to_dict()}), 200

    except ShiftServiceError as e:
        if e.status_code >= 500:
            current_app.logger.warning("Shift %s close deferred: %s", session_id, e.message)
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/<int:session_id>")
def get_shift_route(session_id: int):
    """Shift details with its movement ledger."""
    try:
        shift = shift_service.get_shift(session_id)
        movements = shift_service.get_shift_movements(session_id)
        return jsonify({
            "shift": shift.to_dict(),
            "movements": [m.to_dict() for m in movements],
        }), 200

    except ShiftServiceError as e:
        return _error_response(e)


@shifts_bp.get("/")
@shifts_bp.get("")
def list_shifts_route():
    """
    Shift history, newest first.

    Query params:
    - operator_id, location_id: Filters
    - status: OPEN, CLOSED or REVIEW
    - start_date / end_date: opened_at window (ISO 8601)
    - limit: Max rows (default: 50)
    """
    try:
        shifts = shift_service.list_shifts(
            operator_id=request.args.get("operator_id"),
            location_id=request.args.get("location_id"),
            status=request.args.get("status"),
            opened_from=_date_arg("start_date"),
            opened_to=_date_arg("end_date"),
            limit=request.args.get("limit", 50, type=int),
        )
        return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200

    except ShiftServiceError as e:
        return _error_response(e)


@shifts_bp.get("/review-queue")
def review_queue_route():
    """Shifts closed as REVIEW, for manager follow-up."""
    shifts = shift_service.get_review_queue(location_id=request.args.get("location_id"))
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


# =============================================================================
# CASH MOVEMENTS
# =============================================================================

@shifts_bp.post("/<int:session_id>/movements")
@with_operator_context
@require_json_body
def add_movement_route(session_id: int):
    """
    Record a manual cash movement.

    Request body:
    {
        "movement_type": "CASH_DROP",   // CASH_IN, CASH_OUT, CASH_DROP, EXPENSE
        "amount_cents": 10000,          // Always positive
        "performed_by": "u-17",         (optional if X-Operator-Id is set)
        "reason": "Safe drop",          (optional)
        "category": "SAFE",             (optional)
        "attachment": "receipts/981.jpg" (optional)
    }

    Returns 409 if the shift is no longer open.
    """
    data = g.json_body
    try:
        movement = shift_service.add_cash_movement(
            session_id=session_id,
            movement_type=data.get("movement_type"),
            amount_cents=data.get("amount_cents"),
            performed_by=data.get("performed_by") or g.operator_id,
            reason=data.get("reason"),
            category=data.get("category"),
            attachment=data.get("attachment"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except ShiftServiceError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record cash movement")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/<int:session_id>/movements")
def list_movements_route(session_id: int):
    try:
        movements = shift_service.get_shift_movements(session_id)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200

    except ShiftServiceError as e:
        return _error_response(e)


# =============================================================================
# RECONCILIATION
# =============================================================================

@shifts_bp.get("/<int:session_id>/summary")
def shift_summary_route(session_id: int):
    """
    Current expected cash for a shift.

    Not authoritative: a movement or sale recorded after this call is picked
    up by the next one. Returns 503 if sales data is unavailable.
    """
    try:
        summary = reconciliation_service.compute_summary(session_id)
        return jsonify({"summary": summary.to_dict()}), 200

    except ShiftServiceError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute shift summary")
        return jsonify({"error": "Internal server error"}), 500
