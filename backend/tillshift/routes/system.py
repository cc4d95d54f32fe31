# backend/tillshift/routes/system.py
"""
System health and version endpoints.

Health covers the shift ledger database and reports which collaborator
adapters are wired in, for deployment debugging.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Shift, ShiftStatus
from ..services.audit_service import EXTENSION_KEY as AUDIT_KEY
from ..services.order_source import EXTENSION_KEY as ORDER_KEY
from tillshift.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and the shift tables.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        open_count = db.session.query(Shift).filter_by(status=ShiftStatus.OPEN.value).count()
        review_count = db.session.query(Shift).filter_by(status=ShiftStatus.REVIEW.value).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "open_shifts": open_count,
                "review_shifts": review_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_collaborators() -> dict:
    """Which order source and audit sink are configured. Never contacts them."""
    order_source = current_app.extensions.get(ORDER_KEY)
    audit_sink = current_app.extensions.get(AUDIT_KEY)
    status = "healthy" if order_source is not None and audit_sink is not None else "degraded"
    return {
        "status": status,
        "details": {
            "order_source": type(order_source).__name__ if order_source else None,
            "audit_sink": type(audit_sink).__name__ if audit_sink else None,
        }
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: Healthy or degraded (still operational)
    - 503: Database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    collaborators = check_collaborators()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    elif collaborators["status"] == "degraded":
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "collaborators": collaborators,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
        "variance_threshold_cents": current_app.config.get("VARIANCE_THRESHOLD_CENTS"),
    }
