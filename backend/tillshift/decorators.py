# Overview: Request decorators for shift API routes.

from functools import wraps
from flask import request, jsonify, g

OPERATOR_HEADER = "X-Operator-Id"
LOCATION_HEADER = "X-Location-Id"


def with_operator_context(f):
    """
    Attach the caller's resolved identity to Flask g.

    Authentication happens upstream; the gateway forwards the operator and
    location it resolved as headers. Sets:
    - g.operator_id: header value or None
    - g.location_id: header value or None
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.operator_id = (request.headers.get(OPERATOR_HEADER) or "").strip() or None
        g.location_id = (request.headers.get(LOCATION_HEADER) or "").strip() or None
        return f(*args, **kwargs)

    return decorated_function


def require_json_body(f):
    """Reject requests whose body is not a JSON object."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({
                "error": "Request body must be a JSON object",
                "kind": "INVALID_ARGUMENT",
                "field": None,
                "session_id": kwargs.get("session_id"),
                "retryable": True,
            }), 400
        g.json_body = data
        return f(*args, **kwargs)

    return decorated_function
