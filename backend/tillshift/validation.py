from __future__ import annotations

from typing import Any

from .errors import InvalidArgumentError


# Maximum single amount: $9,999,999.99 (999,999,999 cents)
# Guards against overflow and obviously mistyped counts
MAX_AMOUNT_CENTS = 999_999_999

MAX_IDENTIFIER_LENGTH = 64
MAX_REASON_LENGTH = 255


def parse_cents(value: Any, field: str, *, allow_zero: bool = True, session_id: int | None = None) -> int:
    """
    Coerce an incoming money value to integer cents.

    Accepts ints and plain digit strings. Floats, booleans, decimals-as-strings
    and scientific notation are rejected so no binary rounding ever reaches
    the variance computation.
    """
    if value is None:
        raise InvalidArgumentError(f"{field} is required", field=field, session_id=session_id)

    if isinstance(value, bool):
        raise InvalidArgumentError(f"{field} must be an integer number of cents", field=field, session_id=session_id)

    if isinstance(value, int):
        cents = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidArgumentError(f"{field} must be an integer number of cents", field=field, session_id=session_id)
        if "e" in stripped.lower():
            raise InvalidArgumentError(f"{field} must be a plain integer (scientific notation not allowed)", field=field, session_id=session_id)
        if "." in stripped:
            raise InvalidArgumentError(f"{field} must be in cents (no decimals)", field=field, session_id=session_id)
        try:
            cents = int(stripped)
        except ValueError:
            raise InvalidArgumentError(f"{field} must be an integer number of cents", field=field, session_id=session_id)
    elif isinstance(value, float):
        raise InvalidArgumentError(f"{field} must be an integer number of cents, not a decimal", field=field, session_id=session_id)
    else:
        raise InvalidArgumentError(f"{field} must be an integer number of cents", field=field, session_id=session_id)

    if allow_zero and cents < 0:
        raise InvalidArgumentError(f"{field} cannot be negative", field=field, session_id=session_id)
    if not allow_zero and cents <= 0:
        raise InvalidArgumentError(f"{field} must be positive", field=field, session_id=session_id)
    if cents > MAX_AMOUNT_CENTS:
        raise InvalidArgumentError(
            f"{field} cannot exceed {MAX_AMOUNT_CENTS} (${MAX_AMOUNT_CENTS / 100:,.2f})",
            field=field,
            session_id=session_id,
        )
    return cents


def require_identifier(value: Any, field: str) -> str:
    """Operator/location/performer ids arrive already resolved; only shape is checked."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgumentError(f"{field} is required", field=field)
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidArgumentError(f"{field} must be a string", field=field)
    text = str(value).strip()
    if len(text) > MAX_IDENTIFIER_LENGTH:
        raise InvalidArgumentError(f"{field} exceeds max length {MAX_IDENTIFIER_LENGTH}", field=field)
    return text


def optional_text(value: Any, field: str, max_length: int | None = MAX_REASON_LENGTH) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise InvalidArgumentError(f"{field} exceeds max length {max_length}", field=field)
    return text
