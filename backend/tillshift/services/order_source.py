# Overview: Adapters to the order subsystem, the read-only source of completed sales per shift.

from __future__ import annotations

import enum
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable

import httpx
from flask import Flask, current_app

from ..errors import DependencyError

EXTENSION_KEY = "tillshift.order_source"


class PaymentMode(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    DIGITAL = "DIGITAL"
    OTHER = "OTHER"


# Older order payloads name digital wallets after the rail
PAYMENT_MODE_ALIASES = {
    "UPI": PaymentMode.DIGITAL,
    "WALLET": PaymentMode.DIGITAL,
}


@dataclass(frozen=True)
class SalesFact:
    """One completed, already-priced order tagged to a shift."""
    order_id: str
    session_id: int
    payment_mode: PaymentMode
    amount_cents: int


def parse_payment_mode(value: Any) -> PaymentMode:
    if not isinstance(value, str):
        raise ValueError(f"payment_mode must be a string, got {value!r}")
    key = value.strip().upper()
    if key in PAYMENT_MODE_ALIASES:
        return PAYMENT_MODE_ALIASES[key]
    return PaymentMode(key)


def parse_sales_facts(session_id: int, rows: Iterable[Any]) -> list[SalesFact]:
    """
    Validate raw order rows into SalesFacts.

    Any malformed row fails the whole batch: a partial sales figure must
    never feed an expected-cash computation.
    """
    facts = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            raise DependencyError(
                f"Order service returned a non-object order at position {index}",
                session_id=session_id,
            )
        try:
            mode = parse_payment_mode(row.get("payment_mode"))
        except ValueError:
            raise DependencyError(
                f"Order service returned unknown payment_mode {row.get('payment_mode')!r}",
                field="payment_mode",
                session_id=session_id,
            )

        amount = row.get("amount_cents")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise DependencyError(
                f"Order service returned invalid amount_cents {amount!r}",
                field="amount_cents",
                session_id=session_id,
            )

        # Order payloads may carry the shift id as a JSON string
        tagged = row.get("shift_id", session_id)
        if str(tagged).strip() != str(session_id):
            raise DependencyError(
                f"Order service returned an order tagged to shift {tagged!r}",
                field="shift_id",
                session_id=session_id,
            )

        facts.append(SalesFact(
            order_id=str(row.get("id", index)),
            session_id=session_id,
            payment_mode=mode,
            amount_cents=amount,
        ))
    return facts


class OrderSource(ABC):
    """Contract for the order subsystem: completed orders for one shift, read-only."""

    @abstractmethod
    def list_completed_sales(self, session_id: int) -> list[SalesFact]:
        """
        Return every completed order tagged to the shift.

        Raises DependencyError when the data cannot be fetched in full.
        """


class HttpOrderSource(OrderSource):
    """
    Reads completed orders from the order service over HTTP.

    GET {base_url}/api/shifts/{id}/completed-orders
    -> {"orders": [{"id": ..., "payment_mode": "CASH", "amount_cents": 1250}, ...]}
    """

    def __init__(self, base_url: str, timeout: float = 5.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout)

    def list_completed_sales(self, session_id: int) -> list[SalesFact]:
        url = f"{self.base_url}/api/shifts/{session_id}/completed-orders"
        try:
            response = self.client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise DependencyError(
                f"Order service returned HTTP {exc.response.status_code}",
                session_id=session_id,
            ) from exc
        except httpx.HTTPError as exc:
            raise DependencyError(
                f"Order service unreachable: {exc.__class__.__name__}",
                session_id=session_id,
            ) from exc
        except ValueError as exc:
            raise DependencyError("Order service returned invalid JSON", session_id=session_id) from exc

        orders = payload.get("orders") if isinstance(payload, dict) else None
        if not isinstance(orders, list):
            raise DependencyError("Order service response missing 'orders' list", session_id=session_id)

        return parse_sales_facts(session_id, orders)

    def close(self):
        self.client.close()


class InMemoryOrderSource(OrderSource):
    """
    Completed sales recorded in-process. Used for local development and tests
    when no ORDER_SERVICE_URL is configured.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._orders: dict[int, list[dict]] = {}
        self.unavailable = False

    def record_sale(self, session_id: int, payment_mode: str, amount_cents: int, order_id: str | None = None) -> None:
        with self._lock:
            rows = self._orders.setdefault(session_id, [])
            rows.append({
                "id": order_id or f"ORD-{session_id}-{len(rows) + 1}",
                "payment_mode": payment_mode,
                "amount_cents": amount_cents,
            })

    def clear(self) -> None:
        with self._lock:
            self._orders.clear()
            self.unavailable = False

    def list_completed_sales(self, session_id: int) -> list[SalesFact]:
        if self.unavailable:
            raise DependencyError("Order service unreachable", session_id=session_id)
        with self._lock:
            rows = list(self._orders.get(session_id, []))
        return parse_sales_facts(session_id, rows)


def init_order_source(app: Flask) -> OrderSource:
    """Pick the order source from config and attach it to the app."""
    url = app.config.get("ORDER_SERVICE_URL")
    if url:
        source = HttpOrderSource(url, timeout=app.config.get("ORDER_SERVICE_TIMEOUT", 5.0))
        app.logger.info("Order source: HTTP %s", url)
    else:
        source = InMemoryOrderSource()
        app.logger.info("Order source: in-memory (ORDER_SERVICE_URL not set)")
    app.extensions[EXTENSION_KEY] = source
    return source


def set_order_source(app: Flask, source: OrderSource) -> None:
    app.extensions[EXTENSION_KEY] = source


def get_order_source() -> OrderSource:
    return current_app.extensions[EXTENSION_KEY]
