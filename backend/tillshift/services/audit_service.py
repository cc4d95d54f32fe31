# Overview: Fire-and-forget structured facts for the external audit subsystem.

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

import httpx
from flask import Flask, current_app

from tillshift.time_utils import to_utc_z, utcnow

"""
Audit emission rules

- The audit subsystem owns storage; this module only hands facts over.
- Emission never fails the business operation: sink errors are logged on
  the app logger and dropped.
- Facts are emitted after the business write has committed.
"""

EXTENSION_KEY = "tillshift.audit_sink"

SEVERITY_LOW = "LOW"
SEVERITY_MEDIUM = "MEDIUM"
SEVERITY_HIGH = "HIGH"
SEVERITY_CRITICAL = "CRITICAL"

_SEVERITY_LEVELS = {
    SEVERITY_LOW: logging.INFO,
    SEVERITY_MEDIUM: logging.INFO,
    SEVERITY_HIGH: logging.WARNING,
    SEVERITY_CRITICAL: logging.ERROR,
}

audit_logger = logging.getLogger("tillshift.audit")


@dataclass
class AuditFact:
    action: str  # CREATE, UPDATE
    entity_type: str  # Shift, CashMovement
    entity_id: int
    severity: str = SEVERITY_LOW
    actor_id: Optional[str] = None
    location_id: Optional[str] = None
    reason: Optional[str] = None
    before: Optional[dict] = None
    after: Optional[dict] = None
    changed_fields: list[str] = field(default_factory=list)
    module: str = "POS"
    occurred_at: str = field(default_factory=lambda: to_utc_z(utcnow()))

    def to_dict(self) -> dict:
        return asdict(self)


def diff_fields(before: Optional[dict], after: Optional[dict]) -> list[str]:
    """Keys whose values differ between the before and after payloads."""
    if not before or not after:
        return []
    keys = set(before) | set(after)
    return sorted(k for k in keys if before.get(k) != after.get(k))


class AuditSink(ABC):
    @abstractmethod
    def emit(self, fact: AuditFact) -> None:
        """Hand one fact to the audit subsystem."""


class LoggingAuditSink(AuditSink):
    """Writes each fact as one JSON line on the "tillshift.audit" logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or audit_logger

    def emit(self, fact: AuditFact) -> None:
        level = _SEVERITY_LEVELS.get(fact.severity, logging.INFO)
        self.logger.log(level, json.dumps(fact.to_dict(), default=str, sort_keys=True))


class WebhookAuditSink(AuditSink):
    """POSTs each fact to the audit service."""

    def __init__(self, url: str, timeout: float = 2.0, client: httpx.Client | None = None):
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)

    def emit(self, fact: AuditFact) -> None:
        response = self.client.post(self.url, json=fact.to_dict())
        response.raise_for_status()


class FanOutAuditSink(AuditSink):
    """Sends to every sink; one failing sink does not stop the others."""

    def __init__(self, sinks: list[AuditSink]):
        self.sinks = sinks

    def emit(self, fact: AuditFact) -> None:
        for sink in self.sinks:
            _safe_emit(sink, fact)


def init_audit_sink(app: Flask) -> AuditSink:
    sink: AuditSink = LoggingAuditSink()
    url = app.config.get("AUDIT_WEBHOOK_URL")
    if url:
        sink = FanOutAuditSink([sink, WebhookAuditSink(url, timeout=app.config.get("AUDIT_WEBHOOK_TIMEOUT", 2.0))])
    app.extensions[EXTENSION_KEY] = sink
    return sink


def set_audit_sink(app: Flask, sink: AuditSink) -> None:
    app.extensions[EXTENSION_KEY] = sink


def _safe_emit(sink: AuditSink, fact: AuditFact) -> None:
    try:
        sink.emit(fact)
    except Exception:
        current_app.logger.exception(
            "Audit emission failed for %s %s %s", fact.action, fact.entity_type, fact.entity_id
        )


def emit_fact(
    *,
    action: str,
    entity_type: str,
    entity_id: int,
    severity: str = SEVERITY_LOW,
    actor_id: str | None = None,
    location_id: str | None = None,
    reason: str | None = None,
    before: dict | None = None,
    after: dict | None = None,
) -> AuditFact:
    """Build a fact and hand it to the configured sink without raising."""
    fact = AuditFact(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        severity=severity,
        actor_id=actor_id,
        location_id=location_id,
        reason=reason,
        before=before,
        after=after,
        changed_fields=diff_fields(before, after),
    )
    sink = current_app.extensions.get(EXTENSION_KEY)
    if sink is None:
        current_app.logger.warning("No audit sink configured; dropping %s %s", action, entity_type)
        return fact
    _safe_emit(sink, fact)
    return fact
