"""Audit logging for verification outcomes.

Every verification decision and every persistence attempt (including the
best-effort ones whose failure does not change the response) is recorded
here, so storage inconsistencies stay observable.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import Request

log = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured audit event."""

    action: str  # e.g., "verification.accepted", "persistence.binding"
    provider: str | None = None  # "self" | "zkpass"
    resource: str | None = None  # subject identifier
    status: str = "success"  # "success", "rejected", "skipped", "error"
    details: dict[str, Any] | None = None
    request_id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditLogger:
    """Audit logger for verification operations.

    Logs events as structured JSON via Python's logging module and keeps an
    in-memory ring buffer for the admin endpoint.
    """

    MAX_BUFFER_SIZE = 1000

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._buffer: deque[dict] = deque(maxlen=self.MAX_BUFFER_SIZE)

    def log(
        self,
        event: AuditEvent | None = None,
        *,
        action: str | None = None,
        provider: str | None = None,
        resource: str | None = None,
        status: str = "success",
        details: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        """Write an audit event.

        Accepts either an AuditEvent object or keyword arguments.
        """
        if not self.enabled:
            return

        if event is None:
            event = AuditEvent(
                action=action or "unknown",
                provider=provider,
                resource=resource,
                status=status,
                details=details,
                request_id=request_id,
            )

        self._buffer.append(asdict(event))

        extra: dict[str, Any] = {"type": "audit", "action": event.action, "status": event.status}
        if event.provider:
            extra["provider"] = event.provider
        if event.resource:
            extra["identifier"] = event.resource
        if event.request_id:
            extra["request_id"] = event.request_id
        if event.details:
            extra["details"] = event.details

        if event.status in ("rejected", "error"):
            log.warning(f"audit: {event.action} {event.status}", extra=extra)
        else:
            log.info(f"audit: {event.action} {event.status}", extra=extra)

    def log_verification(
        self,
        provider: str,
        identifier: str | None,
        status: str = "success",
        details: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        """Record the authoritative decision for one proof."""
        self.log(
            action=f"verification.{provider}",
            provider=provider,
            resource=identifier,
            status=status,
            details=details,
            request_id=request_id,
        )

    def log_persistence(
        self,
        step: str,
        provider: str,
        identifier: str | None,
        status: str = "success",
        details: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        """Record one storage step (saved, skipped or failed)."""
        self.log(
            action=f"persistence.{step}",
            provider=provider,
            resource=identifier,
            status=status,
            details=details,
            request_id=request_id,
        )

    def get_recent_events(
        self,
        limit: int = 100,
        action_filter: str | None = None,
        status_filter: str | None = None,
    ) -> list[dict]:
        """Get recent audit events, newest first.

        Args:
            limit: Max events to return
            action_filter: Filter by action prefix (e.g., "persistence.")
            status_filter: Filter by status (e.g., "error")
        """
        events = list(self._buffer)
        events.reverse()

        if action_filter:
            events = [e for e in events if e["action"].startswith(action_filter)]
        if status_filter:
            events = [e for e in events if e["status"] == status_filter]

        return events[:limit]

    def get_buffer_stats(self) -> dict:
        return {
            "buffer_size": len(self._buffer),
            "max_buffer_size": self.MAX_BUFFER_SIZE,
        }


def get_request_id(request: Request | None) -> str | None:
    """Extract request ID from request headers if available."""
    if request is None:
        return None

    for header in ("X-Request-ID", "X-Correlation-ID", "Request-Id"):
        if header in request.headers:
            return request.headers[header]

    return None


# Global logger instance
_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        from app.core.config import AUDIT_ENABLED

        _audit_logger = AuditLogger(enabled=AUDIT_ENABLED)

    return _audit_logger


def reset_audit_logger() -> None:
    """Reset the global logger (for testing)."""
    global _audit_logger
    _audit_logger = None
