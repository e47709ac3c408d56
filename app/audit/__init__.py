"""Audit logging module."""

from app.audit.logger import AuditLogger, AuditEvent, get_audit_logger, get_request_id

__all__ = [
    "AuditLogger",
    "AuditEvent",
    "get_audit_logger",
    "get_request_id",
]
