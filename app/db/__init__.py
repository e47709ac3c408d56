"""Database module: ORM models and session management."""

from app.db.models import Base, VerificationRecord, AuditedProofSubmission
from app.db.session import engine, SessionLocal, init_database

__all__ = [
    "Base",
    "VerificationRecord",
    "AuditedProofSubmission",
    "init_database",
    "engine",
    "SessionLocal",
]
