"""SQLAlchemy ORM models for the attestation gateway.

Two tables, named as in the deployed schema:
- zkpass: subject identifier bound to a wallet address and a provider tag
- selfcheck: raw proof submissions kept as an audit trail

Neither table declares a natural unique key. Bindings are append-only unless
the gateway runs in upsert mode.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class VerificationRecord(Base):
    """A verified identity bound to a wallet address."""

    __tablename__ = "zkpass"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(128), nullable=True)  # null for zkpass without wallet
    identifier = Column(String(255), nullable=False)
    provider = Column(String(16), nullable=False)  # "self" | "zkpass"
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_zkpass_identifier_provider", "identifier", "provider"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "address": self.address,
            "identifier": self.identifier,
            "provider": self.provider,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<VerificationRecord(id={self.id!r}, identifier={self.identifier!r}, "
            f"provider={self.provider!r})>"
        )


class AuditedProofSubmission(Base):
    """Raw proof accepted by the passport-attestation verifier."""

    __tablename__ = "selfcheck"

    id = Column(Integer, primary_key=True, autoincrement=True)
    attestation_id = Column("attestationid", String(255), nullable=False, index=True)
    proof = Column(Text, nullable=False)  # JSON-serialized proof
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attestation_id": self.attestation_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<AuditedProofSubmission(id={self.id!r}, attestation_id={self.attestation_id!r})>"
