"""Verification store: persistence gateway over the zkpass/selfcheck tables.

Writes are plain inserts. Calling save_verification twice with the same
arguments produces two rows; callers must not retry blindly. The optional
upsert mode keeps one row per (identifier, provider) instead.
"""

import json
import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.attest.exceptions import StorageError
from app.db.models import AuditedProofSubmission, VerificationRecord

log = logging.getLogger(__name__)

PROVIDER_SELF = "self"
PROVIDER_ZKPASS = "zkpass"
PROVIDERS = frozenset({PROVIDER_SELF, PROVIDER_ZKPASS})


class VerificationStore:
    """Store for verification bindings and audited proof submissions."""

    def __init__(self, db: Session):
        """Initialize store with database session.

        Args:
            db: SQLAlchemy session
        """
        self.db = db

    def save_verification(
        self,
        identifier: str,
        address: Optional[str],
        provider: str,
        *,
        upsert: bool = False,
    ) -> VerificationRecord:
        """Persist a subject-to-wallet binding.

        Args:
            identifier: Subject identifier in the provider's namespace
            address: Wallet address (may be None for zkpass bindings)
            provider: "self" or "zkpass"
            upsert: Replace the address of an existing (identifier, provider)
                row instead of inserting a new one

        Returns:
            The stored VerificationRecord

        Raises:
            ValueError: If provider is unknown
            StorageError: On any database failure
        """
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown provider: {provider!r}")

        try:
            record = None
            if upsert:
                record = self.db.execute(
                    select(VerificationRecord)
                    .where(
                        VerificationRecord.identifier == identifier,
                        VerificationRecord.provider == provider,
                    )
                    .order_by(VerificationRecord.id)
                    .limit(1)
                ).scalar_one_or_none()
            if record is None:
                record = VerificationRecord(
                    identifier=identifier, address=address, provider=provider
                )
                self.db.add(record)
            else:
                record.address = address
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error(f"Error saving verification for {identifier}: {e}")
            raise StorageError(f"Failed to save verification: {e}") from e

        log.info(
            f"Saved verification record id={record.id}",
            extra={"provider": provider, "identifier": identifier},
        )
        return record

    def save_audited_submission(self, identifier: str, proof: Any) -> AuditedProofSubmission:
        """Persist a raw proof that the verifier accepted.

        Args:
            identifier: Subject identifier returned by the verifier
            proof: Proof payload as submitted (serialized to JSON text)

        Raises:
            StorageError: On serialization or database failure
        """
        try:
            payload = proof if isinstance(proof, str) else json.dumps(proof, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Proof is not JSON-serializable: {e}") from e

        submission = AuditedProofSubmission(attestation_id=identifier, proof=payload)
        try:
            self.db.add(submission)
            self.db.commit()
            self.db.refresh(submission)
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error(f"Error saving audited submission for {identifier}: {e}")
            raise StorageError(f"Failed to save audited submission: {e}") from e

        log.info(f"Saved audited submission id={submission.id}", extra={"identifier": identifier})
        return submission

    def audited_submission_exists(self, identifier: str) -> bool:
        """Check whether any audited submission exists for the identifier.

        Raises:
            StorageError: On database failure
        """
        try:
            count = self.db.execute(
                select(func.count())
                .select_from(AuditedProofSubmission)
                .where(AuditedProofSubmission.attestation_id == identifier)
            ).scalar_one()
        except SQLAlchemyError as e:
            log.error(f"Error checking audited submission for {identifier}: {e}")
            raise StorageError(f"Failed to query audited submissions: {e}") from e
        return count > 0

    def list_verifications(
        self,
        identifier: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> list[VerificationRecord]:
        """List bindings, oldest first, optionally filtered."""
        query = select(VerificationRecord)
        if identifier is not None:
            query = query.where(VerificationRecord.identifier == identifier)
        if provider is not None:
            query = query.where(VerificationRecord.provider == provider)
        try:
            return list(self.db.execute(query.order_by(VerificationRecord.id)).scalars())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list verifications: {e}") from e
