"""Verification orchestrator.

Runs the verify -> policy -> reconcile -> persist workflow for both proof
ecosystems and the delegated wallet binding. Each handler produces two
independent results:

- VerificationOutcome: authoritative. Decided from the verifier's answer
  (and, when enforced, policy). Drives the HTTP status and body.
- PersistenceOutcome: advisory. What happened to each storage step. For the
  proof endpoints storage is best-effort: a failed write is logged and
  audited but never changes an outcome that was already decided.

Request-shape errors abort before any side effect; verifier errors abort
with no persistence; nothing is retried.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.orm import Session

from app.attest import policy
from app.attest.address import wallet_address_from_user_data
from app.attest.api_models import (
    DelegatedBindingRequest,
    SelfVerifyRequest,
    ZKPassVerifyRequest,
    utc_timestamp,
)
from app.attest.exceptions import (
    AddressFormatError,
    GatewayError,
    NotFoundError,
    PolicyViolation,
    ValidationError,
    VerificationTimeout,
    VerifierRejected,
)
from app.attest.reconcile import Decision, identifiers_match, reconcile
from app.attest.store import PROVIDER_SELF, PROVIDER_ZKPASS, VerificationStore
from app.attest.verifiers import SelfVerifier, ZKPassportVerifier
from app.audit import AuditLogger
from app.core import config

log = logging.getLogger(__name__)

T = TypeVar("T")

BINDING_MODES = ("append", "upsert")


def _missing(value: Any) -> bool:
    """A required field is missing when it is null, false, empty text or zero.

    Empty lists and objects count as present.
    """
    if value is None or value is False or value == "":
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0


@dataclass
class OrchestratorSettings:
    """Named behavioural switches of the workflow."""

    rejected_status_code: int = 400
    enforce_policy: bool = False
    address_failure_blocks: bool = False
    address_prefix: str = "twilight"
    binding_mode: str = "append"
    reconcile_normalize: bool = False
    allowed_countries: frozenset[str] = frozenset({"CHN", "IDN", "MYS", "USA"})
    expiry_horizon_years: int = 1
    verifier_timeout: float = 30.0
    storage_timeout: float = 5.0
    zkpass_dev_mode_default: bool = True

    def __post_init__(self):
        if self.binding_mode not in BINDING_MODES:
            raise ValueError(f"binding_mode must be one of {BINDING_MODES}, got {self.binding_mode!r}")

    @property
    def upsert(self) -> bool:
        return self.binding_mode == "upsert"

    @classmethod
    def from_config(cls) -> "OrchestratorSettings":
        return cls(
            rejected_status_code=config.REJECTED_PROOF_STATUS,
            enforce_policy=config.ENFORCE_POLICY,
            address_failure_blocks=config.ADDRESS_FAILURE_BLOCKS,
            address_prefix=config.WALLET_ADDRESS_PREFIX,
            binding_mode=config.BINDING_MODE,
            reconcile_normalize=config.RECONCILE_NORMALIZE,
            allowed_countries=config.ALLOWED_ISSUING_COUNTRIES,
            expiry_horizon_years=config.EXPIRY_HORIZON_YEARS,
            verifier_timeout=config.VERIFIER_TIMEOUT_SECONDS,
            storage_timeout=config.STORAGE_TIMEOUT_SECONDS,
            zkpass_dev_mode_default=config.ZKPASS_DEV_MODE_DEFAULT,
        )


@dataclass
class VerificationOutcome:
    """Authoritative result: what the caller is told."""

    provider: str
    verified: bool
    subject_identifier: Optional[str]
    body: dict[str, Any]
    status_code: int = 200


@dataclass
class PersistenceStep:
    name: str  # "audit_submission" | "binding"
    status: str  # "saved" | "skipped" | "failed"
    record: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    code: Optional[str] = None


@dataclass
class PersistenceOutcome:
    """Advisory result: what happened to each storage step."""

    steps: list[PersistenceStep] = field(default_factory=list)

    def add(self, step: PersistenceStep) -> PersistenceStep:
        self.steps.append(step)
        return step

    @property
    def consistent(self) -> bool:
        return all(s.status != "failed" for s in self.steps)

    def summary(self) -> dict[str, Any]:
        return {
            s.name: {k: v for k, v in (("status", s.status), ("code", s.code), ("error", s.error)) if v}
            for s in self.steps
        }


@dataclass
class GatewayResult:
    outcome: VerificationOutcome
    persistence: PersistenceOutcome


class VerificationOrchestrator:
    """One configurable workflow for every proof endpoint."""

    def __init__(
        self,
        self_verifier: SelfVerifier,
        zkpass_verifier: ZKPassportVerifier,
        session_factory: Callable[[], Session],
        audit: AuditLogger,
        settings: Optional[OrchestratorSettings] = None,
    ):
        self.self_verifier = self_verifier
        self.zkpass_verifier = zkpass_verifier
        self.session_factory = session_factory
        self.audit = audit
        self.settings = settings or OrchestratorSettings()

    # -------------------------------------------------------------------------
    # Bounded suspension points
    # -------------------------------------------------------------------------

    async def _call_verifier(self, name: str, call: Awaitable[T]) -> T:
        timeout = self.settings.verifier_timeout
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            raise VerificationTimeout.after(name, timeout) from e

    async def _storage(self, op: Callable[[VerificationStore], T]) -> T:
        """Run a store operation in a worker thread with its own session."""

        def run() -> T:
            db = self.session_factory()
            try:
                return op(VerificationStore(db))
            finally:
                db.close()

        timeout = self.settings.storage_timeout
        try:
            return await asyncio.wait_for(asyncio.to_thread(run), timeout)
        except asyncio.TimeoutError as e:
            raise VerificationTimeout.after("storage operation", timeout) from e

    async def _best_effort(
        self,
        persistence: PersistenceOutcome,
        name: str,
        op: Callable[[VerificationStore], dict[str, Any]],
        *,
        provider: str,
        identifier: Optional[str],
        request_id: Optional[str],
    ) -> PersistenceStep:
        """Attempt a write whose failure must not alter the response."""
        try:
            record = await self._storage(op)
        except GatewayError as e:
            log.error(
                f"{name} save failed ({provider}), continuing: {e.message}",
                extra={"provider": provider, "identifier": identifier},
            )
            self.audit.log_persistence(
                name, provider, identifier, status="error",
                details={"code": e.code, "error": e.message}, request_id=request_id,
            )
            return persistence.add(PersistenceStep(name, "failed", error=e.message, code=e.code))

        self.audit.log_persistence(
            name, provider, identifier,
            details={"record_id": record.get("id")}, request_id=request_id,
        )
        return persistence.add(PersistenceStep(name, "saved", record=record))

    def _skip(
        self,
        persistence: PersistenceOutcome,
        name: str,
        reason: str,
        *,
        provider: str,
        identifier: Optional[str],
        request_id: Optional[str],
        code: Optional[str] = None,
    ) -> None:
        status = "failed" if code else "skipped"
        persistence.add(PersistenceStep(name, status, error=reason, code=code))
        self.audit.log_persistence(
            name, provider, identifier,
            status="error" if code else "skipped",
            details={"reason": reason, "code": code}, request_id=request_id,
        )

    def _finish(self, outcome: VerificationOutcome, persistence: PersistenceOutcome) -> GatewayResult:
        log.info(
            f"verification complete provider={outcome.provider} verified={outcome.verified} "
            f"persistence_consistent={persistence.consistent}",
            extra={
                "provider": outcome.provider,
                "identifier": outcome.subject_identifier,
                "details": persistence.summary(),
            },
        )
        return GatewayResult(outcome, persistence)

    # -------------------------------------------------------------------------
    # Passport attestation (provider "self")
    # -------------------------------------------------------------------------

    async def verify_self(
        self, req: SelfVerifyRequest, *, request_id: Optional[str] = None
    ) -> GatewayResult:
        missing = [
            alias for alias, value in (
                ("attestationId", req.attestation_id),
                ("proof", req.proof),
                ("publicSignals", req.public_signals),
                ("userContextData", req.user_context_data),
            ) if _missing(value)
        ]
        if missing:
            raise ValidationError.missing_fields(missing, req.present_keys())
        if not isinstance(req.public_signals, list) or not req.public_signals:
            raise ValidationError("publicSignals must be a non-empty list")

        log.info(
            f"Verifying self proof attestationId={req.attestation_id} "
            f"publicSignals={len(req.public_signals)}"
        )
        result = await self._call_verifier(
            "self verifier",
            self.self_verifier.verify(
                req.attestation_id, req.proof, req.public_signals, req.user_context_data
            ),
        )

        subject = result.user_identifier
        if not result.is_valid:
            self.audit.log_verification(
                PROVIDER_SELF, subject,
                status="rejected", details=result.is_valid_details, request_id=request_id,
            )
            raise VerifierRejected(
                "Verification failed",
                status_code=self.settings.rejected_status_code,
                extra={"result": False, "details": result.is_valid_details},
            )

        report = policy.evaluate(
            result.disclose_output,
            allowed_countries=self.settings.allowed_countries,
            horizon_years=self.settings.expiry_horizon_years,
        )
        if self.settings.enforce_policy and not report.passed:
            self.audit.log_verification(
                PROVIDER_SELF, subject,
                status="rejected", details={"violations": report.violations},
                request_id=request_id,
            )
            raise PolicyViolation(
                "Policy check failed: " + "; ".join(report.violations),
                extra={"violations": report.violations},
            )

        self.audit.log_verification(
            PROVIDER_SELF, subject,
            details={"policy_passed": report.passed}, request_id=request_id,
        )

        # Address decoding is pure, so a blocking failure is raised before any write
        address: Optional[str] = None
        address_error: Optional[AddressFormatError] = None
        try:
            address = wallet_address_from_user_data(
                result.user_defined_data, self.settings.address_prefix
            )
        except AddressFormatError as e:
            if self.settings.address_failure_blocks:
                raise
            address_error = e

        persistence = PersistenceOutcome()
        ctx = {"provider": PROVIDER_SELF, "identifier": subject, "request_id": request_id}
        if not subject:
            reason = "verifier returned no user identifier"
            self._skip(persistence, "audit_submission", reason, **ctx)
            self._skip(persistence, "binding", reason, **ctx)
        else:
            await self._best_effort(
                persistence, "audit_submission",
                lambda store: store.save_audited_submission(subject, req.proof).to_dict(),
                **ctx,
            )
            if address_error is not None:
                log.warning(f"Wallet address rejected, binding skipped: {address_error.message}")
                self._skip(
                    persistence, "binding", address_error.message,
                    code=address_error.code, **ctx,
                )
            else:
                await self._best_effort(
                    persistence, "binding",
                    lambda store: store.save_verification(
                        subject, address, PROVIDER_SELF, upsert=self.settings.upsert
                    ).to_dict(),
                    **ctx,
                )

        expiry = report.expiry_date
        body = {
            "status": "success",
            "result": True,
            "message": "Verification completed",
            "userIdentifier": subject,
            "credentialSubject": result.disclose_output,
            "expiry": {
                "date": expiry.isoformat() if expiry else None,
                "hasOneYearValidity": report.expiry_ok,
            },
            "issuingCountry": report.issuing_country,
            "isCountryAllowed": report.country_ok,
            "address": address,
            "persistence": persistence.summary(),
            "timestamp": utc_timestamp(),
        }
        outcome = VerificationOutcome(PROVIDER_SELF, True, subject, body)
        return self._finish(outcome, persistence)

    # -------------------------------------------------------------------------
    # Delegated binding (provider "self", no proof re-submission)
    # -------------------------------------------------------------------------

    async def bind_delegated(
        self, req: DelegatedBindingRequest, *, request_id: Optional[str] = None
    ) -> GatewayResult:
        """Bind a wallet to an identifier that already has an audited proof.

        The existence of an audited submission stands in for re-verifying
        the proof. Storage errors here are surfaced, not swallowed.
        """
        missing = [
            alias for alias, value in (("cosmosAddress", req.cosmos_address), ("uuid", req.uuid))
            if _missing(value)
        ]
        if missing:
            raise ValidationError.missing_fields(missing, req.present_keys())

        identifier, address = req.uuid, req.cosmos_address
        log.info(f"Checking audited submission for {identifier}")
        exists = await self._storage(lambda store: store.audited_submission_exists(identifier))
        if not exists:
            self.audit.log(
                action="binding.delegated", provider=PROVIDER_SELF, resource=identifier,
                status="rejected", details={"reason": "no audited submission"},
                request_id=request_id,
            )
            raise NotFoundError(
                "Attestation ID not found in selfcheck table",
                extra={"attestationId": identifier},
            )

        record = await self._storage(
            lambda store: store.save_verification(
                identifier, address, PROVIDER_SELF, upsert=self.settings.upsert
            ).to_dict()
        )
        self.audit.log(
            action="binding.delegated", provider=PROVIDER_SELF, resource=identifier,
            details={"record_id": record["id"]}, request_id=request_id,
        )
        persistence = PersistenceOutcome([PersistenceStep("binding", "saved", record=record)])
        body = {
            "status": "success",
            "message": "Verification data saved successfully",
            "data": record,
            "timestamp": utc_timestamp(),
        }
        return self._finish(VerificationOutcome(PROVIDER_SELF, True, identifier, body), persistence)

    # -------------------------------------------------------------------------
    # zk-passport (provider "zkpass")
    # -------------------------------------------------------------------------

    async def verify_zkpass(
        self, req: ZKPassVerifyRequest, *, request_id: Optional[str] = None
    ) -> GatewayResult:
        query_result = req.query_result if req.query_result is not None else req.result
        missing = [
            alias for alias, value in (
                ("proofs", req.proofs), ("queryResult", query_result), ("scope", req.scope)
            ) if _missing(value)
        ]
        if missing:
            raise ValidationError.missing_fields(missing, req.present_keys())

        client_uid = req.unique_identifier or None
        dev_mode = req.dev_mode if isinstance(req.dev_mode, bool) else self.settings.zkpass_dev_mode_default
        log.info(f"zkpass client UID: {client_uid}")

        result = await self._call_verifier(
            "zkpassport verifier",
            self.zkpass_verifier.verify(req.proofs, query_result, req.scope, dev_mode),
        )
        server_uid = result.unique_identifier
        normalize = self.settings.reconcile_normalize
        decision = reconcile(client_uid, server_uid, result.verified, normalize=normalize)
        match = identifiers_match(client_uid, server_uid, normalize=normalize)

        self.audit.log_verification(
            PROVIDER_ZKPASS, server_uid,
            status="success" if result.verified else "rejected",
            details={"match": match, "decision": decision.value}, request_id=request_id,
        )

        persistence = PersistenceOutcome()
        identifier = client_uid or server_uid
        ctx = {"provider": PROVIDER_ZKPASS, "identifier": identifier, "request_id": request_id}
        if decision is Decision.ALLOW and identifier:
            address = req.cosmos_address or None
            await self._best_effort(
                persistence, "binding",
                lambda store: store.save_verification(
                    identifier, address, PROVIDER_ZKPASS, upsert=self.settings.upsert
                ).to_dict(),
                **ctx,
            )
        elif decision is Decision.ALLOW:
            self._skip(persistence, "binding", "verifier returned no unique identifier", **ctx)
        elif result.verified:
            # Verified but the client's claim disagrees: reported as verified, not stored
            log.warning(f"zkpass identifier mismatch client={client_uid} server={server_uid}")
            self._skip(persistence, "binding", "client identifier does not match", **ctx)
        else:
            self._skip(persistence, "binding", "proof not verified", **ctx)

        body = {
            "status": "success" if result.verified else "error",
            "verified": result.verified,
            "clientUID": client_uid,
            "serverUID": server_uid,
            "match": match,
            "queryResultErrors": result.query_result_errors,
            "address": req.cosmos_address or None,
            "persistence": persistence.summary(),
            "timestamp": utc_timestamp(),
        }
        outcome = VerificationOutcome(PROVIDER_ZKPASS, result.verified, server_uid, body)
        return self._finish(outcome, persistence)


# Global orchestrator instance
_orchestrator: Optional[VerificationOrchestrator] = None


def get_orchestrator() -> VerificationOrchestrator:
    """FastAPI dependency: the process-wide orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        from app.attest.verifiers import get_self_verifier, get_zkpassport_verifier
        from app.audit import get_audit_logger
        from app.db.session import SessionLocal

        _orchestrator = VerificationOrchestrator(
            self_verifier=get_self_verifier(),
            zkpass_verifier=get_zkpassport_verifier(),
            session_factory=SessionLocal,
            audit=get_audit_logger(),
            settings=OrchestratorSettings.from_config(),
        )
    return _orchestrator


def reset_orchestrator() -> None:
    """Reset the global orchestrator (for testing)."""
    global _orchestrator
    _orchestrator = None
