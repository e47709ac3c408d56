"""Identity-attestation workflow: verification, policy, reconciliation, persistence."""

from app.attest.exceptions import (
    GatewayError,
    ValidationError,
    VerifierRejected,
    VerifierError,
    VerificationTimeout,
    PolicyViolation,
    AddressFormatError,
    StorageError,
    NotFoundError,
    InternalError,
)
from app.attest.orchestrator import (
    VerificationOrchestrator,
    OrchestratorSettings,
    get_orchestrator,
)
from app.attest.signature import verify_signature, SignatureResult

__all__ = [
    "GatewayError",
    "ValidationError",
    "VerifierRejected",
    "VerifierError",
    "VerificationTimeout",
    "PolicyViolation",
    "AddressFormatError",
    "StorageError",
    "NotFoundError",
    "InternalError",
    "VerificationOrchestrator",
    "OrchestratorSettings",
    "get_orchestrator",
    "verify_signature",
    "SignatureResult",
]
