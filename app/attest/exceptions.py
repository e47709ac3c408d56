"""
Gateway exceptions.

Every error the workflow surfaces carries a machine-readable code, a
human-readable message and the HTTP status the transport layer should use.
The FastAPI exception handler in app.main turns these into the
``{"status": "error", ...}`` envelope.
"""

from typing import Any, Optional


class ErrorCode:
    """Error code registry."""
    VALIDATION_FAILED = "VALIDATION_FAILED"
    VERIFIER_REJECTED = "VERIFIER_REJECTED"
    VERIFIER_UNAVAILABLE = "VERIFIER_UNAVAILABLE"
    VERIFICATION_TIMEOUT = "VERIFICATION_TIMEOUT"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    ADDRESS_FORMAT_INVALID = "ADDRESS_FORMAT_INVALID"
    STORAGE_FAILED = "STORAGE_FAILED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    code: str = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        extra: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        # Additional envelope fields (e.g. rejected-proof details)
        self.extra = extra or {}
        super().__init__(message)


class ValidationError(GatewayError):
    """Request is missing required fields or has the wrong shape.

    Raised before any external call or storage write.
    """

    code = ErrorCode.VALIDATION_FAILED
    status_code = 400

    @classmethod
    def missing_fields(cls, missing: list[str], have: list[str]) -> "ValidationError":
        return cls(
            f"Missing required fields: {', '.join(missing)}",
            extra={"missing": missing, "have": have},
        )


class VerifierRejected(GatewayError):
    """The external verifier judged the proof invalid.

    A normal negative outcome, not a system failure. The status code is
    configurable because deployments disagree on 400 vs 500.
    """

    code = ErrorCode.VERIFIER_REJECTED
    status_code = 400


class VerifierError(GatewayError):
    """The external verifier could not be reached or answered garbage."""

    code = ErrorCode.VERIFIER_UNAVAILABLE
    status_code = 502


class VerificationTimeout(GatewayError):
    """A bounded wait on the verifier or the store expired."""

    code = ErrorCode.VERIFICATION_TIMEOUT
    status_code = 504

    @classmethod
    def after(cls, what: str, seconds: float) -> "VerificationTimeout":
        return cls(f"{what} did not complete within {seconds:g}s")


class PolicyViolation(GatewayError):
    """Disclosed attributes failed an enforced policy predicate."""

    code = ErrorCode.POLICY_VIOLATION
    status_code = 403


class AddressFormatError(GatewayError):
    """Decoded wallet address is not valid for the configured chain."""

    code = ErrorCode.ADDRESS_FORMAT_INVALID
    status_code = 422

    @classmethod
    def bad_prefix(cls, address: str, prefix: str) -> "AddressFormatError":
        return cls(f"Wallet address {address[:24]!r} does not start with {prefix!r}")

    @classmethod
    def undecodable(cls, reason: str) -> "AddressFormatError":
        return cls(f"Wallet address could not be decoded: {reason}")


class StorageError(GatewayError):
    """Persistence failed (connectivity, constraint, or driver error)."""

    code = ErrorCode.STORAGE_FAILED
    status_code = 500


class NotFoundError(GatewayError):
    """A required prior record does not exist."""

    code = ErrorCode.NOT_FOUND
    status_code = 404


class InternalError(GatewayError):
    """Unexpected failure; message is passed through to the caller."""

    code = ErrorCode.INTERNAL_ERROR
    status_code = 500
