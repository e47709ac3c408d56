"""
Gateway API models.

Request bodies use the camelCase keys the frontends already send. Every
field is optional at the schema level: presence checks happen in the
orchestrator so a missing field yields the gateway's own 400 envelope with
no side effects.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class _CamelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def present_keys(self) -> List[str]:
        """Keys the client actually sent (aliases, plus unknown extras)."""
        return sorted(self.model_dump(by_alias=True, exclude_unset=True).keys())


# =============================================================================
# Request Models
# =============================================================================

class SelfVerifyRequest(_CamelRequest):
    """Body of POST /api/verify (passport-attestation proof)."""
    attestation_id: Optional[Any] = Field(None, alias="attestationId")
    proof: Optional[Any] = None
    public_signals: Optional[Any] = Field(None, alias="publicSignals")
    user_context_data: Optional[Any] = Field(None, alias="userContextData")


class DelegatedBindingRequest(_CamelRequest):
    """Body of POST /api/verify/self (bind a wallet to an audited submission)."""
    cosmos_address: Optional[str] = Field(None, alias="cosmosAddress")
    uuid: Optional[str] = None


class ZKPassVerifyRequest(_CamelRequest):
    """Body of POST /api/verify/zkpass.

    ``result`` is the legacy name of ``queryResult`` sent by older frontends.
    """
    proofs: Optional[Any] = None
    query_result: Optional[Any] = Field(None, alias="queryResult")
    result: Optional[Any] = None
    scope: Optional[str] = None
    unique_identifier: Optional[str] = Field(None, alias="uniqueIdentifier")
    cosmos_address: Optional[str] = Field(None, alias="cosmosAddress")
    dev_mode: Optional[Any] = Field(None, alias="devMode")


class SignatureVerifyRequest(BaseModel):
    """Body of POST /api/signature/verify."""
    model_config = ConfigDict(populate_by_name=True)

    address: str = Field(..., description="Signer bech32 address")
    signature: str = Field(..., description="Base64 r||s signature (64 bytes)")
    pubkey: str = Field(..., description="Base64 compressed secp256k1 key (33 bytes)")
    message: str = Field(..., description="Exact signed message")


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    status: str = "ok"
    message: str = "Backend running"
    timestamp: str = Field(default_factory=utc_timestamp)
    verifierReady: bool
    environment: str


class SignatureVerifyResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
