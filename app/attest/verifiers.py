"""Clients for the external proof verifiers.

Proof cryptography lives in the proof ecosystems' own SDKs. Each SDK runs in
a small sidecar service; the gateway reaches it over HTTP and only depends
on the input/output contract:

- passport attestation ("self"): verify(attestationId, proof, publicSignals,
  userContextData) -> isValidDetails / discloseOutput / userData
- zk-passport ("zkpass"): verify(proofs, queryResult, scope, devMode) ->
  verified / uniqueIdentifier / queryResultErrors

Anything implementing the SelfVerifier / ZKPassportVerifier protocols can
be handed to the orchestrator (tests use in-process fakes).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

from app.attest.exceptions import VerificationTimeout, VerifierError
from app.core import config

log = logging.getLogger(__name__)


@dataclass
class SelfVerificationResult:
    """Outcome reported by the passport-attestation verifier."""

    is_valid: bool
    is_valid_details: dict[str, Any] = field(default_factory=dict)
    disclose_output: dict[str, Any] = field(default_factory=dict)
    user_identifier: Optional[str] = None
    user_defined_data: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "SelfVerificationResult":
        details = data.get("isValidDetails") or {}
        user_data = data.get("userData") or {}
        return cls(
            is_valid=details.get("isValid") is True,
            is_valid_details=details,
            disclose_output=data.get("discloseOutput") or {},
            user_identifier=user_data.get("userIdentifier"),
            user_defined_data=user_data.get("userDefinedData"),
        )


@dataclass
class ZKPassportResult:
    """Outcome reported by the zk-passport verifier."""

    verified: bool
    unique_identifier: Optional[str] = None
    query_result_errors: Any = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ZKPassportResult":
        return cls(
            verified=data.get("verified") is True,
            unique_identifier=data.get("uniqueIdentifier"),
            query_result_errors=data.get("queryResultErrors"),
        )


class SelfVerifier(Protocol):
    ready: bool

    async def verify(
        self,
        attestation_id: Any,
        proof: Any,
        public_signals: list[Any],
        user_context_data: Any,
    ) -> SelfVerificationResult: ...


class ZKPassportVerifier(Protocol):
    ready: bool

    async def verify(
        self,
        proofs: Any,
        query_result: Any,
        scope: str,
        dev_mode: bool,
    ) -> ZKPassportResult: ...


class _SidecarClient:
    """Shared HTTP plumbing for verifier sidecars.

    Uses one persistent AsyncClient for connection reuse.
    """

    name = "verifier"

    def __init__(self, base_url: str, timeout: float):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def ready(self) -> bool:
        return bool(self.base_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._get_client().post(path, json=payload)
        except httpx.TimeoutException as e:
            log.warning(f"{self.name} timeout: {e}")
            raise VerificationTimeout.after(f"{self.name} call", self.timeout) from e
        except httpx.HTTPError as e:
            log.warning(f"{self.name} connection error: {e}")
            raise VerifierError(f"{self.name} unreachable: {e}") from e

        if resp.status_code >= 400:
            log.warning(f"{self.name} returned {resp.status_code}: {resp.text[:200]}")
            raise VerifierError(f"{self.name} returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise VerifierError(f"{self.name} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise VerifierError(f"{self.name} returned unexpected payload")
        return data


class SelfVerifierClient(_SidecarClient):
    """Passport-attestation verifier reached over HTTP."""

    name = "self-verifier"

    def __init__(
        self,
        base_url: str = config.SELF_VERIFIER_URL,
        timeout: float = config.VERIFIER_TIMEOUT_SECONDS,
        scope: str = config.SELF_SCOPE,
        endpoint: Optional[str] = config.SELF_PUBLIC_ENDPOINT,
        mock_passport: bool = config.SELF_MOCK_MODE,
    ):
        super().__init__(base_url, timeout)
        self.scope = scope
        self.endpoint = endpoint
        self.mock_passport = mock_passport

    def verification_config(self) -> dict[str, Any]:
        """Predicates the verifier enforces itself."""
        cfg: dict[str, Any] = {
            "excludedCountries": list(config.EXCLUDED_COUNTRIES),
            "ofac": config.OFAC_CHECK,
        }
        if config.MINIMUM_AGE is not None:
            cfg["minimumAge"] = config.MINIMUM_AGE
        return cfg

    async def verify(
        self,
        attestation_id: Any,
        proof: Any,
        public_signals: list[Any],
        user_context_data: Any,
    ) -> SelfVerificationResult:
        data = await self._post("/verify", {
            "attestationId": attestation_id,
            "proof": proof,
            "publicSignals": public_signals,
            "userContextData": user_context_data,
            "scope": self.scope,
            "endpoint": self.endpoint,
            "mockPassport": self.mock_passport,
            "config": self.verification_config(),
            "userIdentifierType": "uuid",
        })
        return SelfVerificationResult.from_payload(data)


class ZKPassportClient(_SidecarClient):
    """zk-passport verifier reached over HTTP."""

    name = "zkpassport-verifier"

    def __init__(
        self,
        base_url: str = config.ZKPASSPORT_VERIFIER_URL,
        timeout: float = config.VERIFIER_TIMEOUT_SECONDS,
    ):
        super().__init__(base_url, timeout)

    async def verify(
        self,
        proofs: Any,
        query_result: Any,
        scope: str,
        dev_mode: bool,
    ) -> ZKPassportResult:
        data = await self._post("/verify", {
            "proofs": proofs,
            "queryResult": query_result,
            "scope": scope,
            "devMode": dev_mode,
        })
        return ZKPassportResult.from_payload(data)


# Global client instances
_self_verifier: Optional[SelfVerifierClient] = None
_zkpassport_verifier: Optional[ZKPassportClient] = None


def get_self_verifier() -> SelfVerifierClient:
    """Get or create the global passport-attestation verifier client."""
    global _self_verifier
    if _self_verifier is None:
        _self_verifier = SelfVerifierClient()
    return _self_verifier


def get_zkpassport_verifier() -> ZKPassportClient:
    """Get or create the global zk-passport verifier client."""
    global _zkpassport_verifier
    if _zkpassport_verifier is None:
        _zkpassport_verifier = ZKPassportClient()
    return _zkpassport_verifier


async def close_verifiers() -> None:
    """Close both global clients (application shutdown)."""
    global _self_verifier, _zkpassport_verifier
    for client in (_self_verifier, _zkpassport_verifier):
        if client is not None:
            await client.close()
    _self_verifier = None
    _zkpassport_verifier = None
