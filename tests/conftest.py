"""Pytest fixtures for attestation gateway tests."""
import asyncio
import os

# Configure the process before any app module reads the environment
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("GATEWAY_LOG_FILE", "")

from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.attest.orchestrator import (
    OrchestratorSettings,
    VerificationOrchestrator,
    get_orchestrator,
    reset_orchestrator,
)
from app.attest.verifiers import SelfVerificationResult, ZKPassportResult
from app.audit import AuditLogger
from app.audit.logger import reset_audit_logger
from app.db.models import Base


# =============================================================================
# Test data
# =============================================================================

TEST_WALLET = "twilight1qypqxpq9qcrsszg2pvxq6rs0zqg3yyc5lzv7xu"
TEST_USER_ID = "4f0b3c1e-8d2a-4e7b-9a61-2c5d8e9f0a1b"


def hex_user_data(text: str, pad_to: int = 64) -> str:
    """Encode text the way the verifier returns userDefinedData (NUL padded hex)."""
    raw = text.encode("utf-8")
    return raw.ljust(max(pad_to, len(raw)), b"\x00").hex()


def self_payload(
    *,
    is_valid: bool = True,
    user_identifier: Optional[str] = TEST_USER_ID,
    address: Optional[str] = TEST_WALLET,
    expiry: str = "2099-12-31",
    country: str = "USA",
) -> dict[str, Any]:
    """A passport-attestation verifier response."""
    return {
        "isValidDetails": {"isValid": is_valid, "isOfacValid": True},
        "discloseOutput": {"expiryDate": expiry, "issuingState": country, "nationality": country},
        "userData": {
            "userIdentifier": user_identifier,
            "userDefinedData": hex_user_data(address) if address is not None else None,
        },
    }


def self_request(**overrides) -> dict[str, Any]:
    """A well-formed POST /api/verify body."""
    body = {
        "attestationId": 1,
        "proof": {"a": ["0x1", "0x2"], "b": [["0x3", "0x4"]], "c": ["0x5"]},
        "publicSignals": ["11", "22", "33"],
        "userContextData": "000000000000000000000000000000000000000000000001",
    }
    body.update(overrides)
    return body


def zkpass_request(**overrides) -> dict[str, Any]:
    """A well-formed POST /api/verify/zkpass body."""
    body = {
        "proofs": [{"proof": "0xabc", "name": "sig_check_dsc"}],
        "queryResult": {"nationality": {"disclose": {"result": "USA"}}},
        "scope": "twilight-relayer",
        "uniqueIdentifier": "server-uid-1",
        "cosmosAddress": TEST_WALLET,
    }
    body.update(overrides)
    return body


# =============================================================================
# Fake verifiers
# =============================================================================

class FakeSelfVerifier:
    """In-process passport-attestation verifier."""

    def __init__(self, payload: Optional[dict] = None, exc: Optional[Exception] = None, delay: float = 0):
        self.ready = True
        self.payload = payload if payload is not None else self_payload()
        self.exc = exc
        self.delay = delay
        self.calls: list[tuple] = []

    async def verify(self, attestation_id, proof, public_signals, user_context_data):
        self.calls.append((attestation_id, proof, public_signals, user_context_data))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return SelfVerificationResult.from_payload(self.payload)


class FakeZKPassportVerifier:
    """In-process zk-passport verifier."""

    def __init__(self, verified: bool = True, unique_identifier: Optional[str] = "server-uid-1",
                 errors: Any = None, exc: Optional[Exception] = None):
        self.ready = True
        self.verified = verified
        self.unique_identifier = unique_identifier
        self.errors = errors
        self.exc = exc
        self.calls: list[tuple] = []

    async def verify(self, proofs, query_result, scope, dev_mode):
        self.calls.append((proofs, query_result, scope, dev_mode))
        if self.exc is not None:
            raise self.exc
        return ZKPassportResult(self.verified, self.unique_identifier, self.errors)


# =============================================================================
# Database / orchestrator fixtures
# =============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database shared across threads."""
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def self_verifier():
    return FakeSelfVerifier()


@pytest.fixture
def zkpass_verifier():
    return FakeZKPassportVerifier()


@pytest.fixture
def audit():
    return AuditLogger(enabled=True)


@pytest.fixture
def settings():
    return OrchestratorSettings(verifier_timeout=2.0, storage_timeout=2.0)


@pytest.fixture
def orchestrator(self_verifier, zkpass_verifier, session_factory, audit, settings):
    return VerificationOrchestrator(
        self_verifier=self_verifier,
        zkpass_verifier=zkpass_verifier,
        session_factory=session_factory,
        audit=audit,
        settings=settings,
    )


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset process-wide singletons around every test."""
    reset_audit_logger()
    reset_orchestrator()
    yield
    reset_audit_logger()
    reset_orchestrator()


@pytest_asyncio.fixture
async def client(orchestrator):
    """HTTP client bound to the app with the test orchestrator injected."""
    from app.main import app

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
