"""Proof verification endpoints.

Thin transport over VerificationOrchestrator: parse the body, pass along
the correlation id, and render the authoritative outcome. Errors are
rendered by the GatewayError handler in app.main.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.attest.api_models import (
    DelegatedBindingRequest,
    SelfVerifyRequest,
    ZKPassVerifyRequest,
)
from app.attest.orchestrator import GatewayResult, VerificationOrchestrator, get_orchestrator
from app.audit import get_request_id

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/verify", tags=["verify"])


def _render(result: GatewayResult) -> JSONResponse:
    return JSONResponse(status_code=result.outcome.status_code, content=result.outcome.body)


@router.post("")
async def verify_self_proof(
    body: SelfVerifyRequest,
    request: Request,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Verify a passport-attestation proof and bind the embedded wallet."""
    return _render(await orchestrator.verify_self(body, request_id=get_request_id(request)))


@router.post("/self")
async def bind_self_wallet(
    body: DelegatedBindingRequest,
    request: Request,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Bind a wallet to an identifier whose proof was already audited."""
    return _render(await orchestrator.bind_delegated(body, request_id=get_request_id(request)))


@router.post("/zkpass")
async def verify_zkpass_proof(
    body: ZKPassVerifyRequest,
    request: Request,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Verify a zk-passport proof, reconciling the client's identifier."""
    return _render(await orchestrator.verify_zkpass(body, request_id=get_request_id(request)))
