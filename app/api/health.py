"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends

from app.attest.api_models import HealthResponse
from app.attest.orchestrator import VerificationOrchestrator, get_orchestrator
from app.core.config import ENVIRONMENT

log = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    """Report liveness and whether the passport-attestation verifier is usable."""
    ready = bool(getattr(orchestrator.self_verifier, "ready", False))
    return HealthResponse(verifierReady=ready, environment=ENVIRONMENT)
