"""ADR-036 signature verification endpoint."""

from fastapi import APIRouter

from app.attest.api_models import SignatureVerifyRequest, SignatureVerifyResponse
from app.attest.signature import verify_signature

router = APIRouter(prefix="/api/signature", tags=["signature"])


@router.post("/verify", response_model=SignatureVerifyResponse, response_model_exclude_none=True)
def verify_wallet_signature(body: SignatureVerifyRequest) -> SignatureVerifyResponse:
    result = verify_signature(body.address, body.signature, body.pubkey, body.message)
    return SignatureVerifyResponse(ok=result.ok, error=result.error)
