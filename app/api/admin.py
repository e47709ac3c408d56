"""Admin endpoint: effective configuration, recent audit events and bindings."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query

from app.attest.orchestrator import VerificationOrchestrator, get_orchestrator
from app.attest.store import VerificationStore
from app.core import config

router = APIRouter(tags=["admin"])


@router.get("/admin")
def admin(
    limit: int = Query(50, ge=1, le=1000),
    action: str | None = Query(None, description="Filter by action prefix"),
    status: str | None = Query(None, description="Filter by status"),
    identifier: str | None = Query(None, description="List stored bindings for this subject"),
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Return the workflow switches in effect and recent audit events.

    Returns 404 when ADMIN_ENDPOINT_ENABLED is false.
    """
    if not config.ADMIN_ENDPOINT_ENABLED:
        raise HTTPException(status_code=404, detail="Not found")

    settings = asdict(orchestrator.settings)
    settings["allowed_countries"] = sorted(settings["allowed_countries"])
    result = {
        "environment": config.ENVIRONMENT,
        "orchestrator": settings,
        "policy": {
            "excluded_countries": config.EXCLUDED_COUNTRIES,
            "ofac_check": config.OFAC_CHECK,
            "minimum_age": config.MINIMUM_AGE,
        },
        "providers": {
            "self_scope": config.SELF_SCOPE,
            "self_mock_mode": config.SELF_MOCK_MODE,
            "self_verifier_url": config.SELF_VERIFIER_URL,
            "zkpassport_verifier_url": config.ZKPASSPORT_VERIFIER_URL,
        },
        "cors_origins": config.CORS_ORIGINS,
        "audit": {
            **orchestrator.audit.get_buffer_stats(),
            "events": orchestrator.audit.get_recent_events(
                limit=limit, action_filter=action, status_filter=status
            ),
        },
    }

    if identifier:
        db = orchestrator.session_factory()
        try:
            records = VerificationStore(db).list_verifications(identifier=identifier)
            result["bindings"] = [r.to_dict() for r in records]
        finally:
            db.close()

    return result
