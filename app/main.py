"""Identity-attestation gateway FastAPI application."""
import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import admin, health, signature, verify
from app.attest.api_models import utc_timestamp
from app.attest.exceptions import ErrorCode, GatewayError, InternalError
from app.attest.verifiers import close_verifiers
from app.core.config import (
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOWED_HEADERS,
    CORS_MAX_AGE,
    CORS_ORIGINS,
    ENVIRONMENT,
    SELF_CALLBACK_URL,
    SELF_PUBLIC_ENDPOINT,
    SELF_SCOPE,
    SERVICE_PORT,
    STRICT_STARTUP,
    missing_required_config,
)
from app.logging_config import configure_logging

configure_logging()
log = logging.getLogger("zkpass-gateway")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    log.info("Starting attestation gateway...")

    missing = missing_required_config()
    if missing:
        log.error(f"Missing required environment variables: {missing}")
        if STRICT_STARTUP:
            raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    from app.db.session import init_database
    init_database()

    log.info(f"Public endpoint: {SELF_PUBLIC_ENDPOINT}")
    log.info(f"Self callback:  {SELF_CALLBACK_URL}")
    log.info(f"Env:            {ENVIRONMENT}")
    log.info(f"Scope:          {SELF_SCOPE!r}")
    log.info("Attestation gateway started")

    yield

    log.info("Shutting down attestation gateway...")
    await close_verifiers()
    log.info("Attestation gateway stopped")


app = FastAPI(
    title="zkpass-gateway",
    version="0.1.0",
    description="Zero-knowledge passport attestation gateway",
    lifespan=lifespan,
)


# -----------------------------------------------------------------------------
# CORS
# -----------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=CORS_ALLOWED_HEADERS,
    max_age=CORS_MAX_AGE,
)


@app.get("/version")
def version():
    """Return service version with commit link."""
    git_sha = os.getenv("GIT_SHA", "unknown")
    repo = os.getenv("GITHUB_REPOSITORY", "")

    result = {"git_sha": git_sha}
    if git_sha != "unknown":
        result["short_sha"] = git_sha[:7]
        if repo:
            result["github_url"] = f"https://github.com/{repo}/commit/{git_sha}"

    return result


# -----------------------------------------------------------------------------
# API Routers
# -----------------------------------------------------------------------------

app.include_router(health.router)
app.include_router(verify.router)
app.include_router(signature.router)
app.include_router(admin.router)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    """Log all requests with timing and declared body size."""
    start = time.time()
    length = request.headers.get("content-length")
    log.debug(
        f"Incoming {request.method} {request.url.path} "
        + (f"content-length={length}" if length else "(chunked/unknown)")
    )
    response = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)

    log.info(
        f"request_complete status={response.status_code} duration_ms={duration_ms}",
        extra={
            "route": request.url.path,
            "method": request.method,
            "status": response.status_code,
            "remote_addr": request.client.host if request.client else "-",
        },
    )
    return response


# -----------------------------------------------------------------------------
# Error envelopes
# -----------------------------------------------------------------------------

def _error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "code": code, "message": message, **extra, "timestamp": utc_timestamp()},
    )


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    if exc.status_code >= 500:
        log.error(f"{request.url.path} error: {exc.code} {exc.message}", extra={"route": request.url.path})
    else:
        log.info(f"{request.url.path} refused: {exc.code} {exc.message}", extra={"route": request.url.path})
    return _error_response(exc.status_code, exc.code, exc.message, **exc.extra)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg")}
        for e in exc.errors()
    ]
    return _error_response(400, ErrorCode.VALIDATION_FAILED, "Malformed request body", errors=errors)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception(f"{request.url.path} unhandled error", extra={"route": request.url.path})
    err = InternalError(str(exc) or "Internal server error")
    return _error_response(err.status_code, err.code, err.message)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=SERVICE_PORT)
