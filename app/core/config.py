"""
Gateway configuration constants.

Values are read from the environment once, at import time. A `.env` file in
the working directory is loaded first so local deployments can keep their
settings next to the service.

Constants are organized into:
- POLICY: business rules applied to disclosed passport attributes
- PROVIDER: settings forwarded to the external proof verifiers
- ORCHESTRATION: named behavioural switches of the verification workflow
- DATABASE: relational store connection
- OPERATIONAL: deployment-specific settings (CORS, logging, admin)
"""

import json
import logging
import os

from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> list[str]:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


# =============================================================================
# POLICY CONSTANTS
# =============================================================================

def _parse_excluded_countries() -> list[str]:
    """Parse EXCLUDED_COUNTRIES as a JSON array of ISO alpha-3 codes.

    Malformed JSON is not fatal: the verifier runs without exclusions and a
    warning is logged.
    """
    raw = os.getenv("EXCLUDED_COUNTRIES")
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        log.warning(f"Failed to parse EXCLUDED_COUNTRIES, using empty list: {e}")
        return []
    if not isinstance(value, list):
        log.warning("EXCLUDED_COUNTRIES is not a JSON array, using empty list")
        return []
    return [str(c) for c in value]


# Countries the passport-attestation verifier rejects on its own
EXCLUDED_COUNTRIES: list[str] = _parse_excluded_countries()

# OFAC screening, enforced inside the passport-attestation verifier
OFAC_CHECK: bool = _env_bool("OFAC_CHECK", "false")

# Minimum age predicate. Unset unless explicitly configured.
MINIMUM_AGE: int | None = int(os.environ["MINIMUM_AGE"]) if os.getenv("MINIMUM_AGE") else None

# Secondary issuing-country allow-list checked by the gateway itself
ALLOWED_ISSUING_COUNTRIES: frozenset[str] = frozenset(
    _env_list("ALLOWED_ISSUING_COUNTRIES", "CHN,IDN,MYS,USA")
)

# A document must stay valid for at least this long past "now"
EXPIRY_HORIZON_YEARS: int = 1

# When False (default): expiry/country results are logged only
# When True: a failing predicate rejects the request with 403
ENFORCE_POLICY: bool = _env_bool("ENFORCE_POLICY", "false")


# =============================================================================
# PROVIDER SETTINGS
# =============================================================================

SELF_SCOPE: str = os.getenv("SELF_SCOPE", "twilight-relayer-passport")
SELF_PUBLIC_ENDPOINT: str | None = os.getenv("SELF_PUBLIC_ENDPOINT")
SELF_CALLBACK_URL: str | None = os.getenv("SELF_CALLBACK_URL")
SELF_MOCK_MODE: bool = _env_bool("SELF_MOCK_MODE", "false")

# Sidecar services wrapping the proof ecosystems' verifier SDKs
SELF_VERIFIER_URL: str = os.getenv("SELF_VERIFIER_URL", "http://localhost:3100")
ZKPASSPORT_VERIFIER_URL: str = os.getenv("ZKPASSPORT_VERIFIER_URL", "http://localhost:3200")

# Default devMode for zkpass requests that do not send a boolean
ZKPASS_DEV_MODE_DEFAULT: bool = _env_bool("ZKPASS_DEV_MODE_DEFAULT", "true")

REQUIRED_ENV_VARS: tuple[str, ...] = ("SELF_SCOPE", "SELF_PUBLIC_ENDPOINT", "SELF_CALLBACK_URL")


def missing_required_config() -> list[str]:
    """Return the names of required environment variables that are unset."""
    return [name for name in REQUIRED_ENV_VARS if not os.getenv(name)]


# =============================================================================
# ORCHESTRATION SWITCHES
# =============================================================================

# HTTP status for a proof the passport-attestation verifier rejected.
# Deployments have used both 400 and 500.
REJECTED_PROOF_STATUS: int = int(os.getenv("REJECTED_PROOF_STATUS", "400"))

# Expected bech32 prefix of wallet addresses carried in user-defined data
WALLET_ADDRESS_PREFIX: str = os.getenv("WALLET_ADDRESS_PREFIX", "twilight")

# When False (default): a bad wallet address only skips the binding write
# When True: the request fails with 422
ADDRESS_FAILURE_BLOCKS: bool = _env_bool("ADDRESS_FAILURE_BLOCKS", "false")

# "append" (default): every binding is a new row
# "upsert": one row per (identifier, provider), address is replaced
BINDING_MODE: str = os.getenv("BINDING_MODE", "append").lower()

# Opt-in whitespace/case normalization before identifier comparison
RECONCILE_NORMALIZE: bool = _env_bool("RECONCILE_NORMALIZE", "false")

VERIFIER_TIMEOUT_SECONDS: float = float(os.getenv("VERIFIER_TIMEOUT", "30.0"))
STORAGE_TIMEOUT_SECONDS: float = float(os.getenv("STORAGE_TIMEOUT", "5.0"))


# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

def _get_database_url() -> str:
    """Get database URL from environment.

    Priority:
    1. DATABASE_URL - explicit full connection string
    2. DB_HOST/DB_USER/DB_PASSWORD/DB_NAME/DB_PORT - PostgreSQL components
    3. SQLite fallback for local development
    """
    if url := os.getenv("DATABASE_URL"):
        return url

    host = os.getenv("DB_HOST")
    if host:
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "postgres")
        db = os.getenv("DB_NAME", "zkpassport")
        port = os.getenv("DB_PORT", "5432")
        return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db}"

    return "sqlite:///./zkpass_gateway.db"


DATABASE_URL: str = _get_database_url()


# =============================================================================
# OPERATIONAL SETTINGS
# =============================================================================

ENVIRONMENT: str = os.getenv("GATEWAY_ENV", "development")
SERVICE_PORT: int = int(os.getenv("PORT", "3001"))

# Refuse to start when required provider settings are missing
STRICT_STARTUP: bool = _env_bool("STRICT_STARTUP", "false")

CORS_ORIGINS: list[str] = _env_list(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001,http://localhost:4173,http://localhost:5173",
)
CORS_ALLOW_CREDENTIALS: bool = _env_bool("CORS_ALLOW_CREDENTIALS", "true")
CORS_ALLOWED_HEADERS: list[str] = _env_list("CORS_ALLOWED_HEADERS", "Content-Type")
CORS_MAX_AGE: int = int(os.getenv("CORS_MAX_AGE", "86400"))

# Controls whether /admin returns configuration and audit data
ADMIN_ENDPOINT_ENABLED: bool = _env_bool("ADMIN_ENDPOINT_ENABLED", "true")

AUDIT_ENABLED: bool = _env_bool("AUDIT_ENABLED", "true")
