"""Business policy predicates over disclosed passport attributes.

Two independent checks are applied on top of whatever the external verifier
already enforces:

- expiry horizon: the document must remain valid for at least one calendar
  year past "now"
- issuing country: the issuing state must be on a fixed allow-list

Both are always computed and logged. Whether they block the response is
decided by the orchestrator (ENFORCE_POLICY).
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

log = logging.getLogger(__name__)


def add_years(moment: datetime, years: int) -> datetime:
    """Shift a datetime by whole calendar years; Feb 29 lands on Feb 28."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def parse_expiry(value: Any) -> Optional[datetime]:
    """Parse a disclosed expiry date into an aware UTC datetime.

    Accepts ``datetime``/``date`` objects and ISO-8601 strings
    (``2030-01-31``, ``2030-01-31T00:00:00Z``). Returns None when the value
    is absent or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def expiry_ok(expiry: Optional[datetime], now: datetime, horizon_years: int = 1) -> bool:
    """True iff ``expiry`` is strictly later than ``now`` plus the horizon."""
    if expiry is None:
        return False
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return expiry > add_years(now, horizon_years)


def country_ok(issuing_country: Optional[str], allow_list: Iterable[str]) -> bool:
    """True iff the issuing country is on the allow-list (exact match)."""
    return issuing_country is not None and issuing_country in set(allow_list)


@dataclass
class PolicyReport:
    """Result of evaluating both predicates against one disclosure."""

    expiry_date: Optional[datetime]
    expiry_ok: bool
    issuing_country: Optional[str]
    country_ok: bool
    violations: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.violations


def evaluate(
    disclosed: dict[str, Any],
    *,
    allowed_countries: Iterable[str],
    now: Optional[datetime] = None,
    horizon_years: int = 1,
) -> PolicyReport:
    """Evaluate the expiry and country predicates on disclosed attributes."""
    now = now or datetime.now(timezone.utc)
    expiry = parse_expiry(disclosed.get("expiryDate"))
    country = disclosed.get("issuingState")

    report = PolicyReport(
        expiry_date=expiry,
        expiry_ok=expiry_ok(expiry, now, horizon_years),
        issuing_country=country,
        country_ok=country_ok(country, allowed_countries),
    )
    if not report.expiry_ok:
        report.violations.append("document expires within the required horizon")
    if not report.country_ok:
        report.violations.append(f"issuing country {country!r} is not allowed")

    log.info(
        "policy evaluated",
        extra={"details": {
            "expiryDate": expiry.date().isoformat() if expiry else None,
            "hasOneYearValidity": report.expiry_ok,
            "issuingCountry": country,
            "isCountryAllowed": report.country_ok,
        }},
    )
    return report
