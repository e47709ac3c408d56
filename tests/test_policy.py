"""Tests for expiry-horizon and issuing-country predicates."""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.attest.policy import (
    add_years,
    country_ok,
    evaluate,
    expiry_ok,
    parse_expiry,
)

ALLOWED = frozenset({"CHN", "IDN", "MYS", "USA"})
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestExpiry:
    """One calendar year of remaining validity is required."""

    def test_400_days_out_passes(self):
        assert expiry_ok(NOW + timedelta(days=400), NOW) is True

    def test_30_days_out_fails(self):
        assert expiry_ok(NOW + timedelta(days=30), NOW) is False

    def test_exactly_one_year_fails(self):
        """The comparison is strict."""
        assert expiry_ok(add_years(NOW, 1), NOW) is False

    def test_one_year_and_a_second_passes(self):
        assert expiry_ok(add_years(NOW, 1) + timedelta(seconds=1), NOW) is True

    def test_missing_expiry_fails(self):
        assert expiry_ok(None, NOW) is False

    def test_naive_now_treated_as_utc(self):
        naive = NOW.replace(tzinfo=None)
        assert expiry_ok(NOW + timedelta(days=400), naive) is True

    def test_leap_day_lands_on_feb_28(self):
        leap = datetime(2028, 2, 29, tzinfo=timezone.utc)
        assert add_years(leap, 1) == datetime(2029, 2, 28, tzinfo=timezone.utc)


class TestParseExpiry:

    @pytest.mark.parametrize("value", ["2030-01-31", "2030-01-31T00:00:00Z", "2030-01-31T00:00:00+00:00"])
    def test_iso_strings(self, value):
        assert parse_expiry(value) == datetime(2030, 1, 31, tzinfo=timezone.utc)

    def test_date_object(self):
        assert parse_expiry(date(2030, 1, 31)) == datetime(2030, 1, 31, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "31/01/2030", "not-a-date", 20300131])
    def test_unparseable_returns_none(self, value):
        assert parse_expiry(value) is None


class TestCountry:

    @pytest.mark.parametrize("code", sorted(ALLOWED))
    def test_allowed(self, code):
        assert country_ok(code, ALLOWED) is True

    def test_not_allowed(self):
        assert country_ok("FRA", ALLOWED) is False

    def test_match_is_exact(self):
        assert country_ok("usa", ALLOWED) is False

    def test_missing(self):
        assert country_ok(None, ALLOWED) is False


class TestEvaluate:

    def test_passing_disclosure(self):
        report = evaluate(
            {"expiryDate": "2031-01-01", "issuingState": "MYS"},
            allowed_countries=ALLOWED, now=NOW,
        )
        assert report.passed
        assert report.expiry_ok and report.country_ok
        assert report.issuing_country == "MYS"
        assert report.expiry_date == datetime(2031, 1, 1, tzinfo=timezone.utc)

    def test_both_predicates_reported(self):
        report = evaluate(
            {"expiryDate": "2026-04-01", "issuingState": "FRA"},
            allowed_countries=ALLOWED, now=NOW,
        )
        assert not report.passed
        assert len(report.violations) == 2
        assert "FRA" in report.violations[1]

    def test_empty_disclosure(self):
        report = evaluate({}, allowed_countries=ALLOWED, now=NOW)
        assert report.expiry_date is None
        assert report.expiry_ok is False
        assert report.country_ok is False

    def test_custom_horizon(self):
        report = evaluate(
            {"expiryDate": "2027-06-01", "issuingState": "USA"},
            allowed_countries=ALLOWED, now=NOW, horizon_years=2,
        )
        assert report.expiry_ok is False
