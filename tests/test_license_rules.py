"""Tests for the license renewal rules.

The rules are pure functions over immutable License models, so these tests
need no database.
"""

from datetime import date
from uuid import uuid4

import pytest

from agent_lifecycle.models.domain.license import License, LicenseStatus, LicenseType
from agent_lifecycle.services import license_rules
from agent_lifecycle.services.license_rules import DenialReason, RuleAction, RuleContext


def make_license(**overrides) -> License:
    values = {
        "id": uuid4(),
        "agent_id": uuid4(),
        "license_line": "LIFE",
        "license_type": LicenseType.PROVISIONAL,
        "license_number": "LIC-0001",
        "license_date": date(2023, 1, 1),
        "renewal_date": date(2024, 1, 1),
        "renewal_count": 0,
        "status": LicenseStatus.ACTIVE,
        "version": 1,
    }
    values.update(overrides)
    return License(**values)


def applied(license: License, decision: license_rules.RuleDecision) -> License:
    """What the store would hold after applying an allowed decision."""
    return license.model_copy(update={**decision.changes, "version": license.version + 1})


class TestAddYears:
    """Tests for calendar year arithmetic."""

    def test_plain_date(self) -> None:
        assert license_rules.add_years(date(2024, 1, 1), 1) == date(2025, 1, 1)

    def test_leap_day_maps_to_feb_28(self) -> None:
        """Feb 29 has no counterpart in a non-leap year."""
        assert license_rules.add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert license_rules.add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)


class TestInitialRenewalDate:
    """Tests for the validity of newly issued licenses."""

    def test_provisional_runs_one_year(self) -> None:
        assert license_rules.initial_renewal_date(
            LicenseType.PROVISIONAL, date(2023, 1, 1), exam_passed=False
        ) == date(2024, 1, 1)

    def test_permanent_with_exam_runs_five_years(self) -> None:
        assert license_rules.initial_renewal_date(
            LicenseType.PERMANENT, date(2023, 1, 1), exam_passed=True
        ) == date(2028, 1, 1)


class TestRenew:
    """Tests for renewal eligibility and its effects."""

    def test_renew_extends_from_today(self) -> None:
        """The new renewal date is one year from the renewal call, not from the old date."""
        license = make_license()
        decision = license_rules.renew(license, date(2023, 11, 15))

        assert decision.allow
        assert decision.changes["renewal_date"] == date(2024, 11, 15)
        assert decision.changes["renewal_count"] == 1
        assert decision.new_status == LicenseStatus.RENEWED
        assert decision.previous["renewal_date"] == date(2024, 1, 1)
        assert decision.expected_version == 1

    def test_third_provisional_renewal_denied(self) -> None:
        license = make_license(renewal_count=2)
        decision = license_rules.renew(license, date(2025, 1, 1))

        assert not decision.allow
        assert decision.reason == DenialReason.MAX_PROVISIONAL_RENEWALS
        assert decision.changes == {}

    def test_provisional_denied_after_exam_window(self) -> None:
        """Three years after issue without the exam, a provisional license is stuck."""
        license = make_license(renewal_count=1, renewal_date=date(2026, 3, 1))
        decision = license_rules.renew(license, date(2026, 1, 2))

        assert not decision.allow
        assert decision.reason == DenialReason.CONVERSION_WINDOW_CLOSED

    def test_permanent_renewal_has_no_count_limit(self) -> None:
        license = make_license(
            license_type=LicenseType.PERMANENT, renewal_count=7, renewal_date=date(2030, 1, 1)
        )
        decision = license_rules.renew(license, date(2030, 1, 1))

        assert decision.allow
        assert decision.changes["renewal_count"] == 8
        assert decision.message == "Permanent license renewed for 1 year"

    @pytest.mark.parametrize(
        "status,reason",
        [
            (LicenseStatus.EXPIRED, DenialReason.LICENSE_EXPIRED),
            (LicenseStatus.TERMINATED, DenialReason.LICENSE_TERMINATED),
            (LicenseStatus.SUSPENDED, DenialReason.LICENSE_SUSPENDED),
        ],
    )
    def test_blocking_statuses_deny_renewal(self, status: LicenseStatus, reason: DenialReason) -> None:
        decision = license_rules.renew(make_license(status=status), date(2023, 6, 1))

        assert not decision.allow
        assert decision.reason == reason
        assert not license_rules.can_renew(make_license(status=status), date(2023, 6, 1))

    def test_renewal_history_end_to_end(self) -> None:
        """Issue on 2023-01-01, renew twice, then the third attempt is refused."""
        license = make_license()
        assert license.renewal_date == date(2024, 1, 1)

        first = license_rules.renew(license, date(2024, 1, 1))
        assert first.allow
        license = applied(license, first)
        assert license.renewal_date == date(2025, 1, 1)
        assert license.renewal_count == 1
        assert license_rules.is_in_force(license, date(2024, 1, 2))

        second = license_rules.renew(license, date(2025, 1, 1))
        assert second.allow
        license = applied(license, second)
        assert license.renewal_count == 2
        assert license.renewal_date == date(2026, 1, 1)
        assert license.version == 3

        third = license_rules.renew(license, date(2026, 1, 1))
        assert not third.allow
        assert third.reason == DenialReason.MAX_PROVISIONAL_RENEWALS


class TestConvertToPermanent:
    """Tests for exam-based conversion."""

    def test_conversion_sets_five_year_validity_from_exam(self) -> None:
        license = make_license(renewal_count=2)
        decision = license_rules.convert_to_permanent(
            license, exam_date=date(2025, 6, 1), certificate_number="CERT-9"
        )

        assert decision.allow
        assert decision.changes["license_type"] == LicenseType.PERMANENT
        assert decision.changes["renewal_date"] == date(2030, 6, 1)
        assert decision.changes["exam_passed"] is True
        assert decision.new_status == LicenseStatus.ACTIVE

    def test_conversion_resets_renewal_limit(self) -> None:
        """After conversion the provisional renewal cap no longer applies."""
        license = make_license(renewal_count=2)
        converted = applied(
            license,
            license_rules.convert_to_permanent(license, date(2025, 6, 1), "CERT-9"),
        )

        assert license_rules.renew(converted, date(2030, 6, 1)).allow

    def test_exam_outside_window_denied(self) -> None:
        decision = license_rules.convert_to_permanent(
            make_license(), exam_date=date(2026, 1, 2), certificate_number="CERT-9"
        )

        assert not decision.allow
        assert decision.reason == DenialReason.EXAM_OUTSIDE_WINDOW

    def test_missing_certificate_denied(self) -> None:
        decision = license_rules.convert_to_permanent(
            make_license(), exam_date=date(2024, 1, 1), certificate_number=None
        )

        assert decision.reason == DenialReason.EXAM_DETAILS_MISSING

    def test_failed_exam_denied(self) -> None:
        decision = license_rules.convert_to_permanent(
            make_license(), date(2024, 1, 1), "CERT-9", exam_passed=False
        )

        assert decision.reason == DenialReason.EXAM_NOT_PASSED

    def test_permanent_license_cannot_convert(self) -> None:
        decision = license_rules.convert_to_permanent(
            make_license(license_type=LicenseType.PERMANENT), date(2024, 1, 1), "CERT-9"
        )

        assert decision.reason == DenialReason.NOT_PROVISIONAL


class TestExpiry:
    """Tests for expiry checks and the derived expiry view."""

    def test_not_expired_on_renewal_date(self) -> None:
        license = make_license()
        assert not license_rules.is_expired(license, date(2024, 1, 1))
        assert license_rules.is_expired(license, date(2024, 1, 2))

    def test_renewed_license_never_expired(self) -> None:
        license = make_license(status=LicenseStatus.RENEWED)
        assert not license_rules.is_expired(license, date(2030, 1, 1))

    def test_expire_only_from_active(self) -> None:
        decision = license_rules.expire(make_license(status=LicenseStatus.RENEWED), date(2030, 1, 1))

        assert not decision.allow
        assert decision.reason == DenialReason.NOT_ACTIVE

    def test_expire_before_renewal_date_denied(self) -> None:
        decision = license_rules.expire(make_license(), date(2023, 12, 31))

        assert decision.reason == DenialReason.NOT_EXPIRED

    def test_expire_lapsed_license(self) -> None:
        decision = license_rules.expire(make_license(), date(2024, 1, 2))

        assert decision.allow
        assert decision.new_status == LicenseStatus.EXPIRED

    @pytest.mark.parametrize(
        "today,bucket,days",
        [
            (date(2023, 11, 1), "VALID", 61),
            (date(2023, 12, 2), "EXPIRING_SOON", 30),
            (date(2024, 1, 1), "EXPIRING_SOON", 0),
            (date(2024, 1, 5), "EXPIRED", -4),
        ],
    )
    def test_expiry_status_buckets(self, today: date, bucket: str, days: int) -> None:
        license = make_license()

        assert license_rules.days_until_expiry(license, today) == days
        assert license_rules.expiry_status(license, today) == bucket


class TestDecide:
    """Tests for the single rule entry point."""

    def test_dispatches_by_action(self) -> None:
        license = make_license()
        context = RuleContext(
            today=date(2023, 6, 1), exam_date=date(2023, 5, 1), certificate_number="C-1"
        )

        assert license_rules.decide(license, RuleAction.RENEW, context).action == RuleAction.RENEW
        converted = license_rules.decide(license, RuleAction.CONVERT_TO_PERMANENT, context)
        assert converted.allow is False
        assert converted.reason == DenialReason.EXAM_NOT_PASSED

        passed = RuleContext(
            today=date(2023, 6, 1),
            exam_passed=True,
            exam_date=date(2023, 5, 1),
            certificate_number="C-1",
        )
        assert license_rules.decide(license, RuleAction.CONVERT_TO_PERMANENT, passed).allow

    def test_denial_never_raises(self) -> None:
        """Denials come back as data so callers can report them."""
        decision = license_rules.decide(
            make_license(status=LicenseStatus.TERMINATED),
            RuleAction.RENEW,
            RuleContext(today=date(2023, 6, 1)),
        )

        assert decision.denial is not None
        assert decision.message == "License is terminated"
