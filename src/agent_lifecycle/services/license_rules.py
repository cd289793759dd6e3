"""License renewal rules.

Pure decision logic for license transitions. Nothing in this module touches
the database or reads the clock: callers pass ``today`` explicitly and apply
the returned decision through the license store. Denials are returned as
typed reasons on the decision, never raised.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any
from uuid import UUID

from agent_lifecycle.models.domain.license import (
    IN_FORCE_STATUSES,
    ExpiryStatus,
    License,
    LicenseStatus,
    LicenseType,
)

PROVISIONAL_MAX_RENEWALS = 2
PROVISIONAL_VALIDITY_YEARS = 1
RENEWAL_VALIDITY_YEARS = 1
PERMANENT_VALIDITY_YEARS = 5
EXAM_WINDOW_YEARS = 3


class RuleAction(StrEnum):
    """Transitions the rule engine can decide on."""

    RENEW = "RENEW"
    CONVERT_TO_PERMANENT = "CONVERT_TO_PERMANENT"
    EXPIRE = "EXPIRE"


class DenialReason(StrEnum):
    """Typed reasons a transition is denied."""

    LICENSE_EXPIRED = "LICENSE_EXPIRED"
    LICENSE_TERMINATED = "LICENSE_TERMINATED"
    LICENSE_SUSPENDED = "LICENSE_SUSPENDED"
    MAX_PROVISIONAL_RENEWALS = "MAX_PROVISIONAL_RENEWALS"
    CONVERSION_WINDOW_CLOSED = "CONVERSION_WINDOW_CLOSED"
    NOT_PROVISIONAL = "NOT_PROVISIONAL"
    EXAM_NOT_PASSED = "EXAM_NOT_PASSED"
    EXAM_DETAILS_MISSING = "EXAM_DETAILS_MISSING"
    EXAM_OUTSIDE_WINDOW = "EXAM_OUTSIDE_WINDOW"
    NOT_EXPIRED = "NOT_EXPIRED"
    NOT_ACTIVE = "NOT_ACTIVE"


_BLOCKING_STATUS_DENIALS: dict[LicenseStatus, tuple[DenialReason, str]] = {
    LicenseStatus.EXPIRED: (DenialReason.LICENSE_EXPIRED, "License is expired"),
    LicenseStatus.TERMINATED: (DenialReason.LICENSE_TERMINATED, "License is terminated"),
    LicenseStatus.SUSPENDED: (DenialReason.LICENSE_SUSPENDED, "License is suspended"),
}


@dataclass(frozen=True)
class Denial:
    """Why a transition was refused."""

    reason: DenialReason
    message: str


@dataclass(frozen=True)
class RuleContext:
    """Inputs a decision needs besides the license itself."""

    today: date
    exam_passed: bool = False
    exam_date: date | None = None
    certificate_number: str | None = None


@dataclass(frozen=True)
class RuleDecision:
    """Outcome of a rule evaluation.

    ``changes`` holds the new field values and ``previous`` the values they
    replace. ``expected_version`` is the license version the decision was
    computed against; the store rejects it if the row moved on since.
    """

    action: RuleAction
    allow: bool
    license_id: UUID
    expected_version: int
    message: str
    changes: dict[str, Any] = field(default_factory=dict)
    previous: dict[str, Any] = field(default_factory=dict)
    denial: Denial | None = None

    @property
    def reason(self) -> DenialReason | None:
        """Denial reason, if denied."""
        return self.denial.reason if self.denial else None

    @property
    def new_status(self) -> LicenseStatus | None:
        """Status the license moves to, if the decision changes it."""
        status = self.changes.get("status")
        return LicenseStatus(status) if status is not None else None


def add_years(day: date, years: int) -> date:
    """Add calendar years, mapping Feb 29 to Feb 28 in non-leap years."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def initial_renewal_date(license_type: LicenseType, license_date: date, exam_passed: bool) -> date:
    """Renewal date for a newly issued license.

    Provisional licenses run one year; a permanent license issued after the
    exam runs five.
    """
    if license_type == LicenseType.PERMANENT and exam_passed:
        return add_years(license_date, PERMANENT_VALIDITY_YEARS)
    return add_years(license_date, PROVISIONAL_VALIDITY_YEARS)


def is_expired(license: License, today: date) -> bool:
    """Check whether a license has lapsed.

    A RENEWED license is treated as in force regardless of its date.
    """
    return today > license.renewal_date and license.status != LicenseStatus.RENEWED


def days_until_expiry(license: License, today: date) -> int:
    """Days left until the renewal date (negative once past)."""
    return (license.renewal_date - today).days


def expiry_status(license: License, today: date, soon_days: int = 30) -> ExpiryStatus:
    """Bucket a license for display."""
    remaining = days_until_expiry(license, today)
    if remaining < 0:
        return ExpiryStatus.EXPIRED
    if remaining <= soon_days:
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.VALID


def renewal_denial(license: License, today: date) -> Denial | None:
    """Return why a license cannot be renewed, or None if it can."""
    blocking = _BLOCKING_STATUS_DENIALS.get(license.status)
    if blocking is not None:
        return Denial(*blocking)

    if license.license_type == LicenseType.PROVISIONAL:
        if license.renewal_count >= PROVISIONAL_MAX_RENEWALS:
            return Denial(
                DenialReason.MAX_PROVISIONAL_RENEWALS,
                "Provisional license can only be renewed 2 times. "
                "Must pass exam to convert to permanent.",
            )
        window_end = add_years(license.license_date, EXAM_WINDOW_YEARS)
        if today > window_end and not license.exam_passed:
            return Denial(
                DenialReason.CONVERSION_WINDOW_CLOSED,
                "Must pass exam within 3 years of provisional license",
            )

    return None


def can_renew(license: License, today: date) -> bool:
    """Check renewal eligibility."""
    return renewal_denial(license, today) is None


def _denied(license: License, action: RuleAction, denial: Denial) -> RuleDecision:
    return RuleDecision(
        action=action,
        allow=False,
        license_id=license.id,
        expected_version=license.version,
        message=denial.message,
        denial=denial,
    )


def _allowed(
    license: License, action: RuleAction, message: str, changes: dict[str, Any]
) -> RuleDecision:
    previous = {key: getattr(license, key) for key in changes}
    return RuleDecision(
        action=action,
        allow=True,
        license_id=license.id,
        expected_version=license.version,
        message=message,
        changes=changes,
        previous=previous,
    )


def renew(license: License, today: date) -> RuleDecision:
    """Extend a license by one year from today."""
    denial = renewal_denial(license, today)
    if denial is not None:
        return _denied(license, RuleAction.RENEW, denial)

    new_count = license.renewal_count + 1
    if license.license_type == LicenseType.PROVISIONAL:
        message = f"Provisional license renewed for 1 year (renewal {new_count}/2)"
    else:
        message = "Permanent license renewed for 1 year"

    return _allowed(
        license,
        RuleAction.RENEW,
        message,
        {
            "renewal_date": add_years(today, RENEWAL_VALIDITY_YEARS),
            "renewal_count": new_count,
            "status": LicenseStatus.RENEWED,
        },
    )


def convert_to_permanent(
    license: License,
    exam_date: date | None,
    certificate_number: str | None,
    exam_passed: bool = True,
) -> RuleDecision:
    """Convert a provisional license after the licentiate exam."""
    action = RuleAction.CONVERT_TO_PERMANENT

    blocking = _BLOCKING_STATUS_DENIALS.get(license.status)
    if blocking is not None:
        return _denied(license, action, Denial(*blocking))

    if license.license_type != LicenseType.PROVISIONAL:
        return _denied(
            license,
            action,
            Denial(
                DenialReason.NOT_PROVISIONAL,
                "Can only convert provisional licenses to permanent",
            ),
        )
    if not exam_passed:
        return _denied(
            license,
            action,
            Denial(DenialReason.EXAM_NOT_PASSED, "Exam must be passed before conversion"),
        )
    if exam_date is None or not certificate_number:
        return _denied(
            license,
            action,
            Denial(
                DenialReason.EXAM_DETAILS_MISSING,
                "Exam details required for conversion to permanent",
            ),
        )
    if exam_date > add_years(license.license_date, EXAM_WINDOW_YEARS):
        return _denied(
            license,
            action,
            Denial(
                DenialReason.EXAM_OUTSIDE_WINDOW,
                "Exam must be passed within 3 years of provisional license",
            ),
        )

    return _allowed(
        license,
        action,
        "License converted to permanent after passing exam. Valid for 5 years.",
        {
            "license_type": LicenseType.PERMANENT,
            "renewal_date": add_years(exam_date, PERMANENT_VALIDITY_YEARS),
            "status": LicenseStatus.ACTIVE,
            "exam_passed": True,
            "exam_date": exam_date,
            "certificate_number": certificate_number,
        },
    )


def expire(license: License, today: date) -> RuleDecision:
    """Mark an ACTIVE license that has lapsed as EXPIRED."""
    if license.status != LicenseStatus.ACTIVE:
        return _denied(
            license,
            RuleAction.EXPIRE,
            Denial(DenialReason.NOT_ACTIVE, f"License is {license.status}, not ACTIVE"),
        )
    if not is_expired(license, today):
        return _denied(
            license,
            RuleAction.EXPIRE,
            Denial(DenialReason.NOT_EXPIRED, "License has not reached its renewal date"),
        )
    return _allowed(
        license,
        RuleAction.EXPIRE,
        "License expired",
        {"status": LicenseStatus.EXPIRED},
    )


def decide(license: License, action: RuleAction, context: RuleContext) -> RuleDecision:
    """Evaluate a requested transition against the renewal rules."""
    if action == RuleAction.RENEW:
        return renew(license, context.today)
    if action == RuleAction.CONVERT_TO_PERMANENT:
        return convert_to_permanent(
            license,
            exam_date=context.exam_date,
            certificate_number=context.certificate_number,
            exam_passed=context.exam_passed,
        )
    if action == RuleAction.EXPIRE:
        return expire(license, context.today)
    raise ValueError(f"Unsupported rule action: {action}")


def is_in_force(license: License, today: date) -> bool:
    """Check whether a license still authorises the agent to sell."""
    return license.status in IN_FORCE_STATUSES and not is_expired(license, today)
