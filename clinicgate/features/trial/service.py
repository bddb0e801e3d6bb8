"""
clinicgate/features/trial/service.py

Trial status calculator.

Turns a tenant's trial fields into a classification, a banner message and
the list of features blocked by an expired trial. Pure: same tenant + same
now = same TrialStatus. Nothing is cached.

Day boundary policy: days remaining is (trial end - now) in whole days,
truncated toward zero on both sides. 2.9 days -> 2, and a trial ending
later today -> 0 ("last day"). An end earlier today is also 0; yesterday
at midnight seen from this afternoon is -1.5 days -> -1 ("1 day ago").
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from clinicgate.core.config import settings
from clinicgate.models.tenant import Tenant
from clinicgate.models.trial import BannerSeverity, FeatureAccess, TrialState, TrialStatus


SECONDS_PER_DAY = 24 * 60 * 60
ENDING_SOON_DAYS = 3

# Features locked once a trial expires (order is the display order)
TRIAL_BLOCKED_FEATURES = (
    "pets",
    "appointments",
    "customers",
    "inventory",
    "sales",
    "reports",
    "automations",
    "medical_history",
)
TRIAL_EXPIRED_REASON = "Trial expired"

_BANNER_SEVERITY = {
    TrialState.ACTIVE: BannerSeverity.SUCCESS,
    TrialState.ENDING_SOON: BannerSeverity.WARNING,
    TrialState.EXPIRED: BannerSeverity.DANGER,
    TrialState.GRACE_PERIOD: BannerSeverity.WARNING,
    TrialState.CONVERTED: BannerSeverity.INFO,
}

_UPGRADE_PROMPT_STATES = frozenset({TrialState.ENDING_SOON, TrialState.EXPIRED, TrialState.GRACE_PERIOD})


def _normalize_now(now: Optional[Any]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if getattr(now, "tzinfo", None) is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _in_trial(tenant: Tenant) -> bool:
    return bool(tenant.is_trial_period) and tenant.trial_ends_at is not None


def days_until(trial_ends_at: datetime, now: Optional[Any] = None) -> int:
    """Whole days from now until trial_ends_at, truncated toward zero."""
    normalized_now = _normalize_now(now)
    seconds = (trial_ends_at - normalized_now).total_seconds()
    return int(seconds / SECONDS_PER_DAY)


def calculate_trial_days_remaining(tenant: Tenant, now: Optional[Any] = None) -> Optional[int]:
    """Days remaining in the trial, or None when the tenant is not in a trial."""
    if not _in_trial(tenant):
        return None
    return days_until(tenant.trial_ends_at, now)


def _days(count: int) -> str:
    return f"{count} day" if count == 1 else f"{count} days"


def get_trial_message(days_remaining: int) -> str:
    if days_remaining < 0:
        return f"Your free trial expired {_days(abs(days_remaining))} ago"
    if days_remaining == 0:
        return "Today is the last day of your free trial!"
    if days_remaining == 1:
        return "Your free trial ends tomorrow"
    if days_remaining <= ENDING_SOON_DAYS:
        return f"Your free trial ends in {_days(days_remaining)}"
    return f"You have {_days(days_remaining)} remaining in your free trial"


def classify_trial_days(days_remaining: int) -> TrialState:
    if days_remaining < 0:
        return TrialState.EXPIRED
    if days_remaining <= ENDING_SOON_DAYS:
        return TrialState.ENDING_SOON
    return TrialState.ACTIVE


def banner_severity_for(state: TrialState) -> BannerSeverity:
    return _BANNER_SEVERITY[TrialState(state)]


def _blocked_features() -> tuple:
    return tuple(
        FeatureAccess(feature=feature, allowed=False, reason=TRIAL_EXPIRED_REASON)
        for feature in TRIAL_BLOCKED_FEATURES
    )


def calculate_trial_status(tenant: Tenant, now: Optional[Any] = None) -> TrialStatus:
    """
    Classify the tenant's trial.

    Tenants outside the trial track (paid, or no end date) are CONVERTED;
    their access is governed by subscription_status, not by this function.
    Only EXPIRED produces blocked features.
    """
    if not _in_trial(tenant):
        return TrialStatus(
            status=TrialState.CONVERTED,
            days_remaining=0,
            display_message="",
            banner_severity=banner_severity_for(TrialState.CONVERTED),
            show_upgrade_prompt=False,
            blocked_features=(),
        )

    days_remaining = days_until(tenant.trial_ends_at, now)
    state = classify_trial_days(days_remaining)

    return TrialStatus(
        status=state,
        days_remaining=days_remaining,
        display_message=get_trial_message(days_remaining),
        banner_severity=banner_severity_for(state),
        show_upgrade_prompt=state in _UPGRADE_PROMPT_STATES,
        blocked_features=_blocked_features() if state == TrialState.EXPIRED else (),
    )


def trial_window_end(start: datetime, days: Optional[int] = None) -> datetime:
    """End instant of a trial that starts at `start`."""
    length = settings.TRIAL_PERIOD_DAYS if days is None else days
    return _normalize_now(start) + timedelta(days=length)
