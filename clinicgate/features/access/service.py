"""
clinicgate/features/access/service.py

Access gate.

One predicate (is_entitled) backs three surfaces:
- Route guard: deny + redirect to subscription management
- Section gating: every settings section is tagged requires_subscription
- Initial-section selection for deep links

Subscription management itself is the single ungated section so a
de-entitled tenant always keeps a path to re-subscribe.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict

from clinicgate.core.config import settings
from clinicgate.core.errors import SubscriptionRequiredError
from clinicgate.models.tenant import SubscriptionStatus, Tenant


logger = logging.getLogger(__name__)

REASON_TRIAL_EXPIRED = "trial_expired"
REASON_PAST_DUE = "payment_past_due"
REASON_CANCELLED = "subscription_cancelled"
REASON_INACTIVE = "subscription_inactive"

LOCK_REASON = "An active subscription is required"


class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    requires_subscription: bool = True


class SectionAccess(BaseModel):
    """Section as rendered for one tenant. Locked sections stay visible."""
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    requires_subscription: bool
    locked: bool
    lock_reason: Optional[str] = None


SETTINGS_SECTIONS = (
    Section(key="general", label="General"),
    Section(key="clinic", label="Clinic"),
    Section(key="schedule", label="Schedule"),
    Section(key="notifications", label="Notifications"),
    Section(key="team", label="Team"),
    Section(key="api", label="API"),
    Section(key="subscription", label="Subscription", requires_subscription=False),
)


def validate_sections(sections: Sequence[Section]) -> None:
    """Raise ValueError unless exactly one section is ungated and keys are unique."""
    keys = [section.key for section in sections]
    if len(set(keys)) != len(keys):
        raise ValueError("Section keys must be unique")
    ungated = [section.key for section in sections if not section.requires_subscription]
    if len(ungated) != 1:
        raise ValueError(
            f"Exactly one section must be reachable without a subscription, found {len(ungated)}"
        )


validate_sections(SETTINGS_SECTIONS)


def _normalize_now(now: Optional[Any]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if getattr(now, "tzinfo", None) is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def has_active_subscription(tenant: Tenant, now: Optional[Any] = None) -> bool:
    """
    True for a paid ACTIVE subscription or a TRIALING tenant whose trial
    end is still in the future. Every other status is inactive.
    """
    status = tenant.subscription_status
    if status == SubscriptionStatus.ACTIVE.value:
        return not tenant.is_trial_period
    if status == SubscriptionStatus.TRIALING.value:
        if not tenant.is_trial_period or tenant.trial_ends_at is None:
            return False
        return tenant.trial_ends_at > _normalize_now(now)
    return False


def _requires_subscription(resource: Union[Section, Mapping[str, Any], Any]) -> bool:
    if isinstance(resource, Mapping):
        return bool(resource.get("requires_subscription", True))
    return bool(getattr(resource, "requires_subscription", True))


def is_entitled(subscription_active: bool, resource) -> bool:
    return not _requires_subscription(resource) or bool(subscription_active)


def evaluate_sections(
    subscription_active: bool,
    sections: Sequence[Section] = SETTINGS_SECTIONS,
) -> List[SectionAccess]:
    result = []
    for section in sections:
        allowed = is_entitled(subscription_active, section)
        result.append(
            SectionAccess(
                key=section.key,
                label=section.label,
                requires_subscription=section.requires_subscription,
                locked=not allowed,
                lock_reason=None if allowed else LOCK_REASON,
            )
        )
    return result


def resolve_initial_section(
    requested: Optional[str],
    subscription_active: bool,
    sections: Sequence[Section] = SETTINGS_SECTIONS,
) -> str:
    """
    Pick the section to open on load.

    Not entitled: always the subscription section, whatever was asked for.
    Entitled: the requested section if it exists, else the default section.
    """
    if not subscription_active:
        return settings.SUBSCRIPTION_SECTION
    known = {section.key for section in sections}
    if requested and requested in known:
        return requested
    return settings.DEFAULT_SECTION


def subscription_denial_reason(tenant: Tenant, now: Optional[Any] = None) -> Optional[str]:
    """Machine-readable reason code for a redirect, or None when entitled."""
    if has_active_subscription(tenant, now):
        return None
    status = tenant.subscription_status
    if status == SubscriptionStatus.TRIALING.value or (
        tenant.is_trial_period and tenant.trial_ends_at is not None
    ):
        return REASON_TRIAL_EXPIRED
    if status == SubscriptionStatus.PAST_DUE.value:
        return REASON_PAST_DUE
    if status == SubscriptionStatus.CANCELLED.value:
        return REASON_CANCELLED
    return REASON_INACTIVE


def build_subscription_redirect(reason: str) -> str:
    query = urlencode({"tab": settings.SUBSCRIPTION_SECTION, "reason": reason})
    return f"{settings.SUBSCRIPTION_MANAGEMENT_PATH}?{query}"


def require_active_subscription(tenant: Tenant, now: Optional[Any] = None) -> Tenant:
    """
    Route guard.

    Returns the tenant when entitled.

    Raises:
        SubscriptionRequiredError: carrying the redirect target and reason code
    """
    reason = subscription_denial_reason(tenant, now)
    if reason is None:
        logger.info(
            "[access] allowed",
            extra={"tenant_id": tenant.id, "status": tenant.subscription_status},
        )
        return tenant

    logger.warning(
        "[access] denied",
        extra={"tenant_id": tenant.id, "status": tenant.subscription_status, "reason": reason},
    )
    raise SubscriptionRequiredError(
        "An active subscription is required",
        redirect_url=build_subscription_redirect(reason),
        reason=reason,
    )
