"""
clinicgate/models/tenant.py

Tenant record as read from the persistence layer.

The engine only reads tenants; subscription fields are written by the
payment webhook collaborator.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator


class SubscriptionStatus(str, Enum):
    """Known subscription states. Anything else is treated as inactive."""
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"


class Tenant(BaseModel):
    """
    Tenant represents one clinic account.

    Invariant: TRIALING implies is_trial_period and a trial_ends_at.
    When is_trial_period is False the trial fields are ignored.

    subscription_status is kept as the raw stored string so unexpected
    values (UNPAID, INCOMPLETE, lowercase variants) fail closed instead of
    failing validation.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    plan_key: Optional[str] = None
    subscription_status: str = SubscriptionStatus.TRIALING.value
    is_trial_period: bool = False
    trial_ends_at: Optional[datetime] = None

    @field_validator("subscription_status", mode="before")
    @classmethod
    def _status_value(cls, value):
        if isinstance(value, SubscriptionStatus):
            return value.value
        return "" if value is None else value

    @field_validator("trial_ends_at")
    @classmethod
    def _aware_trial_end(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
