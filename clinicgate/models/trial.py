"""
clinicgate/models/trial.py

Derived trial status values. Recomputed on every call; never persisted.
"""

from enum import Enum
from typing import Tuple
from pydantic import BaseModel, ConfigDict


class TrialState(str, Enum):
    """
    Trial track classification.

    GRACE_PERIOD is assigned by the payment collaborator's post-expiry
    reprieve policy, never by the calculator.
    """
    ACTIVE = "active"
    ENDING_SOON = "ending_soon"
    EXPIRED = "expired"
    GRACE_PERIOD = "grace_period"
    CONVERTED = "converted"


class BannerSeverity(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"
    INFO = "info"


class FeatureAccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature: str
    allowed: bool
    reason: str


class TrialStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: TrialState
    days_remaining: int
    display_message: str
    banner_severity: BannerSeverity
    show_upgrade_prompt: bool
    blocked_features: Tuple[FeatureAccess, ...] = ()
