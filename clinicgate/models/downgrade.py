"""
clinicgate/models/downgrade.py

Downgrade validation result. Advisory output; computed fresh per request.
"""

from typing import Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict

from clinicgate.models.plan import Plan
from clinicgate.models.usage import UsageSnapshot

Number = Union[int, float]


class DowngradeBlocker(BaseModel):
    """
    A hard reason the downgrade cannot proceed.

    Storage blockers are expressed in GB; the other resources in records.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["limit_exceeded"] = "limit_exceeded"
    resource: str
    current: Number
    new_limit: Number
    excess: Number
    message: str
    suggestion: Optional[str] = None


class DowngradeWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["feature_loss"] = "feature_loss"
    feature: str
    message: str


class DowngradeValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    can_downgrade: bool
    blockers: Tuple[DowngradeBlocker, ...] = ()
    warnings: Tuple[DowngradeWarning, ...] = ()
    target_plan: Plan
    current_usage: UsageSnapshot
