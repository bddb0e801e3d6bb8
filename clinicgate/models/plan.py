"""
clinicgate/models/plan.py

Plan catalog entries.

Plans are immutable deploy-time data: a tier rank for upgrade/downgrade
ordering, numeric limits and a set of capability flags. Prices are not part
of this model.
"""

from typing import FrozenSet, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

GIB = 1024 * 1024 * 1024


class PlanLimits(BaseModel):
    """
    Numeric caps for a plan.

    None means unlimited. -1 is accepted on input as the legacy unlimited
    marker and normalized to None, so no finite comparison ever sees it.
    """
    model_config = ConfigDict(frozen=True)

    max_pets: Optional[int] = Field(default=None, ge=0)
    max_users: Optional[int] = Field(default=None, ge=0)
    max_monthly_messages: Optional[int] = Field(default=None, ge=0)
    max_storage_bytes: Optional[int] = Field(default=None, ge=0)

    @field_validator("max_pets", "max_users", "max_monthly_messages", "max_storage_bytes", mode="before")
    @classmethod
    def _unlimited_marker(cls, value):
        if value == -1:
            return None
        return value

    @property
    def max_storage_gb(self) -> Optional[float]:
        if self.max_storage_bytes is None:
            return None
        return self.max_storage_bytes / GIB


class Plan(BaseModel):
    """
    Plan represents a subscription tier.

    key is the canonical uppercase identifier (e.g. BASICO).
    tier_rank orders plans ascending; a lower rank is a lower tier.
    """
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    tier_rank: int
    limits: PlanLimits
    features: FrozenSet[str] = frozenset()
