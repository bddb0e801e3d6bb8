"""
clinicgate/models/usage.py

Point-in-time resource usage for a tenant. Computed on demand, never stored.
"""

from pydantic import BaseModel, ConfigDict, Field


class UsageSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_pets: int = Field(default=0, ge=0)
    current_users: int = Field(default=0, ge=0)
    current_monthly_messages: int = Field(default=0, ge=0)
    current_storage_bytes: int = Field(default=0, ge=0)
