"""
clinicgate/models/api_key.py

Decoded API key grant. Issued and revoked elsewhere; read-only here.
"""

from datetime import datetime, timezone
from typing import FrozenSet, Optional
from pydantic import BaseModel, ConfigDict, field_validator


class ApiKeyGrant(BaseModel):
    model_config = ConfigDict(frozen=True)

    key_prefix: Optional[str] = None
    tenant_id: Optional[str] = None
    scopes: FrozenSet[str] = frozenset()
    is_active: bool = True
    expires_at: Optional[datetime] = None
    rate_limit: int = 1000

    @field_validator("expires_at")
    @classmethod
    def _aware_expiry(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
