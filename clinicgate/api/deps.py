"""Shared FastAPI dependencies: tenant resolution, route guard, API keys."""

from typing import Optional

from fastapi import Depends, Header

from clinicgate.core.errors import AuthenticationError
from clinicgate.features.access.service import require_active_subscription
from clinicgate.features.api_keys.scopes import require_scopes
from clinicgate.features.api_keys.service import authenticate_api_key, extract_api_key
from clinicgate.features.tenants.service import get_tenant
from clinicgate.models.api_key import ApiKeyGrant
from clinicgate.models.tenant import Tenant


def get_current_tenant(x_tenant_id: Optional[str] = Header(None)) -> Tenant:
    """Resolve the tenant named by the X-Tenant-Id header."""
    if not x_tenant_id:
        raise AuthenticationError("Missing X-Tenant-Id header")
    return get_tenant(x_tenant_id)


def require_entitled_tenant(tenant: Tenant = Depends(get_current_tenant)) -> Tenant:
    """Route guard for protected pages; denial becomes a 303 redirect."""
    return require_active_subscription(tenant)


def require_api_key(authorization: Optional[str] = Header(None)) -> ApiKeyGrant:
    return authenticate_api_key(extract_api_key(authorization))


def require_api_scopes(*required: str, mode: str = "all"):
    """Dependency factory: authenticated grant holding the required scopes."""

    def _dependency(grant: ApiKeyGrant = Depends(require_api_key)) -> ApiKeyGrant:
        return require_scopes(grant, required, mode=mode)

    return _dependency
