"""
External API endpoints.

Read-only endpoints for third-party integrations. Requires an API key
(Authorization: Bearer <key>) carrying the endpoint's scopes.
"""

from fastapi import APIRouter, Depends, Response

from clinicgate.api.deps import require_api_scopes
from clinicgate.core.errors import NotFoundError
from clinicgate.core.logging import log_event
from clinicgate.features.api_keys.scopes import detect_bundle
from clinicgate.features.limits.service import get_plan_status
from clinicgate.features.plans.service import get_plan
from clinicgate.features.tenants.service import get_tenant
from clinicgate.features.usage.service import get_usage_snapshot
from clinicgate.models.api_key import ApiKeyGrant


router = APIRouter(prefix="/v1/external", tags=["external"])


@router.get("/usage")
def external_usage(
    response: Response,
    grant: ApiKeyGrant = Depends(require_api_scopes("read:reports")),
):
    tenant = get_tenant(grant.tenant_id)
    plan = get_plan(tenant.plan_key)
    if plan is None:
        raise NotFoundError(f'Plan "{tenant.plan_key}" not found', code="plan_not_found")

    response.headers["X-RateLimit-Limit"] = str(grant.rate_limit)
    status = get_plan_status(plan, get_usage_snapshot(tenant.id))
    log_event(
        "info",
        "external.usage",
        tenant_id=tenant.id,
        event_type="external_api",
        extra={"key_prefix": grant.key_prefix},
    )
    return {
        "tenant_id": tenant.id,
        "bundle": detect_bundle(grant.scopes),
        "usage": status.model_dump(mode="json"),
    }
