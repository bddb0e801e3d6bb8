"""Settings sections and the representative protected dashboard route."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from clinicgate.api.deps import get_current_tenant, require_entitled_tenant
from clinicgate.features.access.service import (
    SectionAccess,
    evaluate_sections,
    has_active_subscription,
    resolve_initial_section,
)
from clinicgate.features.trial.service import calculate_trial_status
from clinicgate.models.tenant import Tenant


router = APIRouter(prefix="/v1", tags=["sections"])


class SectionsResponse(BaseModel):
    subscription_active: bool
    initial_section: str
    sections: List[SectionAccess]


@router.get("/sections", response_model=SectionsResponse)
def list_sections(
    requested: Optional[str] = Query(None),
    tenant: Tenant = Depends(get_current_tenant),
):
    active = has_active_subscription(tenant)
    return SectionsResponse(
        subscription_active=active,
        initial_section=resolve_initial_section(requested, active),
        sections=evaluate_sections(active),
    )


@router.get("/dashboard")
def dashboard(tenant: Tenant = Depends(require_entitled_tenant)):
    trial = calculate_trial_status(tenant)
    return {
        "tenant_id": tenant.id,
        "name": tenant.name,
        "plan": tenant.plan_key,
        "trial": trial.model_dump(mode="json"),
    }
