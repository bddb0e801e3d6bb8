"""
Subscription status endpoints: trial banner, plan meters, downgrade checks.
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from clinicgate.api.deps import get_current_tenant
from clinicgate.core.errors import NotFoundError
from clinicgate.features.downgrade.service import (
    get_downgrade_resolution_steps,
    is_plan_downgrade,
    validate_downgrade,
)
from clinicgate.features.limits.service import PlanStatus, get_plan_status
from clinicgate.features.plans.service import get_plan
from clinicgate.features.trial.service import calculate_trial_status
from clinicgate.features.usage.service import get_usage_snapshot
from clinicgate.models.downgrade import DowngradeValidation
from clinicgate.models.tenant import Tenant
from clinicgate.models.trial import TrialStatus


router = APIRouter(prefix="/v1/subscription", tags=["subscription"])


class DowngradeRequest(BaseModel):
    target_plan: str = Field(..., min_length=1)


class DowngradeResponse(BaseModel):
    validation: DowngradeValidation
    resolution_steps: List[str]
    is_downgrade: bool


@router.get("/trial-status", response_model=TrialStatus)
def trial_status(tenant: Tenant = Depends(get_current_tenant)):
    return calculate_trial_status(tenant)


@router.get("/plan-status", response_model=PlanStatus)
def plan_status(tenant: Tenant = Depends(get_current_tenant)):
    plan = get_plan(tenant.plan_key)
    if plan is None:
        raise NotFoundError(f'Plan "{tenant.plan_key}" not found', code="plan_not_found")
    return get_plan_status(plan, get_usage_snapshot(tenant.id))


@router.post("/validate-downgrade", response_model=DowngradeResponse)
def validate_downgrade_route(body: DowngradeRequest, tenant: Tenant = Depends(get_current_tenant)):
    validation = validate_downgrade(tenant.id, body.target_plan)
    return DowngradeResponse(
        validation=validation,
        resolution_steps=get_downgrade_resolution_steps(validation),
        is_downgrade=is_plan_downgrade(tenant.plan_key, body.target_plan),
    )
