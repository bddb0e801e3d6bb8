"""
clinicgate/features/limits/service.py

Plan usage status and limit enforcement.

Handles:
- Per-resource usage summary against the tenant's plan (dashboard meters)
- Pre-flight checks before creating records
- Boolean capability flags
"""

import logging
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from clinicgate.core.errors import LimitExceededError, ValidationError
from clinicgate.models.plan import Plan
from clinicgate.models.usage import UsageSnapshot


logger = logging.getLogger(__name__)

APPROACHING_LIMIT_RATIO = 0.8

# resource -> (limit attribute, usage attribute)
RESOURCE_FIELDS = {
    "pets": ("max_pets", "current_pets"),
    "users": ("max_users", "current_users"),
    "messages": ("max_monthly_messages", "current_monthly_messages"),
    "storage": ("max_storage_bytes", "current_storage_bytes"),
}


class ResourceUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    resource: str
    current: int
    limit: Optional[int] = None
    remaining: Optional[int] = None
    percentage: Optional[int] = None
    approaching_limit: bool = False
    status: str = "ok"


class PlanStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_key: str
    plan_name: str
    resources: Dict[str, ResourceUsage]


class LimitCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    resource: str
    allowed: bool
    current: int
    limit: Optional[int] = None
    remaining: Optional[int] = None


def _resource_values(plan: Plan, usage: UsageSnapshot, resource: str):
    if resource not in RESOURCE_FIELDS:
        raise ValidationError(f"Unknown resource: {resource}")
    limit_attr, usage_attr = RESOURCE_FIELDS[resource]
    return getattr(usage, usage_attr), getattr(plan.limits, limit_attr)


def _resource_usage(resource: str, current: int, limit: Optional[int]) -> ResourceUsage:
    if limit is None:
        return ResourceUsage(resource=resource, current=current, status="unlimited")

    remaining = max(limit - current, 0)
    percentage = round(current / limit * 100) if limit else 100
    approaching = current >= limit * APPROACHING_LIMIT_RATIO
    if current >= limit:
        status = "at_limit"
    elif approaching:
        status = "approaching_limit"
    else:
        status = "ok"

    return ResourceUsage(
        resource=resource,
        current=current,
        limit=limit,
        remaining=remaining,
        percentage=percentage,
        approaching_limit=approaching,
        status=status,
    )


def get_plan_status(plan: Plan, usage: UsageSnapshot) -> PlanStatus:
    """Usage meters for every limited resource on the plan."""
    resources = {}
    for resource in RESOURCE_FIELDS:
        current, limit = _resource_values(plan, usage, resource)
        resources[resource] = _resource_usage(resource, current, limit)
    return PlanStatus(plan_key=plan.key, plan_name=plan.name, resources=resources)


def check_resource_limit(
    plan: Plan,
    usage: UsageSnapshot,
    resource: str,
    requested: int = 1,
) -> LimitCheck:
    """
    Would adding `requested` units of `resource` stay within the plan?

    Unlimited caps always allow.
    """
    if requested < 0:
        raise ValidationError("requested must be non-negative")
    current, limit = _resource_values(plan, usage, resource)
    if limit is None:
        return LimitCheck(resource=resource, allowed=True, current=current)
    return LimitCheck(
        resource=resource,
        allowed=current + requested <= limit,
        current=current,
        limit=limit,
        remaining=max(limit - current, 0),
    )


def enforce_resource_limit(
    plan: Plan,
    usage: UsageSnapshot,
    resource: str,
    requested: int = 1,
    *,
    tenant_id: Optional[str] = None,
) -> LimitCheck:
    """
    Raises:
        LimitExceededError: when the requested quantity does not fit
    """
    check = check_resource_limit(plan, usage, resource, requested)
    if check.allowed:
        return check

    logger.warning(
        "[limits] blocked",
        extra={
            "tenant_id": tenant_id,
            "resource": resource,
            "current": check.current,
            "limit": check.limit,
            "requested": requested,
            "plan": plan.key,
        },
    )
    raise LimitExceededError(
        f"{plan.name} allows {check.limit} {resource}; you currently have {check.current}",
        resource=resource,
        current=check.current,
        limit=check.limit,
    )


def has_plan_feature(plan: Optional[Plan], feature: str) -> bool:
    if plan is None:
        return False
    return feature in plan.features
