"""
clinicgate/features/downgrade/service.py

Plan downgrade validator.

Handles:
- Blocking diagnostics when current usage exceeds the target plan's limits
- Feature-loss warnings (current plan features missing on the target)
- Resolution steps derived from blocker suggestions
- Tier comparison (is a plan change a downgrade?)

Messages are informational only; callers decide whether to proceed.
"""

import logging
import math
from typing import Callable, List, Optional, Tuple

from clinicgate.features.plans.service import (
    feature_label,
    get_plan,
    get_tier_position,
    require_plan,
)
from clinicgate.features.tenants.service import get_tenant
from clinicgate.features.usage.service import get_usage_snapshot
from clinicgate.models.downgrade import DowngradeBlocker, DowngradeValidation, DowngradeWarning
from clinicgate.models.plan import GIB, Plan
from clinicgate.models.usage import UsageSnapshot


logger = logging.getLogger(__name__)

PROCEED_STEP = "Once these steps are complete, you may now proceed with the plan change."


def _fmt(value) -> str:
    return f"{value:g}" if isinstance(value, float) else str(value)


def _storage_gb(num_bytes: int) -> float:
    return round(num_bytes / GIB, 2)


def _storage_excess_gb(num_bytes: int) -> float:
    # Round up to the next hundredth so a few bytes over never reads as 0
    return math.ceil(num_bytes * 100 / GIB) / 100


# (resource, current, limit, unit label, suggestion template, display converter)
# Comparison happens on the raw values; the converter only shapes the blocker.
_LimitCheck = Tuple[str, int, Optional[int], str, Callable[[str], str], Optional[Callable]]


def _limit_checks(usage: UsageSnapshot, plan: Plan) -> List[_LimitCheck]:
    limits = plan.limits
    # Messages are informational only and never block a downgrade
    return [
        (
            "pets",
            usage.current_pets,
            limits.max_pets,
            "pets",
            lambda excess: f"Archive or remove {excess} pets before changing plans.",
            None,
        ),
        (
            "users",
            usage.current_users,
            limits.max_users,
            "active users",
            lambda excess: f"Deactivate {excess} users before changing plans.",
            None,
        ),
        (
            "storage",
            usage.current_storage_bytes,
            limits.max_storage_bytes,
            "GB of storage",
            lambda excess: f"Delete files to free up {excess} GB of storage before changing plans.",
            _storage_gb,
        ),
    ]


def _build_blockers(usage: UsageSnapshot, plan: Plan) -> List[DowngradeBlocker]:
    blockers = []
    for resource, current, new_limit, unit, suggest, to_display in _limit_checks(usage, plan):
        if new_limit is None or current <= new_limit:
            continue
        excess = current - new_limit
        if to_display is not None:
            current, new_limit = to_display(current), to_display(new_limit)
            excess = _storage_excess_gb(excess)
        blockers.append(
            DowngradeBlocker(
                resource=resource,
                current=current,
                new_limit=new_limit,
                excess=excess,
                message=(
                    f"You have {_fmt(current)} {unit} but {plan.name} "
                    f"allows {_fmt(new_limit)}."
                ),
                suggestion=suggest(_fmt(excess)),
            )
        )
    return blockers


def _build_warnings(current_plan: Optional[Plan], target_plan: Plan) -> List[DowngradeWarning]:
    if current_plan is None:
        return []
    lost = [f for f in sorted(current_plan.features) if f not in target_plan.features]
    return [
        DowngradeWarning(
            feature=feature,
            message=f"You will lose access to {feature_label(feature)} on {target_plan.name}.",
        )
        for feature in lost
    ]


def validate_downgrade(tenant_id: str, target_plan_key: str) -> DowngradeValidation:
    """
    Check whether a tenant's current usage fits a target plan.

    Args:
        tenant_id: Tenant requesting the change
        target_plan_key: Catalog key, any case

    Returns:
        DowngradeValidation; can_downgrade is True iff there are no blockers

    Raises:
        NotFoundError: if target_plan_key is not in the catalog
        UpstreamUnavailableError: if tenant or usage cannot be read
    """
    target_plan = require_plan(target_plan_key)
    tenant = get_tenant(tenant_id)
    current_usage = get_usage_snapshot(tenant_id)

    blockers = _build_blockers(current_usage, target_plan)
    warnings = _build_warnings(get_plan(tenant.plan_key), target_plan)
    can_downgrade = not blockers

    logger.log(
        logging.INFO if can_downgrade else logging.WARNING,
        "[downgrade] validated",
        extra={
            "tenant_id": tenant_id,
            "current_plan": tenant.plan_key,
            "target_plan": target_plan.key,
            "status": "allowed" if can_downgrade else "blocked",
            "blockers": [b.resource for b in blockers],
            "warnings": len(warnings),
        },
    )

    return DowngradeValidation(
        can_downgrade=can_downgrade,
        blockers=tuple(blockers),
        warnings=tuple(warnings),
        target_plan=target_plan,
        current_usage=current_usage,
    )


def get_downgrade_resolution_steps(validation: DowngradeValidation) -> List[str]:
    """
    Ordered, actionable steps for clearing the blockers.

    Blockers without a suggestion contribute nothing. The closing step is
    only added when at least one suggestion was produced.
    """
    steps = [b.suggestion for b in validation.blockers if b.suggestion]
    if steps:
        steps.append(PROCEED_STEP)
    return steps


def is_plan_downgrade(current_plan_key: str, target_plan_key: str) -> bool:
    """
    True iff the target sits lower in the tier order than the current plan.

    Unrecognized keys sit at position -1, so an unknown current plan is
    never downgrading, and an unknown target is always below any known
    current plan.
    """
    return get_tier_position(current_plan_key) > get_tier_position(target_plan_key)
