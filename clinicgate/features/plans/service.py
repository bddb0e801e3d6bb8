"""
clinicgate/features/plans/service.py

Plan catalog.

Handles:
- Static plan definitions (BASICO, PROFESIONAL, CORPORATIVO)
- Case-insensitive lookup by key, legacy keys resolved to current plans
- Ascending tier ordering for upgrade/downgrade comparison
"""

from typing import Dict, List, Optional, Tuple

from clinicgate.core.errors import NotFoundError
from clinicgate.models.plan import GIB, Plan, PlanLimits


# Human-readable names for capability flags (used in feature-loss warnings)
FEATURE_LABELS = {
    "basic_reports": "Basic reports",
    "whatsapp_reminders": "WhatsApp reminders",
    "advanced_reports": "Advanced reports",
    "multi_location": "Multiple locations",
    "automations": "Automations",
    "multi_doctor": "Multiple doctors",
    "api_access": "API access",
    "sms_reminders": "SMS reminders",
    "priority_support": "Priority support",
}

_BASICO_FEATURES = frozenset({"basic_reports", "whatsapp_reminders"})
_PROFESIONAL_FEATURES = _BASICO_FEATURES | {"advanced_reports", "multi_location", "automations", "multi_doctor"}
_CORPORATIVO_FEATURES = _PROFESIONAL_FEATURES | {"api_access", "sms_reminders", "priority_support"}

# Default plan configurations (None = unlimited)
DEFAULT_PLANS = {
    "BASICO": {
        "name": "Plan Básico",
        "tier_rank": 1,
        "limits": {
            "max_pets": 500,
            "max_users": 3,
            "max_monthly_messages": 1000,
            "max_storage_bytes": 5 * GIB,
        },
        "features": _BASICO_FEATURES,
    },
    "PROFESIONAL": {
        "name": "Plan Profesional",
        "tier_rank": 2,
        "limits": {
            "max_pets": 2000,
            "max_users": 8,
            "max_monthly_messages": 3000,
            "max_storage_bytes": 20 * GIB,
        },
        "features": _PROFESIONAL_FEATURES,
    },
    "CORPORATIVO": {
        "name": "Plan Corporativo",
        "tier_rank": 3,
        "limits": {
            "max_pets": None,
            "max_users": 20,
            "max_monthly_messages": None,
            "max_storage_bytes": 100 * GIB,
        },
        "features": _CORPORATIVO_FEATURES,
    },
}


def _build_catalog() -> Dict[str, Plan]:
    catalog = {}
    for key, config in DEFAULT_PLANS.items():
        catalog[key] = Plan(
            key=key,
            name=config["name"],
            tier_rank=config["tier_rank"],
            limits=PlanLimits(**config["limits"]),
            features=frozenset(config["features"]),
        )
    ranks = [plan.tier_rank for plan in catalog.values()]
    if len(set(ranks)) != len(ranks):
        raise RuntimeError("Plan catalog tier ranks must be unique")
    return catalog


PLAN_CATALOG: Dict[str, Plan] = _build_catalog()

# Ascending tier order, lowest first
PLAN_TIER_ORDER: Tuple[str, ...] = tuple(
    plan.key for plan in sorted(PLAN_CATALOG.values(), key=lambda p: p.tier_rank)
)


# Keys from the earlier B2B catalog still found on tenant records, mapped by
# matching user caps (CLINICA: 8 users, EMPRESA: 20 users)
LEGACY_PLAN_ALIASES = {
    "CLINICA": "PROFESIONAL",
    "EMPRESA": "CORPORATIVO",
}


def normalize_plan_key(plan_key: Optional[str]) -> str:
    key = (plan_key or "").strip().upper()
    return LEGACY_PLAN_ALIASES.get(key, key)


def get_plan(plan_key: Optional[str]) -> Optional[Plan]:
    """Get plan by key (case-insensitive). Returns None on a miss."""
    return PLAN_CATALOG.get(normalize_plan_key(plan_key))


def require_plan(plan_key: Optional[str]) -> Plan:
    """
    Get plan by key or fail.

    Raises:
        NotFoundError: naming the offending key when it is not in the catalog
    """
    plan = get_plan(plan_key)
    if plan is None:
        raise NotFoundError(f'Target plan "{plan_key}" not found', code="plan_not_found")
    return plan


def list_plans() -> List[Plan]:
    """All plans, lowest tier first."""
    return [PLAN_CATALOG[key] for key in PLAN_TIER_ORDER]


def get_tier_position(plan_key: Optional[str]) -> int:
    """Index of the key in PLAN_TIER_ORDER, or -1 when unrecognized."""
    normalized = normalize_plan_key(plan_key)
    if normalized in PLAN_TIER_ORDER:
        return PLAN_TIER_ORDER.index(normalized)
    return -1


def feature_label(feature: str) -> str:
    return FEATURE_LABELS.get(feature, feature.replace("_", " ").capitalize())
