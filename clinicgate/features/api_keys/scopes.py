"""
API key scope registry and authorizer.

Scopes are `action:resource` strings. Bundles are computed once from the
registry so they cannot drift from it.
"""

from typing import Dict, FrozenSet, Iterable, Tuple

from pydantic import BaseModel, ConfigDict

from clinicgate.core.errors import InsufficientScopeError
from clinicgate.models.api_key import ApiKeyGrant


READ = "read"
WRITE = "write"

# Registry of every scope a key may carry (order is the display order)
API_SCOPES: Tuple[str, ...] = (
    "read:pets",
    "write:pets",
    "read:appointments",
    "write:appointments",
    "read:customers",
    "write:customers",
    "read:inventory",
    "write:inventory",
    "read:locations",
    "read:reports",
    "read:sales",
    "write:sales",
)

SCOPE_DESCRIPTIONS = {
    "read:pets": "Read pet records",
    "write:pets": "Create and update pet records",
    "read:appointments": "Read appointments",
    "write:appointments": "Create and update appointments",
    "read:customers": "Read customers",
    "write:customers": "Create and update customers",
    "read:inventory": "Read inventory",
    "write:inventory": "Adjust inventory",
    "read:locations": "Read clinic locations",
    "read:reports": "Read reports and usage",
    "read:sales": "Read sales",
    "write:sales": "Record sales",
}


def scope_action(scope: str) -> str:
    return scope.split(":", 1)[0]


def scope_resource(scope: str) -> str:
    _, _, resource = scope.partition(":")
    return resource


def _registry_filter(predicate) -> FrozenSet[str]:
    return frozenset(scope for scope in API_SCOPES if predicate(scope))


SCOPE_BUNDLES: Dict[str, FrozenSet[str]] = {
    "readonly": _registry_filter(lambda s: scope_action(s) == READ),
    "full": frozenset(API_SCOPES),
    "appointments_only": _registry_filter(
        lambda s: scope_resource(s) in ("appointments", "customers", "pets")
        and (scope_action(s) == READ or scope_resource(s) == "appointments")
    ),
    "inventory_only": _registry_filter(lambda s: scope_resource(s) == "inventory"),
}

CUSTOM_BUNDLE = "custom"


class ScopeValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: Tuple[str, ...] = ()
    invalid: Tuple[str, ...] = ()


def has_scope(granted: Iterable[str], required: str) -> bool:
    return required in frozenset(granted)


def has_any_scope(granted: Iterable[str], required: Iterable[str]) -> bool:
    """True iff the two sets intersect. Empty on either side is False."""
    return bool(frozenset(granted) & frozenset(required))


def has_all_scopes(granted: Iterable[str], required: Iterable[str]) -> bool:
    """Vacuously True when nothing is required."""
    return frozenset(required) <= frozenset(granted)


def validate_scopes(candidates: Iterable[str]) -> ScopeValidation:
    """Partition candidates against the registry, keeping input order."""
    known = frozenset(API_SCOPES)
    valid, invalid = [], []
    for scope in candidates:
        (valid if scope in known else invalid).append(scope)
    return ScopeValidation(valid=tuple(valid), invalid=tuple(invalid))


def detect_bundle(scopes: Iterable[str]) -> str:
    """Name of the bundle that matches the scopes exactly, else "custom"."""
    scope_set = frozenset(scopes)
    for name, bundle in SCOPE_BUNDLES.items():
        if scope_set == bundle:
            return name
    return CUSTOM_BUNDLE


def require_scopes(grant: ApiKeyGrant, required: Iterable[str], mode: str = "all") -> ApiKeyGrant:
    """
    Raise InsufficientScopeError unless the grant satisfies `required`.

    mode="all" needs every scope, mode="any" needs at least one.
    """
    required_set = frozenset(required)
    if mode == "all":
        ok = has_all_scopes(grant.scopes, required_set)
    elif mode == "any":
        ok = has_any_scope(grant.scopes, required_set)
    else:
        raise ValueError(f"Unknown scope match mode: {mode}")

    if not ok:
        missing = sorted(required_set - grant.scopes)
        raise InsufficientScopeError(
            f"Missing required scope: {', '.join(missing)}"
        )
    return grant
