"""
Tests for plan usage meters and limit enforcement.
"""
import pytest

from clinicgate.core.errors import LimitExceededError, ValidationError
from clinicgate.features.limits.service import (
    check_resource_limit,
    enforce_resource_limit,
    get_plan_status,
    has_plan_feature,
)
from clinicgate.features.plans.service import get_plan
from clinicgate.models.usage import UsageSnapshot


BASICO = get_plan("BASICO")
CORPORATIVO = get_plan("CORPORATIVO")


def test_plan_status_meters():
    usage = UsageSnapshot(current_pets=250, current_users=3, current_monthly_messages=850)
    status = get_plan_status(BASICO, usage)

    pets = status.resources["pets"]
    assert pets.limit == 500
    assert pets.remaining == 250
    assert pets.percentage == 50
    assert pets.status == "ok"
    assert pets.approaching_limit is False

    assert status.resources["users"].status == "at_limit"
    assert status.resources["users"].remaining == 0

    messages = status.resources["messages"]
    assert messages.status == "approaching_limit"
    assert messages.approaching_limit is True
    assert messages.percentage == 85


def test_plan_status_unlimited():
    status = get_plan_status(CORPORATIVO, UsageSnapshot(current_pets=9000))
    pets = status.resources["pets"]
    assert pets.status == "unlimited"
    assert pets.limit is None
    assert pets.percentage is None
    assert pets.current == 9000


def test_check_resource_limit():
    usage = UsageSnapshot(current_users=2)
    assert check_resource_limit(BASICO, usage, "users").allowed is True
    assert check_resource_limit(BASICO, usage, "users", requested=2).allowed is False


def test_check_unlimited_always_allows():
    check = check_resource_limit(CORPORATIVO, UsageSnapshot(current_pets=10**6), "pets", requested=500)
    assert check.allowed is True
    assert check.limit is None


def test_check_unknown_resource():
    with pytest.raises(ValidationError):
        check_resource_limit(BASICO, UsageSnapshot(), "rockets")


def test_enforce_raises_with_details():
    usage = UsageSnapshot(current_pets=500)
    with pytest.raises(LimitExceededError) as exc_info:
        enforce_resource_limit(BASICO, usage, "pets", tenant_id="clinic-1")
    err = exc_info.value
    assert err.resource == "pets"
    assert err.current == 500
    assert err.limit == 500
    assert err.code == "limit_exceeded"


def test_enforce_passes_under_limit():
    check = enforce_resource_limit(BASICO, UsageSnapshot(current_pets=10), "pets")
    assert check.allowed is True
    assert check.remaining == 490


def test_has_plan_feature():
    assert has_plan_feature(BASICO, "whatsapp_reminders") is True
    assert has_plan_feature(BASICO, "api_access") is False
    assert has_plan_feature(CORPORATIVO, "api_access") is True
    assert has_plan_feature(None, "basic_reports") is False
