# clinicgate/conftest.py
from datetime import datetime, timedelta, timezone

import pytest

from clinicgate.core.database import (
    create_all_tables,
    dispose_engine,
    drop_all_tables,
    get_db_session,
    init_engine,
    tenants,
)


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference instant; every time-dependent call takes it as now=."""
    return NOW


@pytest.fixture
def sqlite_db():
    """
    Fresh in-memory SQLite database per test.

    Readers go through the module-level engine, so this swaps it for the
    duration of the test and disposes it afterwards.
    """
    engine = init_engine("sqlite://")
    create_all_tables()
    yield engine
    drop_all_tables()
    dispose_engine()


@pytest.fixture
def make_tenant(sqlite_db):
    """Insert a tenant row and return its id."""

    def _make_tenant(
        tenant_id="clinic-1",
        *,
        name="Clinica Central",
        plan_key="PROFESIONAL",
        subscription_status="ACTIVE",
        is_trial_period=False,
        trial_ends_at=None,
    ):
        with get_db_session() as session:
            session.execute(
                tenants.insert().values(
                    id=tenant_id,
                    name=name,
                    plan_key=plan_key,
                    subscription_status=subscription_status,
                    is_trial_period=is_trial_period,
                    trial_ends_at=trial_ends_at,
                )
            )
        return tenant_id

    return _make_tenant


@pytest.fixture
def trial_tenant(make_tenant):
    """TRIALING tenant whose trial ends ten days from the real clock."""
    return make_tenant(
        "clinic-trial",
        plan_key="BASICO",
        subscription_status="TRIALING",
        is_trial_period=True,
        trial_ends_at=datetime.now(timezone.utc) + timedelta(days=10, hours=1),
    )
