"""
Tests for the usage snapshot provider against an in-memory database.
"""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from clinicgate.core.database import get_db_session, message_logs, pets, tenant_usage_stats, tenant_users
from clinicgate.core.errors import UpstreamUnavailableError
from clinicgate.features.usage.service import get_usage_snapshot, month_start
from clinicgate.models.plan import GIB


def _seed(tenant_id, now):
    with get_db_session() as session:
        session.execute(
            pets.insert(),
            [
                {"tenant_id": tenant_id, "name": "Firulais", "is_deceased": False},
                {"tenant_id": tenant_id, "name": "Michi", "is_deceased": False},
                {"tenant_id": tenant_id, "name": "Rex", "is_deceased": True},
            ],
        )
        session.execute(
            tenant_users.insert(),
            [
                {"tenant_id": tenant_id, "email": "a@clinic.test", "is_active": True},
                {"tenant_id": tenant_id, "email": "b@clinic.test", "is_active": False},
            ],
        )
        session.execute(
            message_logs.insert(),
            [
                {"tenant_id": tenant_id, "channel": "WHATSAPP", "created_at": datetime(2026, 3, 2, tzinfo=timezone.utc)},
                {"tenant_id": tenant_id, "channel": "WHATSAPP", "created_at": datetime(2026, 3, 14, tzinfo=timezone.utc)},
                {"tenant_id": tenant_id, "channel": "EMAIL", "created_at": datetime(2026, 3, 14, tzinfo=timezone.utc)},
                {"tenant_id": tenant_id, "channel": "WHATSAPP", "created_at": datetime(2026, 2, 27, tzinfo=timezone.utc)},
            ],
        )
        session.execute(
            tenant_usage_stats.insert().values(tenant_id=tenant_id, storage_used_bytes=3 * GIB)
        )


def test_month_start():
    assert month_start(datetime(2026, 3, 15, 12, 30, tzinfo=timezone.utc)) == datetime(
        2026, 3, 1, tzinfo=timezone.utc
    )
    assert month_start(datetime(2026, 3, 15)) == datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_counts_only_countable_usage(make_tenant, now):
    tenant_id = make_tenant()
    _seed(tenant_id, now)

    snapshot = get_usage_snapshot(tenant_id, now=now)

    assert snapshot.current_pets == 2
    assert snapshot.current_users == 1
    assert snapshot.current_monthly_messages == 2
    assert snapshot.current_storage_bytes == 3 * GIB


def test_tenant_without_records_is_zero(make_tenant, now):
    tenant_id = make_tenant()
    snapshot = get_usage_snapshot(tenant_id, now=now)
    assert snapshot.current_pets == 0
    assert snapshot.current_storage_bytes == 0


def test_usage_is_scoped_to_tenant(make_tenant, now):
    first = make_tenant("clinic-a")
    second = make_tenant("clinic-b")
    _seed(first, now)
    assert get_usage_snapshot(second, now=now).current_pets == 0


def test_datastore_failure_is_upstream_unavailable(sqlite_db):
    with patch(
        "clinicgate.features.usage.service.get_db_session",
        side_effect=OperationalError("SELECT", {}, Exception("db down")),
    ):
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            get_usage_snapshot("clinic-1")
    assert exc_info.value.status_code == 503
