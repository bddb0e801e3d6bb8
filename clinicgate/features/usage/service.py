"""
clinicgate/features/usage/service.py

Usage snapshot provider.

Handles:
- Counting live pets, active users, this month's WhatsApp messages
- Reading stored bytes from the usage stats row

Failures propagate as UpstreamUnavailableError. Nothing here retries or
substitutes a default snapshot: a downgrade decision made on a guessed
usage basis is worse than no decision.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from clinicgate.core.database import (
    get_db_session,
    pets,
    tenant_users,
    message_logs,
    tenant_usage_stats,
)
from clinicgate.core.errors import UpstreamUnavailableError
from clinicgate.models.usage import UsageSnapshot


logger = logging.getLogger(__name__)

COUNTED_MESSAGE_CHANNEL = "WHATSAPP"


def month_start(now: Optional[Any] = None) -> datetime:
    """First instant of the current UTC month."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def get_usage_snapshot(tenant_id: str, now: Optional[Any] = None) -> UsageSnapshot:
    """
    Get current countable usage for a tenant.

    Args:
        tenant_id: Tenant to count
        now: Fixed timestamp for the monthly message window

    Returns:
        UsageSnapshot

    Raises:
        UpstreamUnavailableError: if the datastore cannot be read
    """
    window_start = month_start(now)
    try:
        with get_db_session() as session:
            current_pets = session.execute(
                select(func.count())
                .select_from(pets)
                .where(pets.c.tenant_id == tenant_id)
                .where(pets.c.is_deceased == False)  # noqa: E712
            ).scalar_one()
            current_users = session.execute(
                select(func.count())
                .select_from(tenant_users)
                .where(tenant_users.c.tenant_id == tenant_id)
                .where(tenant_users.c.is_active == True)  # noqa: E712
            ).scalar_one()
            current_messages = session.execute(
                select(func.count())
                .select_from(message_logs)
                .where(message_logs.c.tenant_id == tenant_id)
                .where(message_logs.c.channel == COUNTED_MESSAGE_CHANNEL)
                .where(message_logs.c.created_at >= window_start)
            ).scalar_one()
            storage_bytes = session.execute(
                select(tenant_usage_stats.c.storage_used_bytes)
                .where(tenant_usage_stats.c.tenant_id == tenant_id)
            ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.error(
            "[usage] snapshot unavailable",
            extra={"tenant_id": tenant_id, "error": type(exc).__name__},
        )
        raise UpstreamUnavailableError(
            f"Usage for tenant {tenant_id} could not be read",
        ) from exc

    return UsageSnapshot(
        current_pets=int(current_pets),
        current_users=int(current_users),
        current_monthly_messages=int(current_messages),
        current_storage_bytes=int(storage_bytes or 0),
    )
