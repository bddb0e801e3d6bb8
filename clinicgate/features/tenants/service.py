"""
clinicgate/features/tenants/service.py

Tenant record reader.
"""

import logging
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from clinicgate.core.database import get_db_session, tenants
from clinicgate.core.errors import NotFoundError, UpstreamUnavailableError
from clinicgate.models.tenant import Tenant


logger = logging.getLogger(__name__)


def get_tenant(tenant_id: str) -> Tenant:
    """
    Get tenant by ID.

    Raises:
        NotFoundError: if no tenant has this ID
        UpstreamUnavailableError: if the datastore cannot be read
    """
    try:
        with get_db_session() as session:
            row = session.execute(
                select(tenants).where(tenants.c.id == tenant_id)
            ).first()
    except SQLAlchemyError as exc:
        logger.error(
            "[tenants] read failed",
            extra={"tenant_id": tenant_id, "error": type(exc).__name__},
        )
        raise UpstreamUnavailableError(f"Tenant {tenant_id} could not be read") from exc

    if not row:
        raise NotFoundError(f"Tenant {tenant_id} not found", code="tenant_not_found")

    return Tenant(
        id=row.id,
        name=row.name,
        plan_key=row.plan_key,
        subscription_status=row.subscription_status,
        is_trial_period=bool(row.is_trial_period),
        trial_ends_at=row.trial_ends_at,
    )
