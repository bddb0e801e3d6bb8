"""Liveness and readiness endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from clinicgate.core.database import check_connection

logger = logging.getLogger("clinicgate")

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: database answers a trivial query."""
    if check_connection():
        return {"status": "ready", "db": True}
    logger.warning("readiness.failed", extra={"reason": "db_unreachable"})
    return JSONResponse(status_code=503, content={"status": "not_ready", "db": False})
