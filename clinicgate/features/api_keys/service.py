"""
API key grant reader.

Keys are stored as sha256 digests and looked up by digest, so the raw key
never touches the database. Format: <API_KEY_PREFIX><body>.
"""
import hashlib
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from clinicgate.core.config import settings
from clinicgate.core.database import api_keys, get_db_session
from clinicgate.core.errors import AuthenticationError, UpstreamUnavailableError
from clinicgate.models.api_key import ApiKeyGrant


logger = logging.getLogger(__name__)

API_KEY_BODY_LENGTH = 32
_BODY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def hash_api_key(key: str) -> str:
    """Hex sha256 digest of the raw key."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def is_valid_api_key_format(key: Optional[str]) -> bool:
    prefix = settings.API_KEY_PREFIX
    if not key or not key.startswith(prefix):
        return False
    body = key[len(prefix):]
    return len(body) >= API_KEY_BODY_LENGTH and bool(_BODY_RE.match(body))


def extract_api_key(authorization: Optional[str]) -> Optional[str]:
    """Pull the key out of an Authorization header ("Bearer <key>" or bare)."""
    if not authorization:
        return None
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    return value or None


def get_api_key_grant(raw_key: str) -> Optional[ApiKeyGrant]:
    """
    Look up the grant for a presented key.

    Returns None when no key matches. Raises UpstreamUnavailableError
    when the store cannot be read.
    """
    key_hash = hash_api_key(raw_key)
    try:
        with get_db_session() as session:
            row = session.execute(
                select(
                    api_keys.c.key_prefix,
                    api_keys.c.tenant_id,
                    api_keys.c.scopes,
                    api_keys.c.is_active,
                    api_keys.c.expires_at,
                    api_keys.c.rate_limit,
                ).where(api_keys.c.key_hash == key_hash)
            ).first()
    except SQLAlchemyError as exc:
        logger.error("[api_keys] lookup failed", extra={"error_code": "upstream_unavailable"}, exc_info=True)
        raise UpstreamUnavailableError("API key store could not be read") from exc

    if row is None:
        return None

    return ApiKeyGrant(
        key_prefix=row.key_prefix,
        tenant_id=row.tenant_id,
        scopes=frozenset(row.scopes or []),
        is_active=bool(row.is_active),
        expires_at=row.expires_at,
        rate_limit=row.rate_limit,
    )


def _normalize_now(now: Optional[Any]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if getattr(now, "tzinfo", None) is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def is_grant_usable(grant: ApiKeyGrant, now: Optional[Any] = None) -> bool:
    """Active and not past its expiry."""
    if not grant.is_active:
        return False
    if grant.expires_at is not None and grant.expires_at <= _normalize_now(now):
        return False
    return True


def authenticate_api_key(raw_key: Optional[str], now: Optional[Any] = None) -> ApiKeyGrant:
    """
    Resolve a presented key to a usable grant.

    Raises:
        AuthenticationError: missing, malformed, unknown, disabled or expired key
        UpstreamUnavailableError: the key store failed
    """
    if not raw_key:
        raise AuthenticationError("Missing API key")
    if not is_valid_api_key_format(raw_key):
        raise AuthenticationError("Invalid API key format")

    grant = get_api_key_grant(raw_key)
    if grant is None:
        logger.warning("[api_keys] unknown key", extra={"reason": "unknown"})
        raise AuthenticationError("Invalid or expired API key")

    if not is_grant_usable(grant, now):
        reason = "disabled" if not grant.is_active else "expired"
        logger.warning(
            "[api_keys] rejected",
            extra={"tenant_id": grant.tenant_id, "reason": reason},
        )
        raise AuthenticationError("Invalid or expired API key")

    return grant
