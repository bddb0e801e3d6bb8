"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Table definitions for the collaborator records the entitlement engine reads
  (tenants, usage counters, API keys)

The engine never writes these tables; subscription status is written by the
payment webhook service and usage rows by the resource domains.
"""
from typing import Optional, Generator
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, BigInteger, String, DateTime, Boolean, JSON, Index, ForeignKey, text
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.sql import func
import os

from clinicgate.core.config import settings


# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL") or settings.TEST_DATABASE_URL
    if test_url:
        return test_url

    return settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if url.startswith("sqlite"):
        # In-memory SQLite lives on a single connection
        _engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def dispose_engine() -> None:
    """Dispose the current engine and forget the session factory."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI-friendly DB dependency that yields a Session and closes it."""
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def check_connection() -> bool:
    """Return True when the configured database answers a trivial query."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


# Tenants (one per clinic); subscription fields are owned by the billing webhooks
tenants = Table(
    'tenants',
    metadata,
    Column('id', String(64), primary_key=True),
    Column('name', String(200), nullable=False),
    Column('plan_key', String(50), nullable=True),
    Column('subscription_status', String(20), nullable=False, server_default='TRIALING'),
    Column('is_trial_period', Boolean, nullable=False, server_default='1'),
    Column('trial_ends_at', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_tenants_subscription_status', 'subscription_status'),
)

pets = Table(
    'pets',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('tenant_id', String(64), ForeignKey('tenants.id'), nullable=False, index=True),
    Column('name', String(200), nullable=False),
    Column('is_deceased', Boolean, nullable=False, server_default='0'),
)

tenant_users = Table(
    'tenant_users',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('tenant_id', String(64), ForeignKey('tenants.id'), nullable=False, index=True),
    Column('email', String(255), nullable=False),
    Column('is_active', Boolean, nullable=False, server_default='1'),
)

# Outbound messaging log; only WhatsApp sends count against the monthly cap
message_logs = Table(
    'message_logs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('tenant_id', String(64), ForeignKey('tenants.id'), nullable=False),
    Column('channel', String(30), nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_message_logs_tenant_created', 'tenant_id', 'created_at'),
)

tenant_usage_stats = Table(
    'tenant_usage_stats',
    metadata,
    Column('tenant_id', String(64), ForeignKey('tenants.id'), primary_key=True),
    Column('storage_used_bytes', BigInteger, nullable=False, server_default='0'),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# API keys are stored hashed; scopes is a JSON list of action:resource strings
api_keys = Table(
    'api_keys',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('key_hash', String(64), nullable=False, unique=True, index=True),
    Column('key_prefix', String(20), nullable=False),
    Column('tenant_id', String(64), ForeignKey('tenants.id'), nullable=False, index=True),
    Column('name', String(100), nullable=False),
    Column('scopes', JSON, nullable=False),
    Column('is_active', Boolean, nullable=False, server_default='1'),
    Column('expires_at', DateTime(timezone=True), nullable=True),
    Column('rate_limit', Integer, nullable=False, server_default='1000'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)
