"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (in-memory SQLite)
- Table definitions for credits, usage and generated artifacts
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    JSON,
    Text,
    Index,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import logging
import os

from careerhub.core.config import settings

logger = logging.getLogger("careerhub")

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
    test_url = os.getenv("TEST_DATABASE_URL")
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
        # One shared connection so in-memory databases survive across sessions
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
    """Close all pooled connections and forget the engine."""
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

    Everything executed inside the block is one transaction: committed on a
    clean exit, rolled back if the block raises.

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


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


# Users table
users = Table(
    'app_users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('display_name', Text, nullable=True),
    Column('status', String(50), nullable=False, server_default='active'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_users_created_at', 'created_at'),
)

# Subscription plans (credit allowance tiers)
subscription_plans = Table(
    'subscription_plans',
    metadata,
    Column('plan_key', String(50), primary_key=True),
    Column('name', String(200), nullable=False),
    Column('credits_monthly', Integer, nullable=False, server_default='0'),
    Column('credits_bonus_signup', Integer, nullable=False, server_default='0'),
    Column('credits_rollover_allowed', Boolean, nullable=False, server_default='0'),
    Column('price_monthly_tzs', Integer, nullable=False, server_default='0'),
    Column('is_default', Boolean, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_subscription_plans_is_default', 'is_default'),
)

# Per-plan monthly caps per feature (NULL = unlimited)
plan_feature_limits = Table(
    'plan_feature_limits',
    metadata,
    Column('plan_key', String(50), ForeignKey('subscription_plans.plan_key'), nullable=False),
    Column('feature_key', String(50), nullable=False),
    Column('monthly_limit', Integer, nullable=True),
    UniqueConstraint('plan_key', 'feature_key', name='uq_plan_feature_limits_plan_feature'),
    Index('idx_plan_feature_limits_plan', 'plan_key'),
)

# Fixed credit cost per feature
feature_costs = Table(
    'feature_costs',
    metadata,
    Column('feature_key', String(50), primary_key=True),
    Column('feature_name', String(200), nullable=False),
    Column('credit_cost', Integer, nullable=False),
    Column('enabled', Boolean, nullable=False, server_default='1'),
)

# Entitlement record: one per principal
entitlements = Table(
    'entitlements',
    metadata,
    Column('user_id', String(100), ForeignKey('app_users.user_id'), primary_key=True),
    Column('plan_key', String(50), ForeignKey('subscription_plans.plan_key'), nullable=False),
    Column('credits_available', Integer, nullable=False, server_default='0'),
    Column('credits_used', Integer, nullable=False, server_default='0'),
    Column('period_start', DateTime(timezone=True), nullable=True),  # start of the current allowance period
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    CheckConstraint('credits_available >= 0', name='ck_entitlements_credits_non_negative'),
    Index('idx_entitlements_plan_key', 'plan_key'),
)

# Per-feature usage counters for the current billing period
feature_usage = Table(
    'feature_usage',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), ForeignKey('app_users.user_id'), nullable=False),
    Column('feature_key', String(50), nullable=False),
    Column('usage_count', Integer, nullable=False, server_default='0'),
    Column('period_start', DateTime(timezone=True), nullable=False),
    Column('period_end', DateTime(timezone=True), nullable=False),
    Column('last_used_at', DateTime(timezone=True), nullable=True),
    UniqueConstraint('user_id', 'feature_key', name='uq_feature_usage_user_feature'),
    Index('idx_feature_usage_user', 'user_id'),
)

# Append-only credit ledger
credit_transactions = Table(
    'credit_transactions',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), ForeignKey('app_users.user_id'), nullable=False),
    Column('feature_key', String(50), nullable=True),
    Column('transaction_type', String(50), nullable=False),  # usage, grant, purchase, monthly_allowance, signup_bonus, refund
    Column('amount', Integer, nullable=False),  # negative for spend, positive for grants
    Column('balance_before', Integer, nullable=False),
    Column('balance_after', Integer, nullable=False),
    Column('reference_id', String(100), nullable=True),
    Column('reference_table', String(100), nullable=True),
    Column('description', Text, nullable=True),
    Column('metadata', JSON, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    # Composite index for history queries: (user_id, created_at)
    Index('idx_credit_transactions_user_created', 'user_id', 'created_at'),
    Index('idx_credit_transactions_feature', 'feature_key'),
)

# Durable home of generation results
generated_artifacts = Table(
    'generated_artifacts',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), ForeignKey('app_users.user_id'), nullable=False),
    Column('feature_key', String(50), nullable=False),
    Column('cache_key', String(255), nullable=False, server_default='default'),
    Column('payload', JSON, nullable=False),
    Column('source', String(20), nullable=False),  # ai | fallback
    Column('generation_status', String(20), nullable=False),  # completed | failed
    Column('model', String(100), nullable=True),
    Column('tokens_used', Integer, nullable=True),
    Column('input_snapshot', JSON, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    UniqueConstraint('user_id', 'feature_key', 'cache_key', name='uq_generated_artifacts_user_feature_key'),
    Index('idx_generated_artifacts_user_feature', 'user_id', 'feature_key'),
)

