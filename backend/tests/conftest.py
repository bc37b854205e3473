"""
Test configuration and shared fixtures for the maintenance scheduling test suite.

Uses an in-memory SQLite database by default (set TEST_DATABASE_URL to run
against PostgreSQL). Each test gets a freshly created schema.
"""

import os

# Must be set before core.database creates the application engine
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import jwt
import pytest
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import Generator, List, Optional, Sequence

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from auth.user_context import UserContext
from core.config import JWT_SECRET_KEY
from core.constants import ROLE_ADMIN, ROLE_SERVICE_PROVIDER
from core.database import Base

# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
from models import (
    AssignmentStatus, Booking, Issue, ServiceProvider, WeeklySlot,
)


# Test database URL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

# A Monday, so weekday() == 0
MONDAY = date(2024, 1, 1)
TUESDAY = MONDAY + timedelta(days=1)


@pytest.fixture(scope="function")
def db_engine():
    """
    Create a database engine with a fresh schema for one test.

    SQLite in memory needs a single shared connection (StaticPool) so that
    every session sees the same database.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL, poolclass=NullPool, echo=False)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for a test, configured like the application's SessionLocal."""
    TestSession = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = TestSession()

    yield session

    session.close()


@contextmanager
def fresh_session() -> Generator[Session, None, None]:
    """
    A standalone session on its own in-memory schema.

    For hypothesis tests, where function-scoped fixtures are shared between
    generated examples.
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def admin() -> UserContext:
    return UserContext(user_id=1, roles=[ROLE_ADMIN], name="Admin")


# Helper functions for creating test data
def create_provider(db_session: Session, name: str = "Test Technician", user_id: Optional[int] = 100,
                    is_active: bool = True) -> ServiceProvider:
    """Create a service provider."""
    provider = ServiceProvider(name=name, user_id=user_id, is_active=is_active)
    db_session.add(provider)
    db_session.commit()
    return provider


def provider_context(provider: ServiceProvider) -> UserContext:
    """Actor context for a provider's login account."""
    return UserContext(
        user_id=provider.user_id or provider.id,
        roles=[ROLE_SERVICE_PROVIDER],
        provider_id=provider.id,
        name=provider.name,
    )


def create_slot(db_session: Session, provider: ServiceProvider, day_of_week: int,
                start: time, end: time, is_active: bool = True) -> WeeklySlot:
    """Create a weekly availability slot."""
    slot = WeeklySlot(
        provider_id=provider.id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        is_active=is_active,
    )
    db_session.add(slot)
    db_session.commit()
    return slot


def create_issue(db_session: Session, title: str = "Leaking tap", proof_required: bool = False) -> Issue:
    """Create an issue directly (no timeline entry)."""
    issue = Issue(title=title, proof_required=proof_required)
    db_session.add(issue)
    db_session.commit()
    return issue


def create_booking(
    db_session: Session,
    provider: ServiceProvider,
    scheduled_date: date,
    start: Optional[time],
    end: Optional[time],
    slot_ids: Sequence[int] = (),
    status: AssignmentStatus = AssignmentStatus.ASSIGNED,
    issue: Optional[Issue] = None,
    proof_required: bool = False,
) -> Booking:
    """
    Insert a booking row directly, bypassing commit-time validation.

    Useful for arranging existing occupancy before exercising a service.
    """
    if issue is None:
        issue = create_issue(db_session)
    booking = Booking(
        issue_id=issue.id,
        provider_id=provider.id,
        scheduled_date=scheduled_date,
        scheduled_end_date=scheduled_date,
        claimed_slot_ids=list(slot_ids),
        assigned_start_time=start,
        assigned_end_time=end,
        status=status,
        proof_required=proof_required,
    )
    db_session.add(booking)
    db_session.commit()
    return booking


def create_jwt_token(user_id: int, roles: List[str], provider_id: Optional[int] = None) -> str:
    """Create a JWT access token for an admin or service provider."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "roles": roles,
        "provider_id": provider_id,
        "exp": now + timedelta(hours=1),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm="HS256")


def auth_headers(user_id: int, roles: List[str], provider_id: Optional[int] = None) -> dict:
    return {"Authorization": f"Bearer {create_jwt_token(user_id, roles, provider_id)}"}
