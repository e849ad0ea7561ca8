"""Shared fixtures: in-memory database, a registered user, an API client"""
import pytest
from datetime import date
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habitcoin.database import Base, build_engine, get_db, init_db
from habitcoin.models.db_models import Habit, User
from habitcoin.services.progression import coins_for_priority, get_or_create_stats


# Reference day used by service-level tests
TODAY = date(2024, 1, 5)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database shared across threads"""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# ============================================================================
# User & Habit Fixtures
# ============================================================================

@pytest.fixture
def user(db):
    """Registered user with an empty stats row"""
    user = User(id="user-1", email="test@example.com", display_name="Test User", timezone="UTC")
    db.add(user)
    db.flush()
    get_or_create_stats(db, user.id)
    db.commit()
    return user


@pytest.fixture
def make_habit(db, user):
    """Factory creating committed habits for the test user"""
    def _make(name="Read", priority="medium", owner=None):
        habit = Habit(
            user_id=(owner or user).id,
            name=name,
            description="",
            priority=priority,
            coins_per_completion=coins_for_priority(priority),
        )
        db.add(habit)
        db.commit()
        return habit
    return _make


# ============================================================================
# API Fixtures
# ============================================================================

API_USER = {"uid": "api-user", "email": "api@example.com", "display_name": "API User"}


@pytest.fixture
def client(session_factory):
    """TestClient with the database and Firebase auth overridden"""
    from habitcoin.api.dependencies import get_firebase_user_info
    from habitcoin.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_firebase_user_info] = lambda: dict(API_USER)

    yield TestClient(app)

    app.dependency_overrides.clear()
