"""
Pytest configuration and shared fixtures.
"""
import itertools
import os
import sys
from pathlib import Path
from datetime import datetime, timedelta
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

from dinnerclub.api import create_app
from dinnerclub.config import get_settings
from dinnerclub.error_handling.logging_config import init_logging
from dinnerclub.models.database import (
    Base,
    City,
    Dinner,
    Member,
    Restaurant,
    get_db,
    use_immediate_transactions,
)
from dinnerclub.security import issue_token
from dinnerclub.services.assignment_service import AssignmentService
from dinnerclub.services.notification_service import NotificationService
from dinnerclub.services.waitlist_service import WaitlistService


@pytest.fixture(scope="session", autouse=True)
def quiet_logging():
    """Test logging: warnings and above on stderr, no files."""
    init_logging(environment="test", log_to_file=False)


@pytest.fixture(scope="function")
def db_engine(tmp_path: Path):
    """
    Create a file-backed SQLite database with all tables.

    A file (rather than :memory:) lets the API test client, which runs
    handlers in worker threads, see the same data as the test session.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'dinnerclub.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def locking_engine(db_engine):
    """
    Second engine on the same file whose transactions take the write lock
    up front, as the application engine does. Used by request handlers and
    by tests that write from several threads.
    """
    engine = use_immediate_transactions(create_engine(
        db_engine.url,
        connect_args={"check_same_thread": False, "timeout": 30},
    ))
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create a database session for testing.
    """
    SessionLocal = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = SessionLocal()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture(scope="function")
def make_member(db_session: Session) -> Callable[..., Member]:
    """
    Factory creating committed members with unique emails.
    """
    counter = itertools.count(1)

    def _make(
        name: str | None = None,
        credit_balance: int = 0,
        subscription_status: str = "inactive",
        role: str = "user",
        **kwargs
    ) -> Member:
        n = next(counter)
        member = Member(
            name=name or f"Member {n:02d}",
            email=kwargs.pop("email", f"member{n}@example.com"),
            role=role,
            credit_balance=credit_balance,
            subscription_status=subscription_status,
            created_at=kwargs.pop("created_at", datetime.utcnow()),
            **kwargs
        )
        db_session.add(member)
        db_session.commit()
        return member

    return _make


@pytest.fixture(scope="function")
def make_dinner(db_session: Session) -> Callable[..., Dinner]:
    """
    Factory creating committed dinners one week out.
    """
    counter = itertools.count(1)

    def _make(seats: int = 6, **kwargs) -> Dinner:
        n = next(counter)
        dinner = Dinner(
            title=kwargs.pop("title", f"Dinner {n}"),
            event_date=kwargs.pop("event_date", datetime.utcnow() + timedelta(days=7)),
            seats=seats,
            status=kwargs.pop("status", "confirmed"),
            **kwargs
        )
        db_session.add(dinner)
        db_session.commit()
        return dinner

    return _make


@pytest.fixture(scope="function")
def city(db_session: Session) -> City:
    city = City(name="Austin")
    db_session.add(city)
    db_session.commit()
    return city


@pytest.fixture(scope="function")
def restaurant(db_session: Session, city: City) -> Restaurant:
    restaurant = Restaurant(name="Olive & Ember", city_id=city.id, capacity=24)
    db_session.add(restaurant)
    db_session.commit()
    return restaurant


@pytest.fixture(scope="function")
def assignment_service(db_session: Session) -> AssignmentService:
    return AssignmentService(db_session)


@pytest.fixture(scope="function")
def notifier() -> NotificationService:
    return NotificationService(app_name="Test Club")


@pytest.fixture(scope="function")
def waitlist_service(db_session: Session, notifier: NotificationService) -> WaitlistService:
    return WaitlistService(db_session, notifier=notifier)


# ----------------------------------------------------------------------------
# HTTP layer
# ----------------------------------------------------------------------------

@pytest.fixture(scope="function")
def app(locking_engine):
    """
    FastAPI app whose get_db dependency yields sessions on the test database.
    """
    application = create_app(init_database=False)
    TestingSession = sessionmaker(
        bind=locking_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    def override_get_db():
        session = TestingSession()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture(scope="function")
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture(scope="function")
def admin(make_member) -> Member:
    return make_member(name="Ada Admin", email="admin@example.com", role="admin")


@pytest.fixture(scope="function")
def admin_headers(admin: Member) -> dict:
    token = issue_token(admin.id, admin.email, admin.role, get_settings().jwt_secret)
    return {"Authorization": f"Bearer {token}"}
