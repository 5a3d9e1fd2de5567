"""
Pytest configuration and fixtures

Every test gets its own in-memory SQLite database with the schema created
from the models, so nothing leaks between tests.
"""
import os
import sys
from datetime import datetime

# Must be set before core.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FORMAT", "text")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from sqlalchemy.orm import Session

from core.database import Base, build_engine
from models import Office, Rep, User, UNASSIGNED_OFFICE
from services.identity import load_office_catalog


@pytest.fixture(scope="function")
def db_engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    session = Session(bind=db_engine, expire_on_commit=False)
    yield session
    session.close()


@pytest.fixture
def offices(db_session):
    """
    The unassigned office plus three real ones.

    Denver runs one hour ahead of the server clock, London seven.
    """
    rows = {
        UNASSIGNED_OFFICE: Office(name=UNASSIGNED_OFFICE, head_count=0, day_offset_hours=0),
        "OC": Office(name="OC", head_count=10, day_offset_hours=0),
        "Denver": Office(name="Denver", head_count=5, day_offset_hours=1),
        "London": Office(name="London", head_count=0, day_offset_hours=7),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture
def catalog(db_session, offices):
    return load_office_catalog(db_session)


@pytest.fixture
def make_user(db_session, offices):
    """Create a user directly in the given office."""
    def _make(email: str, office: str = "OC") -> User:
        user = User(email=email, office_id=offices[office].id)
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def add_rep(db_session):
    """Insert a rep event with an explicit timestamp."""
    def _add(user: User, exercise: str, count: int, created_at: datetime) -> Rep:
        rep = Rep(user_id=user.id, exercise=exercise, count=count, created_at=created_at)
        db_session.add(rep)
        db_session.commit()
        return rep
    return _add
