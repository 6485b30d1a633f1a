"""Shared pytest fixtures: in-memory DB, test user, user with stored points."""

import sys
import os

# Add server root to path so imports work
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import Point, User


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite database for each test."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db(engine):
    """Provide a DB session, closed after each test."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def test_user(db):
    """Create a test user."""
    user = User(username="testuser", email="test@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_points(db, user_id, points):
    """Store point dicts from gps_test_fixtures and return the Point rows in order."""
    rows = [
        Point(
            user_id=user_id,
            timestamp=pt["timestamp"],
            latitude=pt["latitude"],
            longitude=pt["longitude"],
            altitude=pt.get("altitude"),
            velocity=pt.get("velocity"),
            motion_data=pt.get("motion_data"),
            raw_data=pt.get("raw_data"),
        )
        for pt in points
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def populated_user(db, test_user):
    """Test user with two trips separated by a two hour pause."""
    from tests.gps_test_fixtures import TWO_TRIPS

    add_points(db, test_user.id, TWO_TRIPS)
    return test_user
