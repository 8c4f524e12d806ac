import os

# Must be set before db.py builds the engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("TICKET_PREFIX", None)
os.environ.pop("TRACKER_TIMEZONE", None)

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, delete

from app import app
from db import create_db_and_tables, engine, get_session
from models import User, WorkStatus
from users import UserContext, sign_in


@pytest.fixture(scope="function")
def test_session():
    """Create a test database session."""
    create_db_and_tables()
    with Session(engine) as session:
        yield session
        # Clean up all test data after test
        session.rollback()
        session.exec(delete(WorkStatus))
        session.exec(delete(User))
        session.commit()


@pytest.fixture(scope="function")
def client(test_session):
    """Create a test client with dependency override."""

    def get_test_session():
        yield test_session

    app.dependency_overrides[get_session] = get_test_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(session, username):
    data = sign_in(session, username)["data"]
    return UserContext(id=data.id, username=data.username)


@pytest.fixture
def alice(test_session):
    return make_user(test_session, "alice")


@pytest.fixture
def bob(test_session):
    return make_user(test_session, "bob")
