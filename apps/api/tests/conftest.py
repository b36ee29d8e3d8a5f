"""
Pytest configuration and fixtures

Tests run against a single in-memory SQLite database. The schema is created
before and dropped after every test, so nothing leaks between tests.
"""
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from functools import partial
from types import SimpleNamespace

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt-signing-0123456789abcdef")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["LOCAL_UPLOAD_DIR"] = tempfile.mkdtemp(prefix="uploads-")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient

from core.database import Base, SessionLocal, engine
from core.security import create_access_token, get_password_hash
from main import app
from models import Company, Player, Team, User
from services.tenancy import build_principal

TEST_PASSWORD = "Password123"
_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Build a bearer header for a user row."""
    def _headers(user):
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}
    return _headers


def make_user(db, email, role, company_id=None, name=None, verified=True, onboarded=True, **fields):
    user = User(
        email=email,
        name=name or email.split("@")[0].title(),
        password_hash=_PASSWORD_HASH,
        role=role,
        company_id=company_id,
        email_verified=verified,
        onboarded=onboarded,
        **fields,
    )
    db.add(user)
    db.flush()
    return user


def make_company(db, owner_email, name="Club", **owner_fields):
    owner = make_user(db, owner_email, "owner", **owner_fields)
    company = Company(owner_id=owner.id, name=name)
    db.add(company)
    db.flush()
    owner.company_id = company.id
    db.flush()
    return company, owner


def make_player(db, team, supervisor, first_name, last_name, created_at=None, **fields):
    player = Player(
        team_id=team.id,
        parent_user_id=supervisor.id if supervisor else None,
        first_name=first_name,
        last_name=last_name,
        created_at=created_at or BASE_TIME,
        **fields,
    )
    db.add(player)
    db.flush()
    return player


def build_tenant(db, prefix, company_name):
    """
    A company with one account per role, two teams (one coached) and two
    players supervised by the parent.
    """
    company, owner = make_company(db, f"{prefix}-owner@example.com", name=company_name)
    admin = make_user(db, f"{prefix}-admin@example.com", "admin", company.id)
    coach = make_user(db, f"{prefix}-coach@example.com", "coach", company.id)
    other_coach = make_user(db, f"{prefix}-coach2@example.com", "coach", company.id)
    parent = make_user(db, f"{prefix}-parent@example.com", "parent", company.id)

    team = Team(company_id=company.id, coach_id=coach.id, name=f"{company_name} U12", created_at=BASE_TIME)
    other_team = Team(
        company_id=company.id,
        coach_id=other_coach.id,
        name=f"{company_name} U14",
        created_at=BASE_TIME + timedelta(days=1),
    )
    db.add_all([team, other_team])
    db.flush()

    player = make_player(
        db, team, parent, "Sam", "Young",
        dob=datetime(2014, 5, 1).date(), gender="male", dominant_foot="right",
    )
    sibling = make_player(
        db, other_team, parent, "Alex", "Young",
        dob=datetime(2012, 3, 9).date(), gender="female", dominant_foot="left",
        created_at=BASE_TIME + timedelta(minutes=5),
    )
    unsupervised = make_player(db, other_team, None, "Kim", "Adams")

    db.commit()
    return SimpleNamespace(
        company=company,
        owner=owner,
        admin=admin,
        coach=coach,
        other_coach=other_coach,
        parent=parent,
        team=team,
        other_team=other_team,
        player=player,
        sibling=sibling,
        unsupervised=unsupervised,
    )


@pytest.fixture
def tenant(db_session):
    return build_tenant(db_session, "a", "Alpha FC")


@pytest.fixture
def other_tenant(db_session):
    return build_tenant(db_session, "b", "Beta FC")


@pytest.fixture
def principal_of(db_session):
    """Materialize the Principal of a user row, as the request dependency does."""
    def _principal(user):
        return build_principal(db_session, user)
    return _principal


@pytest.fixture
def factory(db_session):
    """Row builders bound to the test session. Callers commit."""
    return SimpleNamespace(
        user=partial(make_user, db_session),
        company=partial(make_company, db_session),
        player=partial(make_player, db_session),
    )
