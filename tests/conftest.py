import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_SERVICE_ROLE", None)

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from civictrack.core.security import hash_password, make_tokens
from civictrack.db.base import Base
from civictrack.db.session import SessionLocal, engine
from civictrack.main import app
from civictrack.models.issue import Issue, IssueCategory, IssueStatus
from civictrack.models.issue_activity import IssueActivity
from civictrack.models.issue_photo import IssuePhoto
from civictrack.models.spam_report import SpamReport  # noqa: F401
from civictrack.models.user import User, UserRole
from civictrack.services.geocoding import GeocodingError, get_geocoder
from civictrack.services.map_sync import LatLng

ANAND = LatLng(22.5645, 72.9289)
DEFAULT = LatLng(20.5937, 78.9629)


class FakeGeocoder:
    """Offline stand-in: knows a fixed table of centers, never touches the network."""

    def __init__(self, centers=None, addresses=None):
        self.default_center = DEFAULT
        self.centers = {"388001": ANAND} if centers is None else centers
        self.addresses = addresses or {}
        self.calls = []
        self.address_calls = []

    def locate_address(self, address, postal_code):
        self.address_calls.append((address, postal_code))
        if (address, postal_code) not in self.addresses:
            raise GeocodingError(f"no location data found for {address}")
        return self.addresses[(address, postal_code)]

    def resolve_or_default(self, postal_code):
        self.calls.append(postal_code)
        if postal_code in self.centers:
            return self.centers[postal_code], False
        return self.default_center, True

    def reverse(self, lat, lng):
        return f"Location at {lat:.6f}, {lng:.6f}"


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def client(geocoder):
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, username="asha", email=None, role=UserRole.citizen, banned=False, password="password123"):
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        hashed_password=hash_password(password),
        role=role,
        is_banned=banned,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    tokens = make_tokens(user.id, user.role.value)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


_BASE_TIME = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def make_issue(db, n=0, postal_code="388001", category=IssueCategory.roads, status=IssueStatus.reported,
               reporter=None, lat=22.5645, lng=72.9289, hidden=False, anonymous=False, photos=(), **extra):
    issue = Issue(
        title=extra.pop("title", f"Issue {n}"),
        description=extra.pop("description", f"Description {n}"),
        category=category,
        status=status,
        postal_code=postal_code,
        area=extra.pop("area", "Anand"),
        location_address=extra.pop("location_address", "Station Road"),
        latitude=lat,
        longitude=lng,
        reporter_id=reporter.id if reporter else None,
        is_anonymous=anonymous,
        is_hidden=hidden,
        created_at=extra.pop("created_at", _BASE_TIME + timedelta(minutes=n)),
        **extra,
    )
    db.add(issue)
    db.flush()
    for i, url in enumerate(photos):
        db.add(IssuePhoto(issue_id=issue.id, photo_url=url, position=i))
    db.add(IssueActivity(issue_id=issue.id, action="reported", description="Issue reported by user",
                         created_at=issue.created_at))
    db.commit()
    db.refresh(issue)
    return issue


@pytest.fixture
def citizen(db):
    return make_user(db, "asha")


@pytest.fixture
def other_citizen(db):
    return make_user(db, "ravi")


@pytest.fixture
def admin_user(db):
    return make_user(db, "admin", role=UserRole.admin)
