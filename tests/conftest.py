"""
Shared fixtures: an in-memory SQLite store and helpers to seed profiles.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.pool import StaticPool

from retinascan.database import create_schema, profiles

TEST_SECRET = "test-secret-key"
TEST_AUDIENCE = "authenticated"


class FakeClock:
    """Deterministic clock; each call is one second after the previous."""
    def __init__(self, start=datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


def make_engine(url="sqlite://"):
    if url == "sqlite://":
        engine = create_engine(
            url, future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, future=True, connect_args={"timeout": 30})
    create_schema(engine)
    return engine


def add_profile(engine, profile_id, role, status=None, name=None, created_at=None, **extra):
    """Insert a profile row directly, bypassing registration rules."""
    created_at = created_at or datetime(2024, 1, 1)
    row = {
        "id": profile_id,
        "email": extra.pop("email", f"{profile_id}@example.com"),
        "role": role,
        "status": status or ("pending" if role == "doctor" else "approved"),
        "name": name or profile_id.upper(),
        "phone": None,
        "date_of_birth": None,
        "gender": None,
        "address": None,
        "license_number": None,
        "specialty": None,
        "created_at": created_at,
        "updated_at": created_at,
    }
    row.update(extra)
    with engine.begin() as conn:
        conn.execute(insert(profiles).values(**row))
    return profile_id


@pytest.fixture
def engine():
    eng = make_engine()
    yield eng
    eng.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def people(engine):
    """A small cast: two approved doctors, a pending and a rejected one,
    two patients and an admin."""
    add_profile(engine, "d1", "doctor", "approved", name="Dr One")
    add_profile(engine, "d2", "doctor", "approved", name="Dr Two")
    add_profile(engine, "dp", "doctor", "pending", name="Dr Pending")
    add_profile(engine, "dr", "doctor", "rejected", name="Dr Rejected")
    add_profile(engine, "p1", "patient", name="Pat One")
    add_profile(engine, "p2", "patient", name="Pat Two")
    add_profile(engine, "a1", "admin", name="Admin")
    return engine
