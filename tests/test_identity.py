"""
Unit tests for the identity resolver and the JWT identity provider.
"""

from datetime import timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from retinascan.database import profiles
from retinascan.errors import (
    Forbidden, InfrastructureError, ProfileMissing, Unauthenticated,
)
from retinascan.identity import (
    IdentityResolver, JwtIdentityProvider, extract_bearer, issue_dev_token,
)

from conftest import TEST_AUDIENCE, TEST_SECRET, add_profile


@pytest.fixture
def provider():
    return JwtIdentityProvider(secret=TEST_SECRET, audience=TEST_AUDIENCE)


@pytest.fixture
def resolver(engine, provider):
    return IdentityResolver(engine, provider)


def token_for(identity_id, email=None, **kwargs):
    kwargs.setdefault("secret", TEST_SECRET)
    kwargs.setdefault("audience", TEST_AUDIENCE)
    return issue_dev_token(identity_id, email, **kwargs)


class ExplodingProvider:
    def validate_credential(self, token):
        raise ConnectionError("identity service down")


class BrokenEngine:
    """Engine whose connections fail like an unreachable database."""
    def connect(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


# ── Tests: provider ──────────────────────────────────────────────────

def test_provider_accepts_valid_token(provider):
    identity = provider.validate_credential(token_for("u-1", "u1@example.com"))
    assert identity.id == "u-1"
    assert identity.email == "u1@example.com"


def test_provider_rejects_expired_token(provider):
    token = token_for("u-1", expires_in=timedelta(seconds=-10))
    assert provider.validate_credential(token) is None


def test_provider_rejects_wrong_secret(provider):
    assert provider.validate_credential(token_for("u-1", secret="other")) is None


def test_provider_rejects_wrong_audience(provider):
    assert provider.validate_credential(token_for("u-1", audience="someone-else")) is None


def test_provider_rejects_garbage(provider):
    assert provider.validate_credential("not.a.jwt") is None


# ── Tests: extract_bearer ────────────────────────────────────────────

def test_extract_bearer_ok():
    assert extract_bearer("Bearer abc") == "abc"
    assert extract_bearer("bearer abc") == "abc"


@pytest.mark.parametrize("header", [None, "", "abc", "Basic abc", "Bearer", "Bearer a b"])
def test_extract_bearer_malformed(header):
    with pytest.raises(Unauthenticated):
        extract_bearer(header)


# ── Tests: resolver ──────────────────────────────────────────────────

def test_resolve_identity_returns_profile(engine, resolver):
    add_profile(engine, "p1", "patient", name="Pat")
    profile = resolver.resolve_identity(token_for("p1"))
    assert profile.id == "p1"
    assert profile.role == "patient"
    assert profile.name == "Pat"


def test_resolve_identity_missing_credential(resolver):
    with pytest.raises(Unauthenticated):
        resolver.resolve_identity(None)


def test_resolve_identity_invalid_credential(resolver):
    with pytest.raises(Unauthenticated) as e:
        resolver.resolve_identity("nope")
    assert e.value.message == "Please sign in again"


def test_resolve_identity_without_profile_is_profile_missing(resolver):
    with pytest.raises(ProfileMissing):
        resolver.resolve_identity(token_for("brand-new"))


def test_authenticate_without_profile_is_fine(resolver):
    assert resolver.authenticate(token_for("brand-new", "n@example.com")).id == "brand-new"


def test_resolve_identity_rejects_unknown_stored_role(engine, resolver):
    add_profile(engine, "x", "nurse", status="approved")
    with pytest.raises(Forbidden, match="Invalid role"):
        resolver.resolve_identity(token_for("x"))


def test_resolve_identity_rejects_unknown_stored_status(engine, resolver):
    add_profile(engine, "x", "doctor", status="suspended")
    with pytest.raises(Forbidden, match="Invalid status"):
        resolver.resolve_identity(token_for("x"))


def test_status_changes_are_seen_on_next_resolution(engine, resolver):
    add_profile(engine, "d1", "doctor", "pending")
    token = token_for("d1")
    assert resolver.resolve_identity(token).status == "pending"

    with engine.begin() as conn:
        conn.execute(update(profiles).where(profiles.c.id == "d1").values(status="approved"))

    assert resolver.resolve_identity(token).status == "approved"


def test_identity_provider_failure_is_infrastructure(engine):
    resolver = IdentityResolver(engine, ExplodingProvider())
    with pytest.raises(InfrastructureError):
        resolver.resolve_identity("anything")


def test_store_failure_is_infrastructure(provider, capsys):
    resolver = IdentityResolver(BrokenEngine(), provider)
    with pytest.raises(InfrastructureError) as e:
        resolver.resolve_identity(token_for("p1"))
    assert "connection refused" not in e.value.message
    assert "Storage failure" in capsys.readouterr().err
