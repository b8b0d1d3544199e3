"""
Identity resolution: bearer credential → identity → stored profile.
"""

import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from sqlalchemy import select

from retinascan.config import (
    DOCTOR_STATUSES, JWT_ALGORITHM, JWT_AUDIENCE, ROLES, SECRET_KEY,
    TOKEN_EXPIRY_HOURS,
)
from retinascan.database import profiles, store_errors
from retinascan.errors import (
    Forbidden, InfrastructureError, PortalError, ProfileMissing, Unauthenticated,
)
from retinascan.models import Identity, Profile


class JwtIdentityProvider:
    """Validates access tokens signed by the hosted identity service.

    Tokens are HS256 JWTs carrying the stable account id in ``sub`` and the
    login email in ``email``.
    """

    def __init__(self, secret: str = SECRET_KEY, audience: Optional[str] = JWT_AUDIENCE,
                 algorithms=(JWT_ALGORITHM,)):
        self.secret = secret
        self.audience = audience
        self.algorithms = list(algorithms)

    def validate_credential(self, token: str) -> Optional[Identity]:
        """Return the token's identity, or None if the token is not acceptable."""
        options = {"require": ["sub", "exp"], "verify_aud": self.audience is not None}
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=self.algorithms,
                audience=self.audience,
                options=options,
            )
        except jwt.InvalidTokenError:
            return None

        sub = payload.get("sub")
        if not sub:
            return None
        return Identity(id=str(sub), email=payload.get("email"))


def issue_dev_token(identity_id: str, email: Optional[str] = None,
                    secret: str = SECRET_KEY, audience: Optional[str] = JWT_AUDIENCE,
                    expires_in: timedelta = timedelta(hours=TOKEN_EXPIRY_HOURS),
                    extra_claims: Optional[Dict[str, Any]] = None) -> str:
    """Mint a token shaped like the identity service's, for local development."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": identity_id,
        "email": email,
        "iat": now,
        "exp": now + expires_in,
    }
    if audience is not None:
        payload["aud"] = audience
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def extract_bearer(header_value: Optional[str]) -> str:
    """Pull the token out of an ``Authorization: Bearer <token>`` header."""
    if not header_value:
        raise Unauthenticated()
    parts = header_value.split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise Unauthenticated()
    return parts[1]


def load_profile(conn, profile_id: str) -> Optional[Profile]:
    """Fetch a profile row on an open connection; None when absent."""
    row = conn.execute(
        select(profiles).where(profiles.c.id == profile_id)
    ).mappings().first()
    return Profile.from_row(row) if row else None


class IdentityResolver:
    """Turns a bearer credential into the caller's current profile.

    Nothing is cached: every call re-reads the profile, so approval
    decisions take effect on the caller's next request.
    """

    def __init__(self, engine, provider: JwtIdentityProvider):
        self.engine = engine
        self.provider = provider

    def authenticate(self, credential: Optional[str]) -> Identity:
        if not credential:
            raise Unauthenticated()
        try:
            identity = self.provider.validate_credential(credential)
        except PortalError:
            raise
        except Exception as e:
            print(f"[ERROR] Identity provider failure: {e}", file=sys.stderr)
            raise InfrastructureError() from e
        if identity is None:
            raise Unauthenticated()
        return identity

    def resolve_identity(self, credential: Optional[str]) -> Profile:
        identity = self.authenticate(credential)

        with store_errors("load profile"):
            with self.engine.connect() as conn:
                profile = load_profile(conn, identity.id)

        if profile is None:
            raise ProfileMissing()
        if profile.role not in ROLES:
            raise Forbidden("Invalid role")
        if profile.status not in DOCTOR_STATUSES:
            raise Forbidden("Invalid status")
        return profile
