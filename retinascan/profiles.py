"""
Profile creation: finishing self-service registration and seeding admins.
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from retinascan.config import SELF_SERVICE_ROLES
from retinascan.database import profiles, store_errors
from retinascan.errors import Conflict, Forbidden, NotFound, ValidationError
from retinascan.identity import load_profile
from retinascan.models import Identity, Profile, utcnow

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_OPTIONAL_FIELDS = {
    "phone": "phone",
    "dateOfBirth": "date_of_birth",
    "gender": "gender",
    "address": "address",
    "licenseNumber": "license_number",
    "specialty": "specialty",
}


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_REGEX.match(email or ""))


@dataclass
class RegistrationPayload:
    email: str
    role: str
    name: str
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    license_number: Optional[str] = None
    specialty: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "RegistrationPayload":
        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be a JSON object")

        email = str(payload.get("email") or "").strip()
        name = str(payload.get("name") or "").strip()
        role = str(payload.get("role") or "").strip().lower()

        if not is_valid_email(email):
            raise ValidationError("A valid email is required")
        if not name:
            raise ValidationError("name is required")
        if role == "admin":
            raise Forbidden("Cannot self-assign admin role")
        if role not in SELF_SERVICE_ROLES:
            raise ValidationError("role must be 'patient' or 'doctor'")

        optional = {}
        for key, attr in _OPTIONAL_FIELDS.items():
            value = payload.get(key, payload.get(attr))
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            optional[attr] = (value.strip() or None) if value else None

        return cls(email=email, role=role, name=name, **optional)


def initial_status(role: str) -> str:
    """Doctors wait for an admin; everyone else starts approved."""
    return "pending" if role == "doctor" else "approved"


def _insert_profile(engine, row: dict) -> Profile:
    with store_errors("create profile"):
        with engine.begin() as conn:
            try:
                conn.execute(insert(profiles).values(**row))
            except IntegrityError as e:
                # Same id or email registered concurrently.
                raise Conflict("Profile already exists") from e
            return load_profile(conn, row["id"])


def finish_registration(engine, identity: Identity, payload: RegistrationPayload) -> Profile:
    """Create the caller's profile exactly once, keyed by the identity id.

    Role comes from the payload (never admin); status is computed here.
    """
    with store_errors("check existing profile"):
        with engine.connect() as conn:
            existing = load_profile(conn, identity.id)
    if existing is not None:
        raise Conflict("Profile already exists")

    now = utcnow()
    row = {
        "id": identity.id,
        "email": payload.email,
        "role": payload.role,
        "status": initial_status(payload.role),
        "name": payload.name,
        "phone": payload.phone,
        "date_of_birth": payload.date_of_birth,
        "gender": payload.gender,
        "address": payload.address,
        "license_number": payload.license_number if payload.role == "doctor" else None,
        "specialty": payload.specialty if payload.role == "doctor" else None,
        "created_at": now,
        "updated_at": now,
    }
    profile = _insert_profile(engine, row)
    print(f"[auth] Registered {profile.role} profile {profile.id} (status={profile.status})")
    return profile


def create_admin(engine, identity_id: str, email: str, name: str) -> Profile:
    """Out-of-band admin creation; no HTTP path leads here."""
    if not is_valid_email(email):
        raise ValidationError("A valid email is required")
    if not name.strip():
        raise ValidationError("name is required")
    now = utcnow()
    profile = _insert_profile(engine, {
        "id": identity_id,
        "email": email,
        "role": "admin",
        "status": "approved",
        "name": name.strip(),
        "phone": None,
        "date_of_birth": None,
        "gender": None,
        "address": None,
        "license_number": None,
        "specialty": None,
        "created_at": now,
        "updated_at": now,
    })
    print(f"[audit] Created admin profile {profile.id}")
    return profile


def get_profile(engine, profile_id: str) -> Profile:
    with store_errors("load profile"):
        with engine.connect() as conn:
            profile = load_profile(conn, profile_id)
    if profile is None:
        raise NotFound("Profile not found")
    return profile
