"""
Role-Based Access Control – the authorization guard and row-level scan policy.

Two independent predicates make up the guard:

* ``check_role``     – is the caller's role in the set the operation allows?
* ``check_approval`` – if the caller is a doctor, has an admin approved them?

``authorize`` composes them around an operation, always after identity
resolution, so a bad credential surfaces as Unauthenticated whatever roles
the operation would have required.
"""

from dataclasses import dataclass
from functools import wraps
from typing import Iterable, List, Optional

from retinascan.config import ROLES
from retinascan.errors import Forbidden
from retinascan.models import Profile

PENDING_APPROVAL_MESSAGE = "Doctor account pending approval"


def check_role(profile: Profile, required_roles: Optional[Iterable[str]]) -> None:
    """Raise Forbidden unless the profile's role is one of *required_roles*."""
    if required_roles is None:
        return
    if profile.role not in set(required_roles):
        raise Forbidden("Forbidden")


def check_approval(profile: Profile) -> None:
    """Raise Forbidden for doctors that are not (yet) approved."""
    if profile.is_doctor and profile.status != "approved":
        raise Forbidden(PENDING_APPROVAL_MESSAGE)


def authorize(resolver, required_roles: Optional[Iterable[str]] = None,
              require_approval: bool = True):
    """Decorator factory guarding an operation.

    The guarded callable takes the bearer credential as its first argument;
    the wrapped operation receives the resolved Profile in its place.
    """
    roles = tuple(required_roles) if required_roles is not None else None
    if roles is not None:
        unknown = set(roles) - set(ROLES)
        if unknown:
            raise ValueError(f"Unknown role(s): {', '.join(sorted(unknown))}")

    def decorator(operation):
        @wraps(operation)
        def guarded(credential, *args, **kwargs):
            profile = resolver.resolve_identity(credential)
            check_role(profile, roles)
            if require_approval:
                check_approval(profile)
            return operation(profile, *args, **kwargs)
        return guarded
    return decorator


@dataclass
class VisibilityPolicy:
    """Row-level scan scope derived from a profile."""
    role: str
    unrestricted: bool
    owner_id: Optional[str]
    assigned_only: bool
    notes: str

    def allows_patient(self, patient_id: str, assigned_ids: List[str]) -> bool:
        if self.unrestricted:
            return True
        if self.owner_id is not None:
            return patient_id == self.owner_id
        return patient_id in assigned_ids


def build_policy(profile: Profile) -> VisibilityPolicy:
    """Derive the scan visibility policy for *profile*."""

    if profile.role == "patient":
        return VisibilityPolicy(
            role="patient",
            unrestricted=False,
            owner_id=profile.id,
            assigned_only=False,
            notes="Patient sees only their own scans.",
        )

    if profile.role == "doctor":
        check_approval(profile)
        return VisibilityPolicy(
            role="doctor",
            unrestricted=False,
            owner_id=None,
            assigned_only=True,
            notes="Doctor sees scans of currently assigned patients only.",
        )

    if profile.role == "admin":
        return VisibilityPolicy(
            role="admin",
            unrestricted=True,
            owner_id=None,
            assigned_only=False,
            notes="Admin sees all scans.",
        )

    raise Forbidden("Invalid role")
