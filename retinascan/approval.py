"""
Doctor Approval Workflow: pending → approved | rejected.

Decisions are terminal. Repeating the decision a doctor already has is an
idempotent success; flipping approved ↔ rejected raises InvalidTransition.
"""

from typing import Callable, List

from sqlalchemy import select, update

from retinascan.config import DECISION_STATUSES
from retinascan.database import profiles, store_errors
from retinascan.errors import InvalidTransition, NotFound, ValidationError
from retinascan.identity import load_profile
from retinascan.models import Profile, utcnow


class ApprovalWorkflow:

    def __init__(self, engine, clock: Callable = utcnow):
        self.engine = engine
        self.clock = clock

    def list_pending(self) -> List[Profile]:
        """Pending doctors, oldest registration first."""
        with store_errors("list pending doctors"):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(profiles)
                    .where(profiles.c.role == "doctor", profiles.c.status == "pending")
                    .order_by(profiles.c.created_at.asc(), profiles.c.id)
                ).mappings().all()
        return [Profile.from_row(r) for r in rows]

    def set_status(self, doctor_id: str, new_status: str) -> Profile:
        if new_status not in DECISION_STATUSES:
            raise ValidationError("status must be 'approved' or 'rejected'")

        with store_errors("update doctor status"):
            with self.engine.begin() as conn:
                # Conditional update: only a pending doctor moves.
                result = conn.execute(
                    update(profiles)
                    .where(
                        profiles.c.id == doctor_id,
                        profiles.c.role == "doctor",
                        profiles.c.status == "pending",
                    )
                    .values(status=new_status, updated_at=self.clock())
                )
                profile = load_profile(conn, doctor_id)

        # Non-doctor ids are reported exactly like unknown ids.
        if profile is None or not profile.is_doctor:
            raise NotFound("Doctor not found")

        if result.rowcount == 0 and profile.status != new_status:
            raise InvalidTransition(
                f"Doctor is already {profile.status}; decisions are final"
            )

        if result.rowcount:
            print(f"[audit] Doctor {doctor_id} status set to {new_status}")
        return profile

    def approve(self, doctor_id: str) -> Profile:
        return self.set_status(doctor_id, "approved")

    def reject(self, doctor_id: str) -> Profile:
        return self.set_status(doctor_id, "rejected")
