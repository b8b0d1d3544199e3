"""
Assignment Registry – the one-doctor-per-patient relationship.

Replacement is a single upsert keyed by ``patient_id`` (the table's unique
constraint), so two concurrent selections by the same patient serialise in
the store and a reader never sees zero or two doctors for that patient.
Joins to ``profiles`` are done as explicit two-step fetches.
"""

from typing import Callable, List, Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.dialects import postgresql, sqlite

from retinascan.database import doctor_patients, profiles, store_errors
from retinascan.errors import DoctorNotEligible, PatientNotFound
from retinascan.identity import load_profile
from retinascan.models import AssignedPatient, Assignment, Profile, utcnow

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class AssignmentRegistry:

    def __init__(self, engine, clock: Callable = utcnow):
        self.engine = engine
        self.clock = clock

    # ── writes ───────────────────────────────────────────────────────

    def assign(self, patient_id: str, doctor_id: str) -> Assignment:
        """Point *patient_id* at *doctor_id*, replacing any previous doctor."""
        if not doctor_id:
            raise DoctorNotEligible()

        assigned_at = self.clock()
        with store_errors("assign doctor"):
            with self.engine.begin() as conn:
                patient = load_profile(conn, patient_id)
                if patient is None or not patient.is_patient:
                    raise PatientNotFound()

                doctor = load_profile(conn, doctor_id)
                if doctor is None or not doctor.is_doctor or doctor.status != "approved":
                    raise DoctorNotEligible()

                self._replace(conn, patient_id, doctor_id, assigned_at)

        print(f"[audit] Patient {patient_id} assigned to doctor {doctor_id}")
        return Assignment(patient_id=patient_id, doctor_id=doctor_id, assigned_at=assigned_at)

    def _replace(self, conn, patient_id: str, doctor_id: str, assigned_at) -> None:
        upsert = _UPSERT_DIALECTS.get(conn.dialect.name)
        if upsert is not None:
            stmt = upsert(doctor_patients).values(
                patient_id=patient_id, doctor_id=doctor_id, assigned_at=assigned_at,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[doctor_patients.c.patient_id],
                set_={"doctor_id": doctor_id, "assigned_at": assigned_at},
            )
            conn.execute(stmt)
            return

        # Other backends: delete + insert inside the caller's transaction;
        # the unique constraint still rejects a competing insert.
        conn.execute(delete(doctor_patients).where(doctor_patients.c.patient_id == patient_id))
        conn.execute(insert(doctor_patients).values(
            patient_id=patient_id, doctor_id=doctor_id, assigned_at=assigned_at,
        ))

    # ── reads ────────────────────────────────────────────────────────

    def get_assignment(self, patient_id: str) -> Optional[Assignment]:
        with store_errors("load assignment"):
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(doctor_patients).where(doctor_patients.c.patient_id == patient_id)
                ).mappings().first()
        if row is None:
            return None
        return Assignment(
            patient_id=row["patient_id"],
            doctor_id=row["doctor_id"],
            assigned_at=row["assigned_at"],
        )

    def get_doctor_for(self, patient_id: str) -> Optional[Profile]:
        """The patient's current doctor, or None when unassigned."""
        assignment = self.get_assignment(patient_id)
        if assignment is None:
            return None
        with store_errors("load doctor"):
            with self.engine.connect() as conn:
                return load_profile(conn, assignment.doctor_id)

    def get_patients_for(self, doctor_id: str, newest_first: bool = True) -> List[AssignedPatient]:
        """Every patient assigned to *doctor_id* with the assignment time."""
        order = doctor_patients.c.assigned_at.desc() if newest_first \
            else doctor_patients.c.assigned_at.asc()

        with store_errors("load assigned patients"):
            with self.engine.connect() as conn:
                links = conn.execute(
                    select(doctor_patients.c.patient_id, doctor_patients.c.assigned_at)
                    .where(doctor_patients.c.doctor_id == doctor_id)
                    .order_by(order, doctor_patients.c.patient_id)
                ).mappings().all()
                if not links:
                    return []

                rows = conn.execute(
                    select(profiles).where(profiles.c.id.in_([l["patient_id"] for l in links]))
                ).mappings().all()

        by_id = {row["id"]: Profile.from_row(row) for row in rows}
        return [
            AssignedPatient(profile=by_id[l["patient_id"]], assigned_at=l["assigned_at"])
            for l in links
            if l["patient_id"] in by_id
        ]

    def patient_ids_for(self, doctor_id: str) -> List[str]:
        with store_errors("load assigned patient ids"):
            with self.engine.connect() as conn:
                return list(conn.execute(
                    select(doctor_patients.c.patient_id)
                    .where(doctor_patients.c.doctor_id == doctor_id)
                ).scalars())

    def list_approved_doctors(self) -> List[Profile]:
        """Directory of doctors a patient may choose from, by name."""
        with store_errors("list approved doctors"):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(profiles)
                    .where(profiles.c.role == "doctor", profiles.c.status == "approved")
                    .order_by(profiles.c.name, profiles.c.id)
                ).mappings().all()
        return [Profile.from_row(r) for r in rows]
