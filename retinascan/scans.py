"""
Scan Record Access Control – row-level visibility over scan records.

Visibility is worked out on every read from the requester's role and the
current assignments; nothing about it is stored on the scan.
"""

from typing import Callable, List, Optional

from sqlalchemy import insert, select

from retinascan.assignments import AssignmentRegistry
from retinascan.config import DEFAULT_RECENT_LIMIT, MAX_RECENT_LIMIT
from retinascan.database import scans, store_errors
from retinascan.errors import Forbidden, NotFound, PatientNotFound
from retinascan.identity import load_profile
from retinascan.models import NewScan, Profile, ScanRecord, utcnow
from retinascan.rbac import VisibilityPolicy, build_policy, check_approval

SCAN_NOT_FOUND = "Scan not found"
# Largest id a signed 64-bit key column can hold.
MAX_SCAN_ID = 2 ** 63 - 1


class ScanAccess:

    def __init__(self, engine, registry: AssignmentRegistry, clock: Callable = utcnow):
        self.engine = engine
        self.registry = registry
        self.clock = clock

    def _scope(self, profile: Profile):
        """Return (policy, patient ids in scope or None for unrestricted)."""
        policy = build_policy(profile)
        if policy.unrestricted:
            return policy, None
        if policy.owner_id is not None:
            return policy, [policy.owner_id]
        return policy, self.registry.patient_ids_for(profile.id)

    def _query(self, patient_ids: Optional[List[str]], limit: Optional[int] = None) -> List[ScanRecord]:
        stmt = select(scans).order_by(scans.c.timestamp.desc(), scans.c.id.desc())
        if patient_ids is not None:
            stmt = stmt.where(scans.c.patient_id.in_(patient_ids))
        if limit is not None:
            stmt = stmt.limit(limit)
        with store_errors("load scans"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [ScanRecord.from_row(r) for r in rows]

    # ── reads ────────────────────────────────────────────────────────

    def list_visible_scans(self, profile: Profile) -> List[ScanRecord]:
        """All scans *profile* may see, newest first."""
        _, patient_ids = self._scope(profile)
        if patient_ids is not None and not patient_ids:
            return []
        return self._query(patient_ids)

    def list_recent_scans(self, profile: Profile, limit: int = DEFAULT_RECENT_LIMIT) -> List[ScanRecord]:
        limit = max(1, min(int(limit), MAX_RECENT_LIMIT))
        _, patient_ids = self._scope(profile)
        if patient_ids is not None and not patient_ids:
            return []
        return self._query(patient_ids, limit=limit)

    def get_visible_scan(self, profile: Profile, scan_id: int) -> ScanRecord:
        """One scan, or NotFound whether it is absent or out of scope."""
        policy, patient_ids = self._scope(profile)
        if not 0 < scan_id <= MAX_SCAN_ID:
            raise NotFound(SCAN_NOT_FOUND)

        with store_errors("load scan"):
            with self.engine.connect() as conn:
                row = conn.execute(select(scans).where(scans.c.id == scan_id)).mappings().first()

        if row is None:
            raise NotFound(SCAN_NOT_FOUND)
        scan = ScanRecord.from_row(row)
        if not self._in_scope(policy, patient_ids, scan.patient_id):
            raise NotFound(SCAN_NOT_FOUND)
        return scan

    def list_patient_scans(self, profile: Profile, patient_id: str) -> List[ScanRecord]:
        """Scans of one patient, if that patient is within *profile*'s scope."""
        policy, patient_ids = self._scope(profile)
        if not self._in_scope(policy, patient_ids, patient_id):
            raise PatientNotFound()
        return self._query([patient_id])

    def get_visible_image_scan(self, profile: Profile, image_url: str) -> ScanRecord:
        """The visible scan referencing *image_url*; NotFound otherwise."""
        policy, patient_ids = self._scope(profile)
        stmt = select(scans).where(
            (scans.c.original_image_url == image_url) | (scans.c.heatmap_image_url == image_url)
        )
        with store_errors("load scan image"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        for row in rows:
            scan = ScanRecord.from_row(row)
            if self._in_scope(policy, patient_ids, scan.patient_id):
                return scan
        raise NotFound("Image not found")

    @staticmethod
    def _in_scope(policy: VisibilityPolicy, patient_ids: Optional[List[str]], patient_id: str) -> bool:
        if patient_ids is None:
            return True
        return policy.allows_patient(patient_id, patient_ids)

    # ── writes ───────────────────────────────────────────────────────

    def create_scan(self, profile: Profile, new_scan: NewScan) -> ScanRecord:
        """Record a scan for the patient named in *new_scan*.

        Only approved doctors create scans, and only for a patient currently
        assigned to them.
        """
        if not profile.is_doctor:
            raise Forbidden("Forbidden")
        check_approval(profile)

        assigned = self.registry.patient_ids_for(profile.id)
        with store_errors("create scan"):
            with self.engine.begin() as conn:
                patient = load_profile(conn, new_scan.patient_id)
                if patient is None or not patient.is_patient or new_scan.patient_id not in assigned:
                    raise PatientNotFound()

                row = new_scan.to_row()
                row["timestamp"] = self.clock()
                result = conn.execute(insert(scans).values(**row))
                scan_id = result.inserted_primary_key[0]
                stored = conn.execute(select(scans).where(scans.c.id == scan_id)).mappings().first()

        print(f"[audit] Doctor {profile.id} created scan {scan_id} for patient {new_scan.patient_id}")
        return ScanRecord.from_row(stored)
