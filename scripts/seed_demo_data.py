#!/usr/bin/env python3
"""
Populate a development database with demo profiles, assignments and scans.

Usage: DB_URI=sqlite:///retinascan.db python scripts/seed_demo_data.py
"""

import random
import uuid
from datetime import timedelta

from faker import Faker
from sqlalchemy import insert

from retinascan.assignments import AssignmentRegistry
from retinascan.database import create_schema, init_engine, profiles, scans
from retinascan.identity import issue_dev_token
from retinascan.inference import DIAGNOSIS_LABELS, analyze_image
from retinascan.models import utcnow

# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
NUM_DOCTORS = 8
NUM_PATIENTS = 40
MAX_SCANS_PER_PATIENT = 4

# share of doctors per review state
DOCTOR_STATUS_WEIGHTS = {"approved": 0.6, "pending": 0.3, "rejected": 0.1}

SPECIALTIES = ["Ophthalmology", "Retina", "Endocrinology", "Optometry", "General Practice"]

# --------------------------------------------------------------------
# SETUP
# --------------------------------------------------------------------
fake = Faker()
random.seed(42)
Faker.seed(42)


# --------------------------------------------------------------------
# HELPERS
# --------------------------------------------------------------------
def random_datetime_within(days_back=365):
    delta = timedelta(days=random.randint(0, days_back), seconds=random.randint(0, 86400))
    return utcnow() - delta


def profile_row(role, status, **extra):
    created = random_datetime_within()
    row = {
        "id": str(uuid.uuid4()),
        "email": fake.unique.email(),
        "role": role,
        "status": status,
        "name": fake.name(),
        "phone": fake.phone_number(),
        "date_of_birth": None,
        "gender": None,
        "address": None,
        "license_number": None,
        "specialty": None,
        "created_at": created,
        "updated_at": created,
    }
    row.update(extra)
    return row


# --------------------------------------------------------------------
# SEED FUNCTIONS
# --------------------------------------------------------------------
def seed_admin(conn):
    row = profile_row("admin", "approved")
    conn.execute(insert(profiles).values(**row))
    return row


def seed_doctors(conn, n=NUM_DOCTORS):
    statuses = list(DOCTOR_STATUS_WEIGHTS)
    weights = list(DOCTOR_STATUS_WEIGHTS.values())
    rows = []
    for _ in range(n):
        rows.append(profile_row(
            "doctor",
            random.choices(statuses, weights)[0],
            license_number=f"MD-{fake.random_int(100000, 999999)}",
            specialty=random.choice(SPECIALTIES),
        ))
    conn.execute(insert(profiles), rows)
    return rows


def seed_patients(conn, n=NUM_PATIENTS):
    rows = []
    for _ in range(n):
        rows.append(profile_row(
            "patient",
            "approved",
            date_of_birth=fake.date_of_birth(minimum_age=18, maximum_age=90).isoformat(),
            gender=random.choice(["female", "male", "other"]),
            address=fake.address().replace("\n", ", "),
        ))
    conn.execute(insert(profiles), rows)
    return rows


def seed_scans(conn, patient_ids, doctor_by_patient):
    rows = []
    for pid in patient_ids:
        doctor_id = doctor_by_patient.get(pid)
        if doctor_id is None:
            continue
        for _ in range(random.randint(0, MAX_SCANS_PER_PATIENT)):
            result = analyze_image(b"demo", rng=random)
            url = f"/api/images/demo_{uuid.uuid4().hex}.jpg"
            rows.append({
                "patient_id": pid,
                "timestamp": random_datetime_within(180),
                "original_image_url": url,
                "heatmap_image_url": url,
                "diagnosis": DIAGNOSIS_LABELS[result.severity],
                "severity": result.severity,
                "confidence": result.confidence,
                "model_version": result.model_version,
                "inference_mode": result.inference_mode,
                "inference_time": result.inference_time,
                "preprocessing_method": result.preprocessing_method,
                "metadata": {"uploadedBy": doctor_id, "seeded": True},
            })
    if rows:
        conn.execute(insert(scans), rows)
    return rows


def main():
    engine = init_engine()
    create_schema(engine)

    with engine.begin() as conn:
        admin = seed_admin(conn)
        doctors = seed_doctors(conn)
        patients = seed_patients(conn)
    print(f"[seed] 1 admin, {len(doctors)} doctors, {len(patients)} patients")

    approved = [d["id"] for d in doctors if d["status"] == "approved"]
    registry = AssignmentRegistry(engine)
    doctor_by_patient = {}
    for p in patients:
        if approved and random.random() < 0.8:
            doctor_id = random.choice(approved)
            registry.assign(p["id"], doctor_id)
            doctor_by_patient[p["id"]] = doctor_id
    print(f"[seed] {len(doctor_by_patient)} assignments")

    with engine.begin() as conn:
        scan_rows = seed_scans(conn, [p["id"] for p in patients], doctor_by_patient)
    print(f"[seed] {len(scan_rows)} scans")

    print("\nDemo tokens (24h):")
    print(f"  admin   {admin['email']}\n    {issue_dev_token(admin['id'], admin['email'])}")
    if approved:
        doc = next(d for d in doctors if d["id"] == approved[0])
        print(f"  doctor  {doc['email']}\n    {issue_dev_token(doc['id'], doc['email'])}")
    pat = patients[0]
    print(f"  patient {pat['email']}\n    {issue_dev_token(pat['id'], pat['email'])}")


if __name__ == "__main__":
    main()
