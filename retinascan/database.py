"""
Database engine initialisation, table definitions and schema introspection.
"""

import sys
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import (
    JSON, Column, DateTime, Integer, MetaData, String, Table, Text,
    UniqueConstraint, create_engine, inspect, text,
)
from sqlalchemy.exc import SQLAlchemyError

from retinascan.config import get_env
from retinascan.errors import InfrastructureError

metadata = MetaData()

profiles = Table(
    "profiles", metadata,
    Column("id", String(64), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("role", String(16), nullable=False, index=True),
    Column("status", String(16), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("phone", String(50)),
    Column("date_of_birth", String(32)),
    Column("gender", String(32)),
    Column("address", Text),
    Column("license_number", String(100)),
    Column("specialty", String(100)),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

# patient_id is the uniqueness key: a patient has at most one doctor.
doctor_patients = Table(
    "doctor_patients", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("patient_id", String(64), nullable=False),
    Column("doctor_id", String(64), nullable=False, index=True),
    Column("assigned_at", DateTime, nullable=False),
    UniqueConstraint("patient_id", name="uq_doctor_patients_patient_id"),
)

scans = Table(
    "scans", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("patient_id", String(64), nullable=False, index=True),
    Column("timestamp", DateTime, nullable=False),
    Column("original_image_url", Text, nullable=False),
    Column("heatmap_image_url", Text, nullable=False),
    Column("diagnosis", String(255), nullable=False),
    Column("severity", String(16), nullable=False),
    Column("confidence", Integer, nullable=False),
    Column("model_version", String(100), nullable=False),
    Column("inference_mode", String(100), nullable=False),
    Column("inference_time", Integer, nullable=False),
    Column("preprocessing_method", String(100), nullable=False),
    Column("metadata", JSON),
)


def init_engine(db_uri: Optional[str] = None):
    """Create a SQLAlchemy engine and verify the connection."""
    db_uri = db_uri or get_env("DB_URI")
    engine = create_engine(db_uri, echo=False, future=True, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def create_schema(engine) -> None:
    """Create any missing portal tables."""
    metadata.create_all(engine)


@contextmanager
def store_errors(action: str):
    """Translate driver/storage failures into a retryable InfrastructureError."""
    try:
        yield
    except SQLAlchemyError as e:
        print(f"[ERROR] Storage failure while trying to {action}: {e}", file=sys.stderr)
        raise InfrastructureError() from e


def describe_schema(engine) -> str:
    """Describe the portal tables and their columns."""
    insp = inspect(engine)
    tables: List[str] = insp.get_table_names()
    lines = []
    for t in sorted(tables):
        cols = insp.get_columns(t)
        col_desc = ", ".join(f"{c['name']} {str(c['type'])}" for c in cols)
        lines.append(f"Table {t}({col_desc})")
    return "\n".join(lines) if lines else "(no tables)"
