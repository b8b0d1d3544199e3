"""
Centralised configuration constants and environment helpers.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Roles / lifecycle ────────────────────────────────────────────────
ROLES = ("patient", "doctor", "admin")
SELF_SERVICE_ROLES = ("patient", "doctor")
DOCTOR_STATUSES = ("pending", "approved", "rejected")
DECISION_STATUSES = ("approved", "rejected")

# Ordered from least to most severe.
SEVERITIES = ("none", "mild", "moderate", "severe")

# ── Identity provider ────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")
TOKEN_EXPIRY_HOURS = 24

# ── Uploads / stub inference ─────────────────────────────────────────
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".bmp"}

STUB_MODEL_VERSION = "stub-v1"
STUB_INFERENCE_MODE = "stub"
STUB_PREPROCESSING = "none"

# ── API server ───────────────────────────────────────────────────────
DEFAULT_RECENT_LIMIT = 10
MAX_RECENT_LIMIT = 100


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
