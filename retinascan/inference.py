"""
Placeholder retinal analysis and local image storage for uploads.

``analyze_image`` does not look at the pixels: it draws a random severity so
the upload → scan flow can run end to end until a real model is wired in.
"""

import os
import random
import secrets
import sys
import time
from dataclasses import dataclass
from typing import Optional

from retinascan.config import (
    ALLOWED_IMAGE_EXTENSIONS, MAX_UPLOAD_BYTES, STUB_INFERENCE_MODE,
    STUB_MODEL_VERSION, STUB_PREPROCESSING,
)
from retinascan.errors import NotFound, ValidationError

STUB_SEVERITIES = ("mild", "moderate", "severe")
DIAGNOSIS_LABELS = {
    "none": "No DR",
    "mild": "Mild DR",
    "moderate": "Moderate DR",
    "severe": "Severe DR",
}


@dataclass
class AnalysisResult:
    diagnosis: str
    severity: str
    confidence: int
    model_version: str
    inference_mode: str
    inference_time: int        # milliseconds
    preprocessing_method: str


def analyze_image(image_bytes: bytes, rng: Optional[random.Random] = None) -> AnalysisResult:
    if not image_bytes:
        raise ValidationError("Empty image")
    rng = rng or random.Random()

    start = time.perf_counter()
    severity = rng.choice(STUB_SEVERITIES)
    confidence = rng.randint(80, 99)
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    return AnalysisResult(
        diagnosis=DIAGNOSIS_LABELS[severity],
        severity=severity,
        confidence=confidence,
        model_version=STUB_MODEL_VERSION,
        inference_mode=STUB_INFERENCE_MODE,
        inference_time=elapsed_ms,
        preprocessing_method=STUB_PREPROCESSING,
    )


class ImageStore:
    """Stores uploaded fundus images under random keys in *upload_dir*."""

    def __init__(self, upload_dir: str):
        self.upload_dir = os.path.abspath(upload_dir)

    def save(self, data: bytes, filename: str) -> str:
        ext = os.path.splitext(filename or "")[1].lower() or ".jpg"
        if ext not in ALLOWED_IMAGE_EXTENSIONS:
            raise ValidationError(f"Unsupported image type '{ext}'")
        if not data:
            raise ValidationError("No file uploaded")
        if len(data) > MAX_UPLOAD_BYTES:
            raise ValidationError("Image exceeds the 10 MB upload limit")

        os.makedirs(self.upload_dir, exist_ok=True)
        key = f"{int(time.time() * 1000)}_{secrets.token_hex(8)}{ext}"
        with open(os.path.join(self.upload_dir, key), "wb") as fh:
            fh.write(data)
        return key

    def delete(self, key: str) -> None:
        """Remove a stored image; unknown keys are ignored."""
        try:
            os.remove(self.path_for(key))
        except NotFound:
            return
        print(f"[WARN] Removed orphaned upload {key}", file=sys.stderr)

    def path_for(self, key: str) -> str:
        if not key or os.path.basename(key) != key or key.startswith("."):
            raise NotFound("Image not found")
        path = os.path.join(self.upload_dir, key)
        if not os.path.isfile(path):
            raise NotFound("Image not found")
        return path
