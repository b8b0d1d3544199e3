"""
Domain dataclasses used across the application.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from retinascan.config import SEVERITIES
from retinascan.errors import ValidationError


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every table column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Identity:
    """An account as known to the identity provider."""
    id: str
    email: Optional[str] = None


@dataclass
class Profile:
    """Application-level account record layered on top of an identity."""
    id: str
    email: str
    role: str                  # "patient", "doctor" or "admin"
    status: str                # only meaningful for doctors
    name: str
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    license_number: Optional[str] = None
    specialty: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Profile":
        return cls(
            id=str(row["id"]),
            email=row["email"],
            role=str(row["role"]).strip().lower(),
            status=str(row["status"] or "pending").strip().lower(),
            name=row["name"],
            phone=row["phone"],
            date_of_birth=row["date_of_birth"],
            gender=row["gender"],
            address=row["address"],
            license_number=row["license_number"],
            specialty=row["specialty"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def is_patient(self) -> bool:
        return self.role == "patient"

    @property
    def is_doctor(self) -> bool:
        return self.role == "doctor"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_approved(self) -> bool:
        # Patients and admins carry no approval state.
        if not self.is_doctor:
            return True
        return self.status == "approved"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "name": self.name,
            "phone": self.phone,
            "dateOfBirth": self.date_of_birth,
            "gender": self.gender,
            "address": self.address,
            "licenseNumber": self.license_number,
            "specialty": self.specialty,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def doctor_card(self) -> Dict[str, Any]:
        """Fields a patient sees when picking or viewing a doctor."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "specialty": self.specialty,
            "licenseNumber": self.license_number,
        }

    def patient_card(self) -> Dict[str, Any]:
        """Fields a doctor sees for an assigned patient."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "dateOfBirth": self.date_of_birth,
            "gender": self.gender,
        }


@dataclass
class Assignment:
    """The single active patient → doctor relationship."""
    patient_id: str
    doctor_id: str
    assigned_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patientId": self.patient_id,
            "doctorId": self.doctor_id,
            "assignedAt": _iso(self.assigned_at),
        }


@dataclass
class AssignedPatient:
    profile: Profile
    assigned_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = self.profile.patient_card()
        data["assignedAt"] = _iso(self.assigned_at)
        return data


@dataclass
class ScanRecord:
    id: int
    patient_id: str
    timestamp: datetime
    original_image_url: str
    heatmap_image_url: str
    diagnosis: str
    severity: str
    confidence: int
    model_version: str
    inference_mode: str
    inference_time: int
    preprocessing_method: str
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ScanRecord":
        return cls(
            id=int(row["id"]),
            patient_id=str(row["patient_id"]),
            timestamp=row["timestamp"],
            original_image_url=row["original_image_url"],
            heatmap_image_url=row["heatmap_image_url"],
            diagnosis=row["diagnosis"],
            severity=row["severity"],
            confidence=int(row["confidence"]),
            model_version=row["model_version"],
            inference_mode=row["inference_mode"],
            inference_time=int(row["inference_time"]),
            preprocessing_method=row["preprocessing_method"],
            metadata=row["metadata"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patientId": self.patient_id,
            "timestamp": _iso(self.timestamp),
            "originalImageUrl": self.original_image_url,
            "heatmapImageUrl": self.heatmap_image_url,
            "diagnosis": self.diagnosis,
            "severity": self.severity,
            "confidence": self.confidence,
            "modelVersion": self.model_version,
            "inferenceMode": self.inference_mode,
            "inferenceTime": self.inference_time,
            "preprocessingMethod": self.preprocessing_method,
            "metadata": self.metadata,
        }


# Request keys (camelCase, as the web client sends them) → column names.
_SCAN_FIELDS = {
    "patientId": "patient_id",
    "originalImageUrl": "original_image_url",
    "heatmapImageUrl": "heatmap_image_url",
    "diagnosis": "diagnosis",
    "severity": "severity",
    "confidence": "confidence",
    "modelVersion": "model_version",
    "inferenceMode": "inference_mode",
    "inferenceTime": "inference_time",
    "preprocessingMethod": "preprocessing_method",
}


@dataclass
class NewScan:
    """Payload for creating a scan record."""
    patient_id: str
    original_image_url: str
    heatmap_image_url: str
    diagnosis: str
    severity: str
    confidence: int
    model_version: str
    inference_mode: str
    inference_time: int
    preprocessing_method: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("patient_id", "original_image_url", "heatmap_image_url",
                     "diagnosis", "model_version", "inference_mode",
                     "preprocessing_method"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{name} is required")

        if self.severity not in SEVERITIES:
            raise ValidationError(
                f"severity must be one of: {', '.join(SEVERITIES)}"
            )
        if isinstance(self.confidence, bool) or not isinstance(self.confidence, int):
            raise ValidationError("confidence must be an integer")
        if not 0 <= self.confidence <= 100:
            raise ValidationError("confidence must be between 0 and 100")
        if isinstance(self.inference_time, bool) or not isinstance(self.inference_time, int) \
                or self.inference_time < 0:
            raise ValidationError("inference_time must be a non-negative integer")
        if self.metadata is None:
            self.metadata = {}
        if not isinstance(self.metadata, dict):
            raise ValidationError("metadata must be an object")

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "NewScan":
        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be a JSON object")
        kwargs = {}
        for key, attr in _SCAN_FIELDS.items():
            if key in payload:
                kwargs[attr] = payload[key]
            elif attr in payload:
                kwargs[attr] = payload[attr]
            else:
                raise ValidationError(f"{key} is required")
        kwargs["metadata"] = payload.get("metadata") or {}
        return cls(**kwargs)

    def to_row(self) -> Dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "original_image_url": self.original_image_url,
            "heatmap_image_url": self.heatmap_image_url,
            "diagnosis": self.diagnosis,
            "severity": self.severity,
            "confidence": self.confidence,
            "model_version": self.model_version,
            "inference_mode": self.inference_mode,
            "inference_time": self.inference_time,
            "preprocessing_method": self.preprocessing_method,
            "metadata": self.metadata or None,
        }
