"""
Typed error taxonomy raised by the portal core.

Every error carries the HTTP status and a stable ``code`` the API layer
reports; the core itself never builds responses.
"""


class PortalError(Exception):
    status_code = 500
    code = "error"
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class Unauthenticated(PortalError):
    """No credential, or one the identity provider rejected.

    The message is fixed so callers cannot learn why a credential failed.
    """
    status_code = 401
    code = "unauthenticated"
    default_message = "Please sign in again"

    def __init__(self, message: str = None):
        super().__init__(self.default_message)


class ProfileMissing(PortalError):
    status_code = 403
    code = "profile_missing"
    default_message = "Profile not found. Please finish registration."


class Forbidden(PortalError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(PortalError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class PatientNotFound(NotFound):
    code = "patient_not_found"
    default_message = "Patient not found"


class DoctorNotEligible(PortalError):
    status_code = 422
    code = "doctor_not_eligible"
    default_message = "Doctor not found or not approved"


class ValidationError(PortalError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class Conflict(PortalError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class InvalidTransition(Conflict):
    code = "invalid_transition"
    default_message = "Status change not allowed"


class InfrastructureError(PortalError):
    """Storage or identity provider unavailable. Safe to retry."""
    status_code = 503
    code = "unavailable"
    default_message = "Service temporarily unavailable. Please retry."
