"""
HTTP client for the portal API.

``AuthStore`` is the one place a client keeps the current token and profile.
Views subscribe to it and are notified on every change instead of reading
shared global state.
"""

from typing import Any, Callable, Dict, List, Optional

import requests

Listener = Callable[["AuthStore"], None]


class ApiError(Exception):
    def __init__(self, status: int, code: str, message: str):
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"{status} {code}: {message}")


class AuthStore:

    def __init__(self):
        self.token: Optional[str] = None
        self.profile: Optional[Dict[str, Any]] = None
        self.last_error: Optional[str] = None
        self._listeners: List[Listener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.profile is not None

    @property
    def role(self) -> Optional[str]:
        return self.profile["role"] if self.profile else None

    @property
    def doctor_status(self) -> Optional[str]:
        if self.profile and self.profile.get("role") == "doctor":
            return self.profile.get("status")
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def set_token(self, token: Optional[str]):
        self.token = token
        self.profile = None
        self.last_error = None
        self._notify()

    def set_profile(self, profile: Optional[Dict[str, Any]]):
        self.profile = profile
        self.last_error = None
        self._notify()

    def fail(self, message: str):
        self.last_error = message
        self._notify()

    def clear(self):
        self.token = None
        self.profile = None
        self._notify()


class PortalClient:

    def __init__(self, base_url: str, store: Optional[AuthStore] = None,
                 session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.store = store or AuthStore()
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.store.token:
            headers["Authorization"] = f"Bearer {self.store.token}"
        response = self.session.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
        )
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            body = data if isinstance(data, dict) else {}
            error = ApiError(
                response.status_code,
                body.get("code", "error"),
                body.get("error", response.reason or "Request failed"),
            )
            if response.status_code == 401:
                self.store.clear()
            raise error
        return data

    # ── session ──────────────────────────────────────────────────────

    def sign_in(self, token: str) -> Optional[Dict[str, Any]]:
        """Adopt *token* and load the matching profile.

        Returns None (and keeps the token) when the account has no profile
        yet, so the caller can route to registration.
        """
        self.store.set_token(token)
        return self.refresh_profile()

    def refresh_profile(self) -> Optional[Dict[str, Any]]:
        try:
            data = self._request("GET", "/api/auth/me")
        except ApiError as e:
            if e.code == "profile_missing":
                self.store.set_profile(None)
                return None
            self.store.fail(e.message)
            raise
        self.store.set_profile(data["user"])
        return data["user"]

    def finish_registration(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/profile", json=payload)
        self.store.set_profile(data["user"])
        return data

    def sign_out(self):
        self.store.clear()

    # ── domain calls ─────────────────────────────────────────────────

    def approved_doctors(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/doctors/approved")

    def select_doctor(self, doctor_id: str) -> Dict[str, Any]:
        return self._request("POST", "/api/patient/select-doctor", json={"doctorId": doctor_id})

    def my_doctor(self) -> Optional[Dict[str, Any]]:
        return self._request("GET", "/api/patient/my-doctor")["doctor"]

    def my_patients(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/doctor/my-patients")

    def scans(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/scans")

    def scan(self, scan_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/scans/{scan_id}")

    def pending_doctors(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/admin/doctors/pending")

    def decide_doctor(self, doctor_id: str, approve: bool) -> Dict[str, Any]:
        action = "approve" if approve else "reject"
        return self._request("POST", f"/api/admin/doctors/{doctor_id}/{action}")

    def upload_image(self, patient_id: str, filename: str, data: bytes) -> Dict[str, Any]:
        return self._request(
            "POST", "/api/doctor/upload",
            data={"patientId": patient_id},
            files={"file": (filename, data)},
        )
