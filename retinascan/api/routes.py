"""
Flask route handlers for the REST API.
"""

import sys
import traceback

from flask import g, jsonify, request, send_file
from sqlalchemy import text

from retinascan.config import DEFAULT_RECENT_LIMIT
from retinascan.errors import (
    InfrastructureError, PatientNotFound, PortalError, ValidationError,
)
from retinascan.inference import analyze_image
from retinascan.models import NewScan
from retinascan.profiles import RegistrationPayload, finish_registration
from retinascan.api.auth import auth_required, get_services, identity_required

IMAGE_URL_PREFIX = "/api/images/"


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Content-Type must be application/json with an object body")
    return data


def _parse_scan_id(raw: str) -> int:
    # int() alone would accept "1_0" and surrounding whitespace.
    if not raw or not (raw.isascii() and raw.isdigit()):
        raise ValidationError("Invalid scan ID")
    return int(raw)


def register_routes(app):
    """Register all API routes on the Flask *app*."""

    # ââ Health / info ââââââââââââââââââââââââââââââââââââââââââââââââ

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "RetinaScan Portal API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "me": "/api/auth/me",
                "register": "/api/auth/profile",
                "scans": "/api/scans",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        checks = {"database": False}
        try:
            with get_services().engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            print(f"[WARN] Health check: database unreachable: {e}", file=sys.stderr)

        healthy = all(checks.values())
        return jsonify({
            "status": "healthy" if healthy else "unhealthy",
            "checks": checks,
        }), 200 if healthy else 503

    # ââ Auth / registration ââââââââââââââââââââââââââââââââââââââââââ

    @app.route("/api/auth/me", methods=["GET"])
    @auth_required(approval=False)
    def current_identity():
        return jsonify({"user": g.profile.to_dict()}), 200

    @app.route("/api/auth/profile", methods=["POST"])
    @identity_required
    def finish_signup():
        payload = RegistrationPayload.from_payload(_json_body())
        profile = finish_registration(get_services().engine, g.identity, payload)
        return jsonify({"ok": True, "status": profile.status, "user": profile.to_dict()}), 201

    # ââ Admin: doctor approval queue âââââââââââââââââââââââââââââââââ

    @app.route("/api/admin/doctors/pending", methods=["GET"])
    @auth_required(roles=["admin"])
    def pending_doctors():
        doctors = get_services().approval.list_pending()
        return jsonify([
            {
                "id": d.id,
                "name": d.name,
                "email": d.email,
                "licenseNumber": d.license_number,
                "specialty": d.specialty,
                "status": d.status,
                "createdAt": d.created_at.isoformat() if d.created_at else None,
            }
            for d in doctors
        ]), 200

    @app.route("/api/admin/doctors/<doctor_id>/approve", methods=["POST"])
    @auth_required(roles=["admin"])
    def approve_doctor(doctor_id):
        profile = get_services().approval.approve(doctor_id)
        return jsonify({"ok": True, "status": profile.status}), 200

    @app.route("/api/admin/doctors/<doctor_id>/reject", methods=["POST"])
    @auth_required(roles=["admin"])
    def reject_doctor(doctor_id):
        profile = get_services().approval.reject(doctor_id)
        return jsonify({"ok": True, "status": profile.status}), 200

    # ââ Doctor â patient assignment ââââââââââââââââââââââââââââââââââ

    @app.route("/api/doctors/approved", methods=["GET"])
    @auth_required()
    def approved_doctors():
        doctors = get_services().registry.list_approved_doctors()
        return jsonify([d.doctor_card() for d in doctors]), 200

    @app.route("/api/patient/select-doctor", methods=["POST"])
    @auth_required(roles=["patient"])
    def select_doctor():
        doctor_id = str(_json_body().get("doctorId") or "").strip()
        if not doctor_id:
            raise ValidationError("Doctor ID is required")

        registry = get_services().registry
        registry.assign(g.profile.id, doctor_id)
        doctor = registry.get_doctor_for(g.profile.id)
        return jsonify({"ok": True, "doctor": {"id": doctor.id, "name": doctor.name}}), 200

    @app.route("/api/patient/my-doctor", methods=["GET"])
    @auth_required(roles=["patient"])
    def my_doctor():
        doctor = get_services().registry.get_doctor_for(g.profile.id)
        return jsonify({"doctor": doctor.doctor_card() if doctor else None}), 200

    @app.route("/api/doctor/my-patients", methods=["GET"])
    @auth_required(roles=["doctor"])
    def my_patients():
        patients = get_services().registry.get_patients_for(g.profile.id)
        return jsonify([p.to_dict() for p in patients]), 200

    # ââ Scans ââââââââââââââââââââââââââââââââââââââââââââââââââââââââ

    @app.route("/api/scans", methods=["GET"])
    @auth_required()
    def list_scans():
        scans = get_services().scans.list_visible_scans(g.profile)
        return jsonify([s.to_dict() for s in scans]), 200

    @app.route("/api/scans/recent", methods=["GET"])
    @auth_required()
    def recent_scans():
        raw = request.args.get("limit", str(DEFAULT_RECENT_LIMIT))
        try:
            limit = int(raw)
        except ValueError:
            raise ValidationError("limit must be an integer")
        scans = get_services().scans.list_recent_scans(g.profile, limit)
        return jsonify([s.to_dict() for s in scans]), 200

    @app.route("/api/scans/<scan_id>", methods=["GET"])
    @auth_required()
    def get_scan(scan_id):
        scan = get_services().scans.get_visible_scan(g.profile, _parse_scan_id(scan_id))
        return jsonify(scan.to_dict()), 200

    @app.route("/api/scans", methods=["POST"])
    @auth_required(roles=["doctor"])
    def create_scan():
        new_scan = NewScan.from_payload(_json_body())
        scan = get_services().scans.create_scan(g.profile, new_scan)
        return jsonify(scan.to_dict()), 201

    @app.route("/api/patients/<patient_id>/scans", methods=["GET"])
    @auth_required(roles=["doctor", "admin"])
    def patient_scans(patient_id):
        scans = get_services().scans.list_patient_scans(g.profile, patient_id)
        return jsonify([s.to_dict() for s in scans]), 200

    @app.route("/api/doctor/upload", methods=["POST"])
    @auth_required(roles=["doctor"])
    def upload_and_analyze():
        services = get_services()
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            raise ValidationError("No file uploaded")
        patient_id = (request.form.get("patientId") or "").strip()
        if not patient_id:
            raise ValidationError("patientId is required")
        if patient_id not in services.registry.patient_ids_for(g.profile.id):
            raise PatientNotFound()

        data = upload.read()
        key = services.images.save(data, upload.filename)
        image_url = IMAGE_URL_PREFIX + key
        try:
            result = analyze_image(data)
            scan = services.scans.create_scan(g.profile, NewScan(
                patient_id=patient_id,
                original_image_url=image_url,
                heatmap_image_url=image_url,
                diagnosis=result.diagnosis,
                severity=result.severity,
                confidence=result.confidence,
                model_version=result.model_version,
                inference_mode=result.inference_mode,
                inference_time=result.inference_time,
                preprocessing_method=result.preprocessing_method,
                metadata={"uploadedBy": g.profile.id},
            ))
        except Exception:
            # Nothing references the stored file without a scan row.
            services.images.delete(key)
            raise
        return jsonify({"ok": True, "scan": scan.to_dict()}), 201

    @app.route(IMAGE_URL_PREFIX + "<key>", methods=["GET"])
    @auth_required()
    def get_image(key):
        services = get_services()
        services.scans.get_visible_image_scan(g.profile, IMAGE_URL_PREFIX + key)
        return send_file(services.images.path_for(key))

    # ââ Error handlers âââââââââââââââââââââââââââââââââââââââââââââââ

    @app.errorhandler(PortalError)
    def portal_error(e):
        if isinstance(e, InfrastructureError):
            print(f"[ERROR] {request.method} {request.path}: {e.__cause__ or e}", file=sys.stderr)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "code": "not_found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "code": "method_not_allowed"}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": "Upload too large", "code": "validation_error"}), 413

    @app.errorhandler(500)
    def internal_error(e):
        original = getattr(e, "original_exception", None)
        if original is not None:
            print(f"[ERROR] Unhandled error on {request.path}: {original}", file=sys.stderr)
            traceback.print_exception(type(original), original, original.__traceback__)
        return jsonify({"error": "Internal server error", "code": "error"}), 500
