"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from retinascan.approval import ApprovalWorkflow
from retinascan.assignments import AssignmentRegistry
from retinascan.config import MAX_UPLOAD_BYTES, SECRET_KEY, UPLOAD_DIR
from retinascan.database import create_schema, init_engine
from retinascan.identity import IdentityResolver, JwtIdentityProvider
from retinascan.inference import ImageStore
from retinascan.scans import ScanAccess
from retinascan.api.auth import EXTENSION_KEY, Services
from retinascan.api.routes import register_routes


def build_services(engine, identity_provider=None, upload_dir=None) -> Services:
    """Wire the core components around one engine."""
    provider = identity_provider or JwtIdentityProvider(secret=SECRET_KEY)
    registry = AssignmentRegistry(engine)
    return Services(
        engine=engine,
        resolver=IdentityResolver(engine, provider),
        registry=registry,
        approval=ApprovalWorkflow(engine),
        scans=ScanAccess(engine, registry),
        images=ImageStore(upload_dir or UPLOAD_DIR),
    )


def create_app(engine=None, identity_provider=None, upload_dir=None):
    """Build and return a fully configured Flask application."""
    app = Flask(__name__)
    CORS(app)
    # Multipart overhead on top of the image itself.
    app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES + 1024 * 1024

    # ── Initialise shared resources ──────────────────────────────────
    if engine is None:
        try:
            print("[init] Initializing database connection...")
            engine = init_engine()
            print("[init] Ensuring tables exist...")
            create_schema(engine)
            print("[init] ✓ API server ready")
        except Exception as e:
            print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
            traceback.print_exc()
            sys.exit(1)

    app.extensions[EXTENSION_KEY] = build_services(engine, identity_provider, upload_dir)

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("RetinaScan Portal – REST API Server")
    print("=" * 60)

    app = create_app()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    debug = os.getenv("FLASK_ENV") == "development"

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print("[server] CORS enabled: True")
    print("\nAPI Endpoints:")
    print(f"  - GET  http://{host}:{port}/api/auth/me")
    print(f"  - POST http://{host}:{port}/api/auth/profile")
    print(f"  - GET  http://{host}:{port}/api/admin/doctors/pending")
    print(f"  - POST http://{host}:{port}/api/admin/doctors/<id>/approve|reject")
    print(f"  - GET  http://{host}:{port}/api/doctors/approved")
    print(f"  - POST http://{host}:{port}/api/patient/select-doctor")
    print(f"  - GET  http://{host}:{port}/api/patient/my-doctor")
    print(f"  - GET  http://{host}:{port}/api/doctor/my-patients")
    print(f"  - GET  http://{host}:{port}/api/scans[/recent|/<id>]")
    print(f"  - POST http://{host}:{port}/api/scans")
    print(f"  - POST http://{host}:{port}/api/doctor/upload")
    print(f"  - GET  http://{host}:{port}/health")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
