"""
Request authentication helpers for the Flask API.

The resolved profile lives on ``flask.g`` for the duration of one request
only; no identity state is kept between requests.
"""

from dataclasses import dataclass
from functools import wraps

from flask import current_app, g, request

from retinascan.approval import ApprovalWorkflow
from retinascan.assignments import AssignmentRegistry
from retinascan.identity import IdentityResolver, extract_bearer
from retinascan.inference import ImageStore
from retinascan.rbac import authorize
from retinascan.scans import ScanAccess

EXTENSION_KEY = "retinascan"


@dataclass
class Services:
    """Core components shared by every request of one app instance."""
    engine: object
    resolver: IdentityResolver
    registry: AssignmentRegistry
    approval: ApprovalWorkflow
    scans: ScanAccess
    images: ImageStore


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


def bearer_token() -> str:
    return extract_bearer(request.headers.get("Authorization"))


def auth_required(roles=None, approval=True):
    """Protect a view with the authorization guard.

    *roles* limits which roles may call the view; *approval* applies doctor
    approval gating on top of it.
    """
    def decorator(view):
        @wraps(view)
        def decorated(*args, **kwargs):
            services = get_services()

            @authorize(services.resolver, required_roles=roles, require_approval=approval)
            def run(profile):
                g.profile = profile
                return view(*args, **kwargs)

            return run(bearer_token())
        return decorated
    return decorator


def identity_required(view):
    """Require a valid credential but no profile (used to finish sign-up)."""
    @wraps(view)
    def decorated(*args, **kwargs):
        g.identity = get_services().resolver.authenticate(bearer_token())
        return view(*args, **kwargs)
    return decorated
