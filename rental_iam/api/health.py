"""Health check endpoints."""
from flask import Blueprint, current_app

from rental_iam.core.errors import RemoteProviderError

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Liveness: the process is serving requests."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Readiness: Keycloak accepts the service account credentials."""
    try:
        current_app.config["USER_SYNCHRONIZER"].connector.acquire()
    except RemoteProviderError as exc:
        current_app.logger.warning(f"Readiness check failed: {exc}")
        return ("identity provider unavailable", 503, {"Content-Type": "text/plain"})
    return ("ready", 200, {"Content-Type": "text/plain"})
