"""Flask application factory and bootstrap."""
from __future__ import annotations
from typing import Optional

from flask import Flask

from rental_iam.config import AppConfig, load_settings
from rental_iam.core.user_synchronizer import UserSynchronizer


def create_app(cfg: Optional[AppConfig] = None, synchronizer: Optional[UserSynchronizer] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings, loaded from the environment when omitted
        synchronizer: Pre-built synchronizer (tests); built from cfg when omitted
    """
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    # The synchronizer is stateless apart from the shared connector
    app.config["USER_SYNCHRONIZER"] = synchronizer or UserSynchronizer.from_settings(cfg)

    from rental_iam.api import errors, health, users

    app.register_blueprint(health.bp)
    app.register_blueprint(users.bp, url_prefix="/api/users")

    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    app.logger.info(f"[flask_app] Mode={mode_label}; realm={cfg.keycloak_realm}; client={cfg.keycloak_client_id}")

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
