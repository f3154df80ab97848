"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info("[settings] Loaded %s from /run/secrets", secret_name)
                return secret_value
        except OSError as exc:
            logger.warning("[settings] Failed to read /run/secrets/%s: %s", secret_name, exc)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        logger.info("[demo-mode] Using default for %s", var_name)
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _env_flag(var_name: str, default: bool) -> bool:
    return os.environ.get(var_name, str(default)).strip().lower() in ("1", "true", "yes")


@dataclass
class AppConfig:
    """Application configuration container."""
    demo_mode: bool

    # Keycloak connection
    keycloak_url: str = ""
    keycloak_realm: str = "rental"
    keycloak_service_realm: str = "rental"
    keycloak_service_client_id: str = "rental-api-admin"
    keycloak_service_client_secret: str = ""
    request_timeout: float = 5.0

    # This application's client registration and its reserved administrator
    keycloak_client_id: str = "rental-api"
    client_admin_user: str = "admin"

    # User attribute mirroring the assigned role
    role_attribute: str = "rol"

    # Abort role reconciliation when removing existing mappings fails
    strict_role_removal: bool = True

    # Users fetched per page when listing
    page_size: int = 100

    @property
    def service_client_secret_resolved(self) -> str:
        """Get Keycloak service account client secret with fallback.

        Priority:
        1. Configured value in keycloak_service_client_secret
        2. Docker secrets: /run/secrets/keycloak_service_client_secret
        3. Environment variable: KEYCLOAK_SERVICE_CLIENT_SECRET
        4. Demo mode: "demo-service-secret"

        Raises:
            ValueError: If secret not found in production mode
        """
        if self.keycloak_service_client_secret:
            return self.keycloak_service_client_secret

        for secret_name in ["keycloak_service_client_secret", "keycloak-service-client-secret"]:
            secret_path = Path("/run/secrets") / secret_name
            if secret_path.exists():
                secret = secret_path.read_text().strip()
                if secret:
                    return secret

        secret = os.environ.get("KEYCLOAK_SERVICE_CLIENT_SECRET")
        if secret:
            return secret

        if self.demo_mode:
            return "demo-service-secret"

        raise ValueError(
            "KEYCLOAK_SERVICE_CLIENT_SECRET not found. "
            "Set DEMO_MODE=true or provide secret via Docker secrets or environment variable."
        )


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_flag("DEMO_MODE", False)

    keycloak_url = _get_or_generate("KEYCLOAK_URL", demo_default="http://127.0.0.1:8080", demo_mode=demo_mode)
    keycloak_realm = os.environ.get("KEYCLOAK_REALM", "rental")
    keycloak_service_realm = os.environ.get("KEYCLOAK_SERVICE_REALM", keycloak_realm)

    keycloak_service_client_id = _get_or_generate(
        "KEYCLOAK_SERVICE_CLIENT_ID",
        demo_default="rental-api-admin",
        demo_mode=demo_mode,
    )
    keycloak_service_client_secret = _load_secret_from_file(
        "keycloak_service_client_secret",
        "KEYCLOAK_SERVICE_CLIENT_SECRET",
    ) or ""

    keycloak_client_id = _get_or_generate("KEYCLOAK_CLIENT_ID", demo_default="rental-api", demo_mode=demo_mode)
    client_admin_user = _get_or_generate("KEYCLOAK_CLIENT_ADMIN_USER", demo_default="admin", demo_mode=demo_mode)

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info("[settings] Mode=%s; realm=%s; client_id=%s", mode_label, keycloak_realm, keycloak_client_id)
    if demo_mode:
        logger.warning("[settings] Demo credentials in use. Do not deploy with these defaults.")

    return AppConfig(
        demo_mode=demo_mode,
        keycloak_url=keycloak_url.rstrip("/"),
        keycloak_realm=keycloak_realm,
        keycloak_service_realm=keycloak_service_realm,
        keycloak_service_client_id=keycloak_service_client_id,
        keycloak_service_client_secret=keycloak_service_client_secret,
        request_timeout=float(os.environ.get("KEYCLOAK_REQUEST_TIMEOUT", "5")),
        keycloak_client_id=keycloak_client_id,
        client_admin_user=client_admin_user,
        role_attribute=os.environ.get("KEYCLOAK_ROLE_ATTRIBUTE", "rol").strip() or "rol",
        strict_role_removal=_env_flag("KEYCLOAK_STRICT_ROLE_REMOVAL", True),
        page_size=max(1, int(os.environ.get("KEYCLOAK_PAGE_SIZE", "100"))),
    )
