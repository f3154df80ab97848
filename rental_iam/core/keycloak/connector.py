"""Process-wide access to an authenticated Keycloak admin client."""
from __future__ import annotations
import logging
import threading
from typing import Optional

from rental_iam.config import AppConfig
from rental_iam.core.errors import translate_provider_errors

from .client import KeycloakClient

logger = logging.getLogger(__name__)


class IdentityConnector:
    """Hands out one authenticated KeycloakClient shared by all callers.

    The first acquire() performs the client credentials exchange; concurrent
    callers wait on the lock and reuse the result. Token refresh afterwards is
    handled inside KeycloakClient.
    """

    def __init__(self, base_url: str, auth_realm: str, client_id: str, client_secret: str, timeout: float = 5.0):
        self.base_url = base_url
        self.auth_realm = auth_realm
        self.client_id = client_id
        self._client_secret = client_secret
        self.timeout = timeout
        self._client: Optional[KeycloakClient] = None
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, cfg: AppConfig) -> "IdentityConnector":
        return cls(
            cfg.keycloak_url,
            cfg.keycloak_service_realm,
            cfg.keycloak_service_client_id,
            cfg.service_client_secret_resolved,
            timeout=cfg.request_timeout,
        )

    def acquire(self) -> KeycloakClient:
        """Return the authenticated client, authenticating on first use.

        Raises:
            RemoteProviderError: If the credential exchange fails
        """
        client = self._client
        if client is not None:
            return client

        with self._lock:
            if self._client is None:
                client = KeycloakClient(self.base_url, timeout=self.timeout)
                with translate_provider_errors():
                    client.authenticate_service_account(self.auth_realm, self.client_id, self._client_secret)
                logger.info("[connector] Authenticated as '%s' against %s", self.client_id, self.base_url)
                self._client = client
            return self._client

    def invalidate(self) -> None:
        """Forget the cached client; the next acquire() authenticates again."""
        with self._lock:
            self._client = None


_connector: Optional[IdentityConnector] = None
_connector_lock = threading.Lock()


def get_connector(cfg: Optional[AppConfig] = None) -> IdentityConnector:
    """Return the process-wide connector, building it from settings on first use."""
    global _connector
    if _connector is None:
        with _connector_lock:
            if _connector is None:
                if cfg is None:
                    from rental_iam.config import load_settings
                    cfg = load_settings()
                _connector = IdentityConnector.from_settings(cfg)
    return _connector


def reset_connector() -> None:
    """Drop the process-wide connector (tests, credential rotation)."""
    global _connector
    with _connector_lock:
        _connector = None
