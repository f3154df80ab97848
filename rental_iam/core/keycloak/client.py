"""Low-level HTTP client for Keycloak Admin API.

Handles service account authentication, token caching, and HTTP operations.
"""
from __future__ import annotations
import threading
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

import requests

from .exceptions import KeycloakAPIError

REQUEST_TIMEOUT = 5

# Refresh the token this many seconds before Keycloak considers it expired
TOKEN_REFRESH_LEEWAY = 10


class KeycloakClient:
    """HTTP client for Keycloak Admin API with automatic token management.

    Features:
    - Client credentials authentication with cached bearer token
    - Thread-safe refresh when the token is about to expire
    - Centralized error handling

    Usage:
        client = KeycloakClient("http://keycloak:8080")
        client.authenticate_service_account("rental", "rental-api-admin", "secret")
        response = client.get("/admin/realms/rental/users")
    """

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT):
        """Initialize Keycloak client.

        Args:
            base_url: Keycloak base URL (without /realms/...)
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    def authenticate_service_account(self, auth_realm: str, client_id: str, client_secret: str) -> str:
        """Authenticate as service account and store credentials for auto-refresh.

        Args:
            auth_realm: Realm where the service account client exists
            client_id: Service account client ID
            client_secret: Service account client secret

        Returns:
            Access token

        Raises:
            KeycloakAPIError: If the token endpoint rejects the credentials
        """
        with self._lock:
            self._auth_params = {
                "auth_realm": auth_realm,
                "client_id": client_id,
                "client_secret": client_secret,
            }
            self._refresh_token()
            return self._token

    def _refresh_token(self) -> None:
        token, expires_in = self._get_service_account_token(**self._auth_params)
        self._token = token
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)

    def _ensure_authenticated(self) -> str:
        """Return a valid token, refreshing it first if it is about to expire."""
        with self._lock:
            if not self._auth_params:
                raise KeycloakAPIError(401, "Not authenticated - call authenticate_service_account first", "")
            if not self._token or datetime.now() >= self._token_expires_at - timedelta(seconds=TOKEN_REFRESH_LEEWAY):
                self._refresh_token()
            return self._token

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        return self._request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Any = None, **kwargs) -> requests.Response:
        """Execute POST request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        return self._request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Any = None, **kwargs) -> requests.Response:
        """Execute PUT request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        return self._request("PUT", path, json=json, **kwargs)

    def delete(self, path: str, json: Any = None, **kwargs) -> requests.Response:
        """Execute DELETE request with automatic authentication.

        Keycloak expects the role list in the body when removing role mappings,
        hence the optional JSON payload.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        return self._request("DELETE", path, json=json, **kwargs)

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        token = self._ensure_authenticated()
        url = f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"

        resp = requests.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        self._handle_error(resp)
        return resp

    def _get_service_account_token(self, auth_realm: str, client_id: str, client_secret: str) -> tuple[str, int]:
        """Fetch a service account token using client credentials flow."""
        url = f"{self.base_url}/realms/{auth_realm}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        resp = requests.post(url, data=data, timeout=self.timeout)
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, resp.text, url)
        body = resp.json()
        # Conservative default when Keycloak omits the lifetime
        return body["access_token"], int(body.get("expires_in", 60))

    def _handle_error(self, resp: requests.Response) -> None:
        """Raise KeycloakAPIError if the response status indicates an error."""
        if resp.status_code >= 400:
            raise KeycloakAPIError(resp.status_code, resp.text, resp.url)
