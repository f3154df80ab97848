"""Keycloak-specific exceptions raised by the HTTP client."""
from __future__ import annotations
import json
from typing import Any


class KeycloakError(Exception):
    """Base exception for all Keycloak operations."""
    pass


class KeycloakAPIError(KeycloakError):
    """HTTP error from Keycloak Admin API.

    Attributes:
        status_code: HTTP status code
        message: Raw response body
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")

    @property
    def payload(self) -> Any:
        """Response body decoded as JSON when possible, raw text otherwise."""
        if not self.message:
            return None
        try:
            return json.loads(self.message)
        except ValueError:
            return self.message
