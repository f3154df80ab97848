"""Error kinds surfaced by the user synchronization layer.

Every error carries an HTTP-style status and a detail message so the API layer
can render it without knowing which component raised it. Failures reported by
Keycloak are normalized into RemoteProviderError at the call site, keeping the
upstream status code and body intact.
"""
from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import requests

from rental_iam.core.keycloak.exceptions import KeycloakAPIError


class IdentityError(Exception):
    """Base class for errors raised by the identity layer."""

    status = 500

    def __init__(self, detail: str, status: Optional[int] = None, payload: Any = None):
        self.detail = detail
        if status is not None:
            self.status = status
        self.payload = payload
        super().__init__(detail)

    def to_dict(self) -> dict:
        """Convert to the JSON error body returned by the API."""
        error_dict = {
            "status": self.status,
            "error": type(self).__name__,
            "detail": self.detail,
        }
        if self.payload is not None:
            error_dict["payload"] = self.payload
        return error_dict


class ValidationError(IdentityError):
    """The request references something that does not exist (e.g. unknown role)."""

    status = 400


class ForbiddenError(IdentityError):
    """Attempted access to the protected account."""

    status = 403

    def __init__(self, detail: str = "Access to this account is forbidden"):
        super().__init__(detail)


class ConflictError(IdentityError):
    """Username already exists in the identity provider."""

    status = 409


class RemoteProviderError(IdentityError):
    """Any other failure reported by, or while reaching, the identity provider.

    Attributes:
        status: Upstream HTTP status (502 when Keycloak could not be reached)
        payload: Upstream response body, decoded as JSON when possible
    """

    status = 502

    @classmethod
    def from_api_error(cls, exc: KeycloakAPIError) -> "RemoteProviderError":
        return cls(f"Identity provider error on {exc.endpoint}", status=exc.status_code, payload=exc.payload)


@contextmanager
def translate_provider_errors() -> Iterator[None]:
    """Normalize Keycloak and transport failures into RemoteProviderError.

    Errors that are already IdentityError instances pass through untouched.
    """
    try:
        yield
    except KeycloakAPIError as exc:
        raise RemoteProviderError.from_api_error(exc) from exc
    except requests.RequestException as exc:
        raise RemoteProviderError(f"Identity provider unreachable: {exc}") from exc
