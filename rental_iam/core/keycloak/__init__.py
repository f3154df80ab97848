"""Keycloak Admin API access for the rental IAM service.

Architecture:
- client.py: HTTP client with service account authentication and auto-refresh
- exceptions.py: Typed exceptions for HTTP failures
- connector.py: Process-wide cached, authenticated client (IdentityConnector)
- roles.py: Client role lookup (RoleResolver) and reconciliation (RoleReconciler)

Only the dependency-free client layer is re-exported here; connector and roles
depend on rental_iam.core.errors and are imported from their modules:

    from rental_iam.core.keycloak.connector import get_connector
    from rental_iam.core.keycloak.roles import RoleResolver, RoleReconciler
"""
from .exceptions import (
    KeycloakError,
    KeycloakAPIError,
)
from .client import (
    KeycloakClient,
    REQUEST_TIMEOUT,
)

__all__ = [
    "KeycloakClient",
    "REQUEST_TIMEOUT",
    "KeycloakError",
    "KeycloakAPIError",
]
