"""Client role lookup and reconciliation.

Roles live on this application's client registration inside the realm, so
every lookup first resolves the client's internal UUID from its clientId.
"""
from __future__ import annotations
import logging
from typing import Optional

from rental_iam.core.errors import RemoteProviderError, ValidationError, translate_provider_errors

from .connector import IdentityConnector

logger = logging.getLogger(__name__)


class RoleResolver:
    """Finds role representations scoped to the application's client."""

    def __init__(self, connector: IdentityConnector, realm: str, client_id: str):
        """Initialize role resolver.

        Args:
            connector: Source of the authenticated Keycloak client
            realm: Realm holding the users and the client
            client_id: clientId of this application's registration
        """
        self.connector = connector
        self.realm = realm
        self.client_id = client_id

    def get_client_uuid(self) -> Optional[str]:
        """Return Keycloak's internal id for the configured client, or None."""
        with translate_provider_errors():
            resp = self.connector.acquire().get(
                f"/admin/realms/{self.realm}/clients", params={"clientId": self.client_id}
            )
            clients = resp.json() or []
        for client in clients:
            if client.get("id"):
                return client["id"]
        return None

    def find_role(self, role_name: str, client_uuid: Optional[str] = None) -> Optional[dict]:
        """Return the client role named exactly role_name, or None.

        Args:
            role_name: Role name to look up
            client_uuid: Already-resolved client UUID, resolved when omitted

        Returns:
            Role representation, or None when the client or the role is missing
        """
        if client_uuid is None:
            client_uuid = self.get_client_uuid()
        if not client_uuid:
            logger.warning("[find-role] Client '%s' not found in realm '%s'", self.client_id, self.realm)
            return None

        with translate_provider_errors():
            resp = self.connector.acquire().get(
                f"/admin/realms/{self.realm}/clients/{client_uuid}/roles",
                params={"search": role_name},
            )
            roles = resp.json() or []
        return next((role for role in roles if role.get("name") == role_name), None)


class RoleReconciler:
    """Makes a user's client role mappings equal exactly one desired role."""

    def __init__(self, connector: IdentityConnector, resolver: RoleResolver, *, strict_removal: bool = True):
        """Initialize role reconciler.

        Args:
            connector: Source of the authenticated Keycloak client
            resolver: Role lookup for the same realm and client
            strict_removal: Abort when removing existing mappings fails;
                when False the failure is logged and reconciliation continues
        """
        self.connector = connector
        self.resolver = resolver
        self.strict_removal = strict_removal

    def _mappings_path(self, user_id: str, client_uuid: str) -> str:
        return f"/admin/realms/{self.resolver.realm}/users/{user_id}/role-mappings/clients/{client_uuid}"

    def get_role_mappings(self, user_id: str, client_uuid: Optional[str] = None) -> list[dict]:
        """Return the user's role mappings on the application's client."""
        if client_uuid is None:
            client_uuid = self.resolver.get_client_uuid()
        if not client_uuid:
            return []
        with translate_provider_errors():
            resp = self.connector.acquire().get(self._mappings_path(user_id, client_uuid))
            return resp.json() or []

    def set_role(self, user_id: str, role_name: str) -> dict:
        """Replace all of the user's client role mappings with role_name.

        Args:
            user_id: Keycloak user ID
            role_name: Desired role name

        Returns:
            The role representation now mapped to the user

        Raises:
            ValidationError: If the role does not exist on the client
            RemoteProviderError: On Keycloak failure (including removal
                failures when strict_removal is set)
        """
        client_uuid = self.resolver.get_client_uuid()
        role = self.resolver.find_role(role_name, client_uuid=client_uuid) if client_uuid else None
        if not role:
            raise ValidationError(f"Role {role_name} does not exist")

        self._remove_all(user_id, client_uuid)

        with translate_provider_errors():
            self.connector.acquire().post(
                self._mappings_path(user_id, client_uuid),
                json=[{"id": role["id"], "name": role["name"]}],
            )
        logger.info("[set-role] Mapped role '%s' to user %s", role["name"], user_id)
        return role

    def _remove_all(self, user_id: str, client_uuid: str) -> None:
        try:
            current = self.get_role_mappings(user_id, client_uuid)
            if not current:
                return
            with translate_provider_errors():
                self.connector.acquire().delete(
                    self._mappings_path(user_id, client_uuid),
                    json=[{"id": mapping["id"], "name": mapping["name"]} for mapping in current],
                )
            logger.info("[set-role] Removed %d existing mapping(s) from user %s", len(current), user_id)
        except RemoteProviderError as exc:
            if self.strict_removal:
                raise
            logger.warning("[set-role] Ignoring failed mapping removal for user %s: %s", user_id, exc)
