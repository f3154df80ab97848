"""Keycloak ⇔ domain User transformations.

Usage:
    mapper = UserMapper(role_attribute="rol")

    # Keycloak → domain
    user = mapper.map(kc_user)
    users = mapper.map_array(kc_users)

    # domain → Keycloak
    kc_user = mapper.to_representation(user, include_credentials=True)
"""
from __future__ import annotations
from typing import Any, Dict, Iterable, List

from .models import User


class UserMapper:
    """Bidirectional mapper between Keycloak user representations and User."""

    def __init__(self, role_attribute: str = "rol"):
        self.role_attribute = role_attribute

    def map(self, kc_user: Dict[str, Any]) -> User:
        """Convert a Keycloak user representation to a domain User.

        Example:
            >>> kc_user = {
            ...     "id": "abc123",
            ...     "username": "alice",
            ...     "firstName": "Alice",
            ...     "lastName": "Smith",
            ...     "email": "alice@example.com",
            ...     "enabled": True,
            ...     "attributes": {"rol": ["AGENT"]},
            ... }
            >>> UserMapper().map(kc_user).role
            'AGENT'
        """
        return User(
            id=kc_user.get("id"),
            username=kc_user.get("username", ""),
            email=kc_user.get("email"),
            first_name=kc_user.get("firstName"),
            last_name=kc_user.get("lastName"),
            enabled=kc_user.get("enabled", True),
            role=self._role_from_attributes(kc_user.get("attributes") or {}),
        )

    def map_array(self, kc_users: Iterable[Dict[str, Any]]) -> List[User]:
        """Convert several representations, preserving their order."""
        return [self.map(kc_user) for kc_user in kc_users]

    def to_representation(self, user: User, include_credentials: bool = False) -> Dict[str, Any]:
        """Convert a domain User to a full Keycloak user representation.

        Every profile field is present: missing values become empty strings so
        that a PUT clears them instead of leaving the previous value in place.
        Attributes are replaced wholesale by the role attribute.

        Args:
            user: Domain user
            include_credentials: Add the password as a non-temporary credential
                (creation only)
        """
        kc_user: Dict[str, Any] = {
            "username": user.username,
            "email": user.email or "",
            "firstName": user.first_name or "",
            "lastName": user.last_name or "",
            "enabled": True,
            "attributes": {self.role_attribute: [user.role]},
        }
        if include_credentials and user.password:
            kc_user["credentials"] = [
                {"type": "password", "temporary": False, "value": user.password}
            ]
        return kc_user

    def _role_from_attributes(self, attributes: Dict[str, Any]) -> str:
        value = attributes.get(self.role_attribute)
        # Keycloak stores attribute values as lists
        if isinstance(value, list):
            return value[0] if value else ""
        return value or ""
