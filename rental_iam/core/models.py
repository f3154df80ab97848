"""Domain model for users managed in the identity provider."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class User:
    """A user as seen by the rental backend.

    The identity provider owns the record; instances are built per call and
    never stored. ``password`` is only sent on creation and never serialized.
    """
    username: str
    role: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    id: Optional[str] = None
    enabled: bool = True
    password: Optional[str] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "User":
        """Build a user from an API payload (camelCase keys)."""
        return cls(
            id=payload.get("id"),
            username=payload.get("username") or "",
            role=payload.get("role") or "",
            email=payload.get("email"),
            first_name=payload.get("firstName"),
            last_name=payload.get("lastName"),
            enabled=payload.get("enabled", True),
            password=payload.get("password"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses; the password is never included."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
            "enabled": self.enabled,
        }
