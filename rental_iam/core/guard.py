"""Exclusion of the reserved administrator account."""
from __future__ import annotations
from typing import Any, Iterable, List

from .errors import ForbiddenError


class ProtectedAccountGuard:
    """Keeps the configured administrator out of every user operation.

    Candidates may be Keycloak representations (dicts) or domain Users.
    """

    def __init__(self, protected_username: str):
        self.protected_username = protected_username

    def is_protected(self, candidate: Any) -> bool:
        if isinstance(candidate, dict):
            username = candidate.get("username")
        else:
            username = getattr(candidate, "username", None)
        return bool(self.protected_username) and username == self.protected_username

    def exclude_user(self, candidate: Any) -> None:
        """Raise ForbiddenError if candidate is the protected account."""
        if self.is_protected(candidate):
            raise ForbiddenError()

    def filter_users(self, candidates: Iterable[Any]) -> List[Any]:
        """Drop the protected account, keeping the original order."""
        return [candidate for candidate in candidates if not self.is_protected(candidate)]
