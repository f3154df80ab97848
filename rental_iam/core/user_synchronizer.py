"""User lifecycle against Keycloak, the system of record for rental users.

Architecture:
    HTTP API (/api/users) ──> UserSynchronizer ──┬──> RoleReconciler ──> RoleResolver
                                                 ├──> ProtectedAccountGuard
                                                 └──> IdentityConnector ──> Keycloak

Keycloak offers no transaction spanning "create user" and "map role", so
create_user undoes the creation itself when a later step fails. Updates are
not rolled back: the record existed before, and a failed update may leave the
profile and the role mapping out of step until the next successful update.
"""

from __future__ import annotations
import logging
from typing import List, Optional

from rental_iam import audit
from rental_iam.config import AppConfig

from .errors import ConflictError, RemoteProviderError, ValidationError, translate_provider_errors
from .guard import ProtectedAccountGuard
from .keycloak.connector import IdentityConnector, get_connector
from .keycloak.roles import RoleReconciler, RoleResolver
from .models import User
from .user_mapper import UserMapper

logger = logging.getLogger(__name__)


class UserSynchronizer:
    """Create, read, update and delete users in Keycloak."""

    def __init__(
        self,
        connector: IdentityConnector,
        realm: str,
        reconciler: RoleReconciler,
        guard: ProtectedAccountGuard,
        mapper: UserMapper,
        *,
        page_size: int = 100,
        operator: str = "rental-api",
    ):
        self.connector = connector
        self.realm = realm
        self.reconciler = reconciler
        self.guard = guard
        self.mapper = mapper
        self.page_size = page_size
        self.operator = operator

    @classmethod
    def from_settings(cls, cfg: AppConfig, connector: Optional[IdentityConnector] = None) -> "UserSynchronizer":
        """Wire a synchronizer from settings, sharing the process-wide connector by default."""
        connector = connector or get_connector(cfg)
        resolver = RoleResolver(connector, cfg.keycloak_realm, cfg.keycloak_client_id)
        return cls(
            connector,
            cfg.keycloak_realm,
            RoleReconciler(connector, resolver, strict_removal=cfg.strict_role_removal),
            ProtectedAccountGuard(cfg.client_admin_user),
            UserMapper(cfg.role_attribute),
            page_size=cfg.page_size,
        )

    @property
    def _users_path(self) -> str:
        return f"/admin/realms/{self.realm}/users"

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    def get_user(self, user_id: str) -> User:
        """Return the user with the given Keycloak ID.

        Raises:
            ForbiddenError: If the ID belongs to the protected account
            RemoteProviderError: On Keycloak failure (404 for unknown IDs)
        """
        return self.mapper.map(self._fetch(user_id))

    def get_users(self) -> List[User]:
        """Return every user except the protected account, in Keycloak's order."""
        kc_users: list[dict] = []
        first = 0
        while True:
            with translate_provider_errors():
                resp = self.connector.acquire().get(
                    self._users_path, params={"first": first, "max": self.page_size}
                )
                page = resp.json() or []
            kc_users.extend(page)
            if len(page) < self.page_size:
                break
            first += self.page_size

        return self.mapper.map_array(self.guard.filter_users(kc_users))

    def _fetch(self, user_id: str) -> dict:
        with translate_provider_errors():
            resp = self.connector.acquire().get(f"{self._users_path}/{user_id}")
            kc_user = resp.json()
        self.guard.exclude_user(kc_user)
        return kc_user

    def _find_by_username(self, username: str) -> Optional[dict]:
        """Return the representation whose username matches, ignoring case.

        Keycloak stores usernames lowercased, so "Bob" is kept as "bob".
        """
        with translate_provider_errors():
            resp = self.connector.acquire().get(
                self._users_path, params={"username": username, "exact": "true"}
            )
            candidates = resp.json() or []
        wanted = username.lower()
        for kc_user in candidates:
            if (kc_user.get("username") or "").lower() == wanted:
                return kc_user
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────────────

    def create_user(self, user: User) -> User:
        """Create the user, map its role, and return the stored record.

        If mapping the role or reading the user back fails, the freshly created
        account is deleted before the original error is re-raised, so no
        account is left without a valid role.

        Raises:
            ValidationError: Missing username/role, or role unknown to the client
            ForbiddenError: If the username is the protected account's
            ConflictError: If the username already exists
            RemoteProviderError: On any other Keycloak failure
        """
        if not user.username or not user.role:
            raise ValidationError("username and role are required")
        self.guard.exclude_user(user)

        user_id = self._create_remote(user)

        try:
            if user_id is None:
                kc_user = self._find_by_username(user.username)
                if not kc_user:
                    raise RemoteProviderError(f"User '{user.username}' created but not found in Keycloak")
                user_id = kc_user["id"]
            logger.info("[create-user] User '%s' created (id=%s)", user.username, user_id)
            self.reconciler.set_role(user_id, user.role)
            created = self.get_user(user_id)
        except Exception as exc:
            self._compensate_create(user, user_id, exc)
            raise

        audit.safe_log_event(
            "user_create",
            user.username,
            operator=self.operator,
            realm=self.realm,
            details={"user_id": user_id, "role": user.role},
        )
        return created

    def _create_remote(self, user: User) -> Optional[str]:
        """POST the new user and return the id from the Location header, if any."""
        payload = self.mapper.to_representation(user, include_credentials=True)
        try:
            with translate_provider_errors():
                resp = self.connector.acquire().post(self._users_path, json=payload)
        except RemoteProviderError as exc:
            if exc.status == 409:
                raise ConflictError(
                    f"User with username '{user.username}' already exists", payload=exc.payload
                ) from exc
            raise

        location = resp.headers.get("Location", "")
        if location:
            return location.rstrip("/").rsplit("/", 1)[-1]
        return None

    def _compensate_create(self, user: User, user_id: Optional[str], error: Exception) -> None:
        """Delete the half-created user; failures here never replace ``error``.

        Deletes by ``user_id`` when creation returned one and only falls back
        to a username lookup otherwise.
        """
        try:
            if user_id is None:
                kc_user = self._find_by_username(user.username)
                if not kc_user or self.guard.is_protected(kc_user):
                    raise RemoteProviderError(f"No created record found for '{user.username}'")
                user_id = kc_user["id"]
            with translate_provider_errors():
                self.connector.acquire().delete(f"{self._users_path}/{user_id}")
            logger.warning("[create-user] Rolled back '%s' after failure: %s", user.username, error)
            audit.safe_log_event(
                "user_compensate",
                user.username,
                operator=self.operator,
                realm=self.realm,
                details={"user_id": user_id, "error": str(error)},
            )
        except Exception as cleanup_exc:
            logger.error(
                "[create-user] Could not roll back '%s' (original error: %s): %s",
                user.username, error, cleanup_exc,
            )
            audit.safe_log_event(
                "user_compensate",
                user.username,
                operator=self.operator,
                realm=self.realm,
                details={"user_id": user_id, "error": str(error), "cleanup_error": str(cleanup_exc)},
                success=False,
            )

    def update_user(self, user_id: str, user: User) -> User:
        """Overwrite the user's profile and attributes, then reconcile its role.

        This is a full replacement: profile fields missing from ``user`` are
        cleared in Keycloak.

        Raises:
            ForbiddenError: If the target or the new username is the protected account
            ValidationError: Missing username/role, or role unknown to the client
            ConflictError: If the new username or email is taken
            RemoteProviderError: On any other Keycloak failure
        """
        if not user.username or not user.role:
            raise ValidationError("username and role are required")
        self._fetch(user_id)
        self.guard.exclude_user(user)

        try:
            with translate_provider_errors():
                self.connector.acquire().put(
                    f"{self._users_path}/{user_id}", json=self.mapper.to_representation(user)
                )
        except RemoteProviderError as exc:
            if exc.status == 409:
                raise ConflictError(
                    f"User with username '{user.username}' already exists", payload=exc.payload
                ) from exc
            raise

        self.reconciler.set_role(user_id, user.role)
        updated = self.get_user(user_id)

        audit.safe_log_event(
            "user_update",
            updated.username,
            operator=self.operator,
            realm=self.realm,
            details={"user_id": user_id, "role": user.role},
        )
        return updated

    def delete_user(self, user_id: str) -> User:
        """Delete the user and return the record as it was before deletion.

        Raises:
            ForbiddenError: If the ID belongs to the protected account
            RemoteProviderError: On Keycloak failure
        """
        snapshot = self.get_user(user_id)

        with translate_provider_errors():
            self.connector.acquire().delete(f"{self._users_path}/{user_id}")
        logger.info("[delete-user] User '%s' deleted (id=%s)", snapshot.username, user_id)

        audit.safe_log_event(
            "user_delete",
            snapshot.username,
            operator=self.operator,
            realm=self.realm,
            details={"user_id": user_id},
        )
        return snapshot
