"""Pytest shared fixtures: isolated settings, audit trail and a fake Keycloak."""
import json
import os
import pathlib
import re
import sys
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")

import pytest
import requests

from rental_iam import audit
from rental_iam.config import AppConfig
from rental_iam.core.keycloak.connector import IdentityConnector, reset_connector
from rental_iam.core.keycloak.exceptions import KeycloakAPIError
from rental_iam.core.user_synchronizer import UserSynchronizer

REALM = "rental"
CLIENT_UUID = "client-uuid-1"
ADMIN_ID = "admin-id"


# ─────────────────────────────────────────────────────────────────────────────
# In-memory Keycloak Admin API
# ─────────────────────────────────────────────────────────────────────────────
class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, headers: Optional[dict] = None, url: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.url = url
        self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        return self._payload


class FakeKeycloak:
    """Stand-in for an authenticated KeycloakClient.

    Implements the subset of the admin API used by the synchronizer and raises
    KeycloakAPIError on 4xx/5xx exactly like the real client.
    """

    base_url = "http://keycloak:8080"

    def __init__(self):
        self.clients = [{"id": CLIENT_UUID, "clientId": "rental-api"}, {"id": "other-uuid", "clientId": "account"}]
        self.roles = {
            CLIENT_UUID: [
                {"id": "role-agent", "name": "AGENT"},
                {"id": "role-agent-lead", "name": "AGENT_LEAD"},
                {"id": "role-manager", "name": "MANAGER"},
            ],
        }
        self.users: dict[str, dict] = {}
        self.passwords: dict[str, list] = {}
        self.mappings: dict[str, list] = {}
        self.calls: list[tuple[str, str]] = []
        self._failures: list[tuple[str, re.Pattern, int, object]] = []
        self._next_id = 0
        self.add_user({"id": ADMIN_ID, "username": "admin", "email": "admin@rental.local", "enabled": True})

    # Test helpers -----------------------------------------------------------
    def add_user(self, rep: dict) -> dict:
        rep = dict(rep)
        if "id" not in rep:
            self._next_id += 1
            rep["id"] = f"user-{self._next_id}"
        rep.setdefault("enabled", True)
        self.users[rep["id"]] = rep
        self.mappings.setdefault(rep["id"], [])
        return rep

    def fail(self, method: str, pattern: str, status: int = 500, body=None) -> None:
        """Make requests matching method and path regex fail with status."""
        self._failures.append((method, re.compile(pattern), status, body or {"error": "boom"}))

    def usernames(self) -> list[str]:
        return [user["username"] for user in self.users.values()]

    def role_names(self, user_id: str) -> list[str]:
        return [role["name"] for role in self.mappings.get(user_id, [])]

    def count_calls(self, method: str, pattern: str) -> int:
        return sum(1 for m, p in self.calls if m == method and re.search(pattern, p))

    # KeycloakClient interface -------------------------------------------------
    def get(self, path, params=None, **kwargs):
        return self._dispatch("GET", path, params or {}, None)

    def post(self, path, json=None, **kwargs):
        return self._dispatch("POST", path, {}, json)

    def put(self, path, json=None, **kwargs):
        return self._dispatch("PUT", path, {}, json)

    def delete(self, path, json=None, **kwargs):
        return self._dispatch("DELETE", path, {}, json)

    def _dispatch(self, method, path, params, body):
        self.calls.append((method, path))
        url = f"{self.base_url}{path}"
        for fail_method, pattern, status, payload in self._failures:
            if fail_method == method and pattern.search(path):
                raise KeycloakAPIError(status, json.dumps(payload), url)

        resp = self._route(method, path, params, body)
        resp.url = url
        if resp.status_code >= 400:
            raise KeycloakAPIError(resp.status_code, resp.text, url)
        return resp

    def _route(self, method, path, params, body):
        prefix = f"/admin/realms/{REALM}"
        if not path.startswith(prefix):
            return FakeResponse({"error": "Realm not found."}, 404)
        rest = path[len(prefix):]

        if rest == "/clients" and method == "GET":
            return FakeResponse([c for c in self.clients if c["clientId"] == params.get("clientId")])

        match = re.fullmatch(r"/clients/([^/]+)/roles", rest)
        if match and method == "GET":
            search = params.get("search", "")
            roles = self.roles.get(match.group(1))
            if roles is None:
                return FakeResponse({"error": "Could not find client"}, 404)
            return FakeResponse([r for r in roles if search.lower() in r["name"].lower()])

        if rest == "/users":
            if method == "POST":
                return self._create_user(body, prefix)
            if method == "GET":
                return self._list_users(params)

        match = re.fullmatch(r"/users/([^/]+)", rest)
        if match:
            return self._user_by_id(method, match.group(1), body)

        match = re.fullmatch(r"/users/([^/]+)/role-mappings/clients/([^/]+)", rest)
        if match:
            return self._role_mappings(method, match.group(1), body)

        return FakeResponse({"error": "Unexpected request"}, 404)

    def _create_user(self, body, prefix):
        # Keycloak stores usernames lowercased
        username = body["username"].lower()
        if username in self.usernames():
            return FakeResponse({"errorMessage": "User exists with same username"}, 409)
        rep = {k: v for k, v in body.items() if k != "credentials"}
        rep["username"] = username
        created = self.add_user(rep)
        self.passwords[created["id"]] = body.get("credentials", [])
        location = f"{self.base_url}{prefix}/users/{created['id']}"
        return FakeResponse(None, 201, headers={"Location": location})

    def _list_users(self, params):
        users = list(self.users.values())
        if "username" in params:
            wanted = params["username"].lower()
            if params.get("exact") == "true":
                users = [u for u in users if u["username"] == wanted]
            else:
                users = [u for u in users if wanted in u["username"]]
            return FakeResponse([dict(u) for u in users])
        first = int(params.get("first", 0))
        size = int(params.get("max", 100))
        return FakeResponse([dict(u) for u in users[first:first + size]])

    def _user_by_id(self, method, user_id, body):
        if user_id not in self.users:
            return FakeResponse({"error": "User not found"}, 404)
        if method == "GET":
            return FakeResponse(dict(self.users[user_id]))
        if method == "PUT":
            self.users[user_id].update(body, username=body.get("username", "").lower())
            return FakeResponse(None, 204)
        if method == "DELETE":
            del self.users[user_id]
            self.mappings.pop(user_id, None)
            return FakeResponse(None, 204)
        return FakeResponse({"error": "Method not allowed"}, 405)

    def _role_mappings(self, method, user_id, body):
        if user_id not in self.users:
            return FakeResponse({"error": "User not found"}, 404)
        current = self.mappings.setdefault(user_id, [])
        if method == "GET":
            return FakeResponse([dict(r) for r in current])
        if method == "POST":
            for role in body:
                if role["id"] not in {r["id"] for r in current}:
                    current.append(dict(role))
            return FakeResponse(None, 204)
        if method == "DELETE":
            removed = {r["id"] for r in body}
            self.mappings[user_id] = [r for r in current if r["id"] not in removed]
            return FakeResponse(None, 204)
        return FakeResponse({"error": "Method not allowed"}, 405)


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Fail loudly if a unit test reaches for the real network."""

    def _unexpected(*args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP call in unit test: {args} {kwargs.get('url', '')}")

    monkeypatch.setattr(requests, "request", _unexpected)
    monkeypatch.setattr(requests, "post", _unexpected)
    monkeypatch.setattr(requests, "get", _unexpected)


@pytest.fixture(autouse=True)
def _isolated_audit(monkeypatch, tmp_path):
    """Write audit events to a per-test directory."""
    audit_dir = tmp_path / "audit"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_dir / "user-events.jsonl")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key")
    yield audit_dir / "user-events.jsonl"


@pytest.fixture(autouse=True)
def _reset_process_connector():
    reset_connector()
    yield
    reset_connector()


# ─────────────────────────────────────────────────────────────────────────────
# Service Fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def app_config():
    return AppConfig(
        demo_mode=True,
        keycloak_url="http://keycloak:8080",
        keycloak_realm=REALM,
        keycloak_service_realm=REALM,
        keycloak_service_client_id="rental-api-admin",
        keycloak_service_client_secret="secret",
        keycloak_client_id="rental-api",
        client_admin_user="admin",
        role_attribute="rol",
        strict_role_removal=True,
        page_size=100,
    )


@pytest.fixture()
def fake_keycloak():
    return FakeKeycloak()


@pytest.fixture()
def connector(fake_keycloak):
    """IdentityConnector whose cached client is the fake."""
    conn = IdentityConnector("http://keycloak:8080", REALM, "rental-api-admin", "secret")
    conn._client = fake_keycloak
    return conn


@pytest.fixture()
def synchronizer(app_config, connector):
    return UserSynchronizer.from_settings(app_config, connector=connector)


@pytest.fixture()
def audit_events(_isolated_audit):
    """Callable returning the audit events written so far."""

    def _read() -> list[dict]:
        if not _isolated_audit.exists():
            return []
        return [json.loads(line) for line in _isolated_audit.read_text().splitlines() if line.strip()]

    return _read
