"""
Tests for the HTTP surface: error envelopes, auth routes, workspace flow,
the ``require()`` dependency and the OAuth callback.
"""

import asyncio
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from teamhub.api import create_app
from teamhub.auth.capabilities import Permission
from teamhub.auth.context import AuthContext
from teamhub.auth.jwt import issue_token
from teamhub.auth.policies import require
from teamhub.auth.routes import get_oauth_manager
from teamhub.config import Settings, get_settings
from teamhub.integrations.oauth import GoogleOAuth, OAuthManager


PASSWORD = "correct-horse-battery"


@pytest.fixture
def app(provider):
    app = create_app(provider)

    @app.get("/workspaces/{workspace_id}/danger")
    async def danger(ctx: AuthContext = Depends(require(Permission.DELETE_TASK))):
        return {"role": ctx.role.value, "workspace_id": ctx.workspace_id}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    return app


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


def signup(client, email: str, name: str = "Test User") -> dict:
    """Register and return auth headers."""
    response = client.post("/auth/register", json={"email": email, "password": PASSWORD, "name": name})
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def error_code(response) -> str:
    return response.json()["error"]["code"]


# =============================================================================
# App
# =============================================================================


class TestApp:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_roles_seeded_on_startup(self, client, provider):
        docs = asyncio.run(provider.metadata.query("roles"))
        assert {d["name"] for d in docs} == {"owner", "admin", "member"}

    def test_unexpected_error_is_generic(self, client):
        response = client.get("/boom")
        assert response.status_code == 500
        assert response.json() == {
            "error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
        }

    def test_validation_error_envelope(self, client):
        response = client.post("/auth/register", json={"email": "not-an-email", "password": "x", "name": ""})
        assert response.status_code == 400
        assert error_code(response) == "VALIDATION_ERROR"
        fields = {d["field"] for d in response.json()["error"]["details"]}
        assert "body.password" in fields


# =============================================================================
# Auth
# =============================================================================


class TestAuthRoutes:
    def test_register_and_me(self, client):
        headers = signup(client, "ana@example.com", name="Ana")

        user = client.get("/auth/me", headers=headers).json()["user"]
        assert user["email"] == "ana@example.com"
        assert "password_hash" not in user
        assert user["current_workspace_id"]

    def test_duplicate_registration(self, client):
        signup(client, "ana@example.com")
        response = client.post(
            "/auth/register", json={"email": "ana@example.com", "password": PASSWORD, "name": "Ana"}
        )
        assert response.status_code == 409
        assert error_code(response) == "CONFLICT"

    def test_login(self, client):
        signup(client, "ana@example.com")
        response = client.post("/auth/login", json={"email": "ana@example.com", "password": PASSWORD})
        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

    def test_login_failures_identical(self, client):
        signup(client, "ana@example.com")

        wrong_password = client.post("/auth/login", json={"email": "ana@example.com", "password": "nope-nope"})
        unknown_email = client.post("/auth/login", json={"email": "bob@example.com", "password": PASSWORD})

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()
        assert error_code(wrong_password) == "INVALID_CREDENTIALS"

    def test_missing_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert error_code(response) == "TOKEN_INVALID"

    def test_expired_token(self, client):
        token = issue_token("user_abc", ttl_seconds=-60).access_token
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert error_code(response) == "TOKEN_EXPIRED"

    def test_update_profile(self, client):
        headers = signup(client, "ana@example.com", name="Ana")
        response = client.patch("/auth/me", json={"name": "Ana Maria"}, headers=headers)
        assert response.json()["user"]["name"] == "Ana Maria"


# =============================================================================
# Workspaces
# =============================================================================


class TestWorkspaceRoutes:
    def test_invite_flow(self, client):
        owner = signup(client, "owner@example.com")
        joiner = signup(client, "joiner@example.com")
        outsider = signup(client, "outsider@example.com")

        workspace = client.post("/workspaces", json={"name": "Design Team"}, headers=owner).json()["workspace"]
        ws = workspace["id"]

        response = client.get(f"/workspaces/{ws}", headers=outsider)
        assert response.status_code == 403
        assert error_code(response) == "NOT_A_MEMBER"

        joined = client.post(f"/invites/{workspace['invite_code']}/join", headers=joiner)
        assert joined.status_code == 200
        assert joined.json()["member"]["role"] == "member"

        again = client.post(f"/invites/{workspace['invite_code']}/join", headers=joiner)
        assert again.status_code == 409
        assert error_code(again) == "ALREADY_MEMBER"

        members = client.get(f"/workspaces/{ws}/members", headers=joiner).json()["members"]
        assert len(members) == 2

    def test_invalid_invite_code(self, client):
        headers = signup(client, "joiner@example.com")
        response = client.post("/invites/NOPE99/join", headers=headers)
        assert response.status_code == 404
        assert error_code(response) == "INVALID_INVITE_CODE"

    def test_member_cannot_delete_task(self, client):
        owner = signup(client, "owner@example.com")
        member = signup(client, "member@example.com")
        workspace = client.post("/workspaces", json={"name": "Design Team"}, headers=owner).json()["workspace"]
        ws = workspace["id"]
        client.post(f"/invites/{workspace['invite_code']}/join", headers=member)

        project = client.post(f"/workspaces/{ws}/projects", json={"name": "Website"}, headers=owner).json()["project"]
        task = client.post(
            f"/workspaces/{ws}/projects/{project['id']}/tasks", json={"title": "Hero image"}, headers=member
        ).json()["task"]

        response = client.delete(f"/workspaces/{ws}/tasks/{task['id']}", headers=member)
        assert response.status_code == 403
        assert error_code(response) == "UNAUTHORIZED"

        assert client.delete(f"/workspaces/{ws}/tasks/{task['id']}", headers=owner).status_code == 200
        assert client.get(f"/workspaces/{ws}/tasks", headers=member).json()["tasks"] == []

    def test_owner_cannot_be_removed(self, client):
        owner = signup(client, "owner@example.com")
        me = client.get("/auth/me", headers=owner).json()["user"]
        ws = me["current_workspace_id"]

        response = client.delete(f"/workspaces/{ws}/members/{me['id']}", headers=owner)
        assert response.status_code == 400
        assert error_code(response) == "FORBIDDEN_OPERATION"


# =============================================================================
# require() dependency
# =============================================================================


class TestRequireDependency:
    def test_grants_with_role(self, client):
        headers = signup(client, "owner@example.com")
        ws = client.get("/auth/me", headers=headers).json()["user"]["current_workspace_id"]

        response = client.get(f"/workspaces/{ws}/danger", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"role": "owner", "workspace_id": ws}

    def test_denies_member(self, client):
        owner = signup(client, "owner@example.com")
        member = signup(client, "member@example.com")
        workspace = client.post("/workspaces", json={"name": "Design Team"}, headers=owner).json()["workspace"]
        client.post(f"/invites/{workspace['invite_code']}/join", headers=member)

        response = client.get(f"/workspaces/{workspace['id']}/danger", headers=member)
        assert response.status_code == 403
        assert error_code(response) == "UNAUTHORIZED"

    def test_denies_non_member(self, client):
        owner = signup(client, "owner@example.com")
        outsider = signup(client, "outsider@example.com")
        ws = client.get("/auth/me", headers=owner).json()["user"]["current_workspace_id"]

        response = client.get(f"/workspaces/{ws}/danger", headers=outsider)
        assert error_code(response) == "NOT_A_MEMBER"

    def test_requires_token(self, client):
        response = client.get("/workspaces/ws_any/danger")
        assert response.status_code == 401


# =============================================================================
# OAuth
# =============================================================================


def google_transport(
    email: str = "ana@example.com",
    fail_exchange: bool = False,
    verified: bool = True,
    google_id: str = "g-123",
) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/token":
            if fail_exchange:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "google-access-token"})
        if request.url.path == "/oauth2/v2/userinfo":
            assert request.headers["Authorization"] == "Bearer google-access-token"
            return httpx.Response(
                200, json={"id": google_id, "email": email, "name": "Ana", "verified_email": verified}
            )
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture
def oauth_app(app, provider):
    def install(transport: httpx.MockTransport) -> OAuthManager:
        settings = Settings(google_oauth_client_id="client-id", google_oauth_client_secret="client-secret")
        manager = OAuthManager(provider.cache, google=GoogleOAuth(settings, transport=transport))
        app.dependency_overrides[get_oauth_manager] = lambda: manager
        return manager

    return install


class TestOAuthRoutes:
    def test_no_providers_by_default(self, client):
        assert client.get("/auth/providers").json() == {"providers": []}

    def test_authorize_url(self, client, oauth_app):
        oauth_app(google_transport())

        url = client.get("/auth/google/authorize").json()["authorize_url"]
        params = parse_qs(urlsplit(url).query)
        assert params["client_id"] == ["client-id"]
        assert params["state"]

    def test_callback_success(self, client, oauth_app):
        oauth_app(google_transport())
        url = client.get("/auth/google/authorize").json()["authorize_url"]
        state = parse_qs(urlsplit(url).query)["state"][0]

        response = client.get(
            "/auth/google/callback", params={"code": "abc", "state": state}, follow_redirects=False
        )

        assert response.status_code in (302, 307)
        target = urlsplit(response.headers["location"])
        assert target.geturl().startswith(get_settings().frontend_google_callback_url)
        query = parse_qs(target.query)
        assert query["status"] == ["success"]
        assert query["current_workspace"][0].startswith("ws_")

        token = parse_qs(target.fragment)["access_token"][0]
        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()["user"]
        assert me["email"] == "ana@example.com"

    def test_callback_rejects_bad_state(self, client, oauth_app):
        oauth_app(google_transport())

        response = client.get(
            "/auth/google/callback", params={"code": "abc", "state": "forged"}, follow_redirects=False
        )
        assert parse_qs(urlsplit(response.headers["location"]).query)["status"] == ["failure"]

    def test_callback_failed_exchange(self, client, oauth_app):
        oauth_app(google_transport(fail_exchange=True))
        url = client.get("/auth/google/authorize").json()["authorize_url"]
        state = parse_qs(urlsplit(url).query)["state"][0]

        response = client.get(
            "/auth/google/callback", params={"code": "abc", "state": state}, follow_redirects=False
        )
        assert parse_qs(urlsplit(response.headers["location"]).query)["status"] == ["failure"]

    def test_denied_consent_redirects_to_failure(self, client, oauth_app):
        manager = oauth_app(google_transport())
        url = client.get("/auth/google/authorize").json()["authorize_url"]
        state = parse_qs(urlsplit(url).query)["state"][0]

        response = client.get(
            "/auth/google/callback",
            params={"error": "access_denied", "state": state},
            follow_redirects=False,
        )

        assert response.status_code in (302, 307)
        assert parse_qs(urlsplit(response.headers["location"]).query)["status"] == ["failure"]
        # The state is spent
        assert asyncio.run(manager.validate_state(state)) is None

    def test_unverified_email_does_not_take_over_local_user(self, client, oauth_app, provider):
        victim = signup(client, "victim@example.com")
        victim_id = client.get("/auth/me", headers=victim).json()["user"]["id"]
        oauth_app(google_transport(email="victim@example.com", verified=False, google_id="attacker-g"))
        url = client.get("/auth/google/authorize").json()["authorize_url"]
        state = parse_qs(urlsplit(url).query)["state"][0]

        response = client.get(
            "/auth/google/callback", params={"code": "abc", "state": state}, follow_redirects=False
        )

        target = urlsplit(response.headers["location"])
        assert parse_qs(target.query)["status"] == ["failure"]
        assert "access_token" not in target.fragment
        assert client.get("/auth/me", headers=victim).json()["user"]["id"] == victim_id
        accounts = asyncio.run(provider.metadata.query("accounts", {"user_id": victim_id}))
        assert [a["provider"] for a in accounts] == ["local"]
