"""
Tests for the session gate middleware
=====================================
Cookie forwarding, trust header injection and the login responses.
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from starlette.testclient import TestClient

from conftest import APP_BASE, IDENTITY_BASE, build_app, make_settings

COOKIE = {"Cookie": "session_token=abc123; theme=dark"}


def return_to_of(login_url: str) -> str:
    parts = urlsplit(login_url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == f"{IDENTITY_BASE}/login"
    return parse_qs(parts.query)["returnTo"][0]


class TestMissingCookie:
    """Requests without any cookie."""

    def test_protected_api_path_returns_401_with_login_url(self, client, provider):
        response = client.get("/api/projects?page=2")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "Unauthorized"
        assert body["message"] == "Authentication required"
        assert return_to_of(body["loginUrl"]) == f"{APP_BASE}/api/projects?page=2"
        assert provider.requests == []

    def test_protected_page_redirects_to_login(self, client):
        response = client.get("/dashboard?tab=billing")

        assert response.status_code == 307
        assert return_to_of(response.headers["location"]) == f"{APP_BASE}/dashboard?tab=billing"

    def test_public_path_proceeds(self, client, provider):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert provider.requests == []


class TestRejectedSession:
    """The identity provider says the session is not authenticated."""

    def test_protected_api_path_returns_401(self, client, provider):
        provider.reject()

        response = client.get("/api/projects", headers=COOKIE)

        assert response.status_code == 401
        assert return_to_of(response.json()["loginUrl"]) == f"{APP_BASE}/api/projects"

    def test_protected_page_redirects(self, client, provider):
        provider.reject()

        response = client.get("/dashboard", headers=COOKIE)

        assert response.status_code == 307
        assert return_to_of(response.headers["location"]) == f"{APP_BASE}/dashboard"

    def test_public_path_proceeds_without_trust_headers(self, client, provider):
        provider.reject()

        response = client.get("/api/auth/echo", headers=COOKIE)

        assert response.status_code == 200
        assert response.json()["headers"] == {}


class TestUpstreamFailure:
    """Validation call fails: non-OK status, transport error or bad payload."""

    @pytest.mark.parametrize("status_code", [401, 404, 500, 503])
    def test_non_ok_status_blocks_protected_path(self, client, provider, status_code):
        provider.accept()
        provider.status_code = status_code

        response = client.get("/api/projects", headers=COOKIE)

        assert response.status_code == 401

    def test_connection_error_blocks_protected_path(self, client, provider):
        provider.error = httpx.ConnectError("connection refused")

        response = client.get("/dashboard", headers=COOKIE)

        assert response.status_code == 307

    def test_non_json_body_blocks_protected_path(self, client, provider):
        provider.body = b"<html>maintenance</html>"

        response = client.get("/api/projects", headers=COOKIE)

        assert response.status_code == 401

    def test_authenticated_without_user_blocks_protected_path(self, client, provider):
        provider.payload = {"authenticated": True}

        response = client.get("/api/projects", headers=COOKIE)

        assert response.status_code == 401

    def test_user_id_outside_latin1_blocks_protected_path(self, client, provider):
        provider.accept(user={"id": "用户", "email": "ada@example.test"})

        response = client.get("/api/echo", headers=COOKIE)

        assert response.status_code == 401
        assert "loginUrl" in response.json()

    def test_user_id_outside_latin1_sets_no_headers_on_public_path(self, client, provider):
        provider.accept(user={"id": "名字", "email": "ada@example.test"})

        response = client.get("/api/auth/echo", headers=COOKIE)

        assert response.status_code == 200
        assert response.json()["headers"] == {}

    def test_email_outside_latin1_blocks_protected_path(self, client, provider):
        provider.accept(user={"id": "user_123", "email": "ада@example.test"})

        response = client.get("/dashboard", headers=COOKIE)

        assert response.status_code == 307


    def test_public_path_proceeds(self, client, provider):
        provider.error = httpx.ReadTimeout("timed out")

        response = client.get("/api/auth/echo", headers=COOKIE)

        assert response.status_code == 200
        assert response.json()["headers"] == {}

    def test_fail_open_passes_without_trust_headers(self, provider):
        provider.error = httpx.ConnectError("connection refused")
        app = build_app(make_settings(fail_open=True), provider)

        with TestClient(app, follow_redirects=False) as client:
            response = client.get("/api/echo", headers=COOKIE)

        assert response.status_code == 200
        assert response.json()["headers"] == {}


class TestAuthenticatedSession:
    """The identity provider accepts the session."""

    def test_forwards_cookie_and_origin(self, client, provider):
        provider.accept()

        client.get("/api/echo", headers=COOKIE)

        assert len(provider.requests) == 1
        upstream = provider.requests[0]
        assert upstream.method == "GET"
        assert str(upstream.url) == f"{IDENTITY_BASE}/api/auth/validate"
        assert upstream.headers["cookie"] == COOKIE["Cookie"]
        assert upstream.headers["origin"] == APP_BASE

    def test_injects_headers_matching_upstream_fields(self, client, provider):
        provider.accept()

        response = client.get("/api/echo", headers=COOKIE)

        assert response.status_code == 200
        assert response.json()["headers"] == {
            "x-user-id": "user_123",
            "x-user-email": "ada@example.test",
            "x-user-entitled": "true",
            "x-user-tier": "pro",
            "x-user-credits": "250",
        }

    def test_defaults_for_missing_optional_fields(self, client, provider):
        provider.payload = {
            "authenticated": True,
            "user": {"id": "user_9", "email": None},
            "entitlement": {"entitled": False, "tier": None},
            "credits": None,
        }

        response = client.get("/api/echo", headers=COOKIE)

        assert response.json()["headers"] == {
            "x-user-id": "user_9",
            "x-user-email": "",
            "x-user-entitled": "false",
            "x-user-tier": "free",
        }

    def test_missing_entitlement_defaults_to_free(self, client, provider):
        provider.payload = {"authenticated": True, "user": {"id": "user_9", "email": "b@example.test"}}

        headers = client.get("/api/echo", headers=COOKIE).json()["headers"]

        assert headers["x-user-entitled"] == "false"
        assert headers["x-user-tier"] == "free"
        assert "x-user-credits" not in headers

    def test_fractional_credits_are_kept(self, client, provider):
        provider.accept(credits={"totalCredits": 20, "availableCredits": 12.5, "reservedCredits": 0})

        headers = client.get("/api/echo", headers=COOKIE).json()["headers"]

        assert headers["x-user-credits"] == "12.5"

    def test_latin1_email_is_kept_verbatim(self, client, provider):
        provider.accept(user={"id": "user_123", "email": "zoë@example.test"})

        headers = client.get("/api/echo", headers=COOKIE).json()["headers"]

        assert headers["x-user-email"] == "zoë@example.test"


    def test_protected_page_is_served(self, client, provider):
        provider.accept()

        response = client.get("/dashboard", headers=COOKIE)

        assert response.status_code == 200
        assert response.text == "dashboard"


class TestTrustHeaderSpoofing:
    """Client-supplied x-user-* headers never reach handlers."""

    SPOOFED = {
        "X-User-Id": "attacker",
        "X-User-Entitled": "true",
        "X-User-Credits": "999999",
    }

    def test_stripped_on_public_path_without_cookie(self, client):
        response = client.get("/api/auth/echo", headers=self.SPOOFED)

        assert response.json()["headers"] == {}

    def test_spoofed_header_does_not_authenticate(self, client):
        response = client.get("/api/projects", headers=self.SPOOFED)

        assert response.status_code == 401

    def test_replaced_by_upstream_values(self, client, provider):
        provider.accept()

        response = client.get("/api/echo", headers={**COOKIE, **self.SPOOFED})

        headers = response.json()["headers"]
        assert headers["x-user-id"] == "user_123"
        assert headers["x-user-credits"] == "250"


class TestSkippedPaths:
    """Static assets bypass validation entirely."""

    def test_image_is_served_without_validation(self, client, provider):
        provider.accept()

        response = client.get("/logo.png", headers=COOKIE)

        assert response.status_code == 200
        assert provider.requests == []

    def test_image_is_served_without_cookie(self, client):
        assert client.get("/logo.png").status_code == 200


class TestPublicPathMatching:
    """Public prefixes match whole path segments only."""

    def test_prefix_and_children_are_public(self, app):
        gate = _gate(app)

        assert gate.is_public_path("/api/auth")
        assert gate.is_public_path("/api/auth/session")
        assert gate.is_public_path("/_next/data/build.json")

    def test_sibling_with_shared_prefix_is_protected(self, app):
        gate = _gate(app)

        assert not gate.is_public_path("/api/authors")
        assert not gate.is_public_path("/api/healthcheck")
        assert not gate.is_public_path("/dashboard")


def _gate(app):
    from edge_auth.middleware import SessionGateMiddleware

    return SessionGateMiddleware(app, settings=app.state.settings, client=app.state.identity_client)
