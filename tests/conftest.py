"""Test fixtures and configuration for pytest."""

from typing import List, Optional

import httpx
import pytest
from fastapi import Depends, Request
from fastapi.responses import PlainTextResponse
from starlette.testclient import TestClient

from edge_auth.app import create_app
from edge_auth.config import Settings
from edge_auth.guards import (
    TRUST_HEADERS,
    require_auth,
    require_credits,
    require_entitlement,
)
from edge_auth.models import ApiUser

IDENTITY_BASE = "https://id.example.test"
APP_BASE = "https://app.example.test"

AUTHENTICATED_PAYLOAD = {
    "authenticated": True,
    "user": {
        "id": "user_123",
        "email": "ada@example.test",
        "name": "Ada",
        "image": None,
    },
    "entitlement": {
        "entitled": True,
        "tier": "pro",
        "source": "ghost",
        "reason": None,
    },
    "credits": {
        "totalCredits": 500,
        "availableCredits": 250,
        "reservedCredits": 10,
    },
}

REJECTED_PAYLOAD = {"authenticated": False, "reason": "invalid_session"}


class FakeIdentityProvider:
    """Stands in for the identity provider's validate endpoint."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.payload = REJECTED_PAYLOAD
        self.body: Optional[bytes] = None
        self.error: Optional[Exception] = None

    def accept(self, **overrides):
        self.payload = {**AUTHENTICATED_PAYLOAD, **overrides}

    def reject(self, reason: str = "invalid_session"):
        self.payload = {"authenticated": False, "reason": reason}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_settings(**overrides) -> Settings:
    values = dict(
        auth_validation_url=f"{IDENTITY_BASE}/api/auth/validate",
        chat_base_url=IDENTITY_BASE,
        app_base_url=APP_BASE,
        service_name="edge-auth-test",
    )
    values.update(overrides)
    return Settings(**values)


def build_app(settings: Settings, provider: FakeIdentityProvider):
    """Gateway app plus a few downstream routes that read the trust headers."""
    app = create_app(settings, transport=provider.transport, configure_logging=False)

    def trust_headers(request: Request) -> dict:
        return {k: v for k, v in request.headers.items() if k in TRUST_HEADERS}

    @app.get("/api/echo")
    async def echo(request: Request):
        return {"headers": trust_headers(request)}

    @app.get("/api/auth/echo")
    async def public_echo(request: Request):
        return {"headers": trust_headers(request)}

    @app.get("/api/projects")
    async def projects(user: ApiUser = Depends(require_auth)):
        return {"owner": user.id}

    @app.get("/api/premium")
    async def premium(user: ApiUser = Depends(require_entitlement)):
        return {"tier": user.tier}

    @app.post("/api/generate")
    async def generate(user: ApiUser = Depends(require_credits(100))):
        return {"credits": user.credits}

    @app.get("/dashboard")
    async def dashboard():
        return PlainTextResponse("dashboard")

    @app.get("/logo.png")
    async def logo():
        return PlainTextResponse("png")

    return app


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings, provider):
    return build_app(settings, provider)


@pytest.fixture
def client(app):
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client
