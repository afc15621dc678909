"""
Session Gate Middleware
=======================
Validates the session cookie against the identity provider on every request
and injects trust headers for downstream handlers.

Usage:
    from edge_auth.middleware import SessionGateMiddleware

    app.add_middleware(SessionGateMiddleware, settings=settings, client=identity_client)

Outcomes:
- Authenticated: x-user-* headers are set on the request and it proceeds.
- Unauthenticated on a public path: proceeds without trust headers.
- Unauthenticated on a protected path: 401 JSON for /api/ paths, a redirect
  to the login page otherwise.
"""

import re
from typing import List, Optional, Tuple

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from ..config import Settings, get_settings
from ..errors import login_required_response
from ..guards import (
    HEADER_USER_CREDITS,
    HEADER_USER_EMAIL,
    HEADER_USER_ENTITLED,
    HEADER_USER_ID,
    HEADER_USER_TIER,
    TRUST_HEADERS,
)
from ..http import IdentityClient, IdentityServiceError
from ..models import ValidateResponse

logger = structlog.get_logger(__name__)

# Static assets and framework internals never hit the identity provider
SKIP_PATTERN = re.compile(
    r"^/(?:_next/static|_next/image|favicon\.ico)"
    r"|\.(?:svg|png|jpg|jpeg|gif|webp)$"
)

_TRUST_HEADER_KEYS = {name.encode("latin-1") for name in TRUST_HEADERS}


def format_credits(value: float) -> str:
    """Render a credit balance the way it travels in x-user-credits."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def trust_headers_for(session: ValidateResponse) -> List[Tuple[str, str]]:
    """Header pairs describing an authenticated session."""
    entitlement = session.entitlement
    headers = [
        (HEADER_USER_ID, session.user.id),
        (HEADER_USER_EMAIL, session.user.email or ""),
        (HEADER_USER_ENTITLED, "true" if entitlement and entitlement.entitled else "false"),
        (HEADER_USER_TIER, (entitlement and entitlement.tier) or "free"),
    ]
    if session.credits is not None:
        headers.append((HEADER_USER_CREDITS, format_credits(session.credits.availableCredits)))
    return headers


class SessionGateMiddleware(BaseHTTPMiddleware):
    """
    Edge interceptor that turns a session cookie into trust headers.

    Client-supplied x-user-* headers are always removed, so their presence
    downstream implies the identity provider accepted the session during
    this request.
    """

    def __init__(
        self,
        app,
        settings: Optional[Settings] = None,
        client: Optional[IdentityClient] = None,
    ):
        super().__init__(app)
        self.settings = settings or get_settings()
        self.client = client
        self.public_paths = [p.rstrip("/") or "/" for p in self.settings.public_paths]

    def is_public_path(self, path: str) -> bool:
        """Check if path is public (doesn't require auth)."""
        return any(path == p or path.startswith(p + "/") for p in self.public_paths)

    def _identity_client(self, request: Request) -> IdentityClient:
        client = self.client or getattr(request.app.state, "identity_client", None)
        if client is None:
            raise RuntimeError("SessionGateMiddleware has no identity client configured")
        return client

    def _set_request_headers(self, request: Request, extra: List[Tuple[str, str]]) -> None:
        headers = [
            (key, value)
            for key, value in request.scope["headers"]
            if key.lower() not in _TRUST_HEADER_KEYS
        ]
        headers.extend((key.encode("latin-1"), value.encode("latin-1")) for key, value in extra)
        request.scope["headers"] = headers

    def login_url_for(self, request: Request) -> str:
        """Login URL whose returnTo points back at the requested page."""
        app_base = self.settings.app_base_url.rstrip("/")
        return_to = f"{app_base}{request.url.path}"
        if request.url.query:
            return_to = f"{return_to}?{request.url.query}"
        return self.settings.login_url(return_to)

    def redirect_to_login(self, request: Request) -> Response:
        login_url = self.login_url_for(request)

        # API routes get a 401 instead of a redirect
        if request.url.path.startswith("/api/"):
            return login_required_response(login_url)

        return RedirectResponse(login_url, status_code=307)

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        # Trust headers may only come from this middleware
        self._set_request_headers(request, [])

        if SKIP_PATTERN.search(path):
            return await call_next(request)

        is_public = self.is_public_path(path)
        cookie_header = request.headers.get("cookie")

        if not cookie_header:
            if is_public:
                return await call_next(request)
            logger.info("session_gate_blocked", path=path, reason="no_cookie")
            return self.redirect_to_login(request)

        try:
            session = await self._identity_client(request).validate(
                cookie_header, origin=self.settings.app_base_url
            )
        except IdentityServiceError as e:
            logger.error(
                "session_validation_failed",
                path=path,
                error=e.message,
                status_code=e.status_code,
                error_type=type(e).__name__,
            )
            if is_public or self.settings.fail_open:
                return await call_next(request)
            return self.redirect_to_login(request)

        if not session.authenticated:
            if is_public:
                return await call_next(request)
            logger.info(
                "session_gate_blocked",
                path=path,
                reason=session.reason or "not_authenticated",
            )
            return self.redirect_to_login(request)

        self._set_request_headers(request, trust_headers_for(session))
        structlog.contextvars.bind_contextvars(user_id=session.user.id)
        logger.debug("session_gate_passed", path=path)

        return await call_next(request)
