"""
Route Guards
============
Read the trust headers set by SessionGateMiddleware and enforce
authentication, entitlement or credit thresholds per route.

Usage:
    from edge_auth.guards import require_auth, require_credits

    @app.post("/api/generate")
    async def generate(user: ApiUser = Depends(require_credits(100))):
        ...

The headers are only trustworthy behind SessionGateMiddleware, which strips
any client-supplied copies before validating the session.
"""

import re
from typing import Callable, Optional

from fastapi import Request

from .config import Settings, get_settings
from .errors import GuardError, forbidden_response, unauthorized_response
from .models import ApiUser

HEADER_USER_ID = "x-user-id"
HEADER_USER_EMAIL = "x-user-email"
HEADER_USER_ENTITLED = "x-user-entitled"
HEADER_USER_TIER = "x-user-tier"
HEADER_USER_CREDITS = "x-user-credits"

TRUST_HEADERS = (
    HEADER_USER_ID,
    HEADER_USER_EMAIL,
    HEADER_USER_ENTITLED,
    HEADER_USER_TIER,
    HEADER_USER_CREDITS,
)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_credits(value: Optional[str]) -> int:
    """Parse the leading integer of a credits header; 0 when absent or garbled."""
    match = _LEADING_INT.match(value or "")
    if match is None:
        return 0
    return int(match.group(1))


def _settings_for(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_api_user(request: Request) -> Optional[ApiUser]:
    """Return the user described by the trust headers, or None if unauthenticated."""
    user_id = request.headers.get(HEADER_USER_ID)
    if not user_id:
        return None

    return ApiUser(
        id=user_id,
        email=request.headers.get(HEADER_USER_EMAIL) or "",
        entitled=request.headers.get(HEADER_USER_ENTITLED) == "true",
        tier=request.headers.get(HEADER_USER_TIER) or "free",
        credits=parse_credits(request.headers.get(HEADER_USER_CREDITS)),
    )


def require_auth(request: Request) -> ApiUser:
    """
    Dependency that requires an authenticated user.
    Raises GuardError (401) otherwise.
    """
    user = get_api_user(request)
    if user is None:
        raise GuardError(unauthorized_response(settings=_settings_for(request)))
    return user


def require_entitlement(request: Request) -> ApiUser:
    """
    Dependency that requires an active subscription.
    Raises GuardError (401 or 403) otherwise.
    """
    user = require_auth(request)
    if not user.entitled:
        raise GuardError(
            forbidden_response("Active subscription required", settings=_settings_for(request))
        )
    return user


def check_credits(request: Request, min_credits: int) -> ApiUser:
    """Require an authenticated user holding at least ``min_credits``."""
    user = require_auth(request)
    if user.credits < min_credits:
        raise GuardError(
            forbidden_response(
                f"Insufficient credits. Required: {min_credits}, Available: {user.credits}",
                settings=_settings_for(request),
            )
        )
    return user


def require_credits(min_credits: int) -> Callable[[Request], ApiUser]:
    """Build a dependency requiring at least ``min_credits``."""

    def dependency(request: Request) -> ApiUser:
        return check_credits(request, min_credits)

    return dependency
