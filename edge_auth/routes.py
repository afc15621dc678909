"""
Session Routes
==============
Lightweight endpoints served behind the session gate.

``/api/auth/session`` reports the current user's session for frontend use.
It only reads the headers set by SessionGateMiddleware and never calls the
identity provider itself.
"""

from fastapi import APIRouter, Request

from .config import Settings, get_settings
from .guards import get_api_user
from .models import SessionCredits, SessionEntitlement, SessionStatus, SessionUser


def session_status(request: Request, settings: Settings) -> SessionStatus:
    """Build the session status payload from the request's trust headers."""
    user = get_api_user(request)

    if user is None:
        return SessionStatus(authenticated=False, loginUrl=settings.login_url())

    return SessionStatus(
        authenticated=True,
        user=SessionUser(id=user.id, email=user.email),
        entitlement=SessionEntitlement(entitled=user.entitled, tier=user.tier),
        credits=SessionCredits(available=user.credits),
    )


def create_session_router(settings: Settings = None) -> APIRouter:
    """
    Create the router serving health and session status endpoints.

    Args:
        settings: Gateway settings (defaults to environment settings)

    Returns:
        APIRouter with /api/health and /api/auth/session
    """
    settings = settings or get_settings()
    router = APIRouter(prefix="/api", tags=["auth"])

    @router.get("/health")
    async def health():
        return {"status": "healthy", "service": settings.service_name}

    @router.get("/auth/session", response_model=SessionStatus, response_model_exclude_none=True)
    async def get_session(request: Request) -> SessionStatus:
        return session_status(request, settings)

    return router
