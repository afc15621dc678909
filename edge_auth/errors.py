"""
Access Error Responses
======================
Standardized 401/403 bodies for the gateway and for route guards.

Every denial carries a link the browser can follow: the login page for
401s, the subscription portal for 403s.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from .config import Settings, get_settings

logger = structlog.get_logger(__name__)


def login_required_response(login_url: str) -> JSONResponse:
    """401 returned by the gateway for protected API paths."""
    return JSONResponse(
        status_code=401,
        content={
            "error": "Unauthorized",
            "message": "Authentication required",
            "loginUrl": login_url,
        },
    )


def unauthorized_response(
    message: str = "Authentication required",
    settings: Optional[Settings] = None,
) -> JSONResponse:
    """Unauthorized response for API routes."""
    settings = settings or get_settings()
    return JSONResponse(
        status_code=401,
        content={
            "success": False,
            "error": "Unauthorized",
            "message": message,
            "loginUrl": settings.login_url(),
        },
    )


def forbidden_response(
    message: str = "Insufficient credits or subscription required",
    settings: Optional[Settings] = None,
) -> JSONResponse:
    """Forbidden response for insufficient credits or entitlement."""
    settings = settings or get_settings()
    return JSONResponse(
        status_code=403,
        content={
            "success": False,
            "error": "Forbidden",
            "message": message,
            "upgradeUrl": settings.upgrade_url,
        },
    )


class GuardError(Exception):
    """Raised by route guards; carries the response to send."""

    def __init__(self, response: JSONResponse):
        self.response = response
        super().__init__(f"Access denied ({response.status_code})")

    @property
    def status_code(self) -> int:
        return self.response.status_code


async def guard_error_handler(request: Request, exc: GuardError) -> JSONResponse:
    logger.info(
        "route_guard_denied",
        path=request.url.path,
        status_code=exc.status_code,
    )
    return exc.response


def register_error_handlers(app: FastAPI) -> None:
    """Install the handler that turns GuardError into its JSON response."""
    app.add_exception_handler(GuardError, guard_error_handler)
