"""
Client-Side Presentation
========================
Session state as a browser-side widget sees it, and the markup for the
header badge: a sign-in link or the user's email with their credit balance.
"""

from dataclasses import dataclass, replace
from html import escape
from typing import Optional

import httpx
import structlog

from .models import SessionCredits, SessionEntitlement, SessionUser

logger = structlog.get_logger(__name__)

SESSION_PATH = "/api/auth/session"


@dataclass(frozen=True)
class AuthState:
    authenticated: bool = False
    user: Optional[SessionUser] = None
    entitlement: Optional[SessionEntitlement] = None
    credits: Optional[SessionCredits] = None
    loading: bool = True
    login_url: str = ""


INITIAL_STATE = AuthState()


def auth_state_from_payload(data: dict) -> AuthState:
    """Translate a session status payload into widget state."""
    if not isinstance(data, dict):
        raise ValueError(f"Session payload is not an object: {type(data).__name__}")

    if data.get("authenticated"):
        user = data.get("user")
        entitlement = data.get("entitlement")
        credits = data.get("credits")
        return AuthState(
            authenticated=True,
            user=SessionUser.model_validate(user) if user else None,
            entitlement=SessionEntitlement.model_validate(entitlement) if entitlement else None,
            credits=SessionCredits.model_validate(credits) if credits else None,
            loading=False,
            login_url="",
        )

    return AuthState(loading=False, login_url=data.get("loginUrl") or "")


async def fetch_auth_state(
    client: httpx.AsyncClient,
    previous: AuthState = INITIAL_STATE,
) -> AuthState:
    """
    Load the session from the gateway.

    On any failure the previous state is kept, with loading cleared.
    """
    try:
        response = await client.get(SESSION_PATH)
        return auth_state_from_payload(response.json())
    except (httpx.HTTPError, ValueError) as e:
        logger.error("session_check_failed", error=str(e))
        return replace(previous, loading=False)


def render_user_info(state: AuthState) -> str:
    """Render the header badge for the given state."""
    if state.loading:
        return (
            '<div class="flex items-center gap-2 text-sm text-gray-400">'
            '<div class="h-4 w-4 animate-spin rounded-full border-2 '
            'border-gray-500 border-t-transparent"></div>'
            "</div>"
        )

    if not state.authenticated:
        return (
            f'<a href="{escape(state.login_url)}" '
            'class="text-sm text-blue-400 hover:text-blue-300 transition-colors">'
            "Sign in</a>"
        )

    email = escape(state.user.email) if state.user else ""
    parts = [
        '<div class="flex items-center gap-3 text-sm">',
        f'<span class="text-gray-400">{email}</span>',
    ]
    if state.credits is not None:
        parts.append(
            '<span class="px-2 py-0.5 rounded bg-gray-700 text-gray-300">'
            f"{state.credits.available} credits</span>"
        )
    parts.append("</div>")
    return "".join(parts)
