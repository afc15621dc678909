"""
Session Validation Helpers
==========================
Server-side helpers for code that talks to the identity provider directly
instead of relying on the gateway's trust headers.

The identity provider owns OAuth, the session cookie on the parent domain,
subscription entitlements and the credit ledger. This module only asks it
about the current session and interprets the answer.
"""

import math
from typing import Optional

import structlog

from .http import IdentityClient, IdentityRejectedError, IdentityServiceError
from .models import REASON_NO_COOKIE, REASON_VALIDATION_ERROR, ValidateResponse

logger = structlog.get_logger(__name__)


async def validate_session(
    client: IdentityClient,
    cookie_header: Optional[str],
    origin: Optional[str] = None,
) -> ValidateResponse:
    """
    Validate a session by forwarding its cookies to the identity provider.

    Never raises for provider failures; they are reported as an
    unauthenticated response with reason ``validation_error``, unless a
    401/403 body names its own reason.
    """
    if not cookie_header:
        return ValidateResponse.rejected(REASON_NO_COOKIE)

    try:
        return await client.validate(cookie_header, origin=origin)
    except IdentityServiceError as e:
        # A refusal that still carries the provider's reason keeps it
        if isinstance(e, IdentityRejectedError) and e.reason:
            logger.info("session_rejected", reason=e.reason, status_code=e.status_code)
            return ValidateResponse.rejected(e.reason)

        logger.error(
            "session_validation_failed",
            error=e.message,
            status_code=e.status_code,
            error_type=type(e).__name__,
        )
        return ValidateResponse.rejected(REASON_VALIDATION_ERROR)


def has_enough_credits(session: ValidateResponse, required_credits: float) -> bool:
    """Check if the session's user has sufficient credits for an operation."""
    if not session.authenticated:
        return False
    if session.credits is None:
        return False
    return session.credits.availableCredits >= required_credits


def is_entitled(session: ValidateResponse) -> bool:
    """Check if the session's user has an active subscription entitlement."""
    if not session.authenticated or session.entitlement is None:
        return False
    return session.entitlement.entitled


# Estimated credit costs per operation, calibrated against provider pricing
CREDIT_COSTS = {
    "SANDBOX_CREATION": 50,
    "CODE_GENERATION_BASE": 100,
    # Per 1000 tokens (approximate)
    "TOKENS_MULTIPLIER": 0.5,
}


def estimate_generation_cost(prompt_length: int) -> int:
    """
    Estimate the credit cost of a code generation request.

    Assumes ~4 characters per token and an output twice the size of the
    input.
    """
    estimated_tokens = math.ceil(prompt_length / 4)
    total_tokens = estimated_tokens * 3
    return CREDIT_COSTS["CODE_GENERATION_BASE"] + math.ceil(
        (total_tokens / 1000) * CREDIT_COSTS["TOKENS_MULTIPLIER"]
    )
