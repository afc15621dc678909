"""
Edge Auth
=========
Session-validation gateway that delegates authentication to an external
identity provider and hands its verdict to route handlers as trust headers.
"""

__version__ = "0.1.0"

# Configuration
from edge_auth.config import Settings, get_settings

# Models
from edge_auth.models import (
    ApiUser,
    SessionStatus,
    ValidateResponse,
)

# Identity provider client
from edge_auth.http import (
    IdentityClient,
    IdentityServiceError,
)

# Session helpers
from edge_auth.sessions import (
    CREDIT_COSTS,
    estimate_generation_cost,
    has_enough_credits,
    is_entitled,
    validate_session,
)

# Route guards
from edge_auth.errors import (
    GuardError,
    forbidden_response,
    unauthorized_response,
)
from edge_auth.guards import (
    get_api_user,
    require_auth,
    require_credits,
    require_entitlement,
)

# Middleware
from edge_auth.middleware import SessionGateMiddleware

# App
from edge_auth.app import create_app

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "ApiUser",
    "SessionStatus",
    "ValidateResponse",
    "IdentityClient",
    "IdentityServiceError",
    "CREDIT_COSTS",
    "estimate_generation_cost",
    "has_enough_credits",
    "is_entitled",
    "validate_session",
    "GuardError",
    "forbidden_response",
    "unauthorized_response",
    "get_api_user",
    "require_auth",
    "require_credits",
    "require_entitlement",
    "SessionGateMiddleware",
    "create_app",
]
