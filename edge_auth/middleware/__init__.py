"""
Gateway Middleware Package

Provides the session gate and request logging middleware.
"""

from .session_gate import SessionGateMiddleware, trust_headers_for

__all__ = [
    "SessionGateMiddleware",
    "trust_headers_for",
]
