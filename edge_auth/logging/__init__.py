"""
Gateway Logging Module

Structured logging shared by every component of the gateway.
"""

from .structured import (
    setup_logging,
    RequestLoggingMiddleware,
)

__all__ = [
    "setup_logging",
    "RequestLoggingMiddleware",
]
