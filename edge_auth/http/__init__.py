from .client import IdentityClient
from .exceptions import (
    IdentityServiceError,
    IdentityUnavailableError,
    IdentityTimeoutError,
    IdentityRejectedError,
    InvalidPayloadError,
)

__all__ = [
    "IdentityClient",
    "IdentityServiceError",
    "IdentityUnavailableError",
    "IdentityTimeoutError",
    "IdentityRejectedError",
    "InvalidPayloadError",
]
