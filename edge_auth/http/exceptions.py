from typing import Optional, Any


class IdentityServiceError(Exception):
    """Base exception for all identity provider communication errors."""
    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(f"[identity] {message} (Status: {status_code})")


class IdentityUnavailableError(IdentityServiceError):
    """Raised when the identity provider is unreachable or failing (5xx)."""
    pass


class IdentityTimeoutError(IdentityUnavailableError):
    """Raised specifically on timeouts."""
    pass


class IdentityRejectedError(IdentityServiceError):
    """Raised when the identity provider refuses the validation call (401/403)."""
    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None,
                 reason: Optional[str] = None):
        super().__init__(message, status_code=status_code, details=details)
        self.reason = reason


class InvalidPayloadError(IdentityServiceError):
    """Raised when the validate response is not the expected JSON shape."""
    pass
