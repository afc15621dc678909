import httpx
import structlog
from typing import Optional
from pydantic import ValidationError

from ..models import ValidateResponse
from .exceptions import (
    IdentityServiceError,
    IdentityUnavailableError,
    IdentityTimeoutError,
    IdentityRejectedError,
    InvalidPayloadError,
)

logger = structlog.get_logger(__name__)


def _header_safe(result: ValidateResponse) -> bool:
    """Trust header values must survive latin-1 encoding unchanged."""
    values = [result.user.id, result.user.email or ""]
    if result.entitlement is not None:
        values.append(result.entitlement.tier or "")
    try:
        for value in values:
            value.encode("latin-1")
    except UnicodeEncodeError:
        return False
    return True


def _rejection_reason(response: httpx.Response) -> Optional[str]:
    """Reason from a refusal body shaped like ``{"authenticated": false, "reason": ...}``."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict) or body.get("authenticated") is not False:
        return None
    reason = body.get("reason")
    return reason if isinstance(reason, str) and reason else None


class IdentityClient:
    """
    Async client for the identity provider's session validation endpoint.

    Features:
    - One pooled httpx.AsyncClient per process.
    - Cookie forwarding, so the provider sees the browser's session.
    - Standardized exception mapping.

    One attempt per call; callers decide how a failure degrades.
    """

    def __init__(
        self,
        validation_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.validation_url = validation_url
        self.timeout = timeout

        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self):
        """Close the underlying HTTP client."""
        await self.client.aclose()

    def _map_exception(self, exc: Exception) -> IdentityServiceError:
        """Map httpx exceptions to identity service exceptions."""
        if isinstance(exc, httpx.TimeoutException):
            return IdentityTimeoutError("Request timed out")
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            text = exc.response.text
            if status in (401, 403):
                return IdentityRejectedError(
                    "Validation refused",
                    status_code=status,
                    details=text,
                    reason=_rejection_reason(exc.response),
                )

            if status >= 500:
                return IdentityUnavailableError("Server error", status_code=status, details=text)

            return IdentityServiceError(f"HTTP {status} Error", status_code=status, details=text)
        if isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
            return IdentityUnavailableError(f"Failed to connect: {str(exc)}")

        return IdentityServiceError(f"Unexpected error: {str(exc)}")

    async def validate(self, cookie_header: str, origin: Optional[str] = None) -> ValidateResponse:
        """
        Ask the identity provider whether the forwarded cookies hold a live session.

        Args:
            cookie_header: Raw Cookie header from the incoming request
            origin: Origin to present to the provider

        Returns:
            Parsed ValidateResponse

        Raises:
            IdentityServiceError: on transport failure, non-2xx status or bad payload
        """
        headers = {"Cookie": cookie_header}
        if origin:
            headers["Origin"] = origin

        try:
            response = await self.client.get(self.validation_url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._map_exception(e) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidPayloadError(
                "Response is not JSON", status_code=response.status_code
            ) from e

        try:
            result = ValidateResponse.model_validate(payload)
        except ValidationError as e:
            raise InvalidPayloadError(
                "Unexpected response shape", status_code=response.status_code, details=str(e)
            ) from e

        if result.authenticated and result.user is None:
            raise InvalidPayloadError(
                "Authenticated response without user", status_code=response.status_code
            )

        if result.authenticated and not _header_safe(result):
            raise InvalidPayloadError(
                "User fields are not representable as headers",
                status_code=response.status_code,
            )

        logger.debug(
            "identity_validation_completed",
            authenticated=result.authenticated,
            reason=result.reason,
        )
        return result
