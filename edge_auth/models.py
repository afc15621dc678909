"""
Session Models
==============
Payload shapes exchanged with the identity provider and the browser.
"""

from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


# Reasons reported when validation never reached the identity provider
REASON_NO_COOKIE = "no_cookie"
REASON_VALIDATION_ERROR = "validation_error"


class UpstreamModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UpstreamUser(UpstreamModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None


class UpstreamEntitlement(UpstreamModel):
    entitled: bool = False
    tier: Optional[str] = None
    source: Optional[str] = None
    reason: Optional[str] = None


class UpstreamCredits(UpstreamModel):
    totalCredits: Union[int, float] = 0
    availableCredits: Union[int, float] = 0
    reservedCredits: Union[int, float] = 0


class ValidateResponse(UpstreamModel):
    """Response from the identity provider's validate endpoint."""
    authenticated: bool
    user: Optional[UpstreamUser] = None
    entitlement: Optional[UpstreamEntitlement] = None
    credits: Optional[UpstreamCredits] = None
    reason: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str) -> "ValidateResponse":
        return cls(authenticated=False, reason=reason)


@dataclass
class ApiUser:
    """User claims reconstructed from the gateway's trust headers."""
    id: str
    email: str = ""
    entitled: bool = False
    tier: str = "free"
    credits: int = 0


# Session status endpoint

class SessionUser(BaseModel):
    id: str
    email: str


class SessionEntitlement(BaseModel):
    entitled: bool
    tier: str


class SessionCredits(BaseModel):
    available: int


class SessionStatus(BaseModel):
    authenticated: bool
    user: Optional[SessionUser] = None
    entitlement: Optional[SessionEntitlement] = None
    credits: Optional[SessionCredits] = None
    loginUrl: Optional[str] = None
