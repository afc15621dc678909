"""
Gateway Configuration
=====================
Environment-driven settings for the session gate and the identity provider.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional
from urllib.parse import urlencode, urljoin


DEFAULT_PUBLIC_PATHS = [
    "/api/health",
    "/favicon.ico",
    "/_next",
    "/api/auth",  # Reserved for future local auth endpoints
]


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Configuration for the session gate."""
    auth_validation_url: str = "https://chat.masonjames.com/api/auth/validate"
    chat_base_url: str = "https://chat.masonjames.com"
    app_base_url: str = "https://lovable.masonjames.com"
    public_paths: List[str] = field(default_factory=lambda: list(DEFAULT_PUBLIC_PATHS))
    validation_timeout: float = 10.0
    fail_open: bool = False
    service_name: str = "edge-auth"
    log_level: str = "INFO"
    log_json: bool = True
    cors_origins: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            auth_validation_url=os.environ.get(
                "AUTH_VALIDATION_URL", "https://chat.masonjames.com/api/auth/validate"
            ),
            chat_base_url=os.environ.get("CHAT_BASE_URL", "https://chat.masonjames.com"),
            app_base_url=os.environ.get("APP_BASE_URL", "https://lovable.masonjames.com"),
            public_paths=_split_csv(
                os.environ.get("AUTH_PUBLIC_PATHS", ",".join(DEFAULT_PUBLIC_PATHS))
            ),
            validation_timeout=float(os.environ.get("AUTH_VALIDATION_TIMEOUT", "10")),
            fail_open=_env_flag("AUTH_FAIL_OPEN"),
            service_name=os.environ.get("SERVICE_NAME", "edge-auth"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_json=_env_flag("LOG_JSON", default=True),
            cors_origins=_split_csv(os.environ.get("CORS_ORIGINS", "")),
        )

    def login_url(self, return_to: Optional[str] = None) -> str:
        """
        Login page on the identity provider, optionally with a return URL.

        The page lives at the provider's host root; any path on
        ``chat_base_url`` is dropped.
        """
        url = urljoin(self.chat_base_url, "/login")
        if return_to:
            url = f"{url}?{urlencode({'returnTo': return_to})}"
        return url

    @property
    def upgrade_url(self) -> str:
        return f"{self.chat_base_url.rstrip('/')}/#/portal"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read from the environment once."""
    return Settings.from_env()
