"""
Application Factory
===================
Wires the session gate, request logging, CORS and session routes into a
FastAPI application.
"""

from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, get_settings
from .errors import register_error_handlers
from .http import IdentityClient
from .logging import RequestLoggingMiddleware, setup_logging
from .middleware import SessionGateMiddleware
from .routes import create_session_router

logger = structlog.get_logger(__name__)


def setup_cors(app: FastAPI, origins: List[str]) -> None:
    """Configure CORS with credentials, so the session cookie crosses origins."""
    if not origins:
        return

    if "*" in origins:
        logger.warning(
            "CORS wildcard detected! Browsers reject it for credentialed requests.",
            origins=origins,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    logger.info("CORS configured", origins_count=len(origins))


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Gateway settings (defaults to environment settings)
        transport: httpx transport for the identity client, used by tests
        configure_logging: Whether to install the structlog configuration

    Returns:
        FastAPI application with the session gate installed
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.service_name, settings.log_level, settings.log_json)

    identity_client = IdentityClient(
        settings.auth_validation_url,
        timeout=settings.validation_timeout,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "gateway_started",
            validation_url=settings.auth_validation_url,
            public_paths=settings.public_paths,
            fail_open=settings.fail_open,
        )
        yield
        await identity_client.aclose()

    app = FastAPI(title="Edge Auth Gateway", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.identity_client = identity_client

    # Innermost first: the gate runs after logging and CORS
    app.add_middleware(SessionGateMiddleware, settings=settings, client=identity_client)
    setup_cors(app, settings.cors_origins)
    app.add_middleware(RequestLoggingMiddleware, service_name=settings.service_name)

    register_error_handlers(app)
    app.include_router(create_session_router(settings))

    return app
