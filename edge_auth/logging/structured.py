"""
Structured Logging
==================

JSON logging for the gateway, built on structlog.

Usage:
    from edge_auth.logging import setup_logging, RequestLoggingMiddleware

    # Setup at startup
    setup_logging(service_name="edge-auth")

    # Add middleware
    app.add_middleware(RequestLoggingMiddleware)

Every log line carries the service name, and inside a request also the
request ID and, once the session gate accepted the session, the user ID.
"""

import logging
import sys
import time
import uuid

import structlog


# =============================================================================
# Setup Functions
# =============================================================================

def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and the stdlib root logger.

    Args:
        service_name: Name of the service (e.g., "edge-auth")
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Whether to output JSON (for production)

    Returns:
        Logger bound to the service name
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=shared_processors + [
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    structlog.contextvars.bind_contextvars(service=service_name)

    logger = structlog.get_logger(service_name)
    logger.info("logging_configured", level=level.upper(), json_output=json_output)
    return logger


# =============================================================================
# Request Logging Middleware
# =============================================================================

class RequestLoggingMiddleware:
    """
    ASGI middleware for request/response logging.

    Binds a short request ID for the duration of the request and echoes it
    in the X-Request-ID response header.
    """

    def __init__(self, app, service_name: str = "edge-auth"):
        self.app = app
        self.service_name = service_name
        self.logger = structlog.get_logger("http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        req_id = headers.get(b"x-request-id", b"").decode("latin-1") or str(uuid.uuid4())[:8]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            service=self.service_name,
            request_id=req_id,
        )

        method = scope.get("method", "")
        path = scope.get("path", "")

        # Get client IP
        client = scope.get("client")
        client_ip = client[0] if client else ""
        forwarded = headers.get(b"x-forwarded-for", b"").decode("latin-1")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()

        start_time = time.time()
        self.logger.info("http_request", method=method, path=path, client_ip=client_ip)

        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                message["headers"] = list(message.get("headers", [])) + [
                    (b"x-request-id", req_id.encode("latin-1"))
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            self.logger.exception("http_request_failed", method=method, path=path)
            raise
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            level = logging.INFO if status_code < 400 else logging.WARNING if status_code < 500 else logging.ERROR
            self.logger.log(
                level,
                "http_response",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
            )
