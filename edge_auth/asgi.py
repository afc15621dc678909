"""ASGI entry point: ``uvicorn edge_auth.asgi:app``."""

from edge_auth.app import create_app

app = create_app()
