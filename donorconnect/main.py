"""ASGI entry point: ``uvicorn donorconnect.main:app``."""

from donorconnect.api.app import create_app

app = create_app()
