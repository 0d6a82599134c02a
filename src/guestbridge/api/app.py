"""ASGI entry point (uvicorn guestbridge.api.app:app)."""

from guestbridge.api.factory import create_app

app = create_app()
