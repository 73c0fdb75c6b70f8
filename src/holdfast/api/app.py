"""ASGI entrypoint: ``uvicorn holdfast.api.app:app`` (role from APP_ROLE)."""

from holdfast.api.factory import create_app

app = create_app()
