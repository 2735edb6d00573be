"""API package: provides FastAPI dependencies and route definitions for the application."""

from .dependencies import get_alert_engine, get_authenticator, get_event_handler, get_settings  # noqa: F401
from .routes import router  # noqa: F401
