"""FastAPI dependencies for DI (settings, authenticator, handler, alert engine).

Components are built once at application startup and stored on ``app.state.services``;
these helpers hand them to the routes, and tests can swap the container wholesale.
"""

from typing import TYPE_CHECKING

from fastapi import Request

from starling_sync.core.settings import Settings
from starling_sync.services.budget_alerts import BudgetAlertEngine
from starling_sync.services.session import ReconciliationSession
from starling_sync.services.webhook_auth import WebhookAuthenticator
from starling_sync.workers.event_handler import EventHandler

if TYPE_CHECKING:
    from starling_sync.main import Services


def get_services(request: Request) -> "Services":
    """Provide the application's service container."""
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    """Provide the immutable application settings."""
    return get_services(request).settings


def get_authenticator(request: Request) -> WebhookAuthenticator:
    """Provide the webhook authenticator."""
    return get_services(request).authenticator


def get_event_handler(request: Request) -> EventHandler:
    """Provide the webhook event handler."""
    return get_services(request).handler


def get_alert_engine(request: Request) -> BudgetAlertEngine:
    """Provide the budget alert engine."""
    return get_services(request).alerts


def get_session(request: Request) -> ReconciliationSession:
    """Provide the ledger reconciliation session."""
    return get_services(request).session
