"""Application factory for the Starling sync service.

Builds every component from one immutable ``Settings`` value, wires them into a FastAPI
app, and manages startup and shutdown: the alert scheduler starts with the app, and on
shutdown the ledger session is closed within ``shutdown_timeout_seconds``.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from scalar_fastapi import get_scalar_api_reference

from starling_sync.api.routes import router
from starling_sync.core.errors import AuthenticationFailure
from starling_sync.core.settings import Settings, load_settings
from starling_sync.core.utils import ROOT_LOGGER, get_logger
from starling_sync.services.account_resolver import AccountResolver
from starling_sync.services.budget_alerts import BudgetAlertEngine
from starling_sync.services.ledger_client import HttpLedgerClient, LedgerClient
from starling_sync.services.notifier import HomeAssistantNotifier, Notifier
from starling_sync.services.session import ReconciliationSession
from starling_sync.services.webhook_auth import WebhookAuthenticator
from starling_sync.workers.event_handler import EventHandler
from starling_sync.workers.scheduler import AlertScheduler

logger = get_logger("starling-sync.app")


# --- Logging Setup ---
def setup_logging(settings: Settings) -> None:
    """Set the project log level and add a plain file handler when LOG_FILE is set."""
    root = get_logger(ROOT_LOGGER)
    root.setLevel(settings.log_level.upper())
    if settings.log_file and not any(isinstance(h, logging.FileHandler) for h in root.handlers):
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(file_handler)


@dataclass
class Services:
    """Every long-lived component of the service, built from one Settings value."""

    settings: Settings
    ledger: LedgerClient
    notifier: Notifier
    session: ReconciliationSession
    resolver: AccountResolver
    authenticator: WebhookAuthenticator
    handler: EventHandler
    alerts: BudgetAlertEngine
    scheduler: AlertScheduler

    async def aclose(self) -> None:
        """Close HTTP clients owned by the collaborators."""
        for component in (self.ledger, self.notifier):
            aclose = getattr(component, "aclose", None)
            if aclose is not None:
                await aclose()


def build_services(
    settings: Settings,
    ledger: LedgerClient | None = None,
    notifier: Notifier | None = None,
) -> Services:
    """Construct all components; ``ledger`` and ``notifier`` may be replaced (e.g. in tests)."""
    ledger = ledger or HttpLedgerClient(
        settings.ledger_gateway_url,
        api_key=settings.ledger_gateway_api_key,
        timeout=settings.ledger_timeout_seconds,
    )
    notifier = notifier or HomeAssistantNotifier(settings.ha_base_url, settings.ha_token)
    session = ReconciliationSession(
        ledger, settings.actual_server_url, settings.actual_password, settings.actual_budget_id
    )
    resolver = AccountResolver(settings.account_map)
    alerts = BudgetAlertEngine(
        session,
        notifier,
        threshold=settings.alert_threshold_pct,
        include_zero=settings.alert_include_zero,
        timezone=settings.timezone,
    )
    return Services(
        settings=settings,
        ledger=ledger,
        notifier=notifier,
        session=session,
        resolver=resolver,
        authenticator=WebhookAuthenticator(settings.starling_webhook_shared_secret),
        handler=EventHandler(session, resolver, notifier),
        alerts=alerts,
        scheduler=AlertScheduler(alerts, settings.alert_time_list, settings.monthly_summary_time, settings.timezone),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the alert scheduler; on shutdown stop it and close the ledger session."""
    services: Services = app.state.services
    settings = services.settings
    logger.info(f"Starting with {len(services.resolver)} mapped account(s), budget {settings.actual_budget_id}")
    if settings.scheduler_enabled:
        services.scheduler.start()
    try:
        yield
    finally:
        await services.scheduler.stop()
        await services.session.shutdown(settings.shutdown_timeout_seconds)
        await services.aclose()
        logger.info("Shutdown complete")


async def authentication_failure_handler(_request: Request, _exc: Exception) -> PlainTextResponse:
    """Reject unauthenticated webhooks with 401."""
    logger.warning("Signature mismatch")
    return PlainTextResponse("invalid signature", status_code=401)


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create the FastAPI app. Raises ConfigurationFailure if settings cannot be loaded."""
    if services is None:
        services = build_services(settings or load_settings())
    setup_logging(services.settings)

    app = FastAPI(
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        title="Starling Sync API",
        description="""
    Bridges Starling Bank feed webhooks into an Actual Budget ledger and sends budget alerts to Home Assistant.

    **Endpoints:**
    - `POST /starling-sync-incoming-jw`: Starling feed webhook.
    - `POST /starling-sync-run-budget-alerts`: Run budget alerts for the current month.
    - `GET /starling-sync-health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.
    """,
        version="1.0.0",
    )
    app.state.services = services
    app.add_exception_handler(AuthenticationFailure, authentication_failure_handler)
    app.include_router(router)

    @app.get("/scalar", include_in_schema=False)
    async def scalar_docs() -> HTMLResponse:
        """Return Scalar API reference."""
        return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)

    return app
