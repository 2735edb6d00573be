"""FastAPI endpoints for the Starling sync service.

This module defines the inbound Starling webhook, the manual budget-alert trigger, the
health check, and diagnostic endpoints. Webhook processing runs as a background task after
the response is sent: Starling treats any non-2xx response as a failed delivery.
"""

import json

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from starling_sync.api.dependencies import (
    get_alert_engine,
    get_authenticator,
    get_event_handler,
    get_session,
    get_settings,
)
from starling_sync.core.settings import Settings
from starling_sync.core.utils import get_logger
from starling_sync.services.budget_alerts import BudgetAlertEngine
from starling_sync.services.session import ReconciliationSession
from starling_sync.services.webhook_auth import SIGNATURE_HEADER, WebhookAuthenticator
from starling_sync.workers.event_handler import EventHandler

router = APIRouter()
logger = get_logger("starling-sync.api")


@router.post(
    "/starling-sync-incoming-jw",
    response_class=PlainTextResponse,
    summary="Receive a Starling feed webhook",
    description=(
        "Receives a Starling feed-item webhook. The raw body is verified against the "
        f"`{SIGNATURE_HEADER}` header when a shared secret is configured.\n\n"
        "**Response:**\n"
        "- 200 OK: `ok` once the signature is verified, even if the body cannot be processed.\n"
        "- 401 Unauthorized: signature mismatch; the event is not processed."
    ),
    responses={
        200: {"description": "Acknowledged.", "content": {"text/plain": {"example": "ok"}}},
        401: {"description": "Signature mismatch.", "content": {"text/plain": {"example": "invalid signature"}}},
    },
)
async def incoming_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    authenticator: WebhookAuthenticator = Depends(get_authenticator),
    handler: EventHandler = Depends(get_event_handler),
) -> PlainTextResponse:
    """Verify, acknowledge, and queue a webhook event for processing."""
    raw = await request.body()
    authenticator.authenticate(raw, request.headers.get(SIGNATURE_HEADER))
    try:
        event = json.loads(raw)
    except ValueError:
        logger.warning("Webhook body is not valid JSON; acknowledged without processing")
        return PlainTextResponse("ok")
    logger.info("Webhook received")
    background_tasks.add_task(handler.handle, event)
    return PlainTextResponse("ok")


@router.post(
    "/starling-sync-run-budget-alerts",
    response_class=PlainTextResponse,
    summary="Run budget alerts now",
    description="Evaluates the current month's budget and sends an alert notification if needed.",
    responses={
        200: {"description": "Evaluation finished.", "content": {"text/plain": {"example": "ok"}}},
        500: {"description": "Evaluation raised.", "content": {"text/plain": {"example": "error"}}},
    },
)
async def run_budget_alerts(engine: BudgetAlertEngine = Depends(get_alert_engine)) -> PlainTextResponse:
    """Evaluate the current month's budget alerts."""
    try:
        outcome = await engine.evaluate()
    except Exception:
        logger.exception("Manual budget alert run failed")
        return PlainTextResponse("error", status_code=500)
    logger.info(f"Manual budget alerts {outcome.month}: {outcome.status}")
    return PlainTextResponse("ok")


@router.get(
    "/starling-sync-health",
    response_class=PlainTextResponse,
    summary="Health check",
    description="Returns ok. Does not check the ledger session.",
)
async def health() -> PlainTextResponse:
    """Health check endpoint."""
    return PlainTextResponse("ok")


@router.post("/starling-sync-echo", summary="Echo the raw request body")
async def echo(request: Request) -> Response:
    """Return the request body unchanged, for checking what a sender actually posts."""
    raw = await request.body()
    return Response(content=raw, media_type="application/json")


def _require_debug(settings: Settings) -> None:
    if not settings.debug_endpoints_enabled:
        raise HTTPException(404, "Not Found")


@router.get("/starling-sync-debug-actual", summary="List ledger accounts")
async def debug_actual(
    settings: Settings = Depends(get_settings),
    session: ReconciliationSession = Depends(get_session),
) -> JSONResponse:
    """Connect to the ledger and list its accounts."""
    _require_debug(settings)
    if not await session.ensure_ready():
        return JSONResponse({"ok": False, "error": "init failed"}, status_code=500)
    try:
        accounts = await session.ledger.get_accounts()
    except Exception as exc:
        logger.exception("Listing ledger accounts failed")
        session.invalidate(exc)
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)
    return JSONResponse(
        {
            "ok": True,
            "count": len(accounts),
            "accounts": [{"id": a.get("id"), "name": a.get("name")} for a in accounts],
        }
    )


@router.get("/starling-sync-debug-env", summary="Show effective settings")
async def debug_env(settings: Settings = Depends(get_settings)) -> dict:
    """Return the effective settings with secrets removed."""
    _require_debug(settings)
    return settings.redacted()
