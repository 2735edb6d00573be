"""Background processing of authenticated Starling webhook events.

Runs after the webhook has been acknowledged, so nothing here raises: every path ends in
a ``HandleOutcome`` and failures are logged.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from starling_sync.core.models import FeedItem, HandleOutcome, HandleStatus
from starling_sync.core.utils import format_minor, get_logger, utcnow
from starling_sync.services.account_resolver import AccountResolver
from starling_sync.services.normalizer import normalize
from starling_sync.services.notifier import NOTIFY_GROUP, Notifier
from starling_sync.services.session import ReconciliationSession

NOTIFY_TITLE = "Actual updated from Starling"

# Envelope formats seen from the provider, tried in order.
ACCOUNT_UID_RULES: tuple[tuple[str, ...], ...] = (("content", "accountUid"), ("accountUid",))
FEED_ITEM_RULES: tuple[tuple[str, ...], ...] = (("content", "feedItem"), ("content", "feedItemEvent"), ("content",))

logger = get_logger("starling-sync.worker")


@dataclass(frozen=True)
class Envelope:
    """Account and feed item extracted from a webhook payload."""

    account_uid: str
    item: dict[str, Any]
    item_rule: str


def _lookup(event: Any, path: tuple[str, ...]) -> Any:
    value = event
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _first(event: Any, rules: tuple[tuple[str, ...], ...], kind: type) -> tuple[Any, str] | None:
    for rule in rules:
        value = _lookup(event, rule)
        if isinstance(value, kind) and value:
            return value, ".".join(rule)
    return None


def extract_envelope(event: Any) -> Envelope | None:
    """Return the account uid and feed item from a webhook payload, or None if either is missing."""
    account = _first(event, ACCOUNT_UID_RULES, str)
    item = _first(event, FEED_ITEM_RULES, dict)
    if account is None or item is None:
        return None
    return Envelope(account_uid=account[0], item=item[0], item_rule=item[1])


class EventHandler:
    """Imports one feed event into the ledger and notifies when the ledger changed."""

    def __init__(
        self,
        session: ReconciliationSession,
        resolver: AccountResolver,
        notifier: Notifier,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the handler with its collaborators."""
        self.session = session
        self.resolver = resolver
        self.notifier = notifier
        self.now = now

    async def handle(self, event: Any) -> HandleOutcome:
        """Process one webhook event. Never raises."""
        try:
            return await self._handle(event)
        except Exception as exc:
            logger.exception("Unexpected error while handling webhook event")
            return HandleOutcome(HandleStatus.REMOTE_FAILURE, detail=str(exc))

    async def _handle(self, event: Any) -> HandleOutcome:
        envelope = extract_envelope(event)
        if envelope is None:
            logger.info("Event ignored: missing accountUid or feed item")
            return HandleOutcome(HandleStatus.PAYLOAD_SHAPE_MISS, detail="missing accountUid or feed item")
        try:
            item = FeedItem.model_validate(envelope.item)
        except ValidationError as exc:
            logger.info(f"Event ignored: feed item from {envelope.item_rule} is unusable ({exc.error_count()} errors)")
            return HandleOutcome(HandleStatus.PAYLOAD_SHAPE_MISS, detail=str(exc))

        mapping = self.resolver.resolve(envelope.account_uid)
        if mapping is None:
            logger.info(f"No account mapping for {envelope.account_uid}")
            return HandleOutcome(HandleStatus.MAPPING_MISS, detail=envelope.account_uid)

        if not await self.session.ensure_ready():
            logger.warning(f"Ledger unavailable; dropping feed item {item.feed_item_uid}")
            return HandleOutcome(HandleStatus.SESSION_UNAVAILABLE)

        tx = normalize(item, mapping.ledger_account_id, self.now())
        ledger = self.session.ledger
        try:
            result = await ledger.import_transactions(mapping.ledger_account_id, [tx])
            logger.info(f"Import result for {tx.imported_id}: added={result.added} updated={result.updated}")
            await ledger.sync()
        except Exception as exc:
            logger.exception(f"Ledger import/sync failed for {tx.imported_id}")
            self.session.invalidate(exc)
            return HandleOutcome(HandleStatus.REMOTE_FAILURE, transaction=tx, detail=str(exc))

        if not result.changed:
            return HandleOutcome(HandleStatus.UNCHANGED, transaction=tx, result=result)
        notified = await self._notify(tx.date, tx.payee_name, tx.amount)
        return HandleOutcome(HandleStatus.IMPORTED, transaction=tx, result=result, notified=notified)

    async def _notify(self, date: str, payee: str, amount: int) -> bool:
        message = f"{date} {payee} {format_minor(abs(amount))}"
        try:
            return await self.notifier.notify(NOTIFY_TITLE, message, {"group": NOTIFY_GROUP, "importance": "high"})
        except Exception:
            logger.exception("Notifier raised; ignoring")
            return False
