"""Maps Starling feed items into the ledger's transaction import shape.

Everything here is pure: the same feed item and account always produce the same
``LedgerTransaction``. The only input that is not taken from the feed item is the
fallback date, which callers may pin with ``now``.
"""

import math
from datetime import datetime

from starling_sync.core.models import CurrencyAmount, Direction, FeedItem, LedgerTransaction
from starling_sync.core.utils import round_minor_units, utcnow

DEFAULT_PAYEE = "Starling"


def to_minor_units(amount: CurrencyAmount | float | None) -> int:
    """Extract a non-negative integer minor-unit magnitude from a plain or structured amount."""
    if isinstance(amount, CurrencyAmount):
        amount = amount.minor_units
    if amount is None or not math.isfinite(amount):
        return 0
    return abs(round_minor_units(amount))


def signed_amount(item: FeedItem) -> int:
    """Return the item's amount in minor units, negative for outgoing money."""
    magnitude = to_minor_units(item.amount)
    return -magnitude if item.direction == Direction.OUT else magnitude


def transaction_date(item: FeedItem, now: datetime | None = None) -> str:
    """Return the ``YYYY-MM-DD`` date of the item, falling back to the processing time."""
    timestamp = item.transaction_time or item.event_timestamp or (now or utcnow()).isoformat()
    return timestamp[:10]


def payee_name(item: FeedItem) -> str:
    """Return the first non-empty display name on the item."""
    for candidate in (item.counter_party_name, item.merchant_name, item.reference, item.narrative):
        if candidate:
            return candidate
    return DEFAULT_PAYEE


def normalize(item: FeedItem, ledger_account_id: str, now: datetime | None = None) -> LedgerTransaction:
    """Convert one feed item into a ledger transaction for ``ledger_account_id``."""
    return LedgerTransaction(
        account=ledger_account_id,
        date=transaction_date(item, now),
        amount=signed_amount(item),
        payee_name=payee_name(item),
        imported_payee=item.reference or "",
        notes=item.source or "",
        imported_id=item.feed_item_uid,
    )
