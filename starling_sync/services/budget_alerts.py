"""Budget health checks: per-category alerts and the monthly totals summary.

Sign convention: the ledger reports a category's ``spent`` as a negative number for money
going out (Actual's convention). Rows are normalized once in ``CategoryRow.from_entry`` and
all arithmetic below works on those rows, so ``available = budgeted + spent`` and usage is
measured on the outflow magnitude.
"""

from collections.abc import Iterable
from datetime import tzinfo
from typing import Any

from starling_sync.core.errors import LedgerError
from starling_sync.core.models import AlertBuckets, AlertOutcome, AlertStatus, CategoryRow
from starling_sync.core.utils import current_month, format_minor, get_logger
from starling_sync.services.notifier import NOTIFY_GROUP, Notifier
from starling_sync.services.session import ReconciliationSession

logger = get_logger("starling-sync.alerts")


def month_entries(snapshot: dict[str, Any]) -> list[dict[str, Any]]:
    """Return the month's category entries, flattening category groups if present."""
    if snapshot.get("categories"):
        entries = list(snapshot["categories"])
    else:
        entries = [cat for group in snapshot.get("categoryGroups") or [] for cat in group.get("categories") or []]
    return [entry for entry in entries if not entry.get("is_income")]


def build_rows(categories: Iterable[dict[str, Any]], snapshot: dict[str, Any]) -> list[CategoryRow]:
    """Join categories with their month entries; categories with no entry had no activity."""
    by_id = {entry.get("id"): entry for entry in month_entries(snapshot)}
    return [
        CategoryRow.from_entry(cat.get("name", ""), by_id.get(cat.get("id")))
        for cat in categories
        if not cat.get("is_income")
    ]


def classify(rows: Iterable[CategoryRow], threshold: float, include_zero: bool = False) -> AlertBuckets:
    """Sort rows into overspent, near-limit and (optionally) unbudgeted-spend buckets.

    Spending in a category with no budget is only ever reported as unbudgeted spend,
    never as overspent.
    """
    rows = list(rows)
    overspent = tuple(r for r in rows if r.budgeted > 0 and r.available < 0)
    near_limit = tuple(
        r for r in rows if r.available >= 0 and r.ratio != float("inf") and r.ratio >= threshold
    )
    unbudgeted = tuple(r for r in rows if r.budgeted == 0 and r.outflow > 0) if include_zero else ()
    return AlertBuckets(overspent=overspent, near_limit=near_limit, unbudgeted=unbudgeted)


def _against_budget(row: CategoryRow) -> str:
    return f"{row.name} {format_minor(row.outflow)}/{format_minor(row.budgeted)}"


def compose_alert_message(buckets: AlertBuckets) -> str:
    """Build the single pipe-separated alert message for a month."""
    parts = []
    if buckets.overspent:
        parts.append("Overspent: " + ", ".join(_against_budget(r) for r in buckets.overspent))
    if buckets.near_limit:
        parts.append("Near limit: " + ", ".join(_against_budget(r) for r in buckets.near_limit))
    if buckets.unbudgeted:
        parts.append(
            "Unbudgeted spend: " + ", ".join(f"{r.name} {format_minor(r.outflow)}" for r in buckets.unbudgeted)
        )
    return " | ".join(parts)


def compose_summary_message(entries: Iterable[dict[str, Any]]) -> str:
    """Build the monthly totals message from month entries."""
    rows = [CategoryRow.from_entry("", entry) for entry in entries]
    budgeted = sum(r.budgeted for r in rows)
    spent = sum(r.spent for r in rows)
    available = budgeted + spent
    return (
        f"Budgeted {format_minor(budgeted)}, spent {format_minor(-spent)}, available {format_minor(available)}"
    )


class BudgetAlertEngine:
    """Fetches a month from the ledger and notifies about categories that need attention."""

    def __init__(
        self,
        session: ReconciliationSession,
        notifier: Notifier,
        threshold: float,
        include_zero: bool,
        timezone: tzinfo,
    ) -> None:
        """Initialize the engine with its collaborators and alert settings."""
        self.session = session
        self.notifier = notifier
        self.threshold = threshold
        self.include_zero = include_zero
        self.timezone = timezone

    def current_month(self) -> str:
        """Return the current ``YYYY-MM`` in the configured time zone."""
        return current_month(self.timezone)

    async def evaluate(self, month: str | None = None) -> AlertOutcome:
        """Evaluate category budgets for ``month`` and send one notification if any need attention.

        Ledger errors propagate to the caller.
        """
        month = month or self.current_month()
        if not await self.session.ensure_ready():
            return AlertOutcome(AlertStatus.SESSION_UNAVAILABLE, month)
        ledger = self.session.ledger
        try:
            categories = await ledger.get_categories()
            snapshot = await ledger.get_budget_month(month)
        except LedgerError as exc:
            self.session.invalidate(exc)
            raise
        if not snapshot:
            logger.info(f"No budget month {month}; skipping alerts")
            return AlertOutcome(AlertStatus.MONTH_MISSING, month)

        buckets = classify(build_rows(categories, snapshot), self.threshold, self.include_zero)
        if not buckets:
            logger.info(f"Budget alerts {month}: nothing to report")
            return AlertOutcome(AlertStatus.NOTHING_TO_REPORT, month, buckets=buckets)

        title = f"Budget alerts {month}"
        message = compose_alert_message(buckets)
        logger.info(f"{title}: {message}")
        notified = await self.notifier.notify(title, message, {"group": NOTIFY_GROUP})
        return AlertOutcome(AlertStatus.SENT, month, title=title, message=message, buckets=buckets, notified=notified)

    async def monthly_summary(self, month: str | None = None) -> AlertOutcome:
        """Send the totals for ``month``. Callers decide when a month's summary is due."""
        month = month or self.current_month()
        if not await self.session.ensure_ready():
            return AlertOutcome(AlertStatus.SESSION_UNAVAILABLE, month)
        try:
            snapshot = await self.session.ledger.get_budget_month(month)
        except LedgerError as exc:
            self.session.invalidate(exc)
            raise
        if not snapshot:
            logger.info(f"No budget month {month}; skipping summary")
            return AlertOutcome(AlertStatus.MONTH_MISSING, month)

        title = f"Monthly budget {month}"
        message = compose_summary_message(month_entries(snapshot))
        logger.info(f"{title}: {message}")
        notified = await self.notifier.notify(title, message, {"group": NOTIFY_GROUP})
        return AlertOutcome(AlertStatus.SENT, month, title=title, message=message, notified=notified)
