"""Tests for budget alert classification, messages, and the monthly summary."""

import asyncio
from zoneinfo import ZoneInfo

import pytest

from starling_sync.core.errors import LedgerError
from starling_sync.core.models import AlertStatus, CategoryRow
from starling_sync.services.budget_alerts import (
    BudgetAlertEngine,
    build_rows,
    classify,
    compose_alert_message,
    compose_summary_message,
    month_entries,
)
from starling_sync.services.session import ReconciliationSession
from tests.helpers.fakes import FakeLedger, FakeNotifier

MONTH = "2026-10"
CATEGORIES = [
    {"id": "groceries", "name": "Groceries"},
    {"id": "eating-out", "name": "Eating out"},
    {"id": "gifts", "name": "Gifts"},
    {"id": "travel", "name": "Travel"},
    {"id": "salary", "name": "Salary", "is_income": True},
]
SNAPSHOT = {
    "month": MONTH,
    "categories": [
        {"id": "groceries", "budgeted": 10000, "spent": -9500},
        {"id": "eating-out", "budgeted": 10000, "spent": -10500},
        {"id": "gifts", "budgeted": 0, "spent": -500},
        {"id": "salary", "budgeted": 0, "spent": 250000, "is_income": True},
    ],
}


def _names(rows: tuple[CategoryRow, ...]) -> list[str]:
    return [row.name for row in rows]


def _engine(ledger: FakeLedger, notifier: FakeNotifier, *, include_zero: bool = False) -> BudgetAlertEngine:
    session = ReconciliationSession(ledger, "http://actual.test", "pw", "budget-1")
    return BudgetAlertEngine(session, notifier, threshold=0.9, include_zero=include_zero, timezone=ZoneInfo("Europe/London"))


@pytest.mark.parametrize(
    ("budgeted", "spent", "available", "ratio"),
    [
        (10000, -9500, 500, 0.95),
        (10000, -10500, -500, 1.05),
        (0, -500, -500, float("inf")),
        (0, 0, 0, 0.0),
        (5000, 1000, 6000, 0.0),
    ],
)
def test_category_row_arithmetic(budgeted: int, spent: int, available: int, ratio: float) -> None:
    """Available is budgeted plus (negative) spent; ratio uses the outflow magnitude."""
    row = CategoryRow("x", budgeted, spent)
    if (row.available, row.ratio) != (available, ratio):
        msg = f"Expected ({available}, {ratio}), got ({row.available}, {row.ratio})"
        raise AssertionError(msg)


def test_category_without_month_entry_has_no_activity() -> None:
    """A category missing from the month snapshot counts as zero budgeted and spent."""
    row = CategoryRow.from_entry("Travel", None)
    if (row.budgeted, row.spent, row.ratio) != (0, 0, 0.0):
        msg = f"Unexpected row {row}"
        raise AssertionError(msg)


def test_classify_buckets_without_zero_budget() -> None:
    """95% used is near limit, 105% is overspent, and zero-budget spend is ignored by default."""
    buckets = classify(build_rows(CATEGORIES, SNAPSHOT), threshold=0.9)
    if _names(buckets.near_limit) != ["Groceries"] or _names(buckets.overspent) != ["Eating out"]:
        msg = f"Unexpected buckets {buckets}"
        raise AssertionError(msg)
    if buckets.unbudgeted:
        msg = f"Expected no unbudgeted bucket, got {buckets.unbudgeted}"
        raise AssertionError(msg)


def test_classify_includes_zero_budget_when_enabled() -> None:
    """Zero-budget spend is reported only in its own bucket when enabled."""
    buckets = classify(build_rows(CATEGORIES, SNAPSHOT), threshold=0.9, include_zero=True)
    if _names(buckets.unbudgeted) != ["Gifts"]:
        msg = f"Expected Gifts as unbudgeted, got {buckets.unbudgeted}"
        raise AssertionError(msg)
    if "Gifts" in _names(buckets.overspent) + _names(buckets.near_limit):
        msg = "Zero-budget category leaked into another bucket"
        raise AssertionError(msg)


def test_income_categories_are_skipped() -> None:
    """Income categories never appear as rows."""
    rows = build_rows(CATEGORIES, SNAPSHOT)
    if "Salary" in [row.name for row in rows] or len(rows) != 4:
        msg = f"Unexpected rows {rows}"
        raise AssertionError(msg)


def test_grouped_month_snapshot_is_flattened() -> None:
    """Month snapshots grouped by category group are flattened."""
    grouped = {"categoryGroups": [{"categories": SNAPSHOT["categories"][:2]}, {"categories": SNAPSHOT["categories"][2:]}]}
    if [entry["id"] for entry in month_entries(grouped)] != ["groceries", "eating-out", "gifts"]:
        msg = f"Unexpected entries {month_entries(grouped)}"
        raise AssertionError(msg)


def test_alert_message_format() -> None:
    """One pipe-separated message lists each bucket's categories."""
    buckets = classify(build_rows(CATEGORIES, SNAPSHOT), threshold=0.9, include_zero=True)
    expected = (
        "Overspent: Eating out £105.00/£100.00 | Near limit: Groceries £95.00/£100.00 | Unbudgeted spend: Gifts £5.00"
    )
    if compose_alert_message(buckets) != expected:
        msg = f"Expected {expected!r}, got {compose_alert_message(buckets)!r}"
        raise AssertionError(msg)


def test_evaluate_sends_one_notification() -> None:
    """A month with several alerting categories produces exactly one notification."""
    ledger = FakeLedger(categories=CATEGORIES, months={MONTH: SNAPSHOT})
    notifier = FakeNotifier()
    outcome = asyncio.run(_engine(ledger, notifier).evaluate(MONTH))
    if outcome.status is not AlertStatus.SENT or len(notifier.sent) != 1:
        msg = f"Expected one notification, got {outcome} / {notifier.sent}"
        raise AssertionError(msg)
    title, message, data = notifier.sent[0]
    if title != "Budget alerts 2026-10" or data != {"group": "actual_budget"} or message != outcome.message:
        msg = f"Unexpected notification {notifier.sent[0]}"
        raise AssertionError(msg)


def test_evaluate_nothing_to_report() -> None:
    """No notification is sent when every category is comfortably within budget."""
    snapshot = {"categories": [{"id": "groceries", "budgeted": 10000, "spent": -1000}]}
    ledger = FakeLedger(categories=CATEGORIES[:1], months={MONTH: snapshot})
    notifier = FakeNotifier()
    outcome = asyncio.run(_engine(ledger, notifier).evaluate(MONTH))
    if outcome.status is not AlertStatus.NOTHING_TO_REPORT or notifier.sent:
        msg = f"Expected nothing to report, got {outcome} / {notifier.sent}"
        raise AssertionError(msg)


def test_evaluate_missing_month() -> None:
    """A month the ledger has not created yet is skipped quietly."""
    ledger = FakeLedger(categories=CATEGORIES)
    notifier = FakeNotifier()
    outcome = asyncio.run(_engine(ledger, notifier).evaluate("2027-01"))
    if outcome.status is not AlertStatus.MONTH_MISSING or notifier.sent:
        msg = f"Expected month missing, got {outcome}"
        raise AssertionError(msg)


def test_evaluate_session_unavailable() -> None:
    """If the ledger cannot be reached, nothing is fetched."""
    ledger = FakeLedger(categories=CATEGORIES, months={MONTH: SNAPSHOT})
    ledger.fail_connect = 1
    outcome = asyncio.run(_engine(ledger, FakeNotifier()).evaluate(MONTH))
    if outcome.status is not AlertStatus.SESSION_UNAVAILABLE or "get_categories" in ledger.calls:
        msg = f"Expected session unavailable, got {outcome} / {ledger.calls}"
        raise AssertionError(msg)


def test_evaluate_propagates_ledger_errors() -> None:
    """Fetch errors reach the caller so the manual trigger can report them."""
    ledger = FakeLedger(categories=CATEGORIES, months={MONTH: SNAPSHOT})
    ledger.fail_fetch = True
    with pytest.raises(Exception, match="categories unavailable"):
        asyncio.run(_engine(ledger, FakeNotifier()).evaluate(MONTH))


def test_summary_message_totals() -> None:
    """Totals are budgeted 7000, spent -5000, available 2000."""
    entries = [{"budgeted": 5000, "spent": -3000}, {"budgeted": 2000, "spent": -2000}]
    expected = "Budgeted £70.00, spent £50.00, available £20.00"
    if compose_summary_message(entries) != expected:
        msg = f"Expected {expected!r}, got {compose_summary_message(entries)!r}"
        raise AssertionError(msg)


def test_summary_shows_negative_available() -> None:
    """An overspent month shows a negative available amount."""
    entries = [{"budgeted": 1000, "spent": -1500}]
    if compose_summary_message(entries) != "Budgeted £10.00, spent £15.00, available -£5.00":
        msg = f"Unexpected summary {compose_summary_message(entries)!r}"
        raise AssertionError(msg)


def test_monthly_summary_notifies() -> None:
    """The monthly summary sends a single totals notification for the month."""
    snapshot = {"categories": [{"id": "a", "budgeted": 5000, "spent": -3000}, {"id": "b", "budgeted": 2000, "spent": -2000}]}
    ledger = FakeLedger(months={MONTH: snapshot})
    notifier = FakeNotifier()
    outcome = asyncio.run(_engine(ledger, notifier).monthly_summary(MONTH))
    expected = ("Monthly budget 2026-10", "Budgeted £70.00, spent £50.00, available £20.00", {"group": "actual_budget"})
    if outcome.status is not AlertStatus.SENT or notifier.sent != [expected]:
        msg = f"Expected {expected}, got {notifier.sent}"
        raise AssertionError(msg)


def test_lost_session_during_evaluate_reconnects_next_run() -> None:
    """A fetch rejected for a lost gateway session propagates, and the next run reconnects."""
    ledger = FakeLedger(categories=CATEGORIES, months={MONTH: SNAPSHOT})
    notifier = FakeNotifier()
    engine = _engine(ledger, notifier)

    async def scenario() -> AlertStatus:
        await engine.session.ensure_ready()
        ledger.session_expired = True
        with pytest.raises(LedgerError):
            await engine.evaluate(MONTH)
        return (await engine.evaluate(MONTH)).status

    status = asyncio.run(scenario())
    if status is not AlertStatus.SENT or ledger.calls.count("connect") != 2:
        msg = f"Expected a reconnect and a sent alert, got {status} / {ledger.calls}"
        raise AssertionError(msg)


def test_month_entry_amounts_round_half_up() -> None:
    """Fractional ledger amounts round half away from zero, like transaction amounts."""
    row = CategoryRow.from_entry("Odd", {"budgeted": 12.5, "spent": -0.5})
    if (row.budgeted, row.spent) != (13, -1):
        msg = f"Expected (13, -1), got {(row.budgeted, row.spent)}"
        raise AssertionError(msg)
