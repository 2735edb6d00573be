"""Test doubles: an in-memory ledger, a recording notifier, and a settings builder."""

import asyncio
from typing import Any

from starling_sync.core.errors import LedgerError
from starling_sync.core.models import ImportResult, LedgerTransaction
from starling_sync.core.settings import Settings

PROVIDER_ACCOUNT = "starling-acc-1"
LEDGER_ACCOUNT = "actual-acc-1"
WEBHOOK_SECRET = "shh-its-a-secret"


class FakeLedger:
    """In-memory ledger that deduplicates imports on ``imported_id``."""

    def __init__(
        self,
        categories: list[dict[str, Any]] | None = None,
        months: dict[str, dict[str, Any]] | None = None,
        accounts: list[dict[str, Any]] | None = None,
    ) -> None:
        self.categories = categories or []
        self.months = months or {}
        self.accounts = accounts or []
        self.calls: list[str] = []
        self.transactions: dict[str, LedgerTransaction] = {}
        self.fail_connect = 0
        self.fail_load = 0
        self.fail_import = False
        self.fail_fetch = False
        self.session_expired = False
        self.init_delay = 0.0
        self.shutdown_delay = 0.0

    def _check_session(self, path: str) -> None:
        if self.session_expired:
            msg = "session expired"
            raise LedgerError(msg, status_code=401, path=path)

    async def connect(self, server_url: str, password: str) -> None:
        self.calls.append("connect")
        await asyncio.sleep(self.init_delay)
        if self.fail_connect:
            self.fail_connect -= 1
            msg = "connection refused"
            raise LedgerError(msg)
        self.session_expired = False

    async def load_budget(self, budget_id: str) -> None:
        self.calls.append("load_budget")
        await asyncio.sleep(self.init_delay)
        if self.fail_load:
            self.fail_load -= 1
            msg = "budget download failed"
            raise LedgerError(msg)

    async def import_transactions(self, account_id: str, transactions: list[LedgerTransaction]) -> ImportResult:
        self.calls.append("import")
        self._check_session(f"/v1/budgets/budget-1/accounts/{account_id}/transactions/import")
        if self.fail_import:
            msg = "import rejected"
            raise LedgerError(msg, status_code=500)
        added, updated = [], []
        for tx in transactions:
            existing = self.transactions.get(tx.imported_id)
            if existing is None:
                added.append(tx.imported_id)
            elif existing != tx:
                updated.append(tx.imported_id)
            self.transactions[tx.imported_id] = tx
        return ImportResult(added=added, updated=updated)

    async def sync(self) -> None:
        self.calls.append("sync")

    async def get_categories(self) -> list[dict[str, Any]]:
        self.calls.append("get_categories")
        self._check_session("/v1/budgets/budget-1/categories")
        if self.fail_fetch:
            msg = "categories unavailable"
            raise LedgerError(msg)
        return self.categories

    async def get_budget_month(self, month: str) -> dict[str, Any] | None:
        self.calls.append(f"get_budget_month:{month}")
        return self.months.get(month)

    async def get_accounts(self) -> list[dict[str, Any]]:
        self.calls.append("get_accounts")
        return self.accounts

    async def shutdown(self) -> None:
        self.calls.append("shutdown")
        await asyncio.sleep(self.shutdown_delay)


class FakeNotifier:
    """Records notifications instead of sending them."""

    def __init__(self, *, deliver: bool = True, explode: bool = False) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self.deliver = deliver
        self.explode = explode

    async def notify(self, title: str, message: str, data: dict[str, Any] | None = None) -> bool:
        if self.explode:
            msg = "notifier blew up"
            raise RuntimeError(msg)
        self.sent.append((title, message, data or {}))
        return self.deliver


def make_settings(**overrides: Any) -> Settings:
    """Build settings for tests without reading a .env file."""
    values: dict[str, Any] = {
        "actual_server_url": "http://actual.test",
        "actual_password": "ledger-password",
        "actual_budget_id": "budget-1",
        "account_map": {PROVIDER_ACCOUNT: {"ledgerAccountId": LEDGER_ACCOUNT, "currency": "GBP"}},
        "scheduler_enabled": False,
        "_env_file": None,
    }
    values.update(overrides)
    return Settings(**values)
