"""Client for the remote ledger (Actual Budget) behind an HTTP ledger gateway.

The gateway wraps the Actual API and owns the local budget cache. This module only
speaks its JSON contract; ``LedgerClient`` is the interface the rest of the service
depends on, so tests can substitute an in-memory ledger.
"""

from typing import Any, Protocol

import httpx

from starling_sync.core.errors import LedgerError
from starling_sync.core.models import ImportResult, LedgerTransaction
from starling_sync.core.utils import get_logger

HTTP_NOT_FOUND = 404
HTTP_ERROR_MIN = 400

logger = get_logger("starling-sync.ledger")


class LedgerClient(Protocol):
    """Operations the service consumes from the remote ledger."""

    async def connect(self, server_url: str, password: str) -> None:
        """Connect and authenticate to the ledger server."""

    async def load_budget(self, budget_id: str) -> None:
        """Load (download or reuse the cached copy of) a budget."""

    async def import_transactions(self, account_id: str, transactions: list[LedgerTransaction]) -> ImportResult:
        """Import transactions; re-importing an ``imported_id`` must not create a duplicate."""

    async def sync(self) -> None:
        """Persist and sync local changes to the ledger server."""

    async def get_categories(self) -> list[dict[str, Any]]:
        """Return all budget categories."""

    async def get_budget_month(self, month: str) -> dict[str, Any] | None:
        """Return the budget snapshot for ``YYYY-MM``, or None if it does not exist."""

    async def get_accounts(self) -> list[dict[str, Any]]:
        """Return all ledger accounts."""

    async def shutdown(self) -> None:
        """Close the ledger session."""


class HttpLedgerClient:
    """LedgerClient implementation over the ledger gateway's HTTP API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client; pass ``client`` to supply a preconfigured httpx client."""
        headers = {"x-api-key": api_key} if api_key else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)
        self.budget_id: str | None = None

    async def _request(self, method: str, path: str, payload: Any = None, *, allow_missing: bool = False) -> Any:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.HTTPError as exc:
            msg = f"Ledger gateway {method} {path} failed: {exc}"
            raise LedgerError(msg) from exc
        if allow_missing and response.status_code == HTTP_NOT_FOUND:
            return None
        if response.status_code >= HTTP_ERROR_MIN:
            msg = f"Ledger gateway {method} {path} returned {response.status_code}: {response.text[:200]}"
            raise LedgerError(msg, status_code=response.status_code, path=path)
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as exc:
            msg = f"Ledger gateway {method} {path} returned invalid JSON"
            raise LedgerError(msg, status_code=response.status_code, path=path) from exc
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def _budget_path(self, suffix: str) -> str:
        if not self.budget_id:
            msg = "No budget loaded"
            raise LedgerError(msg)
        return f"/v1/budgets/{self.budget_id}{suffix}"

    async def connect(self, server_url: str, password: str) -> None:
        """Open a gateway session against the Actual server."""
        await self._request("POST", "/v1/session", {"serverURL": server_url, "password": password})
        logger.info(f"Connected to ledger server {server_url}")

    async def load_budget(self, budget_id: str) -> None:
        """Load the budget into the gateway session."""
        await self._request("POST", f"/v1/budgets/{budget_id}/load")
        self.budget_id = budget_id
        logger.info(f"Loaded budget {budget_id}")

    async def import_transactions(self, account_id: str, transactions: list[LedgerTransaction]) -> ImportResult:
        """Import transactions into ``account_id``."""
        body = await self._request(
            "POST",
            self._budget_path(f"/accounts/{account_id}/transactions/import"),
            {"transactions": [tx.model_dump() for tx in transactions]},
        )
        return ImportResult.model_validate(body or {})

    async def sync(self) -> None:
        """Flush local changes to the Actual server."""
        await self._request("POST", self._budget_path("/sync"))

    async def get_categories(self) -> list[dict[str, Any]]:
        """Return all categories."""
        return await self._request("GET", self._budget_path("/categories")) or []

    async def get_budget_month(self, month: str) -> dict[str, Any] | None:
        """Return the month snapshot, or None when the month has not been created yet."""
        return await self._request("GET", self._budget_path(f"/months/{month}"), allow_missing=True)

    async def get_accounts(self) -> list[dict[str, Any]]:
        """Return all accounts."""
        return await self._request("GET", self._budget_path("/accounts")) or []

    async def shutdown(self) -> None:
        """Close the gateway session."""
        await self._request("DELETE", "/v1/session")
        self.budget_id = None

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
