"""Pydantic models and derived value types for the Starling sync service.

``FeedItem`` is the provider's read-only transaction shape, ``LedgerTransaction`` is the
shape the ledger imports, and ``CategoryRow`` is the normalized per-category view used by
the budget alert engine. The outcome types are returned by the event handler and alert
engine so callers can assert on what happened without reading logs.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from starling_sync.core.utils import round_minor_units


class Direction(StrEnum):
    """Money direction reported by the provider."""

    IN = "IN"
    OUT = "OUT"


class CurrencyAmount(BaseModel):
    """Structured provider amount: ``{"currency": "GBP", "minorUnits": 1234}``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    minor_units: float | None = Field(default=None, alias="minorUnits")
    currency: str | None = None


class FeedItem(BaseModel):
    """A single transaction event from the provider's real-time feed."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    feed_item_uid: str = Field(alias="feedItemUid", min_length=1)
    amount: CurrencyAmount | float | None = None
    direction: Direction | None = None
    transaction_time: str | None = Field(default=None, alias="transactionTime")
    event_timestamp: str | None = Field(default=None, alias="eventTimestamp")
    counter_party_name: str | None = Field(default=None, alias="counterPartyName")
    merchant_name: str | None = Field(default=None, alias="merchantName")
    reference: str | None = None
    narrative: str | None = None
    source: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _drop_unusable_amount(cls, value: Any) -> Any:
        """Treat any amount that is neither a number nor a mapping as missing."""
        if isinstance(value, bool):
            return None
        if isinstance(value, int | float | dict | CurrencyAmount):
            return value
        return None


class AccountMapping(BaseModel):
    """Ledger account a provider account syncs into."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    ledger_account_id: str = Field(
        validation_alias=AliasChoices("ledgerAccountId", "actualAccountId", "ledger_account_id"),
        min_length=1,
    )
    currency: str = "GBP"


class LedgerTransaction(BaseModel):
    """Transaction in the ledger's import shape. ``imported_id`` is the idempotency key."""

    model_config = ConfigDict(frozen=True)

    account: str
    date: str
    amount: int
    payee_name: str
    imported_payee: str = ""
    notes: str = ""
    imported_id: str


class ImportResult(BaseModel):
    """Result of a ledger import call."""

    model_config = ConfigDict(extra="ignore")

    added: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    errors: list[Any] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether the import added or updated at least one record."""
        return bool(self.added or self.updated)


@dataclass(frozen=True)
class CategoryRow:
    """Budget category figures for one month, in integer minor units.

    ``spent`` follows the ledger's convention: negative for outflow. Rows are built with
    ``from_entry`` so every caller sees the same normalization.
    """

    name: str
    budgeted: int
    spent: int

    @property
    def outflow(self) -> int:
        """Money spent as a non-negative magnitude. Net inflow counts as nothing spent."""
        return -self.spent if self.spent < 0 else 0

    @property
    def available(self) -> int:
        """Money left in the category; negative when overspent."""
        return self.budgeted + self.spent

    @property
    def ratio(self) -> float:
        """Fraction of the budget used, ``inf`` for spend against a zero budget."""
        if self.budgeted > 0:
            return self.outflow / self.budgeted
        return float("inf") if self.outflow > 0 else 0.0

    @classmethod
    def from_entry(cls, name: str, entry: dict[str, Any] | None) -> "CategoryRow":
        """Build a row from a ledger month entry; a missing entry means no activity."""
        entry = entry or {}
        return cls(
            name=name,
            budgeted=round_minor_units(entry.get("budgeted") or 0),
            spent=round_minor_units(entry.get("spent") or 0),
        )


class HandleStatus(StrEnum):
    """What the event handler did with one webhook delivery."""

    IMPORTED = "imported"
    UNCHANGED = "unchanged"
    SESSION_UNAVAILABLE = "session_unavailable"
    PAYLOAD_SHAPE_MISS = "payload_shape_miss"
    MAPPING_MISS = "mapping_miss"
    REMOTE_FAILURE = "remote_failure"


@dataclass(frozen=True)
class HandleOutcome:
    """Outcome of handling one webhook event."""

    status: HandleStatus
    transaction: LedgerTransaction | None = None
    result: ImportResult | None = None
    notified: bool = False
    detail: str = ""


class AlertStatus(StrEnum):
    """What an alert evaluation or monthly summary did."""

    SENT = "sent"
    NOTHING_TO_REPORT = "nothing_to_report"
    MONTH_MISSING = "month_missing"
    SESSION_UNAVAILABLE = "session_unavailable"


@dataclass(frozen=True)
class AlertBuckets:
    """Categories grouped by alert kind. A category may appear in more than one bucket."""

    overspent: tuple[CategoryRow, ...] = ()
    near_limit: tuple[CategoryRow, ...] = ()
    unbudgeted: tuple[CategoryRow, ...] = ()

    def __bool__(self) -> bool:
        """Return True when any bucket has a category in it."""
        return bool(self.overspent or self.near_limit or self.unbudgeted)


@dataclass(frozen=True)
class AlertOutcome:
    """Outcome of one budget alert evaluation or monthly summary."""

    status: AlertStatus
    month: str
    title: str = ""
    message: str = ""
    buckets: AlertBuckets = field(default_factory=AlertBuckets)
    notified: bool = False
