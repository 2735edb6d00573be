"""Static mapping from provider account ids to ledger accounts."""

from collections.abc import Mapping
from types import MappingProxyType

from starling_sync.core.models import AccountMapping


class AccountResolver:
    """Looks up the ledger account for a provider account.

    A miss is a normal outcome: accounts without a mapping are deliberately excluded from
    sync, so callers log and skip rather than fail.
    """

    def __init__(self, mappings: Mapping[str, AccountMapping]) -> None:
        """Initialize the resolver with a read-only copy of the mapping table."""
        self._mappings = MappingProxyType(dict(mappings))

    def resolve(self, provider_account_id: str) -> AccountMapping | None:
        """Return the mapping for ``provider_account_id`` or None if it is not synced."""
        return self._mappings.get(provider_account_id)

    @property
    def account_ids(self) -> list[str]:
        """Provider account ids with a configured mapping."""
        return sorted(self._mappings)

    def __len__(self) -> int:
        """Return the number of mapped accounts."""
        return len(self._mappings)
