"""Exception taxonomy for the Starling sync service.

Mapping and payload-shape misses are not exceptions: they are expected steady-state
outcomes and are reported through ``HandleOutcome`` instead.
"""


class StarlingSyncError(Exception):
    """Base class for all errors raised by the service."""


class AuthenticationFailure(StarlingSyncError):
    """The webhook signature did not match the configured shared secret."""


class ConfigurationFailure(StarlingSyncError):
    """Settings could not be loaded. Fatal at startup."""


class SessionFailure(StarlingSyncError):
    """Connecting to the ledger or loading the budget failed."""


class RemoteOperationFailure(StarlingSyncError):
    """A call to the remote ledger failed after the session was ready."""


# Gateway statuses meaning our session (or the loaded budget) is gone on the gateway side.
SESSION_LOST_STATUSES = frozenset({401, 403, 404})
SESSION_PATH_PREFIXES = ("/v1/session", "/v1/budgets/")


class LedgerError(RemoteOperationFailure):
    """Transport or HTTP error returned by the ledger gateway."""

    def __init__(self, message: str, status_code: int | None = None, path: str | None = None) -> None:
        """Initialize the error with an optional HTTP status code and request path."""
        super().__init__(message)
        self.status_code = status_code
        self.path = path

    @property
    def session_lost(self) -> bool:
        """Whether the gateway no longer recognizes the session or the loaded budget."""
        return self.status_code in SESSION_LOST_STATUSES and (self.path or "").startswith(SESSION_PATH_PREFIXES)


class NotificationFailure(StarlingSyncError):
    """The notification sink rejected or failed to receive a notification."""
