"""Connection and budget state for the remote ledger.

The session connects once and loads the budget once, then serves every later webhook
and alert run without further remote work. Initialization is a single shared task:
concurrent callers await the same outcome instead of each starting a download.

State machine::

    UNINITIALIZED -> INITIALIZING -> READY
                          |
                          v
                        FAILED -> INITIALIZING (next ensure_ready call)

    READY -> FAILED when the gateway reports the session or budget is gone (invalidate)

Both phases succeed together or the session is FAILED; a connected-but-unloaded (or
loaded-but-disconnected) state is never reported as ready.
"""

import asyncio
from enum import StrEnum

from starling_sync.core.errors import LedgerError, SessionFailure
from starling_sync.core.utils import get_logger
from starling_sync.services.ledger_client import LedgerClient

logger = get_logger("starling-sync.session")


class SessionState(StrEnum):
    """Lifecycle of a reconciliation session."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ReconciliationSession:
    """Owns the ledger connection and loaded budget for the life of the process."""

    def __init__(self, ledger: LedgerClient, server_url: str, password: str, budget_id: str) -> None:
        """Initialize an unconnected session."""
        self.ledger = ledger
        self.server_url = server_url
        self.password = password
        self.budget_id = budget_id
        self.state = SessionState.UNINITIALIZED
        self.last_error: SessionFailure | None = None
        self._pending: asyncio.Task[bool] | None = None

    @property
    def ready(self) -> bool:
        """Whether the ledger is connected and the budget loaded."""
        return self.state is SessionState.READY

    async def ensure_ready(self) -> bool:
        """Connect and load the budget if needed; return whether the session is usable."""
        if self.ready:
            return True
        if self._pending is None:
            self._pending = asyncio.create_task(self._initialize())
        return await asyncio.shield(self._pending)

    async def _initialize(self) -> bool:
        self.state = SessionState.INITIALIZING
        try:
            await self.ledger.connect(self.server_url, self.password)
            await self.ledger.load_budget(self.budget_id)
        except asyncio.CancelledError:
            self.state = SessionState.UNINITIALIZED
            raise
        except Exception as exc:
            self.state = SessionState.FAILED
            self.last_error = SessionFailure(f"Ledger init/load failed: {exc}")
            logger.exception("Ledger init/load failed; will retry on next trigger")
            return False
        else:
            self.state = SessionState.READY
            self.last_error = None
            logger.info(f"Ledger session ready (budget {self.budget_id})")
            return True
        finally:
            self._pending = None

    def invalidate(self, exc: Exception) -> bool:
        """Mark a ready session FAILED when ``exc`` shows the gateway lost it.

        The next ``ensure_ready`` call then reconnects and reloads the budget. Returns
        whether the session was invalidated.
        """
        if not self.ready or not (isinstance(exc, LedgerError) and exc.session_lost):
            return False
        self.state = SessionState.FAILED
        self.last_error = SessionFailure(f"Ledger session lost: {exc}")
        logger.warning(f"Ledger session lost ({exc.status_code}); reconnecting on next trigger")
        return True

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Close the ledger session, giving up after ``timeout`` seconds."""
        if self._pending is not None:
            self._pending.cancel()
        if self.state is SessionState.UNINITIALIZED:
            return
        try:
            await asyncio.wait_for(self.ledger.shutdown(), timeout)
        except TimeoutError:
            logger.error(f"Ledger shutdown did not finish within {timeout}s; abandoning it")
        except Exception:
            logger.exception("Ledger shutdown failed")
        else:
            logger.info("Ledger session closed")
        finally:
            self.state = SessionState.UNINITIALIZED
