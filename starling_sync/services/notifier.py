"""Best-effort notifications to Home Assistant."""

from typing import Any, Protocol

import httpx

from starling_sync.core.errors import NotificationFailure
from starling_sync.core.utils import get_logger

NOTIFY_PATH = "/api/services/notify/notify"
NOTIFY_GROUP = "actual_budget"

logger = get_logger("starling-sync.notify")


class Notifier(Protocol):
    """Fire-and-forget notification sink."""

    async def notify(self, title: str, message: str, data: dict[str, Any] | None = None) -> bool:
        """Send a notification; return whether it was delivered. Never raises."""


class HomeAssistantNotifier:
    """Sends notifications through Home Assistant's ``notify.notify`` service."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the notifier; it is a no-op unless both URL and token are set."""
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        """Whether a Home Assistant endpoint and token are configured."""
        return bool(self.base_url and self.token)

    async def _post(self, title: str, message: str, data: dict[str, Any]) -> None:
        try:
            response = await self._client.post(
                f"{self.base_url}{NOTIFY_PATH}",
                json={"title": title, "message": message, "data": data},
                headers={"Authorization": f"Bearer {self.token}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"Home Assistant notify failed: {exc}"
            raise NotificationFailure(msg) from exc

    async def notify(self, title: str, message: str, data: dict[str, Any] | None = None) -> bool:
        """Send a notification; failures are logged and swallowed."""
        if not self.configured:
            logger.debug(f"Notifications not configured, dropping: {title}")
            return False
        try:
            await self._post(title, message, data or {})
        except NotificationFailure:
            logger.warning(f"Notification '{title}' was not delivered", exc_info=True)
            return False
        logger.info(f"Notification sent: {title}")
        return True

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
