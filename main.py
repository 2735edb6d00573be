"""Main entrypoint for the Starling sync service.

Exposes ``app`` for ``uvicorn main:app`` and runs Uvicorn when executed directly. A bad
configuration (for example an unparseable ACCOUNT_MAP_JSON) stops the process at startup.
"""

from starling_sync.core.errors import ConfigurationFailure
from starling_sync.core.settings import load_settings
from starling_sync.core.utils import get_logger
from starling_sync.main import create_app

logger = get_logger("starling-sync")

try:
    settings = load_settings()
except ConfigurationFailure as exc:
    logger.critical(str(exc))
    raise SystemExit(1) from exc

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.server_host,
        port=settings.server_port,
        timeout_graceful_shutdown=int(settings.shutdown_timeout_seconds),
    )
