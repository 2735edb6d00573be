"""Core package: provides models, settings, the error taxonomy, and shared utilities."""

from .errors import AuthenticationFailure, ConfigurationFailure, LedgerError, SessionFailure  # noqa: F401
from .models import FeedItem, LedgerTransaction  # noqa: F401
from .settings import Settings, load_settings  # noqa: F401
from .utils import get_logger  # noqa: F401
