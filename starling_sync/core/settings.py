"""Configuration and environment settings for the Starling sync service."""

import logging
from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

from starling_sync.core.errors import ConfigurationFailure
from starling_sync.core.models import AccountMapping
from starling_sync.core.utils import parse_hhmm

SECRET_FIELDS = frozenset(
    {"actual_password", "ledger_gateway_api_key", "ha_token", "starling_webhook_shared_secret"}
)


class Settings(BaseSettings):
    """Application settings for the Starling sync service."""

    actual_server_url: str
    actual_password: str = ""
    actual_budget_id: str
    ledger_gateway_url: str = "http://127.0.0.1:5008"
    ledger_gateway_api_key: str = ""
    ledger_timeout_seconds: float = 30.0
    ha_base_url: str = ""
    ha_token: str = ""
    account_map: dict[str, AccountMapping] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("account_map_json", "account_map"),
    )
    starling_webhook_shared_secret: str = ""
    alert_times: str = "09:00"
    alert_threshold_pct: float = Field(default=0.9, gt=0, le=1)
    alert_include_zero: bool = False
    alert_monthly_summary_time: str = "09:00"
    alert_timezone: str = "Europe/London"
    scheduler_enabled: bool = True
    shutdown_timeout_seconds: float = 10.0
    debug_endpoints_enabled: bool = False
    log_level: str = "INFO"
    log_file: str = ""
    server_host: str = "0.0.0.0"  # noqa: S104
    server_port: int = 5007

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    @field_validator("alert_times")
    @classmethod
    def _check_alert_times(cls, value: str) -> str:
        times = [part for part in value.split(",") if part.strip()]
        if not times:
            msg = "ALERT_TIMES must list at least one HH:MM time"
            raise ValueError(msg)
        for part in times:
            parse_hhmm(part)
        return value

    @field_validator("alert_monthly_summary_time")
    @classmethod
    def _check_summary_time(cls, value: str) -> str:
        parse_hhmm(value)
        return value

    @field_validator("alert_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown time zone: {value}"
            raise ValueError(msg) from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        if not isinstance(logging.getLevelName(value.upper()), int):
            msg = f"Unknown log level: {value}"
            raise ValueError(msg)
        return value.upper()

    @property
    def alert_time_list(self) -> list[time]:
        """Daily wall-clock times at which budget alerts run."""
        return [parse_hhmm(part) for part in self.alert_times.split(",") if part.strip()]

    @property
    def monthly_summary_time(self) -> time:
        """Wall-clock time at which the monthly summary runs on the first of the month."""
        return parse_hhmm(self.alert_monthly_summary_time)

    @property
    def timezone(self) -> ZoneInfo:
        """Time zone for scheduled alerts and the current month."""
        return ZoneInfo(self.alert_timezone)

    def redacted(self) -> dict:
        """Return settings as plain data with secrets removed, for diagnostics."""
        return self.model_dump(mode="json", exclude=set(SECRET_FIELDS))


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment, raising ConfigurationFailure on any problem."""
    try:
        return Settings(**overrides)
    except (ValidationError, SettingsError) as exc:
        msg = f"Invalid configuration: {exc}"
        raise ConfigurationFailure(msg) from exc
