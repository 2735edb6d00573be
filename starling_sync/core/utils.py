"""Shared utility functions for the Starling sync service."""

import logging
from datetime import UTC, datetime, time, tzinfo
from decimal import ROUND_HALF_UP, Decimal

import colorlog

CURRENCY_SYMBOL = "£"
ROOT_LOGGER = "starling-sync"


def get_logger(name: str) -> logging.Logger:
    """Get a project logger; records go to one colorized handler on the project root logger."""
    logger = logging.getLogger(name)
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.propagate = False
    return logger


def utcnow() -> datetime:
    """Get the current UTC time."""
    return datetime.now(UTC)


def round_minor_units(value: float | int) -> int:
    """Round a minor-unit amount to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_minor(minor_units: int) -> str:
    """Format integer minor units as currency, e.g. ``-1234`` -> ``-£12.34``."""
    pounds = (Decimal(abs(minor_units)) / 100).quantize(Decimal("0.01"))
    sign = "-" if minor_units < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{pounds}"


def parse_hhmm(value: str) -> time:
    """Parse a ``HH:MM`` wall-clock time."""
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit():
        msg = f"Expected HH:MM, got {value!r}"
        raise ValueError(msg)
    return time(int(hours), int(minutes))


def current_month(tz: tzinfo, now: datetime | None = None) -> str:
    """Return the ``YYYY-MM`` month for ``now`` (default: current time) in ``tz``."""
    now = now or utcnow()
    return now.astimezone(tz).strftime("%Y-%m")
