from __future__ import annotations

from dataclasses import dataclass
import os

from orderly.core.errors import ConfigError

DEFAULT_DATABASE_URL = "sqlite:///orderly.db"
LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True, slots=True)
class OrderlyConfig:
    """Process configuration loaded at startup."""

    database_url: str = DEFAULT_DATABASE_URL
    default_currency: str = "USD"
    order_number_attempts: int = 3
    outbox_batch_size: int = 100
    outbox_max_attempts: int = 5
    log_level: str = "INFO"


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigError(f"{name} must be at least 1, got {value}")
    return value


def load_config_from_env() -> OrderlyConfig:
    """Load config from env and validate it."""
    database_url = (
        os.environ.get("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL
    )

    currency = os.environ.get("ORDERLY_DEFAULT_CURRENCY", "USD").strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ConfigError(
            "ORDERLY_DEFAULT_CURRENCY must be a three-letter currency code"
        )

    log_level = os.environ.get("ORDERLY_LOG_LEVEL", "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(
            "ORDERLY_LOG_LEVEL must be one of: " + ", ".join(sorted(LOG_LEVELS))
        )

    return OrderlyConfig(
        database_url=database_url,
        default_currency=currency,
        order_number_attempts=_positive_int("ORDERLY_ORDER_NUMBER_ATTEMPTS", 3),
        outbox_batch_size=_positive_int("ORDERLY_OUTBOX_BATCH_SIZE", 100),
        outbox_max_attempts=_positive_int("ORDERLY_OUTBOX_MAX_ATTEMPTS", 5),
        log_level=log_level,
    )
