"""Configuration loading for the billing engine and its services.

Loads settings from .env file and environment variables with sensible defaults.
Validates configuration and provides clear error messages.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from babel import Locale, UnknownLocaleError
from dotenv import load_dotenv

from src.services.vat_service import money_quantum


@dataclass
class BillingConfig:
    """Configuration for fee notice generation."""

    database_url: str = "sqlite:///./billing.db"
    """SQLAlchemy database URL (default: local SQLite)"""

    log_file: str = "logs/billing.log"
    """Path to log file (default: logs/billing.log)"""

    locale: str = "vi_VN"
    """Locale used to format amounts on rendered notices"""

    currency_decimals: int = 0
    """Minor-unit digits of the billing currency (0 for VND, 2 for EUR/USD)"""

    @property
    def money_quantum(self) -> Decimal:
        """Smallest currency unit, used as the rounding quantum."""
        return money_quantum(self.currency_decimals)


def load_config(env_file: str = ".env") -> BillingConfig:
    """
    Load configuration from .env file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (DATABASE_URL, LOG_FILE, LOCALE, CURRENCY_DECIMALS)
    2. .env file in project root
    3. Default values

    Returns:
        BillingConfig with all settings

    Raises:
        ValueError: If a setting is invalid

    Example:
        Create .env file:
        ```
        DATABASE_URL=sqlite:///./billing.db
        LOCALE=vi_VN
        CURRENCY_DECIMALS=0
        ```

        Then call:
        ```
        config = load_config()
        ```
    """
    env_path = Path(env_file)
    if env_path.exists():
        load_dotenv(env_path)

    database_url = os.getenv("DATABASE_URL", "sqlite:///./billing.db")
    log_file = os.getenv("LOG_FILE", "logs/billing.log")
    locale = os.getenv("LOCALE", "vi_VN")
    decimals_raw = os.getenv("CURRENCY_DECIMALS", "0")

    if not database_url:
        raise ValueError("DATABASE_URL cannot be empty")

    try:
        Locale.parse(locale)
    except (UnknownLocaleError, ValueError) as e:
        raise ValueError(f"LOCALE '{locale}' is not a known locale. Error: {str(e)}") from e

    try:
        currency_decimals = int(decimals_raw)
    except ValueError as e:
        raise ValueError(
            f"CURRENCY_DECIMALS must be an integer, got '{decimals_raw}'"
        ) from e
    if not 0 <= currency_decimals <= 4:
        raise ValueError(f"CURRENCY_DECIMALS must be between 0 and 4, got {currency_decimals}")

    return BillingConfig(
        database_url=database_url,
        log_file=log_file,
        locale=locale,
        currency_decimals=currency_decimals,
    )


__all__ = ["BillingConfig", "load_config"]
