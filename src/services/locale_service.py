"""Centralized locale service for currency, rate and quantity formatting on notices.

Uses babel for locale-aware number formatting.

Configuration:
    LOCALE env var (default: vi_VN) - determines currency and number formatting

Example:
    >>> from src.services.locale_service import format_amount, format_rate
    >>> format_amount(Decimal("209000"))
    '209.000 ₫'
    >>> format_rate(Decimal("0.1"))
    '10,00%'
"""

import logging
import os
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.numbers import (
    format_currency as babel_format_currency,
)
from babel.numbers import (
    format_decimal as babel_format_decimal,
)
from babel.numbers import (
    format_percent as babel_format_percent,
)
from babel.numbers import (
    get_currency_symbol as babel_get_currency_symbol,
)
from babel.numbers import (
    get_territory_currencies,
)

logger = logging.getLogger(__name__)

# Default locale if LOCALE env var is invalid or missing
DEFAULT_LOCALE = "vi_VN"
DEFAULT_CURRENCY = "VND"


def _get_locale() -> str:
    """Get locale from environment with validation and fallback.

    Returns:
        Valid locale string (e.g., 'vi_VN')
    """
    locale_str = os.getenv("LOCALE", DEFAULT_LOCALE)
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Invalid LOCALE '{locale_str}': {e}. Falling back to '{DEFAULT_LOCALE}'")
        return DEFAULT_LOCALE


def _get_currency_from_locale(locale_str: str) -> str:
    """Derive currency code from locale territory.

    Args:
        locale_str: Locale string (e.g., 'vi_VN')

    Returns:
        Currency code (e.g., 'VND')
    """
    try:
        locale = Locale.parse(locale_str)
        territory = locale.territory
        if territory:
            currencies = get_territory_currencies(territory)
            if currencies:
                return currencies[0]
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Could not derive currency from locale '{locale_str}': {e}")

    return DEFAULT_CURRENCY


# Module-level constants (computed once at import)
LOCALE = _get_locale()
CURRENCY = _get_currency_from_locale(LOCALE)


def get_currency_code() -> str:
    """Get currency code derived from locale.

    Returns:
        ISO 4217 currency code (e.g., 'VND')
    """
    return CURRENCY


def get_currency_symbol() -> str:
    """Get currency symbol for current locale."""
    return babel_get_currency_symbol(CURRENCY, locale=LOCALE)


def format_amount(amount: Decimal, include_symbol: bool = True, locale: str | None = None) -> str:
    """Format monetary amount with thousands separators according to locale.

    Amounts are passed to babel as Decimal, never as float.

    Args:
        amount: Amount to format
        include_symbol: Whether to include currency symbol (default True)
        locale: Override the configured locale

    Returns:
        Formatted currency string (e.g., '1.234.567 ₫')
    """
    locale = locale or LOCALE
    if include_symbol:
        currency = CURRENCY if locale == LOCALE else _get_currency_from_locale(locale)
        return babel_format_currency(Decimal(amount), currency, locale=locale)
    return babel_format_decimal(Decimal(amount), format="#,##0.##", locale=locale)


def format_rate(rate: Decimal, locale: str | None = None) -> str:
    """Format a rate fraction as a percentage with two decimals (0.1 -> '10.00%').

    Args:
        rate: Rate as a fraction
        locale: Override the configured locale
    """
    return babel_format_percent(Decimal(rate), format="#,##0.00%", locale=locale or LOCALE)


def format_quantity(value: Decimal | None, unit: str | None = None, locale: str | None = None) -> str:
    """Format a consumption or quantity with up to three decimals and an optional unit."""
    if value is None:
        return "N/A"
    text = babel_format_decimal(Decimal(value), format="#,##0.###", locale=locale or LOCALE)
    return f"{text} {unit}" if unit else text


__all__ = [
    "LOCALE",
    "CURRENCY",
    "get_currency_code",
    "get_currency_symbol",
    "format_amount",
    "format_rate",
    "format_quantity",
]
