"""Exception classes raised by the fee calculation engine and billing services."""


class BillingError(Exception):
    """Base exception for billing errors."""

    pass


class ConfigurationError(BillingError):
    """Rate configuration is malformed (tier gap/overlap, wrong input for a fee type, etc.)."""

    pass


class NoActiveConfiguration(BillingError):
    """No ACTIVE rate configuration (or no quantity rate) exists for a fee type."""

    pass


class ConsistencyError(BillingError):
    """Configuration store invariant broken, e.g. several ACTIVE configs for one fee type."""

    pass


class InvalidReadingError(BillingError):
    """Meter readings cannot produce a valid consumption (negative or missing)."""

    pass


class NoticeStateError(BillingError):
    """Fee notice lifecycle transition not allowed from its current status."""

    pass


__all__ = [
    "BillingError",
    "ConfigurationError",
    "NoActiveConfiguration",
    "ConsistencyError",
    "InvalidReadingError",
    "NoticeStateError",
]
