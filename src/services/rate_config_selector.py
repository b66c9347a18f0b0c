"""Selection of the effective rate configuration for a fee type."""

import logging
from typing import Sequence

from src.models.fee_type import ConfigStatus, FeeRateConfig, QuantityRateConfig
from src.services.errors import ConsistencyError, NoActiveConfiguration

logger = logging.getLogger(__name__)


def select_effective_config(configs: Sequence[FeeRateConfig]) -> FeeRateConfig:
    """Pick the single ACTIVE tiered configuration.

    The configuration store keeps configs mutually exclusive; this function only
    observes the result and refuses to guess when the invariant is broken.

    Args:
        configs: All rate configs of one fee type

    Returns:
        The ACTIVE config

    Raises:
        NoActiveConfiguration: If no config is ACTIVE
        ConsistencyError: If more than one config is ACTIVE
    """
    active = [c for c in configs if c.status == ConfigStatus.ACTIVE]

    if not active:
        raise NoActiveConfiguration(
            f"No ACTIVE rate configuration among {len(configs)} config(s)"
        )
    if len(active) > 1:
        ids = ", ".join(str(c.id) for c in active)
        logger.error("Multiple ACTIVE rate configurations observed: %s", ids)
        raise ConsistencyError(f"Multiple ACTIVE rate configurations: {ids}")

    return active[0]


def select_quantity_rates(rates: Sequence[QuantityRateConfig]) -> dict[str, QuantityRateConfig]:
    """Index quantity rates by item type.

    Quantity rates have no activation gate: every configured item type takes part.

    Args:
        rates: All quantity rate rows of one fee type

    Returns:
        Dict mapping item_type -> QuantityRateConfig

    Raises:
        NoActiveConfiguration: If the fee type has no quantity rates
        ConsistencyError: If an item type is configured twice
    """
    if not rates:
        raise NoActiveConfiguration("No quantity rates configured")

    by_item: dict[str, QuantityRateConfig] = {}
    for rate in rates:
        if rate.item_type in by_item:
            raise ConsistencyError(f"Item type '{rate.item_type}' is configured more than once")
        by_item[rate.item_type] = rate

    return by_item


__all__ = ["select_effective_config", "select_quantity_rates"]
