"""Tier resolver: allocates a consumption quantity across a progressive tier table."""

import logging
from decimal import Decimal
from typing import NamedTuple, Protocol, Sequence

from src.services.errors import ConfigurationError, InvalidReadingError

logger = logging.getLogger(__name__)


class TierLike(Protocol):
    """Anything shaped like a tier: FeeTier rows or prorated tiers."""

    tier_order: int
    consumption_start: Decimal
    consumption_end: Decimal | None
    unit_rate: Decimal


class TierAllocation(NamedTuple):
    """Consumption allocated to a single tier."""

    tier_order: int
    consumption_start: Decimal
    consumption_end: Decimal | None
    unit_rate: Decimal
    amount_in_tier: Decimal
    sub_total_for_tier: Decimal


def validate_tier_table(tiers: Sequence[TierLike]) -> list[TierLike]:
    """Check that tiers form a contiguous table starting at zero.

    Rules:
    - at least one tier
    - tier orders are 1..n without holes or duplicates
    - tier 1 starts at 0
    - every tier but the last has an end greater than its start
    - each tier starts exactly where the previous one ends
    - the last tier is open-ended (a stored end, if any, only has to exceed its start)

    Args:
        tiers: Tiers in any order

    Returns:
        Tiers sorted ascending by tier_order

    Raises:
        ConfigurationError: If any rule is broken
    """
    if not tiers:
        raise ConfigurationError("Tier table is empty")

    ordered = sorted(tiers, key=lambda t: t.tier_order)

    orders = [t.tier_order for t in ordered]
    if orders != list(range(1, len(ordered) + 1)):
        raise ConfigurationError(f"Tier orders must be contiguous from 1, got {orders}")

    if Decimal(ordered[0].consumption_start) != 0:
        raise ConfigurationError(
            f"Tier 1 must start at 0, starts at {ordered[0].consumption_start}"
        )

    for index, tier in enumerate(ordered):
        if tier.unit_rate is None or Decimal(tier.unit_rate) < 0:
            raise ConfigurationError(f"Tier {tier.tier_order} has an invalid unit rate")

        is_last = index == len(ordered) - 1
        if tier.consumption_end is None:
            if not is_last:
                raise ConfigurationError(
                    f"Only the last tier may be open-ended (tier {tier.tier_order})"
                )
        elif Decimal(tier.consumption_end) <= Decimal(tier.consumption_start):
            raise ConfigurationError(
                f"Tier {tier.tier_order} end {tier.consumption_end} "
                f"must be greater than its start {tier.consumption_start}"
            )

        if index > 0:
            previous_end = Decimal(ordered[index - 1].consumption_end)
            start = Decimal(tier.consumption_start)
            if start > previous_end:
                raise ConfigurationError(
                    f"Gap between tier {tier.tier_order - 1} (ends {previous_end}) "
                    f"and tier {tier.tier_order} (starts {start})"
                )
            if start < previous_end:
                raise ConfigurationError(
                    f"Tier {tier.tier_order} (starts {start}) overlaps "
                    f"tier {tier.tier_order - 1} (ends {previous_end})"
                )

    return ordered


def resolve_tiers(
    tiers: Sequence[TierLike],
    consumption: Decimal,
    start_at: Decimal = Decimal(0),
) -> list[TierAllocation]:
    """Allocate consumption across tiers.

    The consumed range is [start_at, start_at + consumption]. With the default
    start_at of 0 the formula per tier is
    amount = clamp(min(consumption, end) - start, 0, end - start).
    Metered fees pass the previous meter reading as start_at, so a cycle that runs
    the meter from 30 to 120 fills the 30-50 part of a 0-50 band first.
    The last tier absorbs everything above its start.

    Args:
        tiers: Tier table (validated here)
        consumption: Non-negative consumption to allocate
        start_at: Position on the tier scale where the consumption begins

    Returns:
        One TierAllocation per tier, ascending by tier_order. Allocations sum to
        consumption exactly.

    Raises:
        ConfigurationError: If the tier table has a gap or overlap
        InvalidReadingError: If consumption or start_at is negative
    """
    consumption = Decimal(consumption)
    start_at = Decimal(start_at)
    if consumption < 0:
        raise InvalidReadingError(f"Consumption cannot be negative: {consumption}")
    if start_at < 0:
        raise InvalidReadingError(f"Consumption cannot start below zero: {start_at}")

    ordered = validate_tier_table(tiers)

    range_end = start_at + consumption
    allocations = []
    last_index = len(ordered) - 1
    for index, tier in enumerate(ordered):
        start = Decimal(tier.consumption_start)
        low = max(start_at, start)
        if index == last_index:
            high = range_end
        else:
            high = min(range_end, Decimal(tier.consumption_end))
        amount = max(high - low, Decimal(0))

        unit_rate = Decimal(tier.unit_rate)
        allocations.append(
            TierAllocation(
                tier_order=tier.tier_order,
                consumption_start=start,
                consumption_end=None if tier.consumption_end is None else Decimal(tier.consumption_end),
                unit_rate=unit_rate,
                amount_in_tier=amount,
                sub_total_for_tier=amount * unit_rate,
            )
        )

    logger.debug(
        "Resolved consumption %s across %d tiers: %s",
        consumption,
        len(allocations),
        [str(a.amount_in_tier) for a in allocations],
    )
    return allocations


__all__ = ["TierAllocation", "TierLike", "resolve_tiers", "validate_tier_table"]
