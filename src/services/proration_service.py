"""Proration calculator: period-overlap fraction and tier bound scaling.

Day-count convention: actual calendar days, both period boundaries inclusive
(a period from the 1st to the 30th counts 30 days).
"""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Sequence

from src.services.tier_service import TierLike

logger = logging.getLogger(__name__)

FRACTION_QUANTUM = Decimal("0.000001")
BOUND_QUANTUM = Decimal("0.001")


class ProratedTier(NamedTuple):
    """A tier with bounds scaled by the proration fraction.

    The *_original fields keep the configured bounds for the audit snapshot.
    """

    tier_order: int
    consumption_start: Decimal
    consumption_end: Decimal | None
    unit_rate: Decimal
    consumption_start_original: Decimal
    consumption_end_original: Decimal | None


def days_inclusive(start: date, end: date) -> int:
    """Count days from start to end, both included (0 if end precedes start)."""
    return max((end - start).days + 1, 0)


def prorate(
    period_start: date,
    period_end: date,
    effective_start: date | None = None,
    effective_end: date | None = None,
) -> Decimal:
    """Fraction of a billing period covered by an effective window.

    Formula: overlapping days / days in period, both ends inclusive.

    Args:
        period_start: First day of the billing period
        period_end: Last day of the billing period
        effective_start: First day the charge applies (None = unbounded)
        effective_end: Last day the charge applies (None = unbounded)

    Returns:
        Fraction in [0, 1] quantized to 6 decimal places

    Raises:
        ValueError: If period_end is before period_start
    """
    if period_end < period_start:
        raise ValueError("Billing period end must not be before its start")

    overlap_start = max(period_start, effective_start or period_start)
    overlap_end = min(period_end, effective_end or period_end)

    total_days = days_inclusive(period_start, period_end)
    overlap_days = days_inclusive(overlap_start, overlap_end)

    if overlap_days == total_days:
        return Decimal(1)

    fraction = (Decimal(overlap_days) / Decimal(total_days)).quantize(
        FRACTION_QUANTUM, rounding=ROUND_HALF_UP
    )
    logger.debug(
        "Proration %s: %d of %d days (%s..%s within %s..%s)",
        fraction,
        overlap_days,
        total_days,
        overlap_start,
        overlap_end,
        period_start,
        period_end,
    )
    return fraction


def scale_bound(value: Decimal | None, fraction: Decimal) -> Decimal | None:
    """Scale one tier bound; None stays None (open-ended)."""
    if value is None:
        return None
    return (Decimal(value) * fraction).quantize(BOUND_QUANTUM, rounding=ROUND_HALF_UP)


def scale_tier_bounds(tiers: Sequence[TierLike], fraction: Decimal) -> list[ProratedTier]:
    """Scale every tier's bounds by the proration fraction.

    A 0-100 band over a full month becomes 0-50 over half a month. Consumption itself
    is not scaled, so a partial period reaches the expensive bands sooner.
    Adjacent tiers share the same boundary value, so scaled tables stay contiguous.

    Args:
        tiers: Configured tiers
        fraction: Proration fraction in [0, 1]

    Returns:
        ProratedTier list in tier_order

    Raises:
        ValueError: If fraction is outside [0, 1]
    """
    if fraction < 0 or fraction > 1:
        raise ValueError(f"Proration fraction must be within [0, 1], got {fraction}")

    return [
        ProratedTier(
            tier_order=tier.tier_order,
            consumption_start=scale_bound(tier.consumption_start, fraction),
            consumption_end=scale_bound(tier.consumption_end, fraction),
            unit_rate=Decimal(tier.unit_rate),
            consumption_start_original=Decimal(tier.consumption_start),
            consumption_end_original=(
                None if tier.consumption_end is None else Decimal(tier.consumption_end)
            ),
        )
        for tier in sorted(tiers, key=lambda t: t.tier_order)
    ]


__all__ = [
    "BOUND_QUANTUM",
    "FRACTION_QUANTUM",
    "ProratedTier",
    "days_inclusive",
    "prorate",
    "scale_bound",
    "scale_tier_bounds",
]
