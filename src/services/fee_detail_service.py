"""Fee detail composer: turns one fee type plus its inputs into a FeeDetail line item.

Each calculation type takes its own operator input variant:

- AREA     -> AreaInput(area)
- QUANTITY -> QuantityInput(quantities)
- TIERED   -> TieredInput(current, previous)

TIERED tariffs are applied to the metered range [previous reading, current
reading]; a first bill measures from zero.

Amounts per line:
    base       = Σ tier subtotals, area charge or quantity charge, rounded once
    bvmt_cost  = round(base × bvmt_fee)                   (TIERED only)
    sub_total  = base + bvmt_cost                         (pre-VAT)
    gross_cost = sub_total
    vat_cost   = round(gross_cost × vat_rate)
"""

import logging
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from src.models.fee_notice import FeeDetail, FeeTierDetail
from src.models.fee_type import CalculationType, FeeRateConfig, FeeType, QuantityRateConfig
from src.models.utility_reading import UtilityReading
from src.services.billing_cycle_service import BillingPeriod
from src.services.errors import ConfigurationError, InvalidReadingError
from src.services.proration_service import prorate, scale_tier_bounds
from src.services.tier_service import resolve_tiers, validate_tier_table
from src.services.vat_service import MONEY_QUANTUM, apply_vat, round_money

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
RATE_QUANTUM = Decimal("0.0001")


class AreaInput(NamedTuple):
    """Input for AREA fees: the apartment's floor area in m²."""

    area: Decimal


class QuantityInput(NamedTuple):
    """Input for QUANTITY fees: operator-adjusted quantity per item type."""

    quantities: Mapping[str, Decimal]


class TieredInput(NamedTuple):
    """Input for TIERED fees: latest reading and the one before it (None on a first bill)."""

    current: UtilityReading | None
    previous: UtilityReading | None = None


FeeInput = AreaInput | QuantityInput | TieredInput


def _vat_rate(fee_type: FeeType, configured: Decimal | None) -> Decimal:
    if not fee_type.is_vat_applicable or configured is None:
        return ZERO
    return Decimal(configured)


def _require(fee_input: FeeInput, expected: type, fee_type: FeeType):
    if not isinstance(fee_input, expected):
        raise ConfigurationError(
            f"Fee type '{fee_type.name}' ({fee_type.calculation_type.value}) expects "
            f"{expected.__name__}, got {type(fee_input).__name__}"
        )
    return fee_input


def _compose_area(
    fee_type: FeeType,
    fee_input: AreaInput,
    proration: Decimal,
    quantum: Decimal,
) -> FeeDetail:
    if fee_type.default_rate is None:
        raise ConfigurationError(f"AREA fee type '{fee_type.name}' has no default rate")

    area = Decimal(fee_input.area)
    if area < 0:
        raise ValueError(f"Apartment area cannot be negative: {area}")

    sub_total = round_money(Decimal(fee_type.default_rate) * area * proration, quantum)
    vat_rate = _vat_rate(fee_type, fee_type.default_vat_rate)
    vat = apply_vat(sub_total, vat_rate, quantum)

    return FeeDetail(
        quantity=area,
        sub_total=sub_total,
        bvmt_cost=ZERO,
        gross_cost=sub_total,
        vat_rate=vat_rate,
        vat_cost=vat.vat_cost,
        tier_details=[],
    )


def _compose_quantity(
    fee_type: FeeType,
    rates: Mapping[str, QuantityRateConfig],
    fee_input: QuantityInput,
    proration: Decimal,
    quantum: Decimal,
) -> FeeDetail:
    base_by_vat_rate: dict[Decimal, Decimal] = {}
    total_quantity = ZERO

    for item_type, quantity in fee_input.quantities.items():
        rate = rates.get(item_type)
        if rate is None:
            raise ConfigurationError(
                f"Item type '{item_type}' is not configured for fee type '{fee_type.name}'"
            )
        quantity = Decimal(quantity)
        if quantity < 0:
            raise ValueError(f"Quantity for '{item_type}' cannot be negative: {quantity}")

        vat_rate = _vat_rate(fee_type, rate.vat_rate)
        base = Decimal(rate.unit_rate) * quantity
        base_by_vat_rate[vat_rate] = base_by_vat_rate.get(vat_rate, ZERO) + base
        total_quantity += quantity

    # A fee not yet applicable in this cycle is billed at zero; otherwise quantities
    # are taken as entered.
    if proration == 0:
        base_by_vat_rate = {rate: ZERO for rate in base_by_vat_rate}

    sub_total = round_money(sum(base_by_vat_rate.values(), ZERO), quantum)

    if len(base_by_vat_rate) <= 1:
        vat_rate = next(iter(base_by_vat_rate), ZERO)
        vat_cost = apply_vat(sub_total, vat_rate, quantum).vat_cost
    else:
        vat_cost = round_money(
            sum((base * rate for rate, base in base_by_vat_rate.items()), ZERO), quantum
        )
        # Blended rate for display; each group was taxed at its own rate
        vat_rate = ZERO
        if sub_total:
            vat_rate = (vat_cost / sub_total).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)

    return FeeDetail(
        quantity=total_quantity,
        sub_total=sub_total,
        bvmt_cost=ZERO,
        gross_cost=sub_total,
        vat_rate=vat_rate,
        vat_cost=vat_cost,
        tier_details=[],
    )


def _compose_tiered(
    fee_type: FeeType,
    config: FeeRateConfig,
    fee_input: TieredInput,
    period: BillingPeriod,
    proration: Decimal,
    quantum: Decimal,
) -> FeeDetail:
    current = fee_input.current
    previous = fee_input.previous
    if current is None and proration != 0:
        raise InvalidReadingError(
            f"No current reading in period {period.start}..{period.end} "
            f"for fee type '{fee_type.name}'"
        )

    if current is None:
        # Fee not started in this cycle and meter not read yet: zero line
        current_value = None
        previous = None
        previous_value = ZERO
        consumption = ZERO
    else:
        current_value = Decimal(current.current_reading)
        # First bill: no earlier reading, consumption is measured from zero
        previous_value = ZERO if previous is None else Decimal(previous.current_reading)
        consumption = current_value - previous_value
        if consumption < 0:
            raise InvalidReadingError(
                f"Negative consumption for fee type '{fee_type.name}': "
                f"current {current_value} < previous {previous_value}"
            )

    validate_tier_table(config.tiers)
    prorated = scale_tier_bounds(config.tiers, proration)

    if proration == 0:
        allocated = {tier.tier_order: ZERO for tier in prorated}
    else:
        allocated = {
            allocation.tier_order: allocation.amount_in_tier
            for allocation in resolve_tiers(prorated, consumption, start_at=previous_value)
        }

    tier_details = []
    base = ZERO
    for tier in prorated:
        amount = allocated[tier.tier_order]
        tier_sub_total = amount * tier.unit_rate
        base += tier_sub_total
        tier_details.append(
            FeeTierDetail(
                tier_order=tier.tier_order,
                consumption_start_original=tier.consumption_start_original,
                consumption_end_original=tier.consumption_end_original,
                consumption_start=tier.consumption_start,
                consumption_end=tier.consumption_end,
                unit_rate=tier.unit_rate,
                consumption=amount,
                sub_total=tier_sub_total,
                unit_name=config.unit_name,
            )
        )

    base = round_money(base, quantum)
    bvmt_cost = round_money(base * Decimal(config.bvmt_fee or 0), quantum)
    sub_total = base + bvmt_cost
    vat_rate = _vat_rate(fee_type, config.vat_rate)
    vat = apply_vat(sub_total, vat_rate, quantum)

    return FeeDetail(
        rate_config_id=config.id,
        consumption=consumption,
        previous_reading=None if previous is None else previous_value,
        previous_reading_date=None if previous is None else previous.reading_date,
        current_reading=current_value,
        current_reading_date=None if current is None else current.reading_date,
        sub_total=sub_total,
        bvmt_cost=bvmt_cost,
        gross_cost=sub_total,
        vat_rate=vat_rate,
        vat_cost=vat.vat_cost,
        tier_details=tier_details,
    )


def compose_fee_detail(
    fee_type: FeeType,
    effective_config: FeeRateConfig | Mapping[str, QuantityRateConfig] | None,
    fee_input: FeeInput,
    period: BillingPeriod,
    quantum: Decimal = MONEY_QUANTUM,
) -> FeeDetail:
    """Build the FeeDetail line item for one fee type.

    The proration fraction is the share of the billing period on or after the fee
    type's apply_date. AREA charges scale by it directly; TIERED tariffs scale their
    tier bounds by it; QUANTITY charges are billed as entered (zero when the fee does
    not apply at all in the period). A TIERED fee with no overlap needs no reading
    and yields a zero line with zero tier allocations.

    Args:
        fee_type: Fee type being billed
        effective_config: FeeRateConfig (TIERED), item_type -> QuantityRateConfig
            mapping (QUANTITY) or None (AREA)
        fee_input: Input variant matching the fee type's calculation type
        period: Billing period
        quantum: Smallest currency unit

    Returns:
        New, unsaved FeeDetail

    Raises:
        ConfigurationError: If the configuration is incomplete or the input variant
            does not match the calculation type
        InvalidReadingError: If readings give negative consumption, or a billed
            TIERED fee has no reading in the period
    """
    proration = prorate(period.start, period.end, fee_type.apply_date)

    match fee_type.calculation_type:
        case CalculationType.AREA:
            detail = _compose_area(
                fee_type, _require(fee_input, AreaInput, fee_type), proration, quantum
            )
        case CalculationType.QUANTITY:
            if not isinstance(effective_config, Mapping):
                raise ConfigurationError(f"Fee type '{fee_type.name}' needs quantity rates")
            detail = _compose_quantity(
                fee_type,
                effective_config,
                _require(fee_input, QuantityInput, fee_type),
                proration,
                quantum,
            )
        case CalculationType.TIERED:
            if not isinstance(effective_config, FeeRateConfig):
                raise ConfigurationError(f"Fee type '{fee_type.name}' needs a rate configuration")
            detail = _compose_tiered(
                fee_type,
                effective_config,
                _require(fee_input, TieredInput, fee_type),
                period,
                proration,
                quantum,
            )
        case _:
            raise ConfigurationError(
                f"Unsupported calculation type for fee type '{fee_type.name}': "
                f"{fee_type.calculation_type}"
            )

    detail.fee_type_id = fee_type.id
    detail.fee_type_name = fee_type.name
    detail.calculation_type = fee_type.calculation_type
    detail.proration = proration

    logger.debug(
        "Composed %s detail for fee type %s: sub_total=%s gross=%s vat=%s",
        fee_type.calculation_type.value,
        fee_type.id,
        detail.sub_total,
        detail.gross_cost,
        detail.vat_cost,
    )
    return detail


__all__ = [
    "AreaInput",
    "FeeInput",
    "QuantityInput",
    "TieredInput",
    "compose_fee_detail",
]
