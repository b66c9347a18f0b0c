"""Money rounding and VAT application.

All amounts are Decimal. Rounding happens at explicit points only, using
ROUND_HALF_UP to the smallest currency unit (MONEY_QUANTUM, whole units by
default).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

MONEY_QUANTUM = Decimal("1")


class VatResult(NamedTuple):
    """VAT computed on a pre-tax amount."""

    vat_cost: Decimal
    total: Decimal


def money_quantum(decimals: int) -> Decimal:
    """Return the quantum for a currency with the given number of minor-unit digits.

    Example:
        >>> money_quantum(0)
        Decimal('1')
        >>> money_quantum(2)
        Decimal('0.01')
    """
    if decimals < 0:
        raise ValueError("Currency decimals cannot be negative")
    return Decimal(1).scaleb(-decimals)


def round_money(amount: Decimal, quantum: Decimal = MONEY_QUANTUM) -> Decimal:
    """Round an amount to the smallest currency unit (half-up)."""
    return Decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)


def apply_vat(
    gross_cost: Decimal,
    vat_rate: Decimal,
    quantum: Decimal = MONEY_QUANTUM,
) -> VatResult:
    """Apply a VAT rate to a pre-tax amount.

    Formula: vat_cost = round(gross_cost × vat_rate); total = gross_cost + vat_cost

    Args:
        gross_cost: Pre-tax amount, already rounded to the currency unit
        vat_rate: VAT rate as a fraction (0.10 for 10%)
        quantum: Smallest currency unit

    Returns:
        VatResult with the rounded VAT and the tax-inclusive total

    Raises:
        ValueError: If vat_rate is negative
    """
    if vat_rate < 0:
        raise ValueError("VAT rate cannot be negative")

    gross = Decimal(gross_cost)
    vat_cost = round_money(gross * Decimal(vat_rate), quantum)
    return VatResult(vat_cost=vat_cost, total=gross + vat_cost)


__all__ = ["MONEY_QUANTUM", "VatResult", "apply_vat", "money_quantum", "round_money"]
