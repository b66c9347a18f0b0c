"""Unit tests for fee detail composition."""

from datetime import date
from decimal import Decimal

import pytest

from src.models.fee_type import CalculationType
from src.services.billing_cycle_service import BillingPeriod
from src.services.errors import ConfigurationError, InvalidReadingError
from src.services.fee_detail_service import (
    AreaInput,
    QuantityInput,
    TieredInput,
    compose_fee_detail,
)
from src.services.rate_config_selector import select_quantity_rates

NOVEMBER = BillingPeriod(date(2025, 11, 1), date(2025, 11, 30))


class TestTieredDetail:
    """Test TIERED fee details."""

    def test_electricity_scenario(self, electricity_fee_type, reading_factory):
        """Readings 30 -> 120 bill 20x1500 + 50x2000 + 20x3000 plus 10% VAT."""
        config = electricity_fee_type.rate_configs[0]
        fee_input = TieredInput(
            current=reading_factory(120, date(2025, 11, 30)),
            previous=reading_factory(30, date(2025, 10, 31)),
        )

        detail = compose_fee_detail(electricity_fee_type, config, fee_input, NOVEMBER)

        assert detail.consumption == Decimal("90")
        assert detail.previous_reading == Decimal("30")
        assert detail.current_reading == Decimal("120")
        assert detail.previous_reading_date == date(2025, 10, 31)
        assert detail.current_reading_date == date(2025, 11, 30)
        assert detail.proration == Decimal(1)
        assert [t.consumption for t in detail.tier_details] == [
            Decimal("20"),
            Decimal("50"),
            Decimal("20"),
        ]
        assert [t.sub_total for t in detail.tier_details] == [
            Decimal("30000"),
            Decimal("100000"),
            Decimal("60000"),
        ]
        assert detail.sub_total == Decimal("190000")
        assert detail.gross_cost == Decimal("190000")
        assert detail.vat_rate == Decimal("0.10")
        assert detail.vat_cost == Decimal("19000")
        assert detail.total == Decimal("209000")
        assert detail.rate_config_id == 10
        assert detail.fee_type_id == 1
        assert detail.fee_type_name == "Electricity"
        assert detail.calculation_type == CalculationType.TIERED
        assert all(t.unit_name == "kWh" for t in detail.tier_details)

    def test_first_bill_measures_from_zero(self, electricity_fee_type, reading_factory):
        """Without a previous reading consumption equals the current reading."""
        config = electricity_fee_type.rate_configs[0]
        fee_input = TieredInput(current=reading_factory(40, date(2025, 11, 30)), previous=None)

        detail = compose_fee_detail(electricity_fee_type, config, fee_input, NOVEMBER)

        assert detail.previous_reading is None
        assert detail.previous_reading_date is None
        assert detail.consumption == Decimal("40")
        assert [t.consumption for t in detail.tier_details] == [
            Decimal("40"),
            Decimal("0"),
            Decimal("0"),
        ]
        assert detail.sub_total == Decimal("60000")

    def test_negative_consumption(self, electricity_fee_type, reading_factory):
        """A current reading below the previous one is rejected."""
        config = electricity_fee_type.rate_configs[0]
        fee_input = TieredInput(
            current=reading_factory(100, date(2025, 11, 30)),
            previous=reading_factory(150, date(2025, 10, 31)),
        )

        with pytest.raises(InvalidReadingError, match="Negative consumption"):
            compose_fee_detail(electricity_fee_type, config, fee_input, NOVEMBER)

    def test_missing_current_reading(self, electricity_fee_type):
        """A metered fee without any reading cannot be billed."""
        config = electricity_fee_type.rate_configs[0]

        with pytest.raises(
            InvalidReadingError, match="No current reading in period 2025-11-01..2025-11-30"
        ):
            compose_fee_detail(electricity_fee_type, config, TieredInput(current=None), NOVEMBER)

    def test_vat_not_applicable(self, electricity_fee_type, reading_factory):
        """VAT is forced to zero when the fee type is not VAT-applicable."""
        electricity_fee_type.is_vat_applicable = False
        config = electricity_fee_type.rate_configs[0]
        fee_input = TieredInput(current=reading_factory(40, date(2025, 11, 30)))

        detail = compose_fee_detail(electricity_fee_type, config, fee_input, NOVEMBER)

        assert detail.vat_rate == 0
        assert detail.vat_cost == 0
        assert detail.gross_cost == Decimal("60000")

    def test_bvmt_surcharge_is_taxed_once(self, electricity_fee_type, reading_factory):
        """The environmental surcharge is part of the pre-VAT subtotal and taxed once."""
        config = electricity_fee_type.rate_configs[0]
        config.bvmt_fee = Decimal("0.10")
        fee_input = TieredInput(
            current=reading_factory(120, date(2025, 11, 30)),
            previous=reading_factory(30, date(2025, 10, 31)),
        )

        detail = compose_fee_detail(electricity_fee_type, config, fee_input, NOVEMBER)

        assert sum(t.sub_total for t in detail.tier_details) == Decimal("190000")
        assert detail.bvmt_cost == Decimal("19000")
        assert detail.sub_total == Decimal("209000")
        assert detail.gross_cost == Decimal("209000")
        assert detail.vat_cost == Decimal("20900")
        assert detail.total == Decimal("229900")

    def test_half_period_scales_bounds_not_consumption(self, electricity_fee_type, reading_factory):
        """Fee applying from the 16th halves tier bounds; 60 kWh reaches band 3."""
        electricity_fee_type.apply_date = date(2025, 11, 16)
        config = electricity_fee_type.rate_configs[0]
        fee_input = TieredInput(current=reading_factory(60, date(2025, 11, 30)))

        detail = compose_fee_detail(electricity_fee_type, config, fee_input, NOVEMBER)

        assert detail.proration == Decimal("0.5")
        assert detail.consumption == Decimal("60")
        assert [(t.consumption_start, t.consumption_end) for t in detail.tier_details] == [
            (Decimal("0"), Decimal("25")),
            (Decimal("25"), Decimal("50")),
            (Decimal("50"), None),
        ]
        assert [
            (t.consumption_start_original, t.consumption_end_original) for t in detail.tier_details
        ] == [
            (Decimal("0"), Decimal("50")),
            (Decimal("50"), Decimal("100")),
            (Decimal("100"), None),
        ]
        assert [t.consumption for t in detail.tier_details] == [
            Decimal("25"),
            Decimal("25"),
            Decimal("10"),
        ]
        # 25x1500 + 25x2000 + 10x3000
        assert detail.sub_total == Decimal("117500")

    def test_zero_overlap_keeps_detail(self, electricity_fee_type, reading_factory):
        """A fee starting after the period still yields a zero detail with tier snapshots."""
        electricity_fee_type.apply_date = date(2025, 12, 1)
        config = electricity_fee_type.rate_configs[0]
        fee_input = TieredInput(current=reading_factory(60, date(2025, 11, 30)))

        detail = compose_fee_detail(electricity_fee_type, config, fee_input, NOVEMBER)

        assert detail.proration == 0
        assert detail.sub_total == 0
        assert detail.vat_cost == 0
        assert len(detail.tier_details) == 3
        assert all(t.consumption == 0 for t in detail.tier_details)

    def test_zero_overlap_without_reading(self, electricity_fee_type):
        """A fee not started yet needs no meter reading; the line is zero."""
        electricity_fee_type.apply_date = date(2026, 1, 1)
        config = electricity_fee_type.rate_configs[0]

        detail = compose_fee_detail(
            electricity_fee_type, config, TieredInput(current=None), NOVEMBER
        )

        assert detail.proration == 0
        assert detail.consumption == 0
        assert detail.current_reading is None
        assert detail.current_reading_date is None
        assert detail.previous_reading is None
        assert detail.sub_total == 0
        assert detail.gross_cost == 0
        assert detail.vat_cost == 0
        assert [t.consumption for t in detail.tier_details] == [0, 0, 0]
        assert [t.consumption_end_original for t in detail.tier_details] == [
            Decimal("50"),
            Decimal("100"),
            None,
        ]

    def test_tier_gap_is_configuration_error(self, electricity_fee_type, reading_factory):
        """A broken tier table fails even when nothing would land in the gap."""
        config = electricity_fee_type.rate_configs[0]
        config.tiers[1].consumption_start = Decimal("60")
        fee_input = TieredInput(current=reading_factory(10, date(2025, 11, 30)))

        with pytest.raises(ConfigurationError):
            compose_fee_detail(electricity_fee_type, config, fee_input, NOVEMBER)


class TestAreaDetail:
    """Test AREA fee details."""

    def test_area_scenario(self, management_fee_type):
        """10,000 per m² on 45.5 m² for a full period is 455,000."""
        detail = compose_fee_detail(
            management_fee_type, None, AreaInput(area=Decimal("45.5")), NOVEMBER
        )

        assert detail.sub_total == Decimal("455000")
        assert detail.gross_cost == Decimal("455000")
        assert detail.proration == Decimal(1)
        assert detail.quantity == Decimal("45.5")
        assert detail.consumption is None
        assert detail.tier_details == []

    def test_area_prorated_subtotal(self, management_fee_type):
        """Half a period halves the area charge."""
        management_fee_type.apply_date = date(2025, 11, 16)

        detail = compose_fee_detail(
            management_fee_type, None, AreaInput(area=Decimal("45.5")), NOVEMBER
        )

        assert detail.sub_total == Decimal("227500")

    def test_area_vat(self, management_fee_type):
        """AREA fees use the fee type's default VAT rate."""
        management_fee_type.default_vat_rate = Decimal("0.08")

        detail = compose_fee_detail(
            management_fee_type, None, AreaInput(area=Decimal("45.5")), NOVEMBER
        )

        assert detail.vat_cost == Decimal("36400")

    def test_area_without_rate(self, management_fee_type):
        """An AREA fee type needs a default rate."""
        management_fee_type.default_rate = None

        with pytest.raises(ConfigurationError):
            compose_fee_detail(management_fee_type, None, AreaInput(area=Decimal("45.5")), NOVEMBER)

    def test_wrong_input_variant(self, management_fee_type):
        """Passing a metered input to an AREA fee is a configuration error."""
        with pytest.raises(ConfigurationError, match="AreaInput"):
            compose_fee_detail(management_fee_type, None, TieredInput(current=None), NOVEMBER)


class TestQuantityDetail:
    """Test QUANTITY fee details."""

    def test_quantity_charge(self, parking_fee_type):
        """One car and two motorbikes at 10% VAT."""
        rates = select_quantity_rates(parking_fee_type.quantity_rates)
        fee_input = QuantityInput(quantities={"car": Decimal("1"), "motorbike": Decimal("2")})

        detail = compose_fee_detail(parking_fee_type, rates, fee_input, NOVEMBER)

        assert detail.quantity == Decimal("3")
        assert detail.sub_total == Decimal("1400000")
        assert detail.vat_rate == Decimal("0.10")
        assert detail.vat_cost == Decimal("140000")

    def test_quantity_not_prorated(self, parking_fee_type):
        """Operator quantities are billed as entered on a partial period."""
        parking_fee_type.apply_date = date(2025, 11, 16)
        rates = select_quantity_rates(parking_fee_type.quantity_rates)

        detail = compose_fee_detail(
            parking_fee_type, rates, QuantityInput(quantities={"car": Decimal("1")}), NOVEMBER
        )

        assert detail.proration == Decimal("0.5")
        assert detail.sub_total == Decimal("1200000")

    def test_mixed_vat_rates(self, parking_fee_type):
        """Each VAT rate group is taxed at its own rate with one rounding."""
        parking_fee_type.quantity_rates[1].vat_rate = Decimal("0.05")
        rates = select_quantity_rates(parking_fee_type.quantity_rates)
        fee_input = QuantityInput(quantities={"car": Decimal("1"), "motorbike": Decimal("2")})

        detail = compose_fee_detail(parking_fee_type, rates, fee_input, NOVEMBER)

        assert detail.vat_cost == Decimal("130000")
        assert detail.vat_rate == Decimal("0.0929")

    def test_no_quantities(self, parking_fee_type):
        """Nothing entered bills zero."""
        rates = select_quantity_rates(parking_fee_type.quantity_rates)

        detail = compose_fee_detail(parking_fee_type, rates, QuantityInput(quantities={}), NOVEMBER)

        assert detail.sub_total == 0
        assert detail.vat_cost == 0

    def test_unknown_item_type(self, parking_fee_type):
        """Quantities for unconfigured items are rejected."""
        rates = select_quantity_rates(parking_fee_type.quantity_rates)

        with pytest.raises(ConfigurationError, match="truck"):
            compose_fee_detail(
                parking_fee_type, rates, QuantityInput(quantities={"truck": Decimal("1")}), NOVEMBER
            )

    def test_negative_quantity(self, parking_fee_type):
        """Negative quantities are rejected."""
        rates = select_quantity_rates(parking_fee_type.quantity_rates)

        with pytest.raises(ValueError):
            compose_fee_detail(
                parking_fee_type, rates, QuantityInput(quantities={"car": Decimal("-1")}), NOVEMBER
            )
