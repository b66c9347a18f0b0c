"""Unit tests for effective rate configuration selection."""

from decimal import Decimal

import pytest

from src.models.fee_type import ConfigStatus, FeeRateConfig, QuantityRateConfig
from src.services.errors import ConsistencyError, NoActiveConfiguration
from src.services.rate_config_selector import select_effective_config, select_quantity_rates


def _config(config_id: int, status: ConfigStatus) -> FeeRateConfig:
    return FeeRateConfig(id=config_id, name=f"Config {config_id}", status=status, tiers=[])


class TestSelectEffectiveConfig:
    """Test ACTIVE config selection."""

    def test_single_active_config(self):
        """The only ACTIVE config is returned."""
        configs = [
            _config(1, ConfigStatus.INACTIVE),
            _config(2, ConfigStatus.ACTIVE),
            _config(3, ConfigStatus.INACTIVE),
        ]

        assert select_effective_config(configs).id == 2

    def test_no_active_config(self):
        """Zero ACTIVE configs raises NoActiveConfiguration."""
        with pytest.raises(NoActiveConfiguration):
            select_effective_config([_config(1, ConfigStatus.INACTIVE)])

    def test_no_configs_at_all(self):
        """A fee type without configs raises NoActiveConfiguration."""
        with pytest.raises(NoActiveConfiguration):
            select_effective_config([])

    def test_multiple_active_configs(self):
        """Two ACTIVE configs raises ConsistencyError instead of picking one."""
        configs = [_config(1, ConfigStatus.ACTIVE), _config(2, ConfigStatus.ACTIVE)]

        with pytest.raises(ConsistencyError, match="1, 2"):
            select_effective_config(configs)


class TestSelectQuantityRates:
    """Test quantity rate indexing."""

    def test_all_item_types_participate(self):
        """Every item type is returned, no activation gate."""
        rates = [
            QuantityRateConfig(item_type="car", unit_rate=Decimal("1200000"), vat_rate=Decimal("0")),
            QuantityRateConfig(item_type="bicycle", unit_rate=Decimal("30000"), vat_rate=Decimal("0")),
        ]

        result = select_quantity_rates(rates)

        assert set(result) == {"car", "bicycle"}
        assert result["car"].unit_rate == Decimal("1200000")

    def test_empty_rates(self):
        """No quantity rates raises NoActiveConfiguration."""
        with pytest.raises(NoActiveConfiguration):
            select_quantity_rates([])

    def test_duplicate_item_type(self):
        """The same item type twice raises ConsistencyError."""
        rates = [
            QuantityRateConfig(item_type="car", unit_rate=Decimal("1")),
            QuantityRateConfig(item_type="car", unit_rate=Decimal("2")),
        ]

        with pytest.raises(ConsistencyError):
            select_quantity_rates(rates)
