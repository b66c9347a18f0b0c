"""Integration tests for meter reading storage."""

from datetime import date
from decimal import Decimal

import pytest


class TestRecordReading:
    """Test UtilityReadingService.record_reading()."""

    def test_latest_reading(self, reading_service, building):
        latest = reading_service.get_latest_reading(building.first.id, building.electricity.id)

        assert latest.current_reading == Decimal("120")
        assert latest.reading_date == date(2025, 11, 30)

    def test_latest_on_or_before(self, reading_service, building):
        latest = reading_service.get_latest_reading(
            building.first.id, building.electricity.id, on_or_before=date(2025, 11, 15)
        )

        assert latest.current_reading == Decimal("30")

    def test_no_readings(self, reading_service, building):
        assert reading_service.get_latest_reading(building.second.id, building.electricity.id) is None

    def test_list_readings_in_date_order(self, reading_service, building):
        reading_service.record_reading(
            building.first.id, building.electricity.id, Decimal("180"), date(2025, 12, 31)
        )

        values = [
            r.current_reading
            for r in reading_service.list_readings(building.first.id, building.electricity.id)
        ]

        assert values == [Decimal("30"), Decimal("120"), Decimal("180")]

    def test_date_must_follow_latest(self, reading_service, building):
        with pytest.raises(ValueError, match="must be after"):
            reading_service.record_reading(
                building.first.id, building.electricity.id, Decimal("150"), date(2025, 11, 30)
            )

    def test_lower_value_is_accepted(self, reading_service, building):
        """A meter going backwards is stored; billing rejects it later."""
        reading = reading_service.record_reading(
            building.first.id, building.electricity.id, Decimal("5"), date(2025, 12, 31)
        )

        assert reading.id is not None

    def test_negative_value(self, reading_service, building):
        with pytest.raises(ValueError, match="negative"):
            reading_service.record_reading(
                building.first.id, building.electricity.id, Decimal("-1"), date(2025, 12, 31)
            )

    def test_unmetered_fee_type(self, reading_service, building):
        with pytest.raises(ValueError, match="not metered"):
            reading_service.record_reading(
                building.first.id, building.management.id, Decimal("10"), date(2025, 12, 31)
            )

    def test_unknown_apartment(self, reading_service, building):
        with pytest.raises(ValueError, match="Apartment 999 not found"):
            reading_service.record_reading(
                999, building.electricity.id, Decimal("10"), date(2025, 12, 31)
            )
