"""Fixtures for integration tests: a small building stored through the services."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from src.models.apartment import Apartment
from src.models.fee_type import CalculationType
from src.services.fee_configuration_service import FeeConfigurationService, TierSpec
from src.services.fee_notice_service import FeeNoticeService
from src.services.utility_reading_service import UtilityReadingService


@pytest.fixture
def electricity_tier_specs():
    """Three-band electricity tariff as TierSpec rows."""
    return [
        TierSpec(1, Decimal("0"), Decimal("50"), Decimal("1500")),
        TierSpec(2, Decimal("50"), Decimal("100"), Decimal("2000")),
        TierSpec(3, Decimal("100"), None, Decimal("3000")),
    ]


@pytest.fixture
def config_service(db_session):
    return FeeConfigurationService(db_session)


@pytest.fixture
def reading_service(db_session):
    return UtilityReadingService(db_session)


@pytest.fixture
def notice_service(db_session):
    return FeeNoticeService(db_session)


@pytest.fixture
def building(db_session, config_service, reading_service, electricity_tier_specs):
    """Two apartments, three fee types and November readings for the first apartment."""
    first = Apartment(code="A-1203", area=Decimal("45.5"), is_active=True)
    second = Apartment(code="B-0501", area=Decimal("60"), is_active=True)
    db_session.add_all([first, second])
    db_session.commit()

    electricity = config_service.create_fee_type("Electricity", CalculationType.TIERED)
    tariff = config_service.add_rate_config(
        electricity.id, "Residential tariff", electricity_tier_specs, vat_rate=Decimal("0.10")
    )
    config_service.activate(tariff.id)

    management = config_service.create_fee_type(
        "Management fee",
        CalculationType.AREA,
        default_rate=Decimal("10000"),
        default_vat_rate=Decimal("0"),
    )

    parking = config_service.create_fee_type("Parking", CalculationType.QUANTITY)
    config_service.set_quantity_rate(parking.id, "car", Decimal("1200000"), Decimal("0.10"))
    config_service.set_quantity_rate(parking.id, "motorbike", Decimal("100000"), Decimal("0.10"))

    reading_service.record_reading(first.id, electricity.id, Decimal("30"), date(2025, 10, 31))
    reading_service.record_reading(first.id, electricity.id, Decimal("120"), date(2025, 11, 30))

    return SimpleNamespace(
        first=first,
        second=second,
        electricity=electricity,
        tariff=tariff,
        management=management,
        parking=parking,
    )
