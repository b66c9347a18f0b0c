"""Pytest configuration: in-memory database session and fee configuration fixtures."""

import os

# Set test database URL BEFORE any imports from src
# This ensures the SessionLocal and engine use an in-memory database
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.models import Base  # noqa: E402
from src.models.apartment import Apartment  # noqa: E402
from src.models.fee_type import (  # noqa: E402
    CalculationType,
    ConfigStatus,
    FeeRateConfig,
    FeeTier,
    FeeType,
    QuantityRateConfig,
)
from src.models.utility_reading import UtilityReading  # noqa: E402


@pytest.fixture
def db_session():
    """Create an in-memory database session with all tables."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN; emit it ourselves so SAVEPOINT works
    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


def make_tiers(*bands: tuple) -> list[FeeTier]:
    """Build FeeTier rows from (start, end, rate) tuples; end None = open-ended."""
    return [
        FeeTier(
            tier_order=order,
            consumption_start=Decimal(str(start)),
            consumption_end=None if end is None else Decimal(str(end)),
            unit_rate=Decimal(str(rate)),
        )
        for order, (start, end, rate) in enumerate(bands, start=1)
    ]


@pytest.fixture
def electricity_tiers() -> list[FeeTier]:
    """Three-band electricity tariff: 0-50 @1500, 50-100 @2000, 100+ @3000."""
    return make_tiers((0, 50, 1500), (50, 100, 2000), (100, None, 3000))


@pytest.fixture
def electricity_fee_type(electricity_tiers) -> FeeType:
    """Unsaved TIERED fee type with one ACTIVE config (VAT 10%, no surcharge)."""
    config = FeeRateConfig(
        id=10,
        name="Residential tariff",
        vat_rate=Decimal("0.10"),
        bvmt_fee=Decimal("0"),
        unit_name="kWh",
        status=ConfigStatus.ACTIVE,
        tiers=electricity_tiers,
    )
    return FeeType(
        id=1,
        name="Electricity",
        calculation_type=CalculationType.TIERED,
        is_vat_applicable=True,
        is_active=True,
        apply_date=None,
        rate_configs=[config],
    )


@pytest.fixture
def management_fee_type() -> FeeType:
    """Unsaved AREA fee type: 10,000 per m², no VAT rate configured."""
    return FeeType(
        id=2,
        name="Management fee",
        calculation_type=CalculationType.AREA,
        is_vat_applicable=True,
        default_rate=Decimal("10000"),
        default_vat_rate=Decimal("0"),
        is_active=True,
        apply_date=None,
    )


@pytest.fixture
def parking_fee_type() -> FeeType:
    """Unsaved QUANTITY fee type with car and motorbike prices."""
    return FeeType(
        id=3,
        name="Parking",
        calculation_type=CalculationType.QUANTITY,
        is_vat_applicable=True,
        is_active=True,
        apply_date=None,
        quantity_rates=[
            QuantityRateConfig(
                id=31, item_type="car", unit_rate=Decimal("1200000"), vat_rate=Decimal("0.10")
            ),
            QuantityRateConfig(
                id=32, item_type="motorbike", unit_rate=Decimal("100000"), vat_rate=Decimal("0.10")
            ),
        ],
    )


@pytest.fixture
def apartment() -> Apartment:
    """Unsaved apartment of 45.5 m²."""
    return Apartment(id=7, code="A-1203", area=Decimal("45.5"), is_active=True)


def make_reading(value, day: date, apartment_id: int = 7, fee_type_id: int = 1) -> UtilityReading:
    """Build an unsaved meter reading."""
    return UtilityReading(
        apartment_id=apartment_id,
        fee_type_id=fee_type_id,
        current_reading=Decimal(str(value)),
        reading_date=day,
    )


@pytest.fixture
def tier_factory():
    """Factory fixture for tier tables."""
    return make_tiers


@pytest.fixture
def reading_factory():
    """Factory fixture for meter readings."""
    return make_reading
