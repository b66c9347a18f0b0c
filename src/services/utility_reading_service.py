"""Metering source: records meter readings and serves them to fee notice generation."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from src.models.apartment import Apartment
from src.models.fee_type import CalculationType, FeeType
from src.models.utility_reading import UtilityReading
from src.services.audit_service import AuditService

logger = logging.getLogger(__name__)


class UtilityReadingService:
    """Service for meter readings of TIERED fees.

    Readings are append-only: a new reading must be dated after the latest one of
    the same (apartment, fee type) pair, and existing readings are never edited.
    """

    def __init__(self, db_session: Session) -> None:
        """Initialize service with database session.

        Args:
            db_session: SQLAlchemy session
        """
        self.db = db_session

    def get_latest_reading(
        self,
        apartment_id: int,
        fee_type_id: int,
        on_or_before: date | None = None,
    ) -> UtilityReading | None:
        """Get the latest reading of a meter, optionally at or before a date.

        Args:
            apartment_id: Apartment ID
            fee_type_id: TIERED fee type ID
            on_or_before: Only consider readings up to this date

        Returns:
            Latest UtilityReading or None if no readings exist
        """
        stmt = select(UtilityReading).where(
            UtilityReading.apartment_id == apartment_id,
            UtilityReading.fee_type_id == fee_type_id,
        )
        if on_or_before is not None:
            stmt = stmt.where(UtilityReading.reading_date <= on_or_before)
        stmt = stmt.order_by(desc(UtilityReading.reading_date)).limit(1)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_readings(self, apartment_id: int, fee_type_id: int) -> list[UtilityReading]:
        """List readings of a meter ordered by reading date."""
        stmt = (
            select(UtilityReading)
            .where(
                UtilityReading.apartment_id == apartment_id,
                UtilityReading.fee_type_id == fee_type_id,
            )
            .order_by(UtilityReading.reading_date)
        )
        return list(self.db.execute(stmt).scalars().all())

    def readings_for_apartment(
        self,
        apartment_id: int,
        on_or_before: date | None = None,
    ) -> list[UtilityReading]:
        """List all readings of an apartment across meters, ordered by reading date."""
        stmt = select(UtilityReading).where(UtilityReading.apartment_id == apartment_id)
        if on_or_before is not None:
            stmt = stmt.where(UtilityReading.reading_date <= on_or_before)
        stmt = stmt.order_by(UtilityReading.reading_date, UtilityReading.fee_type_id)
        return list(self.db.execute(stmt).scalars().all())

    def record_reading(
        self,
        apartment_id: int,
        fee_type_id: int,
        reading_value: Decimal,
        reading_date: date,
        actor_id: int | None = None,
    ) -> UtilityReading:
        """Record a new meter reading.

        A reading lower than the previous one is accepted here (meter replacement
        is handled by an administrator); the fee engine rejects the negative
        consumption it would produce.

        Args:
            apartment_id: Apartment ID
            fee_type_id: TIERED fee type the meter is billed under
            reading_value: Cumulative meter value
            reading_date: Date the meter was read
            actor_id: Administrator recording the reading

        Returns:
            Created UtilityReading

        Raises:
            ValueError: If the apartment or fee type is missing, the fee type is not
                TIERED, the value is negative, or the date is not after the latest reading
        """
        if self.db.get(Apartment, apartment_id) is None:
            raise ValueError(f"Apartment {apartment_id} not found")
        fee_type = self.db.get(FeeType, fee_type_id)
        if fee_type is None:
            raise ValueError(f"Fee type {fee_type_id} not found")
        if fee_type.calculation_type != CalculationType.TIERED:
            raise ValueError(f"Fee type '{fee_type.name}' is not metered")
        if reading_value < 0:
            raise ValueError("Reading value cannot be negative")

        latest = self.get_latest_reading(apartment_id, fee_type_id)
        if latest is not None and reading_date <= latest.reading_date:
            raise ValueError(
                f"Reading date {reading_date} must be after the latest reading "
                f"({latest.reading_date})"
            )

        reading = UtilityReading(
            apartment_id=apartment_id,
            fee_type_id=fee_type_id,
            current_reading=reading_value,
            reading_date=reading_date,
        )
        self.db.add(reading)
        self.db.flush()
        AuditService.log(
            self.db,
            "utility_reading",
            reading.id,
            "create",
            actor_id,
            {"value": str(reading_value), "date": reading_date.isoformat()},
        )
        self.db.commit()
        logger.info(
            "Recorded reading %s for apartment %d fee type %d on %s",
            reading_value,
            apartment_id,
            fee_type_id,
            reading_date,
        )
        return reading


__all__ = ["UtilityReadingService"]
