"""Utility reading model - meter readings for tiered consumption billing."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel


class UtilityReading(Base, BaseModel):
    """Meter reading for one (apartment, fee type) pair.

    Readings are created once per meter-read event and never edited. The previous
    reading is the latest earlier reading of the same pair; consumption is the
    difference between the two.

    Attributes:
        apartment_id: Apartment the meter belongs to
        fee_type_id: TIERED fee type the meter is billed under
        current_reading: Cumulative meter value at reading_date
        reading_date: Date the meter was read
    """

    __tablename__ = "utility_readings"

    apartment_id: Mapped[int] = mapped_column(
        ForeignKey("apartments.id"),
        nullable=False,
    )
    fee_type_id: Mapped[int] = mapped_column(
        ForeignKey("fee_types.id"),
        nullable=False,
    )
    current_reading: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=3), nullable=False
    )
    reading_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        Index("idx_reading_apartment_fee_date", "apartment_id", "fee_type_id", "reading_date"),
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<UtilityReading(id={self.id}, apartment_id={self.apartment_id}, "
            f"fee_type_id={self.fee_type_id}, value={self.current_reading}, date={self.reading_date})>"
        )


__all__ = ["UtilityReading"]
