"""Apartment ORM model carrying the floor area used by area-based fees."""

from decimal import Decimal

from sqlalchemy import Boolean, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Apartment(Base, BaseModel):
    """Model representing a billable apartment.

    Only the fields the fee engine reads are kept here: the apartment code for
    display and the area (m²) used by AREA fee types. Inactive apartments are
    skipped by batch notice generation.
    """

    __tablename__ = "apartments"

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Apartment code as printed on notices (e.g., 'A-1203')",
    )

    area: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Floor area in square meters",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )

    fee_notices: Mapped[list["FeeNotice"]] = relationship(  # noqa: F821
        "FeeNotice",
        back_populates="apartment",
    )

    __table_args__ = (Index("idx_apartment_code", "code"),)

    def __repr__(self) -> str:
        return f"<Apartment(id={self.id}, code={self.code}, area={self.area})>"


__all__ = ["Apartment"]
