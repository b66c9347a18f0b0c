"""Fee notice models: the billed notice, its per-fee details and tier snapshots."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel
from src.models.fee_type import CalculationType


class NoticeStatus(str, Enum):
    """Lifecycle of a fee notice. Only DRAFT notices may be recomputed."""

    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    CANCELED = "CANCELED"


class PaymentStatus(str, Enum):
    """Payment state of a fee notice."""

    NOT_APPLICABLE = "N/A"
    UNPAID = "UNPAID"
    PAID = "PAID"


class FeeNotice(Base, BaseModel):
    """Bill for one apartment and one billing cycle.

    fee_details is replaced as a whole when a DRAFT is recomputed (delete-orphan
    cascade); it is frozen once the notice is ISSUED.
    """

    __tablename__ = "fee_notices"

    apartment_id: Mapped[int] = mapped_column(
        ForeignKey("apartments.id"),
        nullable=False,
        index=True,
    )
    billing_cycle: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="Billing cycle in YYYY-MM form",
    )
    status: Mapped[NoticeStatus] = mapped_column(
        SQLEnum(NoticeStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=NoticeStatus.DRAFT,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.NOT_APPLICABLE,
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)

    apartment: Mapped["Apartment"] = relationship(  # noqa: F821
        "Apartment",
        back_populates="fee_notices",
    )
    fee_details: Mapped[list["FeeDetail"]] = relationship(
        "FeeDetail",
        back_populates="fee_notice",
        cascade="all, delete-orphan",
        order_by="FeeDetail.position",
    )

    __table_args__ = (Index("idx_fee_notice_apartment_cycle", "apartment_id", "billing_cycle"),)

    def __repr__(self) -> str:
        return (
            f"<FeeNotice(id={self.id}, apartment_id={self.apartment_id}, "
            f"billing_cycle={self.billing_cycle}, status={self.status}, "
            f"total_amount={self.total_amount})>"
        )


class FeeDetail(Base, BaseModel):
    """One line item of a fee notice: the charge for a single fee type.

    sub_total is the pre-VAT charge, including the environmental surcharge
    (bvmt_cost, also stored on its own). gross_cost equals sub_total and is the
    VAT base; vat_cost is computed once on it. previous_reading is None on a first
    bill, where consumption is measured from zero.
    """

    __tablename__ = "fee_details"

    fee_notice_id: Mapped[int] = mapped_column(
        ForeignKey("fee_notices.id"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fee_type_id: Mapped[int] = mapped_column(ForeignKey("fee_types.id"), nullable=False)
    fee_type_name: Mapped[str] = mapped_column(String(100), nullable=False)
    calculation_type: Mapped[CalculationType] = mapped_column(
        SQLEnum(CalculationType),
        nullable=False,
    )
    rate_config_id: Mapped[int | None] = mapped_column(
        ForeignKey("fee_rate_configs.id"),
        nullable=True,
        comment="Tariff version used (TIERED only)",
    )

    # Metering (TIERED) or operator quantity (QUANTITY)
    consumption: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    previous_reading: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    previous_reading_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    current_reading: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    current_reading_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    proration: Mapped[Decimal] = mapped_column(Numeric(9, 6), nullable=False)

    # Amounts
    sub_total: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    bvmt_cost: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    gross_cost: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    vat_cost: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)

    fee_notice: Mapped["FeeNotice"] = relationship("FeeNotice", back_populates="fee_details")
    tier_details: Mapped[list["FeeTierDetail"]] = relationship(
        "FeeTierDetail",
        back_populates="fee_detail",
        cascade="all, delete-orphan",
        order_by="FeeTierDetail.tier_order",
    )

    @property
    def total(self) -> Decimal:
        """Line total including VAT."""
        return self.gross_cost + self.vat_cost

    def __repr__(self) -> str:
        return (
            f"<FeeDetail(fee_type_id={self.fee_type_id}, calculation_type={self.calculation_type}, "
            f"gross_cost={self.gross_cost}, vat_cost={self.vat_cost})>"
        )


class FeeTierDetail(Base, BaseModel):
    """Immutable snapshot of how consumption was allocated to one tariff tier.

    Keeps both the configured bounds and the prorated bounds actually used, so the
    notice stays auditable after the tariff is edited or replaced.
    """

    __tablename__ = "fee_tier_details"

    fee_detail_id: Mapped[int] = mapped_column(
        ForeignKey("fee_details.id"),
        nullable=False,
        index=True,
    )
    tier_order: Mapped[int] = mapped_column(Integer, nullable=False)
    consumption_start_original: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    consumption_end_original: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    consumption_start: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    consumption_end: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    unit_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    consumption: Mapped[Decimal] = mapped_column(
        Numeric(12, 3),
        nullable=False,
        comment="Consumption allocated to this tier",
    )
    sub_total: Mapped[Decimal] = mapped_column(Numeric(18, 5), nullable=False)
    unit_name: Mapped[str] = mapped_column(String(20), nullable=False)

    fee_detail: Mapped["FeeDetail"] = relationship("FeeDetail", back_populates="tier_details")

    def __repr__(self) -> str:
        return (
            f"<FeeTierDetail(tier_order={self.tier_order}, consumption={self.consumption}, "
            f"unit_rate={self.unit_rate})>"
        )


__all__ = ["FeeNotice", "FeeDetail", "FeeTierDetail", "NoticeStatus", "PaymentStatus"]
