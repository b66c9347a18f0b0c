"""Fee configuration models: fee types, versioned rate configs, tiers and quantity rates."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class CalculationType(str, Enum):
    """How a fee type turns its configuration into a charge."""

    AREA = "AREA"
    """Rate per square meter of apartment area"""

    QUANTITY = "QUANTITY"
    """Flat unit price times an operator-supplied quantity (e.g., parked vehicles)"""

    TIERED = "TIERED"
    """Progressive tariff applied to metered consumption"""


class ConfigStatus(str, Enum):
    """Activation status of a tiered rate configuration."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class FeeType(Base, BaseModel):
    """A billable fee (management fee, electricity, water, parking...).

    Owns FeeRateConfig children for TIERED fees and QuantityRateConfig children for
    QUANTITY fees. AREA fees use default_rate and default_vat_rate directly.
    Fee types are soft-deactivated (is_active=False), never deleted.
    """

    __tablename__ = "fee_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    calculation_type: Mapped[CalculationType] = mapped_column(
        SQLEnum(CalculationType),
        nullable=False,
        comment="AREA, QUANTITY or TIERED",
    )
    is_vat_applicable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    default_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2),
        nullable=True,
        comment="Rate per m² for AREA fees",
    )
    default_vat_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 4),
        nullable=True,
        comment="VAT rate for AREA fees (e.g., 0.1000 for 10%)",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    apply_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="First day the fee is charged; earlier days of a cycle are prorated out",
    )

    rate_configs: Mapped[list["FeeRateConfig"]] = relationship(
        "FeeRateConfig",
        back_populates="fee_type",
        cascade="all, delete-orphan",
        order_by="FeeRateConfig.id",
    )
    quantity_rates: Mapped[list["QuantityRateConfig"]] = relationship(
        "QuantityRateConfig",
        back_populates="fee_type",
        cascade="all, delete-orphan",
        order_by="QuantityRateConfig.id",
    )

    def __repr__(self) -> str:
        return (
            f"<FeeType(id={self.id}, name={self.name}, "
            f"calculation_type={self.calculation_type}, is_active={self.is_active})>"
        )


class FeeRateConfig(Base, BaseModel):
    """One version of a tiered tariff for a fee type.

    At most one config per fee type is ACTIVE at any instant. Switching versions goes
    through FeeConfigurationService.activate, which deactivates all siblings in the
    same transaction.
    """

    __tablename__ = "fee_rate_configs"

    fee_type_id: Mapped[int] = mapped_column(
        ForeignKey("fee_types.id"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False, default=Decimal("0"))
    bvmt_fee: Mapped[Decimal] = mapped_column(
        Numeric(5, 4),
        nullable=False,
        default=Decimal("0"),
        comment="Environmental protection surcharge rate",
    )
    unit_name: Mapped[str] = mapped_column(String(20), nullable=False, default="kWh")
    apply_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[ConfigStatus] = mapped_column(
        SQLEnum(ConfigStatus),
        nullable=False,
        default=ConfigStatus.INACTIVE,
        index=True,
    )

    fee_type: Mapped["FeeType"] = relationship("FeeType", back_populates="rate_configs")
    tiers: Mapped[list["FeeTier"]] = relationship(
        "FeeTier",
        back_populates="rate_config",
        cascade="all, delete-orphan",
        order_by="FeeTier.tier_order",
    )

    __table_args__ = (Index("idx_rate_config_fee_type_status", "fee_type_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<FeeRateConfig(id={self.id}, fee_type_id={self.fee_type_id}, "
            f"name={self.name}, status={self.status})>"
        )


class FeeTier(Base, BaseModel):
    """A consumption band of a tiered tariff.

    consumption_end is None for the open-ended last tier.
    """

    __tablename__ = "fee_tiers"

    rate_config_id: Mapped[int] = mapped_column(
        ForeignKey("fee_rate_configs.id"),
        nullable=False,
        index=True,
    )
    tier_order: Mapped[int] = mapped_column(Integer, nullable=False)
    consumption_start: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    consumption_end: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    unit_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    rate_config: Mapped["FeeRateConfig"] = relationship("FeeRateConfig", back_populates="tiers")

    __table_args__ = (
        UniqueConstraint("rate_config_id", "tier_order", name="uq_fee_tier_config_order"),
    )

    def __repr__(self) -> str:
        return (
            f"<FeeTier(tier_order={self.tier_order}, start={self.consumption_start}, "
            f"end={self.consumption_end}, unit_rate={self.unit_rate})>"
        )


class QuantityRateConfig(Base, BaseModel):
    """Flat unit price for one item type of a QUANTITY fee (no tiers, no activation gate)."""

    __tablename__ = "quantity_rate_configs"

    fee_type_id: Mapped[int] = mapped_column(
        ForeignKey("fee_types.id"),
        nullable=False,
        index=True,
    )
    item_type: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False, default=Decimal("0"))

    fee_type: Mapped["FeeType"] = relationship("FeeType", back_populates="quantity_rates")

    __table_args__ = (
        UniqueConstraint("fee_type_id", "item_type", name="uq_quantity_rate_fee_type_item"),
    )

    def __repr__(self) -> str:
        return (
            f"<QuantityRateConfig(id={self.id}, item_type={self.item_type}, "
            f"unit_rate={self.unit_rate})>"
        )


__all__ = [
    "CalculationType",
    "ConfigStatus",
    "FeeType",
    "FeeRateConfig",
    "FeeTier",
    "QuantityRateConfig",
]
