"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from src.models.apartment import Apartment  # noqa: E402
from src.models.audit_log import AuditLog  # noqa: E402
from src.models.billing_cycle_setting import BillingCycleSetting  # noqa: E402
from src.models.fee_notice import (  # noqa: E402
    FeeDetail,
    FeeNotice,
    FeeTierDetail,
    NoticeStatus,
    PaymentStatus,
)
from src.models.fee_type import (  # noqa: E402
    CalculationType,
    ConfigStatus,
    FeeRateConfig,
    FeeTier,
    FeeType,
    QuantityRateConfig,
)
from src.models.utility_reading import UtilityReading  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "Apartment",
    "AuditLog",
    "BillingCycleSetting",
    "CalculationType",
    "ConfigStatus",
    "FeeType",
    "FeeRateConfig",
    "FeeTier",
    "QuantityRateConfig",
    "UtilityReading",
    "FeeNotice",
    "FeeDetail",
    "FeeTierDetail",
    "NoticeStatus",
    "PaymentStatus",
]
