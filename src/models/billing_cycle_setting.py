"""Billing cycle settings: closing day and payment term for fee notices."""

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel


class BillingCycleSetting(Base, BaseModel):
    """Single-row settings table for the building's billing cycle.

    Attributes:
        closing_day_of_month: Day of month on which a billing cycle closes (1-31)
        payment_due_date: Number of days after the issue date a notice is due
    """

    __tablename__ = "billing_cycle_settings"

    closing_day_of_month: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Day of month the billing cycle closes (clamped to month length)",
    )
    payment_due_date: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Days between issue date and due date",
    )

    def __repr__(self) -> str:
        return (
            f"<BillingCycleSetting(closing_day_of_month={self.closing_day_of_month}, "
            f"payment_due_date={self.payment_due_date})>"
        )


__all__ = ["BillingCycleSetting"]
