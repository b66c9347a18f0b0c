"""Billing cycle helpers and the billing cycle settings store."""

import calendar
import logging
import re
from datetime import date, timedelta
from typing import NamedTuple

from sqlalchemy.orm import Session

from src.models.billing_cycle_setting import BillingCycleSetting
from src.services.audit_service import AuditService

logger = logging.getLogger(__name__)

_CYCLE_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


class BillingPeriod(NamedTuple):
    """Inclusive date range covered by one billing cycle."""

    start: date
    end: date


def parse_billing_cycle(billing_cycle: str) -> tuple[int, int]:
    """Parse a 'YYYY-MM' billing cycle.

    Raises:
        ValueError: If the string is not a valid year-month
    """
    match = _CYCLE_PATTERN.match(billing_cycle or "")
    if not match:
        raise ValueError(f"Billing cycle must be in YYYY-MM form, got '{billing_cycle}'")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in billing cycle '{billing_cycle}'")
    return year, month


def _closing_date(year: int, month: int, closing_day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(closing_day, last_day))


def billing_period(billing_cycle: str, closing_day_of_month: int | None = None) -> BillingPeriod:
    """Compute the date range of a billing cycle.

    Without a closing day the period is the calendar month. With closing day d, the
    cycle ends on day d of its month (clamped to the month length) and starts the day
    after the previous month's closing date.

    Example:
        >>> billing_period("2025-03")
        BillingPeriod(start=datetime.date(2025, 3, 1), end=datetime.date(2025, 3, 31))
        >>> billing_period("2025-03", 25)
        BillingPeriod(start=datetime.date(2025, 2, 26), end=datetime.date(2025, 3, 25))
    """
    year, month = parse_billing_cycle(billing_cycle)

    if closing_day_of_month is None:
        last_day = calendar.monthrange(year, month)[1]
        return BillingPeriod(date(year, month, 1), date(year, month, last_day))

    if not 1 <= closing_day_of_month <= 31:
        raise ValueError("Closing day of month must be between 1 and 31")

    end = _closing_date(year, month, closing_day_of_month)
    prev_year, prev_month = (year - 1, 12) if month == 1 else (year, month - 1)
    start = _closing_date(prev_year, prev_month, closing_day_of_month) + timedelta(days=1)
    return BillingPeriod(start, end)


def compute_due_date(issue_date: date, payment_due_date: int | None) -> date | None:
    """Due date = issue date + payment term in days (None when no term is configured)."""
    if payment_due_date is None:
        return None
    return issue_date + timedelta(days=payment_due_date)


class BillingCycleService:
    """Service for the building's billing cycle settings."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def get_settings(self) -> BillingCycleSetting | None:
        """Get the billing cycle settings row, if configured."""
        return self.db.query(BillingCycleSetting).order_by(BillingCycleSetting.id).first()

    def save_settings(
        self,
        closing_day_of_month: int,
        payment_due_date: int,
        actor_id: int | None = None,
    ) -> BillingCycleSetting:
        """Create or update the billing cycle settings.

        Args:
            closing_day_of_month: Day of month the cycle closes (1-31)
            payment_due_date: Days between issue and due date (>= 0)
            actor_id: Administrator making the change

        Returns:
            The saved BillingCycleSetting

        Raises:
            ValueError: If either value is out of range
        """
        if not 1 <= closing_day_of_month <= 31:
            raise ValueError("Closing day of month must be between 1 and 31")
        if payment_due_date < 0:
            raise ValueError("Payment due days cannot be negative")

        settings = self.get_settings()
        action = "update"
        if settings is None:
            settings = BillingCycleSetting(
                closing_day_of_month=closing_day_of_month,
                payment_due_date=payment_due_date,
            )
            self.db.add(settings)
            action = "create"
        else:
            settings.closing_day_of_month = closing_day_of_month
            settings.payment_due_date = payment_due_date

        self.db.flush()
        AuditService.log(
            self.db,
            "billing_cycle_setting",
            settings.id,
            action,
            actor_id,
            {"closing_day_of_month": closing_day_of_month, "payment_due_date": payment_due_date},
        )
        self.db.commit()
        logger.info(
            "Billing cycle settings saved: closing day %d, due after %d days",
            closing_day_of_month,
            payment_due_date,
        )
        return settings


__all__ = [
    "BillingCycleService",
    "BillingPeriod",
    "billing_period",
    "compute_due_date",
    "parse_billing_cycle",
]
