"""Fee notice aggregation and lifecycle management.

`aggregate` is the pure part: given configuration, readings and quantities it
returns a new, unsaved FeeNotice. `FeeNoticeService` loads those inputs from the
database, persists the result and drives DRAFT -> ISSUED -> PAID / CANCELED.
"""

import logging
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from src.models.apartment import Apartment
from src.models.billing_cycle_setting import BillingCycleSetting
from src.models.fee_notice import FeeNotice, NoticeStatus, PaymentStatus
from src.models.fee_type import CalculationType, FeeRateConfig, FeeType
from src.models.utility_reading import UtilityReading
from src.services.audit_service import AuditService
from src.services.billing_cycle_service import BillingPeriod, billing_period, compute_due_date
from src.services.errors import BillingError, ConfigurationError, NoticeStateError
from src.services.fee_detail_service import (
    AreaInput,
    QuantityInput,
    TieredInput,
    compose_fee_detail,
)
from src.services.rate_config_selector import select_effective_config, select_quantity_rates
from src.services.vat_service import MONEY_QUANTUM

logger = logging.getLogger(__name__)


class BatchGenerationResult(NamedTuple):
    """Outcome of generating one apartment's draft in a batch run."""

    apartment_id: int
    apartment_code: str
    notice_id: int | None
    total_amount: Decimal | None
    error: str | None


def _reading_pair(
    readings: Sequence[UtilityReading],
    apartment_id: int,
    fee_type_id: int,
    period: BillingPeriod,
) -> TieredInput:
    """Latest reading taken within the period and the reading just before it.

    A reading older than the period start belongs to an earlier cycle and is never
    the current one.
    """
    meter = sorted(
        (r for r in readings if r.apartment_id == apartment_id and r.fee_type_id == fee_type_id),
        key=lambda r: r.reading_date,
    )
    in_period = [r for r in meter if period.start <= r.reading_date <= period.end]
    if not in_period:
        return TieredInput(current=None, previous=None)

    current = in_period[-1]
    earlier = [r for r in meter if r.reading_date < current.reading_date]
    return TieredInput(current=current, previous=earlier[-1] if earlier else None)


def aggregate(
    apartment: Apartment,
    billing_cycle: str,
    selected_fee_type_ids: Sequence[int],
    readings: Sequence[UtilityReading],
    fee_types: Sequence[FeeType],
    issue_date: date,
    quantities: Mapping[int, Mapping[str, Decimal]] | None = None,
    settings: BillingCycleSetting | None = None,
    quantum: Decimal = MONEY_QUANTUM,
) -> FeeNotice:
    """Compute a complete DRAFT fee notice for one apartment and billing cycle.

    One FeeDetail per selected fee type, in selection order (duplicates ignored).
    total_amount = Σ gross_cost + Σ vat_cost. The same inputs always produce the
    same notice content.

    Args:
        apartment: Apartment being billed (area used by AREA fees)
        billing_cycle: Cycle in YYYY-MM form
        selected_fee_type_ids: Fee types to bill
        readings: Meter readings; only those of this apartment are used
        fee_types: Fee types with their rate configs and quantity rates loaded
        issue_date: Issue date printed on the notice
        quantities: fee_type_id -> {item_type: quantity} for QUANTITY fees
        settings: Billing cycle settings (closing day, payment term), optional
        quantum: Smallest currency unit

    Returns:
        New, unsaved FeeNotice with status DRAFT

    Raises:
        ConfigurationError: Unknown or inactive fee type, malformed tariff
        NoActiveConfiguration: A fee type has no usable configuration
        ConsistencyError: A fee type has several ACTIVE configurations
        InvalidReadingError: Readings cannot produce a valid consumption
    """
    closing_day = settings.closing_day_of_month if settings else None
    period = billing_period(billing_cycle, closing_day)
    fee_types_by_id = {fee_type.id: fee_type for fee_type in fee_types}
    quantities = quantities or {}

    details = []
    seen: set[int] = set()
    for fee_type_id in selected_fee_type_ids:
        if fee_type_id in seen:
            continue
        seen.add(fee_type_id)

        fee_type = fee_types_by_id.get(fee_type_id)
        if fee_type is None:
            raise ConfigurationError(f"Fee type {fee_type_id} not found")
        if not fee_type.is_active:
            raise ConfigurationError(f"Fee type '{fee_type.name}' is inactive")

        match fee_type.calculation_type:
            case CalculationType.AREA:
                config = None
                fee_input = AreaInput(area=Decimal(apartment.area))
            case CalculationType.QUANTITY:
                config = select_quantity_rates(fee_type.quantity_rates)
                fee_input = QuantityInput(quantities=quantities.get(fee_type_id, {}))
            case CalculationType.TIERED:
                config = select_effective_config(fee_type.rate_configs)
                fee_input = _reading_pair(readings, apartment.id, fee_type_id, period)
            case _:
                raise ConfigurationError(
                    f"Unsupported calculation type: {fee_type.calculation_type}"
                )

        detail = compose_fee_detail(fee_type, config, fee_input, period, quantum)
        detail.position = len(details)
        details.append(detail)

    total_amount = sum((d.gross_cost for d in details), Decimal(0)) + sum(
        (d.vat_cost for d in details), Decimal(0)
    )
    due_date = compute_due_date(issue_date, settings.payment_due_date if settings else None)

    logger.debug(
        "Aggregated notice for apartment %s cycle %s: %d detail(s), total %s",
        apartment.id,
        billing_cycle,
        len(details),
        total_amount,
    )

    return FeeNotice(
        apartment_id=apartment.id,
        billing_cycle=billing_cycle,
        status=NoticeStatus.DRAFT,
        payment_status=PaymentStatus.NOT_APPLICABLE,
        issue_date=issue_date,
        due_date=due_date,
        total_amount=total_amount,
        fee_details=details,
    )


class FeeNoticeService:
    """Service for fee notice generation and lifecycle transitions.

    Reads configuration and readings through the session, delegates the
    calculation to `aggregate`, and owns the transaction around the write: a
    failed calculation leaves nothing behind.
    """

    def __init__(self, db_session: Session, quantum: Decimal = MONEY_QUANTUM):
        """Initialize with database session and currency quantum."""
        self.db = db_session
        self.quantum = quantum

    def get(self, notice_id: int) -> FeeNotice | None:
        """Get fee notice by ID."""
        return self.db.get(FeeNotice, notice_id)

    def list_for_apartment(self, apartment_id: int) -> list[FeeNotice]:
        """List an apartment's notices, newest cycle first."""
        stmt = (
            select(FeeNotice)
            .where(FeeNotice.apartment_id == apartment_id)
            .order_by(FeeNotice.billing_cycle.desc(), FeeNotice.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_open_notice(self, apartment_id: int, billing_cycle: str) -> FeeNotice | None:
        """Get the non-canceled notice of an apartment for a cycle, if any."""
        stmt = select(FeeNotice).where(
            FeeNotice.apartment_id == apartment_id,
            FeeNotice.billing_cycle == billing_cycle,
            FeeNotice.status != NoticeStatus.CANCELED,
        )
        return self.db.execute(stmt).scalars().first()

    def _load_fee_types(self, fee_type_ids: Sequence[int]) -> list[FeeType]:
        stmt = (
            select(FeeType)
            .where(FeeType.id.in_(list(fee_type_ids)))
            .options(
                selectinload(FeeType.rate_configs).selectinload(FeeRateConfig.tiers),
                selectinload(FeeType.quantity_rates),
            )
        )
        return list(self.db.execute(stmt).scalars().all())

    def _load_readings(self, apartment_id: int, fee_type_ids: Sequence[int]) -> list[UtilityReading]:
        stmt = (
            select(UtilityReading)
            .where(
                UtilityReading.apartment_id == apartment_id,
                UtilityReading.fee_type_id.in_(list(fee_type_ids)),
            )
            .order_by(UtilityReading.reading_date)
        )
        return list(self.db.execute(stmt).scalars().all())

    def _compute_and_store(
        self,
        apartment: Apartment,
        billing_cycle: str,
        fee_type_ids: Sequence[int],
        quantities: Mapping[int, Mapping[str, Decimal]] | None,
        issue_date: date,
        actor_id: int | None,
    ) -> FeeNotice:
        existing = self.get_open_notice(apartment.id, billing_cycle)
        if existing is not None and existing.status != NoticeStatus.DRAFT:
            raise NoticeStateError(
                f"Notice {existing.id} for apartment {apartment.id} cycle {billing_cycle} "
                f"is {existing.status.value} and cannot be recomputed"
            )

        settings = self.db.query(BillingCycleSetting).order_by(BillingCycleSetting.id).first()
        computed = aggregate(
            apartment=apartment,
            billing_cycle=billing_cycle,
            selected_fee_type_ids=fee_type_ids,
            readings=self._load_readings(apartment.id, fee_type_ids),
            fee_types=self._load_fee_types(fee_type_ids),
            issue_date=issue_date,
            quantities=quantities,
            settings=settings,
            quantum=self.quantum,
        )

        if existing is None:
            self.db.add(computed)
            self.db.flush()
            AuditService.log(
                self.db,
                "fee_notice",
                computed.id,
                "create",
                actor_id,
                {"billing_cycle": billing_cycle, "total_amount": str(computed.total_amount)},
            )
            return computed

        # Recompute replaces the whole detail set; old details and their tier
        # snapshots are deleted as orphans.
        details = list(computed.fee_details)
        computed.fee_details = []
        existing.fee_details = details
        existing.issue_date = computed.issue_date
        existing.due_date = computed.due_date
        existing.total_amount = computed.total_amount
        self.db.flush()
        AuditService.log(
            self.db,
            "fee_notice",
            existing.id,
            "recompute",
            actor_id,
            {"billing_cycle": billing_cycle, "total_amount": str(existing.total_amount)},
        )
        return existing

    def generate_draft(
        self,
        apartment_id: int,
        billing_cycle: str,
        fee_type_ids: Sequence[int],
        quantities: Mapping[int, Mapping[str, Decimal]] | None = None,
        issue_date: date | None = None,
        actor_id: int | None = None,
    ) -> FeeNotice:
        """Create or recompute the DRAFT notice of an apartment for a cycle.

        Args:
            apartment_id: Apartment to bill
            billing_cycle: Cycle in YYYY-MM form
            fee_type_ids: Fee types to include
            quantities: fee_type_id -> {item_type: quantity} for QUANTITY fees
            issue_date: Issue date (default: today)
            actor_id: Administrator generating the notice

        Returns:
            The persisted DRAFT FeeNotice

        Raises:
            ValueError: If the apartment does not exist or no fee type is selected
            NoticeStateError: If the cycle already has an ISSUED notice
            BillingError: Any calculation error; the transaction is rolled back
        """
        apartment = self.db.get(Apartment, apartment_id)
        if apartment is None:
            raise ValueError(f"Apartment {apartment_id} not found")
        if not fee_type_ids:
            raise ValueError("At least one fee type must be selected")

        try:
            notice = self._compute_and_store(
                apartment,
                billing_cycle,
                fee_type_ids,
                quantities,
                issue_date or date.today(),
                actor_id,
            )
            self.db.commit()
        except (BillingError, ValueError) as e:
            self.db.rollback()
            logger.error(
                "Fee notice generation failed for apartment %d cycle %s: %s",
                apartment_id,
                billing_cycle,
                e,
            )
            raise

        self.db.refresh(notice)
        logger.info(
            "Draft fee notice %d for apartment %s cycle %s: total %s",
            notice.id,
            apartment.code,
            billing_cycle,
            notice.total_amount,
        )
        return notice

    def generate_drafts_for_building(
        self,
        billing_cycle: str,
        fee_type_ids: Sequence[int],
        quantities_by_apartment: Mapping[int, Mapping[int, Mapping[str, Decimal]]] | None = None,
        issue_date: date | None = None,
        actor_id: int | None = None,
    ) -> list[BatchGenerationResult]:
        """Generate DRAFT notices for every active apartment.

        Each apartment runs in its own savepoint: a failure is reported in its
        result row and does not affect the other apartments.

        Args:
            billing_cycle: Cycle in YYYY-MM form
            fee_type_ids: Fee types to include for every apartment
            quantities_by_apartment: apartment_id -> QUANTITY inputs
            issue_date: Issue date (default: today)
            actor_id: Administrator running the batch

        Returns:
            One BatchGenerationResult per active apartment, ordered by code
        """
        if not fee_type_ids:
            raise ValueError("At least one fee type must be selected")

        issue_date = issue_date or date.today()
        quantities_by_apartment = quantities_by_apartment or {}
        apartments = (
            self.db.execute(
                select(Apartment).where(Apartment.is_active).order_by(Apartment.code)
            )
            .scalars()
            .all()
        )

        results = []
        for apartment in apartments:
            savepoint = self.db.begin_nested()
            try:
                notice = self._compute_and_store(
                    apartment,
                    billing_cycle,
                    fee_type_ids,
                    quantities_by_apartment.get(apartment.id),
                    issue_date,
                    actor_id,
                )
                savepoint.commit()
                results.append(
                    BatchGenerationResult(
                        apartment.id, apartment.code, notice.id, notice.total_amount, None
                    )
                )
            except (BillingError, ValueError) as e:
                savepoint.rollback()
                logger.warning(
                    "Skipping apartment %s in batch for cycle %s: %s",
                    apartment.code,
                    billing_cycle,
                    e,
                )
                results.append(
                    BatchGenerationResult(apartment.id, apartment.code, None, None, str(e))
                )

        self.db.commit()
        failed = sum(1 for r in results if r.error)
        logger.info(
            "Batch generation for cycle %s: %d succeeded, %d failed",
            billing_cycle,
            len(results) - failed,
            failed,
        )
        return results

    def _get_or_raise(self, notice_id: int) -> FeeNotice:
        notice = self.get(notice_id)
        if notice is None:
            raise ValueError(f"Fee notice {notice_id} not found")
        return notice

    def issue(self, notice_id: int, actor_id: int | None = None) -> FeeNotice:
        """Freeze a DRAFT notice: DRAFT -> ISSUED, payment status UNPAID.

        Raises:
            ValueError: If the notice does not exist
            NoticeStateError: If the notice is not a DRAFT
        """
        notice = self._get_or_raise(notice_id)
        if notice.status != NoticeStatus.DRAFT:
            raise NoticeStateError(
                f"Only DRAFT notices can be issued (notice {notice_id} is {notice.status.value})"
            )

        notice.status = NoticeStatus.ISSUED
        notice.payment_status = PaymentStatus.UNPAID
        AuditService.log(self.db, "fee_notice", notice.id, "issue", actor_id, {"status": "ISSUED"})
        self.db.commit()
        logger.info("Issued fee notice %d (total %s)", notice.id, notice.total_amount)
        return notice

    def cancel(self, notice_id: int, actor_id: int | None = None) -> FeeNotice:
        """Cancel a DRAFT or unpaid ISSUED notice.

        Raises:
            ValueError: If the notice does not exist
            NoticeStateError: If the notice is already canceled or paid
        """
        notice = self._get_or_raise(notice_id)
        if notice.status == NoticeStatus.CANCELED:
            raise NoticeStateError(f"Notice {notice_id} is already canceled")
        if notice.payment_status == PaymentStatus.PAID:
            raise NoticeStateError(f"Notice {notice_id} is paid and cannot be canceled")

        notice.status = NoticeStatus.CANCELED
        notice.payment_status = PaymentStatus.NOT_APPLICABLE
        AuditService.log(self.db, "fee_notice", notice.id, "cancel", actor_id, {"status": "CANCELED"})
        self.db.commit()
        logger.info("Canceled fee notice %d", notice.id)
        return notice

    def mark_paid(self, notice_id: int, actor_id: int | None = None) -> FeeNotice:
        """Record payment of an ISSUED notice.

        Raises:
            ValueError: If the notice does not exist
            NoticeStateError: If the notice is not ISSUED and UNPAID
        """
        notice = self._get_or_raise(notice_id)
        if notice.status != NoticeStatus.ISSUED or notice.payment_status != PaymentStatus.UNPAID:
            raise NoticeStateError(
                f"Only unpaid ISSUED notices can be marked paid (notice {notice_id} is "
                f"{notice.status.value}/{notice.payment_status.value})"
            )

        notice.payment_status = PaymentStatus.PAID
        AuditService.log(self.db, "fee_notice", notice.id, "pay", actor_id, {"payment_status": "PAID"})
        self.db.commit()
        logger.info("Fee notice %d marked as paid", notice.id)
        return notice


__all__ = ["BatchGenerationResult", "FeeNoticeService", "aggregate"]
