"""Configuration store for fee types, tiered rate configs and quantity rates."""

import logging
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from src.models.fee_type import (
    CalculationType,
    ConfigStatus,
    FeeRateConfig,
    FeeTier,
    FeeType,
    QuantityRateConfig,
)
from src.services.audit_service import AuditService
from src.services.tier_service import validate_tier_table

logger = logging.getLogger(__name__)


class TierSpec(NamedTuple):
    """Tier definition supplied by an administrator."""

    tier_order: int
    consumption_start: Decimal
    consumption_end: Decimal | None
    unit_rate: Decimal


def _check_rate(value: Decimal | None, field: str) -> None:
    if value is not None and not Decimal(0) <= Decimal(value) <= Decimal(1):
        raise ValueError(f"{field} must be between 0 and 1, got {value}")


class FeeConfigurationService:
    """Service for fee configuration CRUD and rate config activation.

    The engine only reads what this service stores. Rate configs are created
    INACTIVE; `activate` is the single operation that changes which config is in
    force, and it switches all siblings in one transaction.
    """

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def list_fee_types(self, active_only: bool = False) -> list[FeeType]:
        """List fee types with their configs loaded.

        Args:
            active_only: Only return fee types that are not deactivated

        Returns:
            List of FeeType ordered by name
        """
        stmt = select(FeeType).options(
            selectinload(FeeType.rate_configs).selectinload(FeeRateConfig.tiers),
            selectinload(FeeType.quantity_rates),
        )
        if active_only:
            stmt = stmt.where(FeeType.is_active)
        return list(self.db.execute(stmt.order_by(FeeType.name)).scalars().all())

    def get_fee_type(self, fee_type_id: int) -> FeeType | None:
        """Get fee type by ID."""
        return self.db.get(FeeType, fee_type_id)

    def _get_fee_type_or_raise(self, fee_type_id: int) -> FeeType:
        fee_type = self.get_fee_type(fee_type_id)
        if fee_type is None:
            raise ValueError(f"Fee type {fee_type_id} not found")
        return fee_type

    def _get_config_or_raise(self, config_id: int) -> FeeRateConfig:
        config = self.db.get(FeeRateConfig, config_id)
        if config is None:
            raise ValueError(f"Rate config {config_id} not found")
        return config

    def create_fee_type(
        self,
        name: str,
        calculation_type: CalculationType,
        is_vat_applicable: bool = True,
        default_rate: Decimal | None = None,
        default_vat_rate: Decimal | None = None,
        apply_date: date | None = None,
        actor_id: int | None = None,
    ) -> FeeType:
        """Create a fee type.

        Args:
            name: Display name (e.g., "Management fee", "Electricity")
            calculation_type: AREA, QUANTITY or TIERED
            is_vat_applicable: Whether VAT is charged at all
            default_rate: Rate per m² (required for AREA)
            default_vat_rate: VAT rate for AREA fees
            apply_date: First day the fee is charged
            actor_id: Administrator creating the fee type

        Returns:
            Created FeeType

        Raises:
            ValueError: If the name is empty or rates are invalid
        """
        if not name or not name.strip():
            raise ValueError("Fee type name cannot be empty")
        if calculation_type == CalculationType.AREA:
            if default_rate is None or Decimal(default_rate) < 0:
                raise ValueError("AREA fee types need a non-negative default rate")
        _check_rate(default_vat_rate, "VAT rate")

        fee_type = FeeType(
            name=name.strip(),
            calculation_type=calculation_type,
            is_vat_applicable=is_vat_applicable,
            default_rate=default_rate,
            default_vat_rate=default_vat_rate,
            apply_date=apply_date,
            is_active=True,
        )
        self.db.add(fee_type)
        self.db.flush()
        AuditService.log(
            self.db,
            "fee_type",
            fee_type.id,
            "create",
            actor_id,
            {"name": fee_type.name, "calculation_type": calculation_type.value},
        )
        self.db.commit()
        logger.info("Created fee type %s (%s, ID=%d)", fee_type.name, calculation_type.value, fee_type.id)
        return fee_type

    def deactivate_fee_type(self, fee_type_id: int, actor_id: int | None = None) -> FeeType:
        """Soft-deactivate a fee type; it stays in the database for old notices.

        Raises:
            ValueError: If the fee type does not exist
        """
        fee_type = self._get_fee_type_or_raise(fee_type_id)
        fee_type.is_active = False
        AuditService.log(self.db, "fee_type", fee_type.id, "deactivate", actor_id)
        self.db.commit()
        logger.info("Deactivated fee type %d", fee_type_id)
        return fee_type

    def add_rate_config(
        self,
        fee_type_id: int,
        name: str,
        tiers: Sequence[TierSpec],
        vat_rate: Decimal = Decimal("0"),
        bvmt_fee: Decimal = Decimal("0"),
        unit_name: str = "kWh",
        apply_date: date | None = None,
        actor_id: int | None = None,
    ) -> FeeRateConfig:
        """Add a new (INACTIVE) tiered rate config to a TIERED fee type.

        Args:
            fee_type_id: Owning fee type
            name: Config name (e.g., "EVN tariff 2025")
            tiers: Tier table; validated before anything is stored
            vat_rate: VAT rate for this tariff
            bvmt_fee: Environmental surcharge rate
            unit_name: Consumption unit shown on notices
            apply_date: Date the tariff version takes effect
            actor_id: Administrator creating the config

        Returns:
            Created FeeRateConfig with status INACTIVE

        Raises:
            ValueError: If the fee type is missing or not TIERED, or rates are invalid
            ConfigurationError: If the tier table has gaps or overlaps
        """
        fee_type = self._get_fee_type_or_raise(fee_type_id)
        if fee_type.calculation_type != CalculationType.TIERED:
            raise ValueError(f"Fee type '{fee_type.name}' is not TIERED")
        _check_rate(vat_rate, "VAT rate")
        _check_rate(bvmt_fee, "BVMT fee")
        validate_tier_table(tiers)

        config = FeeRateConfig(
            fee_type_id=fee_type.id,
            name=name,
            vat_rate=vat_rate,
            bvmt_fee=bvmt_fee,
            unit_name=unit_name,
            apply_date=apply_date,
            status=ConfigStatus.INACTIVE,
            tiers=[FeeTier(**tier._asdict()) for tier in tiers],
        )
        self.db.add(config)
        self.db.flush()
        AuditService.log(
            self.db,
            "fee_rate_config",
            config.id,
            "create",
            actor_id,
            {"fee_type_id": fee_type.id, "tier_count": len(tiers)},
        )
        self.db.commit()
        logger.info("Added rate config %s (ID=%d) to fee type %d", name, config.id, fee_type.id)
        return config

    def replace_tiers(
        self,
        config_id: int,
        tiers: Sequence[TierSpec],
        actor_id: int | None = None,
    ) -> FeeRateConfig:
        """Replace a rate config's whole tier table.

        Notices already computed keep their own tier snapshots.

        Raises:
            ValueError: If the config does not exist
            ConfigurationError: If the new tier table has gaps or overlaps
        """
        config = self._get_config_or_raise(config_id)
        validate_tier_table(tiers)

        config.tiers = [FeeTier(**tier._asdict()) for tier in tiers]
        AuditService.log(
            self.db, "fee_rate_config", config.id, "replace_tiers", actor_id, {"tier_count": len(tiers)}
        )
        self.db.commit()
        logger.info("Replaced tiers of rate config %d (%d tiers)", config_id, len(tiers))
        return config

    def activate(self, config_id: int, actor_id: int | None = None) -> list[FeeRateConfig]:
        """Make one rate config the only ACTIVE config of its fee type.

        Siblings are deactivated and the target activated in the same transaction,
        so readers never observe zero or several ACTIVE configs.

        Args:
            config_id: Config to activate
            actor_id: Administrator making the change

        Returns:
            All configs of the fee type after the change, ordered by ID

        Raises:
            ValueError: If the config does not exist
            ConfigurationError: If the config's tier table is invalid
        """
        config = self._get_config_or_raise(config_id)
        validate_tier_table(config.tiers)
        fee_type_id = config.fee_type_id

        try:
            self.db.execute(
                update(FeeRateConfig)
                .where(FeeRateConfig.fee_type_id == fee_type_id, FeeRateConfig.id != config_id)
                .values(status=ConfigStatus.INACTIVE)
            )
            self.db.execute(
                update(FeeRateConfig)
                .where(FeeRateConfig.id == config_id)
                .values(status=ConfigStatus.ACTIVE)
            )
            AuditService.log(
                self.db, "fee_rate_config", config_id, "activate", actor_id, {"fee_type_id": fee_type_id}
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error("Activation of rate config %d failed", config_id, exc_info=True)
            raise

        logger.info("Activated rate config %d for fee type %d", config_id, fee_type_id)
        return list(
            self.db.execute(
                select(FeeRateConfig)
                .where(FeeRateConfig.fee_type_id == fee_type_id)
                .order_by(FeeRateConfig.id)
            )
            .scalars()
            .all()
        )

    def deactivate(self, config_id: int, actor_id: int | None = None) -> FeeRateConfig:
        """Deactivate a rate config. The fee type then has no ACTIVE config until one is activated.

        Raises:
            ValueError: If the config does not exist
        """
        config = self._get_config_or_raise(config_id)
        config.status = ConfigStatus.INACTIVE
        AuditService.log(self.db, "fee_rate_config", config.id, "deactivate", actor_id)
        self.db.commit()
        logger.info("Deactivated rate config %d", config_id)
        return config

    def set_quantity_rate(
        self,
        fee_type_id: int,
        item_type: str,
        unit_rate: Decimal,
        vat_rate: Decimal = Decimal("0"),
        actor_id: int | None = None,
    ) -> QuantityRateConfig:
        """Create or update the unit price of one item type of a QUANTITY fee.

        Raises:
            ValueError: If the fee type is missing or not QUANTITY, or values are invalid
        """
        fee_type = self._get_fee_type_or_raise(fee_type_id)
        if fee_type.calculation_type != CalculationType.QUANTITY:
            raise ValueError(f"Fee type '{fee_type.name}' is not QUANTITY")
        if not item_type or not item_type.strip():
            raise ValueError("Item type cannot be empty")
        if Decimal(unit_rate) < 0:
            raise ValueError("Unit rate cannot be negative")
        _check_rate(vat_rate, "VAT rate")

        item_type = item_type.strip()
        rate = self.db.execute(
            select(QuantityRateConfig).where(
                QuantityRateConfig.fee_type_id == fee_type_id,
                QuantityRateConfig.item_type == item_type,
            )
        ).scalar_one_or_none()

        action = "update"
        if rate is None:
            rate = QuantityRateConfig(fee_type_id=fee_type_id, item_type=item_type)
            self.db.add(rate)
            action = "create"
        rate.unit_rate = unit_rate
        rate.vat_rate = vat_rate

        self.db.flush()
        AuditService.log(
            self.db,
            "quantity_rate_config",
            rate.id,
            action,
            actor_id,
            {"item_type": item_type, "unit_rate": str(unit_rate)},
        )
        self.db.commit()
        logger.info("Quantity rate %s for fee type %d set to %s", item_type, fee_type_id, unit_rate)
        return rate


__all__ = ["FeeConfigurationService", "TierSpec"]
