"""CLI entry point for fee notice generation and lifecycle commands.

Usage:
    python -m src.cli.billing init-db
    python -m src.cli.billing generate 12 2025-11 --fee-type 1 --fee-type 3 --quantity 2:car=1
    python -m src.cli.billing generate-all 2025-11 --fee-type 1 --fee-type 3
    python -m src.cli.billing issue 42
    python -m src.cli.billing show 42

Exit Codes:
    0 - Success
    1 - Failure: error encountered; nothing was written

Logging:
    INFO level logs to both stdout and logs/billing.log
"""

import argparse
import sys
from decimal import Decimal, InvalidOperation

from src.models.fee_notice import FeeNotice
from src.services.config import load_config
from src.services.errors import BillingError
from src.services.locale_service import format_amount, format_quantity, format_rate
from src.services.logging import setup_logging


def parse_quantities(values: list[str] | None) -> dict[int, dict[str, Decimal]]:
    """Parse repeated FEE_TYPE_ID:ITEM=QTY options into the QUANTITY input mapping.

    Example:
        >>> parse_quantities(["3:car=1", "3:motorbike=2"])
        {3: {'car': Decimal('1'), 'motorbike': Decimal('2')}}

    Raises:
        ValueError: If an option is malformed
    """
    quantities: dict[int, dict[str, Decimal]] = {}
    for value in values or []:
        try:
            fee_part, item_part = value.split(":", 1)
            item_type, qty = item_part.split("=", 1)
            quantities.setdefault(int(fee_part), {})[item_type.strip()] = Decimal(qty)
        except (ValueError, InvalidOperation) as e:
            raise ValueError(f"Invalid quantity '{value}', expected FEE_TYPE_ID:ITEM=QTY") from e
    return quantities


def render_notice(notice: FeeNotice, locale: str | None = None) -> str:
    """Render a fee notice as plain text."""
    lines = [
        f"Fee notice #{notice.id} - apartment {notice.apartment_id} - cycle {notice.billing_cycle}",
        f"Status: {notice.status.value} / {notice.payment_status.value}",
        f"Issue date: {notice.issue_date}  Due date: {notice.due_date or 'N/A'}",
        "",
    ]
    for detail in notice.fee_details:
        lines.append(f"{detail.fee_type_name} ({detail.calculation_type.value})")
        if detail.consumption is not None:
            unit = detail.tier_details[0].unit_name if detail.tier_details else None
            previous = format_quantity(detail.previous_reading, locale=locale)
            current = format_quantity(detail.current_reading, locale=locale)
            lines.append(
                f"  Readings: {previous} -> {current}  "
                f"Consumption: {format_quantity(detail.consumption, unit, locale=locale)}"
            )
        lines.append(f"  Proration: {format_rate(detail.proration, locale=locale)}")
        for tier in detail.tier_details:
            lines.append(
                f"    Tier {tier.tier_order}: "
                f"{format_quantity(tier.consumption, tier.unit_name, locale=locale)} x "
                f"{format_amount(tier.unit_rate, locale=locale)}"
            )
        lines.append(f"  Sub total: {format_amount(detail.sub_total, locale=locale)}")
        if detail.bvmt_cost:
            lines.append(f"  incl. BVMT: {format_amount(detail.bvmt_cost, locale=locale)}")
        lines.append(
            f"  VAT {format_rate(detail.vat_rate, locale=locale)}: "
            f"{format_amount(detail.vat_cost, locale=locale)}"
        )
    lines.append("")
    lines.append(f"Total: {format_amount(notice.total_amount, locale=locale)}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(prog="billing", description="Apartment fee notices")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables")

    generate = sub.add_parser("generate", help="Create or recompute a DRAFT notice")
    generate.add_argument("apartment_id", type=int)
    generate.add_argument("billing_cycle", help="YYYY-MM")
    generate.add_argument("--fee-type", type=int, action="append", required=True, dest="fee_types")
    generate.add_argument("--quantity", action="append", dest="quantities", help="FEE_TYPE_ID:ITEM=QTY")

    generate_all = sub.add_parser("generate-all", help="Create DRAFT notices for all apartments")
    generate_all.add_argument("billing_cycle", help="YYYY-MM")
    generate_all.add_argument("--fee-type", type=int, action="append", required=True, dest="fee_types")

    for name, help_text in (
        ("issue", "Issue a DRAFT notice"),
        ("cancel", "Cancel a notice"),
        ("pay", "Mark an issued notice as paid"),
        ("show", "Print a notice"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument("notice_id", type=int)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the billing CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
        logger = setup_logging(config.log_file)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    from src.services import SessionLocal, init_db
    from src.services.fee_notice_service import FeeNoticeService

    if args.command == "init-db":
        init_db()
        logger.info("Database tables created")
        return 0

    db = SessionLocal()
    try:
        service = FeeNoticeService(db, quantum=config.money_quantum)

        if args.command == "generate":
            notice = service.generate_draft(
                args.apartment_id,
                args.billing_cycle,
                args.fee_types,
                quantities=parse_quantities(args.quantities),
            )
        elif args.command == "generate-all":
            results = service.generate_drafts_for_building(args.billing_cycle, args.fee_types)
            for result in results:
                outcome = (
                    f"notice #{result.notice_id} {format_amount(result.total_amount, locale=config.locale)}"
                    if result.error is None
                    else f"FAILED: {result.error}"
                )
                print(f"{result.apartment_code}: {outcome}")
            return 0 if all(r.error is None for r in results) else 1
        elif args.command == "issue":
            notice = service.issue(args.notice_id)
        elif args.command == "cancel":
            notice = service.cancel(args.notice_id)
        elif args.command == "pay":
            notice = service.mark_paid(args.notice_id)
        else:
            notice = service.get(args.notice_id)
            if notice is None:
                logger.error("Fee notice %d not found", args.notice_id)
                return 1

        print(render_notice(notice, locale=config.locale))
        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except (BillingError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
