"""CLI for promo code management.

Usage:
    # Create tables
    manage-promos init-db

    # Create percent discount valid for January
    manage-promos create LAUNCH --type percentage --value 20 \
        --valid-from 2026-01-01 --valid-until 2026-01-31

    # Attributed to an affiliate, capped, limited to plans
    manage-promos create SALE --type fixed --value 50000 \
        --valid-from 2026-01-01 --valid-until 2026-03-31 \
        --referral AB12 --max-uses 100 --plans pemula,bisnis

    # List promos
    manage-promos list
    manage-promos list --active

    # Show, update, deactivate by full code
    manage-promos show AB12SALE
    manage-promos update AB12SALE --value 75000 --valid-until 2026-04-30
    manage-promos deactivate AB12SALE

    # Usage history and discount preview
    manage-promos usages AB12SALE
    manage-promos quote AB12SALE --plan bisnis --price 300000
"""

import argparse
import asyncio
import sys
from datetime import date
from decimal import Decimal
from uuid import UUID

from portal_promo.core.exceptions import AppException, ValidationError
from portal_promo.core.logging import get_logger, setup_logging
from portal_promo.db.models.promo_code import DiscountType
from portal_promo.db.session import async_session_factory, init_models, session_scope
from portal_promo.services.dto.promo import PromoCodeCreate, PromoCodeDTO, PromoCodeUpdate, PromoStatusFilter
from portal_promo.services.promo_service import PromoService

logger = get_logger(__name__)


def _print_promo(promo: PromoCodeDTO) -> None:
    print(f"Code: {promo.full_code}")
    print(f"ID: {promo.id}")
    print(f"Referral: {promo.referral_code or '-'}")
    print(f"Discount: {promo.discount_display} ({promo.discount_type.value})")
    print(f"Uses: {promo.current_uses}/{promo.max_uses or 'unlimited'}")
    print(f"Valid: {promo.valid_from} - {promo.valid_until}")
    print(f"Plans: {', '.join(promo.applicable_plans) or 'all'}")
    print(f"Status: {promo.status.value}")
    print(f"Created: {promo.created_at}")


async def init_db(args: argparse.Namespace) -> None:
    """Create database tables."""
    await init_models()
    print("Tables created")


async def create_promo(args: argparse.Namespace) -> None:
    """Create new promo code."""
    data = PromoCodeCreate(
        code=args.code,
        referral_code=args.referral,
        discount_type=DiscountType(args.type),
        discount_value=args.value,
        valid_from=args.valid_from,
        valid_until=args.valid_until,
        max_uses=args.max_uses,
        applicable_plans=args.plans or [],
    )

    async with session_scope(async_session_factory) as session:
        promo = await PromoService(session).create_promo(data, created_by=args.created_by)

    print(f"Created promo code: {promo.full_code}")
    _print_promo(promo)


async def list_promos(args: argparse.Namespace) -> None:
    """List promo codes."""
    status = None
    if args.active:
        status = PromoStatusFilter.ACTIVE
    elif args.inactive:
        status = PromoStatusFilter.INACTIVE

    async with session_scope(async_session_factory) as session:
        promos = await PromoService(session).list_promos(status)

    if not promos:
        print("No promo codes found")
        return

    print(f"{'Code':<22} {'Discount':<14} {'Uses':<12} {'Valid until':<12} {'Status':<10}")
    print("-" * 74)

    for p in promos:
        uses = f"{p.current_uses}/{p.max_uses}" if p.max_uses else str(p.current_uses)
        print(
            f"{p.full_code:<22} {p.discount_display:<14} "
            f"{uses:<12} {p.valid_until.isoformat():<12} {p.status.value:<10}"
        )


async def show_promo(args: argparse.Namespace) -> None:
    """Show promo code details."""
    async with session_scope(async_session_factory) as session:
        promo = await PromoService(session).get_by_full_code(args.code)

    _print_promo(promo)


async def update_promo(args: argparse.Namespace) -> None:
    """Update promo code fields given on the command line."""
    changes = {
        "referral_code": args.referral,
        "discount_type": DiscountType(args.type) if args.type else None,
        "discount_value": args.value,
        "valid_from": args.valid_from,
        "valid_until": args.valid_until,
        "max_uses": args.max_uses,
        "applicable_plans": args.plans,
        "is_active": args.active,
    }
    data = PromoCodeUpdate(**{k: v for k, v in changes.items() if v is not None})
    if not data.model_fields_set:
        print("Nothing to update")
        return

    async with session_scope(async_session_factory) as session:
        service = PromoService(session)
        promo = await service.get_by_full_code(args.code)
        promo = await service.update_promo(promo.id, data)

    print(f"Updated promo code: {promo.full_code}")
    _print_promo(promo)


async def deactivate_promo(args: argparse.Namespace) -> None:
    """Deactivate promo code."""
    async with session_scope(async_session_factory) as session:
        service = PromoService(session)
        promo = await service.get_by_full_code(args.code)

        if not promo.is_active:
            print(f"Promo code '{promo.full_code}' is already inactive")
            return

        await service.deactivate_promo(promo.id)

    print(f"Deactivated promo code: {promo.full_code}")


async def list_usages(args: argparse.Namespace) -> None:
    """Show usage history of a promo code."""
    async with session_scope(async_session_factory) as session:
        service = PromoService(session)
        promo = await service.get_by_full_code(args.code)
        usages = await service.list_usages(promo.id)

    if not usages:
        print(f"No usages for {promo.full_code}")
        return

    print(f"{'Date':<20} {'Tenant':<38} {'Invoice':<38} {'Discount':>12}")
    for u in usages:
        print(
            f"{u.created_at:%Y-%m-%d %H:%M}     {str(u.tenant_id):<38} "
            f"{str(u.invoice_id):<38} {u.discount_amount:>12}"
        )


async def quote_promo(args: argparse.Namespace) -> None:
    """Preview discount for a plan price."""
    async with session_scope(async_session_factory) as session:
        quote = await PromoService(session).quote(args.code, args.plan, args.price)

    print(f"Code: {quote.promo_code.full_code}")
    print(f"Validity: {quote.validity.value}")
    print(f"Price: {quote.original_amount}")
    print(f"Discount: {quote.discount_amount}")
    print(f"Total: {quote.final_amount}")


def _plans(value: str) -> list[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="manage-promos",
        description="Promo code management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    # Create command
    create_parser = subparsers.add_parser("create", help="Create promo code")
    create_parser.add_argument("code", help="Code suffix (will be uppercased)")
    create_parser.add_argument(
        "--type",
        "-t",
        required=True,
        choices=[t.value for t in DiscountType],
        help="Discount type",
    )
    create_parser.add_argument(
        "--value",
        "-v",
        type=Decimal,
        required=True,
        help="Discount value (percent or currency amount)",
    )
    create_parser.add_argument(
        "--valid-from",
        type=date.fromisoformat,
        default=date.today(),
        help="First valid day (YYYY-MM-DD, default today)",
    )
    create_parser.add_argument(
        "--valid-until",
        type=date.fromisoformat,
        required=True,
        help="Last valid day (YYYY-MM-DD)",
    )
    create_parser.add_argument("--referral", "-r", help="Affiliate referral code prefix")
    create_parser.add_argument("--max-uses", "-m", type=int, help="Maximum uses limit")
    create_parser.add_argument("--plans", type=_plans, help="Comma-separated plan ids")
    create_parser.add_argument("--created-by", type=UUID, help="Creating portal user id")

    # List command
    list_parser = subparsers.add_parser("list", help="List promo codes")
    status_group = list_parser.add_mutually_exclusive_group()
    status_group.add_argument("--active", "-a", action="store_true", help="Only active codes")
    status_group.add_argument("--inactive", "-i", action="store_true", help="Only inactive codes")

    # Show command
    show_parser = subparsers.add_parser("show", help="Show promo details")
    show_parser.add_argument("code", help="Full promo code")

    # Update command
    update_parser = subparsers.add_parser("update", help="Update promo code")
    update_parser.add_argument("code", help="Full promo code")
    update_parser.add_argument("--type", "-t", choices=[t.value for t in DiscountType])
    update_parser.add_argument("--value", "-v", type=Decimal)
    update_parser.add_argument("--valid-from", type=date.fromisoformat)
    update_parser.add_argument("--valid-until", type=date.fromisoformat)
    update_parser.add_argument("--referral", "-r", help="Assign referral code (only if unset)")
    update_parser.add_argument("--max-uses", "-m", type=int)
    update_parser.add_argument("--plans", type=_plans)
    update_parser.add_argument(
        "--activate",
        dest="active",
        action="store_const",
        const=True,
        help="Switch the code back on",
    )

    # Deactivate command
    deact_parser = subparsers.add_parser("deactivate", help="Deactivate promo")
    deact_parser.add_argument("code", help="Full promo code")

    # Usages command
    usages_parser = subparsers.add_parser("usages", help="Show usage history")
    usages_parser.add_argument("code", help="Full promo code")

    # Quote command
    quote_parser = subparsers.add_parser("quote", help="Preview discount")
    quote_parser.add_argument("code", help="Full promo code")
    quote_parser.add_argument("--plan", required=True, help="Plan id")
    quote_parser.add_argument("--price", type=Decimal, required=True, help="Plan price")

    return parser


COMMANDS = {
    "init-db": init_db,
    "create": create_promo,
    "list": list_promos,
    "show": show_promo,
    "update": update_promo,
    "deactivate": deactivate_promo,
    "usages": list_usages,
    "quote": quote_promo,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    setup_logging()
    args = build_parser().parse_args(argv)

    try:
        asyncio.run(COMMANDS[args.command](args))
    except ValidationError as e:
        print("Error: validation failed", file=sys.stderr)
        for field, reason in e.errors.items():
            print(f"  {field}: {reason}", file=sys.stderr)
        return 1
    except AppException as e:
        logger.debug("Command %s failed: %r", args.command, e)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
