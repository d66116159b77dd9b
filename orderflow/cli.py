"""
Command line — thin shell over the pipeline and the stores.

Usage:
    orderflow init-db
    orderflow seed
    orderflow add-user alice --balance 100.00
    orderflow products
    orderflow user alice
    orderflow buy alice <product-id> <product-id>
    orderflow order <order-id>
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation

from kungfu import Ok, Error

from orderflow._logging import configure_logging
from orderflow.config import PurchasePolicy, Settings
from orderflow.domain import User
from orderflow.pipeline import OrderPipeline
from orderflow.seed import add_user, seed_catalog
from orderflow.store import Database, SQLAlchemyProductStore, SQLAlchemyUserStore


# ═══════════════════════════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════════════════════════

def _amount(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal amount: {raw!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orderflow",
        description="Atomic one-of-a-kind catalog purchases",
    )
    parser.add_argument("--database-url", help="Override ORDERFLOW_DATABASE_URL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create tables")
    commands.add_parser("seed", help="Seed the starter catalog")
    commands.add_parser("products", help="List products")

    add = commands.add_parser("add-user", help="Create a user")
    add.add_argument("username")
    add.add_argument("--balance", type=_amount, default=None)

    show_user = commands.add_parser("user", help="Show balance and owned products")
    show_user.add_argument("username")

    buy = commands.add_parser("buy", help="Purchase products for a user")
    buy.add_argument("username")
    buy.add_argument("product_ids", nargs="+")

    show_order = commands.add_parser("order", help="Show an order with its items")
    show_order.add_argument("order_id")

    return parser


# ═══════════════════════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════════════════════

async def _find_user(db: Database, username: str) -> User | None:
    async with db.session() as session:
        match await SQLAlchemyUserStore(session).fetch_by_username(username):
            case Ok(user):
                return user
            case Error(e):
                print(f"✗ {e.message}")
                return None


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    db = Database.from_settings(settings)
    policy = PurchasePolicy.from_settings(settings)
    pipeline = OrderPipeline(db, policy)

    try:
        match args.command:
            case "init-db":
                await db.create_all()
                print("✓ Tables created")

            case "seed":
                match await seed_catalog(db, policy):
                    case Ok(products):
                        print(f"✓ Seeded {len(products)} products")
                    case Error(e):
                        print(f"✗ {e.message}")
                        return 1

            case "products":
                async with db.session() as session:
                    listed = await SQLAlchemyProductStore(session).list_all()
                match listed:
                    case Ok(products):
                        for p in products:
                            print(f"  [{p.id}] {p.name:12} {p.price:>10}")
                    case Error(e):
                        print(f"✗ {e.message}")
                        return 1

            case "add-user":
                match await add_user(db, policy, args.username, args.balance):
                    case Ok(user):
                        print(f"✓ {user.username} [{user.id}] balance {user.balance}")
                    case Error(e):
                        print(f"✗ {e.message}")
                        return 1

            case "user":
                user = await _find_user(db, args.username)
                if user is None:
                    print(f"✗ No user named {args.username}")
                    return 1
                print(f"  {user.username} [{user.id}]")
                print(f"  balance: {user.balance}")
                print(f"  owns:    {', '.join(sorted(user.owned_product_ids)) or '-'}")

            case "buy":
                user = await _find_user(db, args.username)
                if user is None:
                    print(f"✗ No user named {args.username}")
                    return 1
                match await pipeline.create_order(user.id, list(args.product_ids)):
                    case Ok(created):
                        print(f"✓ Order {created.order.id} total {created.order.total}")
                        for p in created.products:
                            print(f"    {p.name:12} {p.price:>10}")
                    case Error(failure):
                        print(f"✗ [{failure.stage.value}] {failure.code}: {failure.message}")
                        if failure.product_ids:
                            print(f"    products: {', '.join(failure.product_ids)}")
                        return 1

            case "order":
                match await pipeline.get_order_with_items(args.order_id):
                    case Ok(None):
                        print(f"✗ Order {args.order_id} not found")
                        return 1
                    case Ok(found):
                        print(f"  order {found.order.id} user {found.order.user_id}")
                        print(f"  total {found.order.total} at {found.order.created_at:%Y-%m-%d %H:%M:%S}")
                        for item in found.lines:
                            print(
                                f"    {item.product.name:12} paid {item.line.price:>10}"
                                f"  now {item.product.price:>10}"
                            )
                    case Error(e):
                        print(f"✗ {e.message}")
                        return 1

        return 0

    finally:
        await db.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings()
    if args.database_url:
        settings = settings.model_copy(update={"database_url": args.database_url})

    configure_logging(settings)
    return asyncio.run(run_command(args, settings))


__all__ = ("build_parser", "run_command", "main")
