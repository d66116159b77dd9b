"""
Seeding — starter catalog and user accounts.

Product data is reference data; seeding it twice is a no-op per name.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import structlog
from kungfu import Result, Ok, Error

from orderflow._types import Money
from orderflow.config import PurchasePolicy
from orderflow.domain import Product, StoreError, User
from orderflow.store import Database, SQLAlchemyProductStore, SQLAlchemyUserStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    name: str
    description: str
    price: Decimal


DEFAULT_CATALOG: tuple[CatalogEntry, ...] = (
    CatalogEntry("netflix", "Netflix Subscription", Decimal("75.99")),
    CatalogEntry("spotify", "Spotify Premium", Decimal("45.99")),
    CatalogEntry("gym", "Gym Membership", Decimal("120.00")),
    CatalogEntry("transport", "Transport Card", Decimal("89.90")),
    CatalogEntry("lunch", "Lunch Vouchers", Decimal("200.00")),
)


async def seed_catalog(
    database: Database,
    policy: PurchasePolicy,
    entries: tuple[CatalogEntry, ...] = DEFAULT_CATALOG,
) -> Result[list[Product], StoreError]:
    """Insert missing catalog entries. Returns the full seeded set."""
    seeded: list[Product] = []

    async with database.transaction() as session:
        products = SQLAlchemyProductStore(session)

        for entry in entries:
            if not policy.fits(entry.price):
                return Error(StoreError(
                    f"Price of {entry.name} ({entry.price}) has digits below {policy.currency_quantum}"
                ))

            match await products.fetch_by_name(entry.name):
                case Error(e):
                    return Error(e)
                case Ok(existing) if existing is not None:
                    seeded.append(existing)
                    continue
                case Ok(_):
                    pass

            match await products.create(
                entry.name, policy.quantize(entry.price), entry.description
            ):
                case Error(e):
                    return Error(e)
                case Ok(product):
                    logger.info("product seeded", name=product.name, price=str(product.price))
                    seeded.append(product)

        await session.commit()

    return Ok(seeded)


async def add_user(
    database: Database,
    policy: PurchasePolicy,
    username: str,
    balance: Money | None = None,
) -> Result[User, StoreError]:
    """New user with the policy's default starting balance unless given one."""
    starting = policy.default_balance if balance is None else balance
    if starting < 0:
        return Error(StoreError(f"Starting balance must not be negative, got {starting}"))
    if not policy.fits(starting):
        return Error(StoreError(
            f"Starting balance {starting} has digits below {policy.currency_quantum}"
        ))
    starting = policy.quantize(starting)

    async with database.transaction() as session:
        result = await SQLAlchemyUserStore(session).create(username, starting)
        match result:
            case Ok(user):
                await session.commit()
                logger.info("user created", user_id=user.id, balance=str(user.balance))
            case Error(e):
                logger.warning("user not created", username=username, reason=e.message)
        return result


__all__ = ("CatalogEntry", "DEFAULT_CATALOG", "seed_catalog", "add_user")
