from dataclasses import dataclass
from decimal import Decimal

import pytest
import pytest_asyncio
from kungfu import Ok, Error
from sqlalchemy import func, select

from orderflow.config import PurchasePolicy
from orderflow.domain import Product, User
from orderflow.pipeline import OrderPipeline
from orderflow.seed import add_user
from orderflow.store import (
    Database,
    OrderLineTable,
    OrderTable,
    OwnershipTable,
    SQLAlchemyProductStore,
    UserTable,
)


@dataclass(frozen=True)
class Snapshot:
    """Everything a purchase may change, for before/after comparisons."""

    balance: Decimal | None
    orders: int
    lines: int
    ownerships: int


@pytest_asyncio.fixture
async def database(tmp_path):
    """Fresh SQLite file database per test."""
    db = Database.from_url(f"sqlite+aiosqlite:///{tmp_path / 'orderflow.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def policy():
    return PurchasePolicy()


@pytest.fixture
def pipeline(database, policy):
    return OrderPipeline(database, policy)


@pytest.fixture
def make_user(database, policy):
    async def _make(username: str = "alice", balance: str = "100.00") -> User:
        match await add_user(database, policy, username, Decimal(balance)):
            case Ok(user):
                return user
            case Error(e):
                raise AssertionError(f"could not create user: {e.message}")

    return _make


@pytest.fixture
def make_product(database):
    async def _make(name: str, price: str, product_id: str | None = None) -> Product:
        async with database.transaction() as session:
            result = await SQLAlchemyProductStore(session).create(
                name, Decimal(price), product_id=product_id
            )
            match result:
                case Ok(product):
                    await session.commit()
                    return product
                case Error(e):
                    raise AssertionError(f"could not create product: {e.message}")

    return _make


@pytest.fixture
def snapshot(database):
    async def _snapshot(user_id: str) -> Snapshot:
        async with database.session() as session:
            balance = await session.scalar(
                select(UserTable.balance).where(UserTable.id == user_id)
            )
            orders = await session.scalar(select(func.count()).select_from(OrderTable))
            lines = await session.scalar(select(func.count()).select_from(OrderLineTable))
            ownerships = await session.scalar(
                select(func.count()).select_from(OwnershipTable)
            )
        return Snapshot(balance, orders, lines, ownerships)

    return _snapshot
