"""
SQLAlchemy stores — session-bound implementations of the store protocols.

Every store instance wraps one AsyncSession and never commits: the owner
of the session (the pipeline, the seeder, the CLI) decides when to commit.

Usage:
    async with db.transaction() as session:
        stores = sqlalchemy_stores(session)
        found = await stores.users.fetch_with_owned_products(user_id)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from decimal import Decimal

from kungfu import Result, Ok, Error
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow._types import Money, OrderId, ProductId, UserId
from orderflow.config import MONEY_QUANTUM, fits_quantum
from orderflow.domain import (
    LineWithProduct,
    Order,
    OrderLine,
    OrderWithLines,
    Product,
    StoreError,
    User,
)
from orderflow.store._protocols import Stores
from orderflow.store._tables import (
    OrderLineTable,
    OrderTable,
    OwnershipTable,
    ProductTable,
    UserTable,
    new_id,
    utcnow,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Row → domain
# ═══════════════════════════════════════════════════════════════════════════════

def _to_user(row: UserTable, owned: frozenset[ProductId]) -> User:
    return User(id=row.id, username=row.username, balance=row.balance, owned_product_ids=owned)


def _to_product(row: ProductTable) -> Product:
    return Product(id=row.id, name=row.name, price=row.price, description=row.description)


def _to_order(row: OrderTable) -> Order:
    return Order(id=row.id, user_id=row.user_id, total=row.total, created_at=row.created_at)


def _to_line(row: OrderLineTable) -> OrderLine:
    return OrderLine(id=row.id, order_id=row.order_id, product_id=row.product_id, price=row.price)


# ═══════════════════════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════════════════════

class SQLAlchemyUserStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def fetch_with_owned_products(
        self, user_id: UserId
    ) -> Result[User | None, StoreError]:
        """User row (locked FOR UPDATE) joined with its ownership rows."""
        try:
            stmt = (
                select(UserTable, OwnershipTable.product_id)
                .outerjoin(OwnershipTable, OwnershipTable.user_id == UserTable.id)
                .where(UserTable.id == user_id)
                .with_for_update(of=UserTable)
            )
            rows = (await self._session.execute(stmt)).all()

            if not rows:
                return Ok(None)

            owned = frozenset(pid for _, pid in rows if pid is not None)
            return Ok(_to_user(rows[0][0], owned))

        except Exception as e:
            return Error(StoreError(f"Failed to fetch user: {e}", e))

    async def decrement_balance(
        self, user: User, amount: Money
    ) -> Result[User, StoreError]:
        new_balance = user.balance - amount
        if new_balance < 0:
            return Error(StoreError(f"Balance of {user.id} would become {new_balance}"))

        try:
            result = await self._session.execute(
                update(UserTable)
                .where(UserTable.id == user.id)
                .values(balance=new_balance, updated_at=utcnow())
            )
            if result.rowcount != 1:  # type: ignore[attr-defined]
                return Error(StoreError(f"User {user.id} vanished during update"))

            return Ok(replace(user, balance=new_balance))

        except Exception as e:
            return Error(StoreError(f"Failed to update balance: {e}", e))

    async def create(self, username: str, balance: Money) -> Result[User, StoreError]:
        if balance < 0:
            return Error(StoreError(f"Balance must not be negative, got {balance}"))
        if not fits_quantum(balance, MONEY_QUANTUM):
            return Error(StoreError(f"Balance {balance} has digits below {MONEY_QUANTUM}"))
        try:
            row = UserTable(id=new_id(), username=username, balance=balance)
            self._session.add(row)
            await self._session.flush()
            return Ok(_to_user(row, frozenset()))

        except Exception as e:
            return Error(StoreError(f"Failed to create user: {e}", e))

    async def fetch_by_username(self, username: str) -> Result[User | None, StoreError]:
        try:
            user_id = (
                await self._session.execute(
                    select(UserTable.id).where(UserTable.username == username)
                )
            ).scalar_one_or_none()

        except Exception as e:
            return Error(StoreError(f"Failed to fetch user: {e}", e))

        if user_id is None:
            return Ok(None)
        return await self.fetch_with_owned_products(user_id)


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════

class SQLAlchemyProductStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def fetch_by_ids(
        self, ids: frozenset[ProductId]
    ) -> Result[list[Product], StoreError]:
        if not ids:
            return Ok([])
        try:
            rows = (
                await self._session.scalars(
                    select(ProductTable).where(ProductTable.id.in_(ids))
                )
            ).all()
            return Ok([_to_product(r) for r in rows])

        except Exception as e:
            return Error(StoreError(f"Failed to fetch products: {e}", e))

    async def list_all(self) -> Result[list[Product], StoreError]:
        try:
            rows = (
                await self._session.scalars(select(ProductTable).order_by(ProductTable.name))
            ).all()
            return Ok([_to_product(r) for r in rows])

        except Exception as e:
            return Error(StoreError(f"Failed to list products: {e}", e))

    async def fetch_by_name(self, name: str) -> Result[Product | None, StoreError]:
        try:
            row = (
                await self._session.scalars(
                    select(ProductTable).where(ProductTable.name == name)
                )
            ).one_or_none()
            return Ok(_to_product(row) if row else None)

        except Exception as e:
            return Error(StoreError(f"Failed to fetch product: {e}", e))

    async def create(
        self,
        name: str,
        price: Decimal,
        description: str | None = None,
        product_id: ProductId | None = None,
    ) -> Result[Product, StoreError]:
        if price <= 0:
            return Error(StoreError(f"Price must be positive, got {price}"))
        if not fits_quantum(price, MONEY_QUANTUM):
            return Error(StoreError(f"Price {price} has digits below {MONEY_QUANTUM}"))
        try:
            row = ProductTable(
                id=product_id or new_id(),
                name=name,
                price=price,
                description=description,
            )
            self._session.add(row)
            await self._session.flush()
            return Ok(_to_product(row))

        except Exception as e:
            return Error(StoreError(f"Failed to create product: {e}", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

class SQLAlchemyOrderStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, user_id: UserId, total: Money) -> Result[Order, StoreError]:
        try:
            row = OrderTable(id=new_id(), user_id=user_id, total=total, created_at=utcnow())
            self._session.add(row)
            await self._session.flush()
            return Ok(Order(id=row.id, user_id=user_id, total=total, created_at=row.created_at))

        except Exception as e:
            return Error(StoreError(f"Failed to create order: {e}", e))

    async def create_lines(
        self,
        order_id: OrderId,
        lines: Sequence[tuple[ProductId, Money]],
    ) -> Result[int, StoreError]:
        if not lines:
            return Ok(0)
        try:
            now = utcnow()
            ids = await self._session.scalars(
                insert(OrderLineTable).returning(OrderLineTable.id),
                [
                    {
                        "id": new_id(),
                        "order_id": order_id,
                        "product_id": product_id,
                        "price": price,
                        "position": position,
                        "created_at": now,
                    }
                    for position, (product_id, price) in enumerate(lines)
                ],
            )
            return Ok(len(ids.all()))

        except Exception as e:
            return Error(StoreError(f"Failed to create order lines: {e}", e))

    async def create_ownership_records(
        self,
        user_id: UserId,
        product_ids: Sequence[ProductId],
        order_id: OrderId,
    ) -> Result[int, StoreError]:
        if not product_ids:
            return Ok(0)
        try:
            now = utcnow()
            ids = await self._session.scalars(
                insert(OwnershipTable).returning(OwnershipTable.id),
                [
                    {
                        "id": new_id(),
                        "user_id": user_id,
                        "product_id": product_id,
                        "order_id": order_id,
                        "created_at": now,
                    }
                    for product_id in product_ids
                ],
            )
            return Ok(len(ids.all()))

        except Exception as e:
            return Error(StoreError(f"Failed to create ownership records: {e}", e))

    async def fetch_with_lines(
        self, order_id: OrderId
    ) -> Result[OrderWithLines | None, StoreError]:
        try:
            order_row = await self._session.get(OrderTable, order_id)
            if order_row is None:
                return Ok(None)

            rows = (
                await self._session.execute(
                    select(OrderLineTable, ProductTable)
                    .join(ProductTable, ProductTable.id == OrderLineTable.product_id)
                    .where(OrderLineTable.order_id == order_id)
                    .order_by(OrderLineTable.position)
                )
            ).all()

            return Ok(OrderWithLines(
                order=_to_order(order_row),
                lines=tuple(
                    LineWithProduct(line=_to_line(line), product=_to_product(product))
                    for line, product in rows
                ),
            ))

        except Exception as e:
            return Error(StoreError(f"Failed to fetch order: {e}", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Factory
# ═══════════════════════════════════════════════════════════════════════════════

def sqlalchemy_stores(session: AsyncSession) -> Stores:
    """Default StoreFactory: all three stores on one session."""
    return Stores(
        users=SQLAlchemyUserStore(session),
        products=SQLAlchemyProductStore(session),
        orders=SQLAlchemyOrderStore(session),
    )


__all__ = (
    "SQLAlchemyUserStore",
    "SQLAlchemyProductStore",
    "SQLAlchemyOrderStore",
    "sqlalchemy_stores",
)
