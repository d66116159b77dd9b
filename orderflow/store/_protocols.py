"""
Store protocols — the collaborators the order pipeline calls into.

All methods return Result for explicit error handling. "Not found" is
Ok(None), never an Error: Error is reserved for storage trouble.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from kungfu import Result
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow._types import Money, OrderId, ProductId, UserId
from orderflow.domain import (
    Order,
    OrderWithLines,
    Product,
    StoreError,
    User,
)


# ═══════════════════════════════════════════════════════════════════════════════
# UserStore
# ═══════════════════════════════════════════════════════════════════════════════


class UserStore(Protocol):
    async def fetch_with_owned_products(
        self, user_id: UserId
    ) -> Result[User | None, StoreError]:
        """
        User plus owned product ids in one read.

        Implementations lock the user row for the rest of the transaction
        where the backend supports it.
        """
        ...

    async def decrement_balance(
        self, user: User, amount: Money
    ) -> Result[User, StoreError]:
        """Subtract amount. Error if the result would be negative."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# ProductStore
# ═══════════════════════════════════════════════════════════════════════════════


class ProductStore(Protocol):
    async def fetch_by_ids(
        self, ids: frozenset[ProductId]
    ) -> Result[list[Product], StoreError]:
        """Products whose id is in ids. At most one row per id."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# OrderStore
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStore(Protocol):
    async def create(self, user_id: UserId, total: Money) -> Result[Order, StoreError]:
        ...

    async def create_lines(
        self,
        order_id: OrderId,
        lines: Sequence[tuple[ProductId, Money]],
    ) -> Result[int, StoreError]:
        """Insert one line per (product, price snapshot). Returns row count."""
        ...

    async def create_ownership_records(
        self,
        user_id: UserId,
        product_ids: Sequence[ProductId],
        order_id: OrderId,
    ) -> Result[int, StoreError]:
        """Insert one ownership row per product. Returns row count."""
        ...

    async def fetch_with_lines(
        self, order_id: OrderId
    ) -> Result[OrderWithLines | None, StoreError]:
        """Order, its lines, and each line's product as it is now."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Stores — one bundle per session
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Stores:
    """The three collaborators, all bound to the same session."""

    users: UserStore
    products: ProductStore
    orders: OrderStore


type StoreFactory = Callable[[AsyncSession], Stores]
"""Builds a Stores bundle for a session. Injected into the pipeline."""


__all__ = (
    "UserStore",
    "ProductStore",
    "OrderStore",
    "Stores",
    "StoreFactory",
)
