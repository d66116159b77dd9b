"""
Domain models — plain frozen records detached from the database session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from orderflow._types import ZERO, Money, OrderId, ProductId, UserId


# ═══════════════════════════════════════════════════════════════════════════════
# User
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class User:
    """
    A buyer and the products it already owns.

    owned_product_ids is derived from ownership records at read time,
    it is not a column on the user row.
    """

    id: UserId
    username: str
    balance: Money
    owned_product_ids: frozenset[ProductId] = field(default_factory=frozenset)

    def owns(self, product_id: ProductId) -> bool:
        return product_id in self.owned_product_ids


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Product:
    id: ProductId
    name: str
    price: Money
    description: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Order:
    id: OrderId
    user_id: UserId
    total: Money
    created_at: datetime


@dataclass(frozen=True, slots=True)
class OrderLine:
    """One purchased product. price is the snapshot taken at purchase time."""

    id: str
    order_id: OrderId
    product_id: ProductId
    price: Money


# ═══════════════════════════════════════════════════════════════════════════════
# Composite read models
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderWithProducts:
    """Successful pipeline output: the new order and what was bought."""

    order: Order
    products: tuple[Product, ...]


@dataclass(frozen=True, slots=True)
class LineWithProduct:
    """Order line next to the product's current catalog attributes."""

    line: OrderLine
    product: Product


@dataclass(frozen=True, slots=True)
class OrderWithLines:
    order: Order
    lines: tuple[LineWithProduct, ...]

    @property
    def lines_total(self) -> Money:
        return sum((item.line.price for item in self.lines), ZERO)


__all__ = (
    "User",
    "Product",
    "Order",
    "OrderLine",
    "OrderWithProducts",
    "LineWithProduct",
    "OrderWithLines",
)
