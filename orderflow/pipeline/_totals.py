"""
Totals & set helpers — order independent by construction.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

from orderflow._types import ZERO, Money, ProductId
from orderflow.domain import Product, User


def order_total(products: Iterable[Product]) -> Money:
    """Exact Decimal sum of prices. Permuting products never changes it."""
    return sum((p.price for p in products), ZERO)


def find_duplicates(ids: Sequence[ProductId]) -> frozenset[ProductId]:
    return frozenset(pid for pid, n in Counter(ids).items() if n > 1)


def missing_ids(
    requested: Iterable[ProductId],
    found: Iterable[Product],
) -> frozenset[ProductId]:
    return frozenset(requested) - {p.id for p in found}


def owned_overlap(user: User, products: Iterable[Product]) -> frozenset[ProductId]:
    """Requested products the user already owns."""
    return frozenset(p.id for p in products) & user.owned_product_ids


__all__ = ("order_total", "find_duplicates", "missing_ids", "owned_overlap")
