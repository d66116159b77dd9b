"""
Stages 1–5 — pure decisions, no I/O.

Each stage takes what earlier stages produced (plus what the stores read)
and returns Ok(next value) or Error(OrderFailure). The runner calls them in
order and returns on the first Error.
"""

from __future__ import annotations

from collections.abc import Sequence

from kungfu import Result, Ok, Error

from orderflow._types import Money, ProductId
from orderflow.config import PurchasePolicy
from orderflow.domain import OrderFailure, OrderFailures, Product, Stage, User
from orderflow.pipeline._totals import (
    find_duplicates,
    missing_ids,
    order_total,
    owned_overlap,
)


# ═══════════════════════════════════════════════════════════════════════════════
# 1. Input
# ═══════════════════════════════════════════════════════════════════════════════

def validate_request(raw: object) -> Result[tuple[ProductId, ...], OrderFailure]:
    """
    Shape check of the requested ids.

    None and [] are EMPTY_REQUEST; anything that is not a list/tuple of
    non-empty strings is MALFORMED_REQUEST; repeated ids are
    DUPLICATE_IN_REQUEST (a shape error, unrelated to ownership).
    """
    if raw is None:
        return Error(OrderFailures.empty_request())

    if not isinstance(raw, (list, tuple)):
        return Error(OrderFailures.malformed_request(
            f"Expected a list of product ids, got {type(raw).__name__}"
        ))

    if not raw:
        return Error(OrderFailures.empty_request())

    if not all(isinstance(pid, str) and pid for pid in raw):
        return Error(OrderFailures.malformed_request(
            "Every product id must be a non-empty string"
        ))

    duplicates = find_duplicates(raw)
    if duplicates:
        return Error(OrderFailures.duplicate_in_request(duplicates))

    return Ok(tuple(raw))


# ═══════════════════════════════════════════════════════════════════════════════
# 2. User
# ═══════════════════════════════════════════════════════════════════════════════

def resolve_user(found: User | None) -> Result[User, OrderFailure]:
    if found is None:
        return Error(OrderFailures.user_not_found())
    return Ok(found)


# ═══════════════════════════════════════════════════════════════════════════════
# 3. Products
# ═══════════════════════════════════════════════════════════════════════════════

def match_products(
    requested: Sequence[ProductId],
    found: Sequence[Product],
) -> Result[tuple[Product, ...], OrderFailure]:
    """
    Require found ids == requested ids as sets.

    Returns the products in request order.
    """
    by_id = {p.id: p for p in found}
    missing = missing_ids(requested, found)

    if missing or by_id.keys() != set(requested):
        return Error(OrderFailures.products_not_found(missing))

    return Ok(tuple(by_id[pid] for pid in requested))


# ═══════════════════════════════════════════════════════════════════════════════
# 4. Ownership
# ═══════════════════════════════════════════════════════════════════════════════

def check_ownership(
    user: User,
    products: tuple[Product, ...],
) -> Result[tuple[Product, ...], OrderFailure]:
    overlap = owned_overlap(user, products)
    if overlap:
        return Error(OrderFailures.already_owned(overlap))
    return Ok(products)


# ═══════════════════════════════════════════════════════════════════════════════
# 5. Balance
# ═══════════════════════════════════════════════════════════════════════════════

def check_balance(
    user: User,
    products: tuple[Product, ...],
    policy: PurchasePolicy,
) -> Result[Money, OrderFailure]:
    """
    Exact total of the order. balance == total is allowed.

    The total is never rounded: it must equal the sum of the line prices.
    Prices with digits below the policy quantum (catalog entered under a
    finer policy) refuse the order instead of charging a rounded amount.
    """
    total = order_total(products)

    if not policy.fits(total):
        return Error(OrderFailures.persistence(
            Stage.BALANCE,
            f"Order total {total} has digits below the currency quantum {policy.currency_quantum}",
        ))

    if user.balance < total:
        return Error(OrderFailures.insufficient_balance(
            f"Balance {user.balance} is less than order total {total}"
        ))

    return Ok(total)


__all__ = (
    "validate_request",
    "resolve_user",
    "match_products",
    "check_ownership",
    "check_balance",
)
