"""
Order pipeline — stages 1–6 inside one isolated transaction.

    pipeline = OrderPipeline(db, policy)
    result = await pipeline.create_order(user_id, ["netflix-id", "gym-id"])

    match result:
        case Ok(created):
            print(created.order.total)
        case Error(failure):
            print(failure.stage, failure.kind)

Stage 1 runs before the transaction opens. Stages 2–6 share one
transaction: the reads the decision is based on and the four writes either
commit together or not at all.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import structlog
from combinators import lift as L
from kungfu import Result, Ok, Error

from orderflow._types import Money, OrderId, ProductId, UserId
from orderflow.config import PurchasePolicy
from orderflow.domain import (
    Order,
    OrderFailure,
    OrderFailures,
    OrderWithLines,
    OrderWithProducts,
    Product,
    Stage,
    StoreError,
    User,
)
from orderflow.pipeline._stages import (
    check_balance,
    check_ownership,
    match_products,
    resolve_user,
    validate_request,
)
from orderflow.store import Database, StoreFactory, Stores, sqlalchemy_stores

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Purchase:
    """Everything stages 2–5 decided; the input of the commit."""

    user: User
    products: tuple[Product, ...]
    total: Money


def _stored[T](result: Result[T, StoreError], stage: Stage) -> Result[T, OrderFailure]:
    """Attribute a StoreError to the stage that hit it."""
    match result:
        case Ok(value):
            return Ok(value)
        case Error(e):
            return Error(OrderFailures.persistence(stage, e.message))


def _persistence(stage: Stage) -> Callable[[Exception], OrderFailure]:
    return lambda e: OrderFailures.persistence(stage, f"{type(e).__name__}: {e}")


# ═══════════════════════════════════════════════════════════════════════════════
# OrderPipeline
# ═══════════════════════════════════════════════════════════════════════════════

class OrderPipeline:
    def __init__(
        self,
        database: Database,
        policy: PurchasePolicy,
        stores: StoreFactory = sqlalchemy_stores,
    ) -> None:
        self._db = database
        self._policy = policy
        self._stores = stores

    # ───────────────────────────────────────────────────────────────────────────
    # create_order()
    # ───────────────────────────────────────────────────────────────────────────

    async def create_order(
        self,
        user_id: UserId,
        product_ids: object,
    ) -> Result[OrderWithProducts, OrderFailure]:
        """
        Buy product_ids for user_id, or change nothing.

        product_ids is taken as-is from the caller; its shape is the first
        thing checked.
        """
        log = logger.bind(user_id=user_id)

        match validate_request(product_ids):
            case Error(failure):
                log.info("order refused", stage=failure.stage.value, kind=failure.code)
                return Error(failure)
            case Ok(requested):
                pass

        try:
            result = await self._transact(user_id, requested)
        except Exception as e:
            log.exception("order transaction crashed")
            return Error(_persistence(Stage.COMMIT)(e))

        match result:
            case Ok(created):
                log.info(
                    "order committed",
                    order_id=created.order.id,
                    total=str(created.order.total),
                    items=len(created.products),
                )
            case Error(failure) if failure.kind.is_client_error:
                log.info("order refused", stage=failure.stage.value, kind=failure.code)
            case Error(failure):
                log.error(
                    "order rolled back",
                    stage=failure.stage.value,
                    kind=failure.code,
                    reason=failure.message,
                )
        return result

    async def _transact(
        self,
        user_id: UserId,
        requested: tuple[ProductId, ...],
    ) -> Result[OrderWithProducts, OrderFailure]:
        async with self._db.transaction() as session:
            stores = self._stores(session)

            match await self._decide(stores, user_id, requested):
                case Error(failure):
                    return Error(failure)
                case Ok(purchase):
                    pass

            match await self._commit(stores, purchase):
                case Error(failure):
                    return Error(failure)
                case Ok(order):
                    pass

            committed = await L.catching_async(
                session.commit,
                on_error=_persistence(Stage.COMMIT),
            )
            match committed:
                case Error(failure):
                    return Error(failure)
                case Ok(_):
                    return Ok(OrderWithProducts(order=order, products=purchase.products))

    # ───────────────────────────────────────────────────────────────────────────
    # Stages 2–5
    # ───────────────────────────────────────────────────────────────────────────

    async def _decide(
        self,
        stores: Stores,
        user_id: UserId,
        requested: tuple[ProductId, ...],
    ) -> Result[Purchase, OrderFailure]:
        # 2. User (+ owned products), row locked until commit
        fetched_user = _stored(
            await stores.users.fetch_with_owned_products(user_id), Stage.USER
        )
        match fetched_user:
            case Error(failure):
                return Error(failure)
            case Ok(found_user):
                pass
        match resolve_user(found_user):
            case Error(failure):
                return Error(failure)
            case Ok(user):
                pass

        # 3. Products
        fetched_products = _stored(
            await stores.products.fetch_by_ids(frozenset(requested)), Stage.PRODUCTS
        )
        match fetched_products:
            case Error(failure):
                return Error(failure)
            case Ok(found_products):
                pass
        match match_products(requested, found_products):
            case Error(failure):
                return Error(failure)
            case Ok(products):
                pass

        # 4. Ownership
        match check_ownership(user, products):
            case Error(failure):
                return Error(failure)
            case Ok(_):
                pass

        # 5. Balance
        match check_balance(user, products, self._policy):
            case Error(failure):
                return Error(failure)
            case Ok(total):
                return Ok(Purchase(user=user, products=products, total=total))

    # ───────────────────────────────────────────────────────────────────────────
    # Stage 6
    # ───────────────────────────────────────────────────────────────────────────

    async def _commit(self, stores: Stores, purchase: Purchase) -> Result[Order, OrderFailure]:
        """Order, lines, ownership, balance. Nothing is committed here."""
        user, products, total = purchase.user, purchase.products, purchase.total
        expected = len(products)

        match _stored(await stores.orders.create(user.id, total), Stage.COMMIT):
            case Error(failure):
                return Error(failure)
            case Ok(order):
                pass

        lines = [(p.id, p.price) for p in products]
        match _stored(await stores.orders.create_lines(order.id, lines), Stage.COMMIT):
            case Error(failure):
                return Error(failure)
            case Ok(count) if count != expected:
                return Error(OrderFailures.persistence(
                    Stage.COMMIT, f"Wrote {count} order lines, expected {expected}"
                ))

        owned = [p.id for p in products]
        match _stored(
            await stores.orders.create_ownership_records(user.id, owned, order.id),
            Stage.COMMIT,
        ):
            case Error(failure):
                return Error(failure)
            case Ok(count) if count != expected:
                return Error(OrderFailures.persistence(
                    Stage.COMMIT, f"Wrote {count} ownership records, expected {expected}"
                ))

        match _stored(await stores.users.decrement_balance(user, total), Stage.COMMIT):
            case Error(failure):
                return Error(failure)
            case Ok(_):
                return Ok(order)

    # ───────────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────────

    async def get_order_with_items(
        self, order_id: OrderId
    ) -> Result[OrderWithLines | None, StoreError]:
        """Order with lines and current product data. Ok(None) if unknown."""
        async with self._db.session() as session:
            return await self._stores(session).orders.fetch_with_lines(order_id)

    async def get_user(self, user_id: UserId) -> Result[User | None, StoreError]:
        async with self._db.session() as session:
            return await self._stores(session).users.fetch_with_owned_products(user_id)


__all__ = ("OrderPipeline", "Purchase")
