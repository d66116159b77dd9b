"""
OrderPipeline.create_order() against a real SQLite database.

Covers:
- Happy path: order, lines, ownership, debit
- Every refusal: which stage, which kind, and that nothing was written
- Stage 1 runs before any store is touched
- Price snapshots on order lines
"""

from decimal import Decimal

import pytest
from kungfu import Ok, Error

from orderflow.config import PurchasePolicy
from orderflow.domain import FailureKind, Stage
from orderflow.pipeline import OrderPipeline
from orderflow.store import sqlalchemy_stores


def _failure(result):
    match result:
        case Error(failure):
            return failure
        case Ok(value):
            pytest.fail(f"expected a failure, got Ok({value!r})")


def _created(result):
    match result:
        case Ok(created):
            return created
        case Error(failure):
            pytest.fail(f"expected an order, got {failure}")


@pytest.mark.asyncio
class TestCreateOrder:
    @pytest.mark.parametrize(
        "policy, prices, total, left",
        [
            (PurchasePolicy(), ("10.00", "20.00"), "30.00", "70.00"),
            (
                PurchasePolicy(currency_quantum=Decimal("0.1"), default_balance=Decimal("1000")),
                ("10.50", "20.20"),
                "30.70",
                "69.30",
            ),
            (
                PurchasePolicy(currency_quantum=Decimal("1"), default_balance=Decimal("1000")),
                ("10.00", "25.00"),
                "35.00",
                "65.00",
            ),
        ],
        ids=["cents", "tenths", "whole-units"],
    )
    async def test_successful_order(
        self, pipeline, make_user, make_product, snapshot, policy, prices, total, left
    ):
        user = await make_user(balance="100.00")
        first = await make_product("first", prices[0])
        second = await make_product("second", prices[1])

        created = _created(await pipeline.create_order(user.id, [first.id, second.id]))

        assert created.order.total == Decimal(total)
        assert created.order.user_id == user.id
        assert [p.id for p in created.products] == [first.id, second.id]

        after = await snapshot(user.id)
        assert after.balance == Decimal(left)
        assert after.orders == 1
        assert after.lines == 2
        assert after.ownerships == 2

        match await pipeline.get_order_with_items(created.order.id):
            case Ok(found):
                assert found.order.total == Decimal(total)
                assert found.order.total == found.lines_total
            case Error(e):
                pytest.fail(e.message)

        match await pipeline.get_user(user.id):
            case Ok(reloaded):
                assert reloaded.owned_product_ids == frozenset({first.id, second.id})
            case Error(e):
                pytest.fail(e.message)

    @pytest.mark.parametrize(
        "policy",
        [PurchasePolicy(currency_quantum=Decimal("1"), default_balance=Decimal("1000"))],
    )
    async def test_prices_finer_than_policy_are_not_rounded(
        self, pipeline, make_user, make_product, snapshot, policy
    ):
        user = await make_user(balance="100")
        a = await make_product("a", "10.25")
        b = await make_product("b", "10.25")
        before = await snapshot(user.id)

        failure = _failure(await pipeline.create_order(user.id, [a.id, b.id]))

        assert failure.kind is FailureKind.PERSISTENCE_FAILURE
        assert failure.stage is Stage.BALANCE
        assert await snapshot(user.id) == before

    async def test_reorder_of_owned_product_is_refused(
        self, pipeline, make_user, make_product, snapshot
    ):
        user = await make_user(balance="100.00")
        p10 = await make_product("p10", "10.00")
        p20 = await make_product("p20", "20.00")
        _created(await pipeline.create_order(user.id, [p10.id, p20.id]))
        before = await snapshot(user.id)

        failure = _failure(await pipeline.create_order(user.id, [p10.id]))

        assert failure.kind is FailureKind.ALREADY_OWNED
        assert failure.stage is Stage.OWNERSHIP
        assert failure.product_ids == (p10.id,)
        assert await snapshot(user.id) == before
        assert before.balance == Decimal("70.00")

    async def test_partially_owned_request_is_refused_whole(
        self, pipeline, make_user, make_product, snapshot
    ):
        user = await make_user(balance="100.00")
        p10 = await make_product("p10", "10.00")
        p20 = await make_product("p20", "20.00")
        _created(await pipeline.create_order(user.id, [p10.id]))
        before = await snapshot(user.id)

        failure = _failure(await pipeline.create_order(user.id, [p20.id, p10.id]))

        assert failure.kind is FailureKind.ALREADY_OWNED
        assert failure.product_ids == (p10.id,)
        assert await snapshot(user.id) == before

    async def test_insufficient_balance(self, pipeline, make_user, make_product, snapshot):
        user = await make_user(balance="20.00")
        p10 = await make_product("p10", "10.00")
        p20 = await make_product("p20", "20.00")
        before = await snapshot(user.id)

        failure = _failure(await pipeline.create_order(user.id, [p10.id, p20.id]))

        assert failure.kind is FailureKind.INSUFFICIENT_BALANCE
        assert failure.stage is Stage.BALANCE
        after = await snapshot(user.id)
        assert after == before
        assert after.orders == 0

    async def test_exact_balance_leaves_zero(self, pipeline, make_user, make_product, snapshot):
        user = await make_user(balance="30.00")
        p10 = await make_product("p10", "10.00")
        p20 = await make_product("p20", "20.00")

        _created(await pipeline.create_order(user.id, [p10.id, p20.id]))

        assert (await snapshot(user.id)).balance == Decimal("0.00")

    async def test_unknown_product(self, pipeline, make_user, make_product, snapshot):
        user = await make_user()
        p10 = await make_product("p10", "10.00")
        before = await snapshot(user.id)

        failure = _failure(await pipeline.create_order(user.id, [p10.id, "no-such-product"]))

        assert failure.kind is FailureKind.PRODUCTS_NOT_FOUND
        assert failure.stage is Stage.PRODUCTS
        assert failure.product_ids == ("no-such-product",)
        assert await snapshot(user.id) == before

    async def test_unknown_user(self, pipeline, make_product, snapshot):
        p10 = await make_product("p10", "10.00")

        failure = _failure(await pipeline.create_order("no-such-user", [p10.id]))

        assert failure.kind is FailureKind.USER_NOT_FOUND
        assert failure.stage is Stage.USER
        after = await snapshot("no-such-user")
        assert (after.orders, after.lines, after.ownerships) == (0, 0, 0)

    async def test_same_failure_leaves_same_state(
        self, pipeline, make_user, make_product, snapshot
    ):
        user = await make_user(balance="5.00")
        p10 = await make_product("p10", "10.00")
        before = await snapshot(user.id)

        first = _failure(await pipeline.create_order(user.id, [p10.id]))
        second = _failure(await pipeline.create_order(user.id, [p10.id]))

        assert first == second
        assert await snapshot(user.id) == before


@pytest.mark.asyncio
class TestRequestValidation:
    @pytest.fixture
    def spy_pipeline(self, database, policy):
        calls: list[object] = []

        def factory(session):
            calls.append(session)
            return sqlalchemy_stores(session)

        return OrderPipeline(database, policy, stores=factory), calls

    @pytest.mark.parametrize(
        "raw, kind",
        [
            (None, FailureKind.EMPTY_REQUEST),
            ([], FailureKind.EMPTY_REQUEST),
            ("p1", FailureKind.MALFORMED_REQUEST),
            ([1], FailureKind.MALFORMED_REQUEST),
            (["p1", "p1"], FailureKind.DUPLICATE_IN_REQUEST),
        ],
    )
    async def test_refused_before_any_store_call(self, spy_pipeline, make_user, raw, kind):
        pipeline, calls = spy_pipeline
        user = await make_user()

        failure = _failure(await pipeline.create_order(user.id, raw))

        assert failure.kind is kind
        assert failure.stage is Stage.INPUT
        assert calls == []

    async def test_duplicate_reports_ids(self, spy_pipeline, make_user, make_product):
        pipeline, _ = spy_pipeline
        user = await make_user()
        p1 = await make_product("p1", "1.00")

        failure = _failure(await pipeline.create_order(user.id, [p1.id, p1.id]))

        assert failure.product_ids == (p1.id,)


@pytest.mark.asyncio
class TestPriceSnapshot:
    async def test_line_price_survives_catalog_change(
        self, database, pipeline, make_user, make_product
    ):
        from sqlalchemy import update

        from orderflow.store import ProductTable

        user = await make_user(balance="100.00")
        p10 = await make_product("p10", "10.00")
        created = _created(await pipeline.create_order(user.id, [p10.id]))

        async with database.transaction() as session:
            await session.execute(
                update(ProductTable).where(ProductTable.id == p10.id).values(price=Decimal("99.00"))
            )
            await session.commit()

        match await pipeline.get_order_with_items(created.order.id):
            case Ok(found):
                assert found is not None
                [item] = found.lines
                assert item.line.price == Decimal("10.00")
                assert item.product.price == Decimal("99.00")
                assert found.order.total == Decimal("10.00")
                assert found.lines_total == found.order.total
            case Error(e):
                pytest.fail(e.message)
