"""Pure stage functions and total helpers — no database involved.

Covers:
- Request shape: absent, empty, non-list, bad elements, duplicates
- Product matching: exact set equality, request ordering
- Ownership overlap and balance boundaries
- Order independence of the total
"""

from decimal import Decimal
from itertools import permutations

import pytest
from kungfu import Ok, Error

from orderflow.config import PurchasePolicy
from orderflow.domain import FailureKind, Product, Stage, User
from orderflow.pipeline import (
    check_balance,
    check_ownership,
    find_duplicates,
    match_products,
    order_total,
    resolve_user,
    validate_request,
)


def _product(pid: str, price: str) -> Product:
    return Product(id=pid, name=pid, price=Decimal(price))


def _user(balance: str, owned: tuple[str, ...] = ()) -> User:
    return User(id="u1", username="alice", balance=Decimal(balance), owned_product_ids=frozenset(owned))


def _failure_kind(result):
    match result:
        case Error(failure):
            return failure.kind
        case Ok(value):
            raise AssertionError(f"expected a failure, got Ok({value!r})")


class TestValidateRequest:
    def test_accepts_list_of_ids(self):
        assert validate_request(["p1", "p2"]) == Ok(("p1", "p2"))

    def test_accepts_tuple_of_ids(self):
        assert validate_request(("p1",)) == Ok(("p1",))

    def test_none_is_empty_request(self):
        assert _failure_kind(validate_request(None)) is FailureKind.EMPTY_REQUEST

    def test_empty_list_is_empty_request(self):
        assert _failure_kind(validate_request([])) is FailureKind.EMPTY_REQUEST

    @pytest.mark.parametrize("raw", ["p1", {"p1": 1}, 42, {"p1"}, b"p1"])
    def test_non_list_is_malformed(self, raw):
        assert _failure_kind(validate_request(raw)) is FailureKind.MALFORMED_REQUEST

    @pytest.mark.parametrize("raw", [[1, 2], ["p1", None], ["p1", ""], [["p1"]]])
    def test_non_string_ids_are_malformed(self, raw):
        assert _failure_kind(validate_request(raw)) is FailureKind.MALFORMED_REQUEST

    def test_duplicates_are_reported_with_their_ids(self):
        match validate_request(["p1", "p2", "p1", "p3", "p3"]):
            case Error(failure):
                assert failure.kind is FailureKind.DUPLICATE_IN_REQUEST
                assert failure.stage is Stage.INPUT
                assert failure.product_ids == ("p1", "p3")
            case Ok(_):
                pytest.fail("duplicates must be refused")


class TestResolveUser:
    def test_missing_user(self):
        match resolve_user(None):
            case Error(failure):
                assert failure.kind is FailureKind.USER_NOT_FOUND
                assert failure.stage is Stage.USER
            case Ok(_):
                pytest.fail("missing user must be refused")

    def test_found_user_passes_through(self):
        user = _user("1.00")
        assert resolve_user(user) == Ok(user)


class TestMatchProducts:
    def test_returns_products_in_request_order(self):
        a, b, c = _product("a", "1.00"), _product("b", "2.00"), _product("c", "3.00")
        assert match_products(["c", "a", "b"], [a, b, c]) == Ok((c, a, b))

    def test_partial_match_is_a_failure(self):
        match match_products(["a", "ghost"], [_product("a", "1.00")]):
            case Error(failure):
                assert failure.kind is FailureKind.PRODUCTS_NOT_FOUND
                assert failure.stage is Stage.PRODUCTS
                assert failure.product_ids == ("ghost",)
            case Ok(_):
                pytest.fail("partial match must be refused")

    def test_unrequested_rows_are_a_failure(self):
        found = [_product("a", "1.00"), _product("b", "1.00")]
        assert _failure_kind(match_products(["a"], found)) is FailureKind.PRODUCTS_NOT_FOUND

    def test_nothing_found(self):
        assert _failure_kind(match_products(["a"], [])) is FailureKind.PRODUCTS_NOT_FOUND


class TestCheckOwnership:
    def test_no_overlap(self):
        products = (_product("a", "1.00"),)
        assert check_ownership(_user("5.00", owned=("b",)), products) == Ok(products)

    def test_single_overlap_fails_whole_request(self):
        products = (_product("a", "1.00"), _product("b", "1.00"))
        match check_ownership(_user("5.00", owned=("b", "z")), products):
            case Error(failure):
                assert failure.kind is FailureKind.ALREADY_OWNED
                assert failure.stage is Stage.OWNERSHIP
                assert failure.product_ids == ("b",)
            case Ok(_):
                pytest.fail("owned product must be refused")


class TestCheckBalance:
    policy = PurchasePolicy()

    def test_total_is_returned(self):
        products = (_product("a", "10.00"), _product("b", "20.00"))
        assert check_balance(_user("100.00"), products, self.policy) == Ok(Decimal("30.00"))

    def test_exact_balance_is_allowed(self):
        products = (_product("a", "10.00"), _product("b", "20.00"))
        assert check_balance(_user("30.00"), products, self.policy) == Ok(Decimal("30.00"))

    def test_one_cent_short_fails(self):
        products = (_product("a", "10.00"), _product("b", "20.00"))
        match check_balance(_user("29.99"), products, self.policy):
            case Error(failure):
                assert failure.kind is FailureKind.INSUFFICIENT_BALANCE
                assert failure.stage is Stage.BALANCE
            case Ok(_):
                pytest.fail("insufficient balance must be refused")

    def test_total_is_exact_under_coarser_policy(self):
        policy = PurchasePolicy(currency_quantum=Decimal("0.1"), default_balance=Decimal("10"))
        products = (_product("a", "10.50"), _product("b", "20.20"))
        assert check_balance(_user("100.00"), products, policy) == Ok(Decimal("30.70"))

    def test_total_finer_than_policy_is_refused(self):
        policy = PurchasePolicy(currency_quantum=Decimal("1"), default_balance=Decimal("10"))
        products = (_product("a", "10.50"), _product("b", "10.25"))
        match check_balance(_user("100"), products, policy):
            case Error(failure):
                assert failure.kind is FailureKind.PERSISTENCE_FAILURE
                assert failure.stage is Stage.BALANCE
                assert "20.75" in failure.message
            case Ok(total):
                pytest.fail(f"total must not be rounded to {total}")


class TestTotals:
    def test_total_is_exact_decimal(self):
        products = [_product("a", "0.10"), _product("b", "0.20"), _product("c", "75.99")]
        assert order_total(products) == Decimal("76.29")

    def test_total_ignores_order(self):
        products = [_product("a", "45.99"), _product("b", "89.90"), _product("c", "0.01")]
        totals = {order_total(p) for p in permutations(products)}
        assert totals == {Decimal("135.90")}

    def test_find_duplicates(self):
        assert find_duplicates(["a", "b", "a"]) == frozenset({"a"})
        assert find_duplicates(["a", "b"]) == frozenset()
