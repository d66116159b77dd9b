"""
Failure types — every expected way an order can be refused.

Failures are values, not exceptions: each pipeline stage returns
Result[T, OrderFailure] and the first Error stops the run.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from orderflow._types import ProductId


# ═══════════════════════════════════════════════════════════════════════════════
# Stage — where a run stopped
# ═══════════════════════════════════════════════════════════════════════════════


class Stage(Enum):
    """
    Pipeline stages, in execution order.

    Lifecycle:
        INPUT → USER → PRODUCTS → OWNERSHIP → BALANCE → COMMIT
    """

    INPUT = "validate_input"
    USER = "user"
    PRODUCTS = "products"
    OWNERSHIP = "validate_products"
    BALANCE = "validate_balance"
    COMMIT = "commit"


# ═══════════════════════════════════════════════════════════════════════════════
# FailureKind — machine-readable reason
# ═══════════════════════════════════════════════════════════════════════════════


class FailureKind(Enum):
    """Kinds of order failures. Values are the wire codes callers map."""

    EMPTY_REQUEST = "empty_product_list"
    MALFORMED_REQUEST = "invalid_product_list"
    DUPLICATE_IN_REQUEST = "duplicate_products_in_request"
    USER_NOT_FOUND = "user_not_found"
    PRODUCTS_NOT_FOUND = "products_not_found"
    ALREADY_OWNED = "products_already_purchased"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    PERSISTENCE_FAILURE = "persistence_failure"

    @property
    def code(self) -> str:
        return self.value

    @property
    def is_client_error(self) -> bool:
        """False only for storage trouble the client cannot fix."""
        return self is not FailureKind.PERSISTENCE_FAILURE

    @property
    def default_message(self) -> str:
        return _MESSAGES[self]


_MESSAGES: dict[FailureKind, str] = {
    FailureKind.EMPTY_REQUEST: "Product list must not be empty",
    FailureKind.MALFORMED_REQUEST: "Product list must be a list of product ids",
    FailureKind.DUPLICATE_IN_REQUEST: "Product list contains duplicate ids",
    FailureKind.USER_NOT_FOUND: "User was not found",
    FailureKind.PRODUCTS_NOT_FOUND: "One or more products were not found",
    FailureKind.ALREADY_OWNED: "User has already purchased one or more of these products",
    FailureKind.INSUFFICIENT_BALANCE: "User balance is insufficient for this order",
    FailureKind.PERSISTENCE_FAILURE: "An unexpected error occurred",
}


# ═══════════════════════════════════════════════════════════════════════════════
# OrderFailure — the typed error value
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderFailure:
    """
    A refused order.

    product_ids names the offending ids when the kind is about specific
    products (duplicates, missing, already owned); empty otherwise.
    """

    stage: Stage
    kind: FailureKind
    message: str
    product_ids: tuple[ProductId, ...] = ()

    @property
    def code(self) -> str:
        return self.kind.code

    def __str__(self) -> str:
        return f"{self.stage.value}: {self.kind.code} ({self.message})"


class OrderFailures:
    """Constructors — one per FailureKind, each pinned to its stage."""

    @staticmethod
    def empty_request() -> OrderFailure:
        return _failure(Stage.INPUT, FailureKind.EMPTY_REQUEST)

    @staticmethod
    def malformed_request(msg: str | None = None) -> OrderFailure:
        return _failure(Stage.INPUT, FailureKind.MALFORMED_REQUEST, msg)

    @staticmethod
    def duplicate_in_request(ids: Iterable[ProductId]) -> OrderFailure:
        return _failure(Stage.INPUT, FailureKind.DUPLICATE_IN_REQUEST, ids=ids)

    @staticmethod
    def user_not_found() -> OrderFailure:
        return _failure(Stage.USER, FailureKind.USER_NOT_FOUND)

    @staticmethod
    def products_not_found(missing: Iterable[ProductId]) -> OrderFailure:
        return _failure(Stage.PRODUCTS, FailureKind.PRODUCTS_NOT_FOUND, ids=missing)

    @staticmethod
    def already_owned(owned: Iterable[ProductId]) -> OrderFailure:
        return _failure(Stage.OWNERSHIP, FailureKind.ALREADY_OWNED, ids=owned)

    @staticmethod
    def insufficient_balance(msg: str | None = None) -> OrderFailure:
        return _failure(Stage.BALANCE, FailureKind.INSUFFICIENT_BALANCE, msg)

    @staticmethod
    def persistence(stage: Stage, msg: str) -> OrderFailure:
        return _failure(stage, FailureKind.PERSISTENCE_FAILURE, msg)


def _failure(
    stage: Stage,
    kind: FailureKind,
    msg: str | None = None,
    ids: Iterable[ProductId] = (),
) -> OrderFailure:
    return OrderFailure(
        stage=stage,
        kind=kind,
        message=msg or kind.default_message,
        product_ids=tuple(sorted(ids)),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# StoreError — collaborator failure
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


__all__ = (
    "Stage",
    "FailureKind",
    "OrderFailure",
    "OrderFailures",
    "StoreError",
)
