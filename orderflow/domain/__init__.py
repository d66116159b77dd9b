"""
Domain — entities, composite read models, and the failure taxonomy.

    from orderflow import domain as D

    match result:
        case Error(D.OrderFailure(kind=D.FailureKind.ALREADY_OWNED)):
            ...
"""

from orderflow.domain._models import (
    User,
    Product,
    Order,
    OrderLine,
    OrderWithProducts,
    LineWithProduct,
    OrderWithLines,
)
from orderflow.domain._errors import (
    Stage,
    FailureKind,
    OrderFailure,
    OrderFailures,
    StoreError,
)

__all__ = (
    # Models
    "User",
    "Product",
    "Order",
    "OrderLine",
    "OrderWithProducts",
    "LineWithProduct",
    "OrderWithLines",
    # Errors
    "Stage",
    "FailureKind",
    "OrderFailure",
    "OrderFailures",
    "StoreError",
)
