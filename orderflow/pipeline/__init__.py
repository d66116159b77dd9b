"""
Pipeline — atomic order creation.

    from orderflow import pipeline as P

    pipeline = P.OrderPipeline(db, policy)
    result = await pipeline.create_order(user_id, product_ids)

Stages, in order, first failure wins:

    validate_input → user → products → validate_products
                   → validate_balance → commit
"""

from orderflow.pipeline._totals import (
    order_total,
    find_duplicates,
    missing_ids,
    owned_overlap,
)
from orderflow.pipeline._stages import (
    validate_request,
    resolve_user,
    match_products,
    check_ownership,
    check_balance,
)
from orderflow.pipeline._run import OrderPipeline, Purchase

__all__ = (
    # Helpers
    "order_total",
    "find_duplicates",
    "missing_ids",
    "owned_overlap",
    # Stages
    "validate_request",
    "resolve_user",
    "match_products",
    "check_ownership",
    "check_balance",
    # Runner
    "OrderPipeline",
    "Purchase",
)
