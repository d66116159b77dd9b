"""
orderflow — atomic order creation for one-of-a-kind catalog purchases.

    from orderflow import domain as D    # Entities and failures
    from orderflow import store as St    # Persistence (SQLAlchemy async)
    from orderflow import pipeline as P  # The order pipeline

    db = St.Database.from_url("sqlite+aiosqlite:///./orderflow.db")
    pipeline = P.OrderPipeline(db, PurchasePolicy())
    result = await pipeline.create_order(user_id, product_ids)
"""

from orderflow import domain
from orderflow import store
from orderflow import pipeline
from orderflow.config import Settings, PurchasePolicy
from orderflow.pipeline import OrderPipeline
from orderflow._types import (
    Result,
    Ok,
    Error,
    UserId,
    ProductId,
    OrderId,
    Money,
)

__version__ = "0.1.0"

__all__ = (
    "domain",
    "store",
    "pipeline",
    "Settings",
    "PurchasePolicy",
    "OrderPipeline",
    "Result",
    "Ok",
    "Error",
    "UserId",
    "ProductId",
    "OrderId",
    "Money",
)
