"""
Store — persistence for users, catalog and orders (SQLAlchemy 2.x async).

    from orderflow import store as St

    db = St.Database.from_url("sqlite+aiosqlite:///./orderflow.db")
    async with db.transaction() as session:
        stores = St.sqlalchemy_stores(session)
        ...
        await session.commit()
"""

from orderflow.store._tables import (
    Base,
    UserTable,
    ProductTable,
    OrderTable,
    OrderLineTable,
    OwnershipTable,
)
from orderflow.store._database import (
    Database,
    default_isolation_level,
)
from orderflow.store._protocols import (
    UserStore,
    ProductStore,
    OrderStore,
    Stores,
    StoreFactory,
)
from orderflow.store._sqlalchemy import (
    SQLAlchemyUserStore,
    SQLAlchemyProductStore,
    SQLAlchemyOrderStore,
    sqlalchemy_stores,
)

__all__ = (
    # Tables
    "Base",
    "UserTable",
    "ProductTable",
    "OrderTable",
    "OrderLineTable",
    "OwnershipTable",
    # Database
    "Database",
    "default_isolation_level",
    # Protocols
    "UserStore",
    "ProductStore",
    "OrderStore",
    "Stores",
    "StoreFactory",
    # SQLAlchemy
    "SQLAlchemyUserStore",
    "SQLAlchemyProductStore",
    "SQLAlchemyOrderStore",
    "sqlalchemy_stores",
)
