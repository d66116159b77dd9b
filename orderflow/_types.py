"""
Core types for orderflow.

Re-exports from kungfu + identifier aliases shared by every layer.
"""

from __future__ import annotations

from decimal import Decimal

# Re-export from kungfu
from kungfu import Result, Ok, Error

# ═══════════════════════════════════════════════════════════════════════════════
# Identifiers
# ═══════════════════════════════════════════════════════════════════════════════

type UserId = str
"""Opaque user reference (uuid4 hex string)."""

type ProductId = str
"""Catalog product reference."""

type OrderId = str
"""Order reference (uuid4 hex string)."""

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Fixed-point currency amount. Never a float."""

ZERO: Money = Decimal("0")

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    # Identifiers
    "UserId",
    "ProductId",
    "OrderId",
    # Money
    "Money",
    "ZERO",
)
