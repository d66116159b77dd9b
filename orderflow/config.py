"""
Configuration — environment-driven settings and the injected purchase policy.

    settings = Settings()                      # reads ORDERFLOW_* / .env
    policy = PurchasePolicy.from_settings(settings)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Decimal places of every money column. Policies may be coarser, never finer.
MONEY_SCALE = 2
MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)


def fits_quantum(amount: Decimal, quantum: Decimal) -> bool:
    """True if amount has no digits below quantum."""
    return amount == amount.quantize(quantum)


class LogFormat(str, Enum):
    CONSOLE = "console"
    JSON = "json"


class Settings(BaseSettings):
    """
    Process settings.

    Business defaults (starting balance, currency precision) live here only
    so they can be turned into a PurchasePolicy; nothing below the CLI reads
    Settings directly.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORDERFLOW_",
        env_file=".env",
        extra="ignore",
    )

    # --- Persistence ---
    database_url: str = "sqlite+aiosqlite:///./orderflow.db"
    isolation_level: str | None = None  # None → per-dialect default
    echo_sql: bool = False

    # --- Business policy ---
    default_balance: Decimal = Decimal("1000.00")
    currency_scale: int = Field(default=MONEY_SCALE, ge=0, le=MONEY_SCALE)

    # --- Logging ---
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE


@dataclass(frozen=True, slots=True)
class PurchasePolicy:
    """Deployment policy handed to the pipeline and stores."""

    currency_quantum: Decimal = Decimal("0.01")
    default_balance: Decimal = Decimal("1000.00")

    @classmethod
    def from_settings(cls, settings: Settings) -> PurchasePolicy:
        quantum = Decimal(1).scaleb(-settings.currency_scale)
        return cls(
            currency_quantum=quantum,
            default_balance=settings.default_balance,
        )

    def __post_init__(self) -> None:
        if not fits_quantum(self.currency_quantum, MONEY_QUANTUM):
            raise ValueError(
                f"currency_quantum {self.currency_quantum} is finer than {MONEY_QUANTUM}"
            )
        if not self.fits(self.default_balance):
            raise ValueError(
                f"default_balance {self.default_balance} has digits below {self.currency_quantum}"
            )

    def fits(self, amount: Decimal) -> bool:
        return fits_quantum(amount, self.currency_quantum)

    def quantize(self, amount: Decimal) -> Decimal:
        return amount.quantize(self.currency_quantum)


__all__ = (
    "MONEY_SCALE",
    "MONEY_QUANTUM",
    "fits_quantum",
    "LogFormat",
    "Settings",
    "PurchasePolicy",
)
