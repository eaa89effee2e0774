"""Repository protocol definitions for domain layer."""

from .account import AccountLedger
from .debt import DebtRepository

__all__ = [
    "AccountLedger",
    "DebtRepository",
]
