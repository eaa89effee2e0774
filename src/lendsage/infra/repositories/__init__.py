"""Concrete repository implementations using SQLModel."""

from .account import SQLModelAccountRepository
from .debt import SQLModelDebtRepository

__all__ = [
    "SQLModelAccountRepository",
    "SQLModelDebtRepository",
]
