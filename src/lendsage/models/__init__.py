"""SQLModel table exports."""

from .account import Account
from .debt import Debt, DebtStatus, Repayment

__all__ = [
    "Account",
    "Debt",
    "DebtStatus",
    "Repayment",
]
