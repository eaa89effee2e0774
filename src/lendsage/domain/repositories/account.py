"""Account ledger protocol.

The lending core never owns account balances. It looks accounts up through
the ledger; the balance moves tied to a debt write happen inside the debt
repository's transaction.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Protocol

from ...models.account import Account


class AccountLedger(Protocol):
    """External collaborator holding account balances."""

    def get_by_id(self, account_id: int, *, user_id: int) -> Optional[Account]:
        """Retrieve an account by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[Account]:
        """List the user's accounts."""
        ...

    def get_balance(self, account_id: int) -> Decimal:
        """Return the current balance of an account."""
        ...

    def debit(self, account_id: int, amount: Decimal) -> Decimal:
        """Withdraw ``amount`` and return the new balance."""
        ...

    def credit(self, account_id: int, amount: Decimal) -> Decimal:
        """Deposit ``amount`` and return the new balance."""
        ...
