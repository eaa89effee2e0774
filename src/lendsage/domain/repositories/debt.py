"""Debt repository protocol."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from ...models.debt import Debt, DebtStatus, Repayment


class DebtRepository(Protocol):
    """Persistence for debts and their owned repayments.

    With ``settle_account=True`` a write also moves the linked account's
    balance in the same transaction: creating debits the principal, an amount
    edit debits or refunds the difference, a repayment is deposited, removing
    a repayment withdraws it and deleting a debt refunds the principal.
    Implementations raise ``InsufficientAccountBalance`` and store nothing
    when a withdrawal cannot be covered.
    """

    def get_by_id(self, debt_id: int, *, user_id: int) -> Optional[Debt]:
        """Retrieve a debt (with repayments loaded) by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[Debt]:
        """List all debts for a user."""
        ...

    def existing_ids(self, *, user_id: int) -> set[int]:
        """Return the ids of every debt owned by the user."""
        ...

    def create(self, debt: Debt, *, user_id: int, settle_account: bool = False) -> Debt:
        """Create a new debt."""
        ...

    def update(self, debt: Debt, *, user_id: int, settle_account: bool = False) -> Debt:
        """Update an existing debt."""
        ...

    def set_status(self, debt_id: int, status: DebtStatus, *, user_id: int) -> None:
        """Persist a recomputed status."""
        ...

    def add_repayment(
        self, repayment: Repayment, *, user_id: int, settle_account: bool = False
    ) -> Repayment:
        """Append a repayment to its debt."""
        ...

    def delete_repayment(
        self, repayment_id: int, debt_id: int, *, user_id: int, settle_account: bool = False
    ) -> Optional[Repayment]:
        """Remove one repayment and return it, or None if it does not exist."""
        ...

    def delete(self, debt_id: int, *, user_id: int, settle_account: bool = False) -> Optional[Debt]:
        """Delete a debt (and its repayments) and return the removed row."""
        ...

    def delete_many(
        self, debt_ids: Iterable[int], *, user_id: int, settle_account: bool = False
    ) -> list[Debt]:
        """Delete several debts and return the removed rows."""
        ...
