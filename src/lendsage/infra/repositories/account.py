"""SQLModel implementation of the account ledger."""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Optional

from sqlmodel import Session, select

from ...errors import InsufficientAccountBalance, UnknownAccountReference
from ...models.account import Account


def apply_balance_change(
    session: Session, account_id: int, delta: Decimal, *, user_id: Optional[int] = None
) -> Account:
    """Move ``delta`` into (positive) or out of (negative) an account.

    Runs inside the caller's session and does not commit, so the balance
    move lands in the same transaction as whatever the caller writes next
    to it. A withdrawal larger than the balance raises before anything is
    flushed.
    """

    account = session.get(Account, account_id)
    if account is None or (user_id is not None and account.user_id != user_id):
        raise UnknownAccountReference(f"Account {account_id} does not exist")
    balance = Decimal(account.balance)
    if delta < 0 and balance < -delta:
        raise InsufficientAccountBalance(
            f"Insufficient balance in {account.label}. "
            f"Available: {balance}, Required: {-delta}"
        )
    account.balance = balance + delta
    session.add(account)
    return account


class SQLModelAccountRepository:
    """SQLModel-based account repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, account_id: int, *, user_id: int) -> Optional[Account]:
        """Retrieve an account by ID."""
        with self.session_factory() as session:
            return session.exec(
                select(Account).where(Account.id == account_id, Account.user_id == user_id)
            ).first()

    def list_all(self, *, user_id: int) -> list[Account]:
        """List all accounts, ordered by id so lookups are deterministic."""
        with self.session_factory() as session:
            statement = (
                select(Account).where(Account.user_id == user_id).order_by(Account.id)  # type: ignore
            )
            return list(session.exec(statement).all())

    def create(self, account: Account, *, user_id: int) -> Account:
        """Create a new account."""
        with self.session_factory() as session:
            account.user_id = user_id
            session.add(account)
            session.commit()
            session.refresh(account)
            return account

    def get_balance(self, account_id: int) -> Decimal:
        """Return the stored balance for an account."""
        with self.session_factory() as session:
            account = session.get(Account, account_id)
            if account is None:
                raise UnknownAccountReference(f"Account {account_id} does not exist")
            return Decimal(account.balance)

    def debit(self, account_id: int, amount: Decimal) -> Decimal:
        """Withdraw ``amount``; refuses to overdraw."""
        with self.session_factory() as session:
            account = apply_balance_change(session, account_id, -amount)
            session.commit()
            return account.balance

    def credit(self, account_id: int, amount: Decimal) -> Decimal:
        """Deposit ``amount``."""
        with self.session_factory() as session:
            account = apply_balance_change(session, account_id, amount)
            session.commit()
            return account.balance
