"""SQLModel implementation of the Debt repository.

Writes that carry ``settle_account=True`` move the linked account's balance
in the same session as the debt or repayment row, so either both land or
neither does.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional

from sqlmodel import Session, select

from ...models.debt import Debt, DebtStatus, Repayment
from .account import apply_balance_change


class SQLModelDebtRepository:
    """SQLModel-based debt repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @staticmethod
    def _owned(session: Session, debt_id: int, user_id: int) -> Optional[Debt]:
        return session.exec(
            select(Debt).where(Debt.id == debt_id, Debt.user_id == user_id)
        ).first()

    def get_by_id(self, debt_id: int, *, user_id: int) -> Optional[Debt]:
        """Retrieve a debt by ID; repayments are loaded eagerly."""
        with self.session_factory() as session:
            return self._owned(session, debt_id, user_id)

    def list_all(self, *, user_id: int) -> list[Debt]:
        """List all debts, oldest loan first."""
        with self.session_factory() as session:
            statement = (
                select(Debt)
                .where(Debt.user_id == user_id)
                .order_by(Debt.lent_date, Debt.id)  # type: ignore
            )
            return list(session.exec(statement).all())

    def existing_ids(self, *, user_id: int) -> set[int]:
        """Return the ids of every debt owned by the user."""
        with self.session_factory() as session:
            rows = session.exec(select(Debt.id).where(Debt.user_id == user_id)).all()
            return {row for row in rows if row is not None}

    def create(self, debt: Debt, *, user_id: int, settle_account: bool = False) -> Debt:
        """Create a new debt, debiting its principal from the linked account."""
        with self.session_factory() as session:
            debt.user_id = user_id
            if settle_account and debt.account_id is not None:
                apply_balance_change(
                    session, debt.account_id, -Decimal(debt.amount), user_id=user_id
                )
            session.add(debt)
            session.commit()
            session.refresh(debt)
            return debt

    def update(self, debt: Debt, *, user_id: int, settle_account: bool = False) -> Debt:
        """Update an existing debt; an amount change moves the difference."""
        with self.session_factory() as session:
            if settle_account and debt.account_id is not None:
                stored = self._owned(session, debt.id, user_id)
                if stored is None:
                    raise LookupError(f"Debt {debt.id} not found for user {user_id}")
                refund = Decimal(stored.amount) - Decimal(debt.amount)
                if refund:
                    apply_balance_change(session, debt.account_id, refund, user_id=user_id)
            debt.user_id = user_id
            debt.updated_at = datetime.now(timezone.utc)
            merged = session.merge(debt)
            session.commit()
            session.refresh(merged)
            return merged

    def set_status(self, debt_id: int, status: DebtStatus, *, user_id: int) -> None:
        """Persist a recomputed status."""
        with self.session_factory() as session:
            debt = self._owned(session, debt_id, user_id)
            if debt is None:
                return
            debt.status = status
            debt.updated_at = datetime.now(timezone.utc)
            session.add(debt)
            session.commit()

    def add_repayment(
        self, repayment: Repayment, *, user_id: int, settle_account: bool = False
    ) -> Repayment:
        """Append a repayment to a debt owned by the user, depositing it."""
        with self.session_factory() as session:
            if self._owned(session, repayment.debt_id, user_id) is None:
                raise LookupError(f"Debt {repayment.debt_id} not found for user {user_id}")
            if settle_account and repayment.account_id is not None:
                apply_balance_change(
                    session, repayment.account_id, Decimal(repayment.amount), user_id=user_id
                )
            session.add(repayment)
            session.commit()
            session.refresh(repayment)
            return repayment

    def delete_repayment(
        self, repayment_id: int, debt_id: int, *, user_id: int, settle_account: bool = False
    ) -> Optional[Repayment]:
        """Remove one repayment and return it, withdrawing it from its account."""
        with self.session_factory() as session:
            repayment = session.exec(
                select(Repayment)
                .join(Debt)
                .where(
                    Repayment.id == repayment_id,
                    Repayment.debt_id == debt_id,
                    Debt.user_id == user_id,
                )
            ).first()
            if repayment is None:
                return None
            if settle_account and repayment.account_id is not None:
                apply_balance_change(
                    session, repayment.account_id, -Decimal(repayment.amount), user_id=user_id
                )
            session.delete(repayment)
            session.commit()
            return repayment

    def delete(self, debt_id: int, *, user_id: int, settle_account: bool = False) -> Optional[Debt]:
        """Delete a debt by ID; its repayments cascade and the principal is refunded."""
        with self.session_factory() as session:
            debt = self._owned(session, debt_id, user_id)
            if debt is None:
                return None
            if settle_account and debt.account_id is not None:
                apply_balance_change(
                    session, debt.account_id, Decimal(debt.amount), user_id=user_id
                )
            session.delete(debt)
            session.commit()
            return debt

    def delete_many(
        self, debt_ids: Iterable[int], *, user_id: int, settle_account: bool = False
    ) -> list[Debt]:
        """Delete every listed debt the user owns, with refunds, in one transaction."""
        ids = list(dict.fromkeys(debt_ids))
        if not ids:
            return []
        with self.session_factory() as session:
            debts = list(
                session.exec(
                    select(Debt).where(Debt.user_id == user_id, Debt.id.in_(ids))  # type: ignore
                ).all()
            )
            for debt in debts:
                if settle_account and debt.account_id is not None:
                    apply_balance_change(
                        session, debt.account_id, Decimal(debt.amount), user_id=user_id
                    )
                session.delete(debt)
            session.commit()
            return debts
