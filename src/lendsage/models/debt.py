"""Debt (money lent out) and repayment entities."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .account import Account


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DebtStatus(str, Enum):
    """Lifecycle states of a debt."""

    ACTIVE = "ACTIVE"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    FULLY_PAID = "FULLY_PAID"
    OVERDUE = "OVERDUE"
    DEFAULTED = "DEFAULTED"


class Debt(SQLModel, table=True):
    """Money lent to a borrower, reconciled against its repayments."""

    __tablename__: ClassVar[str] = "debt"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(nullable=False, index=True)
    borrower_name: str = Field(nullable=False, max_length=100, index=True)
    borrower_contact: Optional[str] = Field(default=None, max_length=32)
    borrower_email: Optional[str] = Field(default=None, max_length=255)
    amount: Decimal = Field(nullable=False, max_digits=14, decimal_places=2)
    interest_rate: Decimal = Field(
        default=Decimal("0"), nullable=False, max_digits=9, decimal_places=4
    )
    lent_date: date = Field(nullable=False, index=True)
    due_date: Optional[date] = Field(default=None)
    status: DebtStatus = Field(default=DebtStatus.ACTIVE, nullable=False, index=True)
    purpose: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)
    account_id: Optional[int] = Field(default=None, foreign_key="account.id")
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=_utcnow, nullable=False)

    # Insertion order is the ledger order; repayments die with their debt.
    repayments: list["Repayment"] = Relationship(
        back_populates="debt",
        sa_relationship=relationship(
            "Repayment",
            back_populates="debt",
            cascade="all, delete-orphan",
            order_by="Repayment.id",
            lazy="selectin",
        ),
    )
    account: "Account | None" = Relationship(
        back_populates="debts",
        sa_relationship=relationship("Account", back_populates="debts"),
    )


class Repayment(SQLModel, table=True):
    """A partial or full repayment received against a debt."""

    __tablename__: ClassVar[str] = "repayment"

    id: Optional[int] = Field(default=None, primary_key=True)
    debt_id: int = Field(foreign_key="debt.id", nullable=False, index=True)
    amount: Decimal = Field(nullable=False, max_digits=14, decimal_places=2)
    repayment_date: date = Field(nullable=False)
    notes: Optional[str] = Field(default=None, max_length=1000)
    # Account the repayment was deposited into, if any.
    account_id: Optional[int] = Field(default=None, foreign_key="account.id")
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    debt: "Debt" = Relationship(
        back_populates="repayments",
        sa_relationship=relationship("Debt", back_populates="repayments"),
    )
