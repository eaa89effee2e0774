"""Bank account model used as the lending source and repayment sink."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .debt import Debt


class Account(SQLModel, table=True):
    __tablename__: ClassVar[str] = "account"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(nullable=False, index=True)
    holder_name: str = Field(nullable=False, max_length=128)
    bank_name: str = Field(default="", max_length=128)
    account_number: Optional[str] = Field(default=None, max_length=64)
    balance: Decimal = Field(
        default=Decimal("0"), nullable=False, max_digits=14, decimal_places=2
    )
    currency: str = Field(default="USD", max_length=3)

    debts: list["Debt"] = Relationship(
        back_populates="account",
        sa_relationship=relationship("Debt", back_populates="account"),
    )

    @property
    def label(self) -> str:
        """Display label matching the exported ``holder - bank`` format."""
        if self.bank_name:
            return f"{self.holder_name} - {self.bank_name}"
        return self.holder_name
