"""Debt lifecycle operations: create, edit, repay, delete.

Every operation that touches a linked account hands the balance move to the
debt repository, which applies it in the same transaction as the row it
writes. The persisted status is then recomputed from the repayment ledger.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from ..domain.repositories.account import AccountLedger
from ..domain.repositories.debt import DebtRepository
from ..errors import DebtNotFound, DebtValidationError
from ..logging_config import get_logger
from ..models.debt import Debt, DebtStatus, Repayment
from .accounts import resolve_account
from .csv_rows import MAX_AMOUNT, MAX_BORROWER_NAME, MAX_INTEREST_RATE, RATE_STEP
from .interest import Number, money, to_decimal
from .ledger import compute_remaining, ledger_for_debt
from .status import status_after_repayment_change

logger = get_logger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "borrower_name",
        "borrower_contact",
        "borrower_email",
        "amount",
        "interest_rate",
        "lent_date",
        "due_date",
        "status",
        "purpose",
        "notes",
    }
)
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_NOISE = re.compile(r"[\s\-()]")


def _decimal_or_error(value: Any, field: str, errors: dict[str, str]) -> Optional[Decimal]:
    try:
        return to_decimal(value)
    except (TypeError, ValueError):
        errors[field] = "Please enter a valid number"
        return None


def validate_debt_fields(
    *,
    borrower_name: str,
    amount: Number,
    interest_rate: Number,
    lent_date: Optional[date],
    due_date: Optional[date] = None,
    borrower_email: Optional[str] = None,
    borrower_contact: Optional[str] = None,
    purpose: Optional[str] = None,
    notes: Optional[str] = None,
) -> dict[str, str]:
    """Return a ``field -> message`` map; empty when the debt is valid."""

    errors: dict[str, str] = {}
    name = (borrower_name or "").strip()
    if not name:
        errors["borrower_name"] = "Borrower name is required"
    elif len(name) > MAX_BORROWER_NAME:
        errors["borrower_name"] = "Borrower name cannot exceed 100 characters"

    amount_dec = _decimal_or_error(amount, "amount", errors)
    if amount_dec is not None:
        if amount_dec <= 0:
            errors["amount"] = "Amount must be greater than 0"
        elif amount_dec > MAX_AMOUNT:
            errors["amount"] = "Amount is too large (maximum: 999,999,999.99)"
        elif amount_dec != money(amount_dec):
            errors["amount"] = "Amount cannot have more than 2 decimal places"

    rate = _decimal_or_error(interest_rate, "interest_rate", errors)
    if rate is not None:
        if rate < 0:
            errors["interest_rate"] = "Interest rate cannot be negative"
        elif rate > MAX_INTEREST_RATE:
            errors["interest_rate"] = "Interest rate is too large (maximum: 99,999.9999)"
        elif rate != rate.quantize(RATE_STEP):
            errors["interest_rate"] = "Interest rate cannot have more than 4 decimal places"

    if lent_date is None:
        errors["lent_date"] = "Lent date is required"
    elif due_date is not None and due_date < lent_date:
        errors["due_date"] = "Due date cannot be before the lent date"

    if borrower_email and borrower_email.strip() and not _EMAIL.match(borrower_email.strip()):
        errors["borrower_email"] = "Please enter a valid email address"
    if borrower_contact and borrower_contact.strip():
        if not _PHONE.match(_PHONE_NOISE.sub("", borrower_contact)):
            errors["borrower_contact"] = "Please enter a valid phone number"

    if purpose and len(purpose) > 500:
        errors["purpose"] = "Purpose cannot exceed 500 characters"
    if notes and len(notes) > 1000:
        errors["notes"] = "Notes cannot exceed 1000 characters"
    return errors


def _require_debt(repo: DebtRepository, debt_id: int, user_id: int) -> Debt:
    debt = repo.get_by_id(debt_id, user_id=user_id)
    if debt is None:
        raise DebtNotFound(f"Debt {debt_id} not found")
    return debt


def create_debt(
    *,
    debt_repo: DebtRepository,
    account_ledger: AccountLedger,
    user_id: int,
    borrower_name: str,
    amount: Number,
    lent_date: date,
    interest_rate: Number = 0,
    due_date: Optional[date] = None,
    status: DebtStatus = DebtStatus.ACTIVE,
    borrower_contact: Optional[str] = None,
    borrower_email: Optional[str] = None,
    purpose: Optional[str] = None,
    notes: Optional[str] = None,
    account_id: Optional[int] = None,
) -> Debt:
    """Validate and persist a new debt, debiting the linked account."""

    errors = validate_debt_fields(
        borrower_name=borrower_name,
        amount=amount,
        interest_rate=interest_rate,
        lent_date=lent_date,
        due_date=due_date,
        borrower_email=borrower_email,
        borrower_contact=borrower_contact,
        purpose=purpose,
        notes=notes,
    )
    if errors:
        raise DebtValidationError(errors)

    principal = money(amount)
    if account_id is not None:
        resolve_account(account_ledger, account_id, user_id=user_id)

    debt = debt_repo.create(
        Debt(
            user_id=user_id,
            borrower_name=borrower_name.strip(),
            borrower_contact=(borrower_contact or "").strip() or None,
            borrower_email=(borrower_email or "").strip() or None,
            amount=principal,
            interest_rate=to_decimal(interest_rate),
            lent_date=lent_date,
            due_date=due_date,
            status=DebtStatus(status),
            purpose=(purpose or "").strip() or None,
            notes=(notes or "").strip() or None,
            account_id=account_id,
        ),
        user_id=user_id,
        settle_account=True,
    )
    logger.info(
        "Debt created",
        extra={"debt_id": debt.id, "user_id": user_id, "account_id": account_id},
    )
    return debt


def recompute_status(
    debt_repo: DebtRepository,
    debt: Debt,
    *,
    user_id: int,
    as_of: date,
    honor_settlement: bool = True,
) -> DebtStatus:
    """Re-derive and persist the status after the repayment list changed.

    With ``honor_settlement`` a persisted ``FULLY_PAID`` keeps the balance at
    zero; without it the ledger arithmetic alone decides.
    """

    explicit = debt.status if honor_settlement else None
    balance = compute_remaining(
        debt.amount,
        debt.interest_rate,
        debt.lent_date,
        debt.due_date,
        debt.repayments or [],
        as_of,
        explicit,
    )
    new_status = status_after_repayment_change(
        debt.status, balance.remaining_amount, balance.total_repaid
    )
    if new_status != debt.status and debt.id is not None:
        debt_repo.set_status(debt.id, new_status, user_id=user_id)
        logger.info(
            "Debt status changed",
            extra={"debt_id": debt.id, "from": DebtStatus(debt.status).value, "to": new_status.value},
        )
    return new_status


def add_repayment(
    *,
    debt_repo: DebtRepository,
    account_ledger: AccountLedger,
    user_id: int,
    debt_id: int,
    amount: Number,
    repayment_date: date,
    notes: Optional[str] = None,
    account_id: Optional[int] = None,
    as_of: Optional[date] = None,
) -> Repayment:
    """Record a repayment, deposit it into ``account_id`` and update the status.

    Over-repayment is accepted; the ledger clamps the remainder at zero.
    ``as_of`` defaults to the repayment date.
    """

    amount_dec = to_decimal(amount)
    if amount_dec <= 0:
        raise DebtValidationError({"amount": "Repayment amount must be greater than 0"})
    if amount_dec != money(amount_dec):
        raise DebtValidationError({"amount": "Amount cannot have more than 2 decimal places"})

    _require_debt(debt_repo, debt_id, user_id)
    if account_id is not None:
        resolve_account(account_ledger, account_id, user_id=user_id)

    repayment = debt_repo.add_repayment(
        Repayment(
            debt_id=debt_id,
            amount=amount_dec,
            repayment_date=repayment_date,
            notes=(notes or "").strip() or None,
            account_id=account_id,
        ),
        user_id=user_id,
        settle_account=True,
    )

    debt = _require_debt(debt_repo, debt_id, user_id)
    recompute_status(debt_repo, debt, user_id=user_id, as_of=as_of or repayment_date)
    return repayment


def delete_repayment(
    *,
    debt_repo: DebtRepository,
    user_id: int,
    repayment_id: int,
    debt_id: int,
    as_of: date,
) -> DebtStatus:
    """Remove a repayment, withdraw it from its account and re-derive the status.

    A ``FULLY_PAID`` debt reopens when the remaining repayments no longer
    cover the balance. The repayment stays when its account cannot cover
    the withdrawal.
    """

    _require_debt(debt_repo, debt_id, user_id)
    removed = debt_repo.delete_repayment(
        repayment_id, debt_id, user_id=user_id, settle_account=True
    )
    if removed is None:
        raise DebtNotFound(f"Repayment {repayment_id} not found on debt {debt_id}")

    debt = _require_debt(debt_repo, debt_id, user_id)
    return recompute_status(
        debt_repo, debt, user_id=user_id, as_of=as_of, honor_settlement=False
    )


def edit_debt(
    *,
    debt_repo: DebtRepository,
    user_id: int,
    debt_id: int,
    as_of: date,
    **changes: Any,
) -> Debt:
    """Apply field changes to a debt.

    An explicit ``status`` is written as given and wins over the derived one.
    An amount change on an account-linked debt debits or credits the
    difference; an increase the account cannot cover leaves the debt as it was.
    """

    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise DebtValidationError({name: "Field cannot be edited" for name in sorted(unknown)})

    debt = _require_debt(debt_repo, debt_id, user_id)
    merged = {
        "borrower_name": debt.borrower_name,
        "amount": debt.amount,
        "interest_rate": debt.interest_rate,
        "lent_date": debt.lent_date,
        "due_date": debt.due_date,
        "borrower_email": debt.borrower_email,
        "borrower_contact": debt.borrower_contact,
        "purpose": debt.purpose,
        "notes": debt.notes,
    }
    merged.update({k: v for k, v in changes.items() if k in merged})
    errors = validate_debt_fields(**merged)
    if errors:
        raise DebtValidationError(errors)

    for field_name, value in changes.items():
        if field_name == "amount":
            value = money(value)
        elif field_name == "interest_rate":
            value = to_decimal(value)
        elif field_name == "status":
            value = DebtStatus(value)
        setattr(debt, field_name, value)

    updated = debt_repo.update(debt, user_id=user_id, settle_account=True)

    if "status" not in changes:
        recompute_status(debt_repo, updated, user_id=user_id, as_of=as_of)
        updated = _require_debt(debt_repo, debt_id, user_id)
    return updated


def delete_debt(*, debt_repo: DebtRepository, user_id: int, debt_id: int) -> Debt:
    """Delete a debt with its repayments and refund the principal to its account."""

    removed = debt_repo.delete(debt_id, user_id=user_id, settle_account=True)
    if removed is None:
        raise DebtNotFound(f"Debt {debt_id} not found")
    logger.info("Debt deleted", extra={"debt_id": debt_id, "user_id": user_id})
    return removed


def bulk_delete_debts(
    *,
    debt_repo: DebtRepository,
    user_id: int,
    debt_ids: Iterable[int],
) -> list[Debt]:
    """Delete several debts and refund each principal, all in one transaction."""

    ids = list(dict.fromkeys(debt_ids))
    removed = debt_repo.delete_many(ids, user_id=user_id, settle_account=True)
    missing = set(ids) - {d.id for d in removed}
    if missing:
        logger.warning(
            "Bulk delete skipped debts not owned by user",
            extra={"user_id": user_id, "debt_ids": sorted(missing)},
        )
    logger.info("Debts bulk deleted", extra={"user_id": user_id, "count": len(removed)})
    return removed


def account_refunds(debts: Iterable[Debt]) -> dict[int, Decimal]:
    """Principal to give back to each linked account when ``debts`` are deleted."""

    refunds: dict[int, Decimal] = defaultdict(Decimal)
    for debt in debts:
        if debt.account_id is not None:
            refunds[debt.account_id] += Decimal(debt.amount)
    return dict(refunds)


@dataclass(frozen=True, slots=True)
class DeletionPreview:
    """What a (bulk) delete would remove, shown before confirming."""

    count: int
    total_principal: Decimal
    total_repaid: Decimal
    total_outstanding: Decimal
    refunds: dict[int, Decimal]


def deletion_preview(debts: Iterable[Debt], as_of: date) -> DeletionPreview:
    debts = list(debts)
    balances = [ledger_for_debt(d, as_of) for d in debts]
    return DeletionPreview(
        count=len(debts),
        total_principal=money(sum((Decimal(d.amount) for d in debts), Decimal(0))),
        total_repaid=money(sum((b.total_repaid for b in balances), Decimal(0))),
        total_outstanding=money(sum((b.remaining_amount for b in balances), Decimal(0))),
        refunds=account_refunds(debts),
    )


__all__ = [
    "DeletionPreview",
    "account_refunds",
    "add_repayment",
    "bulk_delete_debts",
    "create_debt",
    "delete_debt",
    "delete_repayment",
    "deletion_preview",
    "edit_debt",
    "recompute_status",
    "validate_debt_fields",
]
