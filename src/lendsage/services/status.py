"""Debt lifecycle status rules."""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from ..models.debt import DebtStatus
from .ledger import ledger_for_debt

StatusLike = Union[DebtStatus, str]

# Statuses a user sets by hand; automatic recomputation never assigns them.
MANUAL_OVERRIDES = frozenset({DebtStatus.DEFAULTED, DebtStatus.FULLY_PAID})

_STATUS_ALIASES = {
    "ACTIVE": DebtStatus.ACTIVE,
    "PARTIALLYPAID": DebtStatus.PARTIALLY_PAID,
    "PARTIAL": DebtStatus.PARTIALLY_PAID,
    "FULLYPAID": DebtStatus.FULLY_PAID,
    "PAID": DebtStatus.FULLY_PAID,
    "OVERDUE": DebtStatus.OVERDUE,
    "LATE": DebtStatus.OVERDUE,
    "DEFAULTED": DebtStatus.DEFAULTED,
    "DEFAULT": DebtStatus.DEFAULTED,
}
_SEPARATORS = re.compile(r"[\s\-_]+")


def parse_status(text: Optional[str]) -> Optional[DebtStatus]:
    """Match free text against the status enum, or return None."""

    if text is None:
        return None
    key = _SEPARATORS.sub("", str(text)).upper()
    if not key:
        return None
    return _STATUS_ALIASES.get(key)


def status_after_repayment_change(
    current: StatusLike, remaining_amount: Decimal, total_repaid: Decimal
) -> DebtStatus:
    """Persisted status after a repayment was added or removed.

    ``DEFAULTED`` is terminal and manual, so it is returned unchanged.
    """

    current = DebtStatus(current)
    if current is DebtStatus.DEFAULTED:
        return current
    if remaining_amount <= 0:
        return DebtStatus.FULLY_PAID
    if total_repaid > 0:
        return DebtStatus.PARTIALLY_PAID
    if current is DebtStatus.OVERDUE:
        return current
    return DebtStatus.ACTIVE


def is_overdue(due_date: Optional[date], remaining_amount: Decimal, as_of: date) -> bool:
    """Read-time overdue flag, independent of the persisted status."""

    return due_date is not None and due_date < as_of and remaining_amount > 0


def manual_override_for(status: Optional[StatusLike]) -> Optional[DebtStatus]:
    """Return the part of a persisted status that derivation must respect."""

    if status is None:
        return None
    status = DebtStatus(status)
    return status if status in MANUAL_OVERRIDES else None


def resolve_status(
    remaining_amount: Decimal,
    total_repaid: Decimal,
    due_date: Optional[date],
    as_of: date,
    manual_override: Optional[StatusLike] = None,
) -> DebtStatus:
    """Derive the display status from ledger output and the manual override.

    Only the override is stored state; everything else is recomputed, so the
    displayed status cannot drift from the balance.
    """

    override = manual_override_for(manual_override)
    if override is DebtStatus.DEFAULTED:
        return DebtStatus.DEFAULTED
    if override is DebtStatus.FULLY_PAID or remaining_amount <= 0:
        return DebtStatus.FULLY_PAID
    if is_overdue(due_date, remaining_amount, as_of):
        return DebtStatus.OVERDUE
    if total_repaid > 0:
        return DebtStatus.PARTIALLY_PAID
    return DebtStatus.ACTIVE


def effective_status(debt, as_of: date) -> DebtStatus:
    """Display status for a persisted debt row."""

    balance = ledger_for_debt(debt, as_of)
    return resolve_status(
        balance.remaining_amount,
        balance.total_repaid,
        debt.due_date,
        as_of,
        manual_override=debt.status,
    )


__all__ = [
    "MANUAL_OVERRIDES",
    "effective_status",
    "is_overdue",
    "manual_override_for",
    "parse_status",
    "resolve_status",
    "status_after_repayment_change",
]
