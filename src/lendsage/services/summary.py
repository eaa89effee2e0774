"""Portfolio totals, status sections and list filtering for debts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Hashable, Iterable, Optional, Sequence

from ..models.debt import Debt, DebtStatus
from .interest import money
from .ledger import LedgerBalance, ledger_for_debt
from .status import StatusLike, effective_status, resolve_status

SECTION_TITLES = {
    DebtStatus.ACTIVE: "Active",
    DebtStatus.PARTIALLY_PAID: "Partially Paid",
    DebtStatus.FULLY_PAID: "Fully Paid",
    DebtStatus.OVERDUE: "Overdue",
    DebtStatus.DEFAULTED: "Defaulted",
}


@dataclass(frozen=True, slots=True)
class PortfolioSummary:
    total_debts: int
    total_principal: Decimal
    total_interest_accrued: Decimal
    total_repaid: Decimal
    total_outstanding: Decimal
    active_count: int
    overdue_count: int


@dataclass(frozen=True)
class DebtSection:
    """Debts grouped under one status heading."""

    key: DebtStatus
    title: str
    debts: tuple[Debt, ...]
    total_amount: Decimal
    total_remaining: Decimal

    @property
    def count(self) -> int:
        return len(self.debts)


def summarize(debts: Iterable[Debt], as_of: date) -> PortfolioSummary:
    """Aggregate ledger figures over ``debts`` as of a date.

    ``active_count`` counts every debt still owed that is not overdue or
    defaulted (active and partially paid); ``overdue_count`` uses the
    read-time overdue rule, not the persisted status.
    """

    principal = interest = repaid = outstanding = Decimal(0)
    total = active = overdue = 0
    for debt in debts:
        balance = ledger_for_debt(debt, as_of)
        status = _display_status(debt, balance, as_of)
        total += 1
        principal += Decimal(debt.amount)
        interest += balance.interest_amount
        repaid += balance.total_repaid
        outstanding += balance.remaining_amount
        if status in (DebtStatus.ACTIVE, DebtStatus.PARTIALLY_PAID):
            active += 1
        elif status is DebtStatus.OVERDUE:
            overdue += 1

    return PortfolioSummary(
        total_debts=total,
        total_principal=money(principal),
        total_interest_accrued=money(interest),
        total_repaid=money(repaid),
        total_outstanding=money(outstanding),
        active_count=active,
        overdue_count=overdue,
    )


def _display_status(debt: Debt, balance: LedgerBalance, as_of: date) -> DebtStatus:
    return resolve_status(
        balance.remaining_amount,
        balance.total_repaid,
        debt.due_date,
        as_of,
        manual_override=debt.status,
    )


def build_sections(
    debts: Iterable[Debt], as_of: date, *, by_effective_status: bool = False
) -> list[DebtSection]:
    """Group debts into one section per status, in a fixed order.

    Sections follow the persisted status unless ``by_effective_status`` is
    set, in which case overdue debts move to the overdue section on read.
    Empty sections are kept so the layout never shifts.
    """

    grouped: dict[DebtStatus, list[Debt]] = {status: [] for status in SECTION_TITLES}
    remaining: dict[DebtStatus, Decimal] = {status: Decimal(0) for status in SECTION_TITLES}
    for debt in debts:
        balance = ledger_for_debt(debt, as_of)
        key = (
            _display_status(debt, balance, as_of)
            if by_effective_status
            else DebtStatus(debt.status)
        )
        grouped[key].append(debt)
        remaining[key] += balance.remaining_amount

    return [
        DebtSection(
            key=status,
            title=title,
            debts=tuple(grouped[status]),
            total_amount=money(sum((Decimal(d.amount) for d in grouped[status]), Decimal(0))),
            total_remaining=money(remaining[status]),
        )
        for status, title in SECTION_TITLES.items()
    ]


def _matches_text(debt: Debt, needle: str) -> bool:
    haystack = (
        debt.borrower_name,
        debt.purpose,
        debt.borrower_contact,
        debt.borrower_email,
        debt.notes,
    )
    return any(value and needle in value.lower() for value in haystack)


def filter_debts(
    debts: Iterable[Debt],
    *,
    search: Optional[str] = None,
    status: Optional[StatusLike] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    as_of: Optional[date] = None,
) -> list[Debt]:
    """Return debts matching every given filter, preserving input order.

    ``status`` compares against the persisted status, or against the display
    status when ``as_of`` is given. The lent-date window is inclusive.
    """

    needle = (search or "").strip().lower()
    wanted = DebtStatus(status) if status else None
    matched = []
    for debt in debts:
        if needle and not _matches_text(debt, needle):
            continue
        if wanted is not None:
            current = effective_status(debt, as_of) if as_of else DebtStatus(debt.status)
            if current is not wanted:
                continue
        if start_date and debt.lent_date < start_date:
            continue
        if end_date and debt.lent_date > end_date:
            continue
        matched.append(debt)
    return matched


def _fingerprint(debts: Sequence[Debt], as_of: date) -> Hashable:
    return (
        as_of,
        tuple(
            (
                d.id,
                Decimal(d.amount),
                Decimal(d.interest_rate),
                d.lent_date,
                d.due_date,
                DebtStatus(d.status),
                tuple((r.id, Decimal(r.amount)) for r in (d.repayments or [])),
            )
            for d in debts
        ),
    )


class SummaryCache:
    """Memoises ``summarize`` for list views that re-render often.

    Entries are keyed on the debts' ledger-relevant fields and ``as_of``, so
    any edit, repayment change or new day produces a fresh entry.
    """

    def __init__(self, max_entries: int = 32):
        self.max_entries = max_entries
        self._entries: dict[Hashable, PortfolioSummary] = {}
        self.hits = 0
        self.misses = 0

    def summarize(self, debts: Iterable[Debt], as_of: date) -> PortfolioSummary:
        debts = list(debts)
        key = _fingerprint(debts, as_of)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        summary = summarize(debts, as_of)
        if len(self._entries) >= self.max_entries:
            # dicts keep insertion order; drop the oldest entry
            self._entries.pop(next(iter(self._entries)))
        self._entries[key] = summary
        return summary

    def clear(self) -> None:
        self._entries.clear()
        self.hits = self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "DebtSection",
    "PortfolioSummary",
    "SECTION_TITLES",
    "SummaryCache",
    "build_sections",
    "filter_debts",
    "summarize",
]
