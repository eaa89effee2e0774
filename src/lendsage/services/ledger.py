"""Reconcile a debt's principal and interest against its repayments."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Union

from ..logging_config import get_logger
from ..models.debt import DebtStatus
from .interest import HUNDRED, Number, calculate_interest, money, to_decimal

if TYPE_CHECKING:  # pragma: no cover
    from ..models.debt import Debt

logger = get_logger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True, slots=True)
class LedgerBalance:
    """Derived balance for one debt as of a given date."""

    remaining_amount: Decimal
    total_with_interest: Decimal
    interest_amount: Decimal
    total_repaid: Decimal
    repaid_percentage: Decimal  # clamped to [0, 100] for progress bars
    repaid_percentage_raw: Decimal  # unclamped, kept for audit

    @property
    def is_settled(self) -> bool:
        return self.remaining_amount == 0


def _repayment_amount(item: object) -> Decimal:
    amount = getattr(item, "amount", item)
    return to_decimal(amount)  # type: ignore[arg-type]


def total_repaid(repayments: Iterable[object]) -> Decimal:
    """Sum repayment amounts; accepts numbers or objects with ``amount``."""

    return sum((_repayment_amount(r) for r in repayments), Decimal(0))


def compute_remaining(
    principal: Number,
    rate: Number,
    lent_date: date,
    due_date: date | None,
    repayments: Iterable[object],
    as_of: date,
    explicit_status: Union[DebtStatus, str, None] = None,
) -> LedgerBalance:
    """Return the remaining balance of a debt under the pooled-balance model.

    Repayments reduce principal and interest together; there is no split
    between the two. A debt with a due date quotes interest over its whole
    term, an open-ended one accrues interest up to ``as_of``. A persisted
    ``FULLY_PAID`` status settles the debt regardless of the arithmetic.

    Never raises on inverted date ranges: the term is clamped to zero days and
    a warning is logged, because list views recompute this on every render.
    """

    term_end = due_date or as_of
    if term_end < lent_date:
        logger.warning(
            "Inverted ledger date range clamped to zero days",
            extra={"lent_date": lent_date.isoformat(), "term_end": term_end.isoformat()},
        )
        term_end = lent_date

    calc = calculate_interest(principal, rate, lent_date, term_end, as_of=as_of)
    repaid = total_repaid(repayments)
    total = calc.total_amount_with_interest

    remaining = max(ZERO, money(total - repaid))
    if explicit_status is not None and DebtStatus(explicit_status) is DebtStatus.FULLY_PAID:
        remaining = ZERO

    raw_pct = (repaid / total * HUNDRED) if total > 0 else Decimal(0)
    clamped_pct = min(max(raw_pct, Decimal(0)), HUNDRED)

    return LedgerBalance(
        remaining_amount=remaining,
        total_with_interest=total,
        interest_amount=calc.interest_amount,
        total_repaid=money(repaid),
        repaid_percentage=money(clamped_pct),
        repaid_percentage_raw=raw_pct,
    )


def ledger_for_debt(debt: "Debt", as_of: date) -> LedgerBalance:
    """Compute the ledger for a persisted debt row."""

    return compute_remaining(
        debt.amount,
        debt.interest_rate,
        debt.lent_date,
        debt.due_date,
        debt.repayments or [],
        as_of,
        debt.status,
    )


__all__ = ["LedgerBalance", "compute_remaining", "ledger_for_debt", "total_repaid"]
