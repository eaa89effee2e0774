"""Pro-rated simple interest over a date span."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from ..errors import InvalidDateRange

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
DAYS_PER_YEAR = Decimal(365)
HUNDRED = Decimal(100)


def to_decimal(value: Number) -> Decimal:
    """Convert ``value`` to Decimal without going through binary floats."""

    if isinstance(value, bool):
        raise TypeError("Booleans are not amounts")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() keeps 0.1 as Decimal("0.1") instead of its float expansion
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def money(value: Number) -> Decimal:
    """Round to currency precision (cents, half-up)."""

    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class InterestCalculation:
    """Interest owed on a principal; amounts are rounded to cents."""

    original_amount: Decimal
    interest_amount: Decimal
    total_amount_with_interest: Decimal
    days_elapsed: int
    days_total: int


def accrued_interest(principal: Decimal, annual_rate_percent: Decimal, days: int) -> Decimal:
    """Unrounded simple interest for ``days`` days."""

    if days <= 0 or annual_rate_percent == 0:
        return Decimal(0)
    return principal * (annual_rate_percent / HUNDRED) * (Decimal(days) / DAYS_PER_YEAR)


def calculate_interest(
    principal: Number,
    annual_rate_percent: Number,
    start_date: date,
    end_date: date | None = None,
    *,
    as_of: date | None = None,
) -> InterestCalculation:
    """Calculate simple interest between ``start_date`` and the term end.

    With an ``end_date`` the term is fixed and interest covers the whole term
    no matter what ``as_of`` is. Without one the debt is open-ended and
    interest accrues up to ``as_of`` (today when omitted), so re-evaluating
    later yields more interest.

    Raises:
        InvalidDateRange: the term end falls before ``start_date``.
        ValueError: negative principal or rate.
    """

    principal_dec = to_decimal(principal)
    rate = to_decimal(annual_rate_percent)
    if principal_dec < 0:
        raise ValueError("Principal cannot be negative")
    if rate < 0:
        raise ValueError("Interest rate cannot be negative")

    as_of = as_of or date.today()
    if end_date is not None:
        if end_date < start_date:
            raise InvalidDateRange(
                f"End date {end_date.isoformat()} is before start date {start_date.isoformat()}"
            )
        days_total = (end_date - start_date).days
    else:
        if as_of < start_date:
            raise InvalidDateRange(
                f"As-of date {as_of.isoformat()} is before start date {start_date.isoformat()}"
            )
        days_total = (as_of - start_date).days
    days_elapsed = max(0, (as_of - start_date).days)

    interest = accrued_interest(principal_dec, rate, days_total)
    return InterestCalculation(
        original_amount=money(principal_dec),
        interest_amount=money(interest),
        total_amount_with_interest=money(principal_dec + interest),
        days_elapsed=days_elapsed,
        days_total=days_total,
    )


__all__ = [
    "CENT",
    "InterestCalculation",
    "accrued_interest",
    "calculate_interest",
    "money",
    "to_decimal",
]
