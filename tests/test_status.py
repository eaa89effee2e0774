"""Tests for debt status rules."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from lendsage.models import DebtStatus
from lendsage.services.status import (
    effective_status,
    is_overdue,
    manual_override_for,
    parse_status,
    resolve_status,
    status_after_repayment_change,
)
from tests.conftest import debt_stub

ZERO = Decimal("0")


class TestParseStatus:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("active", DebtStatus.ACTIVE),
            ("Partially Paid", DebtStatus.PARTIALLY_PAID),
            ("partially-paid", DebtStatus.PARTIALLY_PAID),
            ("FULLY_PAID", DebtStatus.FULLY_PAID),
            ("paid", DebtStatus.FULLY_PAID),
            ("late", DebtStatus.OVERDUE),
            ("Default", DebtStatus.DEFAULTED),
        ],
    )
    def test_aliases(self, text, expected):
        assert parse_status(text) is expected

    @pytest.mark.parametrize("text", [None, "", "   ", "pending", "closed"])
    def test_unrecognised_returns_none(self, text):
        assert parse_status(text) is None


class TestStatusAfterRepaymentChange:
    def test_defaulted_is_never_overwritten(self):
        assert (
            status_after_repayment_change(DebtStatus.DEFAULTED, ZERO, Decimal("1000"))
            is DebtStatus.DEFAULTED
        )

    def test_settled_becomes_fully_paid(self):
        assert (
            status_after_repayment_change(DebtStatus.ACTIVE, ZERO, Decimal("10"))
            is DebtStatus.FULLY_PAID
        )

    def test_partial_repayment(self):
        assert (
            status_after_repayment_change(DebtStatus.ACTIVE, Decimal("559.84"), Decimal("500"))
            is DebtStatus.PARTIALLY_PAID
        )

    def test_no_repayments_returns_to_active(self):
        assert (
            status_after_repayment_change(DebtStatus.FULLY_PAID, Decimal("100"), ZERO)
            is DebtStatus.ACTIVE
        )

    def test_imported_overdue_kept_without_repayments(self):
        assert (
            status_after_repayment_change("OVERDUE", Decimal("100"), ZERO)
            is DebtStatus.OVERDUE
        )


class TestResolveStatus:
    AS_OF = date(2024, 6, 1)

    def test_overdue_when_past_due_with_balance(self):
        assert is_overdue(date(2024, 5, 31), Decimal("1"), self.AS_OF)
        assert (
            resolve_status(Decimal("1"), ZERO, date(2024, 5, 31), self.AS_OF)
            is DebtStatus.OVERDUE
        )

    def test_not_overdue_on_due_date(self):
        assert not is_overdue(self.AS_OF, Decimal("1"), self.AS_OF)

    def test_not_overdue_without_due_date(self):
        assert resolve_status(Decimal("1"), ZERO, None, self.AS_OF) is DebtStatus.ACTIVE

    def test_settled_debt_is_never_overdue(self):
        assert (
            resolve_status(ZERO, Decimal("5"), date(2024, 1, 1), self.AS_OF)
            is DebtStatus.FULLY_PAID
        )

    def test_defaulted_override_wins(self):
        assert (
            resolve_status(ZERO, Decimal("5"), None, self.AS_OF, DebtStatus.DEFAULTED)
            is DebtStatus.DEFAULTED
        )

    def test_fully_paid_override_wins_over_balance(self):
        assert (
            resolve_status(Decimal("50"), ZERO, date(2024, 1, 1), self.AS_OF, "FULLY_PAID")
            is DebtStatus.FULLY_PAID
        )

    def test_non_manual_statuses_are_not_overrides(self):
        assert manual_override_for(DebtStatus.OVERDUE) is None
        assert manual_override_for(DebtStatus.PARTIALLY_PAID) is None
        assert manual_override_for(None) is None
        assert manual_override_for("DEFAULTED") is DebtStatus.DEFAULTED


def test_effective_status_flags_overdue_on_read():
    debt = debt_stub(
        amount="1000", due_date=date(2024, 3, 1), repayments=("200",), status=DebtStatus.PARTIALLY_PAID
    )
    assert effective_status(debt, date(2024, 2, 1)) is DebtStatus.PARTIALLY_PAID
    assert effective_status(debt, date(2024, 4, 1)) is DebtStatus.OVERDUE
