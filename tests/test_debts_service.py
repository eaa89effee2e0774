"""Tests for the debt lifecycle service."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from lendsage.errors import (
    DebtNotFound,
    DebtValidationError,
    InsufficientAccountBalance,
    UnknownAccountReference,
)
from lendsage.infra.repositories import debt as debt_repository
from lendsage.models import DebtStatus
from lendsage.services import debts as debt_service
from lendsage.services.ledger import ledger_for_debt
from tests.conftest import OTHER_USER_ID, USER_ID, debt_stub

LENT = date(2024, 1, 1)
DUE = date(2024, 7, 1)


def _locked_database(*args, **kwargs):
    raise OperationalError("UPDATE account SET balance=?", {}, Exception("database is locked"))


def _create(services, **overrides):
    fields = {
        "borrower_name": "Bob Jones",
        "amount": "1000",
        "interest_rate": "12",
        "lent_date": LENT,
        "due_date": DUE,
    }
    fields.update(overrides)
    return debt_service.create_debt(**services, **fields)


class TestValidation:
    def test_valid_fields_have_no_errors(self):
        assert (
            debt_service.validate_debt_fields(
                borrower_name="Ann",
                amount="10.50",
                interest_rate=0,
                lent_date=LENT,
                borrower_email="ann@example.com",
                borrower_contact="+1 (555) 010-2000",
            )
            == {}
        )

    def test_collects_every_field_error(self):
        errors = debt_service.validate_debt_fields(
            borrower_name=" ",
            amount="1.001",
            interest_rate=-1,
            lent_date=DUE,
            due_date=LENT,
            borrower_email="nope",
            borrower_contact="phone",
            purpose="p" * 501,
            notes="n" * 1001,
        )
        assert set(errors) == {
            "borrower_name",
            "amount",
            "interest_rate",
            "due_date",
            "borrower_email",
            "borrower_contact",
            "purpose",
            "notes",
        }

    @pytest.mark.parametrize("amount", ["0", "-5", "1000000000", "abc"])
    def test_bad_amounts(self, amount):
        errors = debt_service.validate_debt_fields(
            borrower_name="Ann", amount=amount, interest_rate=0, lent_date=LENT
        )
        assert "amount" in errors

    @pytest.mark.parametrize("rate", ["-1", "5.12345", "100000"])
    def test_bad_interest_rates(self, rate):
        errors = debt_service.validate_debt_fields(
            borrower_name="Ann", amount="10", interest_rate=rate, lent_date=LENT
        )
        assert "interest_rate" in errors

    def test_four_decimal_rate_is_accepted(self):
        errors = debt_service.validate_debt_fields(
            borrower_name="Ann", amount="10", interest_rate="5.1234", lent_date=LENT
        )
        assert errors == {}

    def test_create_raises_with_field_map(self, services):
        with pytest.raises(DebtValidationError) as excinfo:
            _create(services, borrower_name="")
        assert "borrower_name" in excinfo.value.errors


class TestCreateDebt:
    def test_without_account(self, services):
        debt = _create(services)

        assert debt.id is not None
        assert debt.amount == Decimal("1000.00")
        assert debt.status is DebtStatus.ACTIVE
        assert debt.user_id == USER_ID

    def test_debits_linked_account(self, services, account_factory, account_repo):
        account = account_factory(balance="1500")

        _create(services, account_id=account.id)

        assert account_repo.get_balance(account.id) == Decimal("500.00")

    def test_insufficient_balance_persists_nothing(self, services, account_factory, debt_repo):
        account = account_factory(balance="999.99")

        with pytest.raises(InsufficientAccountBalance):
            _create(services, account_id=account.id)
        assert debt_repo.list_all(user_id=USER_ID) == []

    def test_failed_debit_stores_no_debt(
        self, services, account_factory, account_repo, debt_repo, monkeypatch
    ):
        account = account_factory(balance="5000")
        monkeypatch.setattr(debt_repository, "apply_balance_change", _locked_database)

        with pytest.raises(OperationalError):
            _create(services, account_id=account.id)

        assert debt_repo.list_all(user_id=USER_ID) == []
        assert account_repo.get_balance(account.id) == Decimal("5000.00")

    def test_unknown_or_foreign_account(self, services, account_factory):
        foreign = account_factory(owner=OTHER_USER_ID)
        with pytest.raises(UnknownAccountReference):
            _create(services, account_id=foreign.id)


class TestRepayments:
    def test_partial_repayment(self, services, debt_repo):
        """1000 at 12% to 2024-07-01, 500 repaid on 2024-04-01."""
        debt = _create(services)

        debt_service.add_repayment(
            **services, debt_id=debt.id, amount="500", repayment_date=date(2024, 4, 1)
        )

        stored = debt_repo.get_by_id(debt.id, user_id=USER_ID)
        balance = ledger_for_debt(stored, date(2024, 4, 1))
        assert balance.remaining_amount == Decimal("559.84")
        assert stored.status is DebtStatus.PARTIALLY_PAID

    def test_settled_debt_stays_settled(self, services, debt_repo):
        debt = _create(services)

        debt_service.add_repayment(
            **services, debt_id=debt.id, amount="1059.84", repayment_date=date(2024, 5, 1)
        )
        debt_service.add_repayment(
            **services, debt_id=debt.id, amount="25", repayment_date=date(2024, 6, 1)
        )

        stored = debt_repo.get_by_id(debt.id, user_id=USER_ID)
        assert stored.status is DebtStatus.FULLY_PAID
        assert ledger_for_debt(stored, date(2024, 6, 1)).remaining_amount == Decimal("0.00")

    def test_repayment_credits_account(self, services, account_factory, account_repo):
        account = account_factory(balance="0")
        debt = _create(services)

        debt_service.add_repayment(
            **services,
            debt_id=debt.id,
            amount="100",
            repayment_date=date(2024, 2, 1),
            account_id=account.id,
        )

        assert account_repo.get_balance(account.id) == Decimal("100.00")

    def test_failed_deposit_stores_no_repayment(
        self, services, account_factory, account_repo, debt_repo, monkeypatch
    ):
        account = account_factory(balance="0")
        debt = _create(services)
        monkeypatch.setattr(debt_repository, "apply_balance_change", _locked_database)

        with pytest.raises(OperationalError):
            debt_service.add_repayment(
                **services,
                debt_id=debt.id,
                amount="100",
                repayment_date=date(2024, 2, 1),
                account_id=account.id,
            )

        stored = debt_repo.get_by_id(debt.id, user_id=USER_ID)
        assert stored.repayments == []
        assert stored.status is DebtStatus.ACTIVE
        assert account_repo.get_balance(account.id) == Decimal("0.00")

    def test_recompute_status_of_unsaved_debt_writes_nothing(self, debt_repo):
        debt = debt_stub(amount="100.00", repayments=("100",))

        status = debt_service.recompute_status(debt_repo, debt, user_id=USER_ID, as_of=LENT)

        assert status is DebtStatus.FULLY_PAID
        assert debt_repo.list_all(user_id=USER_ID) == []

    def test_defaulted_debt_keeps_status(self, services, debt_repo):
        debt = _create(services, status=DebtStatus.DEFAULTED)

        debt_service.add_repayment(
            **services, debt_id=debt.id, amount="2000", repayment_date=date(2024, 2, 1)
        )

        assert debt_repo.get_by_id(debt.id, user_id=USER_ID).status is DebtStatus.DEFAULTED

    @pytest.mark.parametrize("amount", ["0", "-1", "0.001"])
    def test_invalid_repayment_amount(self, services, amount):
        debt = _create(services)
        with pytest.raises(DebtValidationError):
            debt_service.add_repayment(
                **services, debt_id=debt.id, amount=amount, repayment_date=LENT
            )

    def test_repayment_on_foreign_debt(self, services, debt_factory):
        foreign = debt_factory(owner=OTHER_USER_ID)
        with pytest.raises(DebtNotFound):
            debt_service.add_repayment(
                **services, debt_id=foreign.id, amount="1", repayment_date=LENT
            )

    def test_deleting_repayment_reopens_debt(
        self, services, debt_scope, debt_repo, account_factory, account_repo
    ):
        account = account_factory(balance="0")
        debt = _create(services)
        repayment = debt_service.add_repayment(
            **services,
            debt_id=debt.id,
            amount="1059.84",
            repayment_date=date(2024, 5, 1),
            account_id=account.id,
        )
        assert debt_repo.get_by_id(debt.id, user_id=USER_ID).status is DebtStatus.FULLY_PAID

        status = debt_service.delete_repayment(
            **debt_scope, repayment_id=repayment.id, debt_id=debt.id, as_of=date(2024, 5, 2)
        )

        assert status is DebtStatus.ACTIVE
        assert account_repo.get_balance(account.id) == Decimal("0.00")
        assert debt_repo.get_by_id(debt.id, user_id=USER_ID).repayments == []

    def test_deleting_repayment_needs_funds_to_reverse(
        self, services, debt_scope, account_factory, account_repo
    ):
        account = account_factory(balance="0")
        debt = _create(services)
        repayment = debt_service.add_repayment(
            **services,
            debt_id=debt.id,
            amount="100",
            repayment_date=date(2024, 2, 1),
            account_id=account.id,
        )
        account_repo.debit(account.id, Decimal("60"))

        with pytest.raises(InsufficientAccountBalance):
            debt_service.delete_repayment(
                **debt_scope, repayment_id=repayment.id, debt_id=debt.id, as_of=date(2024, 3, 1)
            )
        stored = debt_scope["debt_repo"].get_by_id(debt.id, user_id=USER_ID)
        assert [r.id for r in stored.repayments] == [repayment.id]
        assert account_repo.get_balance(account.id) == Decimal("40.00")

    def test_deleting_missing_repayment(self, services, debt_scope):
        debt = _create(services)
        with pytest.raises(DebtNotFound):
            debt_service.delete_repayment(
                **debt_scope, repayment_id=999, debt_id=debt.id, as_of=LENT
            )


class TestEditDebt:
    def test_amount_increase_debits_difference(
        self, services, debt_scope, account_factory, account_repo
    ):
        account = account_factory(balance="1500")
        debt = _create(services, account_id=account.id)

        updated = debt_service.edit_debt(
            **debt_scope, debt_id=debt.id, as_of=LENT, amount="1200"
        )

        assert updated.amount == Decimal("1200.00")
        assert account_repo.get_balance(account.id) == Decimal("300.00")

    def test_amount_decrease_credits_difference(
        self, services, debt_scope, account_factory, account_repo
    ):
        account = account_factory(balance="1000")
        debt = _create(services, account_id=account.id)

        debt_service.edit_debt(**debt_scope, debt_id=debt.id, as_of=LENT, amount="400")

        assert account_repo.get_balance(account.id) == Decimal("600.00")

    def test_amount_increase_beyond_balance(self, services, debt_scope, account_factory, debt_repo):
        account = account_factory(balance="1000")
        debt = _create(services, account_id=account.id)

        with pytest.raises(InsufficientAccountBalance):
            debt_service.edit_debt(**debt_scope, debt_id=debt.id, as_of=LENT, amount="1000.01")
        assert debt_repo.get_by_id(debt.id, user_id=USER_ID).amount == Decimal("1000.00")

    def test_explicit_status_wins(self, services, debt_scope):
        debt = _create(services)

        updated = debt_service.edit_debt(
            **debt_scope, debt_id=debt.id, as_of=LENT, status=DebtStatus.DEFAULTED
        )

        assert updated.status is DebtStatus.DEFAULTED

    def test_status_recomputed_when_not_given(self, services, debt_scope, debt_factory):
        debt = debt_factory(amount="100.00", status=DebtStatus.ACTIVE)
        debt_service.add_repayment(
            **services, debt_id=debt.id, amount="60", repayment_date=date(2024, 2, 1)
        )

        updated = debt_service.edit_debt(
            **debt_scope, debt_id=debt.id, as_of=date(2024, 2, 1), amount="60"
        )

        assert updated.status is DebtStatus.FULLY_PAID

    def test_unknown_fields_rejected(self, services, debt_scope):
        debt = _create(services)
        with pytest.raises(DebtValidationError):
            debt_service.edit_debt(**debt_scope, debt_id=debt.id, as_of=LENT, user_id_x=3)


class TestDeleteDebt:
    def test_delete_refunds_principal(
        self, services, debt_scope, account_factory, account_repo, debt_repo
    ):
        account = account_factory(balance="1000")
        debt = _create(services, account_id=account.id)
        debt_service.add_repayment(
            **services, debt_id=debt.id, amount="100", repayment_date=date(2024, 2, 1)
        )

        debt_service.delete_debt(**debt_scope, debt_id=debt.id)

        assert account_repo.get_balance(account.id) == Decimal("1000.00")
        assert debt_repo.get_by_id(debt.id, user_id=USER_ID) is None

    def test_delete_missing(self, debt_scope):
        with pytest.raises(DebtNotFound):
            debt_service.delete_debt(**debt_scope, debt_id=12345)

    def test_bulk_delete_refunds_per_account(
        self, services, debt_scope, account_factory, account_repo, debt_repo, debt_factory
    ):
        first = account_factory(holder_name="A", balance="1000")
        second = account_factory(holder_name="B", balance="1000")
        ids = [
            _create(services, amount="300", account_id=first.id).id,
            _create(services, amount="200", account_id=first.id).id,
            _create(services, amount="500", account_id=second.id).id,
            _create(services, amount="50").id,
        ]
        foreign = debt_factory(owner=OTHER_USER_ID)

        removed = debt_service.bulk_delete_debts(**debt_scope, debt_ids=ids + [foreign.id])

        assert len(removed) == 4
        assert account_repo.get_balance(first.id) == Decimal("1000.00")
        assert account_repo.get_balance(second.id) == Decimal("1000.00")
        assert debt_repo.list_all(user_id=USER_ID) == []
        assert debt_repo.get_by_id(foreign.id, user_id=OTHER_USER_ID) is not None

    def test_deletion_preview(self, services, account_factory):
        account = account_factory(balance="5000")
        debts = [
            _create(services, amount="1000", account_id=account.id),
            _create(services, amount="500", interest_rate="0", due_date=None),
        ]

        preview = debt_service.deletion_preview(debts, as_of=date(2024, 2, 1))

        assert preview.count == 2
        assert preview.total_principal == Decimal("1500.00")
        assert preview.total_outstanding == Decimal("1559.84")
        assert preview.refunds == {account.id: Decimal("1000.00")}
