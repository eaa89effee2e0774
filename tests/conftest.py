"""Pytest configuration and shared fixtures for LendSage tests.

This module provides database fixtures, test data factories, and helper utilities
for testing domain logic, repositories, and services without touching the real app database.
"""

from __future__ import annotations

import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import func
from sqlmodel import Session, SQLModel, create_engine, select

# Import all models to ensure they're registered with SQLModel metadata
from lendsage.models import Account, Debt, DebtStatus, Repayment
from lendsage.infra.database import create_session_factory
from lendsage.infra.repositories import SQLModelAccountRepository, SQLModelDebtRepository

USER_ID = 1
OTHER_USER_ID = 2


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the one the application wires into repositories."""

    return create_session_factory(db_engine)


@pytest.fixture
def debt_repo(session_factory) -> SQLModelDebtRepository:
    return SQLModelDebtRepository(session_factory)


@pytest.fixture
def account_repo(session_factory) -> SQLModelAccountRepository:
    return SQLModelAccountRepository(session_factory)


@pytest.fixture
def services(debt_repo, account_repo) -> dict:
    """Keyword arguments the create, repay and import calls take."""

    return {"debt_repo": debt_repo, "account_ledger": account_repo, "user_id": USER_ID}


@pytest.fixture
def debt_scope(debt_repo) -> dict:
    """Keyword arguments for the edit and delete calls, which only need the debt repository."""

    return {"debt_repo": debt_repo, "user_id": USER_ID}


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def account_factory(account_repo):
    """Factory for creating test accounts.

    Returns:
        Callable: Function that creates and persists Account instances
    """

    def _create_account(
        holder_name: str = "Alice Smith",
        bank_name: str = "First Bank",
        balance: str = "10000.00",
        account_number: str | None = None,
        owner: int = USER_ID,
    ) -> Account:
        account = Account(
            user_id=owner,
            holder_name=holder_name,
            bank_name=bank_name,
            account_number=account_number,
            balance=Decimal(balance),
        )
        return account_repo.create(account, user_id=owner)

    return _create_account


@pytest.fixture
def debt_factory(debt_repo):
    """Factory for persisting debts directly, without touching any account.

    Returns:
        Callable: Function that creates and persists Debt instances
    """

    def _create_debt(
        borrower_name: str = "Bob Jones",
        amount: str = "1000.00",
        interest_rate: str = "0",
        lent_date: date = date(2024, 1, 1),
        due_date: date | None = None,
        status: DebtStatus = DebtStatus.ACTIVE,
        account_id: int | None = None,
        owner: int = USER_ID,
        **fields,
    ) -> Debt:
        debt = Debt(
            user_id=owner,
            borrower_name=borrower_name,
            amount=Decimal(amount),
            interest_rate=Decimal(interest_rate),
            lent_date=lent_date,
            due_date=due_date,
            status=status,
            account_id=account_id,
            **fields,
        )
        return debt_repo.create(debt, user_id=owner)

    return _create_debt


def debt_stub(
    amount: str = "1000.00",
    interest_rate: str = "0",
    lent_date: date = date(2024, 1, 1),
    due_date: date | None = None,
    status: DebtStatus = DebtStatus.ACTIVE,
    repayments: tuple[str, ...] = (),
    **fields,
) -> SimpleNamespace:
    """In-memory stand-in for a Debt row, for pure calculation tests."""

    defaults = {
        "id": None,
        "borrower_name": "Bob Jones",
        "borrower_contact": None,
        "borrower_email": None,
        "purpose": None,
        "notes": None,
        "account_id": None,
    }
    defaults.update(fields)
    return SimpleNamespace(
        amount=Decimal(amount),
        interest_rate=Decimal(interest_rate),
        lent_date=lent_date,
        due_date=due_date,
        status=status,
        repayments=[
            Repayment(id=index, debt_id=0, amount=Decimal(value), repayment_date=lent_date)
            for index, value in enumerate(repayments, start=1)
        ],
        **defaults,
    )


# =============================================================================
# Test Utilities
# =============================================================================


def assert_float_equal(actual, expected, tolerance: float = 0.01):
    """Assert that two amounts are equal within a tolerance.

    Args:
        actual: Actual value (Decimal, float or str)
        expected: Expected value
        tolerance: Maximum allowed difference (default 0.01 for currency)

    Raises:
        AssertionError: If values differ by more than tolerance
    """
    difference = abs(Decimal(str(actual)) - Decimal(str(expected)))
    assert difference <= Decimal(str(tolerance)), (
        f"Expected {expected}, got {actual} (diff: {difference})"
    )


@pytest.fixture
def db_session_count(db_engine):
    """Count the rows of a table, bypassing the repositories."""

    def _count(model) -> int:
        with Session(db_engine) as session:
            return session.exec(select(func.count()).select_from(model)).one()

    return _count
