"""Bulk CSV import for debts and their repayments.

Each batch validates rows in file order and isolates failures: a bad row is
recorded as an ``ImportIssue`` and the batch carries on. Only an unreadable
file or missing required headers abort the whole batch.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..domain.repositories.account import AccountLedger
from ..domain.repositories.debt import DebtRepository
from ..errors import (
    ImportFileError,
    LendSageError,
    MissingRequiredField,
    UnknownAccountReference,
    UnknownDebtReference,
)
from ..logging_config import get_logger
from ..models.account import Account
from ..models.debt import Debt
from .accounts import match_account
from .csv_rows import (
    DEBT_REQUIRED,
    REPAYMENT_REQUIRED,
    DebtRow,
    RepaymentRow,
    RowErr,
    missing_headers,
    parse_debt_row,
    parse_repayment_row,
    read_csv_rows,
    validate_row,
)
from .debts import add_repayment

logger = get_logger(__name__)

FATAL_ROW = 0


@dataclass(frozen=True)
class ImportIssue:
    """One rejected row (or ``row=0`` for a file-level failure)."""

    row: int
    error: str
    message: str

    def __str__(self) -> str:
        if self.row == FATAL_ROW:
            return self.message
        return f"Row {self.row}: {self.message}"


@dataclass
class ImportBatchResult:
    """Outcome of one CSV batch."""

    success: bool = False
    imported_count: int = 0
    skipped_count: int = 0
    errors: list[ImportIssue] = field(default_factory=list)
    warnings: list[ImportIssue] = field(default_factory=list)
    # CSV debt id (or row ordinal when the file has no ids) -> persisted id
    debt_id_mapping: dict[str, int] = field(default_factory=dict)

    @property
    def fatal(self) -> bool:
        return any(issue.row == FATAL_ROW for issue in self.errors)

    def display_errors(self, limit: int = 10) -> tuple[list[ImportIssue], int]:
        """First ``limit`` issues plus how many more were not shown."""

        if limit < 1:
            raise ValueError("limit must be at least 1")
        shown = self.errors[:limit]
        return shown, len(self.errors) - len(shown)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "imported_count": self.imported_count,
            "skipped_count": self.skipped_count,
            "errors": [asdict(issue) for issue in self.errors],
            "warnings": [asdict(issue) for issue in self.warnings],
            "debt_id_mapping": dict(self.debt_id_mapping),
        }


def _fatal(error: str, message: str) -> ImportBatchResult:
    logger.warning("Import aborted", extra={"error": error, "reason": message})
    return ImportBatchResult(errors=[ImportIssue(FATAL_ROW, error, message)])


def _load(csv_text: str, required: tuple[str, ...]):
    """Return parsed rows, or a fatal result when the file cannot be used."""

    try:
        headers, rows = read_csv_rows(csv_text)
    except ImportFileError as exc:
        return None, _fatal(exc.kind, str(exc))
    missing = missing_headers(headers, required)
    if missing:
        return None, _fatal(
            MissingRequiredField.__name__,
            f"Missing required headers: {', '.join(missing)}",
        )
    return rows, None


def _finish(result: ImportBatchResult, label: str, user_id: int) -> ImportBatchResult:
    result.success = result.imported_count > 0 and not result.fatal
    logger.info(
        f"{label} import finished",
        extra={
            "user_id": user_id,
            "imported": result.imported_count,
            "skipped": result.skipped_count,
            "errors": len(result.errors),
            "warnings": len(result.warnings),
        },
    )
    return result


def _resolve_debt_account(accounts: list[Account], row: DebtRow) -> Optional[Account]:
    if row.account_ref is None:
        return None
    account = match_account(accounts, row.account_ref)
    if account is None:
        raise UnknownAccountReference(f"Account not found: {row.account_ref}")
    return account


def _store_debt(
    row: DebtRow,
    account: Optional[Account],
    *,
    debt_repo: DebtRepository,
    user_id: int,
) -> Debt:
    """Insert the debt and debit its account in one transaction."""

    return debt_repo.create(
        Debt(
            user_id=user_id,
            borrower_name=row.borrower_name,
            borrower_contact=row.borrower_contact,
            borrower_email=row.borrower_email,
            amount=row.amount,
            interest_rate=row.interest_rate,
            lent_date=row.lent_date,
            due_date=row.due_date,
            status=row.status,
            purpose=row.purpose,
            notes=row.notes,
            account_id=account.id if account is not None else None,
        ),
        user_id=user_id,
        settle_account=True,
    )


def import_debts_csv(
    csv_text: str,
    *,
    debt_repo: DebtRepository,
    account_ledger: AccountLedger,
    user_id: int,
) -> ImportBatchResult:
    """Import debts from CSV text, one row at a time."""

    logger.info("Debt import started", extra={"user_id": user_id})
    rows, fatal = _load(csv_text, DEBT_REQUIRED)
    if fatal is not None:
        return fatal

    result = ImportBatchResult()
    accounts = account_ledger.list_all(user_id=user_id)

    for row_num, raw in enumerate(rows, start=1):
        outcome = validate_row(parse_debt_row, raw)
        if isinstance(outcome, RowErr):
            result.errors.append(ImportIssue(row_num, outcome.kind, outcome.message))
            result.skipped_count += 1
            continue
        row: DebtRow = outcome.record

        if row.status_text is not None:
            message = f"Unknown status '{row.status_text}', defaulting to ACTIVE"
            result.warnings.append(ImportIssue(row_num, "UnknownStatus", message))
            logger.warning(message, extra={"row": row_num, "user_id": user_id})

        try:
            account = _resolve_debt_account(accounts, row)
            debt = _store_debt(
                row,
                account,
                debt_repo=debt_repo,
                user_id=user_id,
            )
        except LendSageError as exc:
            result.errors.append(ImportIssue(row_num, exc.kind, str(exc)))
            result.skipped_count += 1
            continue
        except SQLAlchemyError as exc:
            logger.exception("Failed to store debt row", extra={"row": row_num})
            result.errors.append(ImportIssue(row_num, "PersistenceError", str(exc)))
            result.skipped_count += 1
            continue

        result.debt_id_mapping[row.source_id or str(row_num)] = debt.id
        result.imported_count += 1

    return _finish(result, "Debt", user_id)


def _resolve_debt_id(
    reference: str, mapping: dict[str, int], existing_ids: set[int]
) -> int:
    if reference in mapping:
        return mapping[reference]
    try:
        candidate = int(reference)
    except ValueError:
        candidate = None
    if candidate is not None and candidate in existing_ids:
        return candidate
    raise UnknownDebtReference(f"Debt not found: {reference}")


def _resolve_repayment_account(accounts: list[Account], row: RepaymentRow) -> Optional[int]:
    if row.account_ref is None:
        return None
    account = match_account(accounts, row.account_ref)
    if account is None:
        raise UnknownAccountReference(f"Account not found: {row.account_ref}")
    return account.id


def import_repayments_csv(
    csv_text: str,
    *,
    debt_repo: DebtRepository,
    account_ledger: AccountLedger,
    user_id: int,
    debt_id_mapping: Optional[dict[str, int]] = None,
) -> ImportBatchResult:
    """Import repayments from CSV text.

    ``debtId`` cells are looked up in ``debt_id_mapping`` first (the mapping a
    debts batch just produced), then as ids of debts the user already owns.
    Each stored repayment recomputes its debt's status.
    """

    logger.info("Repayment import started", extra={"user_id": user_id})
    rows, fatal = _load(csv_text, REPAYMENT_REQUIRED)
    if fatal is not None:
        return fatal

    mapping = dict(debt_id_mapping or {})
    result = ImportBatchResult(debt_id_mapping=mapping)
    existing_ids = debt_repo.existing_ids(user_id=user_id)
    accounts = account_ledger.list_all(user_id=user_id)

    for row_num, raw in enumerate(rows, start=1):
        outcome = validate_row(parse_repayment_row, raw)
        if isinstance(outcome, RowErr):
            result.errors.append(ImportIssue(row_num, outcome.kind, outcome.message))
            result.skipped_count += 1
            continue
        row: RepaymentRow = outcome.record

        try:
            debt_id = _resolve_debt_id(row.debt_ref, mapping, existing_ids)
            account_id = _resolve_repayment_account(accounts, row)
            add_repayment(
                debt_repo=debt_repo,
                account_ledger=account_ledger,
                user_id=user_id,
                debt_id=debt_id,
                amount=row.amount,
                repayment_date=row.repayment_date,
                notes=row.notes,
                account_id=account_id,
            )
        except LendSageError as exc:
            result.errors.append(ImportIssue(row_num, exc.kind, str(exc)))
            result.skipped_count += 1
            continue
        except SQLAlchemyError as exc:
            logger.exception("Failed to store repayment row", extra={"row": row_num})
            result.errors.append(ImportIssue(row_num, "PersistenceError", str(exc)))
            result.skipped_count += 1
            continue

        result.imported_count += 1

    return _finish(result, "Repayment", user_id)


def import_debts_then_repayments(
    debts_csv: str,
    repayments_csv: Optional[str],
    *,
    debt_repo: DebtRepository,
    account_ledger: AccountLedger,
    user_id: int,
) -> tuple[ImportBatchResult, Optional[ImportBatchResult]]:
    """Run the debts batch, then the repayments batch with its id mapping."""

    debts_result = import_debts_csv(
        debts_csv, debt_repo=debt_repo, account_ledger=account_ledger, user_id=user_id
    )
    if repayments_csv is None:
        return debts_result, None
    repayments_result = import_repayments_csv(
        repayments_csv,
        debt_repo=debt_repo,
        account_ledger=account_ledger,
        user_id=user_id,
        debt_id_mapping=debts_result.debt_id_mapping,
    )
    return debts_result, repayments_result


def _read_file(csv_path: Path) -> str:
    try:
        return Path(csv_path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ImportFileError(f"Cannot read {csv_path}: {exc}") from exc


def import_debts_file(csv_path: Path, **kwargs: Any) -> ImportBatchResult:
    """Import a debts CSV from disk; BOMs written by spreadsheet tools are skipped."""

    try:
        text = _read_file(csv_path)
    except ImportFileError as exc:
        return _fatal(exc.kind, str(exc))
    return import_debts_csv(text, **kwargs)


def import_repayments_file(csv_path: Path, **kwargs: Any) -> ImportBatchResult:
    try:
        text = _read_file(csv_path)
    except ImportFileError as exc:
        return _fatal(exc.kind, str(exc))
    return import_repayments_csv(text, **kwargs)


__all__ = [
    "ImportBatchResult",
    "ImportIssue",
    "import_debts_csv",
    "import_debts_file",
    "import_debts_then_repayments",
    "import_repayments_csv",
    "import_repayments_file",
]
