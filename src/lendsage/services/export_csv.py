"""CSV export of debts and repayments.

Headers are chosen so an exported debts file imports back unchanged: the
import side normalizes ``Borrower Name`` to ``borrowername`` and so on, and
the ``Account`` column carries the ``holder - bank`` label the account
matcher recognises.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping, Optional

from ..models.debt import Debt
from .ledger import ledger_for_debt

DEBT_HEADERS = [
    "ID",
    "Borrower Name",
    "Borrower Contact",
    "Borrower Email",
    "Amount",
    "Interest Rate (%)",
    "Interest Amount",
    "Total Amount Due",
    "Amount Repaid",
    "Outstanding Amount",
    "Lent Date",
    "Due Date",
    "Status",
    "Purpose",
    "Notes",
    "Account",
    "Repayments Count",
]
REPAYMENT_HEADERS = [
    "ID",
    "Debt ID",
    "Debt Borrower",
    "Amount",
    "Repayment Date",
    "Notes",
    "Account ID",
]


def _serialize_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _write(headers: list[str], rows: Iterable[dict[str, object]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer, fieldnames=headers, extrasaction="ignore", quoting=csv.QUOTE_MINIMAL
    )
    writer.writeheader()
    for row in rows:
        writer.writerow({key: _serialize_value(value) for key, value in row.items()})
    return buffer.getvalue()


def _debt_row(
    debt: Debt, as_of: date, account_labels: Mapping[int, str]
) -> dict[str, object]:
    balance = ledger_for_debt(debt, as_of)
    return {
        "ID": debt.id,
        "Borrower Name": debt.borrower_name,
        "Borrower Contact": debt.borrower_contact,
        "Borrower Email": debt.borrower_email,
        "Amount": debt.amount,
        "Interest Rate (%)": debt.interest_rate,
        "Interest Amount": balance.interest_amount,
        "Total Amount Due": balance.total_with_interest,
        "Amount Repaid": balance.total_repaid,
        "Outstanding Amount": balance.remaining_amount,
        "Lent Date": debt.lent_date,
        "Due Date": debt.due_date,
        "Status": debt.status,
        "Purpose": debt.purpose,
        "Notes": debt.notes,
        "Account": account_labels.get(debt.account_id) if debt.account_id else None,
        "Repayments Count": len(debt.repayments or []),
    }


def debts_to_csv(
    debts: Iterable[Debt],
    *,
    as_of: date,
    account_labels: Optional[Mapping[int, str]] = None,
) -> str:
    """Render debts, with their ledger figures as of ``as_of``, as CSV text."""

    labels = account_labels or {}
    return _write(DEBT_HEADERS, (_debt_row(d, as_of, labels) for d in debts))


def repayments_to_csv(debts: Iterable[Debt]) -> str:
    """Render every repayment of ``debts`` as CSV text, grouped by debt."""

    rows = (
        {
            "ID": repayment.id,
            "Debt ID": debt.id,
            "Debt Borrower": debt.borrower_name,
            "Amount": repayment.amount,
            "Repayment Date": repayment.repayment_date,
            "Notes": repayment.notes,
            "Account ID": repayment.account_id,
        }
        for debt in debts
        for repayment in (debt.repayments or [])
    )
    return _write(REPAYMENT_HEADERS, rows)


def _write_file(text: str, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    # newline="" so csv's \r\n line endings are written untouched
    with output_path.open("w", newline="", encoding="utf-8") as fh:
        fh.write(text)
    return output_path


def export_debts_csv(
    *,
    debts: Iterable[Debt],
    output_path: Path,
    as_of: date,
    account_labels: Optional[Mapping[int, str]] = None,
) -> Path:
    """Write debts to CSV at ``output_path`` and return the path written."""

    return _write_file(
        debts_to_csv(debts, as_of=as_of, account_labels=account_labels), output_path
    )


def export_repayments_csv(*, debts: Iterable[Debt], output_path: Path) -> Path:
    """Write the repayments of ``debts`` to CSV at ``output_path``."""

    return _write_file(repayments_to_csv(debts), output_path)


__all__ = [
    "DEBT_HEADERS",
    "REPAYMENT_HEADERS",
    "debts_to_csv",
    "export_debts_csv",
    "export_repayments_csv",
    "repayments_to_csv",
]
