"""Typed row schemas and field parsers for the debt and repayment CSVs.

Rows are validated at the parse boundary: each raw mapping either becomes a
frozen record (``RowOk``) or a ``RowErr`` carrying the error kind and message.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Generic, Mapping, Optional, TypeVar, Union

import pandas as pd

from ..errors import (
    ImportFileError,
    ImportRowError,
    InvalidDateRange,
    InvalidFieldValue,
    MissingRequiredField,
    UnparsableAmount,
    UnparsableDate,
)
from ..models.debt import DebtStatus
from .interest import CENT, to_decimal
from .status import parse_status

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d-%m-%Y")

DEBT_REQUIRED = ("borrowername", "amount", "interestrate", "lentdate")
DEBT_OPTIONAL = (
    "id",
    "borrowercontact",
    "borroweremail",
    "duedate",
    "status",
    "purpose",
    "notes",
    "account",
    "bankname",
)
REPAYMENT_REQUIRED = ("debtid", "amount", "repaymentdate")
REPAYMENT_OPTIONAL = ("id", "notes", "accountid")

# Display names used in "missing header" messages.
HEADER_LABELS = {
    "borrowername": "borrowerName",
    "amount": "amount",
    "interestrate": "interestRate",
    "lentdate": "lentDate",
    "debtid": "debtId",
    "repaymentdate": "repaymentDate",
}

MAX_BORROWER_NAME = 100
MAX_AMOUNT = Decimal("999999999.99")
MAX_INTEREST_RATE = Decimal("99999.9999")
RATE_STEP = Decimal("0.0001")
# Key set on a raw row whose line had more fields than the header.
OVERLONG_ROW = "__overlong__"
_HEADER_NOISE = re.compile(r"[\s\-_/()%]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_AMOUNT_NOISE = re.compile(r"[\s,$]")


def normalize_header(header: str) -> str:
    """``Interest Rate (%)``, ``interest_rate`` and ``interestRate`` all map to ``interestrate``."""

    return _HEADER_NOISE.sub("", str(header).replace("\ufeff", "").lower())


def _unique_headers(header: list[str]) -> list[str]:
    """Normalize headers; repeats get a ``.1``, ``.2`` suffix so only the first one counts."""

    seen: dict[str, int] = {}
    names = []
    for raw in header:
        name = normalize_header(raw)
        count = seen.get(name, 0)
        seen[name] = count + 1
        names.append(f"{name}.{count}" if count else name)
    return names


def read_csv_rows(csv_text: str) -> tuple[list[str], list[dict[str, str]]]:
    """Parse CSV text into normalized headers and string-valued rows.

    A line with more fields than the header is kept in place and flagged, so
    the row parsers report it as an ``InvalidFieldValue`` at its own row
    number. Short lines are padded with empty cells and lines with no content
    are skipped.

    Raises:
        ImportFileError: the text is empty, has no header or is not valid
            CSV grammar.
    """

    if not csv_text or not csv_text.strip():
        raise ImportFileError("CSV file is empty")

    reader = csv.reader(io.StringIO(csv_text))
    try:
        header = next(reader, None)
        while header is not None and not any(cell.strip() for cell in header):
            header = next(reader, None)
        if header is None:
            raise ImportFileError("CSV file is empty")

        width = len(header)
        records: list[list[str]] = []
        overlong: dict[int, str] = {}
        for cells in reader:
            if not any(cell.strip() for cell in cells):
                continue
            if len(cells) > width:
                overlong[len(records)] = (
                    f"Row has {len(cells)} fields but the header has {width}; "
                    "quote values that contain commas"
                )
                cells = cells[:width]
            records.append(cells + [""] * (width - len(cells)))
    except csv.Error as exc:
        raise ImportFileError(f"Failed to parse CSV: {exc}") from exc

    frame = pd.DataFrame(records, columns=_unique_headers(header), dtype=str)
    if not frame.empty:
        frame = frame.apply(lambda column: column.str.strip())
    headers = list(frame.columns)
    rows = frame.to_dict(orient="records")
    for index, message in overlong.items():
        rows[index][OVERLONG_ROW] = message
    return headers, rows


def missing_headers(headers: list[str], required: tuple[str, ...]) -> list[str]:
    present = set(headers)
    return [HEADER_LABELS.get(name, name) for name in required if name not in present]


def parse_date(value: str, field: str) -> date:
    """Try each accepted format in order; the first valid date wins."""

    text = (value or "").strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise UnparsableDate(
        f"Invalid {field} '{text}'. Use YYYY-MM-DD, MM/DD/YYYY, or DD-MM-YYYY format."
    )


def parse_amount(value: str, field: str) -> Decimal:
    """Parse a non-negative finite decimal; ``$`` and thousands separators are ignored."""

    text = _AMOUNT_NOISE.sub("", value or "")
    try:
        amount = to_decimal(text)
    except (TypeError, ValueError) as exc:
        raise UnparsableAmount(f"Invalid {field} value '{value}'. Must be a number.") from exc
    if amount < 0:
        raise UnparsableAmount(f"Invalid {field} value '{value}'. Must not be negative.")
    return amount


def _positive_amount(value: str, field: str) -> Decimal:
    amount = parse_amount(value, field)
    if amount == 0:
        raise UnparsableAmount(f"Invalid {field} value '{value}'. Must be greater than zero.")
    if amount > MAX_AMOUNT:
        raise UnparsableAmount(f"Invalid {field} value '{value}'. Amount is too large.")
    if amount != amount.quantize(CENT):
        raise UnparsableAmount(
            f"Invalid {field} value '{value}'. Cannot have more than 2 decimal places."
        )
    return amount


def _interest_rate(value: str) -> Decimal:
    rate = parse_amount(value, "interest rate")
    if rate > MAX_INTEREST_RATE:
        raise UnparsableAmount(f"Invalid interest rate value '{value}'. Rate is too large.")
    if rate != rate.quantize(RATE_STEP):
        raise UnparsableAmount(
            f"Invalid interest rate value '{value}'. Cannot have more than 4 decimal places."
        )
    return rate


def _require(raw: Mapping[str, str], required: tuple[str, ...]) -> None:
    if OVERLONG_ROW in raw:
        raise InvalidFieldValue(raw[OVERLONG_ROW])
    for name in required:
        if not (raw.get(name) or "").strip():
            raise MissingRequiredField(
                f"Missing required field '{HEADER_LABELS.get(name, name)}'"
            )


def _optional(raw: Mapping[str, str], name: str) -> Optional[str]:
    value = (raw.get(name) or "").strip()
    return value or None


def _source_id(raw: Mapping[str, str]) -> Optional[str]:
    value = _optional(raw, "id")
    if value is None:
        return None
    try:
        return str(int(Decimal(value)))
    except (ArithmeticError, ValueError):
        return value


@dataclass(frozen=True, slots=True)
class DebtRow:
    """A validated line of the debts CSV."""

    borrower_name: str
    amount: Decimal
    interest_rate: Decimal
    lent_date: date
    due_date: Optional[date] = None
    status: DebtStatus = DebtStatus.ACTIVE
    status_text: Optional[str] = None  # raw value when it did not match the enum
    borrower_contact: Optional[str] = None
    borrower_email: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    account_ref: Optional[str] = None
    source_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class RepaymentRow:
    """A validated line of the repayments CSV."""

    debt_ref: str
    amount: Decimal
    repayment_date: date
    notes: Optional[str] = None
    account_ref: Optional[str] = None
    source_id: Optional[str] = None


def parse_debt_row(raw: Mapping[str, str]) -> DebtRow:
    """Validate one debts-CSV mapping; raises the first ``ImportRowError`` found."""

    _require(raw, DEBT_REQUIRED)
    borrower_name = raw["borrowername"].strip()
    if len(borrower_name) > MAX_BORROWER_NAME:
        raise InvalidFieldValue(
            f"Borrower name cannot exceed {MAX_BORROWER_NAME} characters"
        )

    amount = _positive_amount(raw["amount"], "amount")
    interest_rate = _interest_rate(raw["interestrate"])
    lent_date = parse_date(raw["lentdate"], "lent date")

    due_date = None
    due_text = _optional(raw, "duedate")
    if due_text is not None:
        due_date = parse_date(due_text, "due date")
        if due_date < lent_date:
            raise InvalidDateRange(
                f"Due date {due_date.isoformat()} is before lent date {lent_date.isoformat()}"
            )

    email = _optional(raw, "borroweremail")
    if email is not None and not _EMAIL.match(email):
        raise InvalidFieldValue(f"Invalid email format ({email})")

    status_text = _optional(raw, "status")
    status = parse_status(status_text)

    return DebtRow(
        borrower_name=borrower_name,
        amount=amount,
        interest_rate=interest_rate,
        lent_date=lent_date,
        due_date=due_date,
        status=status or DebtStatus.ACTIVE,
        status_text=status_text if status is None else None,
        borrower_contact=_optional(raw, "borrowercontact"),
        borrower_email=email,
        purpose=_optional(raw, "purpose"),
        notes=_optional(raw, "notes"),
        account_ref=_optional(raw, "account") or _optional(raw, "bankname"),
        source_id=_source_id(raw),
    )


def parse_repayment_row(raw: Mapping[str, str]) -> RepaymentRow:
    """Validate one repayments-CSV mapping."""

    _require(raw, REPAYMENT_REQUIRED)
    return RepaymentRow(
        debt_ref=_source_id({"id": raw["debtid"]}) or raw["debtid"].strip(),
        amount=_positive_amount(raw["amount"], "amount"),
        repayment_date=parse_date(raw["repaymentdate"], "repayment date"),
        notes=_optional(raw, "notes"),
        account_ref=_optional(raw, "accountid"),
        source_id=_source_id(raw),
    )


T = TypeVar("T")


@dataclass(frozen=True)
class RowOk(Generic[T]):
    record: T


@dataclass(frozen=True)
class RowErr:
    kind: str
    message: str


RowResult = Union[RowOk[T], RowErr]


def validate_row(parser: Callable[[Mapping[str, str]], T], raw: Mapping[str, str]) -> RowResult:
    """Run ``parser`` and fold row errors into a ``RowErr`` value."""

    try:
        return RowOk(parser(raw))
    except ImportRowError as exc:
        return RowErr(exc.kind, str(exc))


__all__ = [
    "DATE_FORMATS",
    "DEBT_OPTIONAL",
    "DEBT_REQUIRED",
    "OVERLONG_ROW",
    "REPAYMENT_OPTIONAL",
    "REPAYMENT_REQUIRED",
    "DebtRow",
    "RepaymentRow",
    "RowErr",
    "RowOk",
    "RowResult",
    "missing_headers",
    "normalize_header",
    "parse_amount",
    "parse_date",
    "parse_debt_row",
    "parse_repayment_row",
    "read_csv_rows",
    "validate_row",
]
