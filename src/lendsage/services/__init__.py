"""Service module exports."""

from . import (
    accounts,
    csv_rows,
    debts,
    export_csv,
    importers,
    interest,
    ledger,
    status,
    summary,
)

__all__ = [
    "accounts",
    "csv_rows",
    "debts",
    "export_csv",
    "importers",
    "interest",
    "ledger",
    "status",
    "summary",
]
