"""Error types raised by the lending core."""

from __future__ import annotations


class LendSageError(Exception):
    """Base class for every error the core raises on purpose."""

    @property
    def kind(self) -> str:
        """Stable error-kind name reported in import results."""
        return type(self).__name__


class DebtValidationError(LendSageError, ValueError):
    """A direct create/edit request failed field validation."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        super().__init__(summary or "Invalid debt data")


class DebtNotFound(LendSageError, LookupError):
    """No debt with the given id belongs to the user."""


class ImportFileError(LendSageError):
    """The CSV file itself is unreadable; the whole batch is rejected."""


class ImportRowError(LendSageError):
    """A single record is rejected.

    Bulk imports catch these per row and keep going; direct operations let
    them propagate to the caller.
    """


class MissingRequiredField(ImportRowError):
    pass


class UnparsableAmount(ImportRowError):
    pass


class UnparsableDate(ImportRowError):
    pass


class InvalidFieldValue(ImportRowError):
    pass


class InvalidDateRange(ImportRowError, ValueError):
    """An end date precedes its start date."""


class UnknownAccountReference(ImportRowError, LookupError):
    pass


class UnknownDebtReference(ImportRowError, LookupError):
    pass


class InsufficientAccountBalance(ImportRowError):
    """The linked account cannot cover the requested debit."""


__all__ = [
    "LendSageError",
    "DebtValidationError",
    "DebtNotFound",
    "ImportFileError",
    "ImportRowError",
    "MissingRequiredField",
    "UnparsableAmount",
    "UnparsableDate",
    "InvalidFieldValue",
    "InvalidDateRange",
    "UnknownAccountReference",
    "UnknownDebtReference",
    "InsufficientAccountBalance",
]
