"""Account lookups against the account ledger."""

from __future__ import annotations

from typing import Iterable, Optional

from ..domain.repositories.account import AccountLedger
from ..errors import UnknownAccountReference
from ..models.account import Account


def _safe_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def match_account(accounts: Iterable[Account], reference: str) -> Optional[Account]:
    """Find the account a CSV cell refers to.

    Tried in order, first hit wins: numeric id, the exported
    ``holder - bank`` label, exact account number, then a case-insensitive
    substring of the holder or bank name. Accounts are scanned in the order
    given, so callers pass them sorted by id to keep matches deterministic.
    """

    needle = (reference or "").strip()
    if not needle:
        return None
    candidates = list(accounts)
    lowered = needle.lower()

    account_id = _safe_int(needle)
    if account_id is not None:
        for account in candidates:
            if account.id == account_id:
                return account

    for account in candidates:
        if account.label.lower() == lowered:
            return account
    for account in candidates:
        if account.account_number and account.account_number.lower() == lowered:
            return account
    for account in candidates:
        if lowered in account.holder_name.lower() or (
            account.bank_name and lowered in account.bank_name.lower()
        ):
            return account
    return None


def resolve_account(
    ledger: AccountLedger, account_id: int, *, user_id: int
) -> Account:
    """Return the user's account or raise ``UnknownAccountReference``."""

    account = ledger.get_by_id(account_id, user_id=user_id)
    if account is None:
        raise UnknownAccountReference(f"Account {account_id} not found")
    return account


__all__ = ["match_account", "resolve_account"]
