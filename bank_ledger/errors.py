"""
Ledger Exceptions

Every failure a ledger operation can raise derives from LedgerError, so a
caller can report ``str(error)`` and carry on. All of them are raised before
any balance or history mutation takes place.

Hierarchy:
    LedgerError
    ├── InvalidArgumentError      malformed input, empty owner, self-transfer
    │   └── InvalidAmountError    non-positive or unparseable amount or rate
    ├── AccountNotFoundError      unknown account id
    └── InsufficientFundsError    debit larger than the available balance
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger domain errors."""

    def __init__(self, detail: str = "Ledger operation failed"):
        self.detail = detail
        super().__init__(self.detail)


class InvalidArgumentError(LedgerError, ValueError):
    """Raised for malformed or out-of-range input."""


class InvalidAmountError(InvalidArgumentError):
    """Raised when an amount or rate is not strictly positive."""


class AccountNotFoundError(LedgerError, LookupError):
    """Raised when an account id is missing from the ledger."""

    def __init__(self, account_id: int, detail: Optional[str] = None):
        self.account_id = account_id
        super().__init__(detail or f"Account {account_id} not found")


class InsufficientFundsError(LedgerError):
    """Raised when a withdrawal, fee or transfer would drop the balance below zero."""

    def __init__(self, requested: Decimal, available: Decimal, detail: Optional[str] = None):
        self.requested = requested
        self.available = available
        super().__init__(
            detail or f"Insufficient funds: requested {requested}, available {available}"
        )
