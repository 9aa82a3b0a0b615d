"""
Bank Ledger

A thread-safe, in-memory banking ledger with atomic cross-account transfers,
Decimal money math, and an ordered per-account transaction history.
"""

from .accounts import Account, AccountKind, AccountSnapshot
from .errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidArgumentError,
    LedgerError,
)
from .ledger import BatchResult, Ledger, TransferResult
from .transactions import Transaction, TransactionType

__version__ = "1.0.0"

__all__ = [
    "Account",
    "AccountKind",
    "AccountSnapshot",
    "AccountNotFoundError",
    "BatchResult",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidArgumentError",
    "Ledger",
    "LedgerError",
    "Transaction",
    "TransactionType",
    "TransferResult",
]
