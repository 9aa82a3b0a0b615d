"""
Transaction Records Module

Immutable history rows recorded by accounts. Every balance change produces
exactly one Transaction whose signed amount matches the balance delta.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict
from enum import Enum

from .money import format_amount


class TransactionType(Enum):
    """Types of balance-affecting events"""
    DEPOSIT = "deposit"              # Credit from outside the ledger
    WITHDRAWAL = "withdrawal"        # Debit to outside the ledger
    TRANSFER_IN = "transfer_in"      # Marker for the credit leg of a transfer
    TRANSFER_OUT = "transfer_out"    # Marker for the debit leg of a transfer
    INTEREST = "interest"            # Interest credited to savings
    FEE = "fee"                      # Monthly fee charged to checking


@dataclass(frozen=True)
class Transaction:
    """
    One entry in an account's history

    amount is signed: positive for credits, negative for debits.
    resulting_balance is the account balance immediately after this entry.
    """
    account_id: int
    sequence: int
    transaction_type: TransactionType
    amount: Decimal
    resulting_balance: Decimal
    timestamp: datetime

    @property
    def is_credit(self) -> bool:
        return self.amount > 0

    @property
    def is_debit(self) -> bool:
        return self.amount < 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with Decimal values as strings"""
        return {
            'account_id': self.account_id,
            'sequence': self.sequence,
            'transaction_type': self.transaction_type.value,
            'amount': str(self.amount),
            'resulting_balance': str(self.resulting_balance),
            'timestamp': self.timestamp.isoformat(),
        }

    def to_string(self) -> str:
        """Format as a single history line for display"""
        return (
            f"[{self.timestamp.isoformat()}] {self.transaction_type.name:<12} "
            f"Amount: {format_amount(self.amount)} | Balance: {format_amount(self.resulting_balance)}"
        )
