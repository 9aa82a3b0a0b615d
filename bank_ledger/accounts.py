"""
Account Module

An Account owns its balance and its append-only transaction history. Every
mutating operation holds the account's lock for the whole
validate-mutate-record sequence, so concurrent callers on the same account
are linearized and each one produces exactly one history row.

Validation always runs before the balance is touched: a failing operation
leaves balance and history exactly as they were.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional, Tuple
from enum import Enum
import threading

from .errors import InsufficientFundsError, InvalidAmountError, InvalidArgumentError
from .money import AmountLike, ZERO, format_amount, require_positive, round_amount, to_decimal
from .transactions import Transaction, TransactionType


class AccountKind(Enum):
    """Banking product types"""
    CHECKING = "checking"  # Charged a monthly fee
    SAVINGS = "savings"    # Earns interest


@dataclass(frozen=True)
class AccountSnapshot:
    """Balance and history captured under a single lock acquisition"""
    account_id: int
    owner: str
    kind: AccountKind
    balance: Decimal
    history: Tuple[Transaction, ...]


class Account:
    """
    Bank account with a lock-protected balance and ordered history

    Accounts used in transfers are created by a Ledger; constructing one
    directly gives a detached account, which is fine for tests.
    """

    def __init__(
        self,
        account_id: int,
        owner: str,
        kind: AccountKind,
        initial_balance: AmountLike = ZERO
    ):
        if not isinstance(owner, str) or not owner.strip():
            raise InvalidArgumentError("Owner must be a non-empty string")
        if not isinstance(kind, AccountKind):
            raise InvalidArgumentError(f"Unknown account kind: {kind!r}")

        self._id = account_id
        self._owner = owner.strip()
        self._kind = kind
        self._lock = threading.RLock()
        self._history: List[Transaction] = []
        self.created_at = datetime.now(timezone.utc)

        # Negative opening balances are clamped to zero
        self._balance = max(ZERO, round_amount(initial_balance))
        with self._lock:
            self._record(TransactionType.DEPOSIT, self._balance)

    @property
    def id(self) -> int:
        return self._id

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def kind(self) -> AccountKind:
        return self._kind

    @property
    def lock(self) -> threading.RLock:
        """
        The account's re-entrant lock

        Only for coordinating multi-account operations. Callers taking more
        than one account lock must acquire them in ascending account id order.
        """
        return self._lock

    @property
    def balance(self) -> Decimal:
        return self.snapshot_balance()

    @property
    def history(self) -> Tuple[Transaction, ...]:
        return self.snapshot_history()

    def _record(self, transaction_type: TransactionType, amount: Decimal) -> Transaction:
        """Append a history row for the current balance. Caller holds the lock."""
        now = datetime.now(timezone.utc)
        if self._history and now < self._history[-1].timestamp:
            # Keep timestamps non-decreasing if the wall clock steps back
            now = self._history[-1].timestamp

        transaction = Transaction(
            account_id=self._id,
            sequence=len(self._history) + 1,
            transaction_type=transaction_type,
            amount=amount,
            resulting_balance=self._balance,
            timestamp=now
        )
        self._history.append(transaction)
        return transaction

    def _debit(self, amount: Decimal, transaction_type: TransactionType) -> Transaction:
        """Subtract a validated positive amount. Caller holds the lock."""
        if amount > self._balance:
            raise InsufficientFundsError(requested=amount, available=self._balance)
        self._balance -= amount
        return self._record(transaction_type, -amount)

    def deposit(self, amount: AmountLike) -> Transaction:
        """
        Deposit money into the account

        Raises:
            InvalidAmountError: If amount is not greater than zero, or the
                new balance is too large to hold
        """
        value = require_positive(amount, "Deposit amount")
        with self._lock:
            self._balance = round_amount(self._balance + value)
            return self._record(TransactionType.DEPOSIT, value)

    def withdraw(self, amount: AmountLike) -> Transaction:
        """
        Withdraw money from the account

        Raises:
            InvalidAmountError: If amount is not greater than zero
            InsufficientFundsError: If amount exceeds the balance
        """
        value = require_positive(amount, "Withdrawal amount")
        with self._lock:
            return self._debit(value, TransactionType.WITHDRAWAL)

    def apply_interest(self, rate: AmountLike) -> Optional[Transaction]:
        """
        Credit balance * rate as interest. Savings accounts only.

        Returns None without validating the rate for checking accounts, and
        records nothing when the interest rounds to less than a cent.

        Raises:
            InvalidAmountError: If rate is not greater than zero, or the
                interest is too large to hold
        """
        if self._kind is not AccountKind.SAVINGS:
            return None

        rate_value = to_decimal(rate)
        if rate_value <= 0:
            raise InvalidAmountError(f"Interest rate must be positive, got {rate_value}")

        with self._lock:
            interest = round_amount(self._balance * rate_value)
            if interest <= ZERO:
                # Too small to reach a cent
                return None
            self._balance = round_amount(self._balance + interest)
            return self._record(TransactionType.INTEREST, interest)

    def apply_monthly_fee(self, amount: AmountLike) -> Optional[Transaction]:
        """
        Charge the monthly fee. Checking accounts only.

        Raises:
            InvalidAmountError: If amount is not greater than zero
            InsufficientFundsError: If the fee exceeds the balance
        """
        if self._kind is not AccountKind.CHECKING:
            return None

        value = require_positive(amount, "Fee amount")
        with self._lock:
            return self._debit(value, TransactionType.FEE)

    def snapshot_balance(self) -> Decimal:
        """Current balance, never read mid-update"""
        with self._lock:
            return self._balance

    def snapshot_history(self) -> Tuple[Transaction, ...]:
        """Immutable copy of the history"""
        with self._lock:
            return tuple(self._history)

    def snapshot(self) -> AccountSnapshot:
        """Balance and history that are consistent with each other"""
        with self._lock:
            return AccountSnapshot(
                account_id=self._id,
                owner=self._owner,
                kind=self._kind,
                balance=self._balance,
                history=tuple(self._history)
            )

    def to_string(self) -> str:
        """Format for display"""
        return f"ID:{self._id} - {self._owner} ({self._kind.name}) - Balance: {format_amount(self.snapshot_balance())}"

    def __repr__(self) -> str:
        return f"Account(id={self._id!r}, owner={self._owner!r}, kind={self._kind.name})"
