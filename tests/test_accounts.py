"""
Test suite for accounts module

Tests balance operations, history recording, product-specific interest and
fees, and that failed operations leave no trace.
"""

import pytest
import threading
from decimal import Decimal
from datetime import datetime, timezone

from bank_ledger.accounts import Account, AccountKind, AccountSnapshot
from bank_ledger.errors import InsufficientFundsError, InvalidAmountError, InvalidArgumentError
from bank_ledger.transactions import Transaction, TransactionType


class TestAccountCreation:
    """Test account construction"""

    def test_valid_checking_account(self):
        """Test creating a checking account with an opening balance"""
        account = Account(1, "Ana", AccountKind.CHECKING, Decimal('100'))

        assert account.id == 1
        assert account.owner == "Ana"
        assert account.kind == AccountKind.CHECKING
        assert account.balance == Decimal('100.00')
        assert isinstance(account.created_at, datetime)

        history = account.history
        assert len(history) == 1
        assert history[0].transaction_type == TransactionType.DEPOSIT
        assert history[0].amount == Decimal('100.00')
        assert history[0].resulting_balance == Decimal('100.00')
        assert history[0].sequence == 1
        assert history[0].account_id == 1

    def test_negative_opening_balance_clamped(self):
        """Test that a negative opening balance becomes zero"""
        account = Account(2, "Luis", AccountKind.SAVINGS, Decimal('-50'))

        assert account.balance == Decimal('0')
        history = account.history
        assert len(history) == 1
        assert history[0].amount == Decimal('0')
        assert history[0].resulting_balance == Decimal('0')

    def test_default_opening_balance(self):
        account = Account(3, "Marta", AccountKind.SAVINGS)
        assert account.balance == Decimal('0')
        assert len(account.history) == 1

    def test_empty_owner_rejected(self):
        with pytest.raises(InvalidArgumentError, match="non-empty"):
            Account(1, "", AccountKind.CHECKING)
        with pytest.raises(InvalidArgumentError, match="non-empty"):
            Account(1, "   ", AccountKind.CHECKING)

    def test_unknown_kind_rejected(self):
        with pytest.raises(InvalidArgumentError, match="Unknown account kind"):
            Account(1, "Ana", "checking")

    def test_to_string(self):
        account = Account(7, "Ana", AccountKind.SAVINGS, 12.5)
        assert account.to_string() == "ID:7 - Ana (SAVINGS) - Balance: 12.50"


class TestDepositWithdraw:
    """Test deposits and withdrawals"""

    def setup_method(self):
        self.account = Account(1, "Ana", AccountKind.CHECKING, Decimal('100.00'))

    def test_deposit(self):
        transaction = self.account.deposit(Decimal('25.50'))

        assert self.account.balance == Decimal('125.50')
        assert transaction.transaction_type == TransactionType.DEPOSIT
        assert transaction.amount == Decimal('25.50')
        assert transaction.resulting_balance == Decimal('125.50')
        assert transaction.is_credit
        assert self.account.history[-1] == transaction

    def test_deposit_non_positive_rejected(self):
        for amount in (0, -1, Decimal('-0.01')):
            with pytest.raises(InvalidAmountError):
                self.account.deposit(amount)

        assert self.account.balance == Decimal('100.00')
        assert len(self.account.history) == 1

    def test_withdraw(self):
        transaction = self.account.withdraw(Decimal('40'))

        assert self.account.balance == Decimal('60.00')
        assert transaction.transaction_type == TransactionType.WITHDRAWAL
        assert transaction.amount == Decimal('-40.00')
        assert transaction.resulting_balance == Decimal('60.00')
        assert transaction.is_debit

    def test_withdraw_entire_balance(self):
        self.account.withdraw(Decimal('100'))
        assert self.account.balance == Decimal('0')

    def test_withdraw_insufficient_funds(self):
        """Overdraw leaves balance and history unchanged"""
        with pytest.raises(InsufficientFundsError) as exc_info:
            self.account.withdraw(Decimal('100.01'))

        assert exc_info.value.requested == Decimal('100.01')
        assert exc_info.value.available == Decimal('100.00')
        assert self.account.balance == Decimal('100.00')
        assert len(self.account.history) == 1

    def test_oversized_deposit_rejected(self):
        """Amounts too large to hold in cents raise a ledger error"""
        with pytest.raises(InvalidAmountError, match="too large"):
            self.account.deposit(10 ** 27)

        assert self.account.balance == Decimal('100.00')
        assert len(self.account.history) == 1

    def test_deposit_overflowing_balance_rejected(self):
        account = Account(2, "Luis", AccountKind.CHECKING, Decimal('9e25'))

        with pytest.raises(InvalidAmountError, match="too large"):
            account.deposit(Decimal('9e25'))

        assert account.balance == Decimal('9e25')
        assert len(account.history) == 1

    def test_deposit_unparseable_string_rejected(self):
        for amount in ("1e3", "abc5"):
            with pytest.raises(InvalidAmountError):
                self.account.deposit(amount)

        assert self.account.balance == Decimal('100.00')
        assert len(self.account.history) == 1

    def test_withdraw_non_positive_rejected(self):
        with pytest.raises(InvalidAmountError):
            self.account.withdraw(0)
        assert len(self.account.history) == 1

    def test_history_order_and_sequence(self):
        self.account.deposit(10)
        self.account.withdraw(5)
        self.account.deposit(1)

        history = self.account.history
        assert [t.transaction_type for t in history] == [
            TransactionType.DEPOSIT, TransactionType.DEPOSIT,
            TransactionType.WITHDRAWAL, TransactionType.DEPOSIT
        ]
        assert [t.sequence for t in history] == [1, 2, 3, 4]
        assert [t.resulting_balance for t in history] == [
            Decimal('100.00'), Decimal('110.00'), Decimal('105.00'), Decimal('106.00')
        ]
        timestamps = [t.timestamp for t in history]
        assert timestamps == sorted(timestamps)


class TestInterestAndFees:
    """Test product-specific interest and fee operations"""

    def setup_method(self):
        self.savings = Account(1, "Ana", AccountKind.SAVINGS, Decimal('1000'))
        self.checking = Account(2, "Luis", AccountKind.CHECKING, Decimal('20'))

    def test_interest_on_savings(self):
        transaction = self.savings.apply_interest(0.05)

        assert self.savings.balance == Decimal('1050.0')
        assert transaction.transaction_type == TransactionType.INTEREST
        assert transaction.amount == Decimal('50.0')
        assert transaction.resulting_balance == Decimal('1050.00')

        interest_rows = [t for t in self.savings.history if t.transaction_type == TransactionType.INTEREST]
        assert len(interest_rows) == 1

    def test_interest_rounded_to_cents(self):
        account = Account(3, "Marta", AccountKind.SAVINGS, Decimal('33.33'))
        transaction = account.apply_interest(Decimal('0.015'))

        # 33.33 * 0.015 = 0.49995
        assert transaction.amount == Decimal('0.50')
        assert account.balance == Decimal('33.83')

    def test_interest_on_checking_is_noop(self):
        before = self.checking.snapshot()

        assert self.checking.apply_interest(Decimal('0.05')) is None
        # Rate is not validated for checking accounts
        assert self.checking.apply_interest(Decimal('-1')) is None

        assert self.checking.snapshot() == before

    def test_interest_below_one_cent_records_nothing(self):
        account = Account(3, "Marta", AccountKind.SAVINGS, Decimal('0.01'))

        assert account.apply_interest(Decimal('0.05')) is None
        assert account.balance == Decimal('0.01')
        assert len(account.history) == 1

    def test_interest_too_large_rejected(self):
        account = Account(3, "Marta", AccountKind.SAVINGS, Decimal('1e25'))

        with pytest.raises(InvalidAmountError, match="too large"):
            account.apply_interest(Decimal('1000'))

        assert account.balance == Decimal('1e25')
        assert len(account.history) == 1

    def test_interest_invalid_rate(self):
        with pytest.raises(InvalidAmountError, match="rate must be positive"):
            self.savings.apply_interest(0)
        with pytest.raises(InvalidAmountError):
            self.savings.apply_interest(Decimal('-0.01'))

        assert self.savings.balance == Decimal('1000.00')
        assert len(self.savings.history) == 1

    def test_fee_on_checking(self):
        transaction = self.checking.apply_monthly_fee(Decimal('5'))

        assert self.checking.balance == Decimal('15.00')
        assert transaction.transaction_type == TransactionType.FEE
        assert transaction.amount == Decimal('-5.00')
        assert transaction.resulting_balance == Decimal('15.00')

    def test_fee_on_savings_is_noop(self):
        before = self.savings.snapshot()
        assert self.savings.apply_monthly_fee(Decimal('5')) is None
        assert self.savings.snapshot() == before

    def test_fee_insufficient_funds(self):
        with pytest.raises(InsufficientFundsError):
            self.checking.apply_monthly_fee(Decimal('20.01'))

        assert self.checking.balance == Decimal('20.00')
        assert len(self.checking.history) == 1

    def test_fee_invalid_amount(self):
        with pytest.raises(InvalidAmountError):
            self.checking.apply_monthly_fee(0)


class TestSnapshots:
    """Test read-side snapshots"""

    def test_history_snapshot_is_immutable_copy(self):
        account = Account(1, "Ana", AccountKind.CHECKING, 10)
        history = account.snapshot_history()

        assert isinstance(history, tuple)
        account.deposit(5)
        assert len(history) == 1
        assert len(account.snapshot_history()) == 2

    def test_transaction_is_frozen(self):
        account = Account(1, "Ana", AccountKind.CHECKING, 10)
        transaction = account.history[0]

        with pytest.raises(AttributeError):
            transaction.amount = Decimal('999')

    def test_snapshot_consistent(self):
        account = Account(1, "Ana", AccountKind.SAVINGS, 10)
        account.deposit(5)
        snapshot = account.snapshot()

        assert isinstance(snapshot, AccountSnapshot)
        assert snapshot.account_id == 1
        assert snapshot.kind == AccountKind.SAVINGS
        assert snapshot.balance == Decimal('15.00')
        assert snapshot.history[-1].resulting_balance == snapshot.balance


class TestAccountConcurrency:
    """Test that concurrent callers on one account never lose updates"""

    def test_concurrent_deposits(self):
        account = Account(1, "Ana", AccountKind.CHECKING, Decimal('100'))
        errors = []

        def deposit_many():
            try:
                for _ in range(50):
                    account.deposit(Decimal('1.00'))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=deposit_many) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert account.balance == Decimal('1100.00')

        deposits = [t for t in account.history if t.transaction_type == TransactionType.DEPOSIT]
        assert len(deposits) == 1 + 20 * 50

        # Each row reflects its own delta on top of the previous row
        history = account.history
        for previous, current in zip(history, history[1:]):
            assert current.resulting_balance == previous.resulting_balance + current.amount
        assert [t.sequence for t in history] == list(range(1, len(history) + 1))

    def test_concurrent_withdrawals_never_overdraw(self):
        account = Account(1, "Ana", AccountKind.CHECKING, Decimal('50'))
        successes = []
        rejections = []
        lock = threading.Lock()

        def withdraw_one():
            try:
                account.withdraw(Decimal('1'))
                with lock:
                    successes.append(1)
            except InsufficientFundsError:
                with lock:
                    rejections.append(1)

        threads = [threading.Thread(target=withdraw_one) for _ in range(80)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(successes) == 50
        assert len(rejections) == 30
        assert account.balance == Decimal('0')
        assert all(t.resulting_balance >= 0 for t in account.history)
