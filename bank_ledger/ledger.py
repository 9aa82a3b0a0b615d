"""
Ledger Module

Registry of accounts and the cross-account transfer protocol.

Locking rules:
    * The collection lock guards the account dict and the id generator. It is
      never held while waiting on an account lock.
    * Any operation touching more than one account acquires the account locks
      in ascending account id order through ``_locked``. This fixed total order
      is the only deadlock-avoidance mechanism; there is no retry or timeout.
    * Events are published and log lines written after every account lock has
      been released.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple
from contextlib import ExitStack, contextmanager
import itertools
import threading

from .accounts import Account, AccountKind
from .config import LedgerConfig, get_config
from .errors import AccountNotFoundError, InsufficientFundsError, InvalidArgumentError, LedgerError
from .events import DomainEvent, EventDispatcher, EventPayload
from .logging_config import get_logger, log_action
from .money import AmountLike, ZERO, require_positive, round_amount
from .transactions import TransactionType


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a completed transfer"""
    from_account_id: int
    to_account_id: int
    amount: Decimal
    from_balance: Decimal
    to_balance: Decimal


@dataclass
class BatchResult:
    """
    Outcome of a batch interest/fee run

    applied lists the ids processed without error (including no-op updates),
    failed maps account id to the error message.
    """
    applied: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failed


class Ledger:
    """
    Owns all accounts and coordinates operations spanning several of them
    """

    def __init__(
        self,
        id_generator: Optional[Callable[[], int]] = None,
        event_dispatcher: Optional[EventDispatcher] = None,
        config: Optional[LedgerConfig] = None
    ):
        self._accounts: Dict[int, Account] = {}
        self._lock = threading.Lock()
        if id_generator is None:
            counter = itertools.count(1)
            id_generator = lambda: next(counter)
        self._next_id = id_generator
        self._event_dispatcher = event_dispatcher
        self.config = config or get_config()
        self.logger = get_logger("bank_ledger.ledger")

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    def __contains__(self, account_id: object) -> bool:
        with self._lock:
            return account_id in self._accounts

    def _publish(self, event_type: DomainEvent, entity_type: str, entity_id: object, data: Dict) -> None:
        """Publish a domain event if a dispatcher is configured"""
        if self._event_dispatcher and self.config.enable_events:
            self._event_dispatcher.publish(
                EventPayload(
                    event_type=event_type,
                    entity_type=entity_type,
                    entity_id=str(entity_id),
                    data=data
                )
            )

    @contextmanager
    def _locked(self, accounts: Iterable[Account]) -> Iterator[None]:
        """Hold the locks of all given accounts, acquired in ascending id order"""
        ordered = sorted({account.id: account for account in accounts}.values(), key=lambda a: a.id)
        with ExitStack() as stack:
            for account in ordered:
                stack.enter_context(account.lock)
            yield

    def create_account(
        self,
        owner: str,
        kind: AccountKind,
        initial_balance: AmountLike = ZERO
    ) -> Account:
        """
        Create and register a new account

        Args:
            owner: Account holder name, must be non-empty
            kind: CHECKING or SAVINGS
            initial_balance: Opening balance; negative values are clamped to 0

        Returns:
            The new Account

        Raises:
            InvalidArgumentError: If owner is empty or kind is unknown
            InvalidAmountError: If initial_balance is not a valid amount
        """
        if not isinstance(owner, str) or not owner.strip():
            raise InvalidArgumentError("Owner must be a non-empty string")
        if not isinstance(kind, AccountKind):
            raise InvalidArgumentError(f"Unknown account kind: {kind!r}")
        opening_balance = round_amount(initial_balance)

        with self._lock:
            account_id = self._next_id()
            if account_id in self._accounts:
                raise InvalidArgumentError(f"Id generator returned duplicate account id {account_id}")
            account = Account(account_id, owner, kind, opening_balance)
            self._accounts[account_id] = account

        balance = account.snapshot_balance()
        log_action(
            self.logger, "info", f"Created {kind.value} account {account_id} for {account.owner}",
            action="create_account", account_id=account_id, amount=balance,
            extra={"kind": kind.value}
        )
        self._publish(
            DomainEvent.ACCOUNT_CREATED, "account", account_id,
            {"owner": account.owner, "kind": kind.value, "balance": str(balance)}
        )
        return account

    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by id, or None if it does not exist"""
        with self._lock:
            return self._accounts.get(account_id)

    def require_account(self, account_id: int) -> Account:
        """
        Get account by id

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        account = self.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def list_accounts(self) -> Tuple[Account, ...]:
        """All accounts in creation order"""
        with self._lock:
            return tuple(self._accounts.values())

    def transfer(self, from_id: int, to_id: int, amount: AmountLike) -> TransferResult:
        """
        Move money between two accounts atomically

        Both account locks are held while the source is debited, the
        destination credited, and the TRANSFER_OUT/TRANSFER_IN markers are
        appended, so any reader sees all four history rows or none.

        Raises:
            InvalidArgumentError: If from_id == to_id or amount <= 0, or the
                destination balance would be too large to hold
            AccountNotFoundError: If either account does not exist
            InsufficientFundsError: If the source balance is too low; nothing is changed
        """
        if from_id == to_id:
            raise InvalidArgumentError("Cannot transfer to the same account")
        value = require_positive(amount, "Transfer amount")

        source = self.require_account(from_id)
        destination = self.require_account(to_id)

        try:
            with self._locked((source, destination)):
                # The credit must fit before anything is debited
                round_amount(destination.snapshot_balance() + value)
                source.withdraw(value)
                destination.deposit(value)
                source._record(TransactionType.TRANSFER_OUT, -value)
                destination._record(TransactionType.TRANSFER_IN, value)
                result = TransferResult(
                    from_account_id=from_id,
                    to_account_id=to_id,
                    amount=value,
                    from_balance=source.snapshot_balance(),
                    to_balance=destination.snapshot_balance()
                )
        except InsufficientFundsError as e:
            log_action(
                self.logger, "warning", f"Transfer {from_id} -> {to_id} rejected: {e}",
                action="transfer", account_id=from_id, amount=value,
                extra={"to_account_id": to_id}
            )
            self._publish(
                DomainEvent.TRANSFER_FAILED, "account", from_id,
                {"to_account_id": to_id, "amount": str(value), "error": str(e)}
            )
            raise

        log_action(
            self.logger, "info", f"Transferred {value} from {from_id} to {to_id}",
            action="transfer", account_id=from_id, amount=value,
            extra={"to_account_id": to_id}
        )
        self._publish(
            DomainEvent.TRANSFER_COMPLETED, "account", from_id,
            {
                "to_account_id": to_id,
                "amount": str(value),
                "from_balance": str(result.from_balance),
                "to_balance": str(result.to_balance)
            }
        )
        return result

    def snapshot_balances(self, account_ids: Optional[Iterable[int]] = None) -> Dict[int, Decimal]:
        """
        Balances of several accounts as of one instant

        All requested accounts are locked together, in id order, so no
        transfer can be half-visible across them.

        Raises:
            AccountNotFoundError: If any requested account does not exist
        """
        if account_ids is None:
            accounts = self.list_accounts()
        else:
            accounts = tuple(self.require_account(account_id) for account_id in account_ids)

        with self._locked(accounts):
            return {account.id: account.snapshot_balance() for account in accounts}

    def total_balance(self) -> Decimal:
        """Sum of all balances from a consistent snapshot"""
        return sum(self.snapshot_balances().values(), ZERO)

    def apply_interest_and_fees(
        self,
        savings_rate: Optional[AmountLike] = None,
        fee_amount: Optional[AmountLike] = None
    ) -> BatchResult:
        """
        Apply interest to savings accounts and the monthly fee to checking accounts

        Each account is updated atomically on its own; the batch as a whole is
        not. A failing account is logged and recorded in the result, and the
        remaining accounts are still processed.

        Args:
            savings_rate: Interest rate, e.g. 0.05 for 5% (config default if None)
            fee_amount: Monthly checking fee (config default if None)

        Returns:
            BatchResult with the processed and failed account ids
        """
        if savings_rate is None:
            savings_rate = self.config.default_savings_rate
        if fee_amount is None:
            fee_amount = self.config.default_monthly_fee

        result = BatchResult()
        for account in self.list_accounts():
            try:
                if account.kind is AccountKind.SAVINGS:
                    account.apply_interest(savings_rate)
                else:
                    account.apply_monthly_fee(fee_amount)
                result.applied.append(account.id)
            except LedgerError as e:
                # Log error but continue with other accounts
                result.failed[account.id] = str(e)
                log_action(
                    self.logger, "warning", f"Could not apply interest/fee to account {account.id}: {e}",
                    action="apply_interest_and_fees", account_id=account.id,
                    extra={"kind": account.kind.value, "error": type(e).__name__}
                )
                self._publish(
                    DomainEvent.BATCH_ACCOUNT_FAILED, "account", account.id,
                    {"kind": account.kind.value, "error": str(e)}
                )

        log_action(
            self.logger, "info",
            f"Interest/fee batch finished: {len(result.applied)} applied, {len(result.failed)} failed",
            action="apply_interest_and_fees",
            extra={"savings_rate": str(savings_rate), "fee_amount": str(fee_amount)}
        )
        self._publish(
            DomainEvent.BATCH_COMPLETED, "ledger", "batch",
            {"applied": list(result.applied), "failed": {str(k): v for k, v in result.failed.items()}}
        )
        return result
