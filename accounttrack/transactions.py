"""
Transaction Processing Module

Submits deposits, withdrawals and transfers. Each submission passes through
the high-value gate: ordinary transactions are posted straight away, while
high-value or flagged ones are held Pending behind a reviewer approval and
posted only when that approval is granted.
"""

from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union, TYPE_CHECKING

from .audit import AuditTrail, AuditEventType
from .errors import NotFoundError, ValidationError
from .identifiers import IdentifierAllocator, IdentifierKind
from .logging_config import get_logger, log_action
from .models import (
    NORMAL_FLAG, Account, Transaction, TransactionStatus, TransactionType,
)
from .repositories import AccountRepository, PagedResult, TransactionRepository
from .storage import StorageInterface

if TYPE_CHECKING:
    from .approvals import ApprovalLifecycleManager


HIGH_VALUE_FLAG = "HighValue"
SUSPICIOUS_FLAG = "Suspicious"
INSUFFICIENT_FUNDS = "Insufficient funds"


class GateOutcome(Enum):
    """Routing decision for a submitted transaction"""
    AUTO_COMMIT = "auto_commit"
    REQUIRES_APPROVAL = "requires_approval"


def parse_transaction_type(value: Union[TransactionType, str]) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    if isinstance(value, str):
        for member in TransactionType:
            if member.value.lower() == value.lower():
                return member
    raise ValidationError(
        f"Invalid transaction type {value!r}. Allowed values: Deposit, Withdrawal, Transfer",
        resource="transaction",
    )


class HighValueTransactionGate:
    """
    Decides whether a transaction may post immediately.

    Amounts strictly above the threshold, or any caller-supplied flag other
    than "Normal", require approval.
    """

    def __init__(self, threshold: Decimal = Decimal("100000")):
        self.threshold = Decimal(threshold)

    def evaluate(self, transaction: Transaction) -> GateOutcome:
        if transaction.amount > self.threshold:
            return GateOutcome.REQUIRES_APPROVAL
        if transaction.flag and transaction.flag != NORMAL_FLAG:
            return GateOutcome.REQUIRES_APPROVAL
        return GateOutcome.AUTO_COMMIT

    def flag_for(self, transaction: Transaction) -> str:
        """Flag recorded on a held transaction"""
        if transaction.flag and transaction.flag != NORMAL_FLAG:
            return transaction.flag
        if transaction.amount > self.threshold:
            return HIGH_VALUE_FLAG
        return NORMAL_FLAG


class TransactionPoster:
    """
    Applies a transaction's balance effects.

    Runs inside the caller's unit of work. A transaction that cannot be
    posted (insufficient funds, account closed or gone since submission) is
    marked Failed rather than raising, so an approval decision still records.
    """

    def __init__(self, accounts: AccountRepository, transactions: TransactionRepository,
                 audit_trail: AuditTrail):
        self.accounts = accounts
        self.transactions = transactions
        self.audit_trail = audit_trail
        self.logger = get_logger("accounttrack.transactions")

    def _fail(self, transaction: Transaction, reason: str) -> Transaction:
        now = datetime.now(timezone.utc)
        transaction.status = TransactionStatus.FAILED
        transaction.failure_reason = reason
        transaction.processed_at = now
        transaction.updated_at = now
        self.transactions.update_transaction(transaction)

        self.audit_trail.log_event(
            AuditEventType.TRANSACTION_FAILED, "transaction", transaction.id,
            {"reason": reason, "amount": transaction.amount},
        )
        log_action(
            self.logger, "warning", f"Transaction {transaction.id} failed: {reason}",
            action="transaction_failed", resource=transaction.id,
            extra={"account_id": transaction.account_id},
        )
        return transaction

    def _active_account(self, account_id: Optional[str]) -> Optional[Account]:
        account = self.accounts.get_account(account_id) if account_id else None
        if account is None or not account.is_active:
            return None
        return account

    def post(self, transaction: Transaction) -> Transaction:
        """Move money and mark the transaction Completed (or Failed)"""
        source = self._active_account(transaction.account_id)
        if source is None:
            return self._fail(transaction, f"Account {transaction.account_id} is not active")

        target = None
        if transaction.transaction_type == TransactionType.TRANSFER:
            target = self._active_account(transaction.to_account_id)
            if target is None:
                return self._fail(transaction, f"Account {transaction.to_account_id} is not active")

        if transaction.transaction_type == TransactionType.DEPOSIT:
            source.balance += transaction.amount
        else:
            if source.balance < transaction.amount:
                return self._fail(transaction, INSUFFICIENT_FUNDS)
            source.balance -= transaction.amount
            if target is not None:
                target.balance += transaction.amount

        now = datetime.now(timezone.utc)
        source.updated_at = now
        self.accounts.update_account(source)
        if target is not None:
            target.updated_at = now
            self.accounts.update_account(target)

        transaction.status = TransactionStatus.COMPLETED
        transaction.processed_at = now
        transaction.updated_at = now
        self.transactions.update_transaction(transaction)

        self.audit_trail.log_event(
            AuditEventType.TRANSACTION_COMPLETED, "transaction", transaction.id,
            {
                "transaction_type": transaction.transaction_type,
                "amount": transaction.amount,
                "account_id": transaction.account_id,
                "to_account_id": transaction.to_account_id,
            },
        )
        self.logger.info("Transaction %s posted: %s %s", transaction.id,
                         transaction.transaction_type.value, transaction.amount)
        return transaction

    def reject(self, transaction: Transaction, reason: str = "") -> Transaction:
        now = datetime.now(timezone.utc)
        transaction.status = TransactionStatus.REJECTED
        transaction.failure_reason = reason or None
        transaction.processed_at = now
        transaction.updated_at = now
        self.transactions.update_transaction(transaction)

        self.audit_trail.log_event(
            AuditEventType.TRANSACTION_REJECTED, "transaction", transaction.id,
            {"reason": reason},
        )
        self.logger.info("Transaction %s rejected", transaction.id)
        return transaction


class TransactionProcessor:
    """Entry point for officer-submitted transactions"""

    def __init__(
        self,
        storage: StorageInterface,
        accounts: AccountRepository,
        transactions: TransactionRepository,
        allocator: IdentifierAllocator,
        gate: HighValueTransactionGate,
        poster: TransactionPoster,
        lifecycle: "ApprovalLifecycleManager",
    ):
        self.storage = storage
        self.accounts = accounts
        self.transactions = transactions
        self.allocator = allocator
        self.gate = gate
        self.poster = poster
        self.lifecycle = lifecycle
        self.logger = get_logger("accounttrack.transactions")

    def _require_active(self, account_id: str) -> Account:
        account = self.accounts.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account with ID {account_id} not found.", resource="account")
        if not account.is_active:
            raise ValidationError(
                f"Account {account_id} is {account.status.value}; only Active accounts can transact",
                resource="account",
            )
        return account

    def submit_transaction(
        self,
        account_id: str,
        transaction_type: Union[TransactionType, str],
        amount: Union[Decimal, str, int],
        narrative: str = "",
        to_account_id: Optional[str] = None,
        flag: Optional[str] = None,
        reviewer_id: Optional[str] = None,
    ) -> Transaction:
        """
        Record a transaction and either post it or hold it for approval.

        Args:
            account_id: Source account (the credited account for deposits)
            transaction_type: Deposit, Withdrawal or Transfer
            amount: Positive amount
            narrative: Free-text description
            to_account_id: Target account, Transfers only
            flag: Optional caller flag such as "Suspicious"
            reviewer_id: Reviewer for a held transaction

        Returns:
            The stored transaction: Completed, Failed or Pending
        """
        transaction_type = parse_transaction_type(transaction_type)

        with self.storage.atomic():
            self._require_active(account_id)
            if transaction_type == TransactionType.TRANSFER and to_account_id:
                self._require_active(to_account_id)

            def build(transaction_id: str) -> Transaction:
                now = datetime.now(timezone.utc)
                return Transaction(
                    id=transaction_id,
                    created_at=now,
                    updated_at=now,
                    account_id=account_id,
                    transaction_type=transaction_type,
                    amount=amount,
                    narrative=narrative or "",
                    to_account_id=to_account_id,
                    status=TransactionStatus.PENDING,
                    flag=flag or NORMAL_FLAG,
                )

            transaction = self.allocator.insert_with_id(
                IdentifierKind.TRANSACTION, build, self.transactions.insert_transaction
            )

            if self.gate.evaluate(transaction) == GateOutcome.AUTO_COMMIT:
                transaction = self.poster.post(transaction)
            else:
                transaction.flag = self.gate.flag_for(transaction)
                self.lifecycle.submit_high_value_transaction(transaction, reviewer_id)

        log_action(
            self.logger, "info",
            f"Transaction {transaction.id} submitted: {transaction.status.value}",
            action="submit_transaction", resource=transaction.id,
            extra={"account_id": account_id, "amount": str(transaction.amount),
                   "flag": transaction.flag},
        )
        return transaction

    def get_transaction(self, transaction_id: str) -> Transaction:
        transaction = self.transactions.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction with ID {transaction_id} not found.", resource="transaction")
        return transaction

    def list_transactions(self, account_id: Optional[str] = None,
                          transaction_type: Optional[Union[TransactionType, str]] = None,
                          status: Optional[Union[TransactionStatus, str]] = None,
                          flag: Optional[str] = None,
                          page_number: int = 1, page_size: int = 10) -> PagedResult[Transaction]:
        if transaction_type is not None:
            transaction_type = parse_transaction_type(transaction_type)
        if status is not None and not isinstance(status, TransactionStatus):
            matches = [s for s in TransactionStatus if s.value.lower() == str(status).lower()]
            if not matches:
                raise ValidationError(f"Unknown transaction status {status!r}", resource="transaction")
            status = matches[0]
        return self.transactions.list_transactions(
            account_id, transaction_type, status, flag, page_number, page_size
        )
