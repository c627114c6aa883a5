"""
Domain Records

Accounts, transactions, approvals and notifications as stored records.
Enum values match the names exposed to officers and reviewers
("Savings", "Pending", "Approve", ...).
"""

from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, Optional, Any
from enum import Enum

from .storage import StorageRecord
from .errors import ValidationError


NORMAL_FLAG = "Normal"


class AccountType(Enum):
    """Account classification"""
    SAVINGS = "Savings"
    CURRENT = "Current"


class AccountStatus(Enum):
    """Account lifecycle states"""
    ACTIVE = "Active"
    CLOSED = "Closed"
    PENDING = "Pending"    # Awaiting creation approval


class TransactionType(Enum):
    """Types of ledger transactions"""
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"
    TRANSFER = "Transfer"


class TransactionStatus(Enum):
    """States of a transaction"""
    COMPLETED = "Completed"
    PENDING = "Pending"      # Held for high-value review
    REJECTED = "Rejected"    # Reviewer rejected it
    FAILED = "Failed"        # Could not be posted (insufficient funds)


class ApprovalType(Enum):
    """What an approval request is about"""
    ACCOUNT_CREATION = "AccountCreation"
    ACCOUNT_UPDATE = "AccountUpdate"
    HIGH_VALUE_TRANSACTION = "HighValueTransaction"


class ApprovalDecision(Enum):
    """Approval decision; Pending is the only non-terminal value"""
    PENDING = "Pending"
    APPROVE = "Approve"
    REJECT = "Reject"


class NotificationType(Enum):
    """Types of reviewer notifications"""
    APPROVAL_REMINDER = "ApprovalReminder"
    SUSPICIOUS_ACTIVITY = "SuspiciousActivity"


class NotificationStatus(Enum):
    """Read state of a notification"""
    UNREAD = "Unread"
    READ = "Read"


def _to_decimal(value: Any, name: str) -> Decimal:
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{name} must be a decimal amount, got {value!r}")
    # NaN and Infinity are not monetary amounts
    if not value.is_finite():
        raise ValidationError(f"{name} must be a finite amount, got {value!r}")
    return value


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


@dataclass
class Account(StorageRecord):
    """Customer account; `id` is the human-readable account identifier"""
    customer_name: str
    customer_id: str
    account_type: AccountType
    balance: Decimal = Decimal("0")
    status: AccountStatus = AccountStatus.ACTIVE

    def __post_init__(self):
        self.balance = _to_decimal(self.balance, "balance")
        if self.balance < 0:
            raise ValidationError("Account balance cannot be negative")

    @property
    def account_id(self) -> str:
        return self.id

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        data = dict(data)
        data['account_type'] = AccountType(data['account_type'])
        data['status'] = AccountStatus(data['status'])
        return super().from_dict(data)


@dataclass
class Transaction(StorageRecord):
    """Ledger transaction; `created_at` is the transaction date"""
    account_id: str
    transaction_type: TransactionType
    amount: Decimal
    narrative: str = ""
    to_account_id: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PENDING
    flag: str = NORMAL_FLAG
    processed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None

    def __post_init__(self):
        self.amount = _to_decimal(self.amount, "amount")
        if self.amount <= 0:
            raise ValidationError("Transaction amount must be greater than 0")

        if self.transaction_type == TransactionType.TRANSFER:
            if not self.to_account_id:
                raise ValidationError("ToAccountId is required for Transfer transactions")
            if self.to_account_id == self.account_id:
                raise ValidationError("Transfer target account must differ from the source account")
        elif self.to_account_id:
            raise ValidationError(
                f"ToAccountId is only allowed for Transfer transactions, not {self.transaction_type.value}"
            )

    @property
    def transaction_id(self) -> str:
        return self.id

    @property
    def date(self) -> datetime:
        return self.created_at

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        data = dict(data)
        data['transaction_type'] = TransactionType(data['transaction_type'])
        data['status'] = TransactionStatus(data['status'])
        data['processed_at'] = _parse_datetime(data.get('processed_at'))
        return super().from_dict(data)


@dataclass
class Approval(StorageRecord):
    """
    Approval request for a proposed mutation.

    `pending_changes` holds the encoded payload captured at submission so the
    decision can be applied without consulting mutable external state.
    """
    approval_type: ApprovalType
    reviewer_id: str
    decision: ApprovalDecision = ApprovalDecision.PENDING
    account_id: Optional[str] = None
    transaction_id: Optional[str] = None
    pending_changes: Optional[str] = None
    comments: str = ""
    approval_date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    decided_by: Optional[str] = None

    @property
    def approval_id(self) -> str:
        return self.id

    @property
    def is_pending(self) -> bool:
        return self.decision == ApprovalDecision.PENDING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Approval':
        data = dict(data)
        data['approval_type'] = ApprovalType(data['approval_type'])
        data['decision'] = ApprovalDecision(data['decision'])
        data['approval_date'] = _parse_datetime(data['approval_date'])
        return super().from_dict(data)


@dataclass
class Notification(StorageRecord):
    """Reviewer-facing notification tied to an approval or a transaction"""
    user_id: str
    notification_type: NotificationType
    message: str
    status: NotificationStatus = NotificationStatus.UNREAD
    approval_id: Optional[str] = None
    transaction_id: Optional[str] = None

    def __post_init__(self):
        if self.approval_id and self.transaction_id:
            raise ValidationError("Notification may reference an approval or a transaction, not both")

    @property
    def notification_id(self) -> str:
        return self.id

    @property
    def created_date(self) -> datetime:
        return self.created_at

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notification':
        data = dict(data)
        data['notification_type'] = NotificationType(data['notification_type'])
        data['status'] = NotificationStatus(data['status'])
        return super().from_dict(data)
