"""
Repositories

Per-entity persistence over a StorageInterface. Repositories only load,
check and write rows; lifecycle rules live in the managers that use them.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Generic, TypeVar

from .storage import StorageInterface
from .models import (
    Account, AccountStatus, AccountType,
    Transaction, TransactionStatus, TransactionType,
    Approval, ApprovalDecision, ApprovalType,
    Notification, NotificationStatus, NotificationType,
)

T = TypeVar("T")


@dataclass
class PagedResult(Generic[T]):
    """One page of a filtered listing"""
    items: List[T] = field(default_factory=list)
    page_number: int = 1
    page_size: int = 10
    total_count: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)


def paginate(items: List[T], page_number: int, page_size: int) -> PagedResult[T]:
    """Slice an already filtered and ordered list into a page"""
    page_number = max(page_number, 1)
    page_size = max(page_size, 1)
    start = (page_number - 1) * page_size
    return PagedResult(
        items=items[start:start + page_size],
        page_number=page_number,
        page_size=page_size,
        total_count=len(items),
    )


class AccountRepository:
    """Account rows, keyed by the human-readable account id"""

    def __init__(self, storage: StorageInterface, table_name: str = "accounts"):
        self.storage = storage
        self.table_name = table_name

    def account_exists(self, account_id: str) -> bool:
        return self.storage.exists(self.table_name, account_id)

    def customer_id_exists(self, customer_id: str, exclude_account_id: Optional[str] = None) -> bool:
        rows = self.storage.find(self.table_name, {"customer_id": customer_id})
        return any(row["id"] != exclude_account_id for row in rows)

    def get_account(self, account_id: str) -> Optional[Account]:
        data = self.storage.load(self.table_name, account_id)
        return Account.from_dict(data) if data else None

    def insert_account(self, account: Account) -> None:
        self.storage.insert(self.table_name, account.id, account.to_dict())

    def update_account(self, account: Account) -> None:
        self.storage.save(self.table_name, account.id, account.to_dict())

    def delete_account(self, account_id: str) -> bool:
        return self.storage.delete(self.table_name, account_id)

    def list_accounts(self, status: Optional[AccountStatus] = None,
                      account_type: Optional[AccountType] = None,
                      page_number: int = 1, page_size: int = 10) -> PagedResult[Account]:
        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = status.value
        if account_type:
            filters["account_type"] = account_type.value
        accounts = [Account.from_dict(row) for row in self.storage.find(self.table_name, filters)]
        accounts.sort(key=lambda a: a.created_at, reverse=True)
        return paginate(accounts, page_number, page_size)


class TransactionRepository:
    """Transaction rows"""

    def __init__(self, storage: StorageInterface, table_name: str = "transactions"):
        self.storage = storage
        self.table_name = table_name

    def transaction_exists(self, transaction_id: str) -> bool:
        return self.storage.exists(self.table_name, transaction_id)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        data = self.storage.load(self.table_name, transaction_id)
        return Transaction.from_dict(data) if data else None

    def insert_transaction(self, transaction: Transaction) -> None:
        self.storage.insert(self.table_name, transaction.id, transaction.to_dict())

    def update_transaction(self, transaction: Transaction) -> None:
        self.storage.save(self.table_name, transaction.id, transaction.to_dict())

    def has_pending_transactions(self, account_id: str) -> bool:
        """True if a held transaction debits or credits the account"""
        pending = TransactionStatus.PENDING.value
        return bool(
            self.storage.find(self.table_name, {"account_id": account_id, "status": pending})
            or self.storage.find(self.table_name, {"to_account_id": account_id, "status": pending})
        )

    def list_transactions(self, account_id: Optional[str] = None,
                          transaction_type: Optional[TransactionType] = None,
                          status: Optional[TransactionStatus] = None,
                          flag: Optional[str] = None,
                          page_number: int = 1, page_size: int = 10) -> PagedResult[Transaction]:
        filters: Dict[str, Any] = {}
        if account_id:
            filters["account_id"] = account_id
        if transaction_type:
            filters["transaction_type"] = transaction_type.value
        if status:
            filters["status"] = status.value
        transactions = [Transaction.from_dict(row) for row in self.storage.find(self.table_name, filters)]
        if flag:
            transactions = [t for t in transactions if t.flag.lower() == flag.lower()]
        transactions.sort(key=lambda t: t.created_at, reverse=True)
        return paginate(transactions, page_number, page_size)


class ApprovalRepository:
    """Approval rows"""

    def __init__(self, storage: StorageInterface, table_name: str = "approvals"):
        self.storage = storage
        self.table_name = table_name

    def approval_exists(self, approval_id: str) -> bool:
        return self.storage.exists(self.table_name, approval_id)

    def get_approval(self, approval_id: str) -> Optional[Approval]:
        data = self.storage.load(self.table_name, approval_id)
        return Approval.from_dict(data) if data else None

    def get_outstanding_approval_for_account(self, account_id: str) -> Optional[Approval]:
        rows = self.storage.find(self.table_name, {
            "account_id": account_id,
            "decision": ApprovalDecision.PENDING.value,
        })
        if not rows:
            return None
        approvals = sorted((Approval.from_dict(row) for row in rows), key=lambda a: a.created_at)
        return approvals[-1]

    def get_approval_for_transaction(self, transaction_id: str) -> Optional[Approval]:
        rows = self.storage.find(self.table_name, {"transaction_id": transaction_id})
        return Approval.from_dict(rows[0]) if rows else None

    def insert_approval(self, approval: Approval) -> None:
        self.storage.insert(self.table_name, approval.id, approval.to_dict())

    def update_approval(self, approval: Approval) -> None:
        self.storage.save(self.table_name, approval.id, approval.to_dict())

    def list_approvals(self, decision: Optional[ApprovalDecision] = None,
                       approval_type: Optional[ApprovalType] = None,
                       reviewer_id: Optional[str] = None,
                       page_number: int = 1, page_size: int = 10) -> PagedResult[Approval]:
        filters: Dict[str, Any] = {}
        if decision:
            filters["decision"] = decision.value
        if approval_type:
            filters["approval_type"] = approval_type.value
        if reviewer_id:
            filters["reviewer_id"] = reviewer_id
        approvals = [Approval.from_dict(row) for row in self.storage.find(self.table_name, filters)]
        approvals.sort(key=lambda a: a.created_at, reverse=True)
        return paginate(approvals, page_number, page_size)


class NotificationRepository:
    """Notification rows"""

    def __init__(self, storage: StorageInterface, table_name: str = "notifications"):
        self.storage = storage
        self.table_name = table_name

    def notification_exists(self, notification_id: str) -> bool:
        return self.storage.exists(self.table_name, notification_id)

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        data = self.storage.load(self.table_name, notification_id)
        return Notification.from_dict(data) if data else None

    def get_notification_by_approval(self, approval_id: str) -> Optional[Notification]:
        rows = self.storage.find(self.table_name, {"approval_id": approval_id})
        return Notification.from_dict(rows[0]) if rows else None

    def get_notification_by_transaction(self, transaction_id: str) -> Optional[Notification]:
        rows = self.storage.find(self.table_name, {"transaction_id": transaction_id})
        return Notification.from_dict(rows[0]) if rows else None

    def insert_notification(self, notification: Notification) -> None:
        self.storage.insert(self.table_name, notification.id, notification.to_dict())

    def update_notification(self, notification: Notification) -> None:
        self.storage.save(self.table_name, notification.id, notification.to_dict())

    def delete_notification(self, notification_id: str) -> bool:
        return self.storage.delete(self.table_name, notification_id)

    def delete_all_notifications(self) -> int:
        return self.storage.clear_table(self.table_name)

    def list_notifications(self, user_id: Optional[str] = None,
                           notification_type: Optional[NotificationType] = None,
                           status: Optional[NotificationStatus] = None) -> List[Notification]:
        filters: Dict[str, Any] = {}
        if user_id:
            filters["user_id"] = user_id
        if notification_type:
            filters["notification_type"] = notification_type.value
        if status:
            filters["status"] = status.value
        notifications = [Notification.from_dict(row) for row in self.storage.find(self.table_name, filters)]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications
