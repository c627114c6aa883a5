"""
AccountTrack system wiring

Builds storage, repositories and managers from configuration.
"""

import random
from typing import Optional

from .approvals import ApprovalLifecycleManager
from .audit import AuditTrail, AuditEventType
from .config import AccountTrackConfig, get_config
from .errors import ConflictError, NotFoundError, ValidationError
from .identifiers import IdentifierAllocator, IdentifierKind
from .logging_config import get_logger, log_action
from .models import Account, AccountStatus, AccountType
from .notifications import NotificationDispatcher
from .projector import AccountMutationProjector
from .repositories import (
    AccountRepository, ApprovalRepository, NotificationRepository, PagedResult, TransactionRepository,
)
from .storage import InMemoryStorage, SQLiteStorage, StorageInterface
from .transactions import HighValueTransactionGate, TransactionPoster, TransactionProcessor


class AccountTrackSystem:
    """Approval service with all components initialized"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 settings: Optional[AccountTrackConfig] = None,
                 rng: Optional[random.Random] = None):
        self.settings = settings or get_config()
        self.logger = get_logger("accounttrack.system")

        # Initialize storage
        if storage is not None:
            self.storage = storage
        elif self.settings.use_sqlite:
            self.storage = SQLiteStorage(self.settings.database_path)
        else:
            self.storage = InMemoryStorage()

        self.audit_trail = AuditTrail(self.storage, enabled=self.settings.enable_audit_logging)

        # Repositories
        self.accounts = AccountRepository(self.storage)
        self.transactions = TransactionRepository(self.storage)
        self.approvals = ApprovalRepository(self.storage)
        self.notifications = NotificationRepository(self.storage)

        self.allocator = IdentifierAllocator(
            {
                IdentifierKind.ACCOUNT: self.accounts.account_exists,
                IdentifierKind.TRANSACTION: self.transactions.transaction_exists,
                IdentifierKind.APPROVAL: self.approvals.approval_exists,
                IdentifierKind.NOTIFICATION: self.notifications.notification_exists,
            },
            rng=rng,
            suffix_digits=self.settings.identifier_suffix_digits,
            max_attempts=self.settings.identifier_max_attempts,
        )

        # Managers
        self.dispatcher = NotificationDispatcher(
            self.storage, self.notifications, self.allocator, self.audit_trail
        )
        self.projector = AccountMutationProjector(self.accounts, self.audit_trail)
        self.poster = TransactionPoster(self.accounts, self.transactions, self.audit_trail)
        self.lifecycle = ApprovalLifecycleManager(
            self.storage, self.accounts, self.transactions, self.approvals,
            self.allocator, self.dispatcher, self.projector, self.poster, self.audit_trail,
            default_reviewer_id=self.settings.default_reviewer_id,
        )
        self.gate = HighValueTransactionGate(self.settings.high_value_threshold)
        self.transaction_processor = TransactionProcessor(
            self.storage, self.accounts, self.transactions, self.allocator,
            self.gate, self.poster, self.lifecycle,
        )

    def get_account(self, account_id: str) -> Account:
        account = self.accounts.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account with ID {account_id} not found.", resource="account")
        return account

    def list_accounts(self, status: Optional[str] = None, account_type: Optional[str] = None,
                      page_number: int = 1, page_size: int = 10) -> PagedResult[Account]:
        parsed_status = None
        if status is not None:
            parsed_status = next((s for s in AccountStatus if s.value.lower() == status.lower()), None)
            if parsed_status is None:
                raise ValidationError(f"Unknown account status {status!r}", resource="account")
        parsed_type = None
        if account_type is not None:
            parsed_type = next((t for t in AccountType if t.value.lower() == account_type.lower()), None)
            if parsed_type is None:
                raise ValidationError(f"Unknown account type {account_type!r}", resource="account")
        return self.accounts.list_accounts(parsed_status, parsed_type, page_number, page_size)

    def customer_id_exists(self, customer_id: str) -> bool:
        return self.accounts.customer_id_exists(customer_id)

    def account_exists(self, account_id: str) -> bool:
        return self.accounts.account_exists(account_id)

    def delete_account(self, account_id: str, deleted_by: Optional[str] = None) -> None:
        """
        Remove an account outright.

        Raises:
            NotFoundError: No such account
            ConflictError: An approval or a held transaction still refers to it
        """
        with self.storage.atomic():
            if not self.accounts.account_exists(account_id):
                raise NotFoundError(f"Account with ID {account_id} not found.", resource="account")

            outstanding = self.approvals.get_outstanding_approval_for_account(account_id)
            if outstanding is not None:
                raise ConflictError(
                    f"Account {account_id} has pending approval {outstanding.id}",
                    resource="account",
                )
            if self.transactions.has_pending_transactions(account_id):
                raise ConflictError(
                    f"Account {account_id} has transactions awaiting approval",
                    resource="account",
                )

            self.accounts.delete_account(account_id)
            self.audit_trail.log_event(
                AuditEventType.ACCOUNT_DELETED, "account", account_id, user_id=deleted_by,
            )

        log_action(
            self.logger, "info", f"Account {account_id} deleted",
            user_id=deleted_by, action="delete_account", resource=account_id,
        )

    def close(self) -> None:
        self.storage.close()
