"""
Approval Lifecycle Module

Maker-checker control over account creation, account edits and high-value
transactions. An officer's proposed change is captured on an Approval as a
versioned snapshot; nothing visible changes until a reviewer decides it.

Approval decisions are write-once:

    Pending --decide(Approve)--> Approve
    Pending --decide(Reject)---> Reject

At most one Pending approval may be outstanding per account.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

from .audit import AuditTrail, AuditEventType
from .errors import ConflictError, DuplicateRecordError, InvalidStateError, NotFoundError, ValidationError
from .identifiers import IdentifierAllocator, IdentifierKind
from .logging_config import get_logger, log_action
from .models import (
    Account, AccountStatus, Approval, ApprovalDecision, ApprovalType,
    Transaction, TransactionStatus,
)
from .notifications import NotificationDispatcher
from .payloads import (
    AccountCreationPayload, AccountUpdatePayload,
    decode_pending_changes, encode_pending_changes,
    parse_creation_payload, parse_update_payload,
)
from .projector import AccountMutationProjector
from .repositories import AccountRepository, ApprovalRepository, PagedResult, TransactionRepository
from .storage import StorageInterface
from .transactions import TransactionPoster


# Numeric decision codes used by the reviewer UI
DECISION_CODES = {1: ApprovalDecision.APPROVE, 2: ApprovalDecision.REJECT}


def parse_decision(value: Union[ApprovalDecision, str, int]) -> ApprovalDecision:
    """Resolve a reviewer's decision; only Approve and Reject are accepted"""
    decision = None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if isinstance(value, ApprovalDecision):
        decision = value
    elif isinstance(value, int) and not isinstance(value, bool):
        decision = DECISION_CODES.get(value)
    elif isinstance(value, str):
        for member in ApprovalDecision:
            if member.value.lower() == value.strip().lower():
                decision = member

    if decision not in (ApprovalDecision.APPROVE, ApprovalDecision.REJECT):
        raise InvalidStateError(
            f"Invalid decision {value!r}. Use 1 for Approve or 2 for Reject.",
            resource="approval",
        )
    return decision


def _parse_enum(enum_cls, value, resource: str):
    if value is None or isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if member.value.lower() == str(value).lower():
            return member
    raise ValidationError(f"Unknown {enum_cls.__name__} {value!r}", resource=resource)


@dataclass
class ApprovalDetails:
    """An approval together with what it would change"""
    approval: Approval
    pending_changes: Optional[Union[AccountCreationPayload, AccountUpdatePayload]] = None
    account: Optional[Account] = None
    transaction: Optional[Transaction] = None


class ApprovalLifecycleManager:
    """Submits and decides approvals"""

    def __init__(
        self,
        storage: StorageInterface,
        accounts: AccountRepository,
        transactions: TransactionRepository,
        approvals: ApprovalRepository,
        allocator: IdentifierAllocator,
        dispatcher: NotificationDispatcher,
        projector: AccountMutationProjector,
        poster: TransactionPoster,
        audit_trail: AuditTrail,
        default_reviewer_id: str = "1",
    ):
        self.storage = storage
        self.accounts = accounts
        self.transactions = transactions
        self.approvals = approvals
        self.allocator = allocator
        self.dispatcher = dispatcher
        self.projector = projector
        self.poster = poster
        self.audit_trail = audit_trail
        self.default_reviewer_id = default_reviewer_id
        self.logger = get_logger("accounttrack.approvals")

    def _reviewer(self, reviewer_id: Optional[Any]) -> str:
        return str(reviewer_id) if reviewer_id not in (None, "") else self.default_reviewer_id

    def _insert_approval(self, approval_type: ApprovalType, reviewer_id: str,
                         account_id: Optional[str] = None,
                         transaction_id: Optional[str] = None,
                         pending_changes: Optional[str] = None) -> Approval:
        def build(approval_id: str) -> Approval:
            now = datetime.now(timezone.utc)
            return Approval(
                id=approval_id,
                created_at=now,
                updated_at=now,
                approval_type=approval_type,
                reviewer_id=reviewer_id,
                account_id=account_id,
                transaction_id=transaction_id,
                pending_changes=pending_changes,
                approval_date=now,
            )

        approval = self.allocator.insert_with_id(
            IdentifierKind.APPROVAL, build, self.approvals.insert_approval
        )
        self.audit_trail.log_event(
            AuditEventType.APPROVAL_SUBMITTED, "approval", approval.id,
            {
                "approval_type": approval_type,
                "account_id": account_id,
                "transaction_id": transaction_id,
                "reviewer_id": reviewer_id,
            },
        )
        return approval

    def submit_account_creation(
        self,
        payload: Union[AccountCreationPayload, Dict[str, Any]],
        reviewer_id: Optional[str] = None,
        submitted_by: Optional[str] = None,
    ) -> Tuple[Account, Approval]:
        """
        Create a Pending account and the approval that will activate it.

        Args:
            payload: Creation fields; `account_id` is allocated when omitted
            reviewer_id: Reviewer to notify (defaults to the configured reviewer)
            submitted_by: Officer identity for the audit trail

        Returns:
            Tuple of (pending account, approval)

        Raises:
            ConflictError: The account id or customer id is already taken
        """
        if not isinstance(payload, AccountCreationPayload):
            payload = parse_creation_payload(payload)
        reviewer = self._reviewer(reviewer_id)

        with self.storage.atomic():
            if payload.account_id:
                if self.accounts.account_exists(payload.account_id):
                    raise ConflictError(f"Account ID {payload.account_id} already exists.", resource="account")
            else:
                payload = payload.model_copy(
                    update={"account_id": self.allocator.allocate(IdentifierKind.ACCOUNT)}
                )

            if self.accounts.customer_id_exists(payload.customer_id):
                raise ConflictError(f"Customer ID {payload.customer_id} already exists.", resource="account")

            now = datetime.now(timezone.utc)
            account = Account(
                id=payload.account_id,
                created_at=now,
                updated_at=now,
                customer_name=payload.customer_name,
                customer_id=payload.customer_id,
                account_type=payload.account_type,
                status=AccountStatus.PENDING,
            )
            try:
                self.accounts.insert_account(account)
            except DuplicateRecordError:
                raise ConflictError(f"Account ID {account.id} already exists.", resource="account")

            self.audit_trail.log_event(
                AuditEventType.ACCOUNT_SUBMITTED, "account", account.id,
                {"customer_id": account.customer_id, "account_type": account.account_type},
                user_id=submitted_by,
            )

            approval = self._insert_approval(
                ApprovalType.ACCOUNT_CREATION, reviewer,
                account_id=account.id,
                pending_changes=encode_pending_changes(payload),
            )
            self.dispatcher.notify_for_approval(approval.id, reviewer, ApprovalType.ACCOUNT_CREATION)

        log_action(
            self.logger, "info",
            f"Account {account.id} submitted for approval {approval.id}",
            user_id=submitted_by, action="submit_account_creation", resource=account.id,
            extra={"approval_id": approval.id, "reviewer_id": reviewer},
        )
        return account, approval

    def submit_account_update(
        self,
        account_id: str,
        payload: Union[AccountUpdatePayload, Dict[str, Any]],
        reviewer_id: Optional[str] = None,
        submitted_by: Optional[str] = None,
    ) -> Approval:
        """Capture an edit for review; the account itself is left unchanged"""
        if not isinstance(payload, AccountUpdatePayload):
            payload = parse_update_payload(payload)
        elif not payload.changes():
            raise ValidationError("Account update must change at least one field", resource="account")
        reviewer = self._reviewer(reviewer_id)

        with self.storage.atomic():
            account = self.accounts.get_account(account_id)
            if account is None:
                raise NotFoundError(f"Account with ID {account_id} not found.", resource="account")

            outstanding = self.approvals.get_outstanding_approval_for_account(account_id)
            if outstanding is not None:
                raise ConflictError(
                    f"Account {account_id} already has pending approval {outstanding.id}",
                    resource="account",
                )

            if payload.customer_id and self.accounts.customer_id_exists(
                    payload.customer_id, exclude_account_id=account_id):
                raise ConflictError(f"Customer ID {payload.customer_id} already exists.", resource="account")

            approval = self._insert_approval(
                ApprovalType.ACCOUNT_UPDATE, reviewer,
                account_id=account_id,
                pending_changes=encode_pending_changes(payload),
            )
            self.dispatcher.notify_for_approval(approval.id, reviewer, ApprovalType.ACCOUNT_UPDATE)

        log_action(
            self.logger, "info",
            f"Update of account {account_id} submitted for approval {approval.id}",
            user_id=submitted_by, action="submit_account_update", resource=account_id,
            extra={"approval_id": approval.id, "fields": sorted(payload.changes())},
        )
        return approval

    def submit_high_value_transaction(self, transaction: Transaction,
                                      reviewer_id: Optional[str] = None) -> Approval:
        """
        Hold a transaction Pending behind a reviewer approval.

        Raises:
            InvalidStateError: The stored transaction is no longer Pending,
                or an approval already covers it
        """
        reviewer = self._reviewer(reviewer_id)

        with self.storage.atomic():
            stored = self.transactions.get_transaction(transaction.id)
            if stored is not None and stored.status != TransactionStatus.PENDING:
                raise InvalidStateError(
                    f"Transaction {transaction.id} is {stored.status.value} and cannot be held",
                    resource="transaction",
                )
            existing = self.approvals.get_approval_for_transaction(transaction.id)
            if existing is not None:
                raise InvalidStateError(
                    f"Transaction {transaction.id} is already covered by approval {existing.id}",
                    resource="transaction",
                )

            transaction.status = TransactionStatus.PENDING
            transaction.updated_at = datetime.now(timezone.utc)
            if stored is not None:
                self.transactions.update_transaction(transaction)
            else:
                self.transactions.insert_transaction(transaction)

            self.audit_trail.log_event(
                AuditEventType.TRANSACTION_HELD, "transaction", transaction.id,
                {"amount": transaction.amount, "flag": transaction.flag},
            )

            approval = self._insert_approval(
                ApprovalType.HIGH_VALUE_TRANSACTION, reviewer,
                transaction_id=transaction.id,
            )
            self.dispatcher.notify_for_approval(approval.id, reviewer, ApprovalType.HIGH_VALUE_TRANSACTION)
            self.dispatcher.notify_for_high_value_transaction(
                transaction.id, reviewer, transaction.amount, transaction.transaction_type
            )

        log_action(
            self.logger, "warning",
            f"Transaction {transaction.id} held for approval {approval.id}",
            action="hold_transaction", resource=transaction.id,
            extra={"amount": str(transaction.amount), "flag": transaction.flag},
        )
        return approval

    def _apply_approve(self, approval: Approval) -> None:
        if approval.approval_type == ApprovalType.ACCOUNT_CREATION:
            self.projector.apply_creation(approval.account_id)
        elif approval.approval_type == ApprovalType.ACCOUNT_UPDATE:
            payload = decode_pending_changes(approval.pending_changes, approval.approval_type)
            self.projector.apply_update(approval.account_id, payload)
        else:
            self.poster.post(self._held_transaction(approval))

    def _apply_reject(self, approval: Approval) -> None:
        if approval.approval_type == ApprovalType.ACCOUNT_CREATION:
            account = self.accounts.get_account(approval.account_id)
            if account is not None and account.status == AccountStatus.PENDING:
                self.accounts.delete_account(account.id)
                self.audit_trail.log_event(
                    AuditEventType.ACCOUNT_DISCARDED, "account", account.id,
                    {"approval_id": approval.id},
                )
        elif approval.approval_type == ApprovalType.HIGH_VALUE_TRANSACTION:
            self.poster.reject(self._held_transaction(approval), approval.comments)

    def _held_transaction(self, approval: Approval) -> Transaction:
        transaction = self.transactions.get_transaction(approval.transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction with ID {approval.transaction_id} not found.",
                                resource="transaction")
        if transaction.status != TransactionStatus.PENDING:
            raise InvalidStateError(
                f"Transaction {transaction.id} is {transaction.status.value}, expected Pending",
                resource="transaction",
            )
        return transaction

    def decide(self, approval_id: str, decision: Union[ApprovalDecision, str, int],
               comments: str = "", decided_by: Optional[str] = None) -> Approval:
        """
        Approve or reject a Pending approval.

        The effect (activation, update, posting, discard) and the decision
        itself commit together; notification retirement follows the commit.

        Raises:
            NotFoundError: No such approval
            InvalidStateError: Malformed decision, or the approval was already decided
        """
        with self.storage.atomic():
            approval = self.approvals.get_approval(approval_id)
            if approval is None:
                raise NotFoundError(f"Approval with ID {approval_id} not found.", resource="approval")
            resolved = parse_decision(decision)
            if not approval.is_pending:
                raise InvalidStateError(
                    f"Approval {approval_id} has already been decided ({approval.decision.value})",
                    resource="approval",
                )

            approval.comments = comments or ""
            if resolved == ApprovalDecision.APPROVE:
                self._apply_approve(approval)
            else:
                self._apply_reject(approval)

            now = datetime.now(timezone.utc)
            approval.decision = resolved
            approval.approval_date = now
            approval.updated_at = now
            approval.decided_by = str(decided_by) if decided_by is not None else None
            self.approvals.update_approval(approval)

            self.audit_trail.log_event(
                AuditEventType.APPROVAL_DECIDED, "approval", approval.id,
                {
                    "decision": resolved,
                    "approval_type": approval.approval_type,
                    "comments": approval.comments,
                },
                user_id=approval.decided_by,
            )

        self.dispatcher.retire_or_defer(approval.id, approval.transaction_id)

        log_action(
            self.logger, "info",
            f"Approval {approval.id} decided: {resolved.value}",
            user_id=approval.decided_by, action="decide_approval", resource=approval.id,
            extra={"approval_type": approval.approval_type.value},
        )
        return approval

    def get_approval(self, approval_id: str) -> Approval:
        approval = self.approvals.get_approval(approval_id)
        if approval is None:
            raise NotFoundError(f"Approval with ID {approval_id} not found.", resource="approval")
        return approval

    def get_approval_details(self, approval_id: str) -> ApprovalDetails:
        """Approval with its decoded snapshot and the entity it concerns"""
        approval = self.get_approval(approval_id)
        details = ApprovalDetails(approval=approval)
        if approval.pending_changes:
            details.pending_changes = decode_pending_changes(approval.pending_changes, approval.approval_type)
        if approval.account_id:
            details.account = self.accounts.get_account(approval.account_id)
        if approval.transaction_id:
            details.transaction = self.transactions.get_transaction(approval.transaction_id)
        return details

    def list_approvals(self, decision: Optional[Union[ApprovalDecision, str]] = None,
                       approval_type: Optional[Union[ApprovalType, str]] = None,
                       reviewer_id: Optional[str] = None,
                       page_number: int = 1, page_size: int = 10) -> PagedResult[Approval]:
        return self.approvals.list_approvals(
            _parse_enum(ApprovalDecision, decision, "approval"),
            _parse_enum(ApprovalType, approval_type, "approval"),
            reviewer_id,
            page_number,
            page_size,
        )
