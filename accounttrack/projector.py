"""
Account Mutation Projector

Applies an approved creation or update to the account record. Called by the
approval lifecycle inside the decision's unit of work; it never commits on
its own.
"""

from datetime import datetime, timezone

from .audit import AuditTrail, AuditEventType
from .errors import ConflictError, InvalidStateError, NotFoundError
from .logging_config import get_logger
from .models import Account, AccountStatus
from .payloads import AccountUpdatePayload
from .repositories import AccountRepository


class AccountMutationProjector:
    """Projects approved pending changes onto accounts"""

    def __init__(self, accounts: AccountRepository, audit_trail: AuditTrail):
        self.accounts = accounts
        self.audit_trail = audit_trail
        self.logger = get_logger("accounttrack.projector")

    def _require(self, account_id: str) -> Account:
        account = self.accounts.get_account(account_id)
        if account is None:
            raise NotFoundError(f"Account with ID {account_id} not found.", resource="account")
        return account

    def apply_creation(self, account_id: str) -> Account:
        """Pending -> Active; nothing else on the account changes"""
        account = self._require(account_id)
        if account.status != AccountStatus.PENDING:
            raise InvalidStateError(
                f"Account {account_id} is {account.status.value}, expected Pending",
                resource="account",
            )

        account.status = AccountStatus.ACTIVE
        account.updated_at = datetime.now(timezone.utc)
        self.accounts.update_account(account)

        self.audit_trail.log_event(
            AuditEventType.ACCOUNT_ACTIVATED, "account", account.id,
            {"customer_id": account.customer_id},
        )
        self.logger.info("Account %s activated", account.id)
        return account

    def apply_update(self, account_id: str, payload: AccountUpdatePayload) -> Account:
        """
        Overlay the fields present in the payload.

        Absent fields are left alone and the balance is never touched. The
        customer id is re-checked because another account may have claimed it
        since submission.
        """
        account = self._require(account_id)
        changes = payload.changes()

        new_customer_id = changes.get("customer_id")
        if new_customer_id and self.accounts.customer_id_exists(new_customer_id, exclude_account_id=account.id):
            raise ConflictError(
                f"Customer ID {new_customer_id} already belongs to another account",
                resource="account",
            )

        previous = {}
        for name, value in changes.items():
            previous[name] = getattr(account, name)
            setattr(account, name, value)

        account.updated_at = datetime.now(timezone.utc)
        self.accounts.update_account(account)

        self.audit_trail.log_event(
            AuditEventType.ACCOUNT_UPDATED, "account", account.id,
            {"old": previous, "new": changes},
        )
        self.logger.info("Account %s updated: %s", account.id, ", ".join(sorted(changes)))
        return account
