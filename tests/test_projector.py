"""
Tests for applying approved changes to accounts
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone

from accounttrack.audit import AuditTrail
from accounttrack.errors import ConflictError, InvalidStateError, NotFoundError
from accounttrack.models import Account, AccountStatus, AccountType
from accounttrack.payloads import AccountUpdatePayload
from accounttrack.projector import AccountMutationProjector
from accounttrack.repositories import AccountRepository
from accounttrack.storage import InMemoryStorage


@pytest.fixture
def accounts():
    return AccountRepository(InMemoryStorage())


@pytest.fixture
def projector(accounts):
    return AccountMutationProjector(accounts, AuditTrail(accounts.storage))


def add_account(accounts, account_id="ACC0001", customer_id="CUST0000001",
                status=AccountStatus.ACTIVE, balance="2500.00"):
    now = datetime.now(timezone.utc)
    account = Account(
        id=account_id, created_at=now, updated_at=now,
        customer_name="Asha Rao", customer_id=customer_id,
        account_type=AccountType.SAVINGS, balance=Decimal(balance), status=status,
    )
    accounts.insert_account(account)
    return account


class TestApplyCreation:

    def test_activates_pending_account(self, accounts, projector):
        add_account(accounts, status=AccountStatus.PENDING, balance="0")
        account = projector.apply_creation("ACC0001")
        assert account.status == AccountStatus.ACTIVE
        assert accounts.get_account("ACC0001").status == AccountStatus.ACTIVE

    def test_only_pending_accounts(self, accounts, projector):
        add_account(accounts)
        with pytest.raises(InvalidStateError):
            projector.apply_creation("ACC0001")

    def test_missing_account(self, projector):
        with pytest.raises(NotFoundError):
            projector.apply_creation("ACC0404")


class TestApplyUpdate:

    def test_absent_fields_untouched(self, accounts, projector):
        add_account(accounts)
        projector.apply_update("ACC0001", AccountUpdatePayload(account_type="Current"))

        account = accounts.get_account("ACC0001")
        assert account.account_type == AccountType.CURRENT
        assert account.customer_name == "Asha Rao"
        assert account.customer_id == "CUST0000001"
        assert account.status == AccountStatus.ACTIVE

    def test_balance_never_changes(self, accounts, projector):
        add_account(accounts)
        projector.apply_update("ACC0001", AccountUpdatePayload(status=1, customer_name="Asha Menon"))

        account = accounts.get_account("ACC0001")
        assert account.balance == Decimal("2500.00")
        assert account.status == AccountStatus.CLOSED

    def test_customer_id_taken(self, accounts, projector):
        add_account(accounts, "ACC0001", "CUST0000001")
        add_account(accounts, "ACC0002", "CUST0000002")
        with pytest.raises(ConflictError):
            projector.apply_update("ACC0002", AccountUpdatePayload(customer_id="CUST0000001"))

    def test_keeping_own_customer_id_is_fine(self, accounts, projector):
        add_account(accounts)
        projector.apply_update("ACC0001", AccountUpdatePayload(customer_id="CUST0000001"))
        assert accounts.get_account("ACC0001").customer_id == "CUST0000001"

    def test_missing_account(self, projector):
        with pytest.raises(NotFoundError):
            projector.apply_update("ACC0404", AccountUpdatePayload(customer_name="Nobody"))
