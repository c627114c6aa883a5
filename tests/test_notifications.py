"""
Tests for the Notification Dispatcher

Covers reminder creation, messages, retirement, read state, bulk clearing
and replay of retirements deferred after a store failure.
"""

import random
import pytest
from decimal import Decimal

from accounttrack.audit import AuditTrail
from accounttrack.errors import NotFoundError, StoreError, ValidationError
from accounttrack.identifiers import IdentifierAllocator, IdentifierKind
from accounttrack.models import ApprovalType, NotificationStatus, NotificationType, TransactionType
from accounttrack.notifications import GENERIC_APPROVAL_MESSAGE, NotificationDispatcher
from accounttrack.repositories import NotificationRepository
from accounttrack.storage import InMemoryStorage


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


@pytest.fixture
def repository(storage):
    return NotificationRepository(storage)


@pytest.fixture
def dispatcher(storage, repository, audit_trail):
    allocator = IdentifierAllocator(
        {IdentifierKind.NOTIFICATION: repository.notification_exists},
        rng=random.Random(5),
    )
    return NotificationDispatcher(storage, repository, allocator, audit_trail)


class TestCreation:

    @pytest.mark.parametrize("approval_type,message", [
        (ApprovalType.ACCOUNT_CREATION, "Pending approval for new account creation."),
        (ApprovalType.ACCOUNT_UPDATE, "Pending approval for account update."),
        (ApprovalType.HIGH_VALUE_TRANSACTION, "Pending approval for high-value transaction."),
        ("SomethingElse", GENERIC_APPROVAL_MESSAGE),
    ])
    def test_approval_reminder_messages(self, dispatcher, approval_type, message):
        notification = dispatcher.notify_for_approval("APP0001", "1", approval_type)
        assert notification.message == message
        assert notification.notification_type == NotificationType.APPROVAL_REMINDER
        assert notification.status == NotificationStatus.UNREAD
        assert notification.approval_id == "APP0001"
        assert notification.transaction_id is None
        assert notification.id.startswith("NOT")

    def test_high_value_message(self, dispatcher):
        notification = dispatcher.notify_for_high_value_transaction(
            "TXN0001", "1", Decimal("1234567.5"), TransactionType.WITHDRAWAL
        )
        assert notification.notification_type == NotificationType.SUSPICIOUS_ACTIVITY
        assert notification.transaction_id == "TXN0001"
        assert notification.message == (
            "High-value Withdrawal transaction of ₹1,234,567.50 has been initiated and requires approval."
        )

    def test_creation_is_audited(self, dispatcher, audit_trail):
        notification = dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_UPDATE)
        events = audit_trail.get_events_for_entity("notification", notification.id)
        assert len(events) == 1


class TestRetirement:

    def test_retire_for_approval(self, dispatcher, repository):
        dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_CREATION)
        assert dispatcher.retire_for_approval("APP0001") is True
        assert repository.get_notification_by_approval("APP0001") is None

    def test_retire_is_idempotent(self, dispatcher):
        dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_CREATION)
        dispatcher.retire_for_approval("APP0001")
        assert dispatcher.retire_for_approval("APP0001") is False
        assert dispatcher.retire_for_transaction("TXN4242") is False

    def test_retire_for_transaction_leaves_others(self, dispatcher):
        dispatcher.notify_for_high_value_transaction("TXN0001", "1", Decimal("200000"), "Deposit")
        keep = dispatcher.notify_for_approval("APP0002", "1", ApprovalType.ACCOUNT_UPDATE)

        assert dispatcher.retire_for_transaction("TXN0001") is True
        assert [n.id for n in dispatcher.list_notifications()] == [keep.id]

    def test_failed_retirement_is_deferred_and_replayed(self, dispatcher, repository, monkeypatch):
        dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_CREATION)

        original_delete = repository.delete_notification

        def failing_delete(notification_id):
            raise StoreError("disk full")

        monkeypatch.setattr(repository, "delete_notification", failing_delete)
        dispatcher.retire_or_defer("APP0001")

        assert repository.get_notification_by_approval("APP0001") is not None
        assert [r["reference_id"] for r in dispatcher.pending_retirements()] == ["APP0001"]

        monkeypatch.setattr(repository, "delete_notification", original_delete)
        assert dispatcher.retry_deferred_retirements() == 1
        assert repository.get_notification_by_approval("APP0001") is None
        assert dispatcher.pending_retirements() == []


class TestReadState:

    @pytest.mark.parametrize("value", [1, "1", "Read", "read", NotificationStatus.READ])
    def test_mark_read(self, dispatcher, value):
        notification = dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_CREATION)
        updated = dispatcher.mark_read(notification.id, value)
        assert updated.status == NotificationStatus.READ
        assert dispatcher.get_notification(notification.id).status == NotificationStatus.READ

    def test_mark_unread_again(self, dispatcher):
        notification = dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_CREATION)
        dispatcher.mark_read(notification.id, 1)
        assert dispatcher.mark_read(notification.id, 0).status == NotificationStatus.UNREAD

    @pytest.mark.parametrize("value", [2, "Archived", -1])
    def test_invalid_status(self, dispatcher, value):
        notification = dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_CREATION)
        with pytest.raises(ValidationError):
            dispatcher.mark_read(notification.id, value)

    def test_missing_notification(self, dispatcher):
        with pytest.raises(NotFoundError):
            dispatcher.mark_read("NOT0000", 1)


class TestQueriesAndDeletion:

    def test_list_filters(self, dispatcher):
        first = dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_CREATION)
        dispatcher.notify_for_approval("APP0002", "2", ApprovalType.ACCOUNT_CREATION)
        dispatcher.notify_for_high_value_transaction("TXN0003", "1", Decimal("150000"), "Deposit")
        dispatcher.mark_read(first.id, 1)

        assert len(dispatcher.list_notifications(user_id="1")) == 2
        assert len(dispatcher.list_notifications(notification_type="SuspiciousActivity")) == 1
        assert [n.id for n in dispatcher.list_notifications(status="Read")] == [first.id]

    def test_delete_notification(self, dispatcher):
        notification = dispatcher.notify_for_approval("APP0001", "1", ApprovalType.ACCOUNT_CREATION)
        dispatcher.delete_notification(notification.id)
        with pytest.raises(NotFoundError):
            dispatcher.get_notification(notification.id)
        with pytest.raises(NotFoundError):
            dispatcher.delete_notification(notification.id)

    def test_clear_all(self, dispatcher):
        for index in range(3):
            dispatcher.notify_for_approval(f"APP000{index}", "1", ApprovalType.ACCOUNT_UPDATE)
        assert dispatcher.clear_all() == 3
        assert dispatcher.list_notifications() == []
        assert dispatcher.clear_all() == 0
