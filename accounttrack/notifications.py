"""
Notification Dispatcher

Creates reviewer-facing notifications keyed to an approval or a transaction
and retires them once the triggering approval is decided. Notification rows
are only ever created and deleted here.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Union

from .audit import AuditTrail, AuditEventType
from .errors import NotFoundError, StoreError, ValidationError
from .identifiers import IdentifierAllocator, IdentifierKind
from .logging_config import get_logger, log_action
from .models import (
    ApprovalType, Notification, NotificationStatus, NotificationType, TransactionType,
)
from .repositories import NotificationRepository
from .storage import StorageInterface


APPROVAL_MESSAGES = {
    ApprovalType.ACCOUNT_CREATION: "Pending approval for new account creation.",
    ApprovalType.ACCOUNT_UPDATE: "Pending approval for account update.",
    ApprovalType.HIGH_VALUE_TRANSACTION: "Pending approval for high-value transaction.",
}
GENERIC_APPROVAL_MESSAGE = "Pending approval request."

# Numeric codes used by the reviewer UI
NOTIFICATION_STATUS_CODES = {0: NotificationStatus.UNREAD, 1: NotificationStatus.READ}


def approval_message(approval_type: Union[ApprovalType, str, None]) -> str:
    """Reviewer-facing sentence for an approval type"""
    if not isinstance(approval_type, ApprovalType):
        try:
            approval_type = ApprovalType(approval_type)
        except ValueError:
            return GENERIC_APPROVAL_MESSAGE
    return APPROVAL_MESSAGES.get(approval_type, GENERIC_APPROVAL_MESSAGE)


def high_value_message(amount: Decimal, transaction_type: Union[TransactionType, str]) -> str:
    type_name = transaction_type.value if isinstance(transaction_type, TransactionType) else str(transaction_type)
    return (
        f"High-value {type_name} transaction of ₹{Decimal(amount):,.2f} "
        f"has been initiated and requires approval."
    )


def parse_notification_status(value: Union[NotificationStatus, str, int]) -> NotificationStatus:
    if isinstance(value, NotificationStatus):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        if value in NOTIFICATION_STATUS_CODES:
            return NOTIFICATION_STATUS_CODES[value]
    elif isinstance(value, str):
        for member in NotificationStatus:
            if member.value.lower() == value.lower():
                return member
    raise ValidationError(
        "Invalid notification status. Use 0 for Unread or 1 for Read.",
        resource="notification",
    )


class NotificationDispatcher:
    """Creates, updates and retires reviewer notifications"""

    DEFERRED_TABLE = "deferred_retirements"

    def __init__(
        self,
        storage: StorageInterface,
        notifications: NotificationRepository,
        allocator: IdentifierAllocator,
        audit_trail: AuditTrail,
    ):
        self.storage = storage
        self.notifications = notifications
        self.allocator = allocator
        self.audit_trail = audit_trail
        self.logger = get_logger("accounttrack.notifications")

    def _create(self, user_id: str, notification_type: NotificationType, message: str,
                approval_id: Optional[str] = None,
                transaction_id: Optional[str] = None) -> Notification:
        def build(notification_id: str) -> Notification:
            now = datetime.now(timezone.utc)
            return Notification(
                id=notification_id,
                created_at=now,
                updated_at=now,
                user_id=str(user_id),
                notification_type=notification_type,
                message=message,
                status=NotificationStatus.UNREAD,
                approval_id=approval_id,
                transaction_id=transaction_id,
            )

        with self.storage.atomic():
            notification = self.allocator.insert_with_id(
                IdentifierKind.NOTIFICATION, build, self.notifications.insert_notification
            )
            self.audit_trail.log_event(
                AuditEventType.NOTIFICATION_CREATED,
                "notification",
                notification.id,
                {
                    "notification_type": notification_type.value,
                    "approval_id": approval_id,
                    "transaction_id": transaction_id,
                },
                user_id=user_id,
            )

        log_action(
            self.logger, "info", f"Notification {notification.id} created for user {user_id}",
            user_id=user_id, action="notification_created", resource=notification.id,
            extra={"type": notification_type.value, "approval_id": approval_id,
                   "transaction_id": transaction_id},
        )
        return notification

    def notify_for_approval(self, approval_id: str, reviewer_id: str,
                            approval_type: Union[ApprovalType, str]) -> Notification:
        """Create one Unread approval reminder for the reviewer"""
        return self._create(
            reviewer_id,
            NotificationType.APPROVAL_REMINDER,
            approval_message(approval_type),
            approval_id=approval_id,
        )

    def notify_for_high_value_transaction(self, transaction_id: str, reviewer_id: str,
                                          amount: Decimal,
                                          transaction_type: Union[TransactionType, str]) -> Notification:
        """Create one Unread suspicious-activity notice for a held transaction"""
        return self._create(
            reviewer_id,
            NotificationType.SUSPICIOUS_ACTIVITY,
            high_value_message(amount, transaction_type),
            transaction_id=transaction_id,
        )

    def _retire(self, lookup, reference_field: str, reference_id: str) -> bool:
        removed = False
        with self.storage.atomic():
            notification = lookup(reference_id)
            while notification is not None:
                self.notifications.delete_notification(notification.id)
                self.audit_trail.log_event(
                    AuditEventType.NOTIFICATION_RETIRED,
                    "notification",
                    notification.id,
                    {reference_field: reference_id},
                )
                removed = True
                notification = lookup(reference_id)

        if removed:
            self.logger.info("Retired notification for %s %s", reference_field, reference_id)
        return removed

    def retire_for_approval(self, approval_id: str) -> bool:
        """Delete the notification tied to an approval; missing is not an error"""
        return self._retire(self.notifications.get_notification_by_approval, "approval_id", approval_id)

    def retire_for_transaction(self, transaction_id: str) -> bool:
        """Delete the notification tied to a transaction; missing is not an error"""
        return self._retire(self.notifications.get_notification_by_transaction, "transaction_id", transaction_id)

    def retire_or_defer(self, approval_id: str, transaction_id: Optional[str] = None) -> None:
        """
        Retire notifications after a committed decision.

        A store failure here must not undo the decision, so it is logged and
        recorded for `retry_deferred_retirements`.
        """
        targets = [("approval_id", approval_id)]
        if transaction_id:
            targets.append(("transaction_id", transaction_id))

        for reference_field, reference_id in targets:
            try:
                if reference_field == "approval_id":
                    self.retire_for_approval(reference_id)
                else:
                    self.retire_for_transaction(reference_id)
            except StoreError as e:
                log_action(
                    self.logger, "error",
                    f"Notification retirement for {reference_field} {reference_id} failed: {e}",
                    action="notification_retire_failed", resource=reference_id,
                )
                self._defer(reference_field, reference_id, str(e))

    def _defer(self, reference_field: str, reference_id: str, error: str) -> None:
        record_id = f"{reference_field}:{reference_id}"
        try:
            self.storage.save(self.DEFERRED_TABLE, record_id, {
                "id": record_id,
                "reference_field": reference_field,
                "reference_id": reference_id,
                "error": error,
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
        except StoreError as e:
            self.logger.error("Could not record deferred retirement %s: %s", record_id, e)

    def retry_deferred_retirements(self) -> int:
        """Replay retirements that failed after their decision committed"""
        retried = 0
        for record in self.storage.load_all(self.DEFERRED_TABLE):
            if record["reference_field"] == "approval_id":
                self.retire_for_approval(record["reference_id"])
            else:
                self.retire_for_transaction(record["reference_id"])
            self.storage.delete(self.DEFERRED_TABLE, record["id"])
            retried += 1
        if retried:
            self.logger.info("Replayed %d deferred notification retirements", retried)
        return retried

    def pending_retirements(self) -> List[dict]:
        return self.storage.load_all(self.DEFERRED_TABLE)

    def get_notification(self, notification_id: str) -> Notification:
        notification = self.notifications.get_notification(notification_id)
        if notification is None:
            raise NotFoundError(f"Notification with ID {notification_id} not found.", resource="notification")
        return notification

    def list_notifications(self, user_id: Optional[str] = None,
                           notification_type: Optional[Union[NotificationType, str]] = None,
                           status: Optional[Union[NotificationStatus, str, int]] = None) -> List[Notification]:
        """Newest first, optionally filtered"""
        if notification_type is not None and not isinstance(notification_type, NotificationType):
            matches = [t for t in NotificationType if t.value.lower() == str(notification_type).lower()]
            if not matches:
                raise ValidationError(f"Unknown notification type {notification_type!r}", resource="notification")
            notification_type = matches[0]
        if status is not None:
            status = parse_notification_status(status)
        return self.notifications.list_notifications(user_id, notification_type, status)

    def mark_read(self, notification_id: str,
                  new_status: Union[NotificationStatus, str, int] = NotificationStatus.READ) -> Notification:
        """Set a notification's read state"""
        status = parse_notification_status(new_status)
        with self.storage.atomic():
            notification = self.get_notification(notification_id)
            old_status = notification.status
            notification.status = status
            notification.updated_at = datetime.now(timezone.utc)
            self.notifications.update_notification(notification)
            self.audit_trail.log_event(
                AuditEventType.NOTIFICATION_STATUS_CHANGED,
                "notification",
                notification.id,
                {"old_status": old_status.value, "new_status": status.value},
                user_id=notification.user_id,
            )
        return notification

    def delete_notification(self, notification_id: str) -> None:
        with self.storage.atomic():
            if not self.notifications.delete_notification(notification_id):
                raise NotFoundError(f"Notification with ID {notification_id} not found.", resource="notification")
            self.audit_trail.log_event(
                AuditEventType.NOTIFICATION_RETIRED, "notification", notification_id, {"reason": "deleted"}
            )

    def clear_all(self) -> int:
        """Delete every notification; returns how many were removed"""
        with self.storage.atomic():
            removed = self.notifications.delete_all_notifications()
            self.audit_trail.log_event(
                AuditEventType.NOTIFICATIONS_CLEARED, "notification", "*", {"removed": removed}
            )
        log_action(self.logger, "warning", f"Cleared {removed} notifications",
                   action="notifications_cleared", resource="notification")
        return removed
