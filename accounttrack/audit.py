"""
Audit Trail Module

Hash-chained audit log with SHA-256 for tamper detection. Submissions,
decisions, account projections, transaction postings and notification
changes are all recorded here.
"""

import hashlib
import json
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Any

from .storage import StorageInterface, StorageRecord


class AuditEventType(Enum):
    """Types of audit events"""
    # Account events
    ACCOUNT_SUBMITTED = "account_submitted"
    ACCOUNT_ACTIVATED = "account_activated"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DISCARDED = "account_discarded"
    ACCOUNT_DELETED = "account_deleted"

    # Transaction events
    TRANSACTION_COMPLETED = "transaction_completed"
    TRANSACTION_HELD = "transaction_held"
    TRANSACTION_REJECTED = "transaction_rejected"
    TRANSACTION_FAILED = "transaction_failed"

    # Approval events
    APPROVAL_SUBMITTED = "approval_submitted"
    APPROVAL_DECIDED = "approval_decided"

    # Notification events
    NOTIFICATION_CREATED = "notification_created"
    NOTIFICATION_STATUS_CHANGED = "notification_status_changed"
    NOTIFICATION_RETIRED = "notification_retired"
    NOTIFICATIONS_CLEARED = "notifications_cleared"


def _jsonable(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class AuditEvent(StorageRecord):
    """Immutable audit event chained to its predecessor by hash"""
    event_type: AuditEventType
    entity_type: str
    entity_id: str
    previous_hash: str
    current_hash: str
    metadata: Dict[str, Any]
    user_id: Optional[str] = None

    def __post_init__(self):
        self.metadata = _jsonable(self.metadata or {})

    def calculate_hash(self) -> str:
        """SHA-256 over every field except current_hash"""
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'user_id': self.user_id,
            'metadata': self.metadata,
        }
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data)
        data['event_type'] = AuditEventType(data['event_type'])
        return super().from_dict(data)


class AuditTrail:
    """Append-only, hash-chained audit log"""

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events",
                 enabled: bool = True):
        self.storage = storage
        self.table_name = table_name
        self.enabled = enabled

    def _sorted_events(self) -> List[AuditEvent]:
        events = [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]
        events.sort(key=lambda e: e.metadata.get('_seq', 0))
        return events

    def _last_event(self) -> Optional[AuditEvent]:
        events = self._sorted_events()
        return events[-1] if events else None

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[AuditEvent]:
        """
        Append an event to the chain.

        Returns None when auditing is disabled.
        """
        if not self.enabled:
            return None

        with self.storage.atomic():
            last = self._last_event()
            metadata = dict(metadata or {})
            # Chain position; created_at alone is not unique
            metadata['_seq'] = (last.metadata.get('_seq', 0) + 1) if last else 1

            now = datetime.now(timezone.utc)
            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=last.current_hash if last else "",
                current_hash="",
                metadata=metadata,
                user_id=str(user_id) if user_id is not None else None,
            )
            event.current_hash = event.calculate_hash()
            self.storage.save(self.table_name, event.id, event.to_dict())
            return event

    def get_events_for_entity(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        """All events for one entity, oldest first"""
        return [
            e for e in self._sorted_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_events_by_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        return [e for e in self._sorted_events() if e.event_type == event_type]

    def verify_integrity(self) -> Dict[str, Any]:
        """Check every hash and every chain link"""
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': [],
        }
        events = self._sorted_events()
        result['total_events'] = len(events)

        previous_hash = ""
        for position, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({'event_id': event.id, 'position': position})
            if event.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash,
                })
            previous_hash = event.current_hash

        return result
