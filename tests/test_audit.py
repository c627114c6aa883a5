"""
Test suite for audit module

Tests the hash-chained audit trail, tamper detection and the events recorded
by approval and transaction flows.
"""

import random
import pytest
from decimal import Decimal

from accounttrack.audit import AuditTrail, AuditEvent, AuditEventType
from accounttrack.config import AccountTrackConfig
from accounttrack.errors import ConflictError
from accounttrack.storage import InMemoryStorage
from accounttrack.system import AccountTrackSystem


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


class TestAuditEvent:

    def test_metadata_values_are_serializable(self, audit_trail):
        event = audit_trail.log_event(
            AuditEventType.TRANSACTION_COMPLETED, "transaction", "TXN0001",
            {"amount": Decimal("150000.00"), "transaction_type": AuditEventType.TRANSACTION_HELD},
        )
        assert event.metadata["amount"] == "150000.00"
        assert event.metadata["transaction_type"] == "transaction_held"

    def test_hash_verifies(self, audit_trail):
        event = audit_trail.log_event(AuditEventType.APPROVAL_SUBMITTED, "approval", "APP0001")
        assert event.verify_hash()

        event.entity_id = "APP9999"
        assert not event.verify_hash()


class TestAuditTrail:

    def test_events_chain_to_predecessor(self, audit_trail):
        first = audit_trail.log_event(AuditEventType.ACCOUNT_SUBMITTED, "account", "ACC0001")
        second = audit_trail.log_event(AuditEventType.ACCOUNT_ACTIVATED, "account", "ACC0001")

        assert first.previous_hash == ""
        assert second.previous_hash == first.current_hash
        assert [e.id for e in audit_trail.get_events_for_entity("account", "ACC0001")] == [first.id, second.id]

    def test_verify_integrity_clean(self, audit_trail):
        for index in range(5):
            audit_trail.log_event(AuditEventType.NOTIFICATION_CREATED, "notification", f"NOT000{index}")
        result = audit_trail.verify_integrity()
        assert result["valid"]
        assert result["total_events"] == 5

    def test_tampering_detected(self, storage, audit_trail):
        event = audit_trail.log_event(AuditEventType.APPROVAL_DECIDED, "approval", "APP0001",
                                      {"decision": "Approve"})
        audit_trail.log_event(AuditEventType.NOTIFICATION_RETIRED, "notification", "NOT0001")

        data = storage.load(audit_trail.table_name, event.id)
        data["metadata"]["decision"] = "Reject"
        storage.save(audit_trail.table_name, event.id, data)

        result = audit_trail.verify_integrity()
        assert not result["valid"]
        assert result["hash_errors"][0]["event_id"] == event.id

    def test_disabled_trail_records_nothing(self, storage):
        trail = AuditTrail(storage, enabled=False)
        assert trail.log_event(AuditEventType.ACCOUNT_SUBMITTED, "account", "ACC0001") is None
        assert trail.verify_integrity()["total_events"] == 0

    def test_events_by_type(self, audit_trail):
        audit_trail.log_event(AuditEventType.ACCOUNT_SUBMITTED, "account", "ACC0001")
        audit_trail.log_event(AuditEventType.ACCOUNT_SUBMITTED, "account", "ACC0002")
        audit_trail.log_event(AuditEventType.ACCOUNT_ACTIVATED, "account", "ACC0001")
        assert len(audit_trail.get_events_by_type(AuditEventType.ACCOUNT_SUBMITTED)) == 2

    def test_loaded_event_round_trips(self, storage, audit_trail):
        event = audit_trail.log_event(AuditEventType.ACCOUNT_UPDATED, "account", "ACC0001", {"new": {"a": 1}})
        loaded = AuditEvent.from_dict(storage.load(audit_trail.table_name, event.id))
        assert loaded.verify_hash()
        assert loaded.event_type == AuditEventType.ACCOUNT_UPDATED


class TestFlowAuditing:

    @pytest.fixture
    def system(self):
        settings = AccountTrackConfig(use_sqlite=False)
        return AccountTrackSystem(storage=InMemoryStorage(), settings=settings, rng=random.Random(3))

    def test_approval_flow_is_audited(self, system):
        account, approval = system.lifecycle.submit_account_creation({
            "account_id": "ACC0001", "customer_name": "Asha Rao",
            "customer_id": "CUST0001234", "account_type": "Savings",
        }, submitted_by="officer-1")
        system.lifecycle.decide(approval.id, "Approve", decided_by="reviewer-1")

        account_events = [e.event_type for e in system.audit_trail.get_events_for_entity("account", account.id)]
        assert account_events == [AuditEventType.ACCOUNT_SUBMITTED, AuditEventType.ACCOUNT_ACTIVATED]

        approval_events = system.audit_trail.get_events_for_entity("approval", approval.id)
        assert [e.event_type for e in approval_events] == [
            AuditEventType.APPROVAL_SUBMITTED, AuditEventType.APPROVAL_DECIDED,
        ]
        assert approval_events[-1].user_id == "reviewer-1"
        assert system.audit_trail.verify_integrity()["valid"]

    def test_rolled_back_work_leaves_no_events(self, system):
        system.lifecycle.submit_account_creation({
            "account_id": "ACC0001", "customer_name": "Asha Rao",
            "customer_id": "CUST0001234", "account_type": "Savings",
        })
        before = system.audit_trail.verify_integrity()["total_events"]
        with pytest.raises(ConflictError):
            system.lifecycle.submit_account_creation({
                "account_id": "ACC0002", "customer_name": "Asha Rao",
                "customer_id": "CUST0001234", "account_type": "Savings",
            })
        assert system.audit_trail.verify_integrity()["total_events"] == before
