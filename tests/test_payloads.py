"""
Tests for pending-change payloads and their stored envelope
"""

import json
import pytest

from accounttrack.errors import ValidationError
from accounttrack.models import AccountStatus, AccountType, ApprovalType
from accounttrack.payloads import (
    AccountCreationPayload, AccountUpdatePayload,
    decode_pending_changes, encode_pending_changes,
    parse_creation_payload, parse_update_payload,
)


class TestCreationPayload:

    def test_valid_payload(self):
        payload = parse_creation_payload({
            "account_id": "ACC0001",
            "customer_name": "Asha Rao",
            "customer_id": "CUST0001",
            "account_type": "Savings",
        })
        assert payload.account_type == AccountType.SAVINGS
        assert payload.kind == "account_creation"

    @pytest.mark.parametrize("code,expected", [(0, AccountType.SAVINGS), (1, AccountType.CURRENT),
                                               ("current", AccountType.CURRENT)])
    def test_account_type_codes(self, code, expected):
        payload = parse_creation_payload({
            "customer_name": "Asha Rao", "customer_id": "CUST0001", "account_type": code,
        })
        assert payload.account_type == expected

    def test_account_id_is_optional(self):
        payload = parse_creation_payload({
            "customer_name": "Asha Rao", "customer_id": "CUST0001", "account_type": 0,
        })
        assert payload.account_id is None

    @pytest.mark.parametrize("field,value", [
        ("account_id", "AC0001"),
        ("account_id", "ACC12"),
        ("customer_id", "C123"),
        ("customer_name", "   "),
        ("account_type", 7),
    ])
    def test_invalid_fields(self, field, value):
        data = {
            "account_id": "ACC0001",
            "customer_name": "Asha Rao",
            "customer_id": "CUST0001",
            "account_type": "Savings",
        }
        data[field] = value
        with pytest.raises(ValidationError):
            parse_creation_payload(data)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_creation_payload({
                "customer_name": "Asha Rao", "customer_id": "CUST0001",
                "account_type": "Savings", "balance": "500",
            })


class TestUpdatePayload:

    def test_changes_only_contains_set_fields(self):
        payload = parse_update_payload({"customer_name": "Asha R."})
        assert payload.changes() == {"customer_name": "Asha R."}

    def test_status_codes(self):
        assert parse_update_payload({"status": 1}).status == AccountStatus.CLOSED
        assert parse_update_payload({"status": "active"}).status == AccountStatus.ACTIVE

    def test_pending_status_not_allowed(self):
        with pytest.raises(ValidationError):
            parse_update_payload({"status": "Pending"})

    def test_empty_update_rejected(self):
        with pytest.raises(ValidationError):
            parse_update_payload({})

    @pytest.mark.parametrize("name", ["   ", "\t"])
    def test_blank_name_rejected(self, name):
        with pytest.raises(ValidationError):
            parse_update_payload({"customer_name": name})


class TestEnvelope:

    def test_envelope_shape(self):
        raw = encode_pending_changes(AccountUpdatePayload(customer_name="New Name"))
        document = json.loads(raw)
        assert document["schema_version"] == 1
        assert document["payload"] == {"kind": "account_update", "customer_name": "New Name"}

    def test_decode_returns_equal_payload(self):
        original = AccountCreationPayload(
            account_id="ACC0042", customer_name="Asha Rao",
            customer_id="CUST0042", account_type=AccountType.CURRENT,
        )
        decoded = decode_pending_changes(encode_pending_changes(original), ApprovalType.ACCOUNT_CREATION)
        assert decoded == original

    def test_kind_must_match_approval_type(self):
        raw = encode_pending_changes(AccountUpdatePayload(customer_name="New Name"))
        with pytest.raises(ValidationError):
            decode_pending_changes(raw, ApprovalType.ACCOUNT_CREATION)

    def test_unsupported_version(self):
        raw = json.dumps({"schema_version": 2, "payload": {"kind": "account_update", "customer_name": "X"}})
        with pytest.raises(ValidationError):
            decode_pending_changes(raw, ApprovalType.ACCOUNT_UPDATE)

    @pytest.mark.parametrize("raw", [None, "", "not json", '{"schema_version": 1}'])
    def test_malformed_documents(self, raw):
        with pytest.raises(ValidationError):
            decode_pending_changes(raw, ApprovalType.ACCOUNT_UPDATE)

    def test_transaction_approvals_carry_no_payload(self):
        with pytest.raises(ValidationError):
            decode_pending_changes('{"schema_version": 1}', ApprovalType.HIGH_VALUE_TRANSACTION)
