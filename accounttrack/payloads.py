"""
Pending-Change Payloads

Pydantic schemas for the proposed mutations an officer submits, and the
versioned JSON envelope they are stored in on an Approval:

    {"schema_version": 1, "payload": {"kind": "account_update", ...}}

The payload is a tagged union on `kind`; decoding checks that the kind
matches the approval type so a creation snapshot can never be replayed as
an update (or the reverse).
"""

from typing import Optional, Union, Literal, Dict, Any, Annotated
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import AccountType, AccountStatus, ApprovalType


SCHEMA_VERSION = 1

ACCOUNT_ID_PATTERN = r"^ACC\d{4,}$"
CUSTOMER_ID_MIN_LENGTH = 7

# Numeric codes accepted by the officer-facing forms
ACCOUNT_TYPE_CODES = {0: AccountType.SAVINGS, 1: AccountType.CURRENT}
ACCOUNT_STATUS_CODES = {0: AccountStatus.ACTIVE, 1: AccountStatus.CLOSED}


def _coerce_enum(enum_cls, codes, value):
    if isinstance(value, int) and not isinstance(value, bool):
        return codes.get(value, value)
    if isinstance(value, str):
        for member in enum_cls:
            if member.value.lower() == value.lower():
                return member
    return value


class AccountCreationPayload(BaseModel):
    """New account request. `account_id` is allocated when omitted."""
    model_config = ConfigDict(extra="forbid")

    kind: Literal["account_creation"] = "account_creation"
    account_id: Optional[str] = Field(None, pattern=ACCOUNT_ID_PATTERN,
                                      description="ACC followed by at least 4 digits")
    customer_name: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=CUSTOMER_ID_MIN_LENGTH)
    account_type: AccountType

    @field_validator("account_type", mode="before")
    @classmethod
    def _account_type_code(cls, value):
        return _coerce_enum(AccountType, ACCOUNT_TYPE_CODES, value)

    @field_validator("customer_name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Customer name cannot be empty")
        return value


class AccountUpdatePayload(BaseModel):
    """Partial account edit; only fields that are set are applied"""
    model_config = ConfigDict(extra="forbid")

    kind: Literal["account_update"] = "account_update"
    customer_name: Optional[str] = Field(None, min_length=1)
    customer_id: Optional[str] = Field(None, min_length=CUSTOMER_ID_MIN_LENGTH)
    account_type: Optional[AccountType] = None
    status: Optional[AccountStatus] = None

    @field_validator("account_type", mode="before")
    @classmethod
    def _account_type_code(cls, value):
        return _coerce_enum(AccountType, ACCOUNT_TYPE_CODES, value)

    @field_validator("status", mode="before")
    @classmethod
    def _status_code(cls, value):
        return _coerce_enum(AccountStatus, ACCOUNT_STATUS_CODES, value)

    @field_validator("customer_name")
    @classmethod
    def _name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("Customer name cannot be empty")
        return value

    @field_validator("status")
    @classmethod
    def _status_not_pending(cls, value: Optional[AccountStatus]) -> Optional[AccountStatus]:
        if value == AccountStatus.PENDING:
            raise ValueError("Status must be Active or Closed; Pending is not allowed")
        return value

    def changes(self) -> Dict[str, Any]:
        """Fields carried by this update, excluding the tag"""
        return self.model_dump(exclude_none=True, exclude={"kind"})


PendingChange = Annotated[
    Union[AccountCreationPayload, AccountUpdatePayload],
    Field(discriminator="kind"),
]


class PendingChangeEnvelope(BaseModel):
    schema_version: int = SCHEMA_VERSION
    payload: PendingChange


_EXPECTED_PAYLOAD = {
    ApprovalType.ACCOUNT_CREATION: AccountCreationPayload,
    ApprovalType.ACCOUNT_UPDATE: AccountUpdatePayload,
}


def _describe(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()) if p != "payload")
        parts.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
    return "; ".join(parts)


def parse_creation_payload(data: Dict[str, Any]) -> AccountCreationPayload:
    """Validate raw creation fields, raising the core ValidationError"""
    try:
        return AccountCreationPayload.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e), resource="account")


def parse_update_payload(data: Dict[str, Any]) -> AccountUpdatePayload:
    """Validate raw update fields, raising the core ValidationError"""
    try:
        payload = AccountUpdatePayload.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e), resource="account")
    if not payload.changes():
        raise ValidationError("Account update must change at least one field", resource="account")
    return payload


def encode_pending_changes(payload: Union[AccountCreationPayload, AccountUpdatePayload]) -> str:
    """Serialize a payload into the versioned envelope"""
    envelope = PendingChangeEnvelope(payload=payload)
    return envelope.model_dump_json(exclude_none=True)


def decode_pending_changes(raw: Optional[str], approval_type: ApprovalType
                           ) -> Union[AccountCreationPayload, AccountUpdatePayload]:
    """Decode an envelope and check it matches the approval type"""
    expected = _EXPECTED_PAYLOAD.get(approval_type)
    if expected is None:
        raise ValidationError(f"{approval_type.value} approvals carry no pending changes", resource="approval")
    if not raw:
        raise ValidationError("Approval has no pending changes recorded", resource="approval")

    try:
        envelope = PendingChangeEnvelope.model_validate_json(raw)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed pending changes: {_describe(e)}", resource="approval")

    if envelope.schema_version != SCHEMA_VERSION:
        raise ValidationError(
            f"Unsupported pending changes schema version {envelope.schema_version}",
            resource="approval",
        )
    if not isinstance(envelope.payload, expected):
        raise ValidationError(
            f"Pending changes of kind {envelope.payload.kind!r} do not match "
            f"{approval_type.value} approval",
            resource="approval",
        )
    return envelope.payload
