"""
Pydantic schemas for API requests and responses
"""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

from ..approvals import ApprovalDetails
from ..models import Account, Approval, Notification, Transaction
from ..repositories import PagedResult


# Account schemas
class CreateAccountRequest(BaseModel):
    account_id: Optional[str] = Field(None, description="ACC followed by at least 4 digits; allocated when omitted")
    customer_name: str
    customer_id: str
    account_type: Union[int, str] = Field(..., description="0/Savings or 1/Current")
    reviewer_id: Optional[str] = None
    submitted_by: Optional[str] = None

    def payload_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"reviewer_id", "submitted_by"}, exclude_none=True)


class UpdateAccountRequest(BaseModel):
    customer_name: Optional[str] = None
    customer_id: Optional[str] = None
    account_type: Optional[Union[int, str]] = None
    status: Optional[Union[int, str]] = Field(None, description="0/Active or 1/Closed")
    reviewer_id: Optional[str] = None
    submitted_by: Optional[str] = None

    def payload_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"reviewer_id", "submitted_by"}, exclude_none=True)


# Transaction schemas
class CreateTransactionRequest(BaseModel):
    account_id: str
    transaction_type: str = Field(..., description="Deposit, Withdrawal or Transfer")
    amount: str = Field(..., description="Decimal amount as string")
    narrative: str = ""
    to_account_id: Optional[str] = None
    flag: Optional[str] = None
    reviewer_id: Optional[str] = None


# Approval schemas
class DecisionRequest(BaseModel):
    decision: Union[int, str] = Field(..., description="1/Approve or 2/Reject")
    comments: str = ""
    decided_by: Optional[str] = None


# Notification schemas
class NotificationStatusRequest(BaseModel):
    status: Union[int, str] = Field(..., description="0/Unread or 1/Read")


def account_to_dict(account: Account) -> Dict[str, Any]:
    return {
        "account_id": account.id,
        "customer_name": account.customer_name,
        "customer_id": account.customer_id,
        "account_type": account.account_type.value,
        "balance": str(account.balance),
        "status": account.status.value,
        "created_at": account.created_at.isoformat(),
    }


def transaction_to_dict(transaction: Transaction) -> Dict[str, Any]:
    return {
        "transaction_id": transaction.id,
        "account_id": transaction.account_id,
        "transaction_type": transaction.transaction_type.value,
        "amount": str(transaction.amount),
        "to_account_id": transaction.to_account_id,
        "narrative": transaction.narrative,
        "date": transaction.date.isoformat(),
        "status": transaction.status.value,
        "flag": transaction.flag,
        "failure_reason": transaction.failure_reason,
    }


def approval_to_dict(approval: Approval) -> Dict[str, Any]:
    return {
        "approval_id": approval.id,
        "approval_type": approval.approval_type.value,
        "account_id": approval.account_id,
        "transaction_id": approval.transaction_id,
        "reviewer_id": approval.reviewer_id,
        "decision": approval.decision.value,
        "comments": approval.comments,
        "approval_date": approval.approval_date.isoformat(),
        "decided_by": approval.decided_by,
    }


def approval_details_to_dict(details: ApprovalDetails) -> Dict[str, Any]:
    result = approval_to_dict(details.approval)
    result["pending_changes"] = (
        details.pending_changes.model_dump(mode="json", exclude_none=True)
        if details.pending_changes is not None else None
    )
    result["account"] = account_to_dict(details.account) if details.account else None
    result["transaction"] = transaction_to_dict(details.transaction) if details.transaction else None
    return result


def notification_to_dict(notification: Notification) -> Dict[str, Any]:
    return {
        "notification_id": notification.id,
        "user_id": notification.user_id,
        "notification_type": notification.notification_type.value,
        "message": notification.message,
        "status": notification.status.value,
        "created_date": notification.created_date.isoformat(),
        "approval_id": notification.approval_id,
        "transaction_id": notification.transaction_id,
    }


def page_to_dict(page: PagedResult, serializer) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = [serializer(item) for item in page.items]
    return {
        "items": items,
        "page_number": page.page_number,
        "page_size": page.page_size,
        "total_count": page.total_count,
        "total_pages": page.total_pages,
    }
