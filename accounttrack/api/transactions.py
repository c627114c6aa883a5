"""
Transaction endpoints
"""

from decimal import Decimal, InvalidOperation
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .dependencies import get_system
from .schemas import CreateTransactionRequest, page_to_dict, transaction_to_dict
from ..errors import ValidationError
from ..models import TransactionStatus
from ..system import AccountTrackSystem


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: CreateTransactionRequest,
    system: AccountTrackSystem = Depends(get_system)
):
    """Submit a deposit, withdrawal or transfer"""
    try:
        amount = Decimal(request.amount)
    except InvalidOperation:
        raise ValidationError(f"Invalid amount {request.amount!r}", resource="transaction")
    if not amount.is_finite():
        raise ValidationError(f"Amount must be finite, got {request.amount!r}", resource="transaction")

    transaction = system.transaction_processor.submit_transaction(
        account_id=request.account_id,
        transaction_type=request.transaction_type,
        amount=amount,
        narrative=request.narrative,
        to_account_id=request.to_account_id,
        flag=request.flag,
        reviewer_id=request.reviewer_id,
    )

    if transaction.status == TransactionStatus.PENDING:
        message = "Transaction held for approval"
    elif transaction.status == TransactionStatus.COMPLETED:
        message = "Transaction processed successfully"
    else:
        message = f"Transaction {transaction.status.value.lower()}"

    return {
        "transaction": transaction_to_dict(transaction),
        "message": message,
    }


@router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    system: AccountTrackSystem = Depends(get_system)
):
    """Get transaction details"""
    return transaction_to_dict(system.transaction_processor.get_transaction(transaction_id))


@router.get("")
async def list_transactions(
    account_id: Optional[str] = None,
    transaction_type: Optional[str] = None,
    transaction_status: Optional[str] = Query(None, alias="status"),
    flag: Optional[str] = None,
    page_number: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    system: AccountTrackSystem = Depends(get_system)
):
    """List transactions, newest first"""
    page = system.transaction_processor.list_transactions(
        account_id, transaction_type, transaction_status, flag, page_number, page_size
    )
    return page_to_dict(page, transaction_to_dict)
