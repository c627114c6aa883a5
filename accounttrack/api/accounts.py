"""
Account endpoints

Creation and edits go through the approval lifecycle; reads are direct.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .dependencies import get_system
from .schemas import CreateAccountRequest, UpdateAccountRequest, account_to_dict, approval_to_dict, page_to_dict
from ..system import AccountTrackSystem


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_account(
    request: CreateAccountRequest,
    system: AccountTrackSystem = Depends(get_system)
):
    """Submit a new account for approval"""
    account, approval = system.lifecycle.submit_account_creation(
        request.payload_fields(),
        reviewer_id=request.reviewer_id,
        submitted_by=request.submitted_by,
    )
    return {
        "account": account_to_dict(account),
        "approval_id": approval.id,
        "message": "Account submitted for approval",
    }


@router.get("/check-customer/{customer_id}")
async def check_customer_id(
    customer_id: str,
    system: AccountTrackSystem = Depends(get_system)
):
    """Whether a customer id is already taken"""
    return {"exists": system.customer_id_exists(customer_id)}


@router.get("/check-account/{account_id}")
async def check_account_id(
    account_id: str,
    system: AccountTrackSystem = Depends(get_system)
):
    """Whether an account id is already taken"""
    return {"exists": system.account_exists(account_id)}


@router.put("/{account_id}", status_code=status.HTTP_202_ACCEPTED)
async def update_account(
    account_id: str,
    request: UpdateAccountRequest,
    system: AccountTrackSystem = Depends(get_system)
):
    """Submit an account edit for approval"""
    approval = system.lifecycle.submit_account_update(
        account_id,
        request.payload_fields(),
        reviewer_id=request.reviewer_id,
        submitted_by=request.submitted_by,
    )
    return {
        "approval": approval_to_dict(approval),
        "message": "Account update submitted for approval",
    }


@router.get("/{account_id}")
async def get_account(
    account_id: str,
    system: AccountTrackSystem = Depends(get_system)
):
    """Get account details"""
    return account_to_dict(system.get_account(account_id))


@router.get("")
async def list_accounts(
    account_status: Optional[str] = Query(None, alias="status"),
    account_type: Optional[str] = None,
    page_number: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    system: AccountTrackSystem = Depends(get_system)
):
    """List accounts, newest first"""
    page = system.list_accounts(account_status, account_type, page_number, page_size)
    return page_to_dict(page, account_to_dict)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: str,
    deleted_by: Optional[str] = None,
    system: AccountTrackSystem = Depends(get_system)
):
    """Delete an account that has nothing awaiting approval"""
    system.delete_account(account_id, deleted_by=deleted_by)
