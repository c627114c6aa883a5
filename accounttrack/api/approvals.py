"""
Approval endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from .dependencies import get_system
from .schemas import DecisionRequest, approval_details_to_dict, approval_to_dict, page_to_dict
from ..models import ApprovalDecision
from ..system import AccountTrackSystem


router = APIRouter()


@router.get("")
async def list_approvals(
    decision: Optional[str] = None,
    approval_type: Optional[str] = None,
    reviewer_id: Optional[str] = None,
    page_number: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    system: AccountTrackSystem = Depends(get_system)
):
    """List approvals, newest first"""
    page = system.lifecycle.list_approvals(decision, approval_type, reviewer_id, page_number, page_size)
    return page_to_dict(page, approval_to_dict)


@router.get("/{approval_id}")
async def get_approval(
    approval_id: str,
    system: AccountTrackSystem = Depends(get_system)
):
    """Approval with its decoded pending changes"""
    return approval_details_to_dict(system.lifecycle.get_approval_details(approval_id))


@router.put("/{approval_id}/decision")
async def decide_approval(
    approval_id: str,
    request: DecisionRequest,
    system: AccountTrackSystem = Depends(get_system)
):
    """Approve or reject"""
    approval = system.lifecycle.decide(
        approval_id, request.decision, comments=request.comments, decided_by=request.decided_by
    )
    return {
        "approval": approval_to_dict(approval),
        "message": "Approval approved" if approval.decision == ApprovalDecision.APPROVE else "Approval rejected",
    }
