"""
Notification endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .dependencies import get_system
from .schemas import NotificationStatusRequest, notification_to_dict
from ..system import AccountTrackSystem


router = APIRouter()


@router.get("")
async def list_notifications(
    user_id: Optional[str] = None,
    notification_type: Optional[str] = None,
    notification_status: Optional[str] = None,
    system: AccountTrackSystem = Depends(get_system)
):
    """List notifications, newest first"""
    notifications = system.dispatcher.list_notifications(user_id, notification_type, notification_status)
    return {"notifications": [notification_to_dict(n) for n in notifications]}


@router.get("/{notification_id}")
async def get_notification(
    notification_id: str,
    system: AccountTrackSystem = Depends(get_system)
):
    return notification_to_dict(system.dispatcher.get_notification(notification_id))


@router.put("/{notification_id}/status")
async def update_notification_status(
    notification_id: str,
    request: NotificationStatusRequest,
    system: AccountTrackSystem = Depends(get_system)
):
    """Mark a notification Read or Unread"""
    notification = system.dispatcher.mark_read(notification_id, request.status)
    return notification_to_dict(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    system: AccountTrackSystem = Depends(get_system)
):
    system.dispatcher.delete_notification(notification_id)


@router.delete("")
async def clear_notifications(system: AccountTrackSystem = Depends(get_system)):
    """Delete every notification"""
    removed = system.dispatcher.clear_all()
    return {"removed": removed, "message": "All notifications cleared"}


@router.post("/retirements/retry")
async def retry_deferred_retirements(system: AccountTrackSystem = Depends(get_system)):
    """Replay notification retirements that failed after a decision"""
    return {"retried": system.dispatcher.retry_deferred_retirements()}
