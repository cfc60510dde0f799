from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Dict

from .. import notifications, schemas
from ..auth import get_current_user
from ..database import get_db

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=list[schemas.NotificationOut])
def list_my_notifications(
    limit: int = Query(10, ge=1, le=100),
    unread_only: bool = False,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return notifications.list_for_user(db, current_user["id"], limit=limit, unread_only=unread_only)


@router.patch("/{notification_id}/read", response_model=schemas.NotificationOut)
def mark_notification_read(
    notification_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = notifications.mark_read(db, current_user["id"], notification_id)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification with id {notification_id} not found",
        )
    return row


@router.post("/admins", response_model=schemas.AdminNotifyResponse)
def notify_admins(
    body: schemas.AdminNotifyRequest,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Fan out an event raised elsewhere (e.g. a seller application) to every admin."""
    payload = {**(body.data or {}), "submitted_by": current_user["id"]}
    recipients = notifications.admin_ids(db)
    results = notifications.notify(db, recipients, body.title, body.message, body.type, payload)
    return {
        "success": True,
        "notified": len(recipients),
        "results": results,
    }
