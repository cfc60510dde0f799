from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Dict

from .. import crud, notifications, schemas
from ..auth import get_current_user
from ..database import get_db

router = APIRouter(prefix="/complaints", tags=["Complaints"])


@router.post("/", response_model=schemas.ComplaintOut, status_code=status.HTTP_201_CREATED)
def create_complaint(
    body: schemas.ComplaintCreate,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = crud.get_order(db, body.order_id)
    if order is None or order.user_id != current_user["id"]:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {body.order_id} not found"
        )

    complaint = crud.create_complaint(db, order.id, current_user["id"], body.complaint_text)
    rows = notifications.record(
        db,
        notifications.admin_ids(db),
        title="New complaint",
        message=f"Complaint on order #{order.id}: {complaint.complaint_text}",
        type=notifications.NEW_COMPLAINT,
        payload={"complaint_id": complaint.id, "order_id": order.id},
    )
    db.commit()
    db.refresh(complaint)
    notifications.deliver_external(db, rows)
    return complaint


@router.get("/", response_model=list[schemas.ComplaintOut])
def list_complaints(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Admins see every complaint, everyone else only their own."""
    if current_user.get("is_admin"):
        return crud.get_complaints(db)
    return crud.get_complaints(db, user_id=current_user["id"])
