from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Dict

from .. import reviews, schemas
from ..auth import get_current_user
from ..database import get_db

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.post("/", response_model=schemas.ReviewOut, status_code=status.HTTP_201_CREATED)
def submit_review(
    body: schemas.ReviewCreate,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Review a product bought through a completed order. One review per order."""
    return reviews.submit_review(
        db,
        product_id=body.product_id,
        order_id=body.order_id,
        buyer_id=current_user["id"],
        rating=body.rating,
        comment=body.comment,
    )


@router.get("/", response_model=list[schemas.ReviewOut])
def list_reviews(
    product_id: int = Query(..., gt=0),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return reviews.list_reviews(db, product_id, skip=skip, limit=limit)
