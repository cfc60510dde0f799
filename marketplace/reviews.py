"""Review gate: one review per completed order, written by its buyer."""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import DependencyUnavailable, DuplicateReview, InvalidRating, OrderNotEligible
from .models import Order, Review
from .schemas import OrderStatus

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def submit_review(
    db: Session,
    *,
    product_id: int,
    order_id: int,
    buyer_id: int,
    rating: int,
    comment: Optional[str] = None,
) -> Review:
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRating(rating)

    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None or order.user_id != buyer_id:
        raise OrderNotEligible(order_id, "order not found for this buyer")
    if order.product_id != product_id:
        raise OrderNotEligible(order_id, "order is for a different product")
    if order.status != OrderStatus.COMPLETED.value:
        raise OrderNotEligible(order_id, f"order status is '{order.status}', expected 'completed'")

    existing = (
        db.query(Review.id)
        .filter(Review.order_id == order_id, Review.user_id == buyer_id)
        .first()
    )
    if existing is not None:
        raise DuplicateReview(order_id)

    review = Review(
        product_id=product_id,
        order_id=order_id,
        user_id=buyer_id,
        rating=rating,
        comment=comment.strip() if comment else None,
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent submission won the unique constraint
        db.rollback()
        raise DuplicateReview(order_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("review insert failed for order %s", order_id)
        raise DependencyUnavailable("database", str(e.__class__.__name__)) from e

    db.refresh(review)
    return review


def list_reviews(db: Session, product_id: int, skip: int = 0, limit: int = 50) -> List[Review]:
    return (
        db.query(Review)
        .filter(Review.product_id == product_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
