from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Dict, List, Optional

from .models import Complaint, Order, Product, User
from .schemas import OrderStatus


def get_order(db: Session, order_id: int) -> Optional[Order]:
    return db.query(Order).filter(Order.id == order_id).first()


def get_orders(db: Session, skip: int = 0, limit: int = 100, status: Optional[str] = None) -> List[Order]:
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit).all()


def get_order_count(db: Session, status: Optional[str] = None) -> int:
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return query.count()


def get_orders_by_user(
    db: Session, user_id: int, skip: int = 0, limit: int = 100, status: Optional[str] = None
) -> List[Order]:
    query = db.query(Order).filter(Order.user_id == user_id)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit).all()


def get_user_order_count(db: Session, user_id: int, status: Optional[str] = None) -> int:
    query = db.query(Order).filter(Order.user_id == user_id)
    if status:
        query = query.filter(Order.status == status)
    return query.count()


def _seller_orders_query(db: Session, seller_id: int, status: Optional[str] = None):
    query = db.query(Order).join(Product, Product.id == Order.product_id).filter(Product.seller_id == seller_id)
    if status:
        query = query.filter(Order.status == status)
    return query


def get_orders_for_seller(
    db: Session, seller_id: int, skip: int = 0, limit: int = 100, status: Optional[str] = None
) -> List[Order]:
    return (
        _seller_orders_query(db, seller_id, status)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_seller_order_count(db: Session, seller_id: int, status: Optional[str] = None) -> int:
    return _seller_orders_query(db, seller_id, status).count()


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.query(Product).filter(Product.id == product_id).first()


def create_product(db: Session, seller_id: int, product_data: dict) -> Product:
    db_product = Product(
        **{**product_data, "name": product_data["name"].strip()},
        seller_id=seller_id,
        order_count=0,
        is_active=True,
    )
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return db_product


def update_product(db: Session, db_product: Product, update_data: dict) -> Product:
    # price changes never touch existing orders; their total_amount is a snapshot
    for key, value in update_data.items():
        if value is not None:
            setattr(db_product, key, value)
    db.commit()
    db.refresh(db_product)
    return db_product


def create_complaint(db: Session, order_id: int, user_id: int, complaint_text: str) -> Complaint:
    complaint = Complaint(
        order_id=order_id,
        user_id=user_id,
        complaint_text=complaint_text.strip(),
        status="pending",
    )
    db.add(complaint)
    db.flush()
    return complaint


def get_complaints(db: Session, user_id: Optional[int] = None) -> List[Complaint]:
    query = db.query(Complaint)
    if user_id is not None:
        query = query.filter(Complaint.user_id == user_id)
    return query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()


def link_telegram(db: Session, user_id: int, telegram_id: str) -> Optional[User]:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return None
    user.telegram_id = telegram_id.strip()
    db.commit()
    db.refresh(user)
    return user


def get_admin_stats(db: Session, recent_limit: int = 10) -> Dict:
    by_status = {s.value: 0 for s in OrderStatus}
    for status, count in db.query(Order.status, func.count(Order.id)).group_by(Order.status).all():
        by_status[status] = int(count)

    revenue = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status == OrderStatus.COMPLETED.value)
        .scalar()
    )

    recent_orders = (
        db.query(Order)
        .filter(Order.status.in_([OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value]))
        .order_by(Order.updated_at.desc(), Order.id.desc())
        .limit(recent_limit)
        .all()
    )

    return {
        "total_users": db.query(User).count(),
        "total_sellers": db.query(User).filter(User.is_verified_seller.is_(True)).count(),
        "total_products": db.query(Product).count(),
        "total_orders": sum(by_status.values()),
        "orders_by_status": by_status,
        "revenue_completed": int(revenue or 0),
        "recent_orders": recent_orders,
    }
