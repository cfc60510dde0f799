"""Stock ledger: reservation at order time and the remaining-stock view.

``stock_quantity`` is the live on-hand count and is decremented when an order
is placed. ``remaining stock`` is a reporting figure that additionally nets
out units of completed orders; it is used for storefront filtering only and
never gates a reservation.
"""
from __future__ import annotations

import datetime as dt
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .errors import InsufficientStock, ProductNotFound, ProductUnavailable
from .models import Order, Product
from .schemas import OrderStatus


def reserve(db: Session, product_id: int, quantity: int) -> Product:
    """Take ``quantity`` units of a product for a new order.

    Runs a single conditional UPDATE so concurrent reservations can never push
    stock below zero. Does not commit.
    """
    if quantity < 1:
        raise ValueError("quantity must be >= 1")

    updated = (
        db.query(Product)
        .filter(
            Product.id == product_id,
            Product.is_active.is_(True),
            Product.stock_quantity >= quantity,
        )
        .update(
            {
                Product.stock_quantity: Product.stock_quantity - quantity,
                Product.order_count: Product.order_count + 1,
                Product.updated_at: dt.datetime.now(dt.timezone.utc),
            },
            synchronize_session=False,
        )
    )

    product = db.query(Product).populate_existing().filter(Product.id == product_id).first()
    if updated:
        return product

    if product is None:
        raise ProductNotFound(product_id)
    if not product.is_active:
        raise ProductUnavailable(product_id)
    raise InsufficientStock(product_id, available=product.stock_quantity, requested=quantity)


def release(db: Session, product_id: int, quantity: int) -> None:
    """Give units back to a product. ``order_count`` is left untouched."""
    if quantity < 1:
        raise ValueError("quantity must be >= 1")

    updated = (
        db.query(Product)
        .filter(Product.id == product_id)
        .update(
            {
                Product.stock_quantity: Product.stock_quantity + quantity,
                Product.updated_at: dt.datetime.now(dt.timezone.utc),
            },
            synchronize_session=False,
        )
    )
    if not updated:
        raise ProductNotFound(product_id)


def _completed_quantity_query(db: Session):
    return (
        db.query(
            Order.product_id,
            func.coalesce(func.sum(Order.quantity), 0).label("completed_qty"),
        )
        .filter(Order.status == OrderStatus.COMPLETED.value)
        .group_by(Order.product_id)
    )


def compute_remaining_stock(db: Session, product_id: int) -> int:
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        raise ProductNotFound(product_id)

    completed = (
        db.query(func.coalesce(func.sum(Order.quantity), 0))
        .filter(
            Order.product_id == product_id,
            Order.status == OrderStatus.COMPLETED.value,
        )
        .scalar()
    )
    return int(product.stock_quantity) - int(completed or 0)


def list_available_products(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    seller_id: Optional[int] = None,
    include_sold_out: bool = False,
) -> List[dict]:
    """Active products with their remaining stock.

    Sold-out products (remaining stock <= 0) are hidden unless asked for.
    """
    completed = _completed_quantity_query(db).subquery()
    remaining = Product.stock_quantity - func.coalesce(completed.c.completed_qty, 0)

    query = (
        db.query(Product, remaining.label("remaining_stock"))
        .outerjoin(completed, completed.c.product_id == Product.id)
        .filter(Product.is_active.is_(True))
    )
    if seller_id is not None:
        query = query.filter(Product.seller_id == seller_id)
    if not include_sold_out:
        query = query.filter(remaining > 0)

    rows = query.order_by(Product.order_count.desc(), Product.id).offset(skip).limit(limit).all()
    return [_with_remaining(product, int(rem)) for product, rem in rows]


def _with_remaining(product: Product, remaining_stock: int) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "stock_quantity": product.stock_quantity,
        "order_count": product.order_count,
        "seller_id": product.seller_id,
        "is_active": product.is_active,
        "remaining_stock": remaining_stock,
    }
