from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Dict, Optional

from .. import crud, order_state, schemas
from ..auth import get_current_admin, get_current_seller, get_current_user
from ..database import get_db

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)


@router.post("/", response_model=schemas.OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    body: schemas.OrderCreate,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Place an order for a single product.

    Stock is reserved immediately and total_amount is fixed at the current price.
    """
    return order_state.create_order(
        db,
        current_user,
        product_id=body.product_id,
        full_name=body.full_name,
        phone=body.phone,
        address=body.address,
        quantity=body.quantity,
    )


@router.get("/", response_model=schemas.OrderListResponse)
def get_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    status_filter: Optional[schemas.OrderStatus] = Query(None, alias="status"),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    status_value = status_filter.value if status_filter else None
    return {
        "orders": crud.get_orders(db, skip=skip, limit=limit, status=status_value),
        "total": crud.get_order_count(db, status=status_value),
        "skip": skip,
        "limit": limit
    }


@router.get("/me", response_model=schemas.OrderListResponse)
def get_my_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    status_filter: Optional[schemas.OrderStatus] = Query(None, alias="status"),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user_id = current_user["id"]
    status_value = status_filter.value if status_filter else None
    return {
        "orders": crud.get_orders_by_user(db, user_id, skip=skip, limit=limit, status=status_value),
        "total": crud.get_user_order_count(db, user_id, status=status_value),
        "skip": skip,
        "limit": limit
    }


@router.get("/seller", response_model=schemas.OrderListResponse)
def get_seller_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    status_filter: Optional[schemas.OrderStatus] = Query(None, alias="status"),
    current_seller: Dict = Depends(get_current_seller),
    db: Session = Depends(get_db)
):
    """Orders placed for the caller's products."""
    seller_id = current_seller["id"]
    status_value = status_filter.value if status_filter else None
    return {
        "orders": crud.get_orders_for_seller(db, seller_id, skip=skip, limit=limit, status=status_value),
        "total": crud.get_seller_order_count(db, seller_id, status=status_value),
        "skip": skip,
        "limit": limit
    }


@router.get("/{order_id:int}", response_model=schemas.OrderOut)
def get_order(
    order_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db_order = crud.get_order(db, order_id)
    if not db_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order with id {order_id} not found"
        )

    is_buyer = db_order.user_id == current_user["id"]
    is_seller = db_order.product is not None and db_order.product.seller_id == current_user["id"]
    if not (is_buyer or is_seller or current_user.get("is_admin")):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to view this order"
        )
    return db_order


@router.put("/{order_id:int}/action", response_model=schemas.OrderActionResponse)
def apply_order_action(
    order_id: int,
    body: schemas.OrderActionRequest,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Seller/admin checkpoint update (agree, reject, client_went, ...)."""
    db_order = order_state.apply_action(
        db,
        current_user,
        order_id,
        body.action,
        notes=body.notes,
        pickup_address=body.pickup_address,
    )
    return {
        "success": True,
        "order": db_order,
        "message": "Order updated",
    }


@router.patch("/{order_id:int}/status", response_model=schemas.OrderOut)
def update_order_status(
    order_id: int,
    status_update: schemas.OrderUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    orders = order_state.admin_set_status(db, current_admin, [order_id], status_update.status)
    return orders[0]


@router.patch("/status", response_model=schemas.BulkStatusResponse)
def bulk_update_order_status(
    body: schemas.OrderBulkStatusUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db)
):
    orders = order_state.admin_set_status(db, current_admin, body.order_ids, body.status)
    return {
        "success": True,
        "updated": len(orders),
        "orders": orders,
    }
