"""Order lifecycle.

Orders start ``pending`` and end ``completed`` or ``cancelled``. Sellers move
them forward through per-flag actions (``OrderAction``), each of which sets
one checkpoint flag and may change the status. Terminal orders accept no
per-flag action; only the administrative status override can move them.

Each operation is one transaction. The order row is locked for the duration
of a transition and stock is reserved with a conditional update.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import config, messaging, notifications, stock_ledger
from .errors import (
    AuthorizationDenied,
    DependencyUnavailable,
    InvalidAction,
    InvalidTransition,
    MarketplaceError,
    OrderNotFound,
)
from .models import Order, Product
from .schemas import OrderStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)


class OrderAction(str, Enum):
    AGREE = "agree"
    REJECT = "reject"
    CLIENT_WENT = "client_went"
    CLIENT_NOT_WENT = "client_not_went"
    PRODUCT_GIVEN = "product_given"
    PRODUCT_NOT_GIVEN = "product_not_given"

    @classmethod
    def parse(cls, value: str) -> "OrderAction":
        try:
            return cls(value)
        except ValueError:
            raise InvalidAction(value, allowed=[a.value for a in cls]) from None


@dataclass(frozen=True)
class Transition:
    flag: str
    flag_value: bool
    notes_field: str
    requires_status: Optional[str] = None
    new_status: Optional[str] = None
    # buyer gets a notification
    material: bool = False


TRANSITIONS: Dict[OrderAction, Transition] = {
    OrderAction.AGREE: Transition(
        flag="is_agree", flag_value=True, notes_field="seller_notes",
        requires_status=OrderStatus.PENDING.value, material=True,
    ),
    OrderAction.REJECT: Transition(
        flag="is_agree", flag_value=False, notes_field="seller_notes",
        requires_status=OrderStatus.PENDING.value, new_status=OrderStatus.CANCELLED.value, material=True,
    ),
    OrderAction.CLIENT_WENT: Transition(flag="is_client_went", flag_value=True, notes_field="client_notes"),
    OrderAction.CLIENT_NOT_WENT: Transition(flag="is_client_went", flag_value=False, notes_field="client_notes"),
    OrderAction.PRODUCT_GIVEN: Transition(
        flag="is_client_claimed", flag_value=True, notes_field="seller_notes",
        new_status=OrderStatus.COMPLETED.value, material=True,
    ),
    OrderAction.PRODUCT_NOT_GIVEN: Transition(flag="is_client_claimed", flag_value=False, notes_field="seller_notes"),
}

STATUS_MESSAGES = {
    OrderStatus.PENDING.value: "Your order #{id} is pending.",
    OrderStatus.PROCESSING.value: "Your order #{id} is being processed.",
    OrderStatus.COMPLETED.value: "Your order #{id} has been completed.",
    OrderStatus.CANCELLED.value: "Your order #{id} has been cancelled.",
}


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _lock_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if order is None:
        raise OrderNotFound(order_id)
    return order


def _ensure_can_manage(db: Session, actor: Dict, order: Order) -> None:
    if actor.get("is_admin"):
        return
    seller_id = db.query(Product.seller_id).filter(Product.id == order.product_id).scalar()
    if seller_id is None or seller_id != actor.get("id"):
        raise AuthorizationDenied(
            "Only the product's seller or an admin can update this order",
            order_id=order.id,
        )


def _release_on_cancel(db: Session, order: Order) -> None:
    """Give the order's units back at most once, and never after hand-over."""
    if not config.RESTORE_STOCK_ON_CANCEL:
        return
    if order.stock_released or order.is_client_claimed:
        return
    stock_ledger.release(db, order.product_id, order.quantity)
    order.stock_released = True


def _order_event(order: Order) -> dict:
    return {
        "order_id": order.id,
        "user_id": order.user_id,
        "product_id": order.product_id,
        "quantity": order.quantity,
        "total_amount": order.total_amount,
        "status": order.status,
    }


def create_order(
    db: Session,
    buyer: Dict,
    *,
    product_id: int,
    full_name: str,
    phone: str,
    address: str,
    quantity: int,
) -> Order:
    try:
        product = stock_ledger.reserve(db, product_id, quantity)

        now = _now()
        order = Order(
            user_id=buyer["id"],
            product_id=product.id,
            full_name=full_name.strip(),
            phone=phone.strip(),
            address=address.strip(),
            quantity=quantity,
            # price snapshot; never recomputed
            total_amount=int(product.price) * quantity,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        db.add(order)
        db.flush()

        rows = notifications.record(
            db,
            [product.seller_id, *notifications.admin_ids(db)],
            title="New order",
            message=f"Order #{order.id}: {quantity} x {product.name} for {order.total_amount}. Buyer: {order.full_name}, {order.phone}.",
            type=notifications.NEW_ORDER,
            payload={"order_id": order.id, "product_id": product.id, "quantity": quantity},
        )
        db.commit()
    except MarketplaceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("order creation failed for product %s", product_id)
        raise DependencyUnavailable("database", str(e.__class__.__name__)) from e

    db.refresh(order)
    notifications.deliver_external(db, rows)
    messaging.emit("order.created", _order_event(order))
    logger.info("order %s created for product %s (qty %s)", order.id, product_id, quantity)
    return order


def apply_action(
    db: Session,
    actor: Dict,
    order_id: int,
    action: str,
    notes: Optional[str] = None,
    pickup_address: Optional[str] = None,
) -> Order:
    parsed = OrderAction.parse(action)
    transition = TRANSITIONS[parsed]

    try:
        order = _lock_order(db, order_id)
        _ensure_can_manage(db, actor, order)

        previous_status = order.status
        if previous_status in TERMINAL_STATUSES:
            raise InvalidTransition(order.id, parsed.value, previous_status)
        if transition.requires_status and previous_status != transition.requires_status:
            raise InvalidTransition(order.id, parsed.value, previous_status)

        setattr(order, transition.flag, transition.flag_value)
        setattr(order, transition.notes_field, notes)
        if parsed is OrderAction.AGREE:
            order.pickup_address = pickup_address or order.address
        if transition.new_status:
            order.status = transition.new_status
        order.updated_at = _now()

        if order.status == OrderStatus.CANCELLED.value:
            _release_on_cancel(db, order)

        rows = []
        if transition.material:
            rows = notifications.record(
                db,
                [order.user_id],
                title="Order update",
                message=_action_message(parsed, order),
                type=notifications.ORDER_STATUS,
                payload={"order_id": order.id, "action": parsed.value, "status": order.status},
            )
        db.commit()
    except MarketplaceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("order %s action %s failed", order_id, parsed.value)
        raise DependencyUnavailable("database", str(e.__class__.__name__)) from e

    db.refresh(order)
    notifications.deliver_external(db, rows)
    if order.status != previous_status:
        messaging.emit("order.status_changed", {**_order_event(order), "previous_status": previous_status})
    return order


def _action_message(action: OrderAction, order: Order) -> str:
    if action is OrderAction.AGREE:
        where = f" Pickup address: {order.pickup_address}." if order.pickup_address else ""
        return f"The seller accepted your order #{order.id}.{where}"
    if action is OrderAction.REJECT:
        return f"The seller rejected your order #{order.id}."
    return STATUS_MESSAGES[order.status].format(id=order.id)


def admin_set_status(db: Session, actor: Dict, order_ids: List[int], status: OrderStatus) -> List[Order]:
    """Administrative override: overwrite the status of every listed order.

    All ids must exist; otherwise nothing is written.
    """
    if not actor.get("is_admin"):
        raise AuthorizationDenied("Admin access required to override order status")

    new_status = OrderStatus(status).value
    ids = list(dict.fromkeys(order_ids))
    changed = []

    try:
        orders = (
            db.query(Order)
            .filter(Order.id.in_(ids))
            .order_by(Order.id)
            .with_for_update()
            .all()
        )
        found = {o.id for o in orders}
        missing = [oid for oid in ids if oid not in found]
        if missing:
            raise OrderNotFound(missing[0])

        rows = []
        now = _now()
        for order in orders:
            previous_status = order.status
            order.status = new_status
            order.updated_at = now
            if previous_status == new_status:
                continue
            changed.append((order, previous_status))
            if new_status == OrderStatus.CANCELLED.value:
                _release_on_cancel(db, order)
            rows.extend(
                notifications.record(
                    db,
                    [order.user_id],
                    title="Order update",
                    message=STATUS_MESSAGES[new_status].format(id=order.id),
                    type=notifications.ORDER_STATUS,
                    payload={"order_id": order.id, "status": new_status, "previous_status": previous_status},
                )
            )
        db.commit()
    except MarketplaceError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("admin status override failed for orders %s", ids)
        raise DependencyUnavailable("database", str(e.__class__.__name__)) from e

    notifications.deliver_external(db, rows)
    for order, previous_status in changed:
        messaging.emit("order.status_changed", {**_order_event(order), "previous_status": previous_status})
    logger.info("admin %s set status %s on orders %s", actor.get("id"), new_status, ids)
    return orders
