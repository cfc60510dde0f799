"""Tests for the order state machine."""

import pytest

from marketplace import config, order_state
from marketplace.errors import (
    AuthorizationDenied,
    InsufficientStock,
    InvalidAction,
    InvalidTransition,
    OrderNotFound,
)
from marketplace.models import Notification, Order
from marketplace.order_state import TRANSITIONS, OrderAction
from marketplace.schemas import OrderStatus


def _place(db, actors, product, quantity=1, buyer="buyer"):
    return order_state.create_order(
        db,
        actors[buyer],
        product_id=product.id,
        full_name="Ali Valiyev",
        phone="+998901234567",
        address="Tashkent, Chilonzor 5",
        quantity=quantity,
    )


class TestCreateOrder:
    def test_creates_pending_order_with_price_snapshot(self, db, actors, make_product):
        product = make_product(stock=5, price=25000)

        order = _place(db, actors, product, quantity=2)

        assert order.status == "pending"
        assert order.total_amount == 50000
        assert order.user_id == 20
        assert order.is_agree is None
        assert order.is_client_went is None
        assert order.is_client_claimed is None
        db.refresh(product)
        assert product.stock_quantity == 3
        assert product.order_count == 1

    def test_total_amount_survives_price_change(self, db, actors, make_product):
        product = make_product(stock=5, price=1000)
        order = _place(db, actors, product, quantity=3)

        product.price = 9999
        db.commit()
        db.refresh(order)

        assert order.total_amount == 3000

    def test_notifies_seller_and_admins(self, db, actors, make_product):
        product = make_product(stock=5)
        order = _place(db, actors, product)

        recipients = {
            n.user_id
            for n in db.query(Notification).filter(Notification.type == "new_order").all()
        }
        assert recipients == {10, 1, 2}
        note = db.query(Notification).filter(Notification.user_id == 10).first()
        assert note.data["order_id"] == order.id

    def test_insufficient_stock_writes_nothing(self, db, actors, make_product):
        product = make_product(stock=1)

        with pytest.raises(InsufficientStock):
            _place(db, actors, product, quantity=2)

        assert db.query(Order).count() == 0
        assert db.query(Notification).count() == 0
        db.refresh(product)
        assert product.stock_quantity == 1


class TestActions:
    def test_every_action_has_a_transition(self):
        assert set(TRANSITIONS) == set(OrderAction)

    def test_agree_keeps_pending_and_records_pickup(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        updated = order_state.apply_action(
            db, actors["seller"], order.id, "agree", notes="Come after 5pm", pickup_address="Shop 12"
        )

        assert updated.status == "pending"
        assert updated.is_agree is True
        assert updated.pickup_address == "Shop 12"
        assert updated.seller_notes == "Come after 5pm"

    def test_agree_defaults_pickup_to_order_address(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        updated = order_state.apply_action(db, actors["seller"], order.id, "agree")

        assert updated.pickup_address == "Tashkent, Chilonzor 5"

    def test_reject_then_product_given_is_refused(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        rejected = order_state.apply_action(db, actors["seller"], order.id, "reject", notes="Out of print")
        assert rejected.status == "cancelled"
        assert rejected.is_agree is False

        with pytest.raises(InvalidTransition):
            order_state.apply_action(db, actors["seller"], order.id, "product_given")

        db.refresh(order)
        assert order.status == "cancelled"
        assert order.is_client_claimed is None

    def test_client_checkpoints_are_non_terminal(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        order_state.apply_action(db, actors["seller"], order.id, "client_not_went", notes="No show")
        updated = order_state.apply_action(db, actors["seller"], order.id, "product_not_given")

        assert updated.status == "pending"
        assert updated.is_client_went is False
        assert updated.client_notes == "No show"
        assert updated.is_client_claimed is False

    def test_product_given_completes_order(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        order_state.apply_action(db, actors["seller"], order.id, "agree")
        order_state.apply_action(db, actors["seller"], order.id, "client_went")
        updated = order_state.apply_action(db, actors["admin"], order.id, "product_given")

        assert updated.status == "completed"
        assert updated.is_agree is True
        assert updated.is_client_went is True
        assert updated.is_client_claimed is True

    def test_agree_requires_pending(self, db, actors, make_product, make_order):
        order = make_order(make_product(), status="processing")

        with pytest.raises(InvalidTransition):
            order_state.apply_action(db, actors["seller"], order.id, "agree")

    def test_product_given_allowed_while_processing(self, db, actors, make_product, make_order):
        order = make_order(make_product(), status="processing")

        updated = order_state.apply_action(db, actors["seller"], order.id, "product_given")

        assert updated.status == "completed"

    @pytest.mark.parametrize("terminal", ["completed", "cancelled"])
    @pytest.mark.parametrize("action", [a.value for a in OrderAction])
    def test_terminal_orders_reject_every_action(self, db, actors, make_product, make_order, terminal, action):
        order = make_order(make_product(), status=terminal)

        with pytest.raises(InvalidTransition):
            order_state.apply_action(db, actors["admin"], order.id, action)

        db.refresh(order)
        assert order.status == terminal
        assert order.is_agree is None
        assert order.is_client_went is None
        assert order.is_client_claimed is None

    def test_unknown_action(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        with pytest.raises(InvalidAction) as exc_info:
            order_state.apply_action(db, actors["seller"], order.id, "ship_it")

        assert "agree" in exc_info.value.context["allowed"]
        db.refresh(order)
        assert order.status == "pending"
        assert order.seller_notes is None

    def test_missing_order(self, db, actors, users):
        with pytest.raises(OrderNotFound):
            order_state.apply_action(db, actors["seller"], 404, "agree")

    @pytest.mark.parametrize("actor", ["buyer", "other-seller"])
    def test_only_owning_seller_or_admin(self, db, actors, make_product, make_order, actor):
        order = make_order(make_product(seller_id=10))

        with pytest.raises(AuthorizationDenied):
            order_state.apply_action(db, actors[actor], order.id, "reject")

        db.refresh(order)
        assert order.status == "pending"

    def test_material_changes_notify_buyer(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        order_state.apply_action(db, actors["seller"], order.id, "client_went")
        assert db.query(Notification).filter(Notification.user_id == 20).count() == 0

        order_state.apply_action(db, actors["seller"], order.id, "reject")
        notes = db.query(Notification).filter(Notification.user_id == 20).all()
        assert len(notes) == 1
        assert notes[0].type == "order_status"
        assert notes[0].data["status"] == "cancelled"


class TestStockOnCancel:
    def test_reject_keeps_stock_by_default(self, db, actors, make_product):
        product = make_product(stock=3)
        order = _place(db, actors, product, quantity=2)

        order_state.apply_action(db, actors["seller"], order.id, "reject")

        db.refresh(product)
        assert product.stock_quantity == 1

    def test_reject_releases_stock_when_enabled(self, db, actors, make_product, monkeypatch):
        monkeypatch.setattr(config, "RESTORE_STOCK_ON_CANCEL", True)
        product = make_product(stock=3)
        order = _place(db, actors, product, quantity=2)

        order_state.apply_action(db, actors["seller"], order.id, "reject")

        db.refresh(product)
        assert product.stock_quantity == 3
        assert product.order_count == 1

    def test_admin_cancel_releases_once(self, db, actors, make_product, monkeypatch):
        monkeypatch.setattr(config, "RESTORE_STOCK_ON_CANCEL", True)
        product = make_product(stock=3)
        order = _place(db, actors, product, quantity=2)

        order_state.admin_set_status(db, actors["admin"], [order.id], OrderStatus.CANCELLED)
        order_state.admin_set_status(db, actors["admin"], [order.id], OrderStatus.CANCELLED)

        db.refresh(product)
        assert product.stock_quantity == 3

    def test_cancel_reopen_cancel_releases_once(self, db, actors, make_product, monkeypatch):
        monkeypatch.setattr(config, "RESTORE_STOCK_ON_CANCEL", True)
        product = make_product(stock=3)
        order = _place(db, actors, product, quantity=2)

        for status in (OrderStatus.CANCELLED, OrderStatus.PENDING, OrderStatus.CANCELLED):
            order_state.admin_set_status(db, actors["admin"], [order.id], status)

        db.refresh(product)
        db.refresh(order)
        assert product.stock_quantity == 3
        assert order.stock_released is True

    def test_reject_then_admin_cancel_releases_once(self, db, actors, make_product, monkeypatch):
        monkeypatch.setattr(config, "RESTORE_STOCK_ON_CANCEL", True)
        product = make_product(stock=3)
        order = _place(db, actors, product, quantity=2)

        order_state.apply_action(db, actors["seller"], order.id, "reject")
        order_state.admin_set_status(db, actors["admin"], [order.id], OrderStatus.PENDING)
        order_state.admin_set_status(db, actors["admin"], [order.id], OrderStatus.CANCELLED)

        db.refresh(product)
        assert product.stock_quantity == 3

    def test_handed_over_order_keeps_stock_when_cancelled(self, db, actors, make_product, monkeypatch):
        monkeypatch.setattr(config, "RESTORE_STOCK_ON_CANCEL", True)
        product = make_product(stock=3)
        order = _place(db, actors, product, quantity=2)
        order_state.apply_action(db, actors["seller"], order.id, "product_given")

        order_state.admin_set_status(db, actors["admin"], [order.id], OrderStatus.CANCELLED)

        db.refresh(product)
        db.refresh(order)
        assert order.status == "cancelled"
        assert product.stock_quantity == 1
        assert order.stock_released is False


class TestAdminOverride:
    def test_override_can_reopen_terminal_order(self, db, actors, make_product, make_order):
        order = make_order(make_product(), status="cancelled")

        [updated] = order_state.admin_set_status(db, actors["admin"], [order.id], OrderStatus.PENDING)

        assert updated.status == "pending"

    def test_bulk_override(self, db, actors, make_product, make_order):
        product = make_product()
        first = make_order(product)
        second = make_order(product, status="completed")

        updated = order_state.admin_set_status(
            db, actors["admin"], [first.id, second.id], OrderStatus.PROCESSING
        )

        assert {o.status for o in updated} == {"processing"}
        assert db.query(Notification).filter(Notification.type == "order_status").count() == 2

    def test_unknown_id_writes_nothing(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        with pytest.raises(OrderNotFound):
            order_state.admin_set_status(db, actors["admin"], [order.id, 999], OrderStatus.COMPLETED)

        db.refresh(order)
        assert order.status == "pending"

    def test_requires_admin(self, db, actors, make_product, make_order):
        order = make_order(make_product())

        with pytest.raises(AuthorizationDenied):
            order_state.admin_set_status(db, actors["seller"], [order.id], OrderStatus.COMPLETED)
