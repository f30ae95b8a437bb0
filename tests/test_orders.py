from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from giftshop.data.models.order import OrderModel
from giftshop.domain.errors import (
    AccessDeniedError,
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from giftshop.services.order_service import OrderService


def _checkout(orders, carts, user_id, *lines):
    """lines: (variant_id, quantity)"""
    for variant_id, quantity in lines:
        carts.add_item(user_id, variant_id, quantity)
    return orders.create_order(user_id, "momo")


def _counts(inventory, variant_id):
    return inventory.status(variant_id)["counts"]


# ---------- checkout ----------

def test_checkout_and_payment_round_trip(orders, carts, inventory, notifications, variant_id, stock):
    stock(variant_id, 5)

    created = _checkout(orders, carts, 1, (variant_id, 2))

    assert created["status"] == "PENDING"
    assert created["payment_url"] == "https://pay.example/checkout/1"
    assert created["total_amount"] == Decimal("19.00")
    assert carts.get_cart(1).is_empty
    counts = _counts(inventory, variant_id)
    assert counts["PENDING_PAYMENT"] == 2
    assert counts["UNUSED"] == 3

    # kody ukryte do momentu platnosci
    pending = orders.get_order(created["order_id"], 1)
    assert pending["items"][0]["codes"] == []
    assert pending["transaction"]["status"] == "IN_PROCESS"

    orders.on_payment_result(created["order_id"], success=True, payment_code="TX-1")

    counts = _counts(inventory, variant_id)
    assert counts["USED"] == 2
    assert counts["UNUSED"] == 3
    assert counts["PENDING_PAYMENT"] == 0

    order = orders.get_order(created["order_id"], 1)
    assert order["status"] == "COMPLETED"
    assert len(order["items"][0]["codes"]) == 2
    assert all(c["status"] == "USED" for c in order["items"][0]["codes"])
    assert order["transaction"]["status"] == "SUCCESS"
    assert order["transaction"]["payment_code"] == "TX-1"
    assert order["transaction"]["paid_at"] is not None
    notifications.send_order_completed.assert_called_once_with(1, created["order_id"], [])


def test_checkout_insufficient_stock_keeps_cart_and_codes(db, orders, carts, inventory, variant_id, stock):
    stock(variant_id, 2)
    carts.add_item(1, variant_id, 3)

    with pytest.raises(InsufficientStockError):
        orders.create_order(1, "MOMO")

    assert carts.get_cart(1).total_items == 3
    assert _counts(inventory, variant_id)["UNUSED"] == 2
    assert db.query(OrderModel).count() == 0


def test_checkout_failure_releases_earlier_lines(db, orders, carts, inventory, make_variant, stock):
    plenty = make_variant()
    scarce = make_variant(value="50.00", price="47.00")
    stock(plenty, 5)
    stock(scarce, 1)
    carts.add_item(1, plenty, 2)
    carts.add_item(1, scarce, 2)

    with pytest.raises(InsufficientStockError):
        orders.create_order(1, "MOMO")

    assert _counts(inventory, plenty)["UNUSED"] == 5
    assert _counts(inventory, plenty)["PENDING_PAYMENT"] == 0
    assert _counts(inventory, scarce)["UNUSED"] == 1
    assert len(carts.get_cart(1).items) == 2
    assert db.query(OrderModel).count() == 0


def test_checkout_releases_codes_on_unexpected_allocation_error(db, orders, carts, inventory, make_variant, stock):
    first = make_variant()
    second = make_variant(value="50.00", price="47.00")
    stock(first, 3)
    stock(second, 3)
    carts.add_item(1, first, 2)
    carts.add_item(1, second, 1)
    real_allocate = orders.inventory.allocate

    def allocate(variant_id, quantity):
        if variant_id == second:
            raise RuntimeError("database is locked")
        return real_allocate(variant_id, quantity)

    with patch.object(orders.inventory, "allocate", side_effect=allocate):
        with pytest.raises(RuntimeError):
            orders.create_order(1, "MOMO")

    assert _counts(inventory, first)["PENDING_PAYMENT"] == 0
    assert _counts(inventory, first)["UNUSED"] == 3
    assert carts.get_cart(1).total_items == 3
    assert db.query(OrderModel).count() == 0


def test_checkout_compensation_skips_codes_flagged_meanwhile(db, orders, carts, inventory, make_variant, stock):
    plenty = make_variant()
    scarce = make_variant(value="50.00", price="47.00")
    stock(plenty, 5)
    stock(scarce, 1)
    carts.add_item(1, plenty, 2)
    carts.add_item(1, scarce, 2)
    real_allocate = orders.inventory.allocate

    def allocate_then_flag(variant_id, quantity):
        ids = real_allocate(variant_id, quantity)
        if variant_id == plenty:
            # admin oznacza jeden z zarezerwowanych kodow jako wadliwy
            inventory.mark_error(ids[:1])
        return ids

    with patch.object(orders.inventory, "allocate", side_effect=allocate_then_flag):
        with pytest.raises(InsufficientStockError):
            orders.create_order(1, "MOMO")

    counts = _counts(inventory, plenty)
    assert counts["PENDING_PAYMENT"] == 0
    assert counts["ERROR"] == 1
    assert counts["UNUSED"] == 4
    assert db.query(OrderModel).count() == 0


def test_checkout_validation(orders, carts, variant_id, stock):
    stock(variant_id, 3)

    with pytest.raises(ValidationError):
        orders.create_order(1, "MOMO")  # pusty koszyk

    cart = carts.add_item(1, variant_id, 1)
    with pytest.raises(ValidationError):
        orders.create_order(1, "BITCOIN")

    carts.update_recipient(1, cart.items[0].id, recipient_name="Ala", message="Sto lat")
    with pytest.raises(ValidationError):
        orders.create_order(1, "MOMO")

    carts.update_recipient(1, cart.items[0].id, recipient_email="ala@example.com")
    created = orders.create_order(1, "MOMO")
    item = orders.get_order_detail(created["order_id"])["items"][0]
    assert item["recipient_email"] == "ala@example.com"
    assert item["message"] == "Sto lat"


def test_checkout_rejects_variant_deactivated_after_adding(orders, carts, catalog, inventory, variant_id, stock):
    stock(variant_id, 3)
    carts.add_item(1, variant_id, 1)
    catalog.delete_variant(variant_id)

    with pytest.raises(NotFoundError):
        orders.create_order(1, "MOMO")

    assert _counts(inventory, variant_id)["UNUSED"] == 3
    assert carts.get_cart(1).total_items == 1


def test_payment_gateway_failure_marks_order_failed(db, orders, carts, inventory, payment_client, variant_id, stock):
    stock(variant_id, 3)
    payment_client.initiate_payment.side_effect = PaymentGatewayError("down")

    with pytest.raises(PaymentGatewayError):
        _checkout(orders, carts, 1, (variant_id, 2))

    order = db.query(OrderModel).one()
    assert order.status == "FAILED"
    assert _counts(inventory, variant_id)["UNUSED"] == 3
    assert carts.get_cart(1).total_items == 2


def test_order_prices_are_snapshots(orders, carts, catalog, variant_id, stock):
    stock(variant_id, 2)
    carts.add_item(1, variant_id, 2)
    catalog.update_variant(variant_id, price="20.00")

    # cena z katalogu w chwili checkoutu, nie z koszyka
    created = orders.create_order(1, "MOMO")
    assert created["total_amount"] == Decimal("40.00")

    catalog.update_variant(variant_id, price="99.00")
    order = orders.get_order(created["order_id"], 1)
    assert order["total_amount"] == Decimal("40.00")
    assert order["items"][0]["unit_price"] == Decimal("20.00")
    assert order["items"][0]["value"] == Decimal("10.00")


# ---------- przejscia ----------

def test_customer_cancel_releases_codes(orders, carts, inventory, notifications, variant_id, stock):
    stock(variant_id, 4)
    created = _checkout(orders, carts, 1, (variant_id, 3))

    with pytest.raises(AccessDeniedError):
        orders.cancel(created["order_id"], user_id=2)

    order = orders.cancel(created["order_id"], user_id=1)

    assert order["status"] == "CANCELLED"
    assert order["transaction"]["status"] == "CANCELLED"
    assert [e["to_status"] for e in order["events"]] == ["PENDING", "CANCELLED"]
    assert order["events"][1]["actor"] == "customer"
    assert _counts(inventory, variant_id)["UNUSED"] == 4
    notifications.send_order_closed.assert_called_once_with(1, created["order_id"], "CANCELLED")


@pytest.mark.parametrize("action", ["cancel", "complete", "fail"])
def test_terminal_orders_reject_transitions(orders, carts, variant_id, stock, action):
    stock(variant_id, 2)
    order_id = _checkout(orders, carts, 1, (variant_id, 1))["order_id"]
    orders.cancel(order_id)

    with pytest.raises(InvalidTransitionError):
        if action == "cancel":
            orders.cancel(order_id)
        elif action == "complete":
            orders.mark_completed(order_id)
        else:
            orders.mark_failed(order_id)


def test_refund_keeps_codes_used_by_default(orders, carts, inventory, variant_id, stock):
    stock(variant_id, 3)
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]

    with pytest.raises(InvalidTransitionError):
        orders.refund(order_id)

    orders.mark_completed(order_id)
    order = orders.refund(order_id)

    assert order["status"] == "REFUNDED"
    assert order["refunded_at"] is not None
    counts = _counts(inventory, variant_id)
    assert counts["USED"] == 2
    assert counts["UNUSED"] == 1
    # ujawnione kody zostaja widoczne
    assert len(orders.get_order(order_id, 1)["items"][0]["codes"]) == 2

    with pytest.raises(InvalidTransitionError):
        orders.refund(order_id)


def test_refund_burn_policy_moves_codes_to_error(db, carts, payment_client, notifications, inventory, variant_id, stock):
    stock(variant_id, 3)
    orders = OrderService(
        db=db,
        cart_service=carts,
        payment_client=payment_client,
        notification_service=notifications,
        refund_policy="burn",
    )
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]
    orders.mark_completed(order_id)

    orders.refund(order_id)

    counts = _counts(inventory, variant_id)
    assert counts["ERROR"] == 2
    assert counts["USED"] == 0
    assert counts["UNUSED"] == 1


def test_payment_callback_is_idempotent(orders, carts, inventory, notifications, variant_id, stock):
    stock(variant_id, 2)
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]

    orders.on_payment_result(order_id, success=True, payment_code="TX-9")
    again = orders.on_payment_result(order_id, success=True, payment_code="TX-9")

    assert again["status"] == "COMPLETED"
    assert len(again["events"]) == 2
    assert notifications.send_order_completed.call_count == 1
    assert _counts(inventory, variant_id)["USED"] == 2

    with pytest.raises(InvalidTransitionError):
        orders.on_payment_result(order_id, success=False)


def test_failed_payment_releases_codes(orders, carts, inventory, variant_id, stock):
    stock(variant_id, 2)
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]

    order = orders.on_payment_result(order_id, success=False, payment_code="TX-0")

    assert order["status"] == "FAILED"
    assert order["transaction"]["payment_code"] == "TX-0"
    assert _counts(inventory, variant_id)["UNUSED"] == 2
    # powtorzony negatywny callback
    assert orders.on_payment_result(order_id, success=False)["status"] == "FAILED"


def test_completion_survives_notification_failure(orders, carts, notifications, variant_id, stock):
    stock(variant_id, 1)
    order_id = _checkout(orders, carts, 1, (variant_id, 1))["order_id"]
    notifications.send_order_completed.side_effect = RuntimeError("broker down")

    order = orders.mark_completed(order_id)

    assert order["status"] == "COMPLETED"


def test_completion_skips_codes_flagged_meanwhile(orders, carts, inventory, variant_id, stock):
    stock(variant_id, 2)
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]
    flagged = orders.get_order_detail(order_id)["items"][0]["codes"][0]["id"]
    inventory.mark_error([flagged])

    orders.mark_completed(order_id)

    counts = _counts(inventory, variant_id)
    assert counts["USED"] == 1
    assert counts["ERROR"] == 1


def test_concurrent_transitions_on_one_order_are_serialized(session_factory, orders, carts, inventory, variant_id, stock):
    stock(variant_id, 2)
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]

    session = session_factory()
    try:
        worker = OrderService(session, payment_client=MagicMock(), notification_service=MagicMock())
        real_get = worker.repo.get_order
        interleaved = []

        def get_then_cancel(oid):
            order = real_get(oid)
            if not interleaved:
                # druga operacja konczy sie miedzy odczytem a zapisem
                interleaved.append(orders.cancel(oid))
            return order

        with patch.object(worker.repo, "get_order", side_effect=get_then_cancel):
            with pytest.raises(ConcurrencyConflictError):
                worker.mark_completed(order_id)

        with pytest.raises(InvalidTransitionError):
            worker.mark_completed(order_id)
    finally:
        session.close()

    order = orders.get_order_detail(order_id)
    assert order["status"] == "CANCELLED"
    assert [e["to_status"] for e in order["events"]] == ["PENDING", "CANCELLED"]
    counts = _counts(inventory, variant_id)
    assert counts["UNUSED"] == 2
    assert counts["USED"] == 0


# ---------- admin ----------

def test_change_status_rejects_unknown_and_same_state(orders, carts, variant_id, stock):
    stock(variant_id, 1)
    order_id = _checkout(orders, carts, 1, (variant_id, 1))["order_id"]

    with pytest.raises(ValidationError):
        orders.change_status(order_id, "SHIPPED")
    with pytest.raises(InvalidTransitionError):
        orders.change_status(order_id, "PENDING")

    orders.change_status(order_id, "COMPLETED")
    with pytest.raises(InvalidTransitionError):
        orders.change_status(order_id, "PENDING")
    with pytest.raises(InvalidTransitionError):
        orders.change_status(order_id, "CANCELLED")


def test_admin_completion_applies_natural_side_effects(orders, carts, inventory, variant_id, stock):
    stock(variant_id, 3)
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]

    order = orders.change_status(order_id, "COMPLETED")

    assert order["status"] == "COMPLETED"
    assert order["events"][-1]["actor"] == "admin"
    assert _counts(inventory, variant_id)["USED"] == 2


def test_admin_reopen_reallocates_codes(orders, carts, inventory, variant_id, stock):
    stock(variant_id, 3)
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]
    orders.cancel(order_id)

    order = orders.change_status(order_id, "PENDING")

    assert order["status"] == "PENDING"
    assert order["transaction"]["status"] == "IN_PROCESS"
    assert len(order["items"][0]["codes"]) == 2
    counts = _counts(inventory, variant_id)
    assert counts["PENDING_PAYMENT"] == 2
    assert counts["UNUSED"] == 1

    # po ponownym otwarciu normalna sciezka dziala dalej
    orders.mark_completed(order_id)
    assert _counts(inventory, variant_id)["USED"] == 2


def test_admin_reopen_without_stock_changes_nothing(orders, carts, inventory, variant_id, stock):
    stock(variant_id, 2)
    order_id = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]
    orders.mark_failed(order_id)
    inventory.allocate(variant_id, 1)

    with pytest.raises(InsufficientStockError):
        orders.change_status(order_id, "PENDING")

    assert orders.get_order_detail(order_id)["status"] == "FAILED"
    counts = _counts(inventory, variant_id)
    assert counts["UNUSED"] == 1
    assert counts["PENDING_PAYMENT"] == 1


def test_admin_reopen_unexpected_error_releases_codes(orders, carts, inventory, make_variant, stock):
    first = make_variant()
    second = make_variant(value="50.00", price="47.00")
    stock(first, 3)
    stock(second, 3)
    order_id = _checkout(orders, carts, 1, (first, 2), (second, 1))["order_id"]
    orders.cancel(order_id)
    real_allocate = orders.inventory.allocate

    def allocate(variant_id, quantity):
        if variant_id == second:
            raise RuntimeError("connection reset")
        return real_allocate(variant_id, quantity)

    with patch.object(orders.inventory, "allocate", side_effect=allocate):
        with pytest.raises(RuntimeError):
            orders.change_status(order_id, "PENDING")

    assert orders.get_order_detail(order_id)["status"] == "CANCELLED"
    assert _counts(inventory, first)["UNUSED"] == 3
    assert _counts(inventory, first)["PENDING_PAYMENT"] == 0


# ---------- wygaszanie / zapytania ----------

def test_expire_pending_marks_old_orders_failed(orders, carts, inventory, variant_id, stock):
    stock(variant_id, 3)
    old = _checkout(orders, carts, 1, (variant_id, 1))["order_id"]
    paid = _checkout(orders, carts, 2, (variant_id, 1))["order_id"]
    orders.mark_completed(paid)

    assert orders.expire_pending() == []

    later = datetime.now(timezone.utc) + timedelta(hours=1)
    assert orders.expire_pending(now=later) == [old]

    order = orders.get_order_detail(old)
    assert order["status"] == "FAILED"
    assert order["events"][-1]["note"] == "payment timeout"
    assert _counts(inventory, variant_id)["UNUSED"] == 2
    assert orders.get_order_detail(paid)["status"] == "COMPLETED"


def test_expire_pending_releases_orphaned_reservations(orders, carts, inventory, variant_id, stock):
    stock(variant_id, 4)
    long_ago = datetime.now(timezone.utc) - timedelta(hours=1)
    # rezerwacja, po ktorej proces padl przed zapisem zamowienia
    with patch("giftshop.services.inventory_service._utcnow", return_value=long_ago):
        orphaned = inventory.allocate(variant_id, 2)
    order_id = _checkout(orders, carts, 1, (variant_id, 1))["order_id"]

    assert orders.expire_pending() == []

    assert all(inventory.get_code(i)["status"] == "UNUSED" for i in orphaned)
    assert orders.get_order_detail(order_id)["status"] == "PENDING"
    counts = _counts(inventory, variant_id)
    assert counts["PENDING_PAYMENT"] == 1
    assert counts["UNUSED"] == 3


def test_order_queries(orders, carts, variant_id, stock):
    stock(variant_id, 5)
    first = _checkout(orders, carts, 1, (variant_id, 1))["order_id"]
    second = _checkout(orders, carts, 1, (variant_id, 2))["order_id"]
    other = _checkout(orders, carts, 2, (variant_id, 1))["order_id"]
    orders.mark_completed(second)

    history = orders.list_orders(1)
    assert history["total_elements"] == 2
    assert [o["id"] for o in history["content"]] == [second, first]

    with pytest.raises(AccessDeniedError):
        orders.get_order(other, 1)
    with pytest.raises(NotFoundError):
        orders.get_order_detail(9999)

    today = datetime.now(timezone.utc).date()
    assert orders.list_all(status="COMPLETED")["total_elements"] == 1
    assert orders.list_all(date_from=today, date_to=today)["total_elements"] == 3
    assert orders.list_all(date_to=today - timedelta(days=1))["total_elements"] == 0
    assert orders.list_all(user_id=2)["content"][0]["id"] == other

    revenue = orders.revenue(today, today)
    assert revenue["orders"] == 1
    assert revenue["revenue"] == Decimal("19.00")
    assert revenue["by_day"] == {today.isoformat(): Decimal("19.00")}
