"""Tests for the Order state machine: valid transitions and rejected ones."""

import pytest

from medflow.errors import DuplicatePayment, InvalidTransition
from medflow.ordering.events import OrderCancelled, OrderConfirmed, OrderFailed
from medflow.ordering.order import Order, OrderStatus


def _make_order():
    order = Order.place(
        buyer_id="buyer-001",
        facility_id="facility-001",
        items_data=[
            {
                "stock_item_id": "stock-1",
                "medicine_id": "med-1",
                "name": "Amoxicillin 500mg",
                "quantity": 3,
                "unit_price": 100.0,
            }
        ],
        delivery_address={"street": "Moi Avenue 12", "city": "Nairobi"},
    )
    order._events.clear()
    return order


def _order_at_state(target_status):
    """Create an order and advance it to the desired state."""
    order = _make_order()
    if target_status == OrderStatus.PENDING:
        return order

    if target_status in (OrderStatus.CANCELLED, OrderStatus.FAILED):
        if target_status == OrderStatus.CANCELLED:
            order.cancel("Changed my mind", "buyer")
        else:
            order.fail("payment_failed")
        order._events.clear()
        return order

    order.confirm()
    for step in (OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED):
        if OrderStatus(order.status) == target_status:
            break
        order.advance(step)
    order._events.clear()
    return order


VALID = [
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.PENDING, OrderStatus.FAILED),
    (OrderStatus.CONFIRMED, OrderStatus.READY),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY),
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED),
]

ALL = list(OrderStatus)
INVALID = [
    (current, target)
    for current in ALL
    for target in ALL
    if target != OrderStatus.PENDING and (current, target) not in VALID
]


def _attempt(order, target):
    if target == OrderStatus.CONFIRMED:
        order.confirm()
    elif target == OrderStatus.CANCELLED:
        order.cancel("reason", "admin")
    elif target == OrderStatus.FAILED:
        order.fail("payment_failed")
    else:
        order.advance(target)


class TestValidTransitions:
    @pytest.mark.parametrize(("current", "target"), VALID)
    def test_transition_allowed(self, current, target):
        order = _order_at_state(current)
        _attempt(order, target)
        assert order.status == target.value

    def test_confirm_raises_event(self):
        order = _make_order()
        order.confirm()
        assert isinstance(order._events[0], OrderConfirmed)
        assert order.confirmed_at is not None

    def test_cancel_records_reason_and_actor(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        order.cancel("Out of area", "facility")
        event = order._events[0]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == OrderStatus.CONFIRMED.value
        assert order.cancellation_reason == "Out of area"
        assert order.cancelled_by == "facility"

    def test_fail_records_reason(self):
        order = _make_order()
        order.fail("gateway_timeout")
        assert isinstance(order._events[0], OrderFailed)
        assert order.failure_reason == "gateway_timeout"


class TestInvalidTransitions:
    @pytest.mark.parametrize(("current", "target"), INVALID)
    def test_rejected_without_mutation(self, current, target):
        order = _order_at_state(current)
        updated_at = order.updated_at

        with pytest.raises(InvalidTransition):
            _attempt(order, target)

        assert order.status == current.value
        assert order.updated_at == updated_at
        assert order._events == []

    def test_can_transition_to(self):
        order = _order_at_state(OrderStatus.OUT_FOR_DELIVERY)
        assert order.can_transition_to(OrderStatus.DELIVERED)
        assert not order.can_transition_to(OrderStatus.CANCELLED)


class TestPaymentLinkage:
    def test_attach_payment(self):
        order = _make_order()
        order.attach_payment("pay-001", "card")
        assert order.payment_id == "pay-001"
        assert order.payment_method == "card"

    def test_attach_different_payment_rejected(self):
        order = _make_order()
        order.attach_payment("pay-001", "card")
        with pytest.raises(DuplicatePayment):
            order.attach_payment("pay-002", "card")

    def test_attach_after_confirmation_rejected(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        with pytest.raises(InvalidTransition):
            order.attach_payment("pay-001", "cash")
