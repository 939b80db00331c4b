"""Tests for placing an Order: lines, totals and captured prices."""

import json

import pytest
from protean.exceptions import ValidationError

from medflow.errors import EmptyOrder
from medflow.ordering.events import OrderPlaced
from medflow.ordering.order import Order, OrderStatus

ADDRESS = {"street": "Moi Avenue 12", "city": "Nairobi", "region": "Nairobi", "landmark": None}


def _lines(*specs):
    return [
        {
            "stock_item_id": f"stock-{n}",
            "medicine_id": f"med-{n}",
            "name": f"Medicine {n}",
            "quantity": quantity,
            "unit_price": price,
        }
        for n, (quantity, price) in enumerate(specs, start=1)
    ]


def _place(*specs, **overrides):
    defaults = {
        "buyer_id": "buyer-001",
        "facility_id": "facility-001",
        "items_data": _lines(*specs),
        "delivery_address": ADDRESS,
    }
    defaults.update(overrides)
    return Order.place(**defaults)


class TestPlaceOrder:
    def test_new_order_is_pending(self):
        order = _place((3, 100.0))
        assert order.status == OrderStatus.PENDING.value
        assert order.placed_at is not None

    def test_total_is_sum_of_subtotals(self):
        order = _place((3, 100.0), (2, 45.5))
        assert [item.subtotal for item in order.items] == [300.0, 91.0]
        assert order.total == sum(item.subtotal for item in order.items) == 391.0

    def test_fractional_prices_round_to_cents(self):
        order = _place((3, 0.1))
        assert order.items[0].subtotal == 0.3
        assert order.total == 0.3

    def test_total_matches_fractional_subtotals_exactly(self):
        order = _place((1, 0.1), (1, 0.2))
        assert [item.subtotal for item in order.items] == [0.1, 0.2]
        assert order.total == sum(item.subtotal for item in order.items)
        assert round(order.total, 2) == 0.3

    def test_order_number_format(self):
        order = _place((1, 10.0))
        prefix, millis, digits = order.order_number.split("-")
        assert prefix == "ORD"
        assert millis.isdigit()
        assert len(digits) == 4

    def test_address_and_contact_captured(self):
        order = _place((1, 10.0), delivery_phone="+254700000001", notes="Call at gate")
        assert order.delivery_address.city == "Nairobi"
        assert order.delivery_phone == "+254700000001"
        assert order.notes == "Call at gate"

    def test_placed_event_carries_lines(self):
        order = _place((2, 10.0))
        event = order._events[0]
        assert isinstance(event, OrderPlaced)
        lines = json.loads(event.items)
        assert lines[0]["subtotal"] == 20.0
        assert json.loads(event.delivery_address)["street"] == "Moi Avenue 12"

    def test_empty_items_rejected(self):
        with pytest.raises(EmptyOrder):
            Order.place(buyer_id="buyer-001", facility_id="facility-001", items_data=[], delivery_address=ADDRESS)

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(ValidationError):
            _place((0, 10.0))

    def test_stock_item_ids(self):
        order = _place((1, 10.0), (1, 20.0))
        assert order.stock_item_ids == ["stock-1", "stock-2"]
