"""Tests for the StockItem aggregate."""

import pytest
from protean.exceptions import ValidationError

from medflow.errors import InsufficientStock
from medflow.inventory.events import (
    CommittedStockReinstated,
    LowStockDetected,
    ReservationCommitted,
    ReservationReleased,
    StockItemAdded,
    StockReserved,
)
from medflow.inventory.stock import ReservationStatus, StockItem


def _make_item(**overrides):
    defaults = {
        "facility_id": "facility-001",
        "medicine_id": "med-001",
        "name": "Paracetamol 500mg",
        "unit_price": 50.0,
        "quantity": 5,
        "reorder_threshold": 0,
    }
    defaults.update(overrides)
    item = StockItem.create(**defaults)
    return item


class TestStockItemCreation:
    def test_create_sets_counters(self):
        item = _make_item(quantity=12)
        assert item.quantity == 12
        assert item.reserved == 0
        assert item.unit_price == 50.0

    def test_create_raises_stock_item_added(self):
        item = _make_item()
        assert len(item._events) == 1
        assert isinstance(item._events[0], StockItemAdded)
        assert item._events[0].initial_quantity == 5

    def test_default_currency_and_threshold(self):
        item = StockItem.create(
            facility_id="facility-001",
            medicine_id="med-001",
            name="Paracetamol 500mg",
            unit_price=50.0,
            quantity=30,
        )
        assert item.currency == "KES"
        assert item.reorder_threshold == 10

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            _make_item(unit_price=-1.0)

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            _make_item(quantity=-3)


class TestReserve:
    def test_reserve_decrements_quantity(self):
        item = _make_item(quantity=5)
        item.reserve("ord-001", 3)
        assert item.quantity == 2
        assert item.reserved == 3

    def test_reserve_records_active_reservation(self):
        item = _make_item()
        item.reserve("ord-001", 2)
        reservation = item.reservation_for("ord-001")
        assert reservation.status == ReservationStatus.ACTIVE.value
        assert reservation.quantity == 2

    def test_reserve_event_carries_before_and_after(self):
        item = _make_item(quantity=5)
        item._events.clear()
        item.reserve("ord-001", 3)
        event = item._events[0]
        assert isinstance(event, StockReserved)
        assert event.previous_quantity == 5
        assert event.new_quantity == 2
        assert event.new_quantity + event.quantity == event.previous_quantity

    def test_reserve_exact_quantity_allowed(self):
        item = _make_item(quantity=4)
        item.reserve("ord-001", 4)
        assert item.quantity == 0

    def test_insufficient_stock_leaves_item_unchanged(self):
        item = _make_item(quantity=2)
        item._events.clear()
        with pytest.raises(InsufficientStock) as exc:
            item.reserve("ord-001", 3)
        assert exc.value.code == "insufficient_stock"
        assert item.quantity == 2
        assert item.reserved == 0
        assert item._events == []

    @pytest.mark.parametrize("quantity", [0, -1, None])
    def test_non_positive_quantity_rejected(self, quantity):
        item = _make_item()
        with pytest.raises(ValidationError):
            item.reserve("ord-001", quantity)

    def test_second_reservation_for_same_order_rejected(self):
        item = _make_item(quantity=10)
        item.reserve("ord-001", 2)
        with pytest.raises(ValidationError):
            item.reserve("ord-001", 1)


class TestReleaseCommitReinstate:
    def test_release_restores_exactly(self):
        item = _make_item(quantity=5)
        item.reserve("ord-001", 3)
        item.release("ord-001", "order_cancelled")
        assert item.quantity == 5
        assert item.reserved == 0
        assert item.reservation_for("ord-001").status == ReservationStatus.RELEASED.value

    def test_release_raises_released_event(self):
        item = _make_item()
        item.reserve("ord-001", 1)
        item._events.clear()
        item.release("ord-001", "payment_failed")
        assert isinstance(item._events[0], ReservationReleased)
        assert item._events[0].reason == "payment_failed"

    def test_release_without_active_reservation_rejected(self):
        item = _make_item()
        with pytest.raises(ValidationError):
            item.release("ord-404", "order_cancelled")

    def test_commit_leaves_quantity_and_finalizes(self):
        item = _make_item(quantity=5)
        item.reserve("ord-001", 3)
        item._events.clear()
        item.commit("ord-001")
        assert item.quantity == 2
        assert item.reserved == 0
        assert isinstance(item._events[0], ReservationCommitted)
        assert item.reservation_for("ord-001").status == ReservationStatus.COMMITTED.value

    def test_committed_reservation_cannot_be_released(self):
        item = _make_item()
        item.reserve("ord-001", 2)
        item.commit("ord-001")
        with pytest.raises(ValidationError):
            item.release("ord-001", "order_cancelled")

    def test_reinstate_returns_committed_stock(self):
        item = _make_item(quantity=5)
        item.reserve("ord-001", 3)
        item.commit("ord-001")
        item._events.clear()
        item.reinstate("ord-001", "order_cancelled")
        assert item.quantity == 5
        assert isinstance(item._events[0], CommittedStockReinstated)

    def test_reinstate_requires_committed_reservation(self):
        item = _make_item()
        item.reserve("ord-001", 1)
        with pytest.raises(ValidationError):
            item.reinstate("ord-001", "order_cancelled")


class TestLowStock:
    def test_low_stock_detected_at_threshold(self):
        item = _make_item(quantity=12, reorder_threshold=10)
        item._events.clear()
        item.reserve("ord-001", 2)
        low = [e for e in item._events if isinstance(e, LowStockDetected)]
        assert len(low) == 1
        assert low[0].current_quantity == 10
        assert low[0].reorder_threshold == 10

    def test_no_signal_above_threshold(self):
        item = _make_item(quantity=20, reorder_threshold=10)
        item._events.clear()
        item.reserve("ord-001", 2)
        assert not any(isinstance(e, LowStockDetected) for e in item._events)


class TestCatalogChanges:
    def test_receive_stock_adds_to_quantity(self):
        item = _make_item(quantity=5)
        item.receive_stock(10, reference="GRN-001")
        assert item.quantity == 15

    def test_receive_stock_requires_positive_quantity(self):
        item = _make_item()
        with pytest.raises(ValidationError):
            item.receive_stock(0)

    def test_change_price(self):
        item = _make_item(unit_price=50.0)
        item.change_price(65.0)
        assert item.unit_price == 65.0

    def test_negative_price_change_rejected(self):
        item = _make_item()
        with pytest.raises(ValidationError):
            item.change_price(-5.0)
