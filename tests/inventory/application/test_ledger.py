"""Application tests for the Inventory Ledger: order-wide reservation through commands."""

import threading

import pytest
from builders import FACILITY, stock
from protean import current_domain

from medflow.errors import InsufficientStock
from medflow.inventory import ledger
from medflow.inventory.ledger import ReservationLine
from medflow.inventory.stock import ReservationStatus


class TestStocking:
    def test_add_item_persists(self):
        item = stock(quantity=7)
        loaded = ledger.load(item.id)
        assert loaded.quantity == 7
        assert str(loaded.facility_id) == FACILITY

    def test_receive_restocks(self):
        item = stock(quantity=2)
        assert ledger.receive(item.id, 8, reference="GRN-7").quantity == 10

    def test_change_price(self):
        item = stock(unit_price=100.0)
        assert ledger.change_price(item.id, 120.0).unit_price == 120.0


class TestReserveForOrder:
    def test_reserves_every_line(self):
        a, b = stock(quantity=5), stock(quantity=4, name="Ibuprofen 200mg")
        ledger.reserve_for_order("ord-001", [ReservationLine(str(a.id), 3), ReservationLine(str(b.id), 4)])
        assert ledger.load(a.id).quantity == 2
        assert ledger.load(b.id).quantity == 0

    def test_all_or_nothing(self):
        a, b = stock(quantity=5), stock(quantity=1, name="Ibuprofen 200mg")
        with pytest.raises(InsufficientStock):
            ledger.reserve_for_order(
                "ord-001",
                [ReservationLine(str(a.id), 3), ReservationLine(str(b.id), 2)],
            )

        first = ledger.load(a.id)
        assert first.quantity == 5
        assert first.reserved == 0
        assert first.reservation_for("ord-001").status == ReservationStatus.RELEASED.value
        assert ledger.load(b.id).quantity == 1

    def test_release_round_trip(self):
        item = stock(quantity=5)
        ledger.reserve_for_order("ord-001", [ReservationLine(str(item.id), 3)])
        released = ledger.release_for_order("ord-001", [str(item.id)], "order_cancelled")
        assert released == [str(item.id)]
        assert ledger.load(item.id).quantity == 5

    def test_release_is_idempotent(self):
        item = stock(quantity=5)
        ledger.reserve_for_order("ord-001", [ReservationLine(str(item.id), 3)])
        ledger.release_for_order("ord-001", [str(item.id)], "order_cancelled")
        assert ledger.release_for_order("ord-001", [str(item.id)], "order_cancelled") == []
        assert ledger.load(item.id).quantity == 5

    def test_commit_then_release_keeps_stock_out(self):
        item = stock(quantity=5)
        ledger.reserve_for_order("ord-001", [ReservationLine(str(item.id), 3)])
        ledger.commit_for_order("ord-001", [str(item.id)])
        ledger.commit_for_order("ord-001", [str(item.id)])

        assert ledger.release_for_order("ord-001", [str(item.id)], "late_release") == []
        assert ledger.load(item.id).quantity == 2

    def test_reinstate_for_order(self):
        item = stock(quantity=5)
        ledger.reserve_for_order("ord-001", [ReservationLine(str(item.id), 3)])
        ledger.commit_for_order("ord-001", [str(item.id)])
        ledger.reinstate_for_order("ord-001", [str(item.id)], "order_cancelled")
        ledger.reinstate_for_order("ord-001", [str(item.id)], "order_cancelled")
        assert ledger.load(item.id).quantity == 5


class TestConcurrentReservation:
    def test_concurrent_orders_never_oversell(self, medflow_bed):
        item = stock(quantity=5)
        barrier = threading.Barrier(4)
        outcomes = []

        def reserve(order_id):
            with medflow_bed.domain.domain_context():
                barrier.wait()
                try:
                    ledger.reserve_for_order(order_id, [ReservationLine(str(item.id), 2)])
                    outcomes.append("ok")
                except InsufficientStock:
                    outcomes.append("insufficient")

        threads = [threading.Thread(target=reserve, args=(f"ord-{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 2
        assert outcomes.count("insufficient") == 2
        assert current_domain.repository_for(type(item)).get(str(item.id)).quantity == 1
