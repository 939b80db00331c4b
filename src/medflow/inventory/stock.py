"""StockItem aggregate (Event Sourced) — one medicine stocked by one facility.

Stock Model:
    quantity:  Units on the shelf that can still be reserved
    reserved:  Units held by orders that are not yet finalized

A reservation moves units from ``quantity`` to ``reserved``. Committing it
finalizes the hold without touching ``quantity``; releasing it puts the units
back. Counts change only through the methods below, each of which raises one
event whose ``@apply`` handler is the single place the counters are written.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
)

from medflow import config
from medflow.domain import medflow
from medflow.errors import InsufficientStock
from medflow.inventory.events import (
    CommittedStockReinstated,
    LowStockDetected,
    PriceChanged,
    ReservationCommitted,
    ReservationReleased,
    StockItemAdded,
    StockReceived,
    StockReserved,
)


class ReservationStatus(Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    RELEASED = "released"


@medflow.entity(part_of="StockItem")
class Reservation:
    """Units held for one order.

    ACTIVE → COMMITTED (order paid) or ACTIVE → RELEASED (cancelled / payment
    failed). A COMMITTED reservation is RELEASED only when a confirmed order is
    cancelled and its stock reinstated.
    """

    order_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    status = String(choices=ReservationStatus, default=ReservationStatus.ACTIVE.value)
    reserved_at = DateTime(required=True)
    settled_at = DateTime()


@medflow.aggregate(is_event_sourced=True)
class StockItem:
    """Event-sourced aggregate tracking the shelf count of one medicine at one facility."""

    facility_id = Identifier(required=True)
    medicine_id = Identifier(required=True)
    name = String(required=True, max_length=200)
    unit_price = Float(min_value=0.0)
    currency = String(max_length=3)
    requires_prescription = Boolean(default=False)
    quantity = Integer(default=0)
    reserved = Integer(default=0)
    reorder_threshold = Integer(default=10)
    reservations = HasMany(Reservation)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        facility_id,
        medicine_id,
        name,
        unit_price,
        quantity=0,
        reorder_threshold=None,
        requires_prescription=False,
        currency=None,
    ):
        """Start stocking a medicine at a facility."""
        if unit_price is None or unit_price < 0:
            raise ValidationError({"unit_price": ["Unit price must not be negative"]})
        if quantity < 0:
            raise ValidationError({"quantity": ["Initial quantity must not be negative"]})

        item = cls._create_new()
        item.raise_(
            StockItemAdded(
                stock_item_id=str(item.id),
                facility_id=str(facility_id),
                medicine_id=str(medicine_id),
                name=name,
                unit_price=unit_price,
                currency=currency or config.default_currency(),
                requires_prescription=requires_prescription,
                initial_quantity=quantity,
                reorder_threshold=(
                    reorder_threshold if reorder_threshold is not None else config.default_reorder_threshold()
                ),
                added_at=datetime.now(UTC),
            )
        )
        return item

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def reservation_for(self, order_id, *statuses):
        """Return the order's reservation, optionally only in one of ``statuses``."""
        wanted = {s.value for s in statuses}
        for reservation in reversed(self.reservations or []):
            if str(reservation.order_id) != str(order_id):
                continue
            if not wanted or reservation.status in wanted:
                return reservation
        return None

    def _check_low_stock(self):
        if self.quantity <= self.reorder_threshold:
            self.raise_(
                LowStockDetected(
                    stock_item_id=str(self.id),
                    facility_id=str(self.facility_id),
                    medicine_id=str(self.medicine_id),
                    name=self.name,
                    current_quantity=self.quantity,
                    reorder_threshold=self.reorder_threshold,
                    detected_at=datetime.now(UTC),
                )
            )

    # -------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------
    def receive_stock(self, quantity, reference=None):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.raise_(
            StockReceived(
                stock_item_id=str(self.id),
                quantity=quantity,
                previous_quantity=self.quantity,
                new_quantity=self.quantity + quantity,
                reference=reference,
                received_at=datetime.now(UTC),
            )
        )

    def change_price(self, unit_price):
        if unit_price is None or unit_price < 0:
            raise ValidationError({"unit_price": ["Unit price must not be negative"]})

        self.raise_(
            PriceChanged(
                stock_item_id=str(self.id),
                previous_price=self.unit_price,
                new_price=unit_price,
                changed_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, order_id, quantity):
        """Hold ``quantity`` units for an order, or fail without touching the count."""
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be a positive integer"]})

        if self.reservation_for(order_id, ReservationStatus.ACTIVE, ReservationStatus.COMMITTED):
            raise ValidationError({"order_id": [f"Order {order_id} already holds a reservation on this item"]})

        if self.quantity < quantity:
            raise InsufficientStock(
                f"Selected quantity no longer available: {self.quantity} in stock, {quantity} requested"
            )

        self.raise_(
            StockReserved(
                stock_item_id=str(self.id),
                reservation_id=str(uuid4()),
                order_id=str(order_id),
                quantity=quantity,
                previous_quantity=self.quantity,
                new_quantity=self.quantity - quantity,
                reserved_at=datetime.now(UTC),
            )
        )
        self._check_low_stock()

    def release(self, order_id, reason):
        """Put an order's active hold back on the shelf."""
        reservation = self.reservation_for(order_id, ReservationStatus.ACTIVE)
        if reservation is None:
            raise ValidationError({"order_id": [f"No active reservation for order {order_id}"]})

        self.raise_(
            ReservationReleased(
                stock_item_id=str(self.id),
                reservation_id=str(reservation.id),
                order_id=str(order_id),
                quantity=reservation.quantity,
                reason=reason,
                previous_quantity=self.quantity,
                new_quantity=self.quantity + reservation.quantity,
                released_at=datetime.now(UTC),
            )
        )

    def commit(self, order_id):
        """Finalize an order's hold. The shelf count was already decremented."""
        reservation = self.reservation_for(order_id, ReservationStatus.ACTIVE)
        if reservation is None:
            raise ValidationError({"order_id": [f"No active reservation for order {order_id}"]})

        self.raise_(
            ReservationCommitted(
                stock_item_id=str(self.id),
                reservation_id=str(reservation.id),
                order_id=str(order_id),
                quantity=reservation.quantity,
                committed_at=datetime.now(UTC),
            )
        )

    def reinstate(self, order_id, reason):
        """Return a committed hold to the shelf after a confirmed order is cancelled."""
        reservation = self.reservation_for(order_id, ReservationStatus.COMMITTED)
        if reservation is None:
            raise ValidationError({"order_id": [f"No committed reservation for order {order_id}"]})

        self.raise_(
            CommittedStockReinstated(
                stock_item_id=str(self.id),
                reservation_id=str(reservation.id),
                order_id=str(order_id),
                quantity=reservation.quantity,
                reason=reason,
                previous_quantity=self.quantity,
                new_quantity=self.quantity + reservation.quantity,
                reinstated_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    def _settle(self, reservation_id, status, at):
        reservation = next(
            (r for r in (self.reservations or []) if str(r.id) == str(reservation_id)),
            None,
        )
        if reservation:
            reservation.status = status.value
            reservation.settled_at = at

    @apply
    def _on_stock_item_added(self, event: StockItemAdded):
        self.id = event.stock_item_id
        self.facility_id = event.facility_id
        self.medicine_id = event.medicine_id
        self.name = event.name
        self.unit_price = event.unit_price
        self.currency = event.currency
        self.requires_prescription = event.requires_prescription
        self.quantity = event.initial_quantity
        self.reserved = 0
        self.reorder_threshold = event.reorder_threshold
        self.created_at = event.added_at
        self.updated_at = event.added_at

    @apply
    def _on_stock_received(self, event: StockReceived):
        self.quantity = event.new_quantity
        self.updated_at = event.received_at

    @apply
    def _on_price_changed(self, event: PriceChanged):
        self.unit_price = event.new_price
        self.updated_at = event.changed_at

    @apply
    def _on_stock_reserved(self, event: StockReserved):
        existing = next(
            (r for r in (self.reservations or []) if str(r.id) == str(event.reservation_id)),
            None,
        )
        if not existing:
            self.add_reservations(
                Reservation(
                    id=event.reservation_id,
                    order_id=event.order_id,
                    quantity=event.quantity,
                    reserved_at=event.reserved_at,
                )
            )
        self.quantity = event.new_quantity
        self.reserved = (self.reserved or 0) + event.quantity
        self.updated_at = event.reserved_at

    @apply
    def _on_reservation_released(self, event: ReservationReleased):
        self._settle(event.reservation_id, ReservationStatus.RELEASED, event.released_at)
        self.quantity = event.new_quantity
        self.reserved = (self.reserved or 0) - event.quantity
        self.updated_at = event.released_at

    @apply
    def _on_reservation_committed(self, event: ReservationCommitted):
        self._settle(event.reservation_id, ReservationStatus.COMMITTED, event.committed_at)
        self.reserved = (self.reserved or 0) - event.quantity
        self.updated_at = event.committed_at

    @apply
    def _on_committed_stock_reinstated(self, event: CommittedStockReinstated):
        self._settle(event.reservation_id, ReservationStatus.RELEASED, event.reinstated_at)
        self.quantity = event.new_quantity
        self.updated_at = event.reinstated_at

    @apply
    def _on_low_stock_detected(self, event: LowStockDetected):  # noqa: ARG002
        # Notification-only event, no state change
        pass
