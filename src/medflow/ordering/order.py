"""Order aggregate (Event Sourced) — the order state machine.

State Machine:
    PENDING → CONFIRMED → READY → OUT_FOR_DELIVERY → DELIVERED
    PENDING → CANCELLED, CONFIRMED → CANCELLED
    PENDING → FAILED (payment failure)

Any transition missing from ``_VALID_TRANSITIONS`` is rejected before an
event is raised, so a rejected call leaves status and ``updated_at`` as they
were. Line items and their captured unit prices are fixed at placement; there
is no operation that changes them afterwards.
"""

import json
import random
import time
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from medflow import config
from medflow.domain import medflow
from medflow.errors import DuplicatePayment, EmptyOrder, InvalidTransition
from medflow.ordering.events import (
    OrderCancelled,
    OrderConfirmed,
    OrderDelivered,
    OrderFailed,
    OrderOutForDelivery,
    OrderPaymentAttached,
    OrderPlaced,
    OrderReady,
)


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.CONFIRMED: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.FAILED: set(),  # Terminal
}

# Facility-side progression, in order
FULFILMENT_PATH = [
    OrderStatus.CONFIRMED,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]


def generate_order_number() -> str:
    return f"ORD-{int(time.time() * 1000)}-{random.randint(1000, 9999)}"


@medflow.value_object(part_of="Order")
class DeliveryAddress:
    """Where the order goes. Captured at placement and never changed."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    region = String(max_length=100)
    landmark = String(max_length=255)


@medflow.entity(part_of="Order")
class OrderItem:
    """One medicine line, priced at placement time."""

    stock_item_id = Identifier(required=True)
    medicine_id = Identifier(required=True)
    name = String(required=True, max_length=200)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    subtotal = Float(required=True, min_value=0.0)


@medflow.aggregate(is_event_sourced=True)
class Order:
    order_number = String(max_length=40)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    total = Float(default=0.0)
    currency = String(max_length=3)
    delivery_address = ValueObject(DeliveryAddress)
    delivery_phone = String(max_length=30)
    notes = Text()
    prescription_id = Identifier()
    payment_id = Identifier()
    payment_method = String(max_length=30)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=30)
    failure_reason = String(max_length=500)
    placed_at = DateTime()
    confirmed_at = DateTime()
    ready_at = DateTime()
    dispatched_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    failed_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        buyer_id,
        facility_id,
        items_data,
        delivery_address,
        delivery_phone=None,
        notes=None,
        prescription_id=None,
        currency=None,
    ):
        """Build a new pending order from priced lines.

        Args:
            buyer_id: The ordering party.
            facility_id: The fulfilling facility.
            items_data: List of dicts with stock_item_id, medicine_id, name,
                        quantity, unit_price.
            delivery_address: Dict with street, city, region, landmark.

        The total is the sum of the line subtotals, computed here once.
        """
        if not items_data:
            raise EmptyOrder("An order needs at least one item")

        lines = []
        for item in items_data:
            quantity = int(item["quantity"])
            if quantity <= 0:
                raise ValidationError({"quantity": ["Quantity must be a positive integer"]})
            unit_price = float(item["unit_price"])
            lines.append(
                {
                    **item,
                    "id": str(uuid4()),
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "subtotal": round(unit_price * quantity, 2),
                }
            )
        # Summed in line order with no second rounding, so the stored total
        # equals the sum of the stored subtotals exactly.
        total = sum(line["subtotal"] for line in lines)

        order = cls._create_new()
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=generate_order_number(),
                buyer_id=str(buyer_id),
                facility_id=str(facility_id),
                items=json.dumps(lines),
                delivery_address=json.dumps(delivery_address),
                delivery_phone=delivery_phone,
                notes=notes,
                prescription_id=prescription_id,
                total=total,
                currency=currency or config.default_currency(),
                placed_at=datetime.now(UTC),
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot transition from {current.value} to {target_status.value}")

    def can_transition_to(self, target_status) -> bool:
        return target_status in _VALID_TRANSITIONS.get(OrderStatus(self.status), set())

    def _party(self):
        return {
            "order_id": str(self.id),
            "order_number": self.order_number,
            "buyer_id": str(self.buyer_id),
            "facility_id": str(self.facility_id),
        }

    @property
    def stock_item_ids(self):
        return [str(item.stock_item_id) for item in (self.items or [])]

    # -------------------------------------------------------------------
    # Payment linkage
    # -------------------------------------------------------------------
    def attach_payment(self, payment_id, payment_method):
        """Link the order's single payment. Only while the order awaits payment."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise InvalidTransition(f"Order is {self.status}, not awaiting payment")
        if self.payment_id and str(self.payment_id) != str(payment_id):
            raise DuplicatePayment(f"Order {self.id} already has payment {self.payment_id}")

        self.raise_(
            OrderPaymentAttached(
                order_id=str(self.id),
                payment_id=str(payment_id),
                payment_method=payment_method,
                attached_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def confirm(self):
        self._assert_can_transition(OrderStatus.CONFIRMED)
        self.raise_(
            OrderConfirmed(
                **self._party(),
                payment_method=self.payment_method,
                confirmed_at=datetime.now(UTC),
            )
        )

    def mark_ready(self):
        self._assert_can_transition(OrderStatus.READY)
        self.raise_(OrderReady(**self._party(), ready_at=datetime.now(UTC)))

    def dispatch(self):
        self._assert_can_transition(OrderStatus.OUT_FOR_DELIVERY)
        self.raise_(OrderOutForDelivery(**self._party(), dispatched_at=datetime.now(UTC)))

    def record_delivery(self):
        self._assert_can_transition(OrderStatus.DELIVERED)
        self.raise_(OrderDelivered(**self._party(), delivered_at=datetime.now(UTC)))

    def advance(self, target_status):
        """Facility-side progression to the next fulfilment state."""
        steps = {
            OrderStatus.READY: self.mark_ready,
            OrderStatus.OUT_FOR_DELIVERY: self.dispatch,
            OrderStatus.DELIVERED: self.record_delivery,
        }
        if target_status not in steps:
            raise InvalidTransition(f"Cannot advance an order to {target_status.value}")
        steps[target_status]()

    def cancel(self, reason, cancelled_by):
        self._assert_can_transition(OrderStatus.CANCELLED)
        self.raise_(
            OrderCancelled(
                **self._party(),
                previous_status=self.status,
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=datetime.now(UTC),
            )
        )

    def fail(self, reason):
        self._assert_can_transition(OrderStatus.FAILED)
        self.raise_(OrderFailed(**self._party(), reason=reason, failed_at=datetime.now(UTC)))

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_order_placed(self, event: OrderPlaced):
        self.id = event.order_id
        self.order_number = event.order_number
        self.buyer_id = event.buyer_id
        self.facility_id = event.facility_id
        self.status = OrderStatus.PENDING.value
        self.delivery_phone = event.delivery_phone
        self.notes = event.notes
        self.prescription_id = event.prescription_id
        self.currency = event.currency
        self.placed_at = event.placed_at
        self.updated_at = event.placed_at

        # Reconstruct items from JSON (includes IDs for deterministic replay)
        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [OrderItem(**item_data) for item_data in items_data]
        self.total = event.total

        address = json.loads(event.delivery_address) if isinstance(event.delivery_address, str) else {}
        if address:
            self.delivery_address = DeliveryAddress(**address)

    @apply
    def _on_payment_attached(self, event: OrderPaymentAttached):
        self.payment_id = event.payment_id
        self.payment_method = event.payment_method
        self.updated_at = event.attached_at

    @apply
    def _on_order_confirmed(self, event: OrderConfirmed):
        self.status = OrderStatus.CONFIRMED.value
        self.confirmed_at = event.confirmed_at
        self.updated_at = event.confirmed_at

    @apply
    def _on_order_ready(self, event: OrderReady):
        self.status = OrderStatus.READY.value
        self.ready_at = event.ready_at
        self.updated_at = event.ready_at

    @apply
    def _on_order_out_for_delivery(self, event: OrderOutForDelivery):
        self.status = OrderStatus.OUT_FOR_DELIVERY.value
        self.dispatched_at = event.dispatched_at
        self.updated_at = event.dispatched_at

    @apply
    def _on_order_delivered(self, event: OrderDelivered):
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = event.delivered_at
        self.updated_at = event.delivered_at

    @apply
    def _on_order_cancelled(self, event: OrderCancelled):
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = event.reason
        self.cancelled_by = event.cancelled_by
        self.cancelled_at = event.cancelled_at
        self.updated_at = event.cancelled_at

    @apply
    def _on_order_failed(self, event: OrderFailed):
        self.status = OrderStatus.FAILED.value
        self.failure_reason = event.reason
        self.failed_at = event.failed_at
        self.updated_at = event.failed_at
