"""Domain events for the Order aggregate.

Each event carries the buyer and facility so that notification handlers can
address both parties without loading the order.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from medflow.domain import medflow


@medflow.event(part_of="Order")
class OrderPlaced:
    """Stock was reserved for every line and the order now awaits payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    delivery_address = Text(required=True)  # JSON: address dict
    delivery_phone = String()
    notes = Text()
    prescription_id = Identifier()
    total = Float(required=True)
    currency = String(required=True)
    placed_at = DateTime(required=True)


@medflow.event(part_of="Order")
class OrderPaymentAttached:
    """The buyer chose a payment method and a Payment was opened for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    payment_method = String(required=True)
    attached_at = DateTime(required=True)


@medflow.event(part_of="Order")
class OrderConfirmed:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    payment_method = String()
    confirmed_at = DateTime(required=True)


@medflow.event(part_of="Order")
class OrderReady:
    """The facility finished preparing the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    ready_at = DateTime(required=True)


@medflow.event(part_of="Order")
class OrderOutForDelivery:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    dispatched_at = DateTime(required=True)


@medflow.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@medflow.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_by = String(required=True)
    cancelled_at = DateTime(required=True)


@medflow.event(part_of="Order")
class OrderFailed:
    """Payment for the order failed; its stock has been or is being released."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)
