"""Domain events for the StockItem aggregate.

Events are the only record of a stock movement: the current counts are
rebuilt by replaying them, and the notification handlers subscribe to the
same stream for low-stock alerts.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from medflow.domain import medflow


@medflow.event(part_of="StockItem")
class StockItemAdded:
    """A facility started stocking a medicine."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    medicine_id = Identifier(required=True)
    name = String(required=True)
    unit_price = Float(required=True)
    currency = String(required=True)
    requires_prescription = Boolean(default=False)
    initial_quantity = Integer(required=True)
    reorder_threshold = Integer(required=True)
    added_at = DateTime(required=True)


@medflow.event(part_of="StockItem")
class StockReceived:
    """A restock increased the quantity on the shelf."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    reference = String()
    received_at = DateTime(required=True)


@medflow.event(part_of="StockItem")
class PriceChanged:
    """The catalog price changed. Orders already placed keep their captured price."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    previous_price = Float(required=True)
    new_price = Float(required=True)
    changed_at = DateTime(required=True)


@medflow.event(part_of="StockItem")
class StockReserved:
    """Quantity was taken off the shelf and held for an order."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    reserved_at = DateTime(required=True)


@medflow.event(part_of="StockItem")
class ReservationReleased:
    """A held quantity went back on the shelf (cancellation or payment failure)."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    released_at = DateTime(required=True)


@medflow.event(part_of="StockItem")
class ReservationCommitted:
    """A held quantity was finalized for a paid order and can no longer be released."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    committed_at = DateTime(required=True)


@medflow.event(part_of="StockItem")
class CommittedStockReinstated:
    """Committed quantity of a cancelled order was returned to the shelf."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    reinstated_at = DateTime(required=True)


@medflow.event(part_of="StockItem")
class LowStockDetected:
    """Quantity on the shelf fell to or below the reorder threshold."""

    __version__ = 1

    stock_item_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    medicine_id = Identifier(required=True)
    name = String(required=True)
    current_quantity = Integer(required=True)
    reorder_threshold = Integer(required=True)
    detected_at = DateTime(required=True)
