"""Order placement and the transitions other components drive.

Every operation takes the order's lock, checks the guard, then issues
single-entity commands in a fixed order: the order transition first and the
stock side effect after it. If the process dies between the two, the stock
step is idempotent and is completed by repeating the same call.
"""

from collections import OrderedDict

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from medflow.errors import CrossFacilityCart, EmptyOrder, InvalidTransition, PrescriptionRequired
from medflow.inventory import ledger
from medflow.inventory.ledger import ReservationLine
from medflow.locking import entity_lock
from medflow.ordering.order import FULFILMENT_PATH, Order, OrderStatus
from medflow.ordering.permissions import ActorRole, as_role, assert_can_advance, assert_can_cancel
from medflow.ordering.transitions import AdvanceOrder, CancelOrder, ConfirmOrder, FailOrder

logger = structlog.get_logger(__name__)

_CONFIRMED_OR_LATER = {
    OrderStatus.CONFIRMED,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
}


def get(order_id) -> Order:
    return current_domain.repository_for(Order).get(str(order_id))


def _merge_lines(items):
    """Collapse repeated stock items into one line each, keeping first-seen order."""
    merged = OrderedDict()
    for item in items or []:
        stock_item_id = str(item["stock_item_id"])
        quantity = item.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be a positive integer"]})
        merged[stock_item_id] = merged.get(stock_item_id, 0) + quantity
    return merged


def create(
    buyer_id,
    facility_id,
    items,
    address,
    delivery_phone=None,
    notes=None,
    prescription_id=None,
) -> Order:
    """Place an order: validate the cart, reserve every line, then persist as pending.

    ``items`` is a list of ``{"stock_item_id": ..., "quantity": ...}``.
    The order is saved only after the whole reservation succeeded, so a
    partially reserved order is never visible.
    """
    lines = _merge_lines(items)
    if not lines:
        raise EmptyOrder("An order needs at least one item")

    priced = []
    for stock_item_id, quantity in lines.items():
        item = ledger.load(stock_item_id)
        if str(item.facility_id) != str(facility_id):
            raise CrossFacilityCart("All items in an order must come from the same facility")
        if item.requires_prescription and not prescription_id:
            raise PrescriptionRequired(f"{item.name} requires a prescription")
        priced.append(
            {
                "stock_item_id": str(item.id),
                "medicine_id": str(item.medicine_id),
                "name": item.name,
                "quantity": quantity,
                "unit_price": item.unit_price,
            }
        )

    order = Order.place(
        buyer_id=buyer_id,
        facility_id=facility_id,
        items_data=priced,
        delivery_address=address,
        delivery_phone=delivery_phone,
        notes=notes,
        prescription_id=prescription_id,
    )

    reservation = [ReservationLine(stock_item_id=sid, quantity=qty) for sid, qty in lines.items()]
    ledger.reserve_for_order(order.id, reservation)

    try:
        current_domain.repository_for(Order).add(order)
    except Exception:
        logger.exception("Order could not be saved, releasing stock", order_id=str(order.id))
        ledger.release_for_order(order.id, list(lines), "order_not_saved")
        raise

    logger.info(
        "Order placed",
        order_id=str(order.id),
        order_number=order.order_number,
        buyer_id=str(buyer_id),
        facility_id=str(facility_id),
        total=order.total,
    )
    return order


def on_payment_settled(order_id) -> Order:
    """Commit the reservation and confirm the order. Repeating the call is a no-op."""
    with entity_lock("order", order_id):
        order = get(order_id)
        status = OrderStatus(order.status)
        if status in _CONFIRMED_OR_LATER:
            # Finish a commit that may have been interrupted after confirmation
            ledger.commit_for_order(order.id, order.stock_item_ids)
            return order
        if status != OrderStatus.PENDING:
            raise InvalidTransition(f"Cannot confirm an order that is {order.status}")

        ledger.commit_for_order(order.id, order.stock_item_ids)
        current_domain.process(ConfirmOrder(order_id=str(order.id)), asynchronous=False)

    logger.info("Order confirmed", order_id=str(order_id), payment_method=order.payment_method)
    return get(order_id)


def on_payment_failed(order_id, reason=None) -> Order:
    """Mark the order failed and put its reserved stock back. Idempotent."""
    with entity_lock("order", order_id):
        order = get(order_id)
        if OrderStatus(order.status) != OrderStatus.FAILED:
            current_domain.process(FailOrder(order_id=str(order.id), reason=reason), asynchronous=False)
        ledger.release_for_order(order.id, order.stock_item_ids, reason or "payment_failed")

    logger.info("Order failed", order_id=str(order_id), reason=reason)
    return get(order_id)


def advance(order_id, target_status, actor_role, actor_id=None) -> Order:
    """Facility-side progression along confirmed → ready → out_for_delivery → delivered."""
    try:
        target = OrderStatus(target_status)
    except ValueError:
        raise InvalidTransition(f"Unknown order status: {target_status}") from None
    if target not in FULFILMENT_PATH[1:]:
        raise InvalidTransition(f"Cannot advance an order to {target.value}")

    with entity_lock("order", order_id):
        order = get(order_id)
        assert_can_advance(order, target, actor_role, actor_id)
        current_domain.process(
            AdvanceOrder(order_id=str(order.id), target_status=target.value),
            asynchronous=False,
        )

    logger.info("Order advanced", order_id=str(order_id), status=target.value, actor_role=as_role(actor_role).value)
    return get(order_id)


def advance_to(order_id, target_status, actor_role=ActorRole.SYSTEM) -> Order:
    """Walk the order forward along the fulfilment path until it reaches ``target_status``.

    An order already at or past the target is returned unchanged.
    """
    target = OrderStatus(target_status)
    with entity_lock("order", order_id):
        order = get(order_id)
        current = OrderStatus(order.status)
        if current not in FULFILMENT_PATH:
            raise InvalidTransition(f"Order is {order.status}, it cannot move to {target.value}")

        start, end = FULFILMENT_PATH.index(current), FULFILMENT_PATH.index(target)
        for step in FULFILMENT_PATH[start + 1 : end + 1]:
            advance(order_id, step, actor_role)

    return get(order_id)


def cancel(order_id, actor_role, actor_id=None, reason=None) -> Order:
    """Cancel a pending or confirmed order and return its stock to the shelf."""
    role = as_role(actor_role)
    with entity_lock("order", order_id):
        order = get(order_id)
        assert_can_cancel(order, role, actor_id)
        previous = OrderStatus(order.status)

        current_domain.process(
            CancelOrder(order_id=str(order.id), reason=reason, cancelled_by=role.value),
            asynchronous=False,
        )

        if previous == OrderStatus.PENDING:
            ledger.release_for_order(order.id, order.stock_item_ids, "order_cancelled")
        else:
            ledger.reinstate_for_order(order.id, order.stock_item_ids, "order_cancelled")

    logger.info("Order cancelled", order_id=str(order_id), cancelled_by=role.value, previous_status=previous.value)
    return get(order_id)
