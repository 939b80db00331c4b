"""Order-wide reserve, release and commit of stock.

Every step is a single-item command run under that item's lock, so the
availability check and the decrement are one atomic operation per item.
Reserving for an order is all-or-nothing: when any line fails, the lines
already held for that order are released before the error propagates.

Release, commit and reinstate are idempotent per ``(item, order)``: an item
with nothing to do for the order is skipped, which makes compensation and
retries safe.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from medflow.inventory.reservation import (
    CommitReservation,
    ReinstateCommittedStock,
    ReleaseReservation,
    ReserveStock,
)
from medflow.inventory.stock import ReservationStatus, StockItem
from medflow.inventory.stocking import AddStockItem, ChangePrice, ReceiveStock
from medflow.locking import entity_lock

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationLine:
    stock_item_id: str
    quantity: int


def load(stock_item_id) -> StockItem:
    return current_domain.repository_for(StockItem).get(str(stock_item_id))


def add_item(
    facility_id,
    medicine_id,
    name,
    unit_price,
    quantity=0,
    reorder_threshold=None,
    requires_prescription=False,
    currency=None,
) -> StockItem:
    """Put a medicine on a facility's shelf."""
    stock_item_id = current_domain.process(
        AddStockItem(
            facility_id=facility_id,
            medicine_id=medicine_id,
            name=name,
            unit_price=unit_price,
            quantity=quantity,
            reorder_threshold=reorder_threshold,
            requires_prescription=requires_prescription,
            currency=currency,
        ),
        asynchronous=False,
    )
    logger.info("Stock item added", stock_item_id=stock_item_id, facility_id=str(facility_id), quantity=quantity)
    return load(stock_item_id)


def receive(stock_item_id, quantity, reference=None) -> StockItem:
    with entity_lock("stock", stock_item_id):
        current_domain.process(
            ReceiveStock(stock_item_id=str(stock_item_id), quantity=quantity, reference=reference),
            asynchronous=False,
        )
    logger.info("Stock received", stock_item_id=str(stock_item_id), quantity=quantity)
    return load(stock_item_id)


def change_price(stock_item_id, unit_price) -> StockItem:
    """New orders pick up the price; placed orders keep the one they captured."""
    with entity_lock("stock", stock_item_id):
        current_domain.process(
            ChangePrice(stock_item_id=str(stock_item_id), unit_price=unit_price),
            asynchronous=False,
        )
    return load(stock_item_id)


def reserve_for_order(order_id, lines: list[ReservationLine]) -> None:
    """Reserve every line for the order, or none of them."""
    held = []
    try:
        for line in lines:
            with entity_lock("stock", line.stock_item_id):
                current_domain.process(
                    ReserveStock(
                        stock_item_id=line.stock_item_id,
                        order_id=str(order_id),
                        quantity=line.quantity,
                    ),
                    asynchronous=False,
                )
            held.append(line.stock_item_id)
    except Exception:
        if held:
            logger.info("Rolling back partial reservation", order_id=str(order_id), items=held)
            _release_each(order_id, held, "reservation_rolled_back")
        raise

    logger.info("Stock reserved for order", order_id=str(order_id), lines=len(lines))


def release_for_order(order_id, stock_item_ids, reason: str) -> list[str]:
    """Release the order's active holds. Returns the ids actually released."""
    released = []
    for stock_item_id in stock_item_ids:
        with entity_lock("stock", stock_item_id):
            if load(stock_item_id).reservation_for(order_id, ReservationStatus.ACTIVE) is None:
                continue
            current_domain.process(
                ReleaseReservation(stock_item_id=str(stock_item_id), order_id=str(order_id), reason=reason),
                asynchronous=False,
            )
        released.append(str(stock_item_id))

    if released:
        logger.info("Reservation released", order_id=str(order_id), items=released, reason=reason)
    return released


def commit_for_order(order_id, stock_item_ids) -> None:
    """Finalize the order's holds so they are no longer eligible for release."""
    for stock_item_id in stock_item_ids:
        with entity_lock("stock", stock_item_id):
            if load(stock_item_id).reservation_for(order_id, ReservationStatus.ACTIVE) is None:
                continue
            current_domain.process(
                CommitReservation(stock_item_id=str(stock_item_id), order_id=str(order_id)),
                asynchronous=False,
            )

    logger.info("Reservation committed", order_id=str(order_id))


def reinstate_for_order(order_id, stock_item_ids, reason: str) -> None:
    """Return committed stock of a cancelled order to the shelf."""
    for stock_item_id in stock_item_ids:
        with entity_lock("stock", stock_item_id):
            if load(stock_item_id).reservation_for(order_id, ReservationStatus.COMMITTED) is None:
                continue
            current_domain.process(
                ReinstateCommittedStock(stock_item_id=str(stock_item_id), order_id=str(order_id), reason=reason),
                asynchronous=False,
            )

    logger.info("Committed stock reinstated", order_id=str(order_id), reason=reason)


def _release_each(order_id, stock_item_ids, reason):
    for stock_item_id in stock_item_ids:
        try:
            release_for_order(order_id, [stock_item_id], reason)
        except Exception:
            logger.exception("Failed to roll back reservation", order_id=str(order_id), stock_item_id=stock_item_id)
