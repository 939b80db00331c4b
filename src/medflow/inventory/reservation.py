"""Stock reservation commands and their handler.

Each command touches exactly one stock item. Callers that need an
order-wide guarantee go through ``medflow.inventory.ledger``.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from medflow.domain import medflow
from medflow.inventory.stock import StockItem


@medflow.command(part_of="StockItem")
class ReserveStock:
    """Hold stock for an order."""

    stock_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)


@medflow.command(part_of="StockItem")
class ReleaseReservation:
    """Return an order's active hold to the shelf."""

    stock_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(required=True)


@medflow.command(part_of="StockItem")
class CommitReservation:
    """Finalize an order's hold once the order is paid for."""

    stock_item_id = Identifier(required=True)
    order_id = Identifier(required=True)


@medflow.command(part_of="StockItem")
class ReinstateCommittedStock:
    """Return a cancelled order's committed stock to the shelf."""

    stock_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(required=True)


@medflow.command_handler(part_of=StockItem)
class ReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get(command.stock_item_id)
        item.reserve(order_id=command.order_id, quantity=command.quantity)
        repo.add(item)

    @handle(ReleaseReservation)
    def release_reservation(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get(command.stock_item_id)
        item.release(order_id=command.order_id, reason=command.reason)
        repo.add(item)

    @handle(CommitReservation)
    def commit_reservation(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get(command.stock_item_id)
        item.commit(order_id=command.order_id)
        repo.add(item)

    @handle(ReinstateCommittedStock)
    def reinstate_committed_stock(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get(command.stock_item_id)
        item.reinstate(order_id=command.order_id, reason=command.reason)
        repo.add(item)
