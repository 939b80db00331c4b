"""Adding items to a shelf, restocking and price changes."""

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from medflow.domain import medflow
from medflow.inventory.stock import StockItem


@medflow.command(part_of="StockItem")
class AddStockItem:
    """Start stocking a medicine at a facility."""

    facility_id = Identifier(required=True)
    medicine_id = Identifier(required=True)
    name = String(required=True, max_length=200)
    unit_price = Float(required=True)
    currency = String(max_length=3)
    quantity = Integer(default=0)
    reorder_threshold = Integer()
    requires_prescription = Boolean(default=False)


@medflow.command(part_of="StockItem")
class ReceiveStock:
    """Restock an item."""

    stock_item_id = Identifier(required=True)
    quantity = Integer(required=True)
    reference = String()  # Supplier delivery note


@medflow.command(part_of="StockItem")
class ChangePrice:
    stock_item_id = Identifier(required=True)
    unit_price = Float(required=True)


@medflow.command_handler(part_of=StockItem)
class StockingHandler:
    @handle(AddStockItem)
    def add_stock_item(self, command):
        item = StockItem.create(
            facility_id=command.facility_id,
            medicine_id=command.medicine_id,
            name=command.name,
            unit_price=command.unit_price,
            quantity=command.quantity or 0,
            reorder_threshold=command.reorder_threshold,
            requires_prescription=command.requires_prescription or False,
            currency=command.currency,
        )
        current_domain.repository_for(StockItem).add(item)
        return str(item.id)

    @handle(ReceiveStock)
    def receive_stock(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get(command.stock_item_id)
        item.receive_stock(command.quantity, reference=command.reference)
        repo.add(item)

    @handle(ChangePrice)
    def change_price(self, command):
        repo = current_domain.repository_for(StockItem)
        item = repo.get(command.stock_item_id)
        item.change_price(command.unit_price)
        repo.add(item)
