"""Notifications react to stock item events.

Listens for LowStockDetected to alert the facility that owns the shelf.
"""

from protean.utils.mixins import handle

from medflow.domain import medflow
from medflow.inventory.events import LowStockDetected
from medflow.notifications.helpers import Recipient, best_effort, notify
from medflow.notifications.notification import Notification, NotificationType, RecipientRole


@medflow.event_handler(part_of=Notification, stream_category="medflow::stock_item")
class StockEventsHandler:
    @handle(LowStockDetected)
    @best_effort
    def on_low_stock_detected(self, event: LowStockDetected) -> None:
        notify(
            [Recipient(str(event.facility_id), RecipientRole.FACILITY.value)],
            NotificationType.LOW_STOCK_ALERT.value,
            {
                "name": event.name,
                "medicine_id": str(event.medicine_id),
                "current_quantity": event.current_quantity,
                "reorder_threshold": event.reorder_threshold,
            },
            reference_id=str(event.stock_item_id),
            source_event_type="LowStockDetected",
        )
