"""Notifications react to Order events.

Buyer and facility hear about every transition; the buyer also gets an SMS
for the steps that matter on the doorstep, when the order carries a phone.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from medflow.domain import medflow
from medflow.notifications.helpers import Recipient, best_effort, notify
from medflow.notifications.notification import Notification, NotificationType, RecipientRole
from medflow.ordering.events import (
    OrderCancelled,
    OrderConfirmed,
    OrderDelivered,
    OrderFailed,
    OrderOutForDelivery,
    OrderPlaced,
    OrderReady,
)
from medflow.ordering.order import Order

logger = structlog.get_logger(__name__)


def _buyer_phone(order_id):
    try:
        return current_domain.repository_for(Order).get(str(order_id)).delivery_phone
    except ObjectNotFoundError:
        logger.warning("Order not found for notification", order_id=str(order_id))
        return None


def _buyer(event, phone=None):
    return Recipient(str(event.buyer_id), RecipientRole.BUYER.value, phone)


def _facility(event):
    return Recipient(str(event.facility_id), RecipientRole.FACILITY.value)


@medflow.event_handler(part_of=Notification, stream_category="medflow::order")
class OrderEventsHandler:
    @handle(OrderPlaced)
    @best_effort
    def on_order_placed(self, event: OrderPlaced) -> None:
        notify(
            [_buyer(event), _facility(event)],
            NotificationType.ORDER_PLACED.value,
            {"order_number": event.order_number, "total": event.total, "currency": event.currency},
            reference_id=str(event.order_id),
            source_event_type="OrderPlaced",
        )

    @handle(OrderConfirmed)
    @best_effort
    def on_order_confirmed(self, event: OrderConfirmed) -> None:
        notify(
            [_buyer(event, _buyer_phone(event.order_id)), _facility(event)],
            NotificationType.ORDER_CONFIRMED.value,
            {"order_number": event.order_number, "payment_method": event.payment_method},
            reference_id=str(event.order_id),
            source_event_type="OrderConfirmed",
        )

    @handle(OrderReady)
    @best_effort
    def on_order_ready(self, event: OrderReady) -> None:
        notify(
            [_buyer(event)],
            NotificationType.ORDER_READY.value,
            {"order_number": event.order_number},
            reference_id=str(event.order_id),
            source_event_type="OrderReady",
        )

    @handle(OrderOutForDelivery)
    @best_effort
    def on_order_out_for_delivery(self, event: OrderOutForDelivery) -> None:
        notify(
            [_buyer(event, _buyer_phone(event.order_id))],
            NotificationType.ORDER_OUT_FOR_DELIVERY.value,
            {"order_number": event.order_number},
            reference_id=str(event.order_id),
            source_event_type="OrderOutForDelivery",
        )

    @handle(OrderDelivered)
    @best_effort
    def on_order_delivered(self, event: OrderDelivered) -> None:
        notify(
            [_buyer(event), _facility(event)],
            NotificationType.ORDER_DELIVERED.value,
            {"order_number": event.order_number},
            reference_id=str(event.order_id),
            source_event_type="OrderDelivered",
        )

    @handle(OrderCancelled)
    @best_effort
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        notify(
            [_buyer(event), _facility(event)],
            NotificationType.ORDER_CANCELLED.value,
            {"order_number": event.order_number, "reason": event.reason, "cancelled_by": event.cancelled_by},
            reference_id=str(event.order_id),
            source_event_type="OrderCancelled",
        )

    @handle(OrderFailed)
    @best_effort
    def on_order_failed(self, event: OrderFailed) -> None:
        notify(
            [_buyer(event)],
            NotificationType.ORDER_FAILED.value,
            {"order_number": event.order_number, "reason": event.reason},
            reference_id=str(event.order_id),
            source_event_type="OrderFailed",
        )
