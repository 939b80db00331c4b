"""Template registry — maps NotificationType to template classes.

Each template knows its default channels and how to render content
from event context data.
"""

from medflow.notifications.notification import NotificationType
from medflow.notifications.templates.deliveries import (
    DeliveryAssignedTemplate,
    DeliveryFailedTemplate,
    DeliveryUpdateTemplate,
)
from medflow.notifications.templates.orders import (
    OrderCancelledTemplate,
    OrderConfirmedTemplate,
    OrderDeliveredTemplate,
    OrderFailedTemplate,
    OrderOutForDeliveryTemplate,
    OrderPlacedTemplate,
    OrderReadyTemplate,
)
from medflow.notifications.templates.payments import (
    PaymentFailedTemplate,
    PaymentReceivedTemplate,
    PaymentRefundedTemplate,
)
from medflow.notifications.templates.stock import LowStockAlertTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    NotificationType.ORDER_PLACED.value: OrderPlacedTemplate,
    NotificationType.ORDER_CONFIRMED.value: OrderConfirmedTemplate,
    NotificationType.ORDER_READY.value: OrderReadyTemplate,
    NotificationType.ORDER_OUT_FOR_DELIVERY.value: OrderOutForDeliveryTemplate,
    NotificationType.ORDER_DELIVERED.value: OrderDeliveredTemplate,
    NotificationType.ORDER_CANCELLED.value: OrderCancelledTemplate,
    NotificationType.ORDER_FAILED.value: OrderFailedTemplate,
    NotificationType.PAYMENT_RECEIVED.value: PaymentReceivedTemplate,
    NotificationType.PAYMENT_FAILED.value: PaymentFailedTemplate,
    NotificationType.PAYMENT_REFUNDED.value: PaymentRefundedTemplate,
    NotificationType.DELIVERY_ASSIGNED.value: DeliveryAssignedTemplate,
    NotificationType.DELIVERY_UPDATE.value: DeliveryUpdateTemplate,
    NotificationType.DELIVERY_FAILED.value: DeliveryFailedTemplate,
    NotificationType.LOW_STOCK_ALERT.value: LowStockAlertTemplate,
}


def get_template(notification_type: str):
    """Look up a template class by notification type string."""
    template_cls = TEMPLATE_REGISTRY.get(notification_type)
    if template_cls is None:
        raise ValueError(f"No template registered for notification type: {notification_type}")
    return template_cls
