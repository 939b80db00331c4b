"""Delivery templates — buyer, facility and agent updates."""

from medflow.notifications.notification import NotificationChannel, NotificationType

_LABELS = {
    "picked_up": "has been picked up",
    "in_transit": "is in transit",
    "delivered": "has been delivered",
}


class DeliveryAssignedTemplate:
    notification_type = NotificationType.DELIVERY_ASSIGNED.value
    default_channels = [NotificationChannel.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Delivery agent assigned to order {number}",
            "body": f"Agent {context.get('agent_id', 'N/A')} accepted the delivery of order {number}.",
        }


class DeliveryUpdateTemplate:
    notification_type = NotificationType.DELIVERY_UPDATE.value
    default_channels = [NotificationChannel.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        status = context.get("status", "")
        return {
            "subject": f"Delivery update for order {number}",
            "body": f"Your order {number} {_LABELS.get(status, f'is now {status}')}.",
        }


class DeliveryFailedTemplate:
    notification_type = NotificationType.DELIVERY_FAILED.value
    default_channels = [NotificationChannel.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        reason = context.get("reason") or "No reason given"
        return {
            "subject": f"Delivery of order {number} failed",
            "body": f"The delivery of order {number} failed ({reason}). The facility may offer it again.",
        }
