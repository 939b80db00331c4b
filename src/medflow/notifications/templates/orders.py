"""Order lifecycle templates — sent to the buyer and the facility."""

from medflow.notifications.notification import NotificationChannel, NotificationType

_IN_APP = NotificationChannel.IN_APP.value
_SMS = NotificationChannel.SMS.value


class OrderPlacedTemplate:
    notification_type = NotificationType.ORDER_PLACED.value
    default_channels = [_IN_APP]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        total = context.get("total", 0.0)
        currency = context.get("currency", "")
        return {
            "subject": f"Order {number} placed",
            "body": f"Order {number} was placed for {currency} {total:.2f} and is awaiting payment.",
        }


class OrderConfirmedTemplate:
    notification_type = NotificationType.ORDER_CONFIRMED.value
    default_channels = [_IN_APP, _SMS]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Order {number} confirmed",
            "body": f"Your order {number} has been confirmed and will be prepared shortly.",
        }


class OrderReadyTemplate:
    notification_type = NotificationType.ORDER_READY.value
    default_channels = [_IN_APP]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Order {number} is ready",
            "body": f"Your order {number} is packed and waiting for a delivery agent.",
        }


class OrderOutForDeliveryTemplate:
    notification_type = NotificationType.ORDER_OUT_FOR_DELIVERY.value
    default_channels = [_IN_APP, _SMS]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Order {number} is on its way",
            "body": f"Your order {number} is out for delivery.",
        }


class OrderDeliveredTemplate:
    notification_type = NotificationType.ORDER_DELIVERED.value
    default_channels = [_IN_APP]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Order {number} delivered",
            "body": f"Your order {number} has been delivered. Thank you for your order.",
        }


class OrderCancelledTemplate:
    notification_type = NotificationType.ORDER_CANCELLED.value
    default_channels = [_IN_APP]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        reason = context.get("reason") or "No reason given"
        return {
            "subject": f"Order {number} cancelled",
            "body": f"Order {number} was cancelled by {context.get('cancelled_by', 'N/A')}. Reason: {reason}",
        }


class OrderFailedTemplate:
    notification_type = NotificationType.ORDER_FAILED.value
    default_channels = [_IN_APP]

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Order {number} could not be completed",
            "body": f"Payment for order {number} did not go through, so the order was not placed.",
        }
