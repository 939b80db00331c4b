"""Payment templates."""

from medflow.notifications.notification import NotificationChannel, NotificationType


class PaymentReceivedTemplate:
    notification_type = NotificationType.PAYMENT_RECEIVED.value
    default_channels = [NotificationChannel.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        amount = context.get("amount", 0.0)
        currency = context.get("currency", "")
        method = str(context.get("method", "")).replace("_", " ")
        return {
            "subject": "Payment received",
            "body": f"A {method} payment of {currency} {amount:.2f} was received.",
        }


class PaymentFailedTemplate:
    notification_type = NotificationType.PAYMENT_FAILED.value
    default_channels = [NotificationChannel.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        reason = context.get("reason") or "unknown reason"
        return {
            "subject": "Payment failed",
            "body": f"Your payment could not be completed ({reason}).",
        }


class PaymentRefundedTemplate:
    notification_type = NotificationType.PAYMENT_REFUNDED.value
    default_channels = [NotificationChannel.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        amount = context.get("amount", 0.0)
        currency = context.get("currency", "")
        return {
            "subject": "Payment refunded",
            "body": f"{currency} {amount:.2f} was refunded. Reason: {context.get('reason', 'N/A')}",
        }
