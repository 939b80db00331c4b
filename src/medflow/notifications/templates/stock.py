"""Low stock alert template — sent to the facility."""

from medflow.notifications.notification import NotificationChannel, NotificationType


class LowStockAlertTemplate:
    notification_type = NotificationType.LOW_STOCK_ALERT.value
    default_channels = [NotificationChannel.IN_APP.value]

    @staticmethod
    def render(context: dict) -> dict:
        name = context.get("name", "N/A")
        return {
            "subject": f"[Low Stock] {name}",
            "body": (
                f"Low stock alert for {name}\n\n"
                f"Current quantity: {context.get('current_quantity', 0)}\n"
                f"Reorder threshold: {context.get('reorder_threshold', 0)}\n\n"
                "Please review and reorder as needed."
            ),
        }
