"""Notification aggregate (CQRS) — one message to one recipient on one channel.

Notifications are created reactively from committed order, payment,
delivery and stock events, then dispatched through a channel adapter.

State Machine:
    PENDING → SENT
    PENDING → FAILED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text

from medflow.domain import medflow
from medflow.notifications.events import NotificationCreated, NotificationFailed, NotificationSent


class NotificationType(Enum):
    ORDER_PLACED = "order_placed"
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_READY = "order_ready"
    ORDER_OUT_FOR_DELIVERY = "order_out_for_delivery"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    ORDER_FAILED = "order_failed"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUNDED = "payment_refunded"
    DELIVERY_ASSIGNED = "delivery_assigned"
    DELIVERY_UPDATE = "delivery_update"
    DELIVERY_FAILED = "delivery_failed"
    LOW_STOCK_ALERT = "low_stock_alert"


class NotificationChannel(Enum):
    IN_APP = "in_app"
    SMS = "sms"


class NotificationStatus(Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class RecipientRole(Enum):
    BUYER = "buyer"
    FACILITY = "facility"
    AGENT = "delivery_agent"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.SENT: set(),  # Terminal
    NotificationStatus.FAILED: set(),  # Terminal
}


@medflow.aggregate
class Notification:
    """A single notification dispatched to a recipient via a channel."""

    # Recipient
    recipient_id: Identifier(required=True)
    recipient_role: String(choices=RecipientRole, required=True)
    address: String(max_length=200)  # Phone number for SMS; recipient id otherwise

    # Notification type and channel
    notification_type: String(choices=NotificationType, required=True)
    channel: String(choices=NotificationChannel, required=True)

    # Content
    subject: String(max_length=500)
    body: Text(required=True)

    # The order, payment, delivery or stock item this is about
    reference_id: String(max_length=200)
    source_event_type: String(max_length=200)

    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    sent_at: DateTime()
    failure_reason: String(max_length=500)
    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def create(
        cls,
        recipient_id,
        recipient_role,
        notification_type,
        channel,
        body,
        subject=None,
        address=None,
        reference_id=None,
        source_event_type=None,
    ):
        """Create a new notification in PENDING status."""
        now = datetime.now(UTC)

        notification = cls(
            recipient_id=recipient_id,
            recipient_role=recipient_role,
            address=address or str(recipient_id),
            notification_type=notification_type,
            channel=channel,
            subject=subject,
            body=body,
            reference_id=reference_id,
            source_event_type=source_event_type,
            status=NotificationStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        notification.raise_(
            NotificationCreated(
                notification_id=str(notification.id),
                recipient_id=str(recipient_id),
                recipient_role=recipient_role,
                notification_type=notification_type,
                channel=channel,
                subject=subject,
                reference_id=reference_id,
                created_at=now,
            )
        )
        return notification

    def _assert_can_transition(self, target_status):
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_sent(self, sent_at=None):
        self._assert_can_transition(NotificationStatus.SENT)

        now = sent_at or datetime.now(UTC)
        self.status = NotificationStatus.SENT.value
        self.sent_at = now
        self.updated_at = now

        self.raise_(
            NotificationSent(
                notification_id=str(self.id),
                recipient_id=str(self.recipient_id),
                channel=self.channel,
                sent_at=now,
            )
        )

    def mark_failed(self, reason):
        self._assert_can_transition(NotificationStatus.FAILED)

        now = datetime.now(UTC)
        self.status = NotificationStatus.FAILED.value
        self.failure_reason = reason
        self.updated_at = now

        self.raise_(
            NotificationFailed(
                notification_id=str(self.id),
                recipient_id=str(self.recipient_id),
                channel=self.channel,
                reason=reason,
                failed_at=now,
            )
        )
