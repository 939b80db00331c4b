"""Domain events for the Notification aggregate."""

from protean.fields import DateTime, Identifier, String

from medflow.domain import medflow


@medflow.event(part_of="Notification")
class NotificationCreated:
    """A notification was created and queued for dispatch."""

    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    recipient_role: String(required=True)
    notification_type: String(required=True)
    channel: String(required=True)
    subject: String()
    reference_id: String()
    created_at: DateTime(required=True)


@medflow.event(part_of="Notification")
class NotificationSent:
    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    channel: String(required=True)
    sent_at: DateTime(required=True)


@medflow.event(part_of="Notification")
class NotificationFailed:
    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    channel: String(required=True)
    reason: String(required=True)
    failed_at: DateTime(required=True)
