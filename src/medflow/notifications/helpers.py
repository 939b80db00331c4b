"""Shared helpers for notification event handlers.

Provides the common pattern: render template → pick channels →
create one Notification per recipient per channel.
"""

from dataclasses import dataclass
from functools import wraps

import structlog
from protean.utils.globals import current_domain

from medflow.notifications.notification import Notification, NotificationChannel
from medflow.notifications.templates import get_template

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Recipient:
    recipient_id: str
    role: str
    phone: str | None = None


def best_effort(handler):
    """Log and swallow whatever a notification handler raises.

    With synchronous event processing the handler runs inside the unit of
    work of the transition that raised the event, which must commit anyway.
    """

    @wraps(handler)
    def wrapper(self, event):
        try:
            handler(self, event)
        except Exception:
            logger.exception(
                "Notification handler failed",
                handler=handler.__qualname__,
                event_type=type(event).__name__,
            )

    return wrapper


def _channels_for(recipient: Recipient, default_channels):
    # SMS needs a number to go to
    return [
        channel
        for channel in default_channels
        if channel != NotificationChannel.SMS.value or recipient.phone
    ]


def notify(
    recipients,
    notification_type: str,
    context: dict,
    reference_id: str | None = None,
    source_event_type: str | None = None,
) -> list[str]:
    """Create notifications for every recipient on the template's channels.

    Best-effort: a failure for one recipient is logged and the rest still
    go out. Nothing raised here reaches the transition that triggered it.

    Returns:
        List of notification IDs created.
    """
    template_cls = get_template(notification_type)
    rendered = template_cls.render(context)
    repo = current_domain.repository_for(Notification)

    notification_ids = []
    for recipient in recipients:
        if not recipient.recipient_id:
            continue
        for channel in _channels_for(recipient, template_cls.default_channels):
            try:
                notification = Notification.create(
                    recipient_id=recipient.recipient_id,
                    recipient_role=recipient.role,
                    notification_type=notification_type,
                    channel=channel,
                    subject=rendered.get("subject"),
                    body=rendered["body"],
                    address=recipient.phone if channel == NotificationChannel.SMS.value else None,
                    reference_id=reference_id,
                    source_event_type=source_event_type,
                )
                repo.add(notification)
                notification_ids.append(str(notification.id))
            except Exception:
                logger.exception(
                    "Failed to create notification",
                    recipient_id=str(recipient.recipient_id),
                    notification_type=notification_type,
                    channel=channel,
                )

    logger.info(
        "Notifications created",
        notification_type=notification_type,
        reference_id=reference_id,
        count=len(notification_ids),
    )
    return notification_ids
