"""Internal dispatch handler — sends notifications via channel adapters.

Reacts to NotificationCreated events and dispatches via the notification's
channel adapter. Updates the notification status to SENT or FAILED based
on the result.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from medflow.domain import medflow
from medflow.notifications.channel import get_channel
from medflow.notifications.events import NotificationCreated
from medflow.notifications.helpers import best_effort
from medflow.notifications.notification import Notification, NotificationStatus

logger = structlog.get_logger(__name__)


@medflow.event_handler(part_of=Notification)
class NotificationDispatcher:
    """Dispatches notifications via channel adapters when they are created."""

    @handle(NotificationCreated)
    @best_effort
    def on_notification_created(self, event: NotificationCreated) -> None:
        repo = current_domain.repository_for(Notification)

        try:
            notification = repo.get(event.notification_id)
        except ObjectNotFoundError:
            logger.error("Failed to load notification for dispatch", notification_id=str(event.notification_id))
            return

        if NotificationStatus(notification.status) != NotificationStatus.PENDING:
            logger.info(
                "Notification not in PENDING status, skipping dispatch",
                notification_id=str(event.notification_id),
                status=notification.status,
            )
            return

        try:
            result = get_channel(notification.channel).send(
                to=notification.address or str(notification.recipient_id),
                subject=notification.subject or "",
                body=notification.body,
            )
            if result.get("status") == "sent":
                notification.mark_sent()
            else:
                notification.mark_failed(result.get("error") or "Unknown dispatch error")
        except Exception as exc:
            notification.mark_failed(str(exc))
            logger.error("Notification dispatch failed", notification_id=str(notification.id), error=str(exc))

        repo.add(notification)
