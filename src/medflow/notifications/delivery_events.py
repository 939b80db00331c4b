"""Notifications react to DeliveryAssignment events.

Location pings are not announced; only real status changes are.
"""

from protean.utils.mixins import handle

from medflow.delivery.events import DeliveryAccepted, DeliveryFailed, DeliveryStatusUpdated
from medflow.domain import medflow
from medflow.notifications.helpers import Recipient, best_effort, notify
from medflow.notifications.notification import Notification, NotificationType, RecipientRole


def _recipients(event, *roles):
    ids = {
        RecipientRole.BUYER: event.buyer_id,
        RecipientRole.FACILITY: event.facility_id,
        RecipientRole.AGENT: event.agent_id,
    }
    return [Recipient(str(ids[role]), role.value) for role in roles if ids[role]]


@medflow.event_handler(part_of=Notification, stream_category="medflow::delivery_assignment")
class DeliveryEventsHandler:
    @handle(DeliveryAccepted)
    @best_effort
    def on_delivery_accepted(self, event: DeliveryAccepted) -> None:
        notify(
            _recipients(event, RecipientRole.BUYER, RecipientRole.FACILITY, RecipientRole.AGENT),
            NotificationType.DELIVERY_ASSIGNED.value,
            {"order_number": event.order_number, "agent_id": str(event.agent_id)},
            reference_id=str(event.assignment_id),
            source_event_type="DeliveryAccepted",
        )

    @handle(DeliveryStatusUpdated)
    @best_effort
    def on_delivery_status_updated(self, event: DeliveryStatusUpdated) -> None:
        notify(
            _recipients(event, RecipientRole.BUYER, RecipientRole.AGENT),
            NotificationType.DELIVERY_UPDATE.value,
            {"order_number": event.order_number, "status": event.new_status},
            reference_id=str(event.assignment_id),
            source_event_type="DeliveryStatusUpdated",
        )

    @handle(DeliveryFailed)
    @best_effort
    def on_delivery_failed(self, event: DeliveryFailed) -> None:
        notify(
            _recipients(event, RecipientRole.BUYER, RecipientRole.FACILITY, RecipientRole.AGENT),
            NotificationType.DELIVERY_FAILED.value,
            {"order_number": event.order_number, "reason": event.reason},
            reference_id=str(event.assignment_id),
            source_event_type="DeliveryFailed",
        )
