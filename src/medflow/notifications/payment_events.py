"""Notifications react to Payment events."""

from protean.utils.mixins import handle

from medflow.domain import medflow
from medflow.notifications.helpers import Recipient, best_effort, notify
from medflow.notifications.notification import Notification, NotificationType, RecipientRole
from medflow.payments.events import PaymentCompleted, PaymentFailed, PaymentRefunded


def _parties(event):
    return [
        Recipient(str(event.buyer_id), RecipientRole.BUYER.value),
        Recipient(str(event.facility_id), RecipientRole.FACILITY.value),
    ]


@medflow.event_handler(part_of=Notification, stream_category="medflow::payment")
class PaymentEventsHandler:
    @handle(PaymentCompleted)
    @best_effort
    def on_payment_completed(self, event: PaymentCompleted) -> None:
        notify(
            _parties(event),
            NotificationType.PAYMENT_RECEIVED.value,
            {"amount": event.amount, "currency": event.currency, "method": event.method},
            reference_id=str(event.order_id),
            source_event_type="PaymentCompleted",
        )

    @handle(PaymentFailed)
    @best_effort
    def on_payment_failed(self, event: PaymentFailed) -> None:
        notify(
            [Recipient(str(event.buyer_id), RecipientRole.BUYER.value)],
            NotificationType.PAYMENT_FAILED.value,
            {"amount": event.amount, "method": event.method, "reason": event.reason},
            reference_id=str(event.order_id),
            source_event_type="PaymentFailed",
        )

    @handle(PaymentRefunded)
    @best_effort
    def on_payment_refunded(self, event: PaymentRefunded) -> None:
        notify(
            _parties(event),
            NotificationType.PAYMENT_REFUNDED.value,
            {"amount": event.amount, "currency": event.currency, "reason": event.reason},
            reference_id=str(event.order_id),
            source_event_type="PaymentRefunded",
        )
