"""Payment aggregate (Event Sourced) — one payment per order.

State Machine:
    PENDING → COMPLETED → REFUNDED
    PENDING → FAILED

Card and mobile-money payments settle when the gateway confirms the charge.
Cash payments stay PENDING until the delivery is marked delivered.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from medflow import config
from medflow.domain import medflow
from medflow.errors import InvalidTransition
from medflow.payments.events import (
    PaymentCompleted,
    PaymentFailed,
    PaymentInitiated,
    PaymentReferenceRecorded,
    PaymentRefunded,
)


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    MOBILE_MONEY = "mobile_money"
    CARD = "card"
    CASH = "cash"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),  # Terminal
    PaymentStatus.REFUNDED: set(),  # Terminal
}


@medflow.aggregate(is_event_sourced=True)
class Payment:
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    method = String(choices=PaymentMethod, required=True)
    amount = Float(min_value=0.0)
    currency = String(max_length=3)
    phone_number = String(max_length=30)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    provider_ref = String(max_length=255)
    failure_reason = String(max_length=500)
    refund_reason = String(max_length=500)
    refund_ref = String(max_length=255)
    initiated_at = DateTime()
    completed_at = DateTime()
    failed_at = DateTime()
    refunded_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def initiate(cls, order_id, buyer_id, facility_id, method, amount, currency=None, phone_number=None):
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise ValidationError({"method": [f"Unsupported payment method: {method}"]}) from None
        if method == PaymentMethod.MOBILE_MONEY and not phone_number:
            raise ValidationError({"phone_number": ["Mobile money payments need a phone number"]})

        payment = cls._create_new()
        payment.raise_(
            PaymentInitiated(
                payment_id=str(payment.id),
                order_id=str(order_id),
                buyer_id=str(buyer_id),
                facility_id=str(facility_id),
                method=method.value,
                amount=amount,
                currency=currency or config.default_currency(),
                phone_number=phone_number,
                initiated_at=datetime.now(UTC),
            )
        )
        return payment

    def _assert_can_transition(self, target_status):
        current = PaymentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot transition payment from {current.value} to {target_status.value}")

    def _facts(self):
        return {
            "payment_id": str(self.id),
            "order_id": str(self.order_id),
            "buyer_id": str(self.buyer_id),
            "facility_id": str(self.facility_id),
        }

    @property
    def is_cash(self) -> bool:
        return PaymentMethod(self.method) == PaymentMethod.CASH

    def record_reference(self, provider_ref):
        if PaymentStatus(self.status) != PaymentStatus.PENDING:
            raise InvalidTransition(f"Payment is {self.status}, not awaiting the gateway")
        self.raise_(
            PaymentReferenceRecorded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                provider_ref=provider_ref,
                recorded_at=datetime.now(UTC),
            )
        )

    def complete(self, provider_ref=None):
        """Settle the payment. Completing an already completed payment is a no-op."""
        if PaymentStatus(self.status) == PaymentStatus.COMPLETED:
            return
        self._assert_can_transition(PaymentStatus.COMPLETED)
        self.raise_(
            PaymentCompleted(
                **self._facts(),
                method=self.method,
                amount=self.amount,
                currency=self.currency,
                provider_ref=provider_ref or self.provider_ref,
                completed_at=datetime.now(UTC),
            )
        )

    def complete_cash(self):
        """Collect cash on delivery."""
        if not self.is_cash:
            raise ValidationError({"method": [f"Payment {self.id} is {self.method}, not cash"]})
        self.complete()

    def fail(self, reason):
        self._assert_can_transition(PaymentStatus.FAILED)
        self.raise_(
            PaymentFailed(
                **self._facts(),
                method=self.method,
                amount=self.amount,
                reason=reason,
                failed_at=datetime.now(UTC),
            )
        )

    def refund(self, reason, refund_ref=None):
        if not reason:
            raise ValidationError({"reason": ["A refund needs a reason"]})
        self._assert_can_transition(PaymentStatus.REFUNDED)
        self.raise_(
            PaymentRefunded(
                **self._facts(),
                amount=self.amount,
                currency=self.currency,
                reason=reason,
                refund_ref=refund_ref,
                refunded_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_payment_initiated(self, event: PaymentInitiated):
        self.id = event.payment_id
        self.order_id = event.order_id
        self.buyer_id = event.buyer_id
        self.facility_id = event.facility_id
        self.method = event.method
        self.amount = event.amount
        self.currency = event.currency
        self.phone_number = event.phone_number
        self.status = PaymentStatus.PENDING.value
        self.initiated_at = event.initiated_at
        self.updated_at = event.initiated_at

    @apply
    def _on_reference_recorded(self, event: PaymentReferenceRecorded):
        self.provider_ref = event.provider_ref
        self.updated_at = event.recorded_at

    @apply
    def _on_payment_completed(self, event: PaymentCompleted):
        self.status = PaymentStatus.COMPLETED.value
        self.provider_ref = event.provider_ref
        self.completed_at = event.completed_at
        self.updated_at = event.completed_at

    @apply
    def _on_payment_failed(self, event: PaymentFailed):
        self.status = PaymentStatus.FAILED.value
        self.failure_reason = event.reason
        self.failed_at = event.failed_at
        self.updated_at = event.failed_at

    @apply
    def _on_payment_refunded(self, event: PaymentRefunded):
        self.status = PaymentStatus.REFUNDED.value
        self.refund_reason = event.reason
        self.refund_ref = event.refund_ref
        self.refunded_at = event.refunded_at
        self.updated_at = event.refunded_at
