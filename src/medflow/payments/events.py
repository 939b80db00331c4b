"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from medflow.domain import medflow


@medflow.event(part_of="Payment")
class PaymentInitiated:
    """The buyer chose a payment method; the payment awaits settlement."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    method = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    phone_number = String()
    initiated_at = DateTime(required=True)


@medflow.event(part_of="Payment")
class PaymentReferenceRecorded:
    """The gateway accepted the charge and answered with a reference to verify later."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    provider_ref = String(required=True)
    recorded_at = DateTime(required=True)


@medflow.event(part_of="Payment")
class PaymentCompleted:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    method = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    provider_ref = String()
    completed_at = DateTime(required=True)


@medflow.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    method = String(required=True)
    amount = Float(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@medflow.event(part_of="Payment")
class PaymentRefunded:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    reason = String(required=True)
    refund_ref = String()
    refunded_at = DateTime(required=True)
