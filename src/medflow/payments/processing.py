"""Commands that move a payment between states.

Only the payment orchestrator issues these; each one loads, mutates and
saves a single Payment.
"""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from medflow.domain import medflow
from medflow.payments.payment import Payment


@medflow.command(part_of="Payment")
class InitiatePayment:
    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    method = String(required=True, max_length=30)
    amount = Float(required=True)
    currency = String(max_length=3)
    phone_number = String(max_length=30)


@medflow.command(part_of="Payment")
class RecordProviderReference:
    payment_id = Identifier(required=True)
    provider_ref = String(required=True, max_length=255)


@medflow.command(part_of="Payment")
class CompletePayment:
    payment_id = Identifier(required=True)
    provider_ref = String(max_length=255)


@medflow.command(part_of="Payment")
class CompleteCashPayment:
    """Cash was collected when the delivery was handed over."""

    payment_id = Identifier(required=True)


@medflow.command(part_of="Payment")
class FailPayment:
    payment_id = Identifier(required=True)
    reason = String(max_length=500)


@medflow.command(part_of="Payment")
class RefundPayment:
    payment_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    refund_ref = String(max_length=255)


@medflow.command_handler(part_of=Payment)
class PaymentHandler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        payment = Payment.initiate(
            order_id=command.order_id,
            buyer_id=command.buyer_id,
            facility_id=command.facility_id,
            method=command.method,
            amount=command.amount,
            currency=command.currency,
            phone_number=command.phone_number,
        )
        current_domain.repository_for(Payment).add(payment)
        return str(payment.id)

    @handle(RecordProviderReference)
    def record_provider_reference(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.record_reference(command.provider_ref)
        repo.add(payment)

    @handle(CompletePayment)
    def complete_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.complete(provider_ref=command.provider_ref)
        repo.add(payment)

    @handle(CompleteCashPayment)
    def complete_cash_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.complete_cash()
        repo.add(payment)

    @handle(FailPayment)
    def fail_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.fail(reason=command.reason)
        repo.add(payment)

    @handle(RefundPayment)
    def refund_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        payment.refund(reason=command.reason, refund_ref=command.refund_ref)
        repo.add(payment)
