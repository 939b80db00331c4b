"""Drives a payment to settled or failed.

All work for one order's payment runs under that order's lock, so two
concurrent attempts cannot both pass the duplicate check. Cross-entity rules
(the amount equals the order total, one live payment per order) are checked
here before anything is written.

Gateway calls are bounded by ``MEDFLOW_GATEWAY_TIMEOUT_SECONDS``. A call that
does not answer in time, or raises, counts as a failed payment: the order
fails and its stock goes back on the shelf.
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

import structlog
from protean.utils.globals import current_domain

from medflow import config
from medflow.errors import AmountMismatch, DuplicatePayment, GatewayTimeout, InvalidTransition, RefundFailed
from medflow.locking import entity_lock
from medflow.ordering import service as orders
from medflow.ordering.order import OrderStatus
from medflow.ordering.transitions import AttachPayment
from medflow.payments.gateway import get_gateway
from medflow.payments.gateway.port import ChargeStatus
from medflow.payments.payment import Payment, PaymentMethod, PaymentStatus
from medflow.payments.processing import (
    CompleteCashPayment,
    CompletePayment,
    FailPayment,
    InitiatePayment,
    RecordProviderReference,
    RefundPayment,
)

logger = structlog.get_logger(__name__)

_gateway_pool = ThreadPoolExecutor(max_workers=8, thread_name_prefix="medflow-gateway")

GATEWAY_TIMEOUT_REASON = "gateway_timeout"
GATEWAY_ERROR_REASON = "gateway_error"


def get(payment_id) -> Payment:
    return current_domain.repository_for(Payment).get(str(payment_id))


def _call_gateway(operation, *args, **kwargs):
    """Run a gateway call with the configured deadline."""
    timeout = config.gateway_timeout_seconds()
    future = _gateway_pool.submit(operation, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError:
        future.cancel()
        raise GatewayTimeout(f"Payment gateway did not answer within {timeout} seconds") from None


def _amounts_match(amount, total) -> bool:
    return round(float(amount), 2) == round(float(total), 2)


def process(order_id, method, amount, phone_number=None, provider_ref=None) -> Payment:
    """Open the order's payment and drive it as far as the method allows.

    Cash: the payment stays pending and the order is confirmed for
    cash-on-delivery. Card and mobile money: the gateway is charged; success
    confirms the order, failure or timeout fails it. A gateway that answers
    ``pending`` leaves the payment pending until ``verify`` resolves it.
    """
    with entity_lock("order", order_id):
        order = orders.get(order_id)
        live_payment = order.payment_id and PaymentStatus(get(order.payment_id).status) != PaymentStatus.FAILED
        if live_payment:
            raise DuplicatePayment(f"Order {order.id} already has payment {order.payment_id}")
        if OrderStatus(order.status) != OrderStatus.PENDING:
            raise InvalidTransition(f"Order is {order.status}, not awaiting payment")

        if not _amounts_match(amount, order.total):
            raise AmountMismatch(f"Payment amount {amount} does not match order total {order.total}")

        payment_id = current_domain.process(
            InitiatePayment(
                order_id=str(order.id),
                buyer_id=str(order.buyer_id),
                facility_id=str(order.facility_id),
                method=method,
                amount=order.total,
                currency=order.currency,
                phone_number=phone_number,
            ),
            asynchronous=False,
        )
        current_domain.process(
            AttachPayment(order_id=str(order.id), payment_id=payment_id, payment_method=method),
            asynchronous=False,
        )
        logger.info("Payment initiated", payment_id=payment_id, order_id=str(order.id), method=method)

        if PaymentMethod(method) == PaymentMethod.CASH:
            orders.on_payment_settled(order.id)
            logger.info("Cash on delivery accepted", payment_id=payment_id, order_id=str(order.id))
            return get(payment_id)

        if provider_ref:
            # The client already holds a provider reference (e.g. a card token
            # confirmed on the device); settle by verifying it.
            current_domain.process(
                RecordProviderReference(payment_id=payment_id, provider_ref=provider_ref),
                asynchronous=False,
            )
            return verify(payment_id)

        try:
            result = _call_gateway(
                get_gateway().charge,
                amount=order.total,
                currency=order.currency,
                method=method,
                phone_number=phone_number,
                idempotency_key=f"order-{order.id}",
            )
        except GatewayTimeout:
            logger.warning("Payment gateway timed out", payment_id=payment_id, order_id=str(order.id))
            return fail(payment_id, GATEWAY_TIMEOUT_REASON)
        except Exception:
            logger.exception("Payment gateway call failed", payment_id=payment_id, order_id=str(order.id))
            return fail(payment_id, GATEWAY_ERROR_REASON)

        return _apply_gateway_result(payment_id, result)


def _apply_gateway_result(payment_id, result) -> Payment:
    if result.status == ChargeStatus.SUCCEEDED:
        return settle(payment_id, result.transaction_ref)
    if result.status == ChargeStatus.FAILED:
        return fail(payment_id, result.failure_reason)

    payment = get(payment_id)
    if result.transaction_ref and payment.provider_ref != result.transaction_ref:
        current_domain.process(
            RecordProviderReference(payment_id=str(payment_id), provider_ref=result.transaction_ref),
            asynchronous=False,
        )
    logger.info("Payment awaiting confirmation", payment_id=str(payment_id), provider_ref=result.transaction_ref)
    return get(payment_id)


def settle(payment_id, provider_ref=None) -> Payment:
    """Mark the payment completed and confirm its order."""
    payment = get(payment_id)
    with entity_lock("order", payment.order_id):
        current_domain.process(
            CompletePayment(payment_id=str(payment.id), provider_ref=provider_ref),
            asynchronous=False,
        )
        logger.info("Payment completed", payment_id=str(payment.id), order_id=str(payment.order_id))
        _confirm_order(payment)
    return get(payment_id)


def _confirm_order(payment):
    try:
        orders.on_payment_settled(payment.order_id)
    except InvalidTransition:
        # The order left pending (e.g. the buyer cancelled) while the charge
        # was in flight. The money is kept on record for a refund.
        logger.warning(
            "Settled payment for an order that no longer awaits payment",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
        )


def fail(payment_id, reason=None) -> Payment:
    """Mark the payment failed, fail its order and release the order's stock."""
    payment = get(payment_id)
    with entity_lock("order", payment.order_id):
        payment = get(payment_id)
        if PaymentStatus(payment.status) != PaymentStatus.FAILED:
            current_domain.process(FailPayment(payment_id=str(payment.id), reason=reason), asynchronous=False)
            logger.info("Payment failed", payment_id=str(payment.id), order_id=str(payment.order_id), reason=reason)
        _fail_order(payment, reason)
    return get(payment_id)


def _fail_order(payment, reason):
    try:
        orders.on_payment_failed(payment.order_id, reason or "payment_failed")
    except InvalidTransition:
        logger.warning(
            "Failed payment for an order that no longer awaits payment",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
        )


def verify(payment_id) -> Payment:
    """Ask the gateway for the outcome of a pending charge and apply it."""
    payment = get(payment_id)
    with entity_lock("order", payment.order_id):
        payment = get(payment_id)
        status = PaymentStatus(payment.status)
        if status != PaymentStatus.PENDING or payment.is_cash:
            return reconcile(payment_id)
        if not payment.provider_ref:
            raise InvalidTransition(f"Payment {payment.id} has no gateway reference to verify")

        try:
            result = _call_gateway(get_gateway().verify, payment.provider_ref)
        except GatewayTimeout:
            logger.warning("Payment verification timed out", payment_id=str(payment.id))
            return fail(payment_id, GATEWAY_TIMEOUT_REASON)
        except Exception:
            logger.exception("Payment verification failed", payment_id=str(payment.id))
            return fail(payment_id, GATEWAY_ERROR_REASON)

        return _apply_gateway_result(payment_id, result)


def reconcile(payment_id) -> Payment:
    """Bring the order in line with a payment that already reached its outcome.

    Repairs the gap left when the process stops between the payment write and
    the order write. Calling it on a consistent pair changes nothing.
    """
    payment = get(payment_id)
    with entity_lock("order", payment.order_id):
        status = PaymentStatus(payment.status)
        if status == PaymentStatus.COMPLETED:
            _confirm_order(payment)
        elif status == PaymentStatus.FAILED:
            _fail_order(payment, payment.failure_reason)
    return get(payment_id)


def complete_cash_payment(payment_id) -> Payment:
    """Flip a cash payment to completed once the delivery is handed over."""
    payment = get(payment_id)
    with entity_lock("order", payment.order_id):
        current_domain.process(CompleteCashPayment(payment_id=str(payment.id)), asynchronous=False)
    logger.info("Cash payment collected", payment_id=str(payment.id), order_id=str(payment.order_id))
    return get(payment_id)


def refund(payment_id, reason) -> Payment:
    """Refund a completed payment. Stock is not touched: the goods may be out the door."""
    payment = get(payment_id)
    with entity_lock("order", payment.order_id):
        payment = get(payment_id)
        if PaymentStatus(payment.status) != PaymentStatus.COMPLETED:
            raise InvalidTransition(f"Only completed payments can be refunded, payment is {payment.status}")

        refund_ref = None
        if not payment.is_cash:
            try:
                result = _call_gateway(get_gateway().refund, payment.provider_ref, payment.amount, reason)
            except GatewayTimeout:
                raise RefundFailed("Payment gateway did not answer the refund request") from None
            except Exception as exc:
                logger.exception("Payment gateway refund call failed", payment_id=str(payment.id))
                raise RefundFailed(f"Payment gateway refund call failed: {exc}") from exc
            if not result.success:
                raise RefundFailed(result.failure_reason or "Refund declined by the payment gateway")
            refund_ref = result.refund_ref

        current_domain.process(
            RefundPayment(payment_id=str(payment.id), reason=reason, refund_ref=refund_ref),
            asynchronous=False,
        )

    logger.info("Payment refunded", payment_id=str(payment_id), reason=reason)
    return get(payment_id)
