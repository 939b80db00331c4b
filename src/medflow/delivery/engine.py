"""Offers orders to delivery agents and tracks the hand-over.

Locks are taken in the order delivery, then order. A status update holds the
assignment's lock while it drives the order (and, for cash orders, the
payment) so that two updates on one assignment cannot interleave.
"""

from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from medflow import config
from medflow.delivery.assignment import DeliveryAssignment, DeliveryStatus
from medflow.delivery.tracking import AcceptDelivery, FailDelivery, OfferDelivery, UpdateDeliveryStatus
from medflow.errors import DeliveryAlreadyOffered, Forbidden, InvalidTransition
from medflow.locking import entity_lock
from medflow.ordering import service as orders
from medflow.ordering.order import OrderStatus
from medflow.ordering.permissions import ActorRole, as_role
from medflow.payments import orchestrator as payments
from medflow.payments.payment import PaymentStatus

logger = structlog.get_logger(__name__)

_OFFERABLE = {OrderStatus.CONFIRMED, OrderStatus.READY}
_HANDOVER = {OrderStatus.CONFIRMED, OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED}


def get(assignment_id) -> DeliveryAssignment:
    return current_domain.repository_for(DeliveryAssignment).get(str(assignment_id))


def assignments_for_order(order_id) -> list[DeliveryAssignment]:
    repo = current_domain.repository_for(DeliveryAssignment)
    return repo._dao.query.filter(order_id=str(order_id)).all().items


def active_assignment_for(order_id) -> DeliveryAssignment | None:
    return next((a for a in assignments_for_order(order_id) if a.is_active), None)


def offer(order_id, actor_role=ActorRole.SYSTEM, actor_id=None) -> DeliveryAssignment:
    """Put a confirmed or ready order up for agents.

    An order has at most one live assignment. Offering again after a failed
    delivery creates a fresh assignment; the failed one stays for audit.
    Only the fulfilling facility (or an admin) may offer.
    """
    role = as_role(actor_role)
    with entity_lock("order", order_id):
        order = orders.get(order_id)
        _assert_facility_side(order.facility_id, role, actor_id, "offer")
        if OrderStatus(order.status) not in _OFFERABLE:
            raise InvalidTransition(f"Order is {order.status}; only confirmed or ready orders can be offered")
        if active_assignment_for(order.id) is not None:
            raise DeliveryAlreadyOffered(f"Order {order.id} already has a live delivery assignment")

        assignment_id = current_domain.process(
            OfferDelivery(
                order_id=str(order.id),
                order_number=order.order_number,
                buyer_id=str(order.buyer_id),
                facility_id=str(order.facility_id),
                offer_timeout_minutes=config.offer_timeout_minutes(),
            ),
            asynchronous=False,
        )

    logger.info("Delivery offered", assignment_id=assignment_id, order_id=str(order_id))
    return get(assignment_id)


def list_available(limit: int | None = None) -> list[DeliveryAssignment]:
    """Unassigned offers, oldest first."""
    limit = limit or config.available_deliveries_limit()
    repo = current_domain.repository_for(DeliveryAssignment)
    return (
        repo._dao.query.filter(status=DeliveryStatus.PENDING.value)
        .order_by("offered_at")
        .limit(limit)
        .all()
        .items
    )


def accept(assignment_id, agent_id, actor_role=ActorRole.DELIVERY_AGENT) -> DeliveryAssignment:
    """First caller wins; everyone after gets ``AlreadyAssigned``."""
    if as_role(actor_role) != ActorRole.DELIVERY_AGENT:
        raise Forbidden("Only delivery agents may accept deliveries")
    if not agent_id:
        raise Forbidden("Accepting a delivery needs the agent's id")

    with entity_lock("delivery", assignment_id):
        current_domain.process(
            AcceptDelivery(assignment_id=str(assignment_id), agent_id=str(agent_id)),
            asynchronous=False,
        )

    logger.info("Delivery accepted", assignment_id=str(assignment_id), agent_id=str(agent_id))
    return get(assignment_id)


_FACILITY_SIDE = {ActorRole.FACILITY, ActorRole.ADMIN, ActorRole.SYSTEM}


def _assert_facility_side(facility_id, role, actor_id, action):
    if role not in _FACILITY_SIDE:
        raise Forbidden(f"{role.value} may not {action} a delivery")
    if role == ActorRole.FACILITY and actor_id is not None and str(actor_id) != str(facility_id):
        raise Forbidden(f"Only the fulfilling facility may {action} this delivery")


def _assert_can_update(assignment, role, agent_id):
    if role in {ActorRole.ADMIN, ActorRole.SYSTEM}:
        return
    if role != ActorRole.DELIVERY_AGENT:
        raise Forbidden(f"{role.value} may not update a delivery")
    if assignment.agent_id is None or str(assignment.agent_id) != str(agent_id):
        raise Forbidden("Only the assigned agent may update this delivery")


def update_status(
    assignment_id,
    status,
    latitude=None,
    longitude=None,
    notes=None,
    agent_id=None,
    actor_role=ActorRole.DELIVERY_AGENT,
) -> DeliveryAssignment:
    """Move a delivery forward and keep the order in step with it.

    ``picked_up`` brings the order to out_for_delivery; ``delivered`` brings
    it to delivered and collects a pending cash payment.
    """
    try:
        target = DeliveryStatus(status)
    except ValueError:
        raise InvalidTransition(f"Unknown delivery status: {status}") from None
    role = as_role(actor_role)

    with entity_lock("delivery", assignment_id):
        assignment = get(assignment_id)
        _assert_can_update(assignment, role, agent_id)

        if target in {DeliveryStatus.PICKED_UP, DeliveryStatus.DELIVERED}:
            order = orders.get(assignment.order_id)
            if OrderStatus(order.status) not in _HANDOVER:
                raise InvalidTransition(f"Order is {order.status}; the delivery cannot move to {target.value}")

        changed = current_domain.process(
            UpdateDeliveryStatus(
                assignment_id=str(assignment.id),
                status=target.value,
                latitude=latitude,
                longitude=longitude,
                notes=notes,
            ),
            asynchronous=False,
        )

        if changed and target == DeliveryStatus.PICKED_UP:
            orders.advance_to(assignment.order_id, OrderStatus.OUT_FOR_DELIVERY)
        elif changed and target == DeliveryStatus.DELIVERED:
            on_delivered(assignment.order_id)

    logger.info("Delivery status updated", assignment_id=str(assignment_id), status=target.value, ping=not changed)
    return get(assignment_id)


def on_delivered(order_id) -> None:
    """Hand-over complete: the order is delivered and cash is collected."""
    collect_cash(orders.advance_to(order_id, OrderStatus.DELIVERED))


def collect_cash(order) -> None:
    """Complete the pending cash payment of a delivered order, if it has one."""
    if not order.payment_id:
        return

    payment = payments.get(order.payment_id)
    if payment.is_cash and PaymentStatus(payment.status) == PaymentStatus.PENDING:
        payments.complete_cash_payment(payment.id)


def fail(assignment_id, reason, actor_role=ActorRole.SYSTEM, actor_id=None) -> DeliveryAssignment:
    """Terminal; re-offering the order is an explicit facility action.

    The facility side may fail any live delivery; an agent only the one
    assigned to them.
    """
    role = as_role(actor_role)
    with entity_lock("delivery", assignment_id):
        assignment = get(assignment_id)
        if role == ActorRole.DELIVERY_AGENT:
            _assert_can_update(assignment, role, actor_id)
        else:
            _assert_facility_side(assignment.facility_id, role, actor_id, "fail")
        current_domain.process(
            FailDelivery(assignment_id=str(assignment_id), reason=reason),
            asynchronous=False,
        )

    logger.info("Delivery failed", assignment_id=str(assignment_id), reason=reason)
    return get(assignment_id)


def withdraw_for_order(order_id, reason) -> list[str]:
    """Fail every live assignment of an order that will no longer be delivered."""
    withdrawn = []
    for assignment in assignments_for_order(order_id):
        if assignment.is_active and DeliveryStatus(assignment.status) != DeliveryStatus.DELIVERED:
            fail(assignment.id, reason)
            withdrawn.append(str(assignment.id))
    return withdrawn


def _aware(moment):
    return moment.replace(tzinfo=UTC) if moment.tzinfo is None else moment


def expire_stale_offers(now=None) -> list[str]:
    """Fail pending offers nobody accepted before their deadline."""
    now = _aware(now or datetime.now(UTC))
    repo = current_domain.repository_for(DeliveryAssignment)
    pending = repo._dao.query.filter(status=DeliveryStatus.PENDING.value).order_by("offered_at").all().items

    expired = []
    for assignment in pending:
        if assignment.offer_expires_at is None or _aware(assignment.offer_expires_at) > now:
            continue
        try:
            fail(assignment.id, "offer_timeout")
        except InvalidTransition:
            # Accepted between the query and the lock
            continue
        expired.append(str(assignment.id))

    if expired:
        logger.info("Stale delivery offers expired", count=len(expired))
    return expired
