"""Operations the surrounding application calls on the lifecycle core.

Each operation returns an ``Outcome``. Business rejections, missing entities
and version conflicts come back as a failed outcome with a reason code the
caller can render; they never propagate as exceptions past this module.
Anything else (a broken store, a bug) still raises.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError

from medflow.delivery import engine as deliveries
from medflow.errors import PersistenceConflict, Rejection
from medflow.inventory import ledger
from medflow.ordering import drafts
from medflow.ordering import service as orders
from medflow.ordering.order import OrderStatus
from medflow.ordering.permissions import ActorRole
from medflow.payments import orchestrator as payments

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Outcome:
    ok: bool
    value: object = None
    reason: str | None = None
    messages: dict = field(default_factory=dict)
    retryable: bool = False

    @classmethod
    def success(cls, value):
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason, messages, retryable=False):
        return cls(ok=False, reason=reason, messages=messages, retryable=retryable)


def _attempt(operation, action, *args, **kwargs) -> Outcome:
    try:
        return Outcome.success(action(*args, **kwargs))
    except Rejection as exc:
        logger.info("Operation rejected", operation=operation, reason=exc.code, detail=exc.message)
        return Outcome.failure(exc.code, exc.messages, retryable=exc.retryable)
    except ExpectedVersionError as exc:
        conflict = PersistenceConflict(str(exc))
        logger.warning("Concurrent write detected", operation=operation, detail=str(exc))
        return Outcome.failure(conflict.code, conflict.messages, retryable=True)
    except ObjectNotFoundError as exc:
        logger.info("Entity not found", operation=operation, detail=str(exc))
        return Outcome.failure("not_found", {"_entity": [str(exc)]})
    except ValidationError as exc:
        logger.info("Invalid input", operation=operation, messages=exc.messages)
        return Outcome.failure("validation_error", exc.messages)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
def create_order(
    buyer_id,
    facility_id,
    items,
    address,
    delivery_phone=None,
    notes=None,
    prescription_id=None,
) -> Outcome:
    return _attempt(
        "create_order",
        orders.create,
        buyer_id=buyer_id,
        facility_id=facility_id,
        items=items,
        address=address,
        delivery_phone=delivery_phone,
        notes=notes,
        prescription_id=prescription_id,
    )


def _follow_up(operation, action, *args) -> None:
    """Run work that trails a committed transition.

    The transition stands whatever happens here; a rejected follow-up is
    logged for the operator instead of failing the whole operation.
    """
    try:
        action(*args)
    except ValidationError as exc:
        logger.warning("Follow-up step rejected", operation=operation, messages=exc.messages)


def _offer_if_unassigned(order_id):
    if deliveries.active_assignment_for(order_id) is None:
        deliveries.offer(order_id, ActorRole.SYSTEM)


def _close_handover(order):
    deliveries.withdraw_for_order(order.id, "delivered_without_agent")
    deliveries.collect_cash(order)


def _advance_and_follow_up(order_id, target_status, actor_role, actor_id):
    order = orders.advance(order_id, target_status, actor_role, actor_id)
    status = OrderStatus(order.status)
    if status == OrderStatus.READY:
        _follow_up("advance_order", _offer_if_unassigned, order.id)
    elif status == OrderStatus.DELIVERED:
        _follow_up("advance_order", _close_handover, order)
    return orders.get(order.id)


def advance_order(order_id, target_status, actor_role, actor_id=None) -> Outcome:
    """Facility-side progression.

    Reaching ``ready`` puts the order up for agents. Reaching ``delivered``
    closes any live delivery and collects a pending cash payment.
    """
    return _attempt("advance_order", _advance_and_follow_up, order_id, target_status, actor_role, actor_id)


def _cancel_and_withdraw(order_id, actor_role, actor_id, reason):
    order = orders.cancel(order_id, actor_role, actor_id=actor_id, reason=reason)
    _follow_up("cancel_order", deliveries.withdraw_for_order, order.id, "order_cancelled")
    return order


def cancel_order(order_id, actor_role, actor_id=None, reason=None) -> Outcome:
    return _attempt("cancel_order", _cancel_and_withdraw, order_id, actor_role, actor_id, reason)


def get_order(order_id) -> Outcome:
    return _attempt("get_order", orders.get, order_id)


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
def start_draft(buyer_id, facility_id) -> Outcome:
    return _attempt("start_draft", drafts.start, buyer_id, facility_id)


def add_draft_line(draft_id, stock_item_id, quantity) -> Outcome:
    return _attempt("add_draft_line", drafts.add_line, draft_id, stock_item_id, quantity)


def update_draft_line(draft_id, stock_item_id, quantity) -> Outcome:
    return _attempt("update_draft_line", drafts.update_line, draft_id, stock_item_id, quantity)


def remove_draft_line(draft_id, stock_item_id) -> Outcome:
    return _attempt("remove_draft_line", drafts.remove_line, draft_id, stock_item_id)


def abandon_draft(draft_id) -> Outcome:
    return _attempt("abandon_draft", drafts.abandon, draft_id)


def get_draft(draft_id) -> Outcome:
    return _attempt("get_draft", drafts.get, draft_id)


def checkout_draft(draft_id, address, delivery_phone=None, notes=None, prescription_id=None) -> Outcome:
    return _attempt(
        "checkout_draft",
        drafts.checkout,
        draft_id,
        address,
        delivery_phone=delivery_phone,
        notes=notes,
        prescription_id=prescription_id,
    )


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
def _initiate(order_id, method, phone_number, amount, provider_ref):
    if amount is None:
        amount = orders.get(order_id).total
    return payments.process(order_id, method, amount, phone_number=phone_number, provider_ref=provider_ref)


def initiate_payment(order_id, method, phone_number=None, amount=None, provider_ref=None) -> Outcome:
    """Pay for a pending order. ``amount`` defaults to the order total."""
    return _attempt("initiate_payment", _initiate, order_id, method, phone_number, amount, provider_ref)


def verify_payment(payment_id) -> Outcome:
    return _attempt("verify_payment", payments.verify, payment_id)


def refund_payment(payment_id, reason) -> Outcome:
    return _attempt("refund_payment", payments.refund, payment_id, reason)


def get_payment(payment_id) -> Outcome:
    return _attempt("get_payment", payments.get, payment_id)


# ---------------------------------------------------------------------------
# Deliveries
# ---------------------------------------------------------------------------
def offer_delivery(order_id, actor_role, actor_id=None) -> Outcome:
    return _attempt("offer_delivery", deliveries.offer, order_id, actor_role, actor_id)


def list_available_deliveries(limit=None) -> Outcome:
    return _attempt("list_available_deliveries", deliveries.list_available, limit)


def accept_delivery(assignment_id, agent_id, actor_role=ActorRole.DELIVERY_AGENT) -> Outcome:
    return _attempt("accept_delivery", deliveries.accept, assignment_id, agent_id, actor_role)


def update_delivery_status(
    assignment_id,
    status,
    latitude=None,
    longitude=None,
    notes=None,
    agent_id=None,
    actor_role=ActorRole.DELIVERY_AGENT,
) -> Outcome:
    return _attempt(
        "update_delivery_status",
        deliveries.update_status,
        assignment_id,
        status,
        latitude=latitude,
        longitude=longitude,
        notes=notes,
        agent_id=agent_id,
        actor_role=actor_role,
    )


def fail_delivery(assignment_id, reason, actor_role, actor_id=None) -> Outcome:
    return _attempt("fail_delivery", deliveries.fail, assignment_id, reason, actor_role, actor_id)


def get_delivery(assignment_id) -> Outcome:
    return _attempt("get_delivery", deliveries.get, assignment_id)


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------
def add_stock_item(
    facility_id,
    medicine_id,
    name,
    unit_price,
    quantity=0,
    reorder_threshold=None,
    requires_prescription=False,
    currency=None,
) -> Outcome:
    return _attempt(
        "add_stock_item",
        ledger.add_item,
        facility_id,
        medicine_id,
        name,
        unit_price,
        quantity=quantity,
        reorder_threshold=reorder_threshold,
        requires_prescription=requires_prescription,
        currency=currency,
    )


def receive_stock(stock_item_id, quantity, reference=None) -> Outcome:
    return _attempt("receive_stock", ledger.receive, stock_item_id, quantity, reference)


def change_price(stock_item_id, unit_price) -> Outcome:
    return _attempt("change_price", ledger.change_price, stock_item_id, unit_price)


def get_stock_item(stock_item_id) -> Outcome:
    return _attempt("get_stock_item", ledger.load, stock_item_id)
