"""Who may drive which order operation.

Roles come from the identity provider in front of the core; here they are
plain values checked against a small table per operation.
"""

from enum import Enum

from medflow.errors import Forbidden
from medflow.ordering.order import OrderStatus


class ActorRole(Enum):
    BUYER = "buyer"
    FACILITY = "facility"
    ADMIN = "admin"
    DELIVERY_AGENT = "delivery_agent"
    SYSTEM = "system"  # Internal calls from the delivery engine


_ADVANCE_ROLES = {
    OrderStatus.READY: {ActorRole.FACILITY, ActorRole.ADMIN, ActorRole.SYSTEM},
    OrderStatus.OUT_FOR_DELIVERY: {ActorRole.FACILITY, ActorRole.ADMIN, ActorRole.SYSTEM},
    OrderStatus.DELIVERED: {ActorRole.FACILITY, ActorRole.ADMIN, ActorRole.SYSTEM},
}

_CANCEL_ROLES = {ActorRole.BUYER, ActorRole.FACILITY, ActorRole.ADMIN, ActorRole.SYSTEM}


def as_role(value) -> ActorRole:
    if isinstance(value, ActorRole):
        return value
    try:
        return ActorRole(value)
    except ValueError:
        raise Forbidden(f"Unknown actor role: {value}") from None


def _assert_is_party(order, role, actor_id):
    if actor_id is None:
        return
    if role == ActorRole.BUYER and str(actor_id) != str(order.buyer_id):
        raise Forbidden("Only the ordering party may act on this order")
    if role == ActorRole.FACILITY and str(actor_id) != str(order.facility_id):
        raise Forbidden("Only the fulfilling facility may act on this order")


def assert_can_advance(order, target_status, role, actor_id=None):
    role = as_role(role)
    if role not in _ADVANCE_ROLES.get(target_status, set()):
        raise Forbidden(f"{role.value} may not move an order to {target_status.value}")
    _assert_is_party(order, role, actor_id)


def assert_can_cancel(order, role, actor_id=None):
    role = as_role(role)
    if role not in _CANCEL_ROLES:
        raise Forbidden(f"{role.value} may not cancel orders")
    _assert_is_party(order, role, actor_id)
