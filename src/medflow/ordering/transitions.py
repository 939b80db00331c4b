"""Commands and handler for order transitions.

One command per transition; each loads the order, applies the transition
(which raises before any event when the table forbids it) and saves.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from medflow.domain import medflow
from medflow.ordering.order import Order, OrderStatus


@medflow.command(part_of="Order")
class AttachPayment:
    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    payment_method = String(required=True)


@medflow.command(part_of="Order")
class ConfirmOrder:
    """Move a paid (or cash-on-delivery) order to confirmed."""

    order_id = Identifier(required=True)


@medflow.command(part_of="Order")
class AdvanceOrder:
    """Facility-side progression: ready, out_for_delivery, delivered."""

    order_id = Identifier(required=True)
    target_status = String(required=True, choices=OrderStatus)


@medflow.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    cancelled_by = String(required=True)


@medflow.command(part_of="Order")
class FailOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@medflow.command_handler(part_of=Order)
class OrderTransitionHandler:
    @handle(AttachPayment)
    def attach_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.attach_payment(command.payment_id, command.payment_method)
        repo.add(order)

    @handle(ConfirmOrder)
    def confirm_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.confirm()
        repo.add(order)

    @handle(AdvanceOrder)
    def advance_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.advance(OrderStatus(command.target_status))
        repo.add(order)

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(reason=command.reason, cancelled_by=command.cancelled_by)
        repo.add(order)

    @handle(FailOrder)
    def fail_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.fail(reason=command.reason)
        repo.add(order)
