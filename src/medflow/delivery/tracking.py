"""Delivery assignment commands and handler.

Each command loads, changes and saves one DeliveryAssignment. Orchestration
with orders and payments lives in ``medflow.delivery.engine``.
"""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from medflow.delivery.assignment import DeliveryAssignment, DeliveryStatus
from medflow.domain import medflow


@medflow.command(part_of="DeliveryAssignment")
class OfferDelivery:
    order_id = Identifier(required=True)
    order_number = String(max_length=40)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    offer_timeout_minutes = Integer(required=True, min_value=1)


@medflow.command(part_of="DeliveryAssignment")
class AcceptDelivery:
    assignment_id = Identifier(required=True)
    agent_id = Identifier(required=True)


@medflow.command(part_of="DeliveryAssignment")
class UpdateDeliveryStatus:
    assignment_id = Identifier(required=True)
    status = String(required=True, choices=DeliveryStatus)
    latitude = Float()
    longitude = Float()
    notes = String(max_length=500)


@medflow.command(part_of="DeliveryAssignment")
class FailDelivery:
    assignment_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@medflow.command_handler(part_of=DeliveryAssignment)
class DeliveryAssignmentHandler:
    @handle(OfferDelivery)
    def offer_delivery(self, command):
        assignment = DeliveryAssignment.offer(
            order_id=command.order_id,
            buyer_id=command.buyer_id,
            facility_id=command.facility_id,
            order_number=command.order_number,
            offer_timeout_minutes=command.offer_timeout_minutes,
        )
        current_domain.repository_for(DeliveryAssignment).add(assignment)
        return str(assignment.id)

    @handle(AcceptDelivery)
    def accept_delivery(self, command):
        repo = current_domain.repository_for(DeliveryAssignment)
        assignment = repo.get(command.assignment_id)
        assignment.accept(command.agent_id)
        repo.add(assignment)

    @handle(UpdateDeliveryStatus)
    def update_delivery_status(self, command):
        repo = current_domain.repository_for(DeliveryAssignment)
        assignment = repo.get(command.assignment_id)
        changed = assignment.update_status(
            DeliveryStatus(command.status),
            latitude=command.latitude,
            longitude=command.longitude,
            notes=command.notes,
        )
        repo.add(assignment)
        return changed

    @handle(FailDelivery)
    def fail_delivery(self, command):
        repo = current_domain.repository_for(DeliveryAssignment)
        assignment = repo.get(command.assignment_id)
        assignment.fail(command.reason)
        repo.add(assignment)
