"""Domain events for the DeliveryAssignment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from medflow.domain import medflow


@medflow.event(part_of="DeliveryAssignment")
class DeliveryOffered:
    """An order was put up for delivery agents to accept."""

    __version__ = 1

    assignment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_number = String()
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    offered_at = DateTime(required=True)
    offer_expires_at = DateTime(required=True)


@medflow.event(part_of="DeliveryAssignment")
class DeliveryAccepted:
    __version__ = 1

    assignment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_number = String()
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    assigned_at = DateTime(required=True)


@medflow.event(part_of="DeliveryAssignment")
class DeliveryStatusUpdated:
    """The agent moved the delivery one step forward."""

    __version__ = 1

    assignment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_number = String()
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    agent_id = Identifier()
    previous_status = String(required=True)
    new_status = String(required=True)
    latitude = Float()
    longitude = Float()
    notes = String()
    updated_at = DateTime(required=True)


@medflow.event(part_of="DeliveryAssignment")
class DeliveryLocationUpdated:
    """A location ping without a status change."""

    __version__ = 1

    assignment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    agent_id = Identifier()
    status = String(required=True)
    latitude = Float(required=True)
    longitude = Float(required=True)
    recorded_at = DateTime(required=True)


@medflow.event(part_of="DeliveryAssignment")
class DeliveryFailed:
    __version__ = 1

    assignment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_number = String()
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    agent_id = Identifier()
    previous_status = String(required=True)
    reason = String()
    failed_at = DateTime(required=True)
