"""DeliveryAssignment aggregate (CQRS) — one delivery attempt for one order.

State Machine:
    PENDING → ASSIGNED → PICKED_UP → IN_TRANSIT → DELIVERED
    {PENDING, ASSIGNED, PICKED_UP, IN_TRANSIT} → FAILED

``accept`` is the compare-and-set on ``agent_id``: it succeeds only while the
assignment is still PENDING with no agent. The engine runs it under the
assignment's lock, and the repository's version check rejects a stale write
coming from another process.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, ValueObject

from medflow.domain import medflow
from medflow.delivery.events import (
    DeliveryAccepted,
    DeliveryFailed,
    DeliveryLocationUpdated,
    DeliveryOffered,
    DeliveryStatusUpdated,
)
from medflow.errors import AlreadyAssigned, InvalidTransition


class DeliveryStatus(Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.ASSIGNED, DeliveryStatus.FAILED},
    DeliveryStatus.ASSIGNED: {DeliveryStatus.PICKED_UP, DeliveryStatus.FAILED},
    DeliveryStatus.PICKED_UP: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.FAILED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED, DeliveryStatus.FAILED},
    DeliveryStatus.DELIVERED: set(),  # Terminal
    DeliveryStatus.FAILED: set(),  # Terminal
}


@medflow.value_object(part_of="DeliveryAssignment")
class Location:
    """Last known position of the delivery. Both coordinates or neither."""

    latitude: Float(min_value=-90.0, max_value=90.0)
    longitude: Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def both_coordinates_required(self):
        if self.latitude is None or self.longitude is None:
            raise ValidationError({"coordinates": ["Both latitude and longitude are required"]})


@medflow.aggregate
class DeliveryAssignment:
    order_id = Identifier(required=True)
    order_number = String(max_length=40)
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    agent_id = Identifier()
    status = String(choices=DeliveryStatus, default=DeliveryStatus.PENDING.value)
    location = ValueObject(Location)
    notes = String(max_length=500)
    failure_reason = String(max_length=500)
    offered_at = DateTime()
    offer_expires_at = DateTime()
    assigned_at = DateTime()
    picked_up_at = DateTime()
    in_transit_at = DateTime()
    delivered_at = DateTime()
    failed_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def offer(cls, order_id, buyer_id, facility_id, order_number=None, offer_timeout_minutes=30):
        now = datetime.now(UTC)
        assignment = cls(
            order_id=order_id,
            order_number=order_number,
            buyer_id=buyer_id,
            facility_id=facility_id,
            status=DeliveryStatus.PENDING.value,
            offered_at=now,
            offer_expires_at=now + timedelta(minutes=offer_timeout_minutes),
            updated_at=now,
        )
        assignment.raise_(
            DeliveryOffered(
                assignment_id=str(assignment.id),
                order_id=str(order_id),
                order_number=order_number,
                buyer_id=str(buyer_id),
                facility_id=str(facility_id),
                offered_at=now,
                offer_expires_at=assignment.offer_expires_at,
            )
        )
        return assignment

    def _assert_can_transition(self, target_status: DeliveryStatus) -> None:
        current = DeliveryStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot move delivery from {current.value} to {target_status.value}")

    def _facts(self) -> dict:
        return {
            "assignment_id": str(self.id),
            "order_id": str(self.order_id),
            "order_number": self.order_number,
            "buyer_id": str(self.buyer_id),
            "facility_id": str(self.facility_id),
        }

    @property
    def is_active(self) -> bool:
        return DeliveryStatus(self.status) != DeliveryStatus.FAILED

    def accept(self, agent_id: str) -> None:
        """Claim the delivery for ``agent_id``. The first claim wins."""
        if self.agent_id is not None:
            raise AlreadyAssigned(f"Delivery {self.id} was already accepted by another agent")
        if DeliveryStatus(self.status) != DeliveryStatus.PENDING:
            raise InvalidTransition(f"Delivery {self.id} is {self.status} and cannot be accepted")

        now = datetime.now(UTC)
        self.agent_id = agent_id
        self.status = DeliveryStatus.ASSIGNED.value
        self.assigned_at = now
        self.updated_at = now
        self.raise_(DeliveryAccepted(**self._facts(), agent_id=str(agent_id), assigned_at=now))

    def update_status(
        self,
        status: DeliveryStatus,
        latitude: float | None = None,
        longitude: float | None = None,
        notes: str | None = None,
    ) -> bool:
        """Move the delivery forward, or record a location ping.

        Repeating the current status with coordinates is a ping; it only
        updates the last known location. Returns True when the status changed.
        """
        has_location = latitude is not None or longitude is not None
        location = Location(latitude=latitude, longitude=longitude) if has_location else None
        now = datetime.now(UTC)
        current = DeliveryStatus(self.status)

        if status == current and location is not None and current in {
            DeliveryStatus.ASSIGNED,
            DeliveryStatus.PICKED_UP,
            DeliveryStatus.IN_TRANSIT,
        }:
            self.location = location
            self.updated_at = now
            self.raise_(
                DeliveryLocationUpdated(
                    assignment_id=str(self.id),
                    order_id=str(self.order_id),
                    agent_id=self.agent_id,
                    status=current.value,
                    latitude=latitude,
                    longitude=longitude,
                    recorded_at=now,
                )
            )
            return False

        if status in {DeliveryStatus.ASSIGNED, DeliveryStatus.FAILED}:
            # Assignment happens through accept, failure through fail
            raise InvalidTransition(f"Delivery status {status.value} cannot be set directly")
        self._assert_can_transition(status)

        self.status = status.value
        if location is not None:
            self.location = location
        if notes:
            self.notes = notes
        if status == DeliveryStatus.PICKED_UP:
            self.picked_up_at = now
        elif status == DeliveryStatus.IN_TRANSIT:
            self.in_transit_at = now
        elif status == DeliveryStatus.DELIVERED:
            self.delivered_at = now
        self.updated_at = now

        self.raise_(
            DeliveryStatusUpdated(
                **self._facts(),
                agent_id=self.agent_id,
                previous_status=current.value,
                new_status=status.value,
                latitude=latitude,
                longitude=longitude,
                notes=notes,
                updated_at=now,
            )
        )
        return True

    def fail(self, reason: str) -> None:
        """Terminal. The order is not offered again automatically."""
        self._assert_can_transition(DeliveryStatus.FAILED)
        previous = self.status
        now = datetime.now(UTC)
        self.status = DeliveryStatus.FAILED.value
        self.failure_reason = reason
        self.failed_at = now
        self.updated_at = now
        self.raise_(
            DeliveryFailed(
                **self._facts(),
                agent_id=self.agent_id,
                previous_status=previous,
                reason=reason,
                failed_at=now,
            )
        )
