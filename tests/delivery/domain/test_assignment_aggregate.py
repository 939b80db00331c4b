from datetime import timedelta

import pytest
from protean.exceptions import ValidationError

from medflow.delivery.assignment import DeliveryAssignment, DeliveryStatus, Location
from medflow.delivery.events import (
    DeliveryAccepted,
    DeliveryFailed,
    DeliveryLocationUpdated,
    DeliveryOffered,
    DeliveryStatusUpdated,
)
from medflow.errors import AlreadyAssigned, InvalidTransition


def _offered():
    assignment = DeliveryAssignment.offer(
        order_id="order-001",
        buyer_id="buyer-001",
        facility_id="facility-001",
        order_number="ORD-20260101-0001",
        offer_timeout_minutes=15,
    )
    assignment._events.clear()
    return assignment


def _assigned(agent_id="agent-001"):
    assignment = _offered()
    assignment.accept(agent_id)
    assignment._events.clear()
    return assignment


class TestOffer:
    def test_offer_starts_pending_with_deadline(self):
        assignment = DeliveryAssignment.offer(
            order_id="order-001",
            buyer_id="buyer-001",
            facility_id="facility-001",
            offer_timeout_minutes=15,
        )
        assert assignment.status == DeliveryStatus.PENDING.value
        assert assignment.agent_id is None
        assert assignment.offer_expires_at - assignment.offered_at == timedelta(minutes=15)
        assert isinstance(assignment._events[0], DeliveryOffered)
        assert assignment.is_active


class TestAccept:
    def test_first_agent_wins(self):
        assignment = _offered()
        assignment.accept("agent-001")
        assert assignment.agent_id == "agent-001"
        assert assignment.status == DeliveryStatus.ASSIGNED.value
        assert assignment.assigned_at is not None
        assert isinstance(assignment._events[0], DeliveryAccepted)

    def test_second_agent_rejected(self):
        assignment = _assigned("agent-001")
        with pytest.raises(AlreadyAssigned):
            assignment.accept("agent-002")
        assert assignment.agent_id == "agent-001"

    def test_failed_offer_cannot_be_accepted(self):
        assignment = _offered()
        assignment.fail("offer_timeout")
        with pytest.raises(InvalidTransition):
            assignment.accept("agent-001")


class TestProgression:
    def test_full_path(self):
        assignment = _assigned()
        for status in (DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED):
            assert assignment.update_status(status) is True
            assert assignment.status == status.value

        assert assignment.picked_up_at is not None
        assert assignment.in_transit_at is not None
        assert assignment.delivered_at is not None
        assert [type(e) for e in assignment._events] == [DeliveryStatusUpdated] * 3

    def test_cannot_skip_steps(self):
        assignment = _assigned()
        with pytest.raises(InvalidTransition):
            assignment.update_status(DeliveryStatus.DELIVERED)

    def test_pending_cannot_be_picked_up(self):
        assignment = _offered()
        with pytest.raises(InvalidTransition):
            assignment.update_status(DeliveryStatus.PICKED_UP)

    @pytest.mark.parametrize("status", [DeliveryStatus.ASSIGNED, DeliveryStatus.FAILED])
    def test_status_not_settable_directly(self, status):
        assignment = _assigned()
        with pytest.raises(InvalidTransition):
            assignment.update_status(status)

    def test_delivered_is_terminal(self):
        assignment = _assigned()
        assignment.update_status(DeliveryStatus.PICKED_UP)
        assignment.update_status(DeliveryStatus.IN_TRANSIT)
        assignment.update_status(DeliveryStatus.DELIVERED)
        with pytest.raises(InvalidTransition):
            assignment.fail("lost")

    def test_update_carries_location_and_notes(self):
        assignment = _assigned()
        assignment.update_status(DeliveryStatus.PICKED_UP, latitude=-1.2921, longitude=36.8219, notes="Collected")
        assert assignment.location.latitude == -1.2921
        assert assignment.notes == "Collected"


class TestLocationPing:
    def test_same_status_with_location_is_ping(self):
        assignment = _assigned()
        assignment.update_status(DeliveryStatus.PICKED_UP)
        assignment._events.clear()

        changed = assignment.update_status(DeliveryStatus.PICKED_UP, latitude=-1.3, longitude=36.8)

        assert changed is False
        assert assignment.status == DeliveryStatus.PICKED_UP.value
        assert assignment.location.longitude == 36.8
        assert isinstance(assignment._events[0], DeliveryLocationUpdated)

    def test_same_status_without_location_is_rejected(self):
        assignment = _assigned()
        assignment.update_status(DeliveryStatus.PICKED_UP)
        with pytest.raises(InvalidTransition):
            assignment.update_status(DeliveryStatus.PICKED_UP)


class TestLocation:
    def test_needs_both_coordinates(self):
        with pytest.raises(ValidationError):
            Location(latitude=-1.3)

    def test_latitude_in_range(self):
        with pytest.raises(ValidationError):
            Location(latitude=95.0, longitude=36.8)

    def test_longitude_in_range(self):
        with pytest.raises(ValidationError):
            Location(latitude=-1.3, longitude=190.0)


class TestFail:
    @pytest.mark.parametrize("steps", [0, 1, 2])
    def test_fail_from_live_state(self, steps):
        assignment = _assigned()
        for status in (DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT)[:steps]:
            assignment.update_status(status)
        assignment._events.clear()

        assignment.fail("Buyer unreachable")

        assert assignment.status == DeliveryStatus.FAILED.value
        assert assignment.failure_reason == "Buyer unreachable"
        assert not assignment.is_active
        assert isinstance(assignment._events[0], DeliveryFailed)

    def test_failed_is_terminal(self):
        assignment = _offered()
        assignment.fail("offer_timeout")
        with pytest.raises(InvalidTransition):
            assignment.fail("again")
