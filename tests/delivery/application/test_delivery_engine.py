"""Application tests for offering deliveries and driving them to hand-over."""

import threading
from datetime import UTC, datetime, timedelta

import pytest
from builders import ADDRESS, AGENT, BUYER, FACILITY, line, stock

from medflow.delivery import engine
from medflow.delivery.assignment import DeliveryStatus
from medflow.errors import AlreadyAssigned, DeliveryAlreadyOffered, Forbidden, InvalidTransition
from medflow.ordering import service
from medflow.ordering.order import OrderStatus
from medflow.ordering.permissions import ActorRole
from medflow.payments import orchestrator
from medflow.payments.payment import PaymentStatus


def _paid_order(method="card", quantity=1):
    item = stock(quantity=5)
    order = service.create(buyer_id=BUYER, facility_id=FACILITY, items=[line(item, quantity)], address=ADDRESS)
    orchestrator.process(order.id, method, order.total)
    return service.get(order.id)


def _walk(assignment, *statuses, agent_id=AGENT):
    for status in statuses:
        assignment = engine.update_status(assignment.id, status, agent_id=agent_id)
    return assignment


@pytest.fixture
def offered():
    return engine.offer(_paid_order().id)


@pytest.fixture
def accepted(offered):
    return engine.accept(offered.id, AGENT)


class TestOffer:
    def test_confirmed_order_is_offered(self):
        order = _paid_order()
        assignment = engine.offer(order.id)

        assert assignment.status == DeliveryStatus.PENDING.value
        assert assignment.order_id == order.id
        assert assignment.order_number == order.order_number
        assert assignment.offer_expires_at is not None

    def test_pending_order_cannot_be_offered(self):
        item = stock()
        order = service.create(buyer_id=BUYER, facility_id=FACILITY, items=[line(item, 1)], address=ADDRESS)
        with pytest.raises(InvalidTransition):
            engine.offer(order.id)

    def test_one_live_assignment_per_order(self, offered):
        with pytest.raises(DeliveryAlreadyOffered):
            engine.offer(offered.order_id)

    def test_reoffer_after_failure_creates_new_assignment(self, offered):
        engine.fail(offered.id, "Agent vehicle broke down")
        fresh = engine.offer(offered.order_id)

        assert fresh.id != offered.id
        statuses = sorted(a.status for a in engine.assignments_for_order(offered.order_id))
        assert statuses == [DeliveryStatus.FAILED.value, DeliveryStatus.PENDING.value]
        assert engine.active_assignment_for(offered.order_id).id == fresh.id


class TestListAvailable:
    def test_only_unassigned_offers(self):
        first = engine.offer(_paid_order().id)
        second = engine.offer(_paid_order().id)
        engine.accept(first.id, AGENT)

        available = engine.list_available()
        assert [a.id for a in available] == [second.id]

    def test_limit(self):
        for _ in range(3):
            engine.offer(_paid_order().id)
        assert len(engine.list_available(limit=2)) == 2


class TestAccept:
    def test_accept_assigns_agent(self, offered):
        assignment = engine.accept(offered.id, AGENT)
        assert assignment.agent_id == AGENT
        assert assignment.status == DeliveryStatus.ASSIGNED.value

    def test_second_agent_gets_already_assigned(self, accepted):
        with pytest.raises(AlreadyAssigned):
            engine.accept(accepted.id, "agent-002")

    def test_concurrent_accepts_have_one_winner(self, offered, medflow_bed):
        barrier = threading.Barrier(4)
        outcomes = []

        def accept(agent_id):
            with medflow_bed.domain.domain_context():
                barrier.wait()
                try:
                    engine.accept(offered.id, agent_id)
                    outcomes.append(("ok", agent_id))
                except AlreadyAssigned:
                    outcomes.append(("taken", agent_id))

        threads = [threading.Thread(target=accept, args=(f"agent-{n:03d}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        winners = [agent for result, agent in outcomes if result == "ok"]
        assert len(winners) == 1
        assert len(outcomes) == 4
        assert engine.get(offered.id).agent_id == winners[0]


class TestStatusUpdates:
    def test_pick_up_sends_order_out_for_delivery(self, accepted):
        _walk(accepted, "picked_up")
        assert service.get(accepted.order_id).status == OrderStatus.OUT_FOR_DELIVERY.value

    def test_delivered_delivers_order(self, accepted):
        assignment = _walk(accepted, "picked_up", "in_transit", "delivered")

        assert assignment.status == DeliveryStatus.DELIVERED.value
        assert service.get(accepted.order_id).status == OrderStatus.DELIVERED.value

    def test_cash_collected_on_delivery(self):
        order = _paid_order(method="cash")
        assert orchestrator.get(order.payment_id).status == PaymentStatus.PENDING.value

        assignment = engine.accept(engine.offer(order.id).id, AGENT)
        _walk(assignment, "picked_up", "in_transit", "delivered")

        assert orchestrator.get(order.payment_id).status == PaymentStatus.COMPLETED.value

    def test_location_ping_keeps_status(self, accepted):
        _walk(accepted, "picked_up")
        assignment = engine.update_status(accepted.id, "picked_up", latitude=-1.29, longitude=36.82, agent_id=AGENT)

        assert assignment.status == DeliveryStatus.PICKED_UP.value
        assert assignment.location.latitude == -1.29

    def test_other_agent_forbidden(self, accepted):
        with pytest.raises(Forbidden):
            engine.update_status(accepted.id, "picked_up", agent_id="agent-002")

    def test_buyer_forbidden(self, accepted):
        with pytest.raises(Forbidden):
            engine.update_status(accepted.id, "picked_up", agent_id=BUYER, actor_role=ActorRole.BUYER)

    def test_admin_may_update(self, accepted):
        assignment = engine.update_status(accepted.id, "picked_up", actor_role=ActorRole.ADMIN)
        assert assignment.status == DeliveryStatus.PICKED_UP.value

    def test_unknown_status_rejected(self, accepted):
        with pytest.raises(InvalidTransition):
            engine.update_status(accepted.id, "teleported", agent_id=AGENT)

    def test_skipping_a_step_rejected(self, accepted):
        with pytest.raises(InvalidTransition):
            engine.update_status(accepted.id, "delivered", agent_id=AGENT)
        assert service.get(accepted.order_id).status == OrderStatus.CONFIRMED.value


class TestFailAndWithdraw:
    def test_fail_keeps_order_confirmed(self, accepted):
        assignment = engine.fail(accepted.id, "Buyer unreachable")

        assert assignment.status == DeliveryStatus.FAILED.value
        assert assignment.failure_reason == "Buyer unreachable"
        assert service.get(accepted.order_id).status == OrderStatus.CONFIRMED.value

    def test_withdraw_fails_live_assignments(self, accepted):
        withdrawn = engine.withdraw_for_order(accepted.order_id, "order_cancelled")

        assert withdrawn == [str(accepted.id)]
        assert engine.get(accepted.id).failure_reason == "order_cancelled"
        assert engine.active_assignment_for(accepted.order_id) is None

    def test_withdraw_leaves_delivered_alone(self, accepted):
        _walk(accepted, "picked_up", "in_transit", "delivered")
        assert engine.withdraw_for_order(accepted.order_id, "order_cancelled") == []


class TestDeliveryRoles:
    def test_facility_offers_its_own_order(self):
        order = _paid_order()
        assignment = engine.offer(order.id, ActorRole.FACILITY, FACILITY)
        assert assignment.status == DeliveryStatus.PENDING.value

    @pytest.mark.parametrize("role", [ActorRole.BUYER, ActorRole.DELIVERY_AGENT])
    def test_other_roles_cannot_offer(self, role):
        order = _paid_order()
        with pytest.raises(Forbidden):
            engine.offer(order.id, role)
        assert engine.active_assignment_for(order.id) is None

    def test_other_facility_cannot_offer(self):
        with pytest.raises(Forbidden):
            engine.offer(_paid_order().id, ActorRole.FACILITY, "facility-999")

    @pytest.mark.parametrize("role", [ActorRole.BUYER, ActorRole.FACILITY, ActorRole.ADMIN])
    def test_only_agents_accept(self, offered, role):
        with pytest.raises(Forbidden):
            engine.accept(offered.id, AGENT, actor_role=role)
        assert engine.get(offered.id).agent_id is None

    def test_buyer_cannot_fail(self, accepted):
        with pytest.raises(Forbidden):
            engine.fail(accepted.id, "Changed my mind", ActorRole.BUYER, BUYER)
        assert engine.get(accepted.id).status == DeliveryStatus.ASSIGNED.value

    def test_unassigned_agent_cannot_fail(self, accepted):
        with pytest.raises(Forbidden):
            engine.fail(accepted.id, "Not mine", ActorRole.DELIVERY_AGENT, "agent-002")

    def test_assigned_agent_and_facility_can_fail(self, accepted):
        assignment = engine.fail(accepted.id, "Buyer unreachable", ActorRole.DELIVERY_AGENT, AGENT)
        assert assignment.status == DeliveryStatus.FAILED.value

        fresh = engine.offer(accepted.order_id, ActorRole.FACILITY, FACILITY)
        failed = engine.fail(fresh.id, "No agents nearby", ActorRole.FACILITY, FACILITY)
        assert failed.status == DeliveryStatus.FAILED.value


class TestExpireStaleOffers:
    def test_expires_only_overdue_offers(self, offered):
        assert engine.expire_stale_offers() == []

        later = datetime.now(UTC) + timedelta(minutes=31)
        assert engine.expire_stale_offers(now=later) == [str(offered.id)]
        assert engine.get(offered.id).failure_reason == "offer_timeout"

    def test_accepted_offers_do_not_expire(self, accepted):
        later = datetime.now(UTC) + timedelta(hours=2)
        assert engine.expire_stale_offers(now=later) == []
        assert engine.get(accepted.id).status == DeliveryStatus.ASSIGNED.value
