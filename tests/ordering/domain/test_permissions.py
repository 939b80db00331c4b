"""Tests for the order permission table."""

import pytest

from medflow.errors import Forbidden
from medflow.ordering.order import Order, OrderStatus
from medflow.ordering.permissions import ActorRole, as_role, assert_can_advance, assert_can_cancel


@pytest.fixture()
def order():
    return Order.place(
        buyer_id="buyer-001",
        facility_id="facility-001",
        items_data=[
            {"stock_item_id": "s1", "medicine_id": "m1", "name": "Zinc", "quantity": 1, "unit_price": 10.0}
        ],
        delivery_address={"street": "Moi Avenue 12", "city": "Nairobi"},
    )


class TestAdvancePermissions:
    @pytest.mark.parametrize("role", ["facility", "admin", "system"])
    def test_allowed_roles(self, order, role):
        assert_can_advance(order, OrderStatus.READY, role)

    @pytest.mark.parametrize("role", ["buyer", "delivery_agent"])
    def test_other_roles_forbidden(self, order, role):
        with pytest.raises(Forbidden):
            assert_can_advance(order, OrderStatus.READY, role)

    def test_other_facility_forbidden(self, order):
        with pytest.raises(Forbidden):
            assert_can_advance(order, OrderStatus.READY, ActorRole.FACILITY, actor_id="facility-999")

    def test_own_facility_allowed(self, order):
        assert_can_advance(order, OrderStatus.READY, ActorRole.FACILITY, actor_id="facility-001")


class TestCancelPermissions:
    @pytest.mark.parametrize("role", ["buyer", "facility", "admin"])
    def test_allowed_roles(self, order, role):
        assert_can_cancel(order, role)

    def test_agent_cannot_cancel(self, order):
        with pytest.raises(Forbidden):
            assert_can_cancel(order, ActorRole.DELIVERY_AGENT)

    def test_other_buyer_forbidden(self, order):
        with pytest.raises(Forbidden):
            assert_can_cancel(order, ActorRole.BUYER, actor_id="buyer-999")


def test_unknown_role_is_forbidden():
    with pytest.raises(Forbidden):
        as_role("pharmacist")
