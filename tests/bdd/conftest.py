"""Shared BDD fixtures and step definitions for the order lifecycle."""

import pytest
from builders import ADDRESS, BUYER, line, stock
from pytest_bdd import given, parsers, then, when

from medflow import core
from medflow.inventory import ledger


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def journey():
    """What the steps learned so far: the shelf, the order, the last outcome."""
    return {}


def _place(journey, quantity):
    outcome = core.create_order(BUYER, journey["item"].facility_id, [line(journey["item"], quantity)], ADDRESS)
    journey["outcome"] = outcome
    if outcome.ok:
        journey["order_id"] = str(outcome.value.id)
    return outcome


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a facility shelf holding {quantity:d} units of "{name}" at {price:f}'))
def facility_shelf(journey, quantity, name, price):
    journey["item"] = stock(quantity=quantity, unit_price=price, name=name)


@given(parsers.cfparse("the buyer ordered {quantity:d} units"))
def buyer_ordered(journey, quantity):
    assert _place(journey, quantity).ok


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse("the buyer orders {quantity:d} units"))
def buyer_orders(journey, quantity):
    _place(journey, quantity)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def order_status(journey, status):
    assert core.get_order(journey["order_id"]).value.status == status


@then(parsers.cfparse("the shelf holds {quantity:d} units"))
def shelf_holds(journey, quantity):
    assert ledger.load(journey["item"].id).quantity == quantity


@then(parsers.cfparse('the request is refused with "{reason}"'))
def refused_with(journey, reason):
    assert not journey["outcome"].ok
    assert journey["outcome"].reason == reason
