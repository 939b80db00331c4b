"""FastAPI routes for orders, carts, payments, deliveries and stock.

Actor identity comes from the identity provider in front of this service as
``X-Actor-Role`` / ``X-Actor-Id`` headers.
"""

import os

from fastapi import APIRouter, Header, HTTPException

from medflow import core
from medflow.api.schemas import (
    AcceptDeliveryRequest,
    AddDraftLineRequest,
    AddStockItemRequest,
    AdvanceOrderRequest,
    CancelOrderRequest,
    ChangePriceRequest,
    CheckoutRequest,
    ConfigureGatewayRequest,
    CreateOrderRequest,
    DeliveryResponse,
    DraftLineResponse,
    DraftResponse,
    FailDeliveryRequest,
    InitiatePaymentRequest,
    OfferDeliveryRequest,
    OrderItemResponse,
    OrderResponse,
    PaymentResponse,
    ReceiveStockRequest,
    RefundPaymentRequest,
    StartDraftRequest,
    StockItemResponse,
    UpdateDeliveryStatusRequest,
    UpdateDraftLineRequest,
)
from medflow.ordering.permissions import ActorRole
from medflow.payments.gateway import get_gateway

_STATUS_FOR_REASON = {
    "not_found": 404,
    "forbidden": 403,
    "insufficient_stock": 409,
    "invalid_transition": 409,
    "duplicate_payment": 409,
    "already_assigned": 409,
    "delivery_already_offered": 409,
    "persistence_conflict": 409,
    "validation_error": 422,
    "cross_facility_cart": 422,
    "amount_mismatch": 422,
    "prescription_required": 422,
    "empty_order": 422,
    "refund_failed": 502,
}


def _unwrap(outcome: core.Outcome):
    """Return the outcome's value or raise the matching HTTP error."""
    if outcome.ok:
        return outcome.value
    raise HTTPException(
        status_code=_STATUS_FOR_REASON.get(outcome.reason, 400),
        detail={"code": outcome.reason, "messages": outcome.messages},
    )


def _actor_role(value: str | None) -> str:
    # ``system`` is reserved for calls the core makes to itself
    if not value or value == ActorRole.SYSTEM.value:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "messages": {"actor_role": ["A caller role is required"]}},
        )
    return value


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------
def _order_response(order) -> OrderResponse:
    address = order.delivery_address
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        buyer_id=str(order.buyer_id),
        facility_id=str(order.facility_id),
        status=order.status,
        items=[
            OrderItemResponse(
                stock_item_id=str(item.stock_item_id),
                medicine_id=str(item.medicine_id),
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in order.items or []
        ],
        total=order.total,
        currency=order.currency,
        delivery_address=(
            {
                "street": address.street,
                "city": address.city,
                "region": address.region,
                "landmark": address.landmark,
            }
            if address
            else None
        ),
        delivery_phone=order.delivery_phone,
        prescription_id=str(order.prescription_id) if order.prescription_id else None,
        payment_id=str(order.payment_id) if order.payment_id else None,
        payment_method=order.payment_method,
        cancellation_reason=order.cancellation_reason,
        failure_reason=order.failure_reason,
        placed_at=order.placed_at,
        updated_at=order.updated_at,
    )


def _draft_response(draft) -> DraftResponse:
    return DraftResponse(
        draft_id=str(draft.id),
        buyer_id=str(draft.buyer_id),
        facility_id=str(draft.facility_id),
        status=draft.status,
        lines=[
            DraftLineResponse(stock_item_id=str(line.stock_item_id), quantity=line.quantity)
            for line in draft.lines or []
        ],
        order_id=str(draft.order_id) if draft.order_id else None,
    )


def _payment_response(payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=str(payment.id),
        order_id=str(payment.order_id),
        method=payment.method,
        amount=payment.amount,
        currency=payment.currency,
        status=payment.status,
        provider_ref=payment.provider_ref,
        failure_reason=payment.failure_reason,
        refund_reason=payment.refund_reason,
    )


def _delivery_response(assignment) -> DeliveryResponse:
    location = assignment.location
    return DeliveryResponse(
        assignment_id=str(assignment.id),
        order_id=str(assignment.order_id),
        order_number=assignment.order_number,
        agent_id=str(assignment.agent_id) if assignment.agent_id else None,
        status=assignment.status,
        location=(
            {"latitude": location.latitude, "longitude": location.longitude} if location else None
        ),
        notes=assignment.notes,
        failure_reason=assignment.failure_reason,
        offered_at=assignment.offered_at,
        offer_expires_at=assignment.offer_expires_at,
        assigned_at=assignment.assigned_at,
        picked_up_at=assignment.picked_up_at,
        in_transit_at=assignment.in_transit_at,
        delivered_at=assignment.delivered_at,
    )


def _stock_response(item) -> StockItemResponse:
    return StockItemResponse(
        stock_item_id=str(item.id),
        facility_id=str(item.facility_id),
        medicine_id=str(item.medicine_id),
        name=item.name,
        unit_price=item.unit_price,
        currency=item.currency,
        requires_prescription=bool(item.requires_prescription),
        quantity=item.quantity,
        reserved=item.reserved,
        reorder_threshold=item.reorder_threshold,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(body: CreateOrderRequest) -> OrderResponse:
    order = _unwrap(
        core.create_order(
            buyer_id=body.buyer_id,
            facility_id=body.facility_id,
            items=[line.model_dump() for line in body.items],
            address=body.address.model_dump(),
            delivery_phone=body.delivery_phone,
            notes=body.notes,
            prescription_id=body.prescription_id,
        )
    )
    return _order_response(order)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _order_response(_unwrap(core.get_order(order_id)))


@order_router.post("/{order_id}/advance", response_model=OrderResponse)
async def advance_order(
    order_id: str,
    body: AdvanceOrderRequest,
    x_actor_role: str | None = Header(default=None),
    x_actor_id: str | None = Header(default=None),
) -> OrderResponse:
    order = _unwrap(core.advance_order(order_id, body.target_status, _actor_role(x_actor_role), x_actor_id))
    return _order_response(order)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    x_actor_role: str | None = Header(default=None),
    x_actor_id: str | None = Header(default=None),
) -> OrderResponse:
    order = _unwrap(core.cancel_order(order_id, _actor_role(x_actor_role), x_actor_id, reason=body.reason))
    return _order_response(order)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=DraftResponse)
async def start_cart(body: StartDraftRequest) -> DraftResponse:
    return _draft_response(_unwrap(core.start_draft(body.buyer_id, body.facility_id)))


@cart_router.get("/{draft_id}", response_model=DraftResponse)
async def get_cart(draft_id: str) -> DraftResponse:
    return _draft_response(_unwrap(core.get_draft(draft_id)))


@cart_router.post("/{draft_id}/items", response_model=DraftResponse)
async def add_cart_item(draft_id: str, body: AddDraftLineRequest) -> DraftResponse:
    return _draft_response(_unwrap(core.add_draft_line(draft_id, body.stock_item_id, body.quantity)))


@cart_router.put("/{draft_id}/items/{stock_item_id}", response_model=DraftResponse)
async def update_cart_item(draft_id: str, stock_item_id: str, body: UpdateDraftLineRequest) -> DraftResponse:
    return _draft_response(_unwrap(core.update_draft_line(draft_id, stock_item_id, body.quantity)))


@cart_router.delete("/{draft_id}/items/{stock_item_id}", response_model=DraftResponse)
async def remove_cart_item(draft_id: str, stock_item_id: str) -> DraftResponse:
    return _draft_response(_unwrap(core.remove_draft_line(draft_id, stock_item_id)))


@cart_router.post("/{draft_id}/abandon", response_model=DraftResponse)
async def abandon_cart(draft_id: str) -> DraftResponse:
    return _draft_response(_unwrap(core.abandon_draft(draft_id)))


@cart_router.post("/{draft_id}/checkout", status_code=201, response_model=OrderResponse)
async def checkout_cart(draft_id: str, body: CheckoutRequest) -> OrderResponse:
    order = _unwrap(
        core.checkout_draft(
            draft_id,
            body.address.model_dump(),
            delivery_phone=body.delivery_phone,
            notes=body.notes,
            prescription_id=body.prescription_id,
        )
    )
    return _order_response(order)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])

# Routes that reach the gateway are plain functions: the call blocks for up to
# the gateway timeout, so FastAPI runs them in its threadpool.


@payment_router.post("", status_code=201, response_model=PaymentResponse)
def initiate_payment(body: InitiatePaymentRequest) -> PaymentResponse:
    payment = _unwrap(
        core.initiate_payment(
            body.order_id,
            body.method,
            phone_number=body.phone_number,
            amount=body.amount,
            provider_ref=body.provider_ref,
        )
    )
    return _payment_response(payment)


@payment_router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str) -> PaymentResponse:
    return _payment_response(_unwrap(core.get_payment(payment_id)))


@payment_router.post("/{payment_id}/verify", response_model=PaymentResponse)
def verify_payment(payment_id: str) -> PaymentResponse:
    return _payment_response(_unwrap(core.verify_payment(payment_id)))


@payment_router.post("/{payment_id}/refund", response_model=PaymentResponse)
def refund_payment(payment_id: str, body: RefundPaymentRequest) -> PaymentResponse:
    return _payment_response(_unwrap(core.refund_payment(payment_id, body.reason)))


@payment_router.put("/gateway", status_code=204)
async def configure_gateway(body: ConfigureGatewayRequest) -> None:
    """Script the fake gateway. Not available in production."""
    if os.getenv("PROTEAN_ENV") == "production" or not hasattr(get_gateway(), "configure"):
        raise HTTPException(status_code=404, detail={"code": "not_found", "messages": {}})
    get_gateway().configure(
        outcome=body.outcome,
        failure_reason=body.failure_reason,
        verify_outcome=body.verify_outcome,
        refund_succeeds=body.refund_succeeds,
        delay_seconds=body.delay_seconds,
    )


# ---------------------------------------------------------------------------
# Delivery Router
# ---------------------------------------------------------------------------
delivery_router = APIRouter(prefix="/deliveries", tags=["deliveries"])


@delivery_router.get("/available", response_model=list[DeliveryResponse])
async def list_available_deliveries(limit: int | None = None) -> list[DeliveryResponse]:
    return [_delivery_response(a) for a in _unwrap(core.list_available_deliveries(limit))]


@delivery_router.post("", status_code=201, response_model=DeliveryResponse)
async def offer_delivery(
    body: OfferDeliveryRequest,
    x_actor_role: str | None = Header(default=None),
    x_actor_id: str | None = Header(default=None),
) -> DeliveryResponse:
    assignment = _unwrap(core.offer_delivery(body.order_id, _actor_role(x_actor_role), actor_id=x_actor_id))
    return _delivery_response(assignment)


@delivery_router.get("/{assignment_id}", response_model=DeliveryResponse)
async def get_delivery(assignment_id: str) -> DeliveryResponse:
    return _delivery_response(_unwrap(core.get_delivery(assignment_id)))


@delivery_router.post("/{assignment_id}/accept", response_model=DeliveryResponse)
async def accept_delivery(
    assignment_id: str,
    body: AcceptDeliveryRequest,
    x_actor_role: str | None = Header(default=None),
    x_actor_id: str | None = Header(default=None),
) -> DeliveryResponse:
    role = _actor_role(x_actor_role)
    if x_actor_id is not None and x_actor_id != body.agent_id:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "messages": {"agent_id": ["Agents accept deliveries for themselves"]}},
        )
    return _delivery_response(_unwrap(core.accept_delivery(assignment_id, body.agent_id, actor_role=role)))


@delivery_router.post("/{assignment_id}/status", response_model=DeliveryResponse)
async def update_delivery_status(
    assignment_id: str,
    body: UpdateDeliveryStatusRequest,
    x_actor_role: str | None = Header(default=None),
    x_actor_id: str | None = Header(default=None),
) -> DeliveryResponse:
    assignment = _unwrap(
        core.update_delivery_status(
            assignment_id,
            body.status,
            latitude=body.latitude,
            longitude=body.longitude,
            notes=body.notes,
            agent_id=x_actor_id,
            actor_role=_actor_role(x_actor_role or ActorRole.DELIVERY_AGENT.value),
        )
    )
    return _delivery_response(assignment)


@delivery_router.post("/{assignment_id}/fail", response_model=DeliveryResponse)
async def fail_delivery(
    assignment_id: str,
    body: FailDeliveryRequest,
    x_actor_role: str | None = Header(default=None),
    x_actor_id: str | None = Header(default=None),
) -> DeliveryResponse:
    assignment = _unwrap(core.fail_delivery(assignment_id, body.reason, _actor_role(x_actor_role), actor_id=x_actor_id))
    return _delivery_response(assignment)


# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["stock"])


@stock_router.post("", status_code=201, response_model=StockItemResponse)
async def add_stock_item(body: AddStockItemRequest) -> StockItemResponse:
    item = _unwrap(
        core.add_stock_item(
            body.facility_id,
            body.medicine_id,
            body.name,
            body.unit_price,
            quantity=body.quantity,
            reorder_threshold=body.reorder_threshold,
            requires_prescription=body.requires_prescription,
            currency=body.currency,
        )
    )
    return _stock_response(item)


@stock_router.get("/{stock_item_id}", response_model=StockItemResponse)
async def get_stock_item(stock_item_id: str) -> StockItemResponse:
    return _stock_response(_unwrap(core.get_stock_item(stock_item_id)))


@stock_router.post("/{stock_item_id}/receipts", response_model=StockItemResponse)
async def receive_stock(stock_item_id: str, body: ReceiveStockRequest) -> StockItemResponse:
    return _stock_response(_unwrap(core.receive_stock(stock_item_id, body.quantity, body.reference)))


@stock_router.put("/{stock_item_id}/price", response_model=StockItemResponse)
async def change_price(stock_item_id: str, body: ChangePriceRequest) -> StockItemResponse:
    return _stock_response(_unwrap(core.change_price(stock_item_id, body.unit_price)))
