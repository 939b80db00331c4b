"""Pydantic request/response schemas for the medflow API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str
    city: str
    region: str | None = None
    landmark: str | None = None


class LineSchema(BaseModel):
    stock_item_id: str
    quantity: int = Field(ge=1)


class LocationSchema(BaseModel):
    latitude: float
    longitude: float


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    buyer_id: str
    facility_id: str
    items: list[LineSchema]
    address: AddressSchema
    delivery_phone: str | None = None
    notes: str | None = None
    prescription_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "buyer_id": "buyer-001",
                    "facility_id": "facility-001",
                    "items": [{"stock_item_id": "stock-001", "quantity": 3}],
                    "address": {"street": "Moi Avenue 12", "city": "Nairobi", "region": "Nairobi"},
                    "delivery_phone": "+254700000001",
                }
            ]
        }
    }


class AdvanceOrderRequest(BaseModel):
    target_status: str


class CancelOrderRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class StartDraftRequest(BaseModel):
    buyer_id: str
    facility_id: str


class AddDraftLineRequest(BaseModel):
    stock_item_id: str
    quantity: int = Field(ge=1, default=1)


class UpdateDraftLineRequest(BaseModel):
    quantity: int = Field(ge=1)


class CheckoutRequest(BaseModel):
    address: AddressSchema
    delivery_phone: str | None = None
    notes: str | None = None
    prescription_id: str | None = None


# ---------------------------------------------------------------------------
# Payment Request Schemas
# ---------------------------------------------------------------------------
class InitiatePaymentRequest(BaseModel):
    order_id: str
    method: str
    phone_number: str | None = None
    amount: float | None = Field(default=None, ge=0)
    provider_ref: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_id": "order-001",
                    "method": "mobile_money",
                    "phone_number": "+254700000001",
                    "amount": 1500.0,
                }
            ]
        }
    }


class RefundPaymentRequest(BaseModel):
    reason: str


class ConfigureGatewayRequest(BaseModel):
    outcome: str = "succeeded"
    verify_outcome: str = "succeeded"
    failure_reason: str = "Payment declined"
    refund_succeeds: bool = True
    delay_seconds: float = Field(default=0.0, ge=0)


# ---------------------------------------------------------------------------
# Delivery Request Schemas
# ---------------------------------------------------------------------------
class OfferDeliveryRequest(BaseModel):
    order_id: str


class AcceptDeliveryRequest(BaseModel):
    agent_id: str


class UpdateDeliveryStatusRequest(BaseModel):
    status: str
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    notes: str | None = None


class FailDeliveryRequest(BaseModel):
    reason: str


# ---------------------------------------------------------------------------
# Stock Request Schemas
# ---------------------------------------------------------------------------
class AddStockItemRequest(BaseModel):
    facility_id: str
    medicine_id: str
    name: str
    unit_price: float = Field(ge=0)
    quantity: int = Field(ge=0, default=0)
    reorder_threshold: int | None = Field(default=None, ge=0)
    requires_prescription: bool = False
    currency: str | None = None


class ReceiveStockRequest(BaseModel):
    quantity: int = Field(ge=1)
    reference: str | None = None


class ChangePriceRequest(BaseModel):
    unit_price: float = Field(ge=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    stock_item_id: str
    medicine_id: str
    name: str
    quantity: int
    unit_price: float
    subtotal: float


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    buyer_id: str
    facility_id: str
    status: str
    items: list[OrderItemResponse]
    total: float
    currency: str
    delivery_address: AddressSchema | None = None
    delivery_phone: str | None = None
    prescription_id: str | None = None
    payment_id: str | None = None
    payment_method: str | None = None
    cancellation_reason: str | None = None
    failure_reason: str | None = None
    placed_at: datetime | None = None
    updated_at: datetime | None = None


class DraftLineResponse(BaseModel):
    stock_item_id: str
    quantity: int


class DraftResponse(BaseModel):
    draft_id: str
    buyer_id: str
    facility_id: str
    status: str
    lines: list[DraftLineResponse]
    order_id: str | None = None


class PaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    method: str
    amount: float
    currency: str | None = None
    status: str
    provider_ref: str | None = None
    failure_reason: str | None = None
    refund_reason: str | None = None


class DeliveryResponse(BaseModel):
    assignment_id: str
    order_id: str
    order_number: str | None = None
    agent_id: str | None = None
    status: str
    location: LocationSchema | None = None
    notes: str | None = None
    failure_reason: str | None = None
    offered_at: datetime | None = None
    offer_expires_at: datetime | None = None
    assigned_at: datetime | None = None
    picked_up_at: datetime | None = None
    in_transit_at: datetime | None = None
    delivered_at: datetime | None = None


class StockItemResponse(BaseModel):
    stock_item_id: str
    facility_id: str
    medicine_id: str
    name: str
    unit_price: float
    currency: str | None = None
    requires_prescription: bool
    quantity: int
    reserved: int
    reorder_threshold: int
