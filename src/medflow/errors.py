"""Rejections raised by the lifecycle core.

Every rejection is a Protean ``ValidationError`` carrying the usual
``{"field": ["message"]}`` messages plus a stable ``code`` the caller can
render as a specific message. None of them is ever raised after a mutation:
the guard runs first and the entity stays as it was.
"""

from protean.exceptions import ValidationError


class Rejection(ValidationError):
    """Base class for typed business rejections."""

    code = "rejected"
    field = "_entity"
    retryable = False

    def __init__(self, message, field=None):
        super().__init__({field or self.field: [message]})
        self.message = message


class InsufficientStock(Rejection):
    code = "insufficient_stock"
    field = "quantity"


class CrossFacilityCart(Rejection):
    code = "cross_facility_cart"
    field = "facility_id"


class EmptyOrder(Rejection):
    code = "empty_order"
    field = "items"


class PrescriptionRequired(Rejection):
    code = "prescription_required"
    field = "prescription_id"


class InvalidTransition(Rejection):
    code = "invalid_transition"
    field = "status"


class Forbidden(Rejection):
    code = "forbidden"
    field = "actor_role"


class AmountMismatch(Rejection):
    code = "amount_mismatch"
    field = "amount"


class DuplicatePayment(Rejection):
    code = "duplicate_payment"
    field = "order_id"


class GatewayTimeout(Rejection):
    code = "gateway_timeout"
    field = "gateway"


class RefundFailed(Rejection):
    code = "refund_failed"
    field = "gateway"


class AlreadyAssigned(Rejection):
    code = "already_assigned"
    field = "agent_id"


class DeliveryAlreadyOffered(Rejection):
    code = "delivery_already_offered"
    field = "order_id"


class PersistenceConflict(Rejection):
    """The store saw a newer version of the entity than the one we loaded.

    Nothing was written; the caller may retry the whole operation.
    """

    code = "persistence_conflict"
    retryable = True
