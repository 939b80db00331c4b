"""DraftOrder aggregate (CQRS) — a server-side cart for one facility.

Lines are validated against the shelf when they are added, so a buyer finds
out about missing stock while still shopping rather than at checkout. The
draft holds no stock: checkout goes through the normal order placement,
which reserves for real.
"""

from datetime import UTC, datetime
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String
from protean.utils.globals import current_domain

from medflow.domain import medflow
from medflow.errors import CrossFacilityCart, EmptyOrder, InsufficientStock
from medflow.inventory import ledger
from medflow.ordering import service

logger = structlog.get_logger(__name__)


class DraftStatus(Enum):
    OPEN = "open"
    CHECKED_OUT = "checked_out"
    ABANDONED = "abandoned"


@medflow.entity(part_of="DraftOrder")
class DraftLine:
    stock_item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@medflow.aggregate
class DraftOrder:
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)
    lines = HasMany(DraftLine)
    status = String(choices=DraftStatus, default=DraftStatus.OPEN.value)
    order_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, buyer_id, facility_id):
        now = datetime.now(UTC)
        return cls(
            buyer_id=buyer_id,
            facility_id=facility_id,
            status=DraftStatus.OPEN.value,
            created_at=now,
            updated_at=now,
        )

    def _assert_open(self):
        if DraftStatus(self.status) != DraftStatus.OPEN:
            raise ValidationError({"status": [f"Draft is {self.status}"]})

    def _line(self, stock_item_id):
        return next((line for line in (self.lines or []) if str(line.stock_item_id) == str(stock_item_id)), None)

    def _assert_stockable(self, stock_item, quantity):
        if str(stock_item.facility_id) != str(self.facility_id):
            raise CrossFacilityCart("All items in an order must come from the same facility")
        if stock_item.quantity < quantity:
            raise InsufficientStock(
                f"Selected quantity no longer available: {stock_item.quantity} in stock, {quantity} requested"
            )

    def add_line(self, stock_item, quantity):
        """Add a medicine (or more of it) after checking the shelf."""
        self._assert_open()
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be a positive integer"]})

        existing = self._line(stock_item.id)
        wanted = quantity + (existing.quantity if existing else 0)
        self._assert_stockable(stock_item, wanted)

        if existing:
            existing.quantity = wanted
        else:
            self.add_lines(
                DraftLine(
                    stock_item_id=str(stock_item.id),
                    quantity=quantity,
                    added_at=datetime.now(UTC),
                )
            )
        self.updated_at = datetime.now(UTC)

    def update_line_quantity(self, stock_item, quantity):
        self._assert_open()
        line = self._line(stock_item.id)
        if line is None:
            raise ValidationError({"stock_item_id": ["Item is not in the draft"]})
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be a positive integer"]})

        self._assert_stockable(stock_item, quantity)
        line.quantity = quantity
        self.updated_at = datetime.now(UTC)

    def remove_line(self, stock_item_id):
        self._assert_open()
        line = self._line(stock_item_id)
        if line is None:
            raise ValidationError({"stock_item_id": ["Item is not in the draft"]})
        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

    def mark_checked_out(self, order_id):
        self._assert_open()
        if not self.lines:
            raise EmptyOrder("Cannot check out an empty draft")
        self.status = DraftStatus.CHECKED_OUT.value
        self.order_id = order_id
        self.updated_at = datetime.now(UTC)

    def abandon(self):
        self._assert_open()
        self.status = DraftStatus.ABANDONED.value
        self.updated_at = datetime.now(UTC)

    def as_items(self):
        return [{"stock_item_id": str(line.stock_item_id), "quantity": line.quantity} for line in self.lines or []]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@medflow.command(part_of="DraftOrder")
class StartDraft:
    buyer_id = Identifier(required=True)
    facility_id = Identifier(required=True)


@medflow.command(part_of="DraftOrder")
class AddDraftLine:
    draft_id = Identifier(required=True)
    stock_item_id = Identifier(required=True)
    quantity = Integer(required=True)


@medflow.command(part_of="DraftOrder")
class UpdateDraftLine:
    draft_id = Identifier(required=True)
    stock_item_id = Identifier(required=True)
    quantity = Integer(required=True)


@medflow.command(part_of="DraftOrder")
class RemoveDraftLine:
    draft_id = Identifier(required=True)
    stock_item_id = Identifier(required=True)


@medflow.command(part_of="DraftOrder")
class MarkDraftCheckedOut:
    draft_id = Identifier(required=True)
    order_id = Identifier(required=True)


@medflow.command(part_of="DraftOrder")
class AbandonDraft:
    draft_id = Identifier(required=True)


@medflow.command_handler(part_of=DraftOrder)
class DraftOrderHandler:
    @handle(StartDraft)
    def start_draft(self, command):
        draft = DraftOrder.create(buyer_id=command.buyer_id, facility_id=command.facility_id)
        current_domain.repository_for(DraftOrder).add(draft)
        return str(draft.id)

    @handle(AddDraftLine)
    def add_draft_line(self, command):
        repo = current_domain.repository_for(DraftOrder)
        draft = repo.get(command.draft_id)
        draft.add_line(ledger.load(command.stock_item_id), command.quantity)
        repo.add(draft)

    @handle(UpdateDraftLine)
    def update_draft_line(self, command):
        repo = current_domain.repository_for(DraftOrder)
        draft = repo.get(command.draft_id)
        draft.update_line_quantity(ledger.load(command.stock_item_id), command.quantity)
        repo.add(draft)

    @handle(RemoveDraftLine)
    def remove_draft_line(self, command):
        repo = current_domain.repository_for(DraftOrder)
        draft = repo.get(command.draft_id)
        draft.remove_line(command.stock_item_id)
        repo.add(draft)

    @handle(MarkDraftCheckedOut)
    def mark_checked_out(self, command):
        repo = current_domain.repository_for(DraftOrder)
        draft = repo.get(command.draft_id)
        draft.mark_checked_out(command.order_id)
        repo.add(draft)

    @handle(AbandonDraft)
    def abandon_draft(self, command):
        repo = current_domain.repository_for(DraftOrder)
        draft = repo.get(command.draft_id)
        draft.abandon()
        repo.add(draft)


def get(draft_id) -> DraftOrder:
    return current_domain.repository_for(DraftOrder).get(str(draft_id))


def start(buyer_id, facility_id) -> DraftOrder:
    draft_id = current_domain.process(StartDraft(buyer_id=buyer_id, facility_id=facility_id), asynchronous=False)
    logger.info("Draft started", draft_id=draft_id, buyer_id=str(buyer_id), facility_id=str(facility_id))
    return get(draft_id)


def add_line(draft_id, stock_item_id, quantity) -> DraftOrder:
    current_domain.process(
        AddDraftLine(draft_id=str(draft_id), stock_item_id=str(stock_item_id), quantity=quantity),
        asynchronous=False,
    )
    return get(draft_id)


def update_line(draft_id, stock_item_id, quantity) -> DraftOrder:
    current_domain.process(
        UpdateDraftLine(draft_id=str(draft_id), stock_item_id=str(stock_item_id), quantity=quantity),
        asynchronous=False,
    )
    return get(draft_id)


def remove_line(draft_id, stock_item_id) -> DraftOrder:
    current_domain.process(
        RemoveDraftLine(draft_id=str(draft_id), stock_item_id=str(stock_item_id)),
        asynchronous=False,
    )
    return get(draft_id)


def abandon(draft_id) -> DraftOrder:
    current_domain.process(AbandonDraft(draft_id=str(draft_id)), asynchronous=False)
    logger.info("Draft abandoned", draft_id=str(draft_id))
    return get(draft_id)


def checkout(draft_id, address, delivery_phone=None, notes=None, prescription_id=None):
    """Turn an open draft into a pending order."""
    draft = get(draft_id)
    if DraftStatus(draft.status) != DraftStatus.OPEN:
        raise ValidationError({"status": [f"Draft is {draft.status}"]})
    if not draft.lines:
        raise EmptyOrder("Cannot check out an empty draft")

    order = service.create(
        buyer_id=draft.buyer_id,
        facility_id=draft.facility_id,
        items=draft.as_items(),
        address=address,
        delivery_phone=delivery_phone,
        notes=notes,
        prescription_id=prescription_id,
    )
    current_domain.process(
        MarkDraftCheckedOut(draft_id=str(draft.id), order_id=str(order.id)),
        asynchronous=False,
    )
    logger.info("Draft checked out", draft_id=str(draft.id), order_id=str(order.id))
    return order
