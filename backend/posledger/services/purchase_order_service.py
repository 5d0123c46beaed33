"""
Purchase-Order Orchestrator

STATE MACHINE:
    DRAFT    -> ORDERED | CANCELLED
    ORDERED  -> RECEIVED | CANCELLED
    RECEIVED -> CANCELLED
    CANCELLED is terminal

RECEIPT: the RECEIVED transition is the only place purchase orders touch
stock. It runs in the same transaction as the status change, so the side
effects fire exactly once. Cancelling a RECEIVED order does not reverse the
receipt; stock corrections go through inventory adjustments.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Item, ItemVariant, PurchaseOrder, PurchaseOrderItem
from ..models.purchasing import (
    PO_STATUS_CANCELLED,
    PO_STATUS_DRAFT,
    PO_STATUS_ORDERED,
    PO_STATUS_RECEIVED,
    PO_STATUSES,
)
from ..errors import ConflictError, NotFoundError, ValidationError
from ..identity import CallerIdentity, require_identity
from ..time_utils import utcnow
from . import inventory_service
from .code_generator import generate_order_number
from .concurrency import atomic, lock_for_update, run_with_retry
from .lines import price_lines, sum_totals
from .pagination import paginate


VALID_TRANSITIONS = {
    PO_STATUS_DRAFT: {PO_STATUS_ORDERED, PO_STATUS_CANCELLED},
    PO_STATUS_ORDERED: {PO_STATUS_RECEIVED, PO_STATUS_CANCELLED},
    PO_STATUS_RECEIVED: {PO_STATUS_CANCELLED},
    PO_STATUS_CANCELLED: set(),
}


def can_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, set())


def _validate_refs(lines) -> None:
    for line in lines:
        if db.session.get(Item, line.item_id) is None:
            raise NotFoundError(f"Item with ID {line.item_id} not found")
        if line.item_variant_id is not None:
            variant = db.session.get(ItemVariant, line.item_variant_id)
            if variant is None:
                raise NotFoundError(f"Item variant with ID {line.item_variant_id} not found")
            if variant.item_id != line.item_id:
                raise ValidationError(
                    f"Item variant {line.item_variant_id} does not belong to item {line.item_id}"
                )


def create_purchase_order(
    identity: CallerIdentity,
    *,
    lines: list[dict],
    expected_delivery_date: datetime | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    """Persist a DRAFT order with a generated order number."""
    identity = require_identity(identity)
    priced = price_lines(lines, "Purchase order", allow_zero_price=False)
    totals = sum_totals(priced)

    def _create() -> int:
        with atomic():
            _validate_refs(priced)
            order = PurchaseOrder(
                user_id=identity.user_id,
                order_number=generate_order_number(),
                status=PO_STATUS_DRAFT,
                order_date=utcnow(),
                expected_delivery_date=expected_delivery_date,
                notes=notes,
                **totals.columns(),
            )
            db.session.add(order)
            db.session.flush()
            for line in priced:
                db.session.add(PurchaseOrderItem(
                    purchase_order_id=order.id,
                    received_quantity=0,
                    **line.columns(),
                ))
            return order.id

    attempts = current_app.config.get("CODE_GENERATION_ATTEMPTS", 3)
    try:
        order_id = run_with_retry(_create, attempts=attempts, retry_on=(IntegrityError,))
    except IntegrityError:
        current_app.logger.warning("Order number generation exhausted %s attempts", attempts)
        raise ConflictError("Could not generate a unique order number, please retry")

    order = db.session.get(PurchaseOrder, order_id)
    current_app.logger.info(
        "Purchase order created: %s final=%s user=%s", order.order_number, order.final_amount, identity.user_id,
    )
    return order


def get_purchase_order(order_id: int) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id)
    if order is None:
        raise NotFoundError("Purchase order not found")
    return order


def list_purchase_orders(
    *,
    search: str | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    query = db.session.query(PurchaseOrder)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(PurchaseOrder.order_number.ilike(pattern), PurchaseOrder.notes.ilike(pattern)))
    if status is not None:
        if status not in PO_STATUSES:
            raise ValidationError("Invalid status value")
        query = query.filter(PurchaseOrder.status == status)
    if start_date is not None:
        query = query.filter(PurchaseOrder.order_date >= start_date)
    if end_date is not None:
        query = query.filter(PurchaseOrder.order_date <= end_date)

    rows, pagination = paginate(query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()), page, per_page)
    return {
        "purchase_orders": [o.to_dict(include_items=False) for o in rows],
        "pagination": pagination,
    }


def update_status(identity: CallerIdentity, order_id: int, new_status: str) -> PurchaseOrder:
    """
    Move an order along the state machine.

    Raises:
        ValidationError: unknown status or a transition not in VALID_TRANSITIONS
        NotFoundError: order missing
    """
    identity = require_identity(identity)
    if new_status not in PO_STATUSES:
        raise ValidationError("Invalid status value")

    with atomic():
        order = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Purchase order not found")

        current = order.status
        if not can_transition(current, new_status):
            raise ValidationError(f"Invalid status transition from {current} to {new_status}")

        if new_status == PO_STATUS_RECEIVED:
            for line in order.items:
                inventory_service.receive_purchase_line(line, order=order, user_id=identity.user_id)
            order.actual_delivery_date = utcnow()

        order.status = new_status

    current_app.logger.info(
        "Purchase order %s: %s -> %s by user=%s", order.order_number, current, new_status, identity.user_id,
    )
    return order
