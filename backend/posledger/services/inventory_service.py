# Overview: Stock ledger; keeps ItemVariant.stock_quantity in step with ItemMovement rows.

"""
Inventory Ledger Invariants (authoritative)

- ItemMovement is append-only; nothing in the codebase updates or deletes it.
- new_quantity == previous_quantity + quantity for every row, checked before
  the row is added to the session.
- ItemVariant.stock_quantity is a denormalized running value. Opening stock
  set at variant creation is recorded as an ADJUSTMENT from 0; after that it
  changes only through apply_variant_delta(), which writes the justifying
  movement in the same flush.
- Callers own the transaction (atomic()); nothing here commits except the
  public adjust_stock() operation.
- Items without variants carry no stock. Their movements use a zero
  baseline: previous_quantity=0, new_quantity=quantity.
- Negative stock is permitted unless ALLOW_NEGATIVE_STOCK is False.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Item, ItemVariant, ItemMovement
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_PURCHASE,
    MOVEMENT_RETURN,
    MOVEMENT_SALE,
    MOVEMENT_STATUS_COMPLETED,
    MOVEMENT_TYPES,
    REFERENCE_PURCHASE_ORDER,
    REFERENCE_SALE,
)
from ..errors import NotFoundError, ValidationError
from ..identity import CallerIdentity, require_identity
from .concurrency import atomic, lock_for_update
from .pagination import paginate


def negative_stock_allowed() -> bool:
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", True))


def get_variant_for_update(variant_id: int) -> ItemVariant:
    variant = lock_for_update(db.session.query(ItemVariant).filter_by(id=variant_id)).first()
    if variant is None:
        raise NotFoundError("Item variant not found")
    return variant


def record_movement(
    *,
    user_id: str,
    item_id: int,
    movement_type: str,
    quantity: int,
    previous_quantity: int,
    new_quantity: int,
    item_variant_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
) -> ItemMovement:
    """Append one movement row (flush only)."""
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {movement_type}")
    if new_quantity != previous_quantity + quantity:
        raise ValueError(
            f"movement snapshot mismatch: {previous_quantity} + {quantity} != {new_quantity}"
        )

    movement = ItemMovement(
        user_id=user_id,
        item_id=item_id,
        item_variant_id=item_variant_id,
        movement_type=movement_type,
        status=MOVEMENT_STATUS_COMPLETED,
        quantity=quantity,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def apply_variant_delta(
    variant: ItemVariant,
    delta: int,
    *,
    user_id: str,
    movement_type: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
    enforce_non_negative: bool = False,
) -> ItemMovement:
    """
    Move variant stock by delta and record the movement.

    variant should have been loaded with get_variant_for_update() inside the
    caller's transaction.
    """
    previous = variant.stock_quantity or 0
    new = previous + delta

    if enforce_non_negative and new < 0:
        raise ValidationError(
            f"Insufficient stock for item variant {variant.code}. "
            f"Available: {previous}, Requested: {-delta}",
            details={"item_variant_id": variant.id, "available": previous, "requested": -delta},
        )

    movement = record_movement(
        user_id=user_id,
        item_id=variant.item_id,
        item_variant_id=variant.id,
        movement_type=movement_type,
        quantity=delta,
        previous_quantity=previous,
        new_quantity=new,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )
    variant.stock_quantity = new
    db.session.flush()
    return movement


def record_item_level_movement(
    item_id: int,
    quantity: int,
    *,
    user_id: str,
    movement_type: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
) -> ItemMovement:
    """Audit-only movement for a line without a variant (zero baseline)."""
    return record_movement(
        user_id=user_id,
        item_id=item_id,
        movement_type=movement_type,
        quantity=quantity,
        previous_quantity=0,
        new_quantity=quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )


# =============================================================================
# WRITE PATHS USED BY ORCHESTRATORS (no commit)
# =============================================================================

def record_sale_line(line, *, sale_id: int, user_id: str) -> ItemMovement:
    """Decrement stock for one sold line (SaleItem)."""
    notes = f"Sale #{sale_id}"
    if line.item_variant_id:
        variant = get_variant_for_update(line.item_variant_id)
        return apply_variant_delta(
            variant,
            -line.quantity,
            user_id=user_id,
            movement_type=MOVEMENT_SALE,
            reference_type=REFERENCE_SALE,
            reference_id=sale_id,
            notes=notes,
            enforce_non_negative=not negative_stock_allowed(),
        )

    return record_item_level_movement(
        line.item_id,
        -line.quantity,
        user_id=user_id,
        movement_type=MOVEMENT_SALE,
        reference_type=REFERENCE_SALE,
        reference_id=sale_id,
        notes=notes,
    )


def record_return_line(line, *, sale_id: int, user_id: str) -> ItemMovement:
    """Put a refunded line back into stock."""
    notes = f"Refund of sale #{sale_id}"
    if line.item_variant_id:
        variant = get_variant_for_update(line.item_variant_id)
        return apply_variant_delta(
            variant,
            line.quantity,
            user_id=user_id,
            movement_type=MOVEMENT_RETURN,
            reference_type=REFERENCE_SALE,
            reference_id=sale_id,
            notes=notes,
        )

    return record_item_level_movement(
        line.item_id,
        line.quantity,
        user_id=user_id,
        movement_type=MOVEMENT_RETURN,
        reference_type=REFERENCE_SALE,
        reference_id=sale_id,
        notes=notes,
    )


def receive_purchase_line(line, *, order, user_id: str) -> ItemMovement:
    """
    Receive one purchase-order line.

    Variant lines: stock += quantity, variant purchase price := line unit
    price. Item lines: item purchase price := line unit price, audit movement
    only. Either way received_quantity becomes the ordered quantity.
    """
    notes = f"Purchase order received: {order.order_number}"

    if line.item_variant_id:
        variant = get_variant_for_update(line.item_variant_id)
        variant.purchase_price = line.unit_price
        movement = apply_variant_delta(
            variant,
            line.quantity,
            user_id=user_id,
            movement_type=MOVEMENT_PURCHASE,
            reference_type=REFERENCE_PURCHASE_ORDER,
            reference_id=order.id,
            notes=notes,
        )
    else:
        item = db.session.query(Item).filter_by(id=line.item_id).first()
        if item is None:
            raise NotFoundError(f"Item with ID {line.item_id} not found")
        item.purchase_price = line.unit_price
        movement = record_item_level_movement(
            line.item_id,
            line.quantity,
            user_id=user_id,
            movement_type=MOVEMENT_PURCHASE,
            reference_type=REFERENCE_PURCHASE_ORDER,
            reference_id=order.id,
            notes=f"{notes} (no stock update at item level)",
        )

    line.received_quantity = line.quantity
    return movement


# =============================================================================
# PUBLIC OPERATIONS
# =============================================================================

def adjust_stock(
    identity: CallerIdentity,
    *,
    item_variant_id: int,
    quantity_delta: int,
    notes: str | None = None,
) -> ItemMovement:
    """
    Manual stock correction (count differences, damage, found goods).

    quantity_delta must be non-zero. Adjustments may take stock negative only
    when negative stock is allowed.
    """
    identity = require_identity(identity)
    if quantity_delta == 0:
        raise ValidationError("quantity_delta must be non-zero for ADJUSTMENT")

    with atomic():
        variant = get_variant_for_update(item_variant_id)
        if not variant.is_active:
            raise NotFoundError(f"Item variant with ID {item_variant_id} not found or inactive")
        movement = apply_variant_delta(
            variant,
            quantity_delta,
            user_id=identity.user_id,
            movement_type=MOVEMENT_ADJUSTMENT,
            notes=notes or "Manual stock adjustment",
            enforce_non_negative=not negative_stock_allowed(),
        )

    current_app.logger.info(
        "Stock adjusted: variant=%s delta=%s new=%s user=%s",
        variant.id, quantity_delta, movement.new_quantity, identity.user_id,
    )
    return movement


def list_movements(
    *,
    item_id: int | None = None,
    item_variant_id: int | None = None,
    movement_type: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """Movement history, newest first, paginated."""
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"Invalid movement_type. Must be one of: {', '.join(sorted(MOVEMENT_TYPES))}"
        )

    query = db.session.query(ItemMovement)
    if item_id is not None:
        query = query.filter(ItemMovement.item_id == item_id)
    if item_variant_id is not None:
        query = query.filter(ItemMovement.item_variant_id == item_variant_id)
    if movement_type is not None:
        query = query.filter(ItemMovement.movement_type == movement_type)
    if reference_type is not None:
        query = query.filter(ItemMovement.reference_type == reference_type)
    if reference_id is not None:
        query = query.filter(ItemMovement.reference_id == reference_id)

    rows, pagination = paginate(query.order_by(ItemMovement.id.desc()), page, per_page)
    return {
        "movements": [m.to_dict() for m in rows],
        "pagination": pagination,
    }
