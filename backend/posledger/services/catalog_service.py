"""
Catalog Service: items and their variants.

WHY: An item is created together with its full variant matrix in one
transaction, so a half-built item (code minted, variants missing) is never
visible.

CODE GENERATION: the item code comes from code_generator and may collide with
a concurrent insert. The whole creation is retried on IntegrityError up to
CODE_GENERATION_ATTEMPTS times, then reported as ConflictError.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category, Item, ItemVariant
from ..models.catalog import STORE_PREFIXES
from ..models.inventory import MOVEMENT_ADJUSTMENT
from ..errors import ConflictError, NotFoundError, ValidationError
from ..identity import CallerIdentity, require_identity
from ..validation import parse_amount, parse_int
from .code_generator import (
    generate_item_code,
    generate_variant_code,
    generate_variant_combinations,
)
from . import inventory_service
from .concurrency import atomic, run_with_retry


def validate_variant_groups(variant_groups) -> dict[str, list[str]]:
    """Each group must be a non-empty list of strings."""
    if not variant_groups:
        return {}
    if not isinstance(variant_groups, dict):
        raise ValidationError("variant_groups must be an object")
    for name, values in variant_groups.items():
        if not isinstance(values, list) or not values:
            raise ValidationError(f"Variant group '{name}' must be a non-empty array")
        if not all(isinstance(v, str) for v in values):
            raise ValidationError(f"All values in variant group '{name}' must be strings")
        # Repeats would mint the same variant code twice in one item
        if len(set(values)) != len(values):
            raise ValidationError(f"Variant group '{name}' contains duplicate values")
    return variant_groups


def _variant_defaults(defaults: dict | None, *, purchase_price, selling_price, min_stock_level, max_stock_level) -> dict:
    """Per-variant field values; missing defaults fall back to the item's."""
    defaults = defaults or {}
    return {
        "purchase_price": parse_amount(defaults.get("purchase_price"), "variant_defaults.purchase_price", default=purchase_price),
        "selling_price": parse_amount(defaults.get("selling_price"), "variant_defaults.selling_price", default=selling_price),
        "stock_quantity": parse_int(defaults.get("stock_quantity"), "variant_defaults.stock_quantity", default=0),
        "min_stock_level": parse_int(defaults.get("min_stock_level"), "variant_defaults.min_stock_level", default=min_stock_level, minimum=0),
        "max_stock_level": parse_int(defaults.get("max_stock_level"), "variant_defaults.max_stock_level", default=max_stock_level, minimum=0),
        "image_url": defaults.get("image_url"),
        "notes": defaults.get("notes"),
    }


def create_item_with_variants(
    identity: CallerIdentity,
    *,
    category_id: int,
    store: str,
    description: str | None = None,
    purchase_price: Decimal = Decimal("0.00"),
    selling_price: Decimal = Decimal("0.00"),
    min_stock_level: int = 0,
    max_stock_level: int = 0,
    image_url: str | None = None,
    notes: str | None = None,
    variant_groups: dict | None = None,
    variant_defaults: dict | None = None,
) -> Item:
    """
    Create an item plus one variant per combination of variant_groups.

    Raises:
        ValidationError: bad store, bad variant groups or defaults
        NotFoundError: category missing or inactive
        ConflictError: a variant code exists already, or code generation
            kept colliding
    """
    identity = require_identity(identity)
    if store not in STORE_PREFIXES:
        raise ValidationError("Invalid store value")

    groups = validate_variant_groups(variant_groups)
    combinations = generate_variant_combinations(groups)
    if groups and not combinations:
        raise ValidationError("No valid variant combinations could be generated")
    suffixes = [generate_variant_code("", combo) for combo in combinations]
    if len(set(suffixes)) != len(suffixes):
        raise ValidationError("Variant combinations produce duplicate variant codes")

    defaults = _variant_defaults(
        variant_defaults,
        purchase_price=purchase_price,
        selling_price=selling_price,
        min_stock_level=min_stock_level,
        max_stock_level=max_stock_level,
    )

    def _create() -> int:
        with atomic():
            category = db.session.query(Category).filter_by(id=category_id, is_active=True).first()
            if category is None:
                raise NotFoundError("Category not found or inactive")

            code = generate_item_code(store)
            item = Item(
                code=code,
                description=description,
                category_id=category.id,
                store=store,
                purchase_price=purchase_price,
                selling_price=selling_price,
                min_stock_level=min_stock_level,
                max_stock_level=max_stock_level,
                image_url=image_url,
                notes=notes,
                is_active=True,
            )
            db.session.add(item)
            db.session.flush()

            variant_codes = [generate_variant_code(code, combo) for combo in combinations]
            if variant_codes:
                existing = (
                    db.session.query(ItemVariant.id)
                    .filter(ItemVariant.code.in_(variant_codes))
                    .first()
                )
                if existing is not None:
                    raise ConflictError("One or more generated variant codes already exist")

            for combo, variant_code in zip(combinations, variant_codes):
                variant = ItemVariant(
                    item_id=item.id,
                    code=variant_code,
                    attributes=combo,
                    is_active=True,
                    **defaults,
                )
                db.session.add(variant)
                db.session.flush()
                if variant.stock_quantity:
                    # Opening stock enters the ledger like any other change
                    inventory_service.record_movement(
                        user_id=identity.user_id,
                        item_id=item.id,
                        item_variant_id=variant.id,
                        movement_type=MOVEMENT_ADJUSTMENT,
                        quantity=variant.stock_quantity,
                        previous_quantity=0,
                        new_quantity=variant.stock_quantity,
                        notes="Initial stock",
                    )
            return item.id

    attempts = current_app.config.get("CODE_GENERATION_ATTEMPTS", 3)
    try:
        item_id = run_with_retry(_create, attempts=attempts, retry_on=(IntegrityError,))
    except IntegrityError:
        current_app.logger.warning("Item code generation exhausted %s attempts for store %s", attempts, store)
        raise ConflictError("Could not generate a unique item code, please retry")

    item = db.session.get(Item, item_id)
    current_app.logger.info(
        "Item created: %s with %d variants by user=%s", item.code, len(combinations), identity.user_id,
    )
    return item


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None or not item.is_active:
        raise NotFoundError("Item not found")
    return item


def search_items(
    *,
    query: str | None = None,
    category_id: int | None = None,
    store: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    in_stock: bool = False,
    has_variants: bool | None = None,
    limit: int = 10,
    offset: int = 0,
) -> dict:
    """
    Active-item search.

    in_stock keeps items with at least one active variant in stock.
    has_variants=True/False keeps items with/without active variants.
    """
    q = db.session.query(Item).filter(Item.is_active.is_(True))

    if query:
        pattern = f"%{query}%"
        q = q.filter(or_(Item.code.ilike(pattern), Item.description.ilike(pattern)))
    if category_id is not None:
        q = q.filter(Item.category_id == category_id)
    if store:
        q = q.filter(Item.store == store)
    if min_price is not None:
        q = q.filter(Item.selling_price >= min_price)
    if max_price is not None:
        q = q.filter(Item.selling_price <= max_price)

    active_variant = Item.variants.any(ItemVariant.is_active.is_(True))
    if in_stock:
        q = q.filter(Item.variants.any(
            and_(ItemVariant.is_active.is_(True), ItemVariant.stock_quantity > 0)
        ))
    if has_variants is True:
        q = q.filter(active_variant)
    elif has_variants is False:
        q = q.filter(~active_variant)

    limit = min(max(limit, 1), 100)
    offset = max(offset, 0)
    total = q.count()
    items = q.order_by(Item.created_at.desc(), Item.id.desc()).offset(offset).limit(limit).all()

    return {
        "items": [i.to_dict() for i in items],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "total_pages": (total + limit - 1) // limit if total else 0,
        },
    }
