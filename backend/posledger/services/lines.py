# Overview: Order-line parsing and totals shared by sales and purchase orders.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..models import Item, ItemVariant
from ..errors import NotFoundError, ValidationError
from ..validation import parse_amount, parse_int, require_lines


@dataclass
class PricedLine:
    item_id: int
    item_variant_id: int | None
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    subtotal: Decimal
    total: Decimal
    notes: str | None = None

    def columns(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_variant_id": self.item_variant_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "subtotal": self.subtotal,
            "total": self.total,
            "notes": self.notes,
        }


@dataclass
class Totals:
    total_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    final_amount: Decimal

    def columns(self) -> dict:
        return {
            "total_amount": self.total_amount,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "final_amount": self.final_amount,
        }


def price_line(raw: dict, *, allow_zero_price: bool) -> PricedLine:
    """
    subtotal = quantity * unit_price
    total    = subtotal - discount + tax
    """
    item_id = parse_int(raw.get("item_id"), "item_id", minimum=1)
    variant_raw = raw.get("item_variant_id")
    item_variant_id = parse_int(variant_raw, "item_variant_id", minimum=1) if variant_raw is not None else None
    quantity = parse_int(raw.get("quantity"), "quantity", minimum=1)
    unit_price = parse_amount(raw.get("unit_price"), "unit_price", allow_zero=allow_zero_price)
    discount = parse_amount(raw.get("discount_amount"), "discount_amount", default=Decimal("0.00"))
    tax = parse_amount(raw.get("tax_amount"), "tax_amount", default=Decimal("0.00"))

    subtotal = unit_price * quantity
    if discount > subtotal:
        raise ValidationError("discount_amount cannot exceed the line subtotal")

    return PricedLine(
        item_id=item_id,
        item_variant_id=item_variant_id,
        quantity=quantity,
        unit_price=unit_price,
        discount_amount=discount,
        tax_amount=tax,
        subtotal=subtotal,
        total=subtotal - discount + tax,
        notes=raw.get("notes"),
    )


def price_lines(raw_lines, label: str, *, allow_zero_price: bool) -> list[PricedLine]:
    return [price_line(raw, allow_zero_price=allow_zero_price) for raw in require_lines(raw_lines, label)]


def sum_totals(lines) -> Totals:
    """final = total - discount + tax, summed from line columns."""
    total = sum((Decimal(l.subtotal) for l in lines), Decimal("0.00"))
    discount = sum((Decimal(l.discount_amount) for l in lines), Decimal("0.00"))
    tax = sum((Decimal(l.tax_amount) for l in lines), Decimal("0.00"))
    return Totals(
        total_amount=total,
        discount_amount=discount,
        tax_amount=tax,
        final_amount=total - discount + tax,
    )


def get_active_item(item_id: int) -> Item:
    item = db.session.query(Item).filter_by(id=item_id, is_active=True).first()
    if item is None:
        raise NotFoundError(f"Item with ID {item_id} not found or inactive")
    return item


def get_active_variant_of(item_id: int, variant_id: int) -> ItemVariant:
    variant = (
        db.session.query(ItemVariant)
        .filter_by(id=variant_id, item_id=item_id, is_active=True)
        .first()
    )
    if variant is None:
        raise NotFoundError(f"Item variant with ID {variant_id} not found or inactive")
    return variant


def has_active_variants(item_id: int) -> bool:
    return (
        db.session.query(ItemVariant.id)
        .filter_by(item_id=item_id, is_active=True)
        .first()
        is not None
    )
