from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._serialize import money


PO_STATUS_DRAFT = "DRAFT"
PO_STATUS_ORDERED = "ORDERED"
PO_STATUS_RECEIVED = "RECEIVED"
PO_STATUS_CANCELLED = "CANCELLED"
PO_STATUSES = {PO_STATUS_DRAFT, PO_STATUS_ORDERED, PO_STATUS_RECEIVED, PO_STATUS_CANCELLED}


class PurchaseOrder(db.Model):
    """
    Supplier purchase order.

    LIFECYCLE (see purchase_order_service.VALID_TRANSITIONS):
    - DRAFT -> ORDERED | CANCELLED
    - ORDERED -> RECEIVED | CANCELLED
    - RECEIVED -> CANCELLED
    - CANCELLED is terminal

    Stock and purchase prices change only at the RECEIVED transition.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_purchase_orders_order_number"),
        db.Index("ix_purchase_orders_status_date", "status", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)

    # PO-{YY}-{seq:04d}
    order_number = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_DRAFT, index=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expected_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        lazy=True,
        order_by="PurchaseOrderItem.id",
    )

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "order_number": self.order_number,
            "status": self.status,
            "order_date": to_utc_z(self.order_date),
            "expected_delivery_date": to_utc_z(self.expected_delivery_date) if self.expected_delivery_date else None,
            "actual_delivery_date": to_utc_z(self.actual_delivery_date) if self.actual_delivery_date else None,
            "total_amount": money(self.total_amount),
            "tax_amount": money(self.tax_amount),
            "discount_amount": money(self.discount_amount),
            "final_amount": money(self.final_amount),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    item_variant_id = db.Column(db.Integer, db.ForeignKey("item_variants.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    # Full ordered quantity once received; partial receipt is not modeled
    received_quantity = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    purchase_order = db.relationship("PurchaseOrder", back_populates="items")
    item = db.relationship("Item")
    item_variant = db.relationship("ItemVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "item_id": self.item_id,
            "item_variant_id": self.item_variant_id,
            "item": self.item.to_dict(include_variants=False) if self.item else None,
            "item_variant": self.item_variant.to_dict() if self.item_variant else None,
            "quantity": self.quantity,
            "unit_price": money(self.unit_price),
            "discount_amount": money(self.discount_amount),
            "tax_amount": money(self.tax_amount),
            "subtotal": money(self.subtotal),
            "total": money(self.total),
            "received_quantity": self.received_quantity,
            "notes": self.notes,
        }
