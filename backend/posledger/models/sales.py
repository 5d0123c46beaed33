from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._serialize import money


SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_CANCELLED = "CANCELLED"
SALE_STATUS_REFUNDED = "REFUNDED"
SALE_STATUSES = {
    SALE_STATUS_PENDING,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_REFUNDED,
}

PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHODS = {PAYMENT_METHOD_CASH, "CARD", "TRANSFER", "CREDIT"}

PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUSES = {PAYMENT_STATUS_PAID, PAYMENT_STATUS_PENDING}


class Sale(db.Model):
    """
    POS sale. Created directly as COMPLETED; POS sales are not staged.

    final_amount == total_amount - discount_amount + tax_amount, where each
    order-level amount is the sum of the matching SaleItem column.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PAID)
    notes = db.Column(db.Text, nullable=True)

    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship("SaleItem", back_populates="sale", lazy=True, order_by="SaleItem.id")

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "customer": self.customer.to_dict() if self.customer else None,
            "status": self.status,
            "total_amount": money(self.total_amount),
            "discount_amount": money(self.discount_amount),
            "tax_amount": money(self.tax_amount),
            "final_amount": money(self.final_amount),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "notes": self.notes,
            "refunded_at": to_utc_z(self.refunded_at) if self.refunded_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    item_variant_id = db.Column(db.Integer, db.ForeignKey("item_variants.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)  # quantity * unit_price
    total = db.Column(db.Numeric(12, 2), nullable=False)  # subtotal - discount + tax
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    item = db.relationship("Item")
    item_variant = db.relationship("ItemVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
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
            "notes": self.notes,
        }
