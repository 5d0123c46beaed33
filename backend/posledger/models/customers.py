from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._serialize import money


class Customer(db.Model):
    """
    Customer master data.

    current_balance is a denormalized receivable: sales recorded with
    payment_status=PENDING add their final amount to it.

    WALK-IN: anonymous sales share one customer row, looked up by name.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_phone_active", "phone", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    tax_number = db.Column(db.String(64), nullable=True)

    credit_limit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    current_balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "tax_number": self.tax_number,
            "credit_limit": money(self.credit_limit),
            "current_balance": money(self.current_balance),
            "is_active": self.is_active,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
