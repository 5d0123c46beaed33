from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


MOVEMENT_PURCHASE = "PURCHASE"
MOVEMENT_SALE = "SALE"
MOVEMENT_ADJUSTMENT = "ADJUSTMENT"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_TRANSFER = "TRANSFER"
MOVEMENT_TYPES = {
    MOVEMENT_PURCHASE,
    MOVEMENT_SALE,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RETURN,
    MOVEMENT_TRANSFER,
}

MOVEMENT_STATUS_PENDING = "PENDING"
MOVEMENT_STATUS_COMPLETED = "COMPLETED"
MOVEMENT_STATUS_CANCELLED = "CANCELLED"
MOVEMENT_STATUSES = {
    MOVEMENT_STATUS_PENDING,
    MOVEMENT_STATUS_COMPLETED,
    MOVEMENT_STATUS_CANCELLED,
}

REFERENCE_SALE = "SALE"
REFERENCE_PURCHASE_ORDER = "PURCHASE_ORDER"


class ItemMovement(db.Model):
    """
    Append-only stock ledger row.

    INVARIANT: new_quantity == previous_quantity + quantity at write time.
    Snapshots are never recomputed; rows are never updated or deleted.

    Lines against items without variants carry a zero baseline
    (previous_quantity=0) because no item-level stock exists.
    """
    __tablename__ = "item_movements"
    __table_args__ = (
        db.Index("ix_item_movements_item_created", "item_id", "created_at"),
        db.Index("ix_item_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    item_variant_id = db.Column(db.Integer, db.ForeignKey("item_variants.id"), nullable=True, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=MOVEMENT_STATUS_COMPLETED)

    quantity = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    item = db.relationship("Item")
    item_variant = db.relationship("ItemVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "item_id": self.item_id,
            "item_variant_id": self.item_variant_id,
            "movement_type": self.movement_type,
            "status": self.status,
            "quantity": self.quantity,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
