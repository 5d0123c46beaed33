from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ._serialize import money


# Store name -> 3-letter code prefix used by generated item codes
STORE_MINI_QUEEN = "Mini Queen"
STORE_LARICHE = "Lariche"
STORE_PREFIXES = {
    STORE_MINI_QUEEN: "MQN",
    STORE_LARICHE: "LCH",
}


class Category(db.Model):
    """
    Hierarchical item category.

    TREE: parent_id is a plain self-referencing foreign key. Cycles are
    prevented by category_service before any parent reassignment, not by the
    ORM.

    SOFT DELETE: is_active=False; refused while active children or active
    items still point at the category.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_categories_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    parent = db.relationship("Category", remote_side=[id], backref=db.backref("children", lazy=True))

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}

    def to_dict(self, *, include_children: bool = False, include_inactive_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "parent_id": self.parent_id,
            "parent": self.parent.to_summary() if self.parent else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_children:
            data["children"] = [
                c.to_summary()
                for c in self.children
                if include_inactive_children or c.is_active
            ]
        return data


class Item(db.Model):
    """
    Sellable catalog item.

    STOCK: Items have no stock column. Once an item has variants, every
    stock change lands on ItemVariant.stock_quantity; an item without
    variants is sold directly and only leaves an audit trail in ItemMovement.

    CODE: {STOREPREFIX}-{YY}-{seq:04d}, assigned by code_generator.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_items_code"),
        db.Index("ix_items_store_active", "store", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    store = db.Column(db.String(32), nullable=False, default=STORE_LARICHE)

    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)
    max_stock_level = db.Column(db.Integer, nullable=False, default=0)

    # Opaque URL produced by the upload pipeline
    image_url = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category", backref=db.backref("items", lazy=True))
    variants = db.relationship(
        "ItemVariant",
        back_populates="item",
        lazy=True,
        order_by="ItemVariant.id",
    )

    def __repr__(self) -> str:
        return f"<Item id={self.id} code={self.code!r} store={self.store!r}>"

    def to_dict(self, *, include_variants: bool = True) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "category_id": self.category_id,
            "category": {"name": self.category.name} if self.category else None,
            "store": self.store,
            "purchase_price": money(self.purchase_price),
            "selling_price": money(self.selling_price),
            "min_stock_level": self.min_stock_level,
            "max_stock_level": self.max_stock_level,
            "image_url": self.image_url,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            variants = [v for v in self.variants if v.is_active]
            data["has_variants"] = bool(variants)
            data["variants"] = [v.to_dict() for v in variants]
        return data


class ItemVariant(db.Model):
    """
    Concrete sellable configuration (size/color/...) of an Item.

    stock_quantity is a denormalized running value; ItemMovement rows are the
    audit source of truth and are written in the same transaction as every
    change to it. May go negative (oversell) unless ALLOW_NEGATIVE_STOCK is off.
    """
    __tablename__ = "item_variants"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_item_variants_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    code = db.Column(db.String(255), nullable=False)

    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)
    max_stock_level = db.Column(db.Integer, nullable=False, default=0)

    # e.g. {"size": "M", "color": "Red"}; key order is the code order
    attributes = db.Column(db.JSON, nullable=False, default=dict)
    image_url = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    item = db.relationship("Item", back_populates="variants")

    def __repr__(self) -> str:
        return f"<ItemVariant id={self.id} code={self.code!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "code": self.code,
            "purchase_price": money(self.purchase_price),
            "selling_price": money(self.selling_price),
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "max_stock_level": self.max_stock_level,
            "attributes": self.attributes or {},
            "image_url": self.image_url,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
