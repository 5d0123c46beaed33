# Overview: Category tree maintenance (create, list, read, update, soft delete).

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Category, Item
from ..errors import ConflictError, NotFoundError, ValidationError
from ..identity import CallerIdentity, require_identity
from .concurrency import atomic


def _get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def _get_active_parent(parent_id: int) -> Category:
    parent = db.session.query(Category).filter_by(id=parent_id, is_active=True).first()
    if parent is None:
        raise NotFoundError("Parent category not found or inactive")
    return parent


def _code_taken(code: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Category.id).filter(Category.code == code)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def would_create_cycle(category_id: int, new_parent_id: int) -> bool:
    """
    True if new_parent_id is category_id or one of its descendants.

    Walks up from the proposed parent. The walk is bounded by the number of
    categories so a pre-existing corrupt loop cannot spin forever.
    """
    if category_id == new_parent_id:
        return True

    limit = db.session.query(Category).count()
    current_id = new_parent_id
    steps = 0
    while current_id is not None and steps <= limit:
        if current_id == category_id:
            return True
        current_id = db.session.query(Category.parent_id).filter(Category.id == current_id).scalar()
        steps += 1
    return False


def create_category(
    identity: CallerIdentity,
    *,
    name: str,
    code: str,
    description: str | None = None,
    parent_id: int | None = None,
) -> Category:
    require_identity(identity)
    if not name or not code:
        raise ValidationError("Name and code are required")

    with atomic():
        if _code_taken(code):
            raise ConflictError("Category with this code already exists")
        if parent_id is not None:
            _get_active_parent(parent_id)

        category = Category(
            name=name,
            code=code,
            description=description,
            parent_id=parent_id,
            is_active=True,
        )
        db.session.add(category)
    return category


def list_categories(
    *,
    search: str | None = None,
    is_active: bool | None = None,
    include_inactive_children: bool = False,
) -> list[dict]:
    query = db.session.query(Category)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Category.name.ilike(pattern),
                Category.code.ilike(pattern),
                Category.description.ilike(pattern),
            )
        )
    if is_active is not None:
        query = query.filter(Category.is_active == is_active)

    return [
        c.to_dict(include_children=True, include_inactive_children=include_inactive_children)
        for c in query.order_by(Category.name.asc()).all()
    ]


def get_category(category_id: int) -> dict:
    """Category with its active children and active items."""
    category = _get_category(category_id)
    data = category.to_dict(include_children=True)
    data["items"] = [
        {"id": i.id, "code": i.code, "description": i.description}
        for i in category.items
        if i.is_active
    ]
    return data


def update_category(identity: CallerIdentity, category_id: int, changes: dict) -> Category:
    """
    Partial update. Only keys present in changes are touched.

    parent_id may be set to None to make the category a root.
    """
    require_identity(identity)

    with atomic():
        category = _get_category(category_id)

        code = changes.get("code")
        if code and code != category.code and _code_taken(code, exclude_id=category.id):
            raise ConflictError("Category with this code already exists")

        if "parent_id" in changes and changes["parent_id"] is not None:
            parent_id = changes["parent_id"]
            if parent_id == category.id:
                raise ValidationError("Category cannot be its own parent")
            _get_active_parent(parent_id)
            if would_create_cycle(category.id, parent_id):
                raise ValidationError("Cannot set a descendant category as parent")

        if changes.get("is_active") is False and category.is_active:
            _ensure_can_deactivate(category)

        for field in ("name", "code", "description", "parent_id", "is_active"):
            if field in changes:
                setattr(category, field, changes[field])
    return category


def _ensure_can_deactivate(category: Category) -> None:
    """Refuse while active items or active children still hang off category."""
    active_items = (
        db.session.query(Item.id)
        .filter(Item.category_id == category.id, Item.is_active.is_(True))
        .first()
    )
    if active_items is not None:
        raise ValidationError("Cannot delete category with active items")

    active_children = (
        db.session.query(Category.id)
        .filter(Category.parent_id == category.id, Category.is_active.is_(True))
        .first()
    )
    if active_children is not None:
        raise ValidationError("Cannot delete category with active child categories")


def delete_category(identity: CallerIdentity, category_id: int) -> None:
    """Soft delete; refused while active items or active children remain."""
    require_identity(identity)

    with atomic():
        category = _get_category(category_id)
        _ensure_can_deactivate(category)
        category.is_active = False
