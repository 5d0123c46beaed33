# Overview: Customer master data and the customer lookup used when recording a sale.

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Customer
from ..errors import NotFoundError, ValidationError
from ..identity import CallerIdentity, require_identity
from ..validation import parse_amount
from .concurrency import atomic
from .pagination import paginate


CUSTOMER_FIELDS = ("name", "email", "phone", "address", "tax_number", "notes")


def _build_customer(data: dict) -> Customer:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Customer name is required")
    customer = Customer(
        credit_limit=parse_amount(data.get("credit_limit"), "credit_limit", default=Decimal("0.00")),
        current_balance=Decimal("0.00"),
        is_active=True,
    )
    for field in CUSTOMER_FIELDS:
        setattr(customer, field, data.get(field))
    customer.name = name
    return customer


def create_customer(identity: CallerIdentity, data: dict) -> Customer:
    require_identity(identity)
    with atomic():
        customer = _build_customer(data)
        db.session.add(customer)
    return customer


def list_customers(*, page: int = 1, per_page: int = 10) -> dict:
    query = (
        db.session.query(Customer)
        .filter(Customer.is_active.is_(True))
        .order_by(Customer.created_at.desc(), Customer.id.desc())
    )
    rows, pagination = paginate(query, page, per_page)
    return {"customers": [c.to_dict() for c in rows], "pagination": pagination}


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def search_customers(query: str, *, limit: int = 10) -> list[Customer]:
    """Active customers whose name or phone contains query."""
    if not query or not query.strip():
        raise ValidationError("Search query is required")
    pattern = f"%{query.strip()}%"
    return (
        db.session.query(Customer)
        .filter(
            Customer.is_active.is_(True),
            or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)),
        )
        .order_by(Customer.name.asc())
        .limit(min(max(limit, 1), 100))
        .all()
    )


def get_or_create_walk_in() -> Customer:
    name = current_app.config.get("WALK_IN_CUSTOMER_NAME", "Walk-in Customer")
    customer = db.session.query(Customer).filter_by(name=name).order_by(Customer.id).first()
    if customer is None:
        customer = Customer(name=name, is_active=True, credit_limit=0, current_balance=0)
        db.session.add(customer)
        db.session.flush()
    return customer


def resolve_sale_customer(data: dict | None) -> Customer:
    """
    Customer a sale is booked against (flush only, caller owns the transaction).

    - data with a phone: the active customer with that phone, created from
      data when none exists
    - otherwise: the shared walk-in customer
    """
    if data and data.get("phone"):
        existing = (
            db.session.query(Customer)
            .filter_by(phone=data["phone"], is_active=True)
            .order_by(Customer.id)
            .first()
        )
        if existing is not None:
            return existing
        customer = _build_customer(data)
        db.session.add(customer)
        db.session.flush()
        return customer
    return get_or_create_walk_in()
