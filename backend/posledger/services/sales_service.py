"""
Sale Orchestrator

WHY: A POS sale touches four ledgers at once: the sale document, variant
stock (ItemMovement), the customer's receivable and the cash drawer
(CashMovement). They must agree, so one sale is one atomic() block.

FLOW (create_sale):
1. Validate every line against the catalog (active item; mandatory active
   variant when the item has active variants)
2. Compute line and order totals from the parsed lines
3. Resolve the customer (phone match, new customer or walk-in)
4. Insert Sale + SaleItems, then one SALE ItemMovement per line
5. PENDING payment: customer.current_balance += final_amount
6. CASH + PAID: SALE CashMovement on the caller's open register, if any

Any exception in 1-6 rolls back everything.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Sale, SaleItem
from ..models.sales import (
    PAYMENT_METHOD_CASH,
    PAYMENT_METHODS,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUSES,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_REFUNDED,
    SALE_STATUSES,
)
from ..errors import NotFoundError, ValidationError
from ..identity import CallerIdentity, require_identity
from ..time_utils import utcnow
from ..validation import parse_choice
from . import cash_service, inventory_service
from .concurrency import atomic, lock_for_update
from .customer_service import resolve_sale_customer
from .lines import (
    get_active_item,
    get_active_variant_of,
    has_active_variants,
    price_lines,
    sum_totals,
)
from .pagination import paginate


def _validate_catalog_refs(lines) -> None:
    for line in lines:
        item = get_active_item(line.item_id)
        if line.item_variant_id is not None:
            get_active_variant_of(item.id, line.item_variant_id)
        elif has_active_variants(item.id):
            raise ValidationError(f"Item {item.code} has variants. Please specify a variant ID.")


def create_sale(
    identity: CallerIdentity,
    *,
    lines: list[dict],
    payment_method: str,
    payment_status: str = PAYMENT_STATUS_PAID,
    customer: dict | None = None,
    notes: str | None = None,
) -> Sale:
    identity = require_identity(identity)
    payment_method = parse_choice(payment_method, "payment_method", PAYMENT_METHODS)
    payment_status = parse_choice(payment_status, "payment_status", PAYMENT_STATUSES, default=PAYMENT_STATUS_PAID)
    priced = price_lines(lines, "Sale", allow_zero_price=True)
    totals = sum_totals(priced)

    with atomic():
        _validate_catalog_refs(priced)
        buyer = resolve_sale_customer(customer)

        sale = Sale(
            user_id=identity.user_id,
            customer_id=buyer.id,
            status=SALE_STATUS_COMPLETED,
            payment_method=payment_method,
            payment_status=payment_status,
            notes=notes,
            **totals.columns(),
        )
        db.session.add(sale)
        db.session.flush()

        for line in priced:
            sale_item = SaleItem(sale_id=sale.id, **line.columns())
            db.session.add(sale_item)
            db.session.flush()
            inventory_service.record_sale_line(sale_item, sale_id=sale.id, user_id=identity.user_id)

        if payment_status == PAYMENT_STATUS_PENDING:
            buyer.current_balance = Decimal(buyer.current_balance or 0) + totals.final_amount

        cash = None
        if payment_method == PAYMENT_METHOD_CASH and payment_status == PAYMENT_STATUS_PAID:
            cash = cash_service.record_cash_sale(identity.user_id, sale.id, totals.final_amount)

    current_app.logger.info(
        "Sale recorded: sale=%s user=%s final=%s lines=%d cash_movement=%s",
        sale.id, identity.user_id, totals.final_amount, len(priced), cash.id if cash else None,
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def _filtered(query, *, status=None, start_date=None, end_date=None, customer_id=None):
    if status is not None:
        query = query.filter(Sale.status == status)
    if start_date is not None:
        query = query.filter(Sale.created_at >= start_date)
    if end_date is not None:
        query = query.filter(Sale.created_at <= end_date)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    return query


def list_sales(
    *,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    customer_id: int | None = None,
    page: int = 1,
    per_page: int = 10,
) -> dict:
    if status is not None and status not in SALE_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(sorted(SALE_STATUSES))}")

    query = _filtered(
        db.session.query(Sale),
        status=status, start_date=start_date, end_date=end_date, customer_id=customer_id,
    ).order_by(Sale.created_at.desc(), Sale.id.desc())

    rows, pagination = paginate(query, page, per_page)
    return {
        "sales": [s.to_dict(include_items=False) for s in rows],
        "pagination": pagination,
    }


def get_sales_summary(*, start_date: datetime | None = None, end_date: datetime | None = None) -> dict:
    """Totals over COMPLETED sales (refunded sales are excluded)."""
    query = _filtered(
        db.session.query(
            func.coalesce(func.sum(Sale.final_amount), 0),
            func.count(Sale.id),
        ),
        status=SALE_STATUS_COMPLETED, start_date=start_date, end_date=end_date,
    )
    total, count = query.one()
    total = Decimal(str(total or 0)).quantize(Decimal("0.01"))
    average = (total / count).quantize(Decimal("0.01")) if count else Decimal("0.00")
    return {
        "total_sales": float(total),
        "total_orders": int(count),
        "average_order_value": float(average),
    }


def refund_sale(identity: CallerIdentity, sale_id: int, notes: str | None = None) -> Sale:
    """
    COMPLETED -> REFUNDED.

    Restocks every line (RETURN movements). CASH+PAID sales pay the money back
    from the caller's open register (if any); PENDING sales reduce the
    customer's receivable instead.
    """
    identity = require_identity(identity)

    with atomic():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError("Sale not found")
        if sale.status != SALE_STATUS_COMPLETED:
            raise ValidationError(f"Only completed sales can be refunded (current status: {sale.status})")

        for line in sale.items:
            inventory_service.record_return_line(line, sale_id=sale.id, user_id=identity.user_id)

        final_amount = Decimal(sale.final_amount)
        if sale.payment_status == PAYMENT_STATUS_PENDING:
            customer = sale.customer
            customer.current_balance = Decimal(customer.current_balance or 0) - final_amount
        elif sale.payment_method == PAYMENT_METHOD_CASH:
            cash_service.record_cash_return(identity.user_id, sale.id, final_amount)

        sale.status = SALE_STATUS_REFUNDED
        sale.refunded_at = utcnow()
        if notes:
            sale.notes = f"{sale.notes}\n{notes}" if sale.notes else notes

    current_app.logger.info("Sale refunded: sale=%s user=%s amount=%s", sale.id, identity.user_id, final_amount)
    return sale
