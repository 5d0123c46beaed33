"""
Cash Ledger Service

WHY: Every coin in or out of a drawer must be explainable. A register
session's balance is never stored while OPEN; it is recomputed by folding the
session's COMPLETED CashMovements over the opening amount.

DESIGN PRINCIPLES:
- One OPEN register per user at a time
- CashMovement rows are append-only; snapshots are written once
- The register row is locked (FOR UPDATE) before any balance-dependent write
- Orchestrators call record_cash_sale/record_cash_return inside their own
  transaction; the public operations here open their own atomic() scope
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashRegister, CashMovement
from ..models.registers import (
    CASH_CLOSING,
    CASH_DEPOSIT,
    CASH_INFLOW_TYPES,
    CASH_OPENING,
    CASH_OUTFLOW_TYPES,
    CASH_RETURN,
    CASH_SALE,
    CASH_STATUS_COMPLETED,
    CASH_WITHDRAWAL,
    REGISTER_CLOSED,
    REGISTER_OPEN,
)
from ..models.inventory import REFERENCE_SALE
from ..errors import NotFoundError, ValidationError
from ..identity import CallerIdentity, require_identity
from ..time_utils import utcnow
from ..validation import to_money
from .concurrency import atomic, lock_for_update
from .pagination import paginate


# =============================================================================
# BALANCE FOLD
# =============================================================================

def fold_balance(opening_amount, movements) -> Decimal:
    """
    balance = opening + sum(SALE, DEPOSIT) - sum(RETURN, WITHDRAWAL)

    Only COMPLETED movements count. OPENING, CLOSING and ADJUSTMENT rows are
    ignored. Pure function: same inputs, same result.
    """
    balance = to_money(opening_amount)
    for movement in movements:
        if movement.status != CASH_STATUS_COMPLETED:
            continue
        if movement.movement_type in CASH_INFLOW_TYPES:
            balance += to_money(movement.amount)
        elif movement.movement_type in CASH_OUTFLOW_TYPES:
            balance -= to_money(movement.amount)
    return balance


def _completed_movements(register_id: int) -> list[CashMovement]:
    return (
        db.session.query(CashMovement)
        .filter_by(cash_register_id=register_id, status=CASH_STATUS_COMPLETED)
        .order_by(CashMovement.id)
        .all()
    )


def current_balance(register: CashRegister) -> Decimal:
    return fold_balance(register.opening_amount, _completed_movements(register.id))


def find_open_register(user_id: str, *, for_update: bool = False) -> CashRegister | None:
    query = db.session.query(CashRegister).filter_by(user_id=user_id, status=REGISTER_OPEN)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def _require_open_register(user_id: str) -> CashRegister:
    register = find_open_register(user_id, for_update=True)
    if register is None:
        raise NotFoundError("No open cash register found")
    return register


def _append(
    register: CashRegister,
    *,
    user_id: str,
    movement_type: str,
    amount: Decimal,
    previous_balance: Decimal,
    new_balance: Decimal,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
) -> CashMovement:
    movement = CashMovement(
        cash_register_id=register.id,
        user_id=user_id,
        movement_type=movement_type,
        status=CASH_STATUS_COMPLETED,
        amount=amount,
        previous_balance=previous_balance,
        new_balance=new_balance,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def _inflow(register, amount, *, user_id, movement_type, **kwargs) -> CashMovement:
    previous = current_balance(register)
    return _append(
        register,
        user_id=user_id,
        movement_type=movement_type,
        amount=amount,
        previous_balance=previous,
        new_balance=previous + amount,
        **kwargs,
    )


def _outflow(register, amount, *, user_id, movement_type, **kwargs) -> CashMovement:
    previous = current_balance(register)
    if previous < amount:
        raise ValidationError(
            "Insufficient cash in register",
            details={"balance": float(previous), "requested": float(amount)},
        )
    return _append(
        register,
        user_id=user_id,
        movement_type=movement_type,
        amount=amount,
        previous_balance=previous,
        new_balance=previous - amount,
        **kwargs,
    )


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

def open_register(identity: CallerIdentity, opening_amount: Decimal, notes: str | None = None) -> CashRegister:
    """
    Open a drawer session for the caller.

    Raises:
        ValidationError: caller already has an OPEN register, or amount < 0
    """
    identity = require_identity(identity)
    opening_amount = to_money(opening_amount)
    if opening_amount < 0:
        raise ValidationError("opening_amount must be >= 0")

    with atomic():
        if find_open_register(identity.user_id, for_update=True) is not None:
            raise ValidationError("You already have an open cash register")

        register = CashRegister(
            user_id=identity.user_id,
            status=REGISTER_OPEN,
            opening_amount=opening_amount,
            opening_notes=notes,
            opened_at=utcnow(),
        )
        db.session.add(register)
        try:
            db.session.flush()
        except IntegrityError:
            # Lost the race against a concurrent open for the same user
            raise ValidationError("You already have an open cash register")

        _append(
            register,
            user_id=identity.user_id,
            movement_type=CASH_OPENING,
            amount=opening_amount,
            previous_balance=Decimal("0.00"),
            new_balance=opening_amount,
            notes="Opening cash register",
        )

    current_app.logger.info(
        "Cash register opened: register=%s user=%s opening=%s",
        register.id, identity.user_id, opening_amount,
    )
    return register


def close_register(identity: CallerIdentity, actual_amount: Decimal, notes: str | None = None) -> CashRegister:
    """
    Close the caller's OPEN session.

    expected_amount is the fold at close time; difference = actual - expected.
    The CLOSING movement empties the drawer (expected -> 0).
    """
    identity = require_identity(identity)
    actual_amount = to_money(actual_amount)
    if actual_amount < 0:
        raise ValidationError("actual_amount must be >= 0")

    with atomic():
        register = _require_open_register(identity.user_id)
        expected = current_balance(register)

        register.closing_amount = actual_amount
        register.actual_amount = actual_amount
        register.expected_amount = expected
        register.difference = actual_amount - expected
        register.closing_notes = notes
        register.closed_at = utcnow()
        register.status = REGISTER_CLOSED

        _append(
            register,
            user_id=identity.user_id,
            movement_type=CASH_CLOSING,
            amount=expected,
            previous_balance=expected,
            new_balance=Decimal("0.00"),
            notes="Closing cash register",
        )

    current_app.logger.info(
        "Cash register closed: register=%s user=%s expected=%s actual=%s",
        register.id, identity.user_id, expected, actual_amount,
    )
    return register


def deposit(identity: CallerIdentity, amount: Decimal, notes: str | None = None) -> CashMovement:
    identity = require_identity(identity)
    amount = _positive(amount)

    with atomic():
        register = _require_open_register(identity.user_id)
        movement = _inflow(
            register, amount,
            user_id=identity.user_id,
            movement_type=CASH_DEPOSIT,
            notes=notes or "Cash deposit",
        )

    current_app.logger.info("Cash deposit: register=%s amount=%s", movement.cash_register_id, amount)
    return movement


def withdraw(identity: CallerIdentity, amount: Decimal, notes: str | None = None) -> CashMovement:
    """Remove cash; fails when the folded balance is below amount."""
    identity = require_identity(identity)
    amount = _positive(amount)

    with atomic():
        register = _require_open_register(identity.user_id)
        movement = _outflow(
            register, amount,
            user_id=identity.user_id,
            movement_type=CASH_WITHDRAWAL,
            notes=notes or "Cash withdrawal",
        )

    current_app.logger.info("Cash withdrawal: register=%s amount=%s", movement.cash_register_id, amount)
    return movement


def _positive(amount) -> Decimal:
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    return amount


# =============================================================================
# ORCHESTRATOR HOOKS (no commit)
# =============================================================================

def record_cash_sale(user_id: str, sale_id: int, amount: Decimal) -> CashMovement | None:
    """SALE inflow on the user's open register; None when no register is open."""
    register = find_open_register(user_id, for_update=True)
    if register is None:
        return None
    return _inflow(
        register, to_money(amount),
        user_id=user_id,
        movement_type=CASH_SALE,
        reference_type=REFERENCE_SALE,
        reference_id=sale_id,
        notes=f"Sale #{sale_id}",
    )


def record_cash_return(user_id: str, sale_id: int, amount: Decimal) -> CashMovement | None:
    """RETURN outflow; raises ValidationError when the drawer cannot cover it."""
    register = find_open_register(user_id, for_update=True)
    if register is None:
        return None
    return _outflow(
        register, to_money(amount),
        user_id=user_id,
        movement_type=CASH_RETURN,
        reference_type=REFERENCE_SALE,
        reference_id=sale_id,
        notes=f"Refund of sale #{sale_id}",
    )


# =============================================================================
# READS
# =============================================================================

def get_status(identity: CallerIdentity) -> dict:
    identity = require_identity(identity)
    register = find_open_register(identity.user_id)
    if register is None:
        return {"is_open": False, "register": None, "current_balance": None}
    return {
        "is_open": True,
        "register": register.to_dict(include_movements=True),
        "current_balance": float(current_balance(register)),
    }


def get_history(identity: CallerIdentity, *, page: int = 1, per_page: int = 10) -> dict:
    """Caller's register sessions, newest first, with completed movements."""
    identity = require_identity(identity)
    query = (
        db.session.query(CashRegister)
        .filter_by(user_id=identity.user_id)
        .order_by(CashRegister.created_at.desc(), CashRegister.id.desc())
    )
    rows, pagination = paginate(query, page, per_page)
    return {
        "registers": [r.to_dict(include_movements=True) for r in rows],
        "pagination": pagination,
    }


def list_registers(status: str | None = None) -> list[CashRegister]:
    query = db.session.query(CashRegister)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(CashRegister.id).all()
