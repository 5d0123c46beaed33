from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z
from ._serialize import money


REGISTER_OPEN = "OPEN"
REGISTER_CLOSED = "CLOSED"

CASH_SALE = "SALE"
CASH_RETURN = "RETURN"
CASH_WITHDRAWAL = "WITHDRAWAL"
CASH_DEPOSIT = "DEPOSIT"
CASH_OPENING = "OPENING"
CASH_CLOSING = "CLOSING"
CASH_ADJUSTMENT = "ADJUSTMENT"
CASH_MOVEMENT_TYPES = {
    CASH_SALE,
    CASH_RETURN,
    CASH_WITHDRAWAL,
    CASH_DEPOSIT,
    CASH_OPENING,
    CASH_CLOSING,
    CASH_ADJUSTMENT,
}

# Direction of each type relative to the drawer balance
CASH_INFLOW_TYPES = {CASH_SALE, CASH_DEPOSIT}
CASH_OUTFLOW_TYPES = {CASH_RETURN, CASH_WITHDRAWAL}

CASH_STATUS_PENDING = "PENDING"
CASH_STATUS_COMPLETED = "COMPLETED"
CASH_STATUS_CANCELLED = "CANCELLED"


class CashRegister(db.Model):
    """
    One cash-drawer session for one user (OPEN -> CLOSED).

    INVARIANT: at most one OPEN register per user. The service checks under a
    row lock; the partial unique index rejects a concurrent second OPEN row.

    No running balance is stored while OPEN: the balance is the fold of the
    register's COMPLETED CashMovements over opening_amount. expected_amount
    and difference are frozen at close.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.Index("ix_cash_registers_user_status", "user_id", "status"),
        db.Index(
            "uq_cash_registers_one_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=REGISTER_OPEN, index=True)

    opening_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    closing_amount = db.Column(db.Numeric(12, 2), nullable=True)
    expected_amount = db.Column(db.Numeric(12, 2), nullable=True)
    actual_amount = db.Column(db.Numeric(12, 2), nullable=True)
    difference = db.Column(db.Numeric(12, 2), nullable=True)  # actual - expected

    opening_notes = db.Column(db.Text, nullable=True)
    closing_notes = db.Column(db.Text, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    movements = db.relationship(
        "CashMovement",
        back_populates="cash_register",
        lazy=True,
        order_by="CashMovement.id",
    )

    def to_dict(self, *, include_movements: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "opening_amount": money(self.opening_amount),
            "closing_amount": money(self.closing_amount),
            "expected_amount": money(self.expected_amount),
            "actual_amount": money(self.actual_amount),
            "difference": money(self.difference),
            "opening_notes": self.opening_notes,
            "closing_notes": self.closing_notes,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "created_at": to_utc_z(self.created_at),
        }
        if include_movements:
            data["movements"] = [
                m.to_dict() for m in self.movements if m.status == CASH_STATUS_COMPLETED
            ]
        return data


class CashMovement(db.Model):
    """
    Append-only cash ledger row.

    amount is always >= 0; direction comes from movement_type.
    Snapshots: inflow types add, outflow types subtract, OPENING goes
    0 -> opening_amount, CLOSING goes expected_amount -> 0.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_register_status", "cash_register_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=CASH_STATUS_COMPLETED)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    previous_balance = db.Column(db.Numeric(12, 2), nullable=False)
    new_balance = db.Column(db.Numeric(12, 2), nullable=False)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cash_register = db.relationship("CashRegister", back_populates="movements")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_register_id": self.cash_register_id,
            "user_id": self.user_id,
            "movement_type": self.movement_type,
            "status": self.status,
            "amount": money(self.amount),
            "previous_balance": money(self.previous_balance),
            "new_balance": money(self.new_balance),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
