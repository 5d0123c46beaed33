# Overview: Pytest coverage for register sessions and the cash balance fold.

"""
Cash Ledger Tests

Covers:
- open/close lifecycle and the one-open-register-per-user rule
- fold determinism (types excluded from the fold, non-completed rows)
- snapshot invariants on every movement type
- insufficient-cash guards
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from posledger.errors import NotFoundError, ValidationError
from posledger.extensions import db
from posledger.models import CashMovement, CashRegister
from posledger.models.registers import (
    CASH_ADJUSTMENT,
    CASH_CLOSING,
    CASH_DEPOSIT,
    CASH_OPENING,
    CASH_RETURN,
    CASH_SALE,
    CASH_STATUS_CANCELLED,
    CASH_STATUS_COMPLETED,
    CASH_WITHDRAWAL,
    REGISTER_CLOSED,
    REGISTER_OPEN,
)
from posledger.services import cash_service


def _mv(movement_type, amount, status=CASH_STATUS_COMPLETED):
    return SimpleNamespace(movement_type=movement_type, amount=Decimal(amount), status=status)


class TestFoldBalance:

    def test_inflows_and_outflows(self):
        movements = [_mv(CASH_SALE, "25.50"), _mv(CASH_DEPOSIT, "10"), _mv(CASH_RETURN, "5"), _mv(CASH_WITHDRAWAL, "0.50")]
        assert cash_service.fold_balance(Decimal("100"), movements) == Decimal("130.00")

    def test_opening_closing_adjustment_are_ignored(self):
        movements = [_mv(CASH_OPENING, "100"), _mv(CASH_CLOSING, "100"), _mv(CASH_ADJUSTMENT, "7")]
        assert cash_service.fold_balance(Decimal("100"), movements) == Decimal("100.00")

    def test_only_completed_rows_count(self):
        movements = [_mv(CASH_SALE, "50", status=CASH_STATUS_CANCELLED), _mv(CASH_SALE, "1")]
        assert cash_service.fold_balance(Decimal("0"), movements) == Decimal("1.00")

    def test_deterministic(self):
        movements = [_mv(CASH_SALE, "3.33"), _mv(CASH_WITHDRAWAL, "1.11")]
        assert cash_service.fold_balance("10", movements) == cash_service.fold_balance("10", movements)


class TestRegisterLifecycle:

    def test_open_writes_opening_movement(self, cashier, open_register):
        movements = db.session.query(CashMovement).filter_by(cash_register_id=open_register.id).all()
        assert len(movements) == 1
        opening = movements[0]
        assert opening.movement_type == CASH_OPENING
        assert opening.previous_balance == Decimal("0.00")
        assert opening.new_balance == Decimal("100.00")

    def test_second_open_register_rejected(self, cashier, open_register):
        with pytest.raises(ValidationError, match="already have an open"):
            cash_service.open_register(cashier, Decimal("10"))

    def test_registers_are_per_user(self, other_cashier, open_register):
        other = cash_service.open_register(other_cashier, Decimal("5"))
        assert other.id != open_register.id

    def test_negative_opening_amount(self, cashier):
        with pytest.raises(ValidationError):
            cash_service.open_register(cashier, Decimal("-1"))

    def test_close_without_open_register(self, cashier):
        with pytest.raises(NotFoundError):
            cash_service.close_register(cashier, Decimal("0"))

    def test_deposit_withdraw_close_balances(self, cashier, open_register):
        cash_service.deposit(cashier, Decimal("50"))
        cash_service.withdraw(cashier, Decimal("30"))
        register = cash_service.close_register(cashier, Decimal("120"), notes="End of shift")

        assert register.status == REGISTER_CLOSED
        assert register.expected_amount == Decimal("120.00")
        assert register.actual_amount == Decimal("120.00")
        assert register.difference == Decimal("0.00")
        assert register.closed_at is not None

        closing = (
            db.session.query(CashMovement)
            .filter_by(cash_register_id=register.id, movement_type=CASH_CLOSING)
            .one()
        )
        assert closing.previous_balance == Decimal("120.00")
        assert closing.new_balance == Decimal("0.00")
        assert closing.amount == Decimal("120.00")

    def test_close_records_shortage(self, cashier, open_register):
        register = cash_service.close_register(cashier, Decimal("95.25"))
        assert register.difference == Decimal("-4.75")

    def test_can_reopen_after_close(self, cashier, open_register):
        cash_service.close_register(cashier, Decimal("100"))
        reopened = cash_service.open_register(cashier, Decimal("20"))
        assert reopened.id != open_register.id

    def test_concurrent_second_open_hits_unique_index(self, cashier, open_register, monkeypatch):
        # The lookup misses, as it would for a transaction that began first
        monkeypatch.setattr(cash_service, "find_open_register", lambda *args, **kwargs: None)

        with pytest.raises(ValidationError, match="already have an open"):
            cash_service.open_register(cashier, Decimal("10"))

        open_count = (
            db.session.query(CashRegister)
            .filter_by(user_id=cashier.user_id, status=REGISTER_OPEN)
            .count()
        )
        assert open_count == 1
        assert db.session.query(CashMovement).count() == 1


class TestCashMovements:

    def test_snapshots_chain(self, cashier, open_register):
        deposit = cash_service.deposit(cashier, Decimal("50"))
        withdrawal = cash_service.withdraw(cashier, Decimal("30"))

        assert (deposit.previous_balance, deposit.new_balance) == (Decimal("100.00"), Decimal("150.00"))
        assert (withdrawal.previous_balance, withdrawal.new_balance) == (Decimal("150.00"), Decimal("120.00"))

    def test_withdraw_more_than_balance(self, cashier, open_register):
        with pytest.raises(ValidationError, match="Insufficient cash"):
            cash_service.withdraw(cashier, Decimal("100.01"))
        assert db.session.query(CashMovement).count() == 1

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_amount_must_be_positive(self, cashier, open_register, amount):
        with pytest.raises(ValidationError):
            cash_service.deposit(cashier, Decimal(amount))

    def test_deposit_without_register(self, cashier):
        with pytest.raises(NotFoundError):
            cash_service.deposit(cashier, Decimal("5"))

    def test_cash_sale_hook_without_register_is_skipped(self, cashier):
        assert cash_service.record_cash_sale(cashier.user_id, 1, Decimal("10")) is None

    def test_cash_return_needs_enough_cash(self, cashier, open_register):
        with pytest.raises(ValidationError):
            cash_service.record_cash_return(cashier.user_id, 1, Decimal("500"))


class TestRegisterReads:

    def test_status_reports_folded_balance(self, cashier, open_register):
        cash_service.deposit(cashier, Decimal("12.50"))
        status = cash_service.get_status(cashier)
        assert status["is_open"] is True
        assert status["current_balance"] == 112.5
        assert [m["movement_type"] for m in status["register"]["movements"]] == [CASH_OPENING, CASH_DEPOSIT]

    def test_status_when_closed(self, cashier):
        assert cash_service.get_status(cashier) == {"is_open": False, "register": None, "current_balance": None}

    def test_history_is_paginated_newest_first(self, cashier):
        for _ in range(3):
            cash_service.open_register(cashier, Decimal("1"))
            cash_service.close_register(cashier, Decimal("1"))

        history = cash_service.get_history(cashier, page=1, per_page=2)
        assert history["pagination"]["total"] == 3
        assert history["pagination"]["has_next"] is True
        ids = [r["id"] for r in history["registers"]]
        assert ids == sorted(ids, reverse=True)
