# Overview: Pytest coverage for purchase-order creation, transitions and receipt.

from decimal import Decimal

import pytest

from posledger.errors import NotFoundError, ValidationError
from posledger.extensions import db
from posledger.models import ItemMovement, PurchaseOrderItem
from posledger.models.inventory import MOVEMENT_PURCHASE, REFERENCE_PURCHASE_ORDER
from posledger.models.purchasing import (
    PO_STATUS_CANCELLED,
    PO_STATUS_DRAFT,
    PO_STATUS_ORDERED,
    PO_STATUS_RECEIVED,
    PO_STATUSES,
)
from posledger.services import purchase_order_service
from posledger.services.purchase_order_service import VALID_TRANSITIONS, can_transition
from posledger.time_utils import utcnow


@pytest.fixture
def order(cashier, variant_item, plain_item, variant_of):
    return purchase_order_service.create_purchase_order(
        cashier,
        lines=[
            {"item_id": variant_item.id, "item_variant_id": variant_of(variant_item, size="S").id,
             "quantity": 10, "unit_price": "7.25"},
            {"item_id": plain_item.id, "quantity": 4, "unit_price": "3.00", "tax_amount": "0.60"},
        ],
        notes="Spring restock",
    )


class TestCreatePurchaseOrder:

    def test_draft_with_generated_number_and_totals(self, order):
        assert order.status == PO_STATUS_DRAFT
        assert order.order_number == f"PO-{utcnow().year % 100:02d}-0001"
        assert order.total_amount == Decimal("84.50")
        assert order.tax_amount == Decimal("0.60")
        assert order.final_amount == Decimal("85.10")
        assert all(line.received_quantity == 0 for line in order.items)

    def test_numbers_are_sequential(self, cashier, plain_item, order):
        second = purchase_order_service.create_purchase_order(
            cashier, lines=[{"item_id": plain_item.id, "quantity": 1, "unit_price": "1"}],
        )
        assert int(second.order_number[-4:]) == int(order.order_number[-4:]) + 1

    def test_unit_price_must_be_positive(self, cashier, plain_item):
        with pytest.raises(ValidationError):
            purchase_order_service.create_purchase_order(
                cashier, lines=[{"item_id": plain_item.id, "quantity": 1, "unit_price": "0"}],
            )

    def test_variant_must_belong_to_item(self, cashier, plain_item, variant_item, variant_of):
        with pytest.raises(ValidationError, match="does not belong"):
            purchase_order_service.create_purchase_order(
                cashier,
                lines=[{"item_id": plain_item.id, "item_variant_id": variant_of(variant_item, size="M").id,
                        "quantity": 1, "unit_price": "1"}],
            )

    def test_unknown_item(self, cashier, app):
        with pytest.raises(NotFoundError):
            purchase_order_service.create_purchase_order(
                cashier, lines=[{"item_id": 999, "quantity": 1, "unit_price": "1"}],
            )


class TestTransitions:

    @pytest.mark.parametrize("current", sorted(PO_STATUSES))
    def test_transition_table(self, current):
        for new in PO_STATUSES:
            assert can_transition(current, new) == (new in VALID_TRANSITIONS[current])

    def test_cancelled_is_terminal(self):
        assert VALID_TRANSITIONS[PO_STATUS_CANCELLED] == set()

    def test_invalid_transition_leaves_state(self, cashier, order):
        with pytest.raises(ValidationError, match="Invalid status transition"):
            purchase_order_service.update_status(cashier, order.id, PO_STATUS_RECEIVED)
        assert purchase_order_service.get_purchase_order(order.id).status == PO_STATUS_DRAFT
        assert db.session.query(ItemMovement).count() == 0

    def test_unknown_status(self, cashier, order):
        with pytest.raises(ValidationError):
            purchase_order_service.update_status(cashier, order.id, "SHIPPED")


class TestReceipt:

    def test_receiving_updates_stock_prices_and_ledger(self, cashier, order, variant_item, plain_item, variant_of):
        purchase_order_service.update_status(cashier, order.id, PO_STATUS_ORDERED)
        received = purchase_order_service.update_status(cashier, order.id, PO_STATUS_RECEIVED)

        assert received.status == PO_STATUS_RECEIVED
        assert received.actual_delivery_date is not None

        small = variant_of(variant_item, size="S")
        db.session.refresh(small)
        assert small.stock_quantity == 10
        assert small.purchase_price == Decimal("7.25")
        db.session.refresh(plain_item)
        assert plain_item.purchase_price == Decimal("3.00")

        movements = (
            db.session.query(ItemMovement)
            .filter_by(reference_type=REFERENCE_PURCHASE_ORDER, reference_id=order.id)
            .order_by(ItemMovement.id)
            .all()
        )
        assert [m.movement_type for m in movements] == [MOVEMENT_PURCHASE, MOVEMENT_PURCHASE]
        assert (movements[0].previous_quantity, movements[0].new_quantity) == (0, 10)
        assert (movements[1].previous_quantity, movements[1].new_quantity) == (0, 4)

        lines = db.session.query(PurchaseOrderItem).filter_by(purchase_order_id=order.id).all()
        assert all(line.received_quantity == line.quantity for line in lines)

    def test_cancel_after_receipt_keeps_stock(self, cashier, order, variant_item, variant_of):
        purchase_order_service.update_status(cashier, order.id, PO_STATUS_ORDERED)
        purchase_order_service.update_status(cashier, order.id, PO_STATUS_RECEIVED)
        purchase_order_service.update_status(cashier, order.id, PO_STATUS_CANCELLED)

        small = variant_of(variant_item, size="S")
        db.session.refresh(small)
        assert small.stock_quantity == 10
        assert db.session.query(ItemMovement).count() == 2


class TestPurchaseOrderReads:

    def test_list_filters(self, cashier, order, plain_item):
        purchase_order_service.create_purchase_order(
            cashier, lines=[{"item_id": plain_item.id, "quantity": 1, "unit_price": "1"}], notes="Urgent",
        )
        purchase_order_service.update_status(cashier, order.id, PO_STATUS_ORDERED)

        assert purchase_order_service.list_purchase_orders(search="spring")["pagination"]["total"] == 1
        ordered = purchase_order_service.list_purchase_orders(status=PO_STATUS_ORDERED)
        assert [o["id"] for o in ordered["purchase_orders"]] == [order.id]
        assert purchase_order_service.list_purchase_orders()["pagination"]["total"] == 2

    def test_missing_order(self, app):
        with pytest.raises(NotFoundError):
            purchase_order_service.get_purchase_order(42)
