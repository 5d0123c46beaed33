# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, ValidationError, error_response, ledger_error_response, success_response
from ..services import purchase_order_service
from ..validation import parse_int, parse_optional_datetime, require_payload


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.post("")
@require_auth
def create_purchase_order_route():
    """
    Request body:
    {
        "items": [{"item_id": 1, "item_variant_id": 2, "quantity": 10, "unit_price": 4.5}],
        "expected_delivery_date": "2024-03-01T00:00:00Z",   (optional)
        "notes": "..."
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        order = purchase_order_service.create_purchase_order(
            g.identity,
            lines=data.get("items"),
            expected_delivery_date=parse_optional_datetime(
                data.get("expected_delivery_date"), "expected_delivery_date"
            ),
            notes=data.get("notes"),
        )
        return success_response({"purchase_order": order.to_dict()}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return error_response("Internal server error", 500)


@purchase_orders_bp.get("")
@require_auth
def list_purchase_orders_route():
    try:
        args = request.args
        result = purchase_order_service.list_purchase_orders(
            search=args.get("search"),
            status=args.get("status") or None,
            start_date=parse_optional_datetime(args.get("start_date"), "start_date"),
            end_date=parse_optional_datetime(args.get("end_date"), "end_date"),
            page=parse_int(args.get("page"), "page", default=1, minimum=1),
            per_page=parse_int(args.get("limit"), "limit", default=10, minimum=1),
        )
        return success_response(result)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list purchase orders")
        return error_response("Internal server error", 500)


@purchase_orders_bp.get("/<int:order_id>")
@require_auth
def get_purchase_order_route(order_id: int):
    try:
        order = purchase_order_service.get_purchase_order(order_id)
        return success_response({"purchase_order": order.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get purchase order")
        return error_response("Internal server error", 500)


@purchase_orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_purchase_order_status_route(order_id: int):
    """Request body: {"status": "ORDERED" | "RECEIVED" | "CANCELLED"}"""
    try:
        data = require_payload(request.get_json(silent=True))
        status = data.get("status")
        if not status:
            raise ValidationError("status is required")
        order = purchase_order_service.update_status(g.identity, order_id, status)
        return success_response({"purchase_order": order.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase order status")
        return error_response("Internal server error", 500)
