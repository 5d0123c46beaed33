# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""
Sales API Routes

POST /api/sales records a completed POS sale in one transaction: stock
movements, customer receivable and the cash drawer are updated together or
not at all.
"""

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, ValidationError, error_response, ledger_error_response, success_response
from ..services import sales_service
from ..validation import parse_int, parse_optional_datetime, require_payload


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Request body:
    {
        "customer": {"name": "Ana", "phone": "0991234567"},   (optional)
        "items": [
            {"item_id": 1, "item_variant_id": 3, "quantity": 2,
             "unit_price": 12.75, "discount_amount": 0, "tax_amount": 0}
        ],
        "payment_method": "CASH",
        "payment_status": "PAID",
        "notes": "..."
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        customer = data.get("customer")
        if customer is not None and not isinstance(customer, dict):
            raise ValidationError("customer must be an object")

        sale = sales_service.create_sale(
            g.identity,
            lines=data.get("items"),
            payment_method=data.get("payment_method"),
            payment_status=data.get("payment_status"),
            customer=customer,
            notes=data.get("notes"),
        )
        return success_response({"sale": sale.to_dict()}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return error_response("Internal server error", 500)


@sales_bp.get("")
@require_auth
def list_sales_route():
    try:
        args = request.args
        customer_raw = args.get("customer_id")
        result = sales_service.list_sales(
            status=args.get("status") or None,
            start_date=parse_optional_datetime(args.get("start_date"), "start_date"),
            end_date=parse_optional_datetime(args.get("end_date"), "end_date"),
            customer_id=parse_int(customer_raw, "customer_id") if customer_raw else None,
            page=parse_int(args.get("page"), "page", default=1, minimum=1),
            per_page=parse_int(args.get("limit"), "limit", default=10, minimum=1),
        )
        return success_response(result)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return error_response("Internal server error", 500)


@sales_bp.get("/summary")
@require_auth
def sales_summary_route():
    try:
        summary = sales_service.get_sales_summary(
            start_date=parse_optional_datetime(request.args.get("start_date"), "start_date"),
            end_date=parse_optional_datetime(request.args.get("end_date"), "end_date"),
        )
        return success_response(summary)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to compute sales summary")
        return error_response("Internal server error", 500)


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return success_response({"sale": sale.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return error_response("Internal server error", 500)


@sales_bp.post("/<int:sale_id>/refund")
@require_auth
def refund_sale_route(sale_id: int):
    try:
        data = require_payload(request.get_json(silent=True))
        sale = sales_service.refund_sale(g.identity, sale_id, notes=data.get("notes"))
        return success_response({"sale": sale.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to refund sale")
        return error_response("Internal server error", 500)
