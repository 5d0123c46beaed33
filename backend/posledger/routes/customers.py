from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, error_response, ledger_error_response, success_response
from ..services import customer_service
from ..validation import parse_int, require_payload


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
@require_auth
def create_customer_route():
    try:
        data = require_payload(request.get_json(silent=True))
        customer = customer_service.create_customer(g.identity, data)
        return success_response({"customer": customer.to_dict()}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return error_response("Internal server error", 500)


@customers_bp.get("")
@require_auth
def list_customers_route():
    try:
        result = customer_service.list_customers(
            page=parse_int(request.args.get("page"), "page", default=1, minimum=1),
            per_page=parse_int(request.args.get("limit"), "limit", default=10, minimum=1),
        )
        return success_response(result)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return error_response("Internal server error", 500)


@customers_bp.get("/search")
@require_auth
def search_customers_route():
    try:
        customers = customer_service.search_customers(
            request.args.get("query", ""),
            limit=parse_int(request.args.get("limit"), "limit", default=10, minimum=1),
        )
        return success_response({"customers": [c.to_dict() for c in customers]})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to search customers")
        return error_response("Internal server error", 500)


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        return success_response({"customer": customer.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get customer")
        return error_response("Internal server error", 500)
