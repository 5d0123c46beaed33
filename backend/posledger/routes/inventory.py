from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, error_response, ledger_error_response, success_response
from ..services import inventory_service
from ..validation import parse_int, require_payload


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _optional_int(name: str):
    raw = request.args.get(name)
    return parse_int(raw, name) if raw else None


@inventory_bp.get("/movements")
@require_auth
def list_movements_route():
    try:
        result = inventory_service.list_movements(
            item_id=_optional_int("item_id"),
            item_variant_id=_optional_int("item_variant_id"),
            movement_type=request.args.get("movement_type") or None,
            reference_type=request.args.get("reference_type") or None,
            reference_id=_optional_int("reference_id"),
            page=parse_int(request.args.get("page"), "page", default=1, minimum=1),
            per_page=parse_int(request.args.get("limit"), "limit", default=20, minimum=1),
        )
        return success_response(result)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list item movements")
        return error_response("Internal server error", 500)


@inventory_bp.post("/adjust")
@require_auth
def adjust_stock_route():
    """Request body: {"item_variant_id": 3, "quantity_delta": -2, "notes": "Damaged"}"""
    try:
        data = require_payload(request.get_json(silent=True))
        movement = inventory_service.adjust_stock(
            g.identity,
            item_variant_id=parse_int(data.get("item_variant_id"), "item_variant_id", minimum=1),
            quantity_delta=parse_int(data.get("quantity_delta"), "quantity_delta"),
            notes=data.get("notes"),
        )
        return success_response({"movement": movement.to_dict()}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return error_response("Internal server error", 500)
