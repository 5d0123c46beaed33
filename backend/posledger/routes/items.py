# Overview: Flask API routes for items and variants; parses input and returns JSON responses.

from decimal import Decimal

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, ValidationError, error_response, ledger_error_response, success_response
from ..services import catalog_service
from ..validation import parse_amount, parse_bool, parse_int, require_payload


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.post("/with-variants")
@require_auth
def create_item_route():
    """
    Create an item and its variant matrix.

    Request body:
    {
        "category_id": 1,
        "store": "Lariche",
        "description": "Summer dress",
        "purchase_price": 10.0,
        "selling_price": 25.5,
        "variant_groups": {"size": ["S", "M"], "color": ["Red"]},
        "variant_defaults": {"stock_quantity": 0}          (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        if data.get("category_id") is None or not data.get("store"):
            raise ValidationError("category_id and store are required")

        variant_defaults = data.get("variant_defaults")
        if variant_defaults is not None and not isinstance(variant_defaults, dict):
            raise ValidationError("variant_defaults must be an object")

        item = catalog_service.create_item_with_variants(
            g.identity,
            category_id=parse_int(data.get("category_id"), "category_id", minimum=1),
            store=data.get("store"),
            description=data.get("description"),
            purchase_price=parse_amount(data.get("purchase_price"), "purchase_price", default=Decimal("0.00")),
            selling_price=parse_amount(data.get("selling_price"), "selling_price", default=Decimal("0.00")),
            min_stock_level=parse_int(data.get("min_stock_level"), "min_stock_level", default=0, minimum=0),
            max_stock_level=parse_int(data.get("max_stock_level"), "max_stock_level", default=0, minimum=0),
            image_url=data.get("image_url"),
            notes=data.get("notes"),
            variant_groups=data.get("variant_groups"),
            variant_defaults=variant_defaults,
        )
        return success_response({"item": item.to_dict()}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create item")
        return error_response("Internal server error", 500)


@items_bp.get("/search")
@require_auth
def search_items_route():
    """
    Query params: query, category_id, store, min_price, max_price,
    in_stock, has_variants, limit, offset
    """
    try:
        args = request.args
        category_raw = args.get("category_id")
        min_raw = args.get("min_price")
        max_raw = args.get("max_price")
        result = catalog_service.search_items(
            query=args.get("query"),
            category_id=parse_int(category_raw, "category_id") if category_raw else None,
            store=args.get("store"),
            min_price=parse_amount(min_raw, "min_price") if min_raw else None,
            max_price=parse_amount(max_raw, "max_price") if max_raw else None,
            in_stock=parse_bool(args.get("in_stock"), False),
            has_variants=parse_bool(args.get("has_variants")),
            limit=parse_int(args.get("limit"), "limit", default=10, minimum=1),
            offset=parse_int(args.get("offset"), "offset", default=0, minimum=0),
        )
        return success_response(result)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to search items")
        return error_response("Internal server error", 500)


@items_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = catalog_service.get_item(item_id)
        return success_response({"item": item.to_dict()})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get item")
        return error_response("Internal server error", 500)
