# Overview: Flask API routes for the category tree; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, ValidationError, error_response, ledger_error_response, success_response
from ..services import category_service
from ..validation import parse_bool, parse_int, require_payload


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")

UPDATABLE_FIELDS = ("name", "code", "description", "parent_id", "is_active")


@categories_bp.post("")
@require_auth
def create_category_route():
    """
    Request body:
    {
        "name": "Dresses",
        "code": "DRS",
        "description": "...",      (optional)
        "parent_id": 1             (optional)
    }
    """
    try:
        data = require_payload(request.get_json(silent=True))
        parent_raw = data.get("parent_id")
        category = category_service.create_category(
            g.identity,
            name=data.get("name"),
            code=data.get("code"),
            description=data.get("description"),
            parent_id=parse_int(parent_raw, "parent_id", minimum=1) if parent_raw is not None else None,
        )
        return success_response({"category": category.to_dict(include_children=True)}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return error_response("Internal server error", 500)


@categories_bp.get("")
@require_auth
def list_categories_route():
    try:
        categories = category_service.list_categories(
            search=request.args.get("search"),
            is_active=parse_bool(request.args.get("is_active")),
            include_inactive_children=parse_bool(request.args.get("include_inactive"), False),
        )
        return success_response({"categories": categories})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list categories")
        return error_response("Internal server error", 500)


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    try:
        return success_response({"category": category_service.get_category(category_id)})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get category")
        return error_response("Internal server error", 500)


@categories_bp.put("/<int:category_id>")
@require_auth
def update_category_route(category_id: int):
    try:
        data = require_payload(request.get_json(silent=True))
        changes = {k: data[k] for k in UPDATABLE_FIELDS if k in data}
        if "parent_id" in changes and changes["parent_id"] is not None:
            changes["parent_id"] = parse_int(changes["parent_id"], "parent_id", minimum=1)
        if "is_active" in changes and not isinstance(changes["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        for field in ("name", "code"):
            if field in changes and not changes[field]:
                raise ValidationError(f"{field} cannot be empty")

        category = category_service.update_category(g.identity, category_id, changes)
        return success_response({"category": category.to_dict(include_children=True)})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update category")
        return error_response("Internal server error", 500)


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    try:
        category_service.delete_category(g.identity, category_id)
        return success_response({"message": "Category deleted successfully"})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return error_response("Internal server error", 500)
