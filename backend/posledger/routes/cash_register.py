# Overview: Flask API routes for cash register sessions; parses input and returns JSON responses.

"""
Cash Register API Routes

Every route acts on the caller's own register; there is no way to open,
close or move cash on someone else's drawer.
"""

from decimal import Decimal

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, error_response, ledger_error_response, success_response
from ..services import cash_service
from ..validation import parse_amount, parse_int, require_payload


cash_register_bp = Blueprint("cash_register", __name__, url_prefix="/api/cash-register")


@cash_register_bp.post("/open")
@require_auth
def open_register_route():
    """Request body: {"opening_amount": 100.0, "notes": "..."}"""
    try:
        data = require_payload(request.get_json(silent=True))
        register = cash_service.open_register(
            g.identity,
            parse_amount(data.get("opening_amount"), "opening_amount", default=Decimal("0.00")),
            notes=data.get("notes"),
        )
        return success_response({"cash_register": register.to_dict(include_movements=True)}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open cash register")
        return error_response("Internal server error", 500)


@cash_register_bp.post("/close")
@require_auth
def close_register_route():
    """Request body: {"actual_amount": 120.0, "notes": "..."}"""
    try:
        data = require_payload(request.get_json(silent=True))
        register = cash_service.close_register(
            g.identity,
            parse_amount(data.get("actual_amount"), "actual_amount"),
            notes=data.get("notes"),
        )
        return success_response({"cash_register": register.to_dict(include_movements=True)})
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close cash register")
        return error_response("Internal server error", 500)


@cash_register_bp.get("/status")
@require_auth
def register_status_route():
    try:
        return success_response(cash_service.get_status(g.identity))
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get cash register status")
        return error_response("Internal server error", 500)


@cash_register_bp.post("/deposit")
@require_auth
def deposit_route():
    try:
        data = require_payload(request.get_json(silent=True))
        movement = cash_service.deposit(
            g.identity,
            parse_amount(data.get("amount"), "amount", allow_zero=False),
            notes=data.get("notes"),
        )
        return success_response({"movement": movement.to_dict()}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deposit cash")
        return error_response("Internal server error", 500)


@cash_register_bp.post("/withdraw")
@require_auth
def withdraw_route():
    try:
        data = require_payload(request.get_json(silent=True))
        movement = cash_service.withdraw(
            g.identity,
            parse_amount(data.get("amount"), "amount", allow_zero=False),
            notes=data.get("notes"),
        )
        return success_response({"movement": movement.to_dict()}, 201)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to withdraw cash")
        return error_response("Internal server error", 500)


@cash_register_bp.get("/history")
@require_auth
def register_history_route():
    try:
        result = cash_service.get_history(
            g.identity,
            page=parse_int(request.args.get("page"), "page", default=1, minimum=1),
            per_page=parse_int(request.args.get("limit"), "limit", default=10, minimum=1),
        )
        return success_response(result)
    except LedgerError as e:
        return ledger_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get cash register history")
        return error_response("Internal server error", 500)
