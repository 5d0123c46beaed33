# Overview: Ledger error taxonomy; every error carries the HTTP status it maps to.

"""
Error taxonomy

Services raise these; routes translate them into
{"status": "error", "message": ...} with the attached status_code.
Anything that is not a LedgerError is treated as an internal failure (500)
and never echoed back to the caller.
"""

from __future__ import annotations

from flask import jsonify


class LedgerError(Exception):
    """Base class for expected, caller-facing failures."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(LedgerError):
    """400: bad input or a business rule the request violates."""
    status_code = 400


class NotFoundError(LedgerError):
    """404: referenced row is missing or inactive."""
    status_code = 404


class ConflictError(LedgerError):
    """400: unique code collision (including generator races)."""
    status_code = 400


class UnauthorizedError(LedgerError):
    """401: no resolved caller identity."""
    status_code = 401


def error_response(message: str, status_code: int, details: dict | None = None):
    body = {"status": "error", "message": message}
    if details:
        body["details"] = details
    return jsonify(body), status_code


def ledger_error_response(exc: LedgerError):
    return error_response(exc.message, exc.status_code, exc.details)


def success_response(data: dict, status_code: int = 200):
    return jsonify({"status": "success", "data": data}), status_code
