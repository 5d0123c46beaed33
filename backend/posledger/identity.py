# Overview: Caller identity handed to the ledger by the external identity provider.

"""
Identity boundary

The ledger never authenticates anyone. An upstream identity provider (or the
gateway in front of this service) resolves the acting principal; this module
only turns that result into a CallerIdentity value that routes pass explicitly
into every service call.

A resolver is any callable taking the Flask request and returning a
CallerIdentity, or None when the request carries no principal. Configure it as
IDENTITY_RESOLVER (callable or "package.module:function" path). The default
trusts gateway headers.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module

from flask import current_app

from .errors import UnauthorizedError


DEFAULT_ROLE = "CASHIER"
USER_ID_HEADER = "X-User-Id"
ROLE_HEADER = "X-User-Role"


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    role: str = DEFAULT_ROLE

    def to_dict(self) -> dict:
        return {"id": self.user_id, "role": self.role}


def require_identity(identity: CallerIdentity | None) -> CallerIdentity:
    """Precondition for every write: a resolved user id."""
    if identity is None or not identity.user_id:
        raise UnauthorizedError("You are not logged in.")
    return identity


def header_identity_resolver(request) -> CallerIdentity | None:
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        return None
    role = (request.headers.get(ROLE_HEADER) or DEFAULT_ROLE).strip().upper()
    return CallerIdentity(user_id=user_id, role=role or DEFAULT_ROLE)


def _load_resolver(spec):
    if spec is None:
        return header_identity_resolver
    if callable(spec):
        return spec
    module_name, _, attr = str(spec).partition(":")
    return getattr(import_module(module_name), attr)


def resolve_identity(request) -> CallerIdentity:
    """
    Resolve the caller for this request.

    Provider failures of any kind are normalized into UnauthorizedError; this
    is the only place the ledger recovers from a foreign exception.
    """
    resolver = _load_resolver(current_app.config.get("IDENTITY_RESOLVER"))
    try:
        identity = resolver(request)
    except UnauthorizedError:
        raise
    except Exception:
        current_app.logger.warning("Identity provider rejected request", exc_info=True)
        raise UnauthorizedError("Authentication failed")
    return require_identity(identity)
