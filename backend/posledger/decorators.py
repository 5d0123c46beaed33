# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import UnauthorizedError, ledger_error_response
from .identity import resolve_identity


def require_auth(f):
    """
    Require a resolved caller identity.

    Sets g.identity (CallerIdentity) for the route body. Routes hand it to
    services explicitly; services never look at g.

    Returns 401 when the request has no principal or the identity provider
    rejects it.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.identity = resolve_identity(request)
        except UnauthorizedError as e:
            return ledger_error_response(e)

        return f(*args, **kwargs)

    return decorated_function
