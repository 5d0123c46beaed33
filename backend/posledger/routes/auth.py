# Overview: Exposes the identity the provider resolved for the current request.

from flask import Blueprint, g

from ..decorators import require_auth
from ..errors import success_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/me")
@require_auth
def me_route():
    return success_response({"user": g.identity.to_dict()})
