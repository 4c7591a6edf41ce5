# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import jsonify, g, current_app

from .identity import get_current_user
from .services.role_service import RoleAuthorizer


def require_auth(f):
    """
    Require an authenticated user.

    Sets g.current_user_id. Returns 401 when the identity provider reports
    no user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = get_current_user()
        if not user_id:
            return jsonify({"error": "Authentication required"}), 401
        g.current_user_id = user_id
        return f(*args, **kwargs)

    return decorated_function


def require_roles(config_key: str):
    """
    Require any of the roles listed in app.config[config_key].

    Role sets live in configuration so policy can change without touching
    routes. Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_id = getattr(g, "current_user_id", None)
            if not user_id:
                return jsonify({"error": "Authentication required"}), 401

            required = tuple(current_app.config.get(config_key) or ())
            if not RoleAuthorizer()(user_id, required):
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(required),
                    "message": f"Requires any of: {', '.join(required)}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
