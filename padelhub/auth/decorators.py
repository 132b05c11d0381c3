"""Decorators for protecting JSON endpoints."""

from functools import wraps

from flask import jsonify, session


def login_required(f=None, admin_required=False):
    """Reject the request if the user is not logged in.

    Usage:
    @login_required
    def protected_view():
        ...

    @login_required(admin_required=True)
    def admin_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            if "user_id" not in session:
                return jsonify(
                    {"success": False, "message": "Login required.", "data": None}
                ), 401
            if admin_required and not session.get("is_admin"):
                return jsonify(
                    {
                        "success": False,
                        "message": "You are not authorized to view this page.",
                        "data": None,
                    }
                ), 403
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator
