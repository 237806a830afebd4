"""Request authentication decorators."""
from functools import wraps

import jwt
from flask import current_app, g, jsonify, request

from movie_api.api_users.users_functions import decode_token


def extract_token():
    """Read the token from the ``token`` header or a Bearer authorization header."""
    token = request.headers.get("token")
    if not token:
        authorization = request.headers.get("Authorization", "")
        parts = authorization.split(" ", 1)
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1].strip()
    return token or None


def require_auth(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = extract_token()
        if not token:
            return jsonify({"success": False, "message": "Not Authorized, Login Required"}), 401
        try:
            g.current_user = decode_token(token, current_app.config["JWT_SECRET"])
        except jwt.InvalidTokenError:
            return jsonify({"success": False, "message": "Invalid Token"}), 401
        return view(*args, **kwargs)

    return wrapper


def require_admin(view):
    """Must be applied beneath ``require_auth``."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        claims = getattr(g, "current_user", None) or {}
        if claims.get("role") != "admin":
            return jsonify({"success": False, "message": "Access Denied. Admin Only"}), 403
        return view(*args, **kwargs)

    return wrapper
